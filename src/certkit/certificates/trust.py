"""Trust evaluation — build a chain from a certificate to a trusted anchor.

The TrustEvaluator links a certificate to its issuer by name, checks each
signature with the issuer's public key and each certificate's validity at
the evaluation time, and stops at the first certificate that is one of the
anchors. An untrusted certificate is reported through
:class:`TrustResult`, never by raising.
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from certkit.certificates.certificate import Certificate, load_certificate
from certkit.errors import CertKitError

logger = logging.getLogger(__name__)


@dataclass
class TrustResult:
    """Outcome of a trust evaluation.

    Parameters
    ----------
    trusted:
        Overall pass/fail result.
    chain:
        Certificates from the evaluated one up to the anchor (or as far as
        the path could be built).
    errors:
        Human-readable descriptions of every failed check.
    """

    trusted: bool
    chain: list[Certificate] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class TrustEvaluator:
    """Evaluates certificates against a fixed set of trust anchors.

    Parameters
    ----------
    anchors:
        Trusted certificates (DER, PEM, Certificate or cryptography objects).
    at_time:
        Evaluation time; defaults to now at each call.
    max_depth:
        Longest chain that will be built, anchor included.
    """

    def __init__(
        self,
        anchors: Iterable[object],
        at_time: Optional[datetime.datetime] = None,
        max_depth: int = 8,
    ) -> None:
        self._anchors = [load_certificate(anchor) for anchor in anchors]
        self._at_time = at_time
        self._max_depth = max_depth

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def evaluate(
        self, certificate: object, intermediates: Iterable[object] = ()
    ) -> TrustResult:
        """Evaluate *certificate*, using *intermediates* to bridge to an anchor.

        Parameters
        ----------
        certificate:
            The certificate to evaluate.
        intermediates:
            Untrusted certificates that may appear in the path.

        Returns
        -------
        TrustResult
        """
        when = self._at_time or datetime.datetime.now(datetime.timezone.utc)
        current = load_certificate(certificate)
        pool = [load_certificate(candidate) for candidate in intermediates]
        chain = [current]
        errors: list[str] = []

        while True:
            if not current.is_valid_at(when):
                errors.append(
                    f"{self._describe(current)} is not valid at {when.isoformat()} "
                    f"(window {current.not_before.isoformat()} .. {current.not_after.isoformat()})"
                )
            if current in self._anchors:
                break
            if len(chain) >= self._max_depth:
                errors.append(f"No anchor reached within {self._max_depth} certificates")
                break
            issuer = self._find_issuer(current, pool, chain, errors)
            if issuer is None:
                errors.append(f"No trusted issuer found for {self._describe(current)}")
                break
            self._check_ca(issuer, intermediates_below=len(chain) - 1, errors=errors)
            chain.append(issuer)
            current = issuer

        trusted = not errors
        if not trusted:
            logger.warning(
                "Trust evaluation failed for %s: %s", self._describe(chain[0]), "; ".join(errors)
            )
        return TrustResult(trusted=trusted, chain=chain, errors=errors)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _find_issuer(
        self,
        certificate: Certificate,
        pool: list[Certificate],
        chain: list[Certificate],
        errors: list[str],
    ) -> Optional[Certificate]:
        candidates = [
            candidate
            for candidate in self._anchors + pool
            if candidate.subject == certificate.issuer and candidate not in chain
        ]
        rejected: list[str] = []
        for candidate in candidates:
            try:
                if certificate.verify_signature(candidate.public_key()):
                    return candidate
            except CertKitError as exc:
                rejected.append(f"Cannot use {self._describe(candidate)} as issuer: {exc}")
        errors.extend(rejected)
        if candidates and not rejected:
            errors.append(f"Signature of {self._describe(certificate)} does not verify")
        return None

    @staticmethod
    def _check_ca(issuer: Certificate, intermediates_below: int, errors: list[str]) -> None:
        try:
            constraints = issuer.basic_constraints
        except CertKitError as exc:
            errors.append(f"{TrustEvaluator._describe(issuer)} has unreadable BasicConstraints: {exc}")
            return
        if constraints is None or not constraints.ca:
            errors.append(f"{TrustEvaluator._describe(issuer)} is not a CA certificate")
            return
        if constraints.path_length is not None and intermediates_below > constraints.path_length:
            errors.append(
                f"{TrustEvaluator._describe(issuer)} allows {constraints.path_length} "
                f"intermediate(s), path has {intermediates_below}"
            )

    @staticmethod
    def _describe(certificate: Certificate) -> str:
        return f"'{certificate.subject.rfc4514_string()}' (serial {certificate.serial_number:#x})"


__all__ = ["TrustEvaluator", "TrustResult"]
