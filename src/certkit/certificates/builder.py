"""CertificateBuilder — assemble, serialize and sign an X.509 v3 certificate.

The builder accumulates identity, validity, key and extension data through
chainable setters, then ``build()`` serializes the TBSCertificate through
pyasn1's RFC 5280 schema, signs it with the supplied private key and returns
an immutable :class:`~certkit.certificates.certificate.Certificate`.

Builders are single-use. Once ``build()`` has been called, whether it
succeeded or raised, every further call raises :class:`InvalidBuilderState`.
Builders are not thread-safe.

Example
-------
::

    name = NameBuilder().add("Unit Testing", "CN").name
    cert = (
        CertificateBuilder()
        .subject(name)
        .issuer(name)
        .public_key(pair, usage=KeyUsageFlags.KEY_ENCIPHERMENT)
        .valid(datetime.timedelta(days=5))
        .build(pair.private_key)
    )
"""
from __future__ import annotations

import datetime
import logging
from enum import Enum
from typing import Callable, Optional, Union

from cryptography import x509
from pyasn1.codec.der import decoder, encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import tag, univ, useful
from pyasn1_modules import rfc5280

from certkit.algorithms import DigestAlgorithm, KeyType, signature_algorithm_oid
from certkit.certificates.certificate import Certificate, SignedCertificate
from certkit.errors import (
    IncompleteCertificate,
    InvalidBuilderState,
    InvalidValidityPeriod,
    MalformedExtension,
)
from certkit.extensions import KeyUsage, KeyUsageFlags, SubjectAltName
from certkit.extensions.base import ExtensionValue, UnrecognizedExtension
from certkit.keys.key import PrivateKey, PublicKey
from certkit.keys.keypair import KeyPair
from certkit.names import Name
from certkit.policy import DEFAULT_POLICY, KeyPolicy

logger = logging.getLogger(__name__)

# RFC 5280 4.1.2.5: UTCTime covers 1950 through 2049, GeneralizedTime the rest.
_UTC_TIME_START = datetime.datetime(1950, 1, 1, tzinfo=datetime.timezone.utc)
_UTC_TIME_LIMIT = datetime.datetime(2050, 1, 1, tzinfo=datetime.timezone.utc)

Clock = Callable[[], datetime.datetime]
ExtensionLike = Union[ExtensionValue, UnrecognizedExtension]


class BuilderState(str, Enum):
    """Lifecycle of a :class:`CertificateBuilder`."""

    EMPTY = "empty"
    CONFIGURING = "configuring"
    SIGNABLE = "signable"
    SIGNED = "signed"
    FAILED = "failed"


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc).replace(microsecond=0)


def encode_time(value: datetime.datetime) -> rfc5280.Time:
    """Encode *value* as an RFC 5280 ``Time``, picking UTCTime or GeneralizedTime."""
    value = _as_utc(value)
    time = rfc5280.Time()
    if _UTC_TIME_START <= value < _UTC_TIME_LIMIT:
        time["utcTime"] = useful.UTCTime(value.strftime("%y%m%d%H%M%SZ"))
    else:
        time["generalTime"] = useful.GeneralizedTime(f"{value.year:04d}" + value.strftime("%m%d%H%M%SZ"))
    return time


def signature_algorithm_identifier(
    key_type: KeyType, digest: DigestAlgorithm
) -> rfc5280.AlgorithmIdentifier:
    """AlgorithmIdentifier for the signature; RSA carries NULL parameters, ECDSA none."""
    algorithm = rfc5280.AlgorithmIdentifier()
    algorithm["algorithm"] = univ.ObjectIdentifier(signature_algorithm_oid(key_type, digest))
    if key_type is KeyType.RSA:
        algorithm["parameters"] = univ.Any(encoder.encode(univ.Null("")))
    return algorithm


class CertificateBuilder:
    """Single-use builder for X.509 v3 certificates.

    Parameters
    ----------
    clock:
        Returns the current time; used by :meth:`valid`. Defaults to UTC now.
    policy:
        Supplies the default signature digest.
    """

    def __init__(self, clock: Optional[Clock] = None, policy: Optional[KeyPolicy] = None) -> None:
        self._clock = clock or _utc_now
        self._policy = policy or DEFAULT_POLICY
        self._subject: Optional[Name] = None
        self._issuer: Optional[Name] = None
        self._serial: Optional[int] = None
        self._not_before: Optional[datetime.datetime] = None
        self._not_after: Optional[datetime.datetime] = None
        self._public_key: Optional[PublicKey] = None
        self._key_usage: Optional[KeyUsage] = None
        self._extensions: dict[str, ExtensionLike] = {}
        self._consumed: Optional[BuilderState] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> BuilderState:
        if self._consumed is not None:
            return self._consumed
        if not self._missing_fields():
            return BuilderState.SIGNABLE
        touched = (
            self._subject,
            self._issuer,
            self._serial,
            self._not_after,
            self._public_key,
        )
        if any(value is not None for value in touched) or self._extensions:
            return BuilderState.CONFIGURING
        return BuilderState.EMPTY

    def _check_open(self, operation: str) -> None:
        if self._consumed is not None:
            raise InvalidBuilderState(operation, self._consumed.value)

    def _missing_fields(self) -> list[str]:
        missing = []
        if self._subject is None:
            missing.append("subject")
        if self._issuer is None:
            missing.append("issuer")
        if self._public_key is None:
            missing.append("public_key")
        if self._not_after is None:
            missing.append("validity")
        return missing

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def subject(self, name: Name) -> "CertificateBuilder":
        self._check_open("subject")
        self._subject = name
        return self

    def issuer(self, name: Name) -> "CertificateBuilder":
        self._check_open("issuer")
        self._issuer = name
        return self

    def serial_number(self, serial: int) -> "CertificateBuilder":
        """Set the serial; RFC 5280 limits it to a positive 20-octet integer."""
        self._check_open("serial_number")
        if serial <= 0 or serial.bit_length() > 159:
            raise ValueError(f"Serial number must be positive and below 2**159, got {serial}")
        self._serial = serial
        return self

    def valid(self, for_: Union[datetime.timedelta, int, float]) -> "CertificateBuilder":
        """Valid from now (whole seconds) for *for_* (a timedelta or seconds).

        Raises
        ------
        InvalidValidityPeriod
            If the duration is zero or negative, or shorter than a second
            once truncated to whole seconds.
        """
        self._check_open("valid")
        duration = for_ if isinstance(for_, datetime.timedelta) else datetime.timedelta(seconds=for_)
        if duration <= datetime.timedelta(0):
            raise InvalidValidityPeriod(f"Validity duration must be positive, got {duration}")
        now = _as_utc(self._clock())
        end = _as_utc(now + duration)
        if end <= now:
            raise InvalidValidityPeriod(
                f"Validity duration {duration} is empty once truncated to whole seconds"
            )
        self._not_before, self._not_after = now, end
        return self

    def valid_between(
        self, not_before: datetime.datetime, not_after: datetime.datetime
    ) -> "CertificateBuilder":
        """Explicit validity window; naive datetimes are taken as UTC."""
        self._check_open("valid_between")
        start, end = _as_utc(not_before), _as_utc(not_after)
        if end <= start:
            raise InvalidValidityPeriod(
                f"not_after {end.isoformat()} must be later than not_before {start.isoformat()}"
            )
        self._not_before, self._not_after = start, end
        return self

    def public_key(
        self,
        key: Union[KeyPair, PublicKey],
        usage: KeyUsageFlags = KeyUsageFlags.NONE,
    ) -> "CertificateBuilder":
        """Set the certified key and, if *usage* is non-empty, its KeyUsage.

        A later call without *usage* keeps the KeyUsage set earlier.
        """
        self._check_open("public_key")
        if usage and KeyUsage.extension_id in self._extensions:
            raise MalformedExtension(KeyUsage.extension_id, "KeyUsage was already added")
        self._public_key = key.public_key if isinstance(key, KeyPair) else key
        if usage:
            self._key_usage = KeyUsage(usage)
        return self

    def add_extension(self, value: ExtensionLike) -> "CertificateBuilder":
        """Append an extension.

        Raises
        ------
        MalformedExtension
            If an extension with the same OID is already present, or for a
            SubjectAltName with no names.
        """
        self._check_open("add_extension")
        oid = value.extension_id
        duplicate = oid in self._extensions or (
            oid == KeyUsage.extension_id and self._key_usage is not None
        )
        if duplicate:
            raise MalformedExtension(oid, "extension already present in this certificate")
        if isinstance(value, SubjectAltName) and not len(value):
            raise MalformedExtension(oid, "SubjectAltName must contain at least one name")
        self._extensions[oid] = value
        return self

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(
        self,
        signing_key: Union[PrivateKey, KeyPair],
        digest_algorithm: Optional[DigestAlgorithm] = None,
    ) -> Certificate:
        """Serialize and sign the certificate.

        Parameters
        ----------
        signing_key:
            Issuer private key (or a key pair, whose private key is used).
        digest_algorithm:
            Signature digest; defaults to the policy's ``default_digest``.

        Raises
        ------
        IncompleteCertificate
            If subject, issuer, public key or validity is missing.
        InvalidBuilderState
            If the builder was already used.
        """
        self._check_open("build")
        self._consumed = BuilderState.FAILED
        missing = self._missing_fields()
        if missing:
            raise IncompleteCertificate(missing)

        private_key = signing_key.private_key if isinstance(signing_key, KeyPair) else signing_key
        digest = DigestAlgorithm(digest_algorithm or self._policy.default_digest)
        if self._serial is None:
            self._serial = x509.random_serial_number()

        algorithm = signature_algorithm_identifier(private_key.key_type, digest)
        try:
            tbs_der = encoder.encode(self._tbs_certificate(algorithm))
        except PyAsn1Error as exc:
            raise MalformedExtension("tbsCertificate", f"cannot encode: {exc}") from exc
        signature = private_key.sign(tbs_der, digest)

        signed = SignedCertificate()
        signed["tbsCertificate"] = univ.Any(tbs_der)
        signed["signatureAlgorithm"] = algorithm
        signed["signature"] = univ.BitString.fromOctetString(signature)
        certificate = Certificate(encoder.encode(signed))

        self._consumed = BuilderState.SIGNED
        logger.info(
            "Built certificate serial=%#x subject=%s digest=%s",
            self._serial,
            self._subject.rfc4514_string(),
            digest.value,
        )
        return certificate

    def tbs_bytes(self, key_type: KeyType, digest_algorithm: DigestAlgorithm) -> bytes:
        """DER of the TBSCertificate as :meth:`build` would sign it; does not consume."""
        self._check_open("tbs_bytes")
        missing = self._missing_fields()
        if missing:
            raise IncompleteCertificate(missing)
        if self._serial is None:
            self._serial = x509.random_serial_number()
        return encoder.encode(
            self._tbs_certificate(signature_algorithm_identifier(key_type, digest_algorithm))
        )

    def _tbs_certificate(self, algorithm: rfc5280.AlgorithmIdentifier) -> rfc5280.TBSCertificate:
        tbs = rfc5280.TBSCertificate()
        tbs["version"] = rfc5280.Version("v3").subtype(
            explicitTag=tag.Tag(tag.tagClassContext, tag.tagFormatSimple, 0)
        )
        tbs["serialNumber"] = self._serial
        tbs["signature"] = algorithm
        tbs["issuer"] = self._issuer.to_asn1()

        validity = rfc5280.Validity()
        validity["notBefore"] = encode_time(self._not_before)
        validity["notAfter"] = encode_time(self._not_after)
        tbs["validity"] = validity

        tbs["subject"] = self._subject.to_asn1()
        spki, _ = decoder.decode(
            self._public_key.encoded(), asn1Spec=rfc5280.SubjectPublicKeyInfo()
        )
        tbs["subjectPublicKeyInfo"] = spki

        extensions = list(self._extensions.values())
        if self._key_usage is not None:
            extensions.insert(0, self._key_usage)
        if extensions:
            tbs["extensions"].extend(extension.to_extension() for extension in extensions)
        return tbs


__all__ = [
    "BuilderState",
    "CertificateBuilder",
    "encode_time",
    "signature_algorithm_identifier",
]
