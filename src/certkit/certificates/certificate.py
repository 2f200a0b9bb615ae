"""Certificate — an immutable, parsed X.509 v3 certificate.

The certificate keeps its exact DER bytes. Fields are read from a pyasn1
``TBSCertificate`` decoded once at construction; extension values are
decoded lazily through the extension registry so unknown extensions never
prevent a certificate from loading.
"""
from __future__ import annotations

import datetime
import hashlib
import logging
from typing import Optional, TypeVar, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from pyasn1.codec.der import decoder, encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import namedtype, univ
from pyasn1_modules import rfc5280

from certkit.algorithms import signature_algorithm_from_oid
from certkit.errors import CryptoOperationFailed, InvalidCertificate
from certkit.extensions import BasicConstraints, KeyUsage, SubjectAltName
from certkit.extensions.base import (
    ExtensionRegistry,
    ExtensionValue,
    UnrecognizedExtension,
    default_registry,
)
from certkit.keys.key import PublicKey
from certkit.names import Name

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=ExtensionValue)

_PEM_MARKER = b"-----BEGIN CERTIFICATE-----"


class SignedCertificate(univ.Sequence):
    """Outer ``Certificate`` SEQUENCE with the TBS kept as raw bytes.

    Holding ``tbsCertificate`` as ``Any`` preserves the exact signed octets
    when parsing and lets the builder splice pre-encoded TBS bytes in.
    """

    componentType = namedtype.NamedTypes(
        namedtype.NamedType("tbsCertificate", univ.Any()),
        namedtype.NamedType("signatureAlgorithm", rfc5280.AlgorithmIdentifier()),
        namedtype.NamedType("signature", univ.BitString()),
    )


def parse_time(time_value: rfc5280.Time) -> datetime.datetime:
    """Convert an RFC 5280 ``Time`` CHOICE to an aware UTC datetime.

    Two-digit UTCTime years below 50 are 20xx, the rest 19xx.
    """
    text = str(time_value.getComponent())
    if not text.endswith("Z"):
        raise ValueError(f"Time {text!r} is not expressed in UTC")
    text = text[:-1]
    if time_value.getName() == "utcTime":
        short_year = int(text[:2])
        year = 2000 + short_year if short_year < 50 else 1900 + short_year
        rest = text[2:]
    else:
        year = int(text[:4])
        rest = text[4:]
    rest, _, fraction = rest.partition(".")
    parsed = datetime.datetime.strptime(f"{year:04d}{rest}", "%Y%m%d%H%M%S")
    microsecond = int((fraction + "000000")[:6]) if fraction else 0
    return parsed.replace(microsecond=microsecond, tzinfo=datetime.timezone.utc)


def _to_bytes(data: Union[str, bytes]) -> bytes:
    if not isinstance(data, str):
        return bytes(data)
    try:
        return data.encode("ascii")
    except UnicodeEncodeError as exc:
        raise InvalidCertificate(f"Certificate text is not ASCII: {exc}") from exc


class Certificate:
    """An immutable signed X.509 certificate.

    Parameters
    ----------
    der:
        The DER encoding of the certificate.
    registry:
        Extension registry used to type extension values. Defaults to the
        package-wide registry.

    Raises
    ------
    InvalidCertificate
        If *der* is not a well-formed certificate.
    """

    def __init__(self, der: bytes, registry: Optional[ExtensionRegistry] = None) -> None:
        self._der = bytes(der)
        self._registry = registry or default_registry
        try:
            outer, rest = decoder.decode(self._der, asn1Spec=SignedCertificate())
            if rest:
                raise InvalidCertificate(f"{len(rest)} trailing byte(s) after certificate")
            self._tbs_der = bytes(outer["tbsCertificate"])
            tbs, rest = decoder.decode(self._tbs_der, asn1Spec=rfc5280.TBSCertificate())
            if rest:
                raise InvalidCertificate("trailing bytes inside tbsCertificate")
            self._signature = outer["signature"].asOctets()
            self._outer_algorithm = str(outer["signatureAlgorithm"]["algorithm"])
            self._tbs = tbs
            self._not_before = parse_time(tbs["validity"]["notBefore"])
            self._not_after = parse_time(tbs["validity"]["notAfter"])
            self._raw_extensions = self._read_extensions(tbs)
        except (PyAsn1Error, ValueError) as exc:
            raise InvalidCertificate(f"Cannot parse certificate: {exc}") from exc

        if str(tbs["signature"]["algorithm"]) != self._outer_algorithm:
            raise InvalidCertificate("Inner and outer signature algorithms differ")

    @staticmethod
    def _read_extensions(tbs: rfc5280.TBSCertificate) -> list[UnrecognizedExtension]:
        extensions = tbs.getComponentByName("extensions", default=None, instantiate=False)
        if extensions is None:
            return []
        raw: list[UnrecognizedExtension] = []
        seen: set[str] = set()
        for extension in extensions:
            oid = str(extension["extnID"])
            if oid in seen:
                raise InvalidCertificate(f"Extension {oid} appears more than once")
            seen.add(oid)
            raw.append(
                UnrecognizedExtension(
                    extension_id=oid,
                    critical=bool(extension["critical"]),
                    value=extension["extnValue"].asOctets(),
                )
            )
        return raw

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_der(cls, der: bytes) -> "Certificate":
        return cls(der)

    @classmethod
    def from_pem(cls, pem: Union[str, bytes]) -> "Certificate":
        """Parse the first PEM ``CERTIFICATE`` block in *pem*."""
        data = _to_bytes(pem)
        try:
            loaded = x509.load_pem_x509_certificate(data)
        except ValueError as exc:
            raise InvalidCertificate(f"Cannot parse PEM certificate: {exc}") from exc
        return cls(loaded.public_bytes(serialization.Encoding.DER))

    @classmethod
    def load(cls, data: Union[str, bytes]) -> "Certificate":
        """Parse DER or PEM, whichever *data* holds."""
        raw = _to_bytes(data)
        if _PEM_MARKER in raw:
            return cls.from_pem(raw)
        return cls(raw)

    # ------------------------------------------------------------------
    # Encodings
    # ------------------------------------------------------------------

    def encoded(self) -> bytes:
        """The DER encoding."""
        return self._der

    def pem(self) -> str:
        return self.to_cryptography().public_bytes(serialization.Encoding.PEM).decode("ascii")

    def to_cryptography(self) -> x509.Certificate:
        try:
            return x509.load_der_x509_certificate(self._der)
        except ValueError as exc:
            raise InvalidCertificate(f"cryptography rejected the certificate: {exc}") from exc

    @property
    def tbs_bytes(self) -> bytes:
        """The exact DER octets the signature covers."""
        return self._tbs_der

    @property
    def signature(self) -> bytes:
        return self._signature

    def fingerprint(self) -> str:
        """SHA-256 over the DER encoding, hex encoded."""
        return hashlib.sha256(self._der).hexdigest()

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        """Certificate version as a number (3 for v3)."""
        return int(self._tbs["version"]) + 1

    @property
    def serial_number(self) -> int:
        return int(self._tbs["serialNumber"])

    @property
    def signature_algorithm(self) -> str:
        """Signature AlgorithmIdentifier OID, dotted form."""
        return self._outer_algorithm

    @property
    def subject(self) -> Name:
        return Name.from_asn1(self._tbs["subject"])

    @property
    def issuer(self) -> Name:
        return Name.from_asn1(self._tbs["issuer"])

    @property
    def not_before(self) -> datetime.datetime:
        return self._not_before

    @property
    def not_after(self) -> datetime.datetime:
        return self._not_after

    def is_valid_at(self, when: Optional[datetime.datetime] = None) -> bool:
        """Return True if *when* (default: now) falls inside the validity window."""
        when = when or datetime.datetime.now(datetime.timezone.utc)
        if when.tzinfo is None:
            when = when.replace(tzinfo=datetime.timezone.utc)
        return self._not_before <= when <= self._not_after

    @property
    def is_self_issued(self) -> bool:
        return self.subject == self.issuer

    # ------------------------------------------------------------------
    # Public key
    # ------------------------------------------------------------------

    def public_key_info(self) -> bytes:
        """SubjectPublicKeyInfo DER as carried by the certificate."""
        return encoder.encode(self._tbs["subjectPublicKeyInfo"])

    def canonical_public_key_info(self) -> bytes:
        """SubjectPublicKeyInfo DER re-serialized by ``cryptography``.

        Falls back to the carried bytes for key types certkit does not load.
        """
        info = self.public_key_info()
        try:
            key = serialization.load_der_public_key(info)
        except (ValueError, UnsupportedAlgorithm):
            return info
        return key.public_bytes(
            serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        )

    def public_key(self) -> PublicKey:
        """The certified public key.

        Raises
        ------
        CryptoOperationFailed
            If the key is not an RSA or EC key.
        """
        try:
            return PublicKey.from_der(self.public_key_info())
        except (ValueError, UnsupportedAlgorithm) as exc:
            raise CryptoOperationFailed(f"Unsupported certificate key: {exc}") from exc

    def verify_signature(self, issuer_key: PublicKey) -> bool:
        """Return True if *issuer_key* verifies this certificate's signature."""
        try:
            key_type, digest = signature_algorithm_from_oid(self._outer_algorithm)
        except KeyError:
            logger.debug("Unsupported signature algorithm %s", self._outer_algorithm)
            return False
        if issuer_key.key_type is not key_type:
            return False
        return issuer_key.verify(self._signature, self._tbs_der, digest)

    # ------------------------------------------------------------------
    # Extensions
    # ------------------------------------------------------------------

    @property
    def raw_extensions(self) -> list[UnrecognizedExtension]:
        """Every extension as ``(oid, critical, octets)``, untyped, in order."""
        return list(self._raw_extensions)

    def extensions(self) -> list[Union[ExtensionValue, UnrecognizedExtension]]:
        """Every extension, typed through the registry where possible.

        Raises
        ------
        MalformedExtension
            If a registered extension's value does not decode.
        """
        return [
            self._registry.decode(raw.extension_id, raw.critical, raw.value)
            for raw in self._raw_extensions
        ]

    def extension(self, extension_type: type[E]) -> Optional[E]:
        """Return the decoded extension of *extension_type*, or None."""
        for raw in self._raw_extensions:
            if raw.extension_id == extension_type.extension_id:
                return extension_type.decode(raw.value).with_critical(raw.critical)
        return None

    def is_critical(self, extension_id: str) -> bool:
        return any(raw.critical for raw in self._raw_extensions if raw.extension_id == extension_id)

    @property
    def subject_alt_name(self) -> Optional[SubjectAltName]:
        return self.extension(SubjectAltName)

    @property
    def key_usage(self) -> Optional[KeyUsage]:
        return self.extension(KeyUsage)

    @property
    def basic_constraints(self) -> Optional[BasicConstraints]:
        return self.extension(BasicConstraints)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Certificate):
            return NotImplemented
        return self._der == other._der

    def __hash__(self) -> int:
        return hash(self._der)

    def __repr__(self) -> str:
        return (
            f"Certificate(subject={self.subject.rfc4514_string()!r}, "
            f"serial={self.serial_number:#x})"
        )


def load_certificate(value: Union[Certificate, bytes, str, x509.Certificate]) -> Certificate:
    """Coerce DER/PEM bytes or a ``cryptography`` certificate to :class:`Certificate`."""
    if isinstance(value, Certificate):
        return value
    if isinstance(value, x509.Certificate):
        return Certificate(value.public_bytes(serialization.Encoding.DER))
    if isinstance(value, (bytes, bytearray, memoryview, str)):
        return Certificate.load(bytes(value) if not isinstance(value, str) else value)
    raise InvalidCertificate(f"Cannot load a certificate from {type(value).__name__}")


__all__ = ["Certificate", "SignedCertificate", "load_certificate", "parse_time"]
