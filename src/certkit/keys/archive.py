"""Password-protected PKCS#12 key archives (RFC 7292).

Archives are written with PBES2 (PBKDF2-HMAC-SHA256, AES-256-CBC) and an
HMAC-SHA256 integrity MAC so OpenSSL and other common tooling can read
them. Reading distinguishes bytes that are not a PFX structure at all
(:class:`CorruptArchive`) from a PFX whose MAC or encryption does not open
with the given password (:class:`InvalidPassword`).
"""
from __future__ import annotations

import logging
from typing import Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.serialization import PrivateFormat, pkcs12
from pyasn1.codec.ber import decoder
from pyasn1.error import PyAsn1Error
from pyasn1_modules import rfc7292

from certkit.errors import CorruptArchive, EncodingFailed, InvalidPassword
from certkit.keys.provider import PrivateKeyTypes

logger = logging.getLogger(__name__)


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8") if password else b""


def export_archive(
    key: PrivateKeyTypes,
    password: str,
    *,
    friendly_name: Optional[str] = None,
    certificate: Optional[x509.Certificate] = None,
    kdf_rounds: int = 50_000,
) -> bytes:
    """Serialize *key* (and optionally its certificate) into a PKCS#12 blob.

    Raises
    ------
    EncodingFailed
        If *password* is empty or the key cannot be serialized.
    """
    if not password:
        raise EncodingFailed("Archive password must not be empty")
    encryption = (
        PrivateFormat.PKCS12.encryption_builder()
        .kdf_rounds(kdf_rounds)
        .key_cert_algorithm(pkcs12.PBES.PBESv2SHA256AndAES256CBC)
        .hmac_hash(hashes.SHA256())
        .build(_password_bytes(password))
    )
    try:
        return pkcs12.serialize_key_and_certificates(
            name=friendly_name.encode("utf-8") if friendly_name else None,
            key=key,
            cert=certificate,
            cas=None,
            encryption_algorithm=encryption,
        )
    except (TypeError, ValueError, UnsupportedAlgorithm) as exc:
        raise EncodingFailed(f"Cannot write PKCS#12 archive: {exc}") from exc


def load_archive(
    data: bytes, password: str
) -> tuple[PrivateKeyTypes, Optional[x509.Certificate]]:
    """Open a PKCS#12 blob and return its private key and certificate.

    Raises
    ------
    CorruptArchive
        If *data* is not a PFX structure or carries no private key.
    InvalidPassword
        If the MAC or decryption check fails for *password*.
    """
    try:
        _, rest = decoder.decode(bytes(data), asn1Spec=rfc7292.PFX())
    except PyAsn1Error as exc:
        raise CorruptArchive(f"Not a PKCS#12 archive: {exc}") from exc
    if rest:
        raise CorruptArchive(f"PKCS#12 archive has {len(rest)} trailing byte(s)")

    # An empty password opens archives written without one.
    secret = _password_bytes(password) or None
    try:
        key, certificate, _ = pkcs12.load_key_and_certificates(bytes(data), secret)
    except UnsupportedAlgorithm as exc:
        raise CorruptArchive(f"PKCS#12 archive uses an unsupported algorithm: {exc}") from exc
    except ValueError as exc:
        raise InvalidPassword("Archive MAC or decryption check failed") from exc

    if key is None:
        raise CorruptArchive("PKCS#12 archive holds no private key")
    logger.debug("Opened PKCS#12 archive (certificate=%s)", certificate is not None)
    return key, certificate


__all__ = ["export_archive", "load_archive"]
