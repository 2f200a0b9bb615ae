"""Typed error taxonomy for certkit.

Three families are exposed so callers can react by kind:

* :class:`MalformedInputError` — the bytes handed in do not conform to the
  expected structure (extensions, general names, certificates, archives).
* :class:`BuilderStateError` — programmer errors while driving a
  :class:`~certkit.certificates.builder.CertificateBuilder`.
* :class:`KeyStoreError` — failures reported by the key lifecycle manager,
  the secure store or the crypto provider.

Every error carries the context needed to act on it (label, handle, tag,
missing fields) both as attributes and in its message.
"""
from __future__ import annotations

from typing import Iterable, Optional


class CertKitError(Exception):
    """Base class for every error raised by certkit."""


# ------------------------------------------------------------------
# Malformed input
# ------------------------------------------------------------------


class MalformedInputError(CertKitError):
    """Input bytes do not conform to the expected ASN.1 or archive layout."""


class MalformedExtension(MalformedInputError):
    """An extension value does not conform to its declared schema."""

    def __init__(self, extension_id: str, reason: str) -> None:
        self.extension_id = extension_id
        self.reason = reason
        super().__init__(f"Malformed extension {extension_id}: {reason}")


class UnknownGeneralNameTag(MalformedInputError):
    """A GeneralName carried a tag outside the nine defined choices."""

    def __init__(self, tag_number: int, tag_class: int = 0x80) -> None:
        self.tag_number = tag_number
        self.tag_class = tag_class
        super().__init__(
            f"Unknown GeneralName tag [{tag_number}] (class 0x{tag_class:02x}); "
            "expected a context-specific tag in 0..8"
        )


class InvalidCertificate(MalformedInputError):
    """Certificate bytes could not be parsed as an X.509 certificate."""


class CorruptArchive(MalformedInputError):
    """A key archive is not a readable PKCS#12 structure."""


# ------------------------------------------------------------------
# Builder misuse
# ------------------------------------------------------------------


class BuilderStateError(CertKitError):
    """A certificate builder was driven in an invalid order or state."""


class InvalidBuilderState(BuilderStateError):
    """A builder operation was attempted after the builder was consumed."""

    def __init__(self, operation: str, state: str) -> None:
        self.operation = operation
        self.state = state
        super().__init__(
            f"Cannot call {operation}() on a builder in state {state}; "
            "builders are single-use"
        )


class IncompleteCertificate(BuilderStateError):
    """Required certificate fields were not configured before build()."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "Certificate is missing required fields: " + ", ".join(self.missing)
        )


class InvalidValidityPeriod(BuilderStateError):
    """The requested validity window is empty or reversed."""


# ------------------------------------------------------------------
# Key lifecycle / external capabilities
# ------------------------------------------------------------------


class KeyStoreError(CertKitError):
    """Base class for key lifecycle, store and provider failures."""


class UnsupportedKeySize(KeyStoreError, ValueError):
    """The key size is not allowed for the requested algorithm."""

    def __init__(self, key_type: str, key_size: int, allowed: Iterable[int]) -> None:
        self.key_type = key_type
        self.key_size = key_size
        self.allowed = sorted(allowed)
        super().__init__(
            f"Key size {key_size} is not supported for {key_type}; "
            f"allowed sizes: {self.allowed}"
        )


class KeyGenerationFailed(KeyStoreError):
    """The crypto provider or the store could not produce a key pair."""

    def __init__(self, label: str, reason: str) -> None:
        self.label = label
        self.reason = reason
        super().__init__(f"Key generation failed for label={label!r}: {reason}")


class KeyNotFound(KeyStoreError, KeyError):
    """A key is no longer present in its secure store."""

    def __init__(self, label: Optional[str], handle: object = None) -> None:
        self.label = label
        self.handle = handle
        super().__init__(f"Key not found (label={label!r}, handle={handle!r})")

    def __str__(self) -> str:
        return str(self.args[0])


class HandleNotFound(KeyNotFound):
    """A persistent handle does not resolve in the store it was issued by."""

    def __init__(self, handle: object) -> None:
        super().__init__(label=None, handle=handle)
        self.args = (f"Handle {handle!r} does not resolve in this store",)


class KeyNotPersisted(KeyStoreError):
    """The key pair lives only in memory and has no persistent handles."""


class ExportUnsupported(KeyStoreError):
    """The private key is hardware-bound and cannot leave its store."""

    def __init__(self, label: Optional[str]) -> None:
        self.label = label
        super().__init__(f"Key {label!r} is not exportable")


class EncodingFailed(KeyStoreError):
    """Key material could not be serialized into an archive."""


class InvalidPassword(KeyStoreError):
    """The archive password is wrong (MAC or decryption check failed)."""


class CryptoOperationFailed(KeyStoreError):
    """A sign, verify, encrypt or decrypt call was rejected by the provider."""


__all__ = [
    "BuilderStateError",
    "CertKitError",
    "CorruptArchive",
    "CryptoOperationFailed",
    "EncodingFailed",
    "ExportUnsupported",
    "HandleNotFound",
    "IncompleteCertificate",
    "InvalidBuilderState",
    "InvalidCertificate",
    "InvalidPassword",
    "InvalidValidityPeriod",
    "KeyGenerationFailed",
    "KeyNotFound",
    "KeyNotPersisted",
    "KeyStoreError",
    "MalformedExtension",
    "MalformedInputError",
    "UnknownGeneralNameTag",
    "UnsupportedKeySize",
]
