"""PublicKey and PrivateKey — the two halves of a key pair.

A PublicKey is a plain value: it wraps a ``cryptography`` public key and is
compared by its canonical SubjectPublicKeyInfo DER.

A PrivateKey is either transient (the key object lives in memory, as after
an archive import) or persisted (only a store handle is held and the key is
loaded from the SecureStore on every operation). Persisted keys therefore
stop working the moment their store entry is deleted.
"""
from __future__ import annotations

import hashlib
import logging
from typing import Optional

from certkit.algorithms import DigestAlgorithm, KeyType, Padding
from certkit.errors import HandleNotFound, KeyNotFound
from certkit.keys.provider import (
    CryptographyProvider,
    CryptoProvider,
    PrivateKeyTypes,
    PublicKeyTypes,
    key_type_of,
)
from certkit.keys.store import KeyHandle, SecureStore

logger = logging.getLogger(__name__)

_DEFAULT_PROVIDER = CryptographyProvider()


class PublicKey:
    """Public half of a key pair.

    Parameters
    ----------
    key:
        A ``cryptography`` RSA or EC public key.
    provider:
        Provider used for encrypt/verify. Defaults to CryptographyProvider.
    """

    def __init__(self, key: PublicKeyTypes, provider: Optional[CryptoProvider] = None) -> None:
        self._key = key
        self._provider = provider or _DEFAULT_PROVIDER
        self._der = CryptoProvider.public_key_der(key)

    @classmethod
    def from_der(cls, der: bytes, provider: Optional[CryptoProvider] = None) -> "PublicKey":
        """Load from SubjectPublicKeyInfo DER."""
        return cls(CryptoProvider.load_public_key(bytes(der)), provider)

    @property
    def key_type(self) -> KeyType:
        return key_type_of(self._key)

    @property
    def key_size(self) -> int:
        if self.key_type is KeyType.EC:
            return self._key.curve.key_size
        return self._key.key_size

    def encoded(self) -> bytes:
        """Canonical SubjectPublicKeyInfo DER."""
        return self._der

    def to_cryptography(self) -> PublicKeyTypes:
        return self._key

    def fingerprint(self) -> str:
        """SHA-256 of the SubjectPublicKeyInfo DER, hex encoded."""
        return hashlib.sha256(self._der).hexdigest()

    def encrypt(self, data: bytes, padding: Padding) -> bytes:
        return self._provider.encrypt(data, self._key, padding)

    def verify(
        self, signature: bytes, data: bytes, digest: DigestAlgorithm = DigestAlgorithm.SHA256
    ) -> bool:
        """Return True if *signature* over *data* was made by the private half."""
        return self._provider.verify(signature, data, self._key, digest)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self._der == other._der

    def __hash__(self) -> int:
        return hash(self._der)

    def __repr__(self) -> str:
        return f"PublicKey({self.key_type.value}-{self.key_size}, {self.fingerprint()[:16]})"


class PrivateKey:
    """Private half of a key pair.

    Use :meth:`transient` or :meth:`persisted` rather than the constructor.
    """

    def __init__(
        self,
        key_type: KeyType,
        *,
        key: Optional[PrivateKeyTypes] = None,
        store: Optional[SecureStore] = None,
        handle: Optional[KeyHandle] = None,
        label: Optional[str] = None,
        exportable: bool = True,
        provider: Optional[CryptoProvider] = None,
    ) -> None:
        if (key is None) == (handle is None):
            raise ValueError("A private key is either in memory or behind a store handle")
        if handle is not None and store is None:
            raise ValueError("A persisted private key needs its store")
        self.key_type = key_type
        self.label = label
        self._key = key
        self._store = store
        self._handle = handle
        self._exportable = exportable
        self._provider = provider or _DEFAULT_PROVIDER

    @classmethod
    def transient(
        cls,
        key: PrivateKeyTypes,
        label: Optional[str] = None,
        provider: Optional[CryptoProvider] = None,
    ) -> "PrivateKey":
        return cls(key_type_of(key), key=key, label=label, provider=provider)

    @classmethod
    def persisted(
        cls,
        store: SecureStore,
        handle: KeyHandle,
        key_type: KeyType,
        label: Optional[str] = None,
        exportable: bool = True,
        provider: Optional[CryptoProvider] = None,
    ) -> "PrivateKey":
        return cls(
            key_type,
            store=store,
            handle=handle,
            label=label,
            exportable=exportable,
            provider=provider,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_persisted(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> Optional[KeyHandle]:
        return self._handle

    @property
    def store(self) -> Optional[SecureStore]:
        return self._store

    @property
    def exportable(self) -> bool:
        return self._exportable

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def sign(self, data: bytes, digest: DigestAlgorithm = DigestAlgorithm.SHA256) -> bytes:
        return self._provider.sign(data, self._resolve(), digest)

    def decrypt(self, data: bytes, padding: Padding) -> bytes:
        return self._provider.decrypt(data, self._resolve(), padding)

    def public_key(self) -> PublicKey:
        """Derive the public half from the private key material."""
        return PublicKey(self._resolve().public_key(), self._provider)

    def to_cryptography(self) -> PrivateKeyTypes:
        """Return the live ``cryptography`` key object.

        Raises
        ------
        KeyNotFound
            If the key was persisted and its store entry is gone.
        """
        return self._resolve()

    def _resolve(self) -> PrivateKeyTypes:
        if self._key is not None:
            return self._key
        try:
            entry = self._store.load(self._handle)
        except HandleNotFound as exc:
            raise KeyNotFound(self.label, self._handle) from exc
        return CryptoProvider.load_private_key(entry.key_der)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PrivateKey):
            return NotImplemented
        if self.is_persisted or other.is_persisted:
            return self._handle == other._handle
        return CryptoProvider.private_key_der(self._key) == CryptoProvider.private_key_der(
            other._key
        )

    def __hash__(self) -> int:
        if self._handle is not None:
            return hash(self._handle)
        return hash(CryptoProvider.public_key_der(self._key.public_key()))

    def __repr__(self) -> str:
        where = repr(self._handle) if self._handle is not None else "in-memory"
        return f"PrivateKey({self.key_type.value}, label={self.label!r}, {where})"


__all__ = ["PrivateKey", "PublicKey"]
