"""KeyPair — generation, persistence, archive export/import and matching.

A persisted KeyPair is two SecureStore entries (private and public) created
under the same label and tag. The pair object itself holds only the public
key value and a handle to the private entry, so every private-key operation
goes back to the store. A transient KeyPair (the result of an archive
import) keeps its private key in memory until :meth:`KeyPair.persist` is
called.

Example
-------
::

    pair = KeyPair.Builder(KeyType.EC, 256).generate(label="signer")
    private_ref, public_ref = pair.persistent_references()
    same = KeyPair.from_references(private_ref, public_ref, store=pair.store)
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar, Iterable, Optional, Union

from certkit.algorithms import KeyAlgorithm, KeyFlags, KeyType
from certkit.errors import (
    CertKitError,
    ExportUnsupported,
    HandleNotFound,
    KeyGenerationFailed,
    KeyNotFound,
    KeyNotPersisted,
    KeyStoreError,
    UnsupportedKeySize,
)
from certkit.keys.archive import export_archive, load_archive
from certkit.keys.key import PrivateKey, PublicKey
from certkit.keys.provider import (
    CryptographyProvider,
    CryptoProvider,
    PrivateKeyTypes,
    key_type_of,
)
from certkit.keys.store import InMemorySecureStore, KeyHandle, KeyKind, SecureStore
from certkit.policy import DEFAULT_POLICY, KeyPolicy

if TYPE_CHECKING:
    from cryptography import x509

    from certkit.certificates.certificate import Certificate

    CertificateLike = Union[Certificate, bytes, x509.Certificate]

logger = logging.getLogger(__name__)

# Store used when a caller does not name one; lives as long as the process.
default_store = InMemorySecureStore()


def _store_key_pair(
    store: SecureStore,
    key: PrivateKeyTypes,
    label: str,
    tag: bytes,
    hardware_bound: bool = False,
) -> tuple[KeyHandle, KeyHandle]:
    key_type = key_type_of(key)
    private_handle = store.store(
        CryptoProvider.private_key_der(key),
        label,
        tag,
        kind=KeyKind.PRIVATE,
        key_type=key_type,
        hardware_bound=hardware_bound,
    )
    try:
        public_handle = store.store(
            CryptoProvider.public_key_der(key.public_key()),
            label,
            tag,
            kind=KeyKind.PUBLIC,
            key_type=key_type,
        )
    except Exception:
        store.delete(private_handle)
        raise
    return private_handle, public_handle


class KeyPairBuilder:
    """Validates an algorithm choice and generates persisted key pairs.

    Parameters
    ----------
    key_type:
        RSA or EC.
    key_size:
        Modulus size for RSA, field size (256/384/521) for EC.
    store:
        Store the generated entries go to. Defaults to the process-wide
        in-memory store.
    provider:
        Crypto provider used for generation.
    policy:
        Key policy; its whitelists decide which sizes are accepted.

    Raises
    ------
    UnsupportedKeySize
        If the policy does not allow *key_size* for *key_type*.
    """

    def __init__(
        self,
        key_type: KeyType,
        key_size: int,
        *,
        store: Optional[SecureStore] = None,
        provider: Optional[CryptoProvider] = None,
        policy: Optional[KeyPolicy] = None,
    ) -> None:
        self._policy = policy or DEFAULT_POLICY
        self.algorithm = KeyAlgorithm(KeyType(key_type), key_size).validate(self._policy)
        self._store = store if store is not None else default_store
        self._provider = provider or CryptographyProvider()

    def generate(
        self,
        label: str,
        tag: Optional[bytes] = None,
        flags: KeyFlags = KeyFlags.NONE,
    ) -> "KeyPair":
        """Generate a key pair and store both halves under *label* / *tag*.

        Parameters
        ----------
        label:
            Human-readable label for the store entries.
        tag:
            Application tag; defaults to the UTF-8 encoded label.
        flags:
            ``KeyFlags.SECURE_ENCLAVE`` keeps the private key in hardware
            (EC P-256 only) and makes it non-exportable.

        Raises
        ------
        UnsupportedKeySize
            If hardware storage is requested for anything but EC P-256.
        KeyGenerationFailed
            If the store cannot hold the key or the provider fails.
        """
        tag = label.encode("utf-8") if tag is None else bytes(tag)
        hardware_bound = bool(flags & KeyFlags.SECURE_ENCLAVE)
        if hardware_bound:
            if self.algorithm != KeyAlgorithm(KeyType.EC, 256):
                raise UnsupportedKeySize(
                    self.algorithm.key_type.value, self.algorithm.key_size, [256]
                )
            if not self._store.supports_hardware_keys:
                raise KeyGenerationFailed(label, "store does not support hardware-bound keys")

        try:
            key = self._provider.generate(self.algorithm)
        except CertKitError:
            raise
        except Exception as exc:
            raise KeyGenerationFailed(label, f"provider error: {exc}") from exc

        try:
            private_handle, public_handle = _store_key_pair(
                self._store, key, label, tag, hardware_bound
            )
        except (KeyStoreError, OSError) as exc:
            raise KeyGenerationFailed(label, f"store error: {exc}") from exc

        logger.info(
            "Generated %s-%d key pair label=%r hardware_bound=%s",
            self.algorithm.key_type.value,
            self.algorithm.key_size,
            label,
            hardware_bound,
        )
        return KeyPair(
            PublicKey(key.public_key(), self._provider),
            PrivateKey.persisted(
                self._store,
                private_handle,
                self.algorithm.key_type,
                label=label,
                exportable=not hardware_bound,
                provider=self._provider,
            ),
            public_handle=public_handle,
            tag=tag,
            policy=self._policy,
        )


class KeyPair:
    """A public key value plus a (possibly store-backed) private key.

    Parameters
    ----------
    public_key:
        The public half.
    private_key:
        The private half, transient or persisted.
    public_handle:
        Store handle of the public entry for persisted pairs.
    tag:
        Application tag the entries were stored under.
    policy:
        Key policy; supplies the archive KDF strength.
    """

    Builder: ClassVar[type[KeyPairBuilder]] = KeyPairBuilder

    def __init__(
        self,
        public_key: PublicKey,
        private_key: PrivateKey,
        *,
        public_handle: Optional[KeyHandle] = None,
        tag: Optional[bytes] = None,
        policy: Optional[KeyPolicy] = None,
    ) -> None:
        self.public_key = public_key
        self.private_key = private_key
        self.tag = tag
        self._public_handle = public_handle
        self._policy = policy or DEFAULT_POLICY
        self._deleted = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def label(self) -> Optional[str]:
        return self.private_key.label

    @property
    def store(self) -> Optional[SecureStore]:
        return self.private_key.store

    @property
    def key_type(self) -> KeyType:
        return self.public_key.key_type

    @property
    def key_size(self) -> int:
        return self.public_key.key_size

    @property
    def is_persisted(self) -> bool:
        return self.private_key.is_persisted

    # ------------------------------------------------------------------
    # Persistent references
    # ------------------------------------------------------------------

    def persistent_references(self) -> tuple[KeyHandle, KeyHandle]:
        """Return ``(private_handle, public_handle)``.

        Raises
        ------
        KeyNotPersisted
            If the pair only lives in memory.
        KeyNotFound
            If the pair was deleted.
        """
        if not self.is_persisted:
            raise KeyNotPersisted(f"Key pair {self.label!r} has no store entries")
        if self._deleted:
            raise KeyNotFound(self.label, self.private_key.handle)
        return self.private_key.handle, self._public_handle

    @classmethod
    def from_references(
        cls,
        private_handle: KeyHandle,
        public_handle: KeyHandle,
        *,
        store: Optional[SecureStore] = None,
        provider: Optional[CryptoProvider] = None,
        policy: Optional[KeyPolicy] = None,
    ) -> "KeyPair":
        """Rebuild a persisted pair from its two handles.

        Raises
        ------
        HandleNotFound
            If either handle does not resolve in *store*.
        KeyStoreError
            If the handles point at the wrong kind of entry.
        """
        store = store if store is not None else default_store
        private_entry = store.load(private_handle)
        public_entry = store.load(public_handle)
        if private_entry.kind is not KeyKind.PRIVATE or public_entry.kind is not KeyKind.PUBLIC:
            raise KeyStoreError("Handles must reference a private and a public entry, in that order")
        public_key = PublicKey.from_der(public_entry.key_der, provider)
        private_key = PrivateKey.persisted(
            store,
            private_handle,
            private_entry.key_type,
            label=private_entry.label,
            exportable=private_entry.exportable,
            provider=provider,
        )
        return cls(
            public_key,
            private_key,
            public_handle=public_handle,
            tag=private_entry.tag,
            policy=policy,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe form of a persisted pair (its handles, never key bytes)."""
        private_handle, public_handle = self.persistent_references()
        return {
            "private_key": private_handle.to_string(),
            "public_key": public_handle.to_string(),
            "key_type": self.key_type.value,
            "label": self.label,
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        store: Optional[SecureStore] = None,
        provider: Optional[CryptoProvider] = None,
    ) -> "KeyPair":
        return cls.from_references(
            KeyHandle.from_string(data["private_key"]),
            KeyHandle.from_string(data["public_key"]),
            store=store,
            provider=provider,
        )

    # ------------------------------------------------------------------
    # Archive export / import
    # ------------------------------------------------------------------

    def export(self, password: str, certificate: Optional["CertificateLike"] = None) -> bytes:
        """Export the pair as a password-protected PKCS#12 archive.

        Parameters
        ----------
        password:
            Archive password; must not be empty.
        certificate:
            Optional certificate to bundle with the key.

        Raises
        ------
        ExportUnsupported
            If the private key is hardware-bound.
        KeyNotFound
            If the pair was deleted.
        EncodingFailed
            If *password* is empty or the archive cannot be written.
        """
        if not self.private_key.exportable:
            raise ExportUnsupported(self.label)
        key = self.private_key.to_cryptography()
        cert = None
        if certificate is not None:
            from certkit.certificates.certificate import load_certificate

            cert = load_certificate(certificate).to_cryptography()
        data = export_archive(
            key,
            password,
            friendly_name=self.label,
            certificate=cert,
            kdf_rounds=self._policy.export_kdf_rounds,
        )
        logger.info("Exported key pair label=%r (certificate=%s)", self.label, cert is not None)
        return data

    @classmethod
    def import_archive(
        cls,
        data: bytes,
        password: str,
        *,
        provider: Optional[CryptoProvider] = None,
        policy: Optional[KeyPolicy] = None,
    ) -> "KeyPair":
        """Open a PKCS#12 archive into a transient pair.

        An empty *password* opens archives written without one.

        Raises
        ------
        CorruptArchive
            If *data* is not a PKCS#12 archive or holds no private key.
        InvalidPassword
            If *password* does not open the archive.
        """
        key, _ = load_archive(data, password)
        logger.info("Imported %s key pair from archive", key_type_of(key).value)
        return cls(
            PublicKey(key.public_key(), provider),
            PrivateKey.transient(key, provider=provider),
            policy=policy,
        )

    def persist(
        self,
        label: str,
        tag: Optional[bytes] = None,
        store: Optional[SecureStore] = None,
    ) -> "KeyPair":
        """Store a copy of this pair's keys and return the persisted pair.

        Raises
        ------
        ExportUnsupported
            If the private key is hardware-bound and cannot be copied.
        """
        if not self.private_key.exportable:
            raise ExportUnsupported(self.label)
        store = store if store is not None else default_store
        tag = label.encode("utf-8") if tag is None else bytes(tag)
        key = self.private_key.to_cryptography()
        private_handle, public_handle = _store_key_pair(store, key, label, tag)
        logger.info("Persisted key pair label=%r", label)
        return KeyPair(
            self.public_key,
            PrivateKey.persisted(store, private_handle, key_type_of(key), label=label),
            public_handle=public_handle,
            tag=tag,
            policy=self._policy,
        )

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete(self) -> None:
        """Remove both store entries.

        Raises
        ------
        KeyNotPersisted
            If the pair only lives in memory.
        KeyNotFound
            If the entries were already deleted.
        """
        if not self.is_persisted:
            raise KeyNotPersisted(f"Key pair {self.label!r} has no store entries")
        store = self.private_key.store
        for handle in (self.private_key.handle, self._public_handle):
            try:
                store.delete(handle)
            except HandleNotFound as exc:
                self._deleted = True
                raise KeyNotFound(self.label, handle) from exc
        self._deleted = True
        logger.info("Deleted key pair label=%r", self.label)

    # ------------------------------------------------------------------
    # Certificate matching
    # ------------------------------------------------------------------

    def matches_certificate(
        self,
        certificate: "CertificateLike",
        trusted_certificates: Iterable["CertificateLike"] = (),
    ) -> bool:
        """Return True if *certificate* certifies this pair's public key.

        When *trusted_certificates* are given the certificate must also
        chain to one of them.

        Raises
        ------
        InvalidCertificate
            If *certificate* or an anchor cannot be parsed.
        """
        from certkit.certificates.certificate import load_certificate
        from certkit.certificates.trust import TrustEvaluator

        cert = load_certificate(certificate)
        anchors = [load_certificate(anchor) for anchor in trusted_certificates]
        if cert.canonical_public_key_info() != self.public_key.encoded():
            logger.debug("Certificate %s does not carry key %r", cert.fingerprint()[:16], self.label)
            return False
        if not anchors:
            return True
        return TrustEvaluator(anchors).evaluate(cert).trusted

    def __repr__(self) -> str:
        return f"KeyPair({self.key_type.value}-{self.key_size}, label={self.label!r})"


__all__ = ["KeyPair", "KeyPairBuilder", "default_store"]
