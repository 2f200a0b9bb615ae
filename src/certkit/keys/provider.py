"""CryptoProvider — the asymmetric primitives certkit delegates to.

CryptoProvider defines the capability contract. CryptographyProvider
implements it with the ``cryptography`` package: RSA and NIST-curve EC key
generation, PKCS#1 v1.5 / ECDSA signatures, RSA-OAEP / PKCS#1 v1.5
encryption and ECIES for EC keys.

ECIES follows the common "X9.63 standard" construction: an ephemeral key
on the recipient's curve, ECDH, the X9.63 KDF with SHA-256 (shared info is
the ephemeral public point) producing an AES-GCM key and a 16-byte IV. The
ciphertext is ``ephemeral_point || aes_gcm_ciphertext || tag``.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Union

from cryptography.exceptions import InvalidSignature, InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.x963kdf import X963KDF

from certkit.algorithms import DigestAlgorithm, KeyAlgorithm, KeyType, Padding
from certkit.errors import CryptoOperationFailed

logger = logging.getLogger(__name__)

PrivateKeyTypes = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]
PublicKeyTypes = Union[rsa.RSAPublicKey, ec.EllipticCurvePublicKey]


class CryptoProvider(ABC):
    """Abstract capability set for asymmetric primitives."""

    @abstractmethod
    def generate(self, algorithm: KeyAlgorithm) -> PrivateKeyTypes:
        """Generate a private key for *algorithm*."""

    @abstractmethod
    def sign(self, data: bytes, key: PrivateKeyTypes, digest: DigestAlgorithm) -> bytes:
        """Sign *data* with *key* using *digest*."""

    @abstractmethod
    def verify(
        self, signature: bytes, data: bytes, key: PublicKeyTypes, digest: DigestAlgorithm
    ) -> bool:
        """Return True if *signature* over *data* verifies with *key*."""

    @abstractmethod
    def encrypt(self, data: bytes, key: PublicKeyTypes, padding: Padding) -> bytes:
        """Encrypt *data* to *key* using *padding*."""

    @abstractmethod
    def decrypt(self, data: bytes, key: PrivateKeyTypes, padding: Padding) -> bytes:
        """Decrypt *data* with *key* using *padding*."""

    # ------------------------------------------------------------------
    # Serialization shared by every provider
    # ------------------------------------------------------------------

    @staticmethod
    def public_key_der(key: PublicKeyTypes) -> bytes:
        """Canonical SubjectPublicKeyInfo DER for *key*."""
        return key.public_bytes(
            serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        )

    @staticmethod
    def private_key_der(key: PrivateKeyTypes) -> bytes:
        """Unencrypted PKCS#8 DER for *key*."""
        return key.private_bytes(
            serialization.Encoding.DER,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )

    @staticmethod
    def load_public_key(der: bytes) -> PublicKeyTypes:
        key = serialization.load_der_public_key(der)
        if not isinstance(key, (rsa.RSAPublicKey, ec.EllipticCurvePublicKey)):
            raise CryptoOperationFailed(f"Unsupported public key type {type(key).__name__}")
        return key

    @staticmethod
    def load_private_key(der: bytes) -> PrivateKeyTypes:
        key = serialization.load_der_private_key(der, password=None)
        if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
            raise CryptoOperationFailed(f"Unsupported private key type {type(key).__name__}")
        return key


def key_type_of(key: Union[PrivateKeyTypes, PublicKeyTypes]) -> KeyType:
    """Return the :class:`KeyType` of a ``cryptography`` key object."""
    if isinstance(key, (rsa.RSAPrivateKey, rsa.RSAPublicKey)):
        return KeyType.RSA
    if isinstance(key, (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)):
        return KeyType.EC
    raise CryptoOperationFailed(f"Unsupported key type {type(key).__name__}")


class CryptographyProvider(CryptoProvider):
    """CryptoProvider backed by the ``cryptography`` package."""

    RSA_PUBLIC_EXPONENT = 65537

    def generate(self, algorithm: KeyAlgorithm) -> PrivateKeyTypes:
        if algorithm.key_type is KeyType.RSA:
            return rsa.generate_private_key(
                public_exponent=self.RSA_PUBLIC_EXPONENT,
                key_size=algorithm.key_size,
            )
        return ec.generate_private_key(algorithm.curve())

    def sign(self, data: bytes, key: PrivateKeyTypes, digest: DigestAlgorithm) -> bytes:
        hash_algorithm = digest.hash_algorithm()
        if isinstance(key, rsa.RSAPrivateKey):
            return key.sign(data, asym_padding.PKCS1v15(), hash_algorithm)
        if isinstance(key, ec.EllipticCurvePrivateKey):
            return key.sign(data, ec.ECDSA(hash_algorithm))
        raise CryptoOperationFailed(f"Cannot sign with {type(key).__name__}")

    def verify(
        self, signature: bytes, data: bytes, key: PublicKeyTypes, digest: DigestAlgorithm
    ) -> bool:
        hash_algorithm = digest.hash_algorithm()
        try:
            if isinstance(key, rsa.RSAPublicKey):
                key.verify(signature, data, asym_padding.PKCS1v15(), hash_algorithm)
            elif isinstance(key, ec.EllipticCurvePublicKey):
                key.verify(signature, data, ec.ECDSA(hash_algorithm))
            else:
                raise CryptoOperationFailed(f"Cannot verify with {type(key).__name__}")
        except InvalidSignature:
            return False
        return True

    def encrypt(self, data: bytes, key: PublicKeyTypes, padding: Padding) -> bytes:
        if isinstance(key, rsa.RSAPublicKey):
            try:
                return key.encrypt(data, self._rsa_padding(padding))
            except ValueError as exc:
                raise CryptoOperationFailed(f"RSA encryption failed: {exc}") from exc
        if isinstance(key, ec.EllipticCurvePublicKey):
            self._require_ecies(padding)
            return self._ecies_encrypt(data, key)
        raise CryptoOperationFailed(f"Cannot encrypt with {type(key).__name__}")

    def decrypt(self, data: bytes, key: PrivateKeyTypes, padding: Padding) -> bytes:
        if isinstance(key, rsa.RSAPrivateKey):
            try:
                return key.decrypt(data, self._rsa_padding(padding))
            except ValueError as exc:
                raise CryptoOperationFailed(f"RSA decryption failed: {exc}") from exc
        if isinstance(key, ec.EllipticCurvePrivateKey):
            self._require_ecies(padding)
            return self._ecies_decrypt(data, key)
        raise CryptoOperationFailed(f"Cannot decrypt with {type(key).__name__}")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _rsa_padding(padding: Padding) -> asym_padding.AsymmetricPadding:
        if padding is Padding.OAEP:
            return asym_padding.OAEP(
                mgf=asym_padding.MGF1(algorithm=hashes.SHA256()),
                algorithm=hashes.SHA256(),
                label=None,
            )
        if padding is Padding.PKCS1V15:
            return asym_padding.PKCS1v15()
        raise CryptoOperationFailed(f"Padding {padding.value} is not usable with RSA keys")

    @staticmethod
    def _require_ecies(padding: Padding) -> None:
        if padding is not Padding.ECIES:
            raise CryptoOperationFailed(f"Padding {padding.value} is not usable with EC keys")

    @staticmethod
    def _ecies_derive(shared: bytes, ephemeral_point: bytes, key_size: int) -> tuple[bytes, bytes]:
        key_length = 16 if key_size <= 256 else 32
        derived = X963KDF(
            algorithm=hashes.SHA256(),
            length=key_length + 16,
            sharedinfo=ephemeral_point,
        ).derive(shared)
        return derived[:key_length], derived[key_length:]

    def _ecies_encrypt(self, data: bytes, key: ec.EllipticCurvePublicKey) -> bytes:
        ephemeral = ec.generate_private_key(key.curve)
        ephemeral_point = ephemeral.public_key().public_bytes(
            serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
        )
        shared = ephemeral.exchange(ec.ECDH(), key)
        aes_key, iv = self._ecies_derive(shared, ephemeral_point, key.curve.key_size)
        return ephemeral_point + AESGCM(aes_key).encrypt(iv, data, None)

    def _ecies_decrypt(self, data: bytes, key: ec.EllipticCurvePrivateKey) -> bytes:
        point_length = 1 + 2 * ((key.curve.key_size + 7) // 8)
        if len(data) < point_length + 16:
            raise CryptoOperationFailed("ECIES ciphertext is too short")
        ephemeral_point, ciphertext = data[:point_length], data[point_length:]
        try:
            ephemeral = ec.EllipticCurvePublicKey.from_encoded_point(key.curve, ephemeral_point)
            shared = key.exchange(ec.ECDH(), ephemeral)
            aes_key, iv = self._ecies_derive(shared, ephemeral_point, key.curve.key_size)
            return AESGCM(aes_key).decrypt(iv, ciphertext, None)
        except (InvalidTag, ValueError, UnsupportedAlgorithm) as exc:
            raise CryptoOperationFailed("ECIES decryption failed") from exc


__all__ = [
    "CryptoProvider",
    "CryptographyProvider",
    "PrivateKeyTypes",
    "PublicKeyTypes",
    "key_type_of",
]
