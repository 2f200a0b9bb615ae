"""Enumerated algorithm identifiers shared by the provider, store and builder.

Algorithms, digests and padding schemes are enums rather than free-form
strings so an unsupported choice fails at the call site.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from certkit import oids
from certkit.errors import UnsupportedKeySize

if TYPE_CHECKING:
    from certkit.policy import KeyPolicy


class KeyType(str, Enum):
    """Asymmetric key families understood by the provider."""

    RSA = "rsa"
    EC = "ec"


class DigestAlgorithm(str, Enum):
    """Digest algorithms usable for signatures."""

    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"

    def hash_algorithm(self) -> hashes.HashAlgorithm:
        """Return the matching ``cryptography`` hash instance."""
        return {
            DigestAlgorithm.SHA256: hashes.SHA256,
            DigestAlgorithm.SHA384: hashes.SHA384,
            DigestAlgorithm.SHA512: hashes.SHA512,
        }[self]()


class Padding(str, Enum):
    """Encryption schemes for :meth:`PublicKey.encrypt`.

    ``OAEP`` and ``PKCS1V15`` apply to RSA keys; ``ECIES`` (X9.63 KDF with
    SHA-256 feeding AES-GCM) applies to EC keys.
    """

    OAEP = "oaep"
    PKCS1V15 = "pkcs1v15"
    ECIES = "ecies"


class KeyFlags(IntFlag):
    """Generation flags."""

    NONE = 0
    SECURE_ENCLAVE = 1


_CURVES: dict[int, type[ec.EllipticCurve]] = {
    256: ec.SECP256R1,
    384: ec.SECP384R1,
    521: ec.SECP521R1,
}

_SIGNATURE_OIDS: dict[tuple[KeyType, DigestAlgorithm], str] = {
    (KeyType.RSA, DigestAlgorithm.SHA256): oids.SHA256_WITH_RSA,
    (KeyType.RSA, DigestAlgorithm.SHA384): oids.SHA384_WITH_RSA,
    (KeyType.RSA, DigestAlgorithm.SHA512): oids.SHA512_WITH_RSA,
    (KeyType.EC, DigestAlgorithm.SHA256): oids.ECDSA_WITH_SHA256,
    (KeyType.EC, DigestAlgorithm.SHA384): oids.ECDSA_WITH_SHA384,
    (KeyType.EC, DigestAlgorithm.SHA512): oids.ECDSA_WITH_SHA512,
}


@dataclass(frozen=True)
class KeyAlgorithm:
    """A key family paired with a key size in bits."""

    key_type: KeyType
    key_size: int

    def validate(self, policy: "KeyPolicy") -> "KeyAlgorithm":
        """Raise :class:`UnsupportedKeySize` unless the policy allows this size."""
        allowed = policy.allowed_sizes(self.key_type)
        if self.key_size not in allowed:
            raise UnsupportedKeySize(self.key_type.value, self.key_size, allowed)
        return self

    def curve(self) -> ec.EllipticCurve:
        """Return the named curve for an EC algorithm."""
        if self.key_type is not KeyType.EC:
            raise ValueError(f"{self.key_type.value} keys have no curve")
        try:
            return _CURVES[self.key_size]()
        except KeyError:
            raise UnsupportedKeySize(self.key_type.value, self.key_size, _CURVES) from None


def signature_algorithm_oid(key_type: KeyType, digest: DigestAlgorithm) -> str:
    """Return the X.509 signature AlgorithmIdentifier OID for the pair."""
    return _SIGNATURE_OIDS[(key_type, digest)]


def signature_algorithm_from_oid(oid: str) -> tuple[KeyType, DigestAlgorithm]:
    """Reverse of :func:`signature_algorithm_oid`; raises KeyError if unknown."""
    for pair, value in _SIGNATURE_OIDS.items():
        if value == oid:
            return pair
    raise KeyError(oid)


__all__ = [
    "DigestAlgorithm",
    "KeyAlgorithm",
    "KeyFlags",
    "KeyType",
    "Padding",
    "signature_algorithm_from_oid",
    "signature_algorithm_oid",
]
