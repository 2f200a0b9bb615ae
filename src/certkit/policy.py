"""KeyPolicy — configurable key sizes, digests and archive strength.

Operators tune what the key lifecycle manager and the certificate builder
accept through a policy object. Sensible defaults are provided for all
parameters.
"""
from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from certkit.algorithms import DigestAlgorithm, KeyType


class KeyPolicy(BaseModel):
    """Configurable key and certificate policy.

    Parameters
    ----------
    rsa_key_sizes:
        RSA modulus sizes (bits) the lifecycle manager will generate.
    ec_key_sizes:
        EC field sizes (bits) the lifecycle manager will generate.
    default_digest:
        Digest used when a caller does not name one.
    export_kdf_rounds:
        PBKDF2 iteration count for password-protected archives.
    default_validity_days:
        Validity used by convenience helpers that do not take a duration.
    """

    rsa_key_sizes: frozenset[int] = Field(
        default_factory=lambda: frozenset({2048, 3072, 4096})
    )
    ec_key_sizes: frozenset[int] = Field(
        default_factory=lambda: frozenset({256, 384, 521})
    )
    default_digest: DigestAlgorithm = DigestAlgorithm.SHA256
    export_kdf_rounds: int = Field(default=50_000, ge=1_000)
    default_validity_days: int = Field(default=365, gt=0)

    model_config = {"frozen": True}

    @field_validator("rsa_key_sizes")
    @classmethod
    def _rsa_floor(cls, value: frozenset[int]) -> frozenset[int]:
        if not value or min(value) < 2048:
            raise ValueError("RSA key sizes must be non-empty and at least 2048 bits")
        return value

    @field_validator("ec_key_sizes")
    @classmethod
    def _known_curves(cls, value: frozenset[int]) -> frozenset[int]:
        unknown = set(value) - {256, 384, 521}
        if not value or unknown:
            raise ValueError(f"EC key sizes must be drawn from 256/384/521, got {sorted(value)}")
        return value

    def allowed_sizes(self, key_type: KeyType) -> frozenset[int]:
        """Return the key sizes allowed for *key_type*."""
        if key_type is KeyType.RSA:
            return self.rsa_key_sizes
        return self.ec_key_sizes


DEFAULT_POLICY = KeyPolicy()

__all__ = ["DEFAULT_POLICY", "KeyPolicy"]
