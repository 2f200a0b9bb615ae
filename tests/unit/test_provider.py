"""Tests for certkit.keys.provider — CryptographyProvider primitives."""
from __future__ import annotations

import pytest
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from certkit.algorithms import DigestAlgorithm, KeyAlgorithm, KeyType, Padding
from certkit.errors import CryptoOperationFailed
from certkit.keys import CryptographyProvider
from certkit.keys.provider import key_type_of

MESSAGE = b"Hello, World!"


@pytest.fixture(scope="module")
def provider() -> CryptographyProvider:
    return CryptographyProvider()


@pytest.fixture(scope="module")
def rsa_key(provider: CryptographyProvider) -> rsa.RSAPrivateKey:
    return provider.generate(KeyAlgorithm(KeyType.RSA, 2048))


@pytest.fixture(scope="module")
def ec_key(provider: CryptographyProvider) -> ec.EllipticCurvePrivateKey:
    return provider.generate(KeyAlgorithm(KeyType.EC, 256))


class TestGenerate:
    def test_rsa(self, rsa_key: rsa.RSAPrivateKey) -> None:
        assert rsa_key.key_size == 2048
        assert rsa_key.public_key().public_numbers().e == 65537

    @pytest.mark.parametrize("size", [256, 384])
    def test_ec_curve_matches_size(self, provider: CryptographyProvider, size: int) -> None:
        key = provider.generate(KeyAlgorithm(KeyType.EC, size))
        assert key.curve.key_size == size

    def test_key_type_of(self, rsa_key: rsa.RSAPrivateKey, ec_key: ec.EllipticCurvePrivateKey) -> None:
        assert key_type_of(rsa_key) is KeyType.RSA
        assert key_type_of(ec_key.public_key()) is KeyType.EC


class TestSignVerify:
    @pytest.mark.parametrize("digest", list(DigestAlgorithm))
    def test_rsa(self, provider: CryptographyProvider, rsa_key: rsa.RSAPrivateKey, digest: DigestAlgorithm) -> None:
        signature = provider.sign(MESSAGE, rsa_key, digest)
        assert provider.verify(signature, MESSAGE, rsa_key.public_key(), digest)

    def test_ec(self, provider: CryptographyProvider, ec_key: ec.EllipticCurvePrivateKey) -> None:
        signature = provider.sign(MESSAGE, ec_key, DigestAlgorithm.SHA256)
        assert provider.verify(signature, MESSAGE, ec_key.public_key(), DigestAlgorithm.SHA256)

    def test_tampered_message_fails(self, provider: CryptographyProvider, ec_key: ec.EllipticCurvePrivateKey) -> None:
        signature = provider.sign(MESSAGE, ec_key, DigestAlgorithm.SHA256)
        assert not provider.verify(signature, MESSAGE + b"!", ec_key.public_key(), DigestAlgorithm.SHA256)

    def test_wrong_digest_fails(self, provider: CryptographyProvider, rsa_key: rsa.RSAPrivateKey) -> None:
        signature = provider.sign(MESSAGE, rsa_key, DigestAlgorithm.SHA256)
        assert not provider.verify(signature, MESSAGE, rsa_key.public_key(), DigestAlgorithm.SHA384)


class TestEncryptDecrypt:
    @pytest.mark.parametrize("padding", [Padding.OAEP, Padding.PKCS1V15])
    def test_rsa_round_trip(self, provider: CryptographyProvider, rsa_key: rsa.RSAPrivateKey, padding: Padding) -> None:
        ciphertext = provider.encrypt(MESSAGE, rsa_key.public_key(), padding)
        assert ciphertext != MESSAGE
        assert provider.decrypt(ciphertext, rsa_key, padding) == MESSAGE

    def test_ecies_round_trip(self, provider: CryptographyProvider, ec_key: ec.EllipticCurvePrivateKey) -> None:
        ciphertext = provider.encrypt(MESSAGE, ec_key.public_key(), Padding.ECIES)
        # uncompressed P-256 point, ciphertext, GCM tag
        assert len(ciphertext) == 65 + len(MESSAGE) + 16
        assert provider.decrypt(ciphertext, ec_key, Padding.ECIES) == MESSAGE

    def test_ecies_is_randomized(self, provider: CryptographyProvider, ec_key: ec.EllipticCurvePrivateKey) -> None:
        first = provider.encrypt(MESSAGE, ec_key.public_key(), Padding.ECIES)
        second = provider.encrypt(MESSAGE, ec_key.public_key(), Padding.ECIES)
        assert first != second

    def test_ecies_tampered_fails(self, provider: CryptographyProvider, ec_key: ec.EllipticCurvePrivateKey) -> None:
        ciphertext = bytearray(provider.encrypt(MESSAGE, ec_key.public_key(), Padding.ECIES))
        ciphertext[-1] ^= 0x01
        with pytest.raises(CryptoOperationFailed):
            provider.decrypt(bytes(ciphertext), ec_key, Padding.ECIES)

    def test_ecies_truncated_fails(self, provider: CryptographyProvider, ec_key: ec.EllipticCurvePrivateKey) -> None:
        with pytest.raises(CryptoOperationFailed, match="too short"):
            provider.decrypt(b"\x04" * 20, ec_key, Padding.ECIES)

    def test_oaep_tampered_fails(self, provider: CryptographyProvider, rsa_key: rsa.RSAPrivateKey) -> None:
        ciphertext = bytearray(provider.encrypt(MESSAGE, rsa_key.public_key(), Padding.OAEP))
        ciphertext[0] ^= 0x01
        with pytest.raises(CryptoOperationFailed):
            provider.decrypt(bytes(ciphertext), rsa_key, Padding.OAEP)

    def test_rsa_rejects_ecies(self, provider: CryptographyProvider, rsa_key: rsa.RSAPrivateKey) -> None:
        with pytest.raises(CryptoOperationFailed, match="not usable with RSA"):
            provider.encrypt(MESSAGE, rsa_key.public_key(), Padding.ECIES)

    def test_ec_rejects_oaep(self, provider: CryptographyProvider, ec_key: ec.EllipticCurvePrivateKey) -> None:
        with pytest.raises(CryptoOperationFailed, match="not usable with EC"):
            provider.encrypt(MESSAGE, ec_key.public_key(), Padding.OAEP)

    def test_oaep_message_too_long(self, provider: CryptographyProvider, rsa_key: rsa.RSAPrivateKey) -> None:
        with pytest.raises(CryptoOperationFailed):
            provider.encrypt(b"x" * 300, rsa_key.public_key(), Padding.OAEP)


class TestSerialization:
    def test_public_der_round_trip(self, provider: CryptographyProvider, ec_key: ec.EllipticCurvePrivateKey) -> None:
        der = provider.public_key_der(ec_key.public_key())
        assert provider.public_key_der(provider.load_public_key(der)) == der

    def test_private_der_round_trip(self, provider: CryptographyProvider, rsa_key: rsa.RSAPrivateKey) -> None:
        der = provider.private_key_der(rsa_key)
        assert provider.private_key_der(provider.load_private_key(der)) == der
