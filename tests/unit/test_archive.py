"""Tests for certkit.keys.archive — PKCS#12 export and import."""
from __future__ import annotations

import pytest
from cryptography.hazmat.primitives.serialization import NoEncryption, pkcs12

from certkit.errors import CertKitError, CorruptArchive, EncodingFailed, InvalidPassword
from certkit.keys import KeyPair, export_archive, load_archive
from certkit.keys.provider import CryptographyProvider

PASSWORD = "correct horse"


@pytest.fixture(scope="module")
def ec_private(ec_pair: KeyPair):
    return ec_pair.private_key.to_cryptography()


class TestExportArchive:
    def test_round_trip(self, ec_private) -> None:
        data = export_archive(ec_private, PASSWORD, friendly_name="archived")
        key, certificate = load_archive(data, PASSWORD)
        assert certificate is None
        assert CryptographyProvider.private_key_der(key) == CryptographyProvider.private_key_der(ec_private)

    def test_empty_password_rejected(self, ec_private) -> None:
        with pytest.raises(EncodingFailed, match="empty"):
            export_archive(ec_private, "")

    def test_empty_password_through_key_pair(self, ec_pair: KeyPair) -> None:
        with pytest.raises(CertKitError):
            ec_pair.export("")

    def test_with_certificate(self, ec_pair: KeyPair, self_signed, unit_name) -> None:
        certificate = self_signed(ec_pair, unit_name).to_cryptography()
        data = export_archive(
            ec_pair.private_key.to_cryptography(), PASSWORD, certificate=certificate
        )
        _, loaded = load_archive(data, PASSWORD)
        assert loaded == certificate


class TestLoadArchive:
    def test_wrong_password(self, ec_private) -> None:
        data = export_archive(ec_private, PASSWORD)
        with pytest.raises(InvalidPassword):
            load_archive(data, "wrong password")

    @pytest.mark.parametrize("data", [b"", b"not a pfx"])
    def test_garbage(self, data: bytes) -> None:
        with pytest.raises(CorruptArchive):
            load_archive(data, PASSWORD)

    def test_trailing_bytes(self, ec_private) -> None:
        data = export_archive(ec_private, PASSWORD) + b"\x00"
        with pytest.raises(CorruptArchive, match="trailing"):
            load_archive(data, PASSWORD)

    def test_empty_password_on_protected_archive(self, ec_private) -> None:
        data = export_archive(ec_private, PASSWORD)
        with pytest.raises(InvalidPassword):
            load_archive(data, "")

    def test_unprotected_archive_opens_with_empty_password(self, ec_private) -> None:
        data = pkcs12.serialize_key_and_certificates(
            name=b"plain", key=ec_private, cert=None, cas=None, encryption_algorithm=NoEncryption()
        )
        key, certificate = load_archive(data, "")
        assert certificate is None
        assert CryptographyProvider.private_key_der(key) == CryptographyProvider.private_key_der(ec_private)
