"""Tests for certkit.errors — taxonomy and carried context."""
from __future__ import annotations

import pytest

from certkit.errors import (
    BuilderStateError,
    CertKitError,
    CorruptArchive,
    ExportUnsupported,
    HandleNotFound,
    IncompleteCertificate,
    InvalidBuilderState,
    KeyNotFound,
    KeyStoreError,
    MalformedExtension,
    MalformedInputError,
    UnknownGeneralNameTag,
    UnsupportedKeySize,
)


class TestFamilies:
    @pytest.mark.parametrize(
        "error, family",
        [
            (MalformedExtension("2.5.29.17", "bad"), MalformedInputError),
            (UnknownGeneralNameTag(9), MalformedInputError),
            (CorruptArchive("nope"), MalformedInputError),
            (InvalidBuilderState("build", "signed"), BuilderStateError),
            (IncompleteCertificate(["subject"]), BuilderStateError),
            (KeyNotFound("label"), KeyStoreError),
            (ExportUnsupported("label"), KeyStoreError),
            (UnsupportedKeySize("rsa", 1024, [2048]), KeyStoreError),
        ],
    )
    def test_error_belongs_to_family(self, error: CertKitError, family: type) -> None:
        assert isinstance(error, family)
        assert isinstance(error, CertKitError)

    def test_unsupported_key_size_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            raise UnsupportedKeySize("ec", 192, [256, 384, 521])

    def test_key_not_found_is_key_error(self) -> None:
        with pytest.raises(KeyError):
            raise KeyNotFound("label")

    def test_handle_not_found_is_key_not_found(self) -> None:
        assert issubclass(HandleNotFound, KeyNotFound)


class TestContext:
    def test_malformed_extension_carries_oid(self) -> None:
        error = MalformedExtension("2.5.29.17", "trailing bytes")
        assert error.extension_id == "2.5.29.17"
        assert error.reason == "trailing bytes"
        assert "2.5.29.17" in str(error)

    def test_unknown_tag_carries_number(self) -> None:
        error = UnknownGeneralNameTag(9)
        assert error.tag_number == 9
        assert "[9]" in str(error)

    def test_incomplete_certificate_lists_missing(self) -> None:
        error = IncompleteCertificate(["subject", "public_key"])
        assert error.missing == ["subject", "public_key"]
        assert "public_key" in str(error)

    def test_unsupported_key_size_lists_allowed(self) -> None:
        error = UnsupportedKeySize("rsa", 1024, {4096, 2048})
        assert error.allowed == [2048, 4096]
        assert "1024" in str(error)

    def test_key_not_found_message_is_not_quoted(self) -> None:
        error = KeyNotFound("signer", handle="h1")
        assert error.label == "signer"
        assert error.handle == "h1"
        assert str(error).startswith("Key not found")

    def test_handle_not_found_has_no_label(self) -> None:
        error = HandleNotFound("h2")
        assert error.label is None
        assert error.handle == "h2"
        assert "does not resolve" in str(error)

    def test_invalid_builder_state_names_operation(self) -> None:
        error = InvalidBuilderState("subject", "signed")
        assert error.operation == "subject"
        assert error.state == "signed"
        assert "subject()" in str(error)
