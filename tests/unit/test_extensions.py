"""Tests for certkit.extensions — SubjectAltName, KeyUsage, BasicConstraints, registry."""
from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import ClassVar

import pytest
from pyasn1.type import univ
from pyasn1.type.base import Asn1Item

from certkit import oids
from certkit.errors import MalformedExtension, UnknownGeneralNameTag
from certkit.extensions import (
    BasicConstraints,
    DirectoryName,
    DNSName,
    ExtensionAlreadyRegisteredError,
    ExtensionRegistry,
    ExtensionValue,
    IPAddress,
    KeyUsage,
    KeyUsageFlags,
    RFC822Name,
    SubjectAltName,
    UniformResourceIdentifier,
    UnrecognizedExtension,
    default_registry,
    extension_type_for,
    register_extension,
)
from certkit.names import NameBuilder

MARKER_OID = "1.3.6.1.4.1.55555.1"


@dataclass(frozen=True)
class MarkerExtension(ExtensionValue):
    """A one-BOOLEAN private extension used to exercise the registry."""

    flag: bool = True

    extension_id: ClassVar[str] = MARKER_OID
    schema: ClassVar[Asn1Item] = univ.Boolean()

    @property
    def critical(self) -> bool:
        return False

    def to_asn1(self) -> Asn1Item:
        return univ.Boolean(self.flag)

    @classmethod
    def from_asn1(cls, value: Asn1Item) -> "MarkerExtension":
        return cls(bool(value))


# ---------------------------------------------------------------------------
# SubjectAltName
# ---------------------------------------------------------------------------


class TestSubjectAltName:
    def test_is_never_critical(self) -> None:
        assert SubjectAltName.of(DNSName("a")).critical is False

    def test_extension_id(self) -> None:
        assert SubjectAltName.extension_id == "2.5.29.17"

    def test_encode_decode(self) -> None:
        san = SubjectAltName.of(
            DNSName("example.com"),
            RFC822Name("admin@example.com"),
            UniformResourceIdentifier("https://example.com/"),
            IPAddress("2001:db8::1"),
            DirectoryName(NameBuilder().add("Dir", "CN").name),
        )
        decoded = SubjectAltName.decode(san.encode())
        assert decoded == san
        assert list(decoded) == list(san)

    def test_accessors(self) -> None:
        san = SubjectAltName.of(
            DNSName("a.example"),
            RFC822Name("x@example.com"),
            DNSName("b.example"),
            UniformResourceIdentifier("urn:a"),
            IPAddress("192.0.2.7"),
        )
        assert san.dns_names() == ["a.example", "b.example"]
        assert san.email_addresses() == ["x@example.com"]
        assert san.uris() == ["urn:a"]
        assert san.ip_addresses() == [ipaddress.ip_address("192.0.2.7")]
        assert len(san) == 5

    def test_names_are_coerced(self) -> None:
        san = SubjectAltName([DNSName("a")])
        assert san == SubjectAltName.of(DNSName("a"))

    def test_empty_is_accepted_by_codec(self) -> None:
        assert SubjectAltName().encode() == b"\x30\x00"
        assert len(SubjectAltName.decode(b"\x30\x00")) == 0

    def test_trailing_bytes(self) -> None:
        with pytest.raises(MalformedExtension) as excinfo:
            SubjectAltName.decode(b"\x30\x03\x82\x01a\x00")
        assert excinfo.value.extension_id == oids.SUBJECT_ALT_NAME

    def test_wrong_outer_tag(self) -> None:
        with pytest.raises(MalformedExtension):
            SubjectAltName.decode(b"\x31\x03\x82\x01a")

    def test_unknown_tag_propagates(self) -> None:
        with pytest.raises(UnknownGeneralNameTag):
            SubjectAltName.decode(b"\x30\x03\x89\x01\x00")

    def test_parsed_criticality_is_ignored(self) -> None:
        san = SubjectAltName.of(DNSName("a"))
        assert san.with_critical(True) is san

    def test_to_extension_omits_critical(self) -> None:
        extension = SubjectAltName.of(DNSName("a")).to_extension()
        assert str(extension["extnID"]) == oids.SUBJECT_ALT_NAME
        assert not extension["critical"]
        assert extension["extnValue"].asOctets() == b"\x30\x03\x82\x01a"


# ---------------------------------------------------------------------------
# KeyUsage
# ---------------------------------------------------------------------------


class TestKeyUsage:
    @pytest.mark.parametrize(
        "flags, encoded",
        [
            (KeyUsageFlags.DIGITAL_SIGNATURE, b"\x03\x02\x07\x80"),
            (KeyUsageFlags.KEY_ENCIPHERMENT, b"\x03\x02\x05\x20"),
            (
                KeyUsageFlags.DIGITAL_SIGNATURE | KeyUsageFlags.KEY_ENCIPHERMENT,
                b"\x03\x02\x05\xa0",
            ),
            (KeyUsageFlags.KEY_CERT_SIGN | KeyUsageFlags.CRL_SIGN, b"\x03\x02\x01\x06"),
            (KeyUsageFlags.DECIPHER_ONLY, b"\x03\x03\x07\x00\x80"),
        ],
    )
    def test_der(self, flags: KeyUsageFlags, encoded: bytes) -> None:
        assert KeyUsage(flags).encode() == encoded
        assert KeyUsage.decode(encoded).flags == flags

    def test_is_critical(self) -> None:
        assert KeyUsage(KeyUsageFlags.DIGITAL_SIGNATURE).critical is True

    def test_criticality_can_be_lowered(self) -> None:
        usage = KeyUsage(KeyUsageFlags.DIGITAL_SIGNATURE).with_critical(False)
        assert usage.critical is False
        assert usage != KeyUsage(KeyUsageFlags.DIGITAL_SIGNATURE)
        assert not usage.to_extension()["critical"]

    def test_empty_rejected(self) -> None:
        with pytest.raises(ValueError):
            KeyUsage(KeyUsageFlags.NONE)

    def test_non_canonical_rejected(self) -> None:
        # digitalSignature with seven trailing zero bits spelled out
        with pytest.raises(MalformedExtension, match="canonical"):
            KeyUsage.decode(b"\x03\x02\x00\x80")

    def test_membership(self) -> None:
        usage = KeyUsage(KeyUsageFlags.KEY_AGREEMENT | KeyUsageFlags.DIGITAL_SIGNATURE)
        assert KeyUsageFlags.KEY_AGREEMENT in usage
        assert KeyUsageFlags.KEY_CERT_SIGN not in usage


# ---------------------------------------------------------------------------
# BasicConstraints
# ---------------------------------------------------------------------------


class TestBasicConstraints:
    def test_end_entity(self) -> None:
        assert BasicConstraints().encode() == b"\x30\x00"
        assert BasicConstraints.decode(b"\x30\x00") == BasicConstraints()

    def test_ca(self) -> None:
        assert BasicConstraints(ca=True).encode() == b"\x30\x03\x01\x01\xff"

    def test_ca_with_path_length(self) -> None:
        value = BasicConstraints(ca=True, path_length=0)
        encoded = value.encode()
        assert encoded == b"\x30\x06\x01\x01\xff\x02\x01\x00"
        assert BasicConstraints.decode(encoded) == value

    def test_path_length_requires_ca(self) -> None:
        with pytest.raises(ValueError):
            BasicConstraints(ca=False, path_length=1)

    def test_negative_path_length(self) -> None:
        with pytest.raises(ValueError):
            BasicConstraints(ca=True, path_length=-1)

    def test_is_critical(self) -> None:
        assert BasicConstraints().critical is True

    def test_registry_decode_keeps_criticality(self) -> None:
        decoded = default_registry.decode(oids.BASIC_CONSTRAINTS, False, b"\x30\x03\x01\x01\xff")
        assert decoded == BasicConstraints(ca=True, critical=False)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestExtensionRegistry:
    def test_builtins_registered(self) -> None:
        assert extension_type_for(oids.SUBJECT_ALT_NAME) is SubjectAltName
        assert extension_type_for(oids.KEY_USAGE) is KeyUsage
        assert extension_type_for(oids.BASIC_CONSTRAINTS) is BasicConstraints

    def test_register_and_decode(self) -> None:
        registry = ExtensionRegistry()
        registry.register(MarkerExtension)
        assert MARKER_OID in registry
        assert registry.decode(MARKER_OID, False, b"\x01\x01\xff") == MarkerExtension(True)

    def test_unregistered_is_preserved(self) -> None:
        registry = ExtensionRegistry()
        value = registry.decode("1.2.3.4.5", True, b"\x04\x00")
        assert value == UnrecognizedExtension("1.2.3.4.5", True, b"\x04\x00")
        assert value.encode() == b"\x04\x00"

    def test_second_class_for_same_oid_raises(self) -> None:
        with pytest.raises(ExtensionAlreadyRegisteredError):

            @register_extension
            @dataclass(frozen=True)
            class OtherSan(SubjectAltName):
                pass

    def test_duplicate_registration_error_is_value_error(self) -> None:
        assert issubclass(ExtensionAlreadyRegisteredError, ValueError)

    def test_reregistering_same_class_is_allowed(self) -> None:
        assert default_registry.register(SubjectAltName) is SubjectAltName

    def test_rejects_non_extension(self) -> None:
        with pytest.raises(TypeError):
            ExtensionRegistry().register(dict)  # type: ignore[arg-type]

    def test_unregister(self) -> None:
        registry = ExtensionRegistry()
        registry.register(MarkerExtension)
        registry.unregister(MARKER_OID)
        assert registry.get(MARKER_OID) is None
        with pytest.raises(KeyError):
            registry.unregister(MARKER_OID)

    def test_iterates_sorted_oids(self) -> None:
        registry = ExtensionRegistry()
        registry.register(MarkerExtension)
        registry.register(KeyUsage)
        assert list(registry) == sorted([MARKER_OID, oids.KEY_USAGE])
