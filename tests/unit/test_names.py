"""Tests for certkit.names — Name and NameBuilder."""
from __future__ import annotations

import pytest
from cryptography import x509

from certkit import oids
from certkit.names import Name, NameBuilder


class TestNameBuilder:
    def test_single_common_name(self) -> None:
        name = NameBuilder().add("Unit Testing", "CN").name
        assert name.common_name == "Unit Testing"
        assert name.rfc4514_string() == "CN=Unit Testing"

    def test_order_is_preserved(self) -> None:
        name = NameBuilder().add("US", "C").add("Example", "O").add("host", "CN").name
        assert [oid for oid, _ in name.attributes()] == [
            oids.COUNTRY_NAME,
            oids.ORGANIZATION_NAME,
            oids.COMMON_NAME,
        ]
        assert name.rfc4514_string() == "CN=host,O=Example,C=US"

    def test_dotted_oid_type(self) -> None:
        name = NameBuilder().add("x", "2.5.4.3").name
        assert name.common_name == "x"

    def test_unknown_short_name_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown name attribute"):
            NameBuilder().add("x", "NOPE")

    def test_empty_builder_gives_empty_name(self) -> None:
        name = NameBuilder().name
        assert name.attributes() == []
        assert name.der == b"\x30\x00"


class TestName:
    def test_equality_by_encoding(self) -> None:
        first = NameBuilder().add("a", "CN").name
        second = Name.from_attributes([("CN", "a")])
        assert first == second
        assert hash(first) == hash(second)

    def test_different_order_differs(self) -> None:
        first = Name.from_attributes([("O", "o"), ("CN", "a")])
        second = Name.from_attributes([("CN", "a"), ("O", "o")])
        assert first != second

    def test_get_returns_all_values(self) -> None:
        name = Name.from_attributes([("OU", "one"), ("OU", "two")])
        assert name.get("OU") == ["one", "two"]

    def test_special_characters_are_escaped(self) -> None:
        name = Name.from_attributes([("CN", "Doe, John")])
        assert name.rfc4514_string() == "CN=Doe\\, John"

    def test_country_uses_printable_string(self) -> None:
        name = Name.from_attributes([("C", "US")])
        assert b"\x13\x02US" in name.der

    def test_email_uses_ia5_string(self) -> None:
        name = Name.from_attributes([("emailAddress", "a@example.com")])
        assert b"\x16\x0da@example.com" in name.der

    def test_round_trip_through_asn1(self) -> None:
        name = Name.from_attributes([("CN", "Unit Testing"), ("O", "Example")])
        assert Name.from_asn1(name.to_asn1()) == name

    def test_cryptography_reads_the_encoding(self) -> None:
        name = Name.from_attributes([("C", "US"), ("O", "Example"), ("CN", "host")])
        parsed = x509.Name.from_rfc4514_string("CN=host,O=Example,C=US")
        assert parsed.public_bytes() == name.der
