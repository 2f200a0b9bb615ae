"""Distinguished names — RFC 5280 ``Name`` values and a fluent builder.

A :class:`Name` is an immutable value wrapping the canonical DER encoding of
an ``RDNSequence``. Equality is by encoding, so two names built from the
same attributes in the same order compare equal regardless of how they were
produced.
"""
from __future__ import annotations

from typing import Iterable, Iterator

from pyasn1.codec.der import decoder, encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import char, univ
from pyasn1_modules import rfc5280

from certkit import oids

# Short names accepted by NameBuilder.add(), mapped to attribute OIDs.
SHORT_NAMES: dict[str, str] = {
    "CN": oids.COMMON_NAME,
    "C": oids.COUNTRY_NAME,
    "L": oids.LOCALITY_NAME,
    "ST": oids.STATE_OR_PROVINCE_NAME,
    "STREET": oids.STREET_ADDRESS,
    "O": oids.ORGANIZATION_NAME,
    "OU": oids.ORGANIZATIONAL_UNIT_NAME,
    "serialNumber": oids.SERIAL_NUMBER,
    "emailAddress": oids.EMAIL_ADDRESS,
    "DC": oids.DOMAIN_COMPONENT,
    "UID": oids.USER_ID,
}

_OID_TO_SHORT = {oid: short for short, oid in SHORT_NAMES.items()}

# Attributes whose syntax is not DirectoryString.
_PRINTABLE = {oids.COUNTRY_NAME, oids.SERIAL_NUMBER}
_IA5 = {oids.EMAIL_ADDRESS, oids.DOMAIN_COMPONENT}


def _encode_attribute_value(oid: str, value: str) -> bytes:
    if oid in _PRINTABLE:
        return encoder.encode(char.PrintableString(value))
    if oid in _IA5:
        return encoder.encode(char.IA5String(value))
    return encoder.encode(char.UTF8String(value))


def _decode_attribute_value(data: bytes) -> str:
    value, _ = decoder.decode(data)
    if isinstance(value, univ.OctetString) and not isinstance(value, char.AbstractCharacterString):
        return "#" + bytes(value).hex()
    return str(value)


class Name:
    """An X.501 distinguished name.

    Parameters
    ----------
    der:
        Canonical DER encoding of the ``Name`` (an ``RDNSequence``).
    """

    __slots__ = ("_der",)

    def __init__(self, der: bytes) -> None:
        self._der = bytes(der)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_attributes(cls, attributes: Iterable[tuple[str, str]]) -> "Name":
        """Build a name with one attribute per RDN, in the given order.

        Parameters
        ----------
        attributes:
            ``(oid_or_short_name, value)`` pairs.
        """
        asn1_name = rfc5280.Name()
        rdn_sequence = rfc5280.RDNSequence()
        for position, (attr_type, value) in enumerate(attributes):
            oid = SHORT_NAMES.get(attr_type, attr_type)
            atv = rfc5280.AttributeTypeAndValue()
            atv["type"] = univ.ObjectIdentifier(oid)
            atv["value"] = _encode_attribute_value(oid, value)
            rdn = rfc5280.RelativeDistinguishedName()
            rdn.setComponentByPosition(0, atv)
            rdn_sequence.setComponentByPosition(position, rdn)
        if not len(rdn_sequence):
            rdn_sequence.clear()
        asn1_name.setComponentByName("rdnSequence", rdn_sequence)
        return cls(encoder.encode(asn1_name))

    @classmethod
    def from_asn1(cls, asn1_name: rfc5280.Name) -> "Name":
        return cls(encoder.encode(asn1_name))

    def to_asn1(self) -> rfc5280.Name:
        """Decode into a pyasn1 ``Name`` suitable for embedding in a TBS."""
        value, rest = decoder.decode(self._der, asn1Spec=rfc5280.Name())
        if rest:
            raise ValueError("trailing bytes after Name")
        return value

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def der(self) -> bytes:
        return self._der

    def attributes(self) -> list[tuple[str, str]]:
        """Return ``(oid, value)`` pairs in encoding order."""
        result: list[tuple[str, str]] = []
        rdn_sequence = self.to_asn1().getComponent()
        for rdn in rdn_sequence:
            for atv in rdn:
                result.append((str(atv["type"]), _decode_attribute_value(bytes(atv["value"]))))
        return result

    def get(self, attr_type: str) -> list[str]:
        """Return every value stored for an attribute OID or short name."""
        oid = SHORT_NAMES.get(attr_type, attr_type)
        return [value for attr_oid, value in self.attributes() if attr_oid == oid]

    @property
    def common_name(self) -> str | None:
        values = self.get("CN")
        return values[0] if values else None

    def rfc4514_string(self) -> str:
        """Render as an RFC 4514 string (most specific RDN first)."""
        parts = []
        for oid, value in reversed(self.attributes()):
            label = _OID_TO_SHORT.get(oid, oid)
            parts.append(f"{label}={_escape(value)}")
        return ",".join(parts)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.attributes())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Name):
            return NotImplemented
        return self._der == other._der

    def __hash__(self) -> int:
        return hash(self._der)

    def __repr__(self) -> str:
        try:
            return f"Name({self.rfc4514_string()!r})"
        except (PyAsn1Error, ValueError):
            return f"Name(der={self._der.hex()})"


def _escape(value: str) -> str:
    escaped = "".join("\\" + ch if ch in ',+"\\<>;=' else ch for ch in value)
    if escaped.startswith((" ", "#")):
        escaped = "\\" + escaped
    if escaped.endswith(" ") and len(escaped) > 1:
        escaped = escaped[:-1] + "\\ "
    return escaped


class NameBuilder:
    """Fluent builder for :class:`Name`.

    Example
    -------
    ::

        name = NameBuilder().add("Unit Testing", "CN").add("Example", "O").name
    """

    def __init__(self) -> None:
        self._attributes: list[tuple[str, str]] = []

    def add(self, value: str, type_name: str) -> "NameBuilder":
        """Append one attribute; *type_name* is a short name or dotted OID.

        Raises
        ------
        ValueError
            If *type_name* is neither a known short name nor a dotted OID.
        """
        if type_name not in SHORT_NAMES and not _is_dotted_oid(type_name):
            raise ValueError(f"Unknown name attribute type {type_name!r}")
        self._attributes.append((type_name, value))
        return self

    @property
    def name(self) -> Name:
        return Name.from_attributes(self._attributes)


def _is_dotted_oid(value: str) -> bool:
    parts = value.split(".")
    return len(parts) >= 2 and all(part.isdigit() for part in parts)


__all__ = ["Name", "NameBuilder", "SHORT_NAMES"]
