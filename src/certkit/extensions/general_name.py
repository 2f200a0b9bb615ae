"""GeneralName and GeneralNames (RFC 5280 section 4.2.1.6).

``GeneralName`` is a closed tagged union of nine choices fixed by the
standard, so every variant is a concrete frozen dataclass and the codec
dispatches on the context tag through a lookup table that covers all nine.
A tag outside ``[0..8]`` is rejected with :class:`UnknownGeneralNameTag`
instead of being skipped: dropping a name silently could hide a
security-relevant identity.

``GeneralNames`` keeps insertion order (the wire order) and permits
duplicates. Equality compares the names as a multiset.
"""
from __future__ import annotations

import ipaddress
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from collections.abc import Iterable, Iterator, Sequence
from typing import ClassVar, Optional, Union, overload

from pyasn1.codec.der import decoder, encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import char, namedtype, tag, univ
from pyasn1.type.base import Asn1Item
from pyasn1_modules import rfc5280

from certkit.errors import MalformedExtension, UnknownGeneralNameTag
from certkit.names import Name

_CODEC_ID = "GeneralName"


def _context(number: int, constructed: bool = False) -> tag.Tag:
    return tag.Tag(
        tag.tagClassContext,
        tag.tagFormatConstructed if constructed else tag.tagFormatSimple,
        number,
    )


# ------------------------------------------------------------------
# Schemas
# ------------------------------------------------------------------


class _AnotherName(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("type-id", univ.ObjectIdentifier()),
        namedtype.NamedType("value", univ.Any().subtype(explicitTag=_context(0, True))),
    )


class _EDIPartyName(univ.Sequence):
    # CHOICE types are always tagged explicitly.
    componentType = namedtype.NamedTypes(
        namedtype.OptionalNamedType(
            "nameAssigner", rfc5280.DirectoryString().subtype(explicitTag=_context(0, True))
        ),
        namedtype.NamedType(
            "partyName", rfc5280.DirectoryString().subtype(explicitTag=_context(1, True))
        ),
    )


class GeneralNamesSchema(univ.SequenceOf):
    """``SEQUENCE OF GeneralName`` with each element kept as raw TLV octets.

    Elements are dispatched on their tag by :func:`decode_general_name`, so
    an unknown choice surfaces as :class:`UnknownGeneralNameTag` rather than a
    generic decoder error. No size constraint: an empty sequence is valid at
    the codec level.
    """

    componentType = univ.Any()


# ------------------------------------------------------------------
# Variants
# ------------------------------------------------------------------


class GeneralName(ABC):
    """Base of the nine GeneralName choices."""

    tag_number: ClassVar[int]
    constructed: ClassVar[bool]
    spec: ClassVar[Asn1Item]

    @abstractmethod
    def to_asn1(self) -> Asn1Item:
        """Return the context-tagged pyasn1 value for this choice."""

    @classmethod
    @abstractmethod
    def from_asn1(cls, value: Asn1Item) -> "GeneralName":
        """Build the variant from a value decoded with :attr:`spec`."""

    def encode(self) -> bytes:
        """Return the DER TLV of this name, including its context tag."""
        try:
            return encoder.encode(self.to_asn1())
        except PyAsn1Error as exc:
            raise MalformedExtension(_CODEC_ID, f"cannot encode {self!r}: {exc}") from exc


def _require_ascii(kind: str, value: str) -> None:
    if not isinstance(value, str):
        raise TypeError(f"{kind} value must be str, got {type(value).__name__}")
    if not value.isascii():
        raise ValueError(f"{kind} value must be IA5 (ASCII): {value!r}")


@dataclass(frozen=True)
class OtherName(GeneralName):
    """``otherName [0]``: a type OID and the DER of its value."""

    type_id: str
    value: bytes

    tag_number: ClassVar[int] = 0
    constructed: ClassVar[bool] = True
    spec: ClassVar[Asn1Item] = _AnotherName().subtype(implicitTag=_context(0, True))

    def to_asn1(self) -> Asn1Item:
        asn1_value = self.spec.clone()
        asn1_value["type-id"] = self.type_id
        asn1_value["value"] = self.value
        return asn1_value

    @classmethod
    def from_asn1(cls, value: Asn1Item) -> "OtherName":
        return cls(type_id=str(value["type-id"]), value=bytes(value["value"]))


@dataclass(frozen=True)
class RFC822Name(GeneralName):
    """``rfc822Name [1]``: an email address."""

    value: str

    tag_number: ClassVar[int] = 1
    constructed: ClassVar[bool] = False
    spec: ClassVar[Asn1Item] = char.IA5String().subtype(implicitTag=_context(1))

    def __post_init__(self) -> None:
        _require_ascii("rfc822Name", self.value)

    def to_asn1(self) -> Asn1Item:
        return self.spec.clone(self.value)

    @classmethod
    def from_asn1(cls, value: Asn1Item) -> "RFC822Name":
        return cls(str(value))


@dataclass(frozen=True)
class DNSName(GeneralName):
    """``dNSName [2]``."""

    value: str

    tag_number: ClassVar[int] = 2
    constructed: ClassVar[bool] = False
    spec: ClassVar[Asn1Item] = char.IA5String().subtype(implicitTag=_context(2))

    def __post_init__(self) -> None:
        _require_ascii("dNSName", self.value)

    def to_asn1(self) -> Asn1Item:
        return self.spec.clone(self.value)

    @classmethod
    def from_asn1(cls, value: Asn1Item) -> "DNSName":
        return cls(str(value))


@dataclass(frozen=True)
class X400Address(GeneralName):
    """``x400Address [3]``: DER of an ``ORAddress`` (a universal SEQUENCE)."""

    value: bytes

    tag_number: ClassVar[int] = 3
    constructed: ClassVar[bool] = True
    spec: ClassVar[Asn1Item] = rfc5280.ORAddress().subtype(implicitTag=_context(3, True))

    def to_asn1(self) -> Asn1Item:
        address, rest = decoder.decode(self.value, asn1Spec=rfc5280.ORAddress())
        if rest:
            raise ValueError("trailing bytes after ORAddress")
        return address.clone(tagSet=self.spec.tagSet, cloneValueFlag=True)

    @classmethod
    def from_asn1(cls, value: Asn1Item) -> "X400Address":
        untagged = value.clone(tagSet=rfc5280.ORAddress.tagSet, cloneValueFlag=True)
        return cls(encoder.encode(untagged))


@dataclass(frozen=True)
class DirectoryName(GeneralName):
    """``directoryName [4]``: a distinguished name (explicitly tagged)."""

    name: Name

    tag_number: ClassVar[int] = 4
    constructed: ClassVar[bool] = True
    spec: ClassVar[Asn1Item] = univ.Any().subtype(explicitTag=_context(4, True))

    def to_asn1(self) -> Asn1Item:
        return self.spec.clone(self.name.der)

    @classmethod
    def from_asn1(cls, value: Asn1Item) -> "DirectoryName":
        name = Name(bytes(value))
        name.to_asn1()
        return cls(name)


@dataclass(frozen=True)
class EDIPartyName(GeneralName):
    """``ediPartyName [5]``.

    The ``*_kind`` fields record which DirectoryString alternative carried
    each value so re-encoding reproduces the original octets.
    """

    party_name: str
    name_assigner: Optional[str] = None
    party_name_kind: str = "utf8String"
    name_assigner_kind: str = "utf8String"

    tag_number: ClassVar[int] = 5
    constructed: ClassVar[bool] = True
    spec: ClassVar[Asn1Item] = _EDIPartyName().subtype(implicitTag=_context(5, True))

    def to_asn1(self) -> Asn1Item:
        asn1_value = self.spec.clone()
        if self.name_assigner is not None:
            asn1_value["nameAssigner"][self.name_assigner_kind] = self.name_assigner
        asn1_value["partyName"][self.party_name_kind] = self.party_name
        return asn1_value

    @classmethod
    def from_asn1(cls, value: Asn1Item) -> "EDIPartyName":
        party = value["partyName"]
        assigner = value.getComponentByName("nameAssigner", default=None, instantiate=False)
        if assigner is not None and assigner.isValue:
            return cls(
                party_name=str(party.getComponent()),
                name_assigner=str(assigner.getComponent()),
                party_name_kind=party.getName(),
                name_assigner_kind=assigner.getName(),
            )
        return cls(party_name=str(party.getComponent()), party_name_kind=party.getName())


@dataclass(frozen=True)
class UniformResourceIdentifier(GeneralName):
    """``uniformResourceIdentifier [6]``."""

    value: str

    tag_number: ClassVar[int] = 6
    constructed: ClassVar[bool] = False
    spec: ClassVar[Asn1Item] = char.IA5String().subtype(implicitTag=_context(6))

    def __post_init__(self) -> None:
        _require_ascii("uniformResourceIdentifier", self.value)

    def to_asn1(self) -> Asn1Item:
        return self.spec.clone(self.value)

    @classmethod
    def from_asn1(cls, value: Asn1Item) -> "UniformResourceIdentifier":
        return cls(str(value))


@dataclass(frozen=True)
class IPAddress(GeneralName):
    """``iPAddress [7]``: 4 (IPv4) or 16 (IPv6) octets in network order."""

    value: bytes

    tag_number: ClassVar[int] = 7
    constructed: ClassVar[bool] = False
    spec: ClassVar[Asn1Item] = univ.OctetString().subtype(implicitTag=_context(7))

    def __post_init__(self) -> None:
        if isinstance(self.value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            object.__setattr__(self, "value", self.value.packed)
        elif isinstance(self.value, str):
            object.__setattr__(self, "value", ipaddress.ip_address(self.value).packed)
        if len(self.value) not in (4, 16):
            raise ValueError(f"iPAddress must be 4 or 16 octets, got {len(self.value)}")

    @property
    def address(self) -> Union[ipaddress.IPv4Address, ipaddress.IPv6Address]:
        return ipaddress.ip_address(self.value)

    def to_asn1(self) -> Asn1Item:
        return self.spec.clone(self.value)

    @classmethod
    def from_asn1(cls, value: Asn1Item) -> "IPAddress":
        return cls(bytes(value))


@dataclass(frozen=True)
class RegisteredID(GeneralName):
    """``registeredID [8]``: a dotted OID."""

    oid: str

    tag_number: ClassVar[int] = 8
    constructed: ClassVar[bool] = False
    spec: ClassVar[Asn1Item] = univ.ObjectIdentifier().subtype(implicitTag=_context(8))

    def to_asn1(self) -> Asn1Item:
        return self.spec.clone(self.oid)

    @classmethod
    def from_asn1(cls, value: Asn1Item) -> "RegisteredID":
        return cls(str(value))


_VARIANTS: dict[int, type[GeneralName]] = {
    variant.tag_number: variant
    for variant in (
        OtherName,
        RFC822Name,
        DNSName,
        X400Address,
        DirectoryName,
        EDIPartyName,
        UniformResourceIdentifier,
        IPAddress,
        RegisteredID,
    )
}


# ------------------------------------------------------------------
# Element codec
# ------------------------------------------------------------------


def _read_identifier(element: bytes) -> tuple[int, bool, int]:
    """Return ``(tag_class, constructed, tag_number)`` of a TLV's first octets."""
    if not element:
        raise MalformedExtension(_CODEC_ID, "empty element")
    first = element[0]
    tag_class = first & 0xC0
    constructed = bool(first & 0x20)
    number = first & 0x1F
    if number == 0x1F:
        number = 0
        for octet in element[1:]:
            number = (number << 7) | (octet & 0x7F)
            if not octet & 0x80:
                break
        else:
            raise MalformedExtension(_CODEC_ID, "truncated high tag number")
    return tag_class, constructed, number


def decode_general_name(element: bytes) -> GeneralName:
    """Decode one GeneralName TLV, dispatching on its context tag.

    Raises
    ------
    UnknownGeneralNameTag
        If the tag is not context-specific ``[0..8]``.
    MalformedExtension
        If the element does not conform to its variant's schema.
    """
    tag_class, constructed, number = _read_identifier(element)
    variant = _VARIANTS.get(number) if tag_class == tag.tagClassContext else None
    if variant is None:
        raise UnknownGeneralNameTag(number, tag_class)
    if constructed != variant.constructed:
        form = "constructed" if constructed else "primitive"
        raise MalformedExtension(_CODEC_ID, f"[{number}] must not be {form}")
    try:
        value, rest = decoder.decode(element, asn1Spec=variant.spec)
        if rest:
            raise MalformedExtension(_CODEC_ID, f"[{number}] has trailing bytes")
        return variant.from_asn1(value)
    except (PyAsn1Error, ValueError) as exc:
        raise MalformedExtension(_CODEC_ID, f"[{number}]: {exc}") from exc


# ------------------------------------------------------------------
# GeneralNames
# ------------------------------------------------------------------


class GeneralNames(Sequence[GeneralName]):
    """Ordered, immutable sequence of :class:`GeneralName` values.

    Parameters
    ----------
    names:
        Names in wire order. Duplicates are kept.
    """

    __slots__ = ("_names",)

    def __init__(self, names: Iterable[GeneralName] = ()) -> None:
        collected = tuple(names)
        for name in collected:
            if not isinstance(name, GeneralName):
                raise TypeError(f"Expected a GeneralName, got {type(name).__name__}")
        self._names = collected

    @overload
    def __getitem__(self, index: int) -> GeneralName: ...

    @overload
    def __getitem__(self, index: slice) -> "GeneralNames": ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return GeneralNames(self._names[index])
        return self._names[index]

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[GeneralName]:
        return iter(self._names)

    def __add__(self, other: Iterable[GeneralName]) -> "GeneralNames":
        return GeneralNames(self._names + tuple(other))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GeneralNames):
            return NotImplemented
        return Counter(self._names) == Counter(other._names)

    def __hash__(self) -> int:
        return hash(frozenset(Counter(self._names).items()))

    def __repr__(self) -> str:
        return f"GeneralNames({list(self._names)!r})"

    def of_type(self, variant: type[GeneralName]) -> list[GeneralName]:
        """Return the names of one variant, in order."""
        return [name for name in self._names if isinstance(name, variant)]

    # ------------------------------------------------------------------
    # Codec
    # ------------------------------------------------------------------

    def to_asn1(self) -> GeneralNamesSchema:
        sequence = GeneralNamesSchema()
        sequence.clear()
        for position, name in enumerate(self._names):
            sequence.setComponentByPosition(position, name.encode())
        return sequence

    @classmethod
    def from_asn1(cls, sequence: GeneralNamesSchema) -> "GeneralNames":
        return cls(decode_general_name(bytes(element)) for element in sequence)

    def encode(self) -> bytes:
        """Return the DER ``SEQUENCE OF GeneralName``."""
        return encoder.encode(self.to_asn1())

    @classmethod
    def decode(cls, data: bytes) -> "GeneralNames":
        """Parse a DER ``SEQUENCE OF GeneralName``.

        Raises
        ------
        MalformedExtension
            If the outer structure is malformed or has trailing bytes.
        UnknownGeneralNameTag
            If an element uses a tag outside the nine choices.
        """
        try:
            sequence, rest = decoder.decode(bytes(data), asn1Spec=GeneralNamesSchema())
        except PyAsn1Error as exc:
            raise MalformedExtension(_CODEC_ID, str(exc)) from exc
        if rest:
            raise MalformedExtension(_CODEC_ID, f"{len(rest)} trailing byte(s)")
        return cls.from_asn1(sequence)


__all__ = [
    "DNSName",
    "DirectoryName",
    "EDIPartyName",
    "GeneralName",
    "GeneralNames",
    "GeneralNamesSchema",
    "IPAddress",
    "OtherName",
    "RFC822Name",
    "RegisteredID",
    "UniformResourceIdentifier",
    "X400Address",
    "decode_general_name",
]
