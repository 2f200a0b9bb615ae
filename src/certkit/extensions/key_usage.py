"""KeyUsage extension (OID 2.5.29.15)."""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntFlag
from typing import ClassVar

from pyasn1.type.base import Asn1Item
from pyasn1_modules import rfc5280

from certkit import oids
from certkit.extensions.base import ExtensionValue, register_extension


class KeyUsageFlags(IntFlag):
    """Key usage bits; the flag value ``1 << n`` is named bit ``n``."""

    NONE = 0
    DIGITAL_SIGNATURE = 1 << 0
    NON_REPUDIATION = 1 << 1
    KEY_ENCIPHERMENT = 1 << 2
    DATA_ENCIPHERMENT = 1 << 3
    KEY_AGREEMENT = 1 << 4
    KEY_CERT_SIGN = 1 << 5
    CRL_SIGN = 1 << 6
    ENCIPHER_ONLY = 1 << 7
    DECIPHER_ONLY = 1 << 8


_BIT_COUNT = 9


@register_extension
@dataclass(frozen=True)
class KeyUsage(ExtensionValue):
    """Purposes the certified public key may be used for. Critical by default."""

    flags: KeyUsageFlags
    critical: bool = True

    extension_id: ClassVar[str] = oids.KEY_USAGE
    schema: ClassVar[Asn1Item] = rfc5280.KeyUsage()

    def __post_init__(self) -> None:
        object.__setattr__(self, "flags", KeyUsageFlags(self.flags))
        if not self.flags:
            raise ValueError("KeyUsage requires at least one usage bit")

    def with_critical(self, critical: bool) -> "KeyUsage":
        return replace(self, critical=critical)

    def to_asn1(self) -> Asn1Item:
        # DER drops trailing zero bits, so stop at the highest set bit.
        highest = int(self.flags).bit_length()
        bits = "".join("1" if int(self.flags) & (1 << n) else "0" for n in range(highest))
        return rfc5280.KeyUsage(binValue=bits)

    @classmethod
    def from_asn1(cls, value: Asn1Item) -> "KeyUsage":
        bits = value.asBinary()
        if len(bits) > _BIT_COUNT:
            raise ValueError(f"KeyUsage has {len(bits)} bits; at most {_BIT_COUNT} are defined")
        flags = KeyUsageFlags.NONE
        for position, bit in enumerate(bits):
            if bit == "1":
                flags |= KeyUsageFlags(1 << position)
        return cls(flags)

    def __contains__(self, flag: KeyUsageFlags) -> bool:
        return bool(self.flags & flag)


__all__ = ["KeyUsage", "KeyUsageFlags"]
