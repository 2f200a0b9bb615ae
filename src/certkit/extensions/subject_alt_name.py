"""SubjectAltName extension (OID 2.5.29.17).

The extension value is a ``GeneralNames`` sequence. This implementation
always emits it non-critical; callers cannot change that.
"""
from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import ClassVar, Iterator, Union

from pyasn1.type.base import Asn1Item

from certkit import oids
from certkit.extensions.base import ExtensionValue, register_extension
from certkit.extensions.general_name import (
    DirectoryName,
    DNSName,
    GeneralName,
    GeneralNames,
    GeneralNamesSchema,
    IPAddress,
    RFC822Name,
    UniformResourceIdentifier,
)
from certkit.names import Name


@register_extension
@dataclass(frozen=True)
class SubjectAltName(ExtensionValue):
    """Subject Alternative Name: the additional identities bound to a key.

    Parameters
    ----------
    names:
        The general names, in wire order. Any iterable of
        :class:`GeneralName` is accepted and stored as :class:`GeneralNames`.
    """

    names: GeneralNames = field(default_factory=GeneralNames)

    extension_id: ClassVar[str] = oids.SUBJECT_ALT_NAME
    schema: ClassVar[Asn1Item] = GeneralNamesSchema()

    def __post_init__(self) -> None:
        if not isinstance(self.names, GeneralNames):
            object.__setattr__(self, "names", GeneralNames(self.names))

    @property
    def critical(self) -> bool:
        return False

    def to_asn1(self) -> GeneralNamesSchema:
        return self.names.to_asn1()

    @classmethod
    def from_asn1(cls, value: Asn1Item) -> "SubjectAltName":
        return cls(GeneralNames.from_asn1(value))

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    @classmethod
    def of(cls, *names: GeneralName) -> "SubjectAltName":
        """Build from positional names: ``SubjectAltName.of(DNSName("a"), ...)``."""
        return cls(GeneralNames(names))

    def dns_names(self) -> list[str]:
        return [name.value for name in self.names.of_type(DNSName)]

    def email_addresses(self) -> list[str]:
        return [name.value for name in self.names.of_type(RFC822Name)]

    def uris(self) -> list[str]:
        return [name.value for name in self.names.of_type(UniformResourceIdentifier)]

    def ip_addresses(self) -> list[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
        return [name.address for name in self.names.of_type(IPAddress)]

    def directory_names(self) -> list[Name]:
        return [name.name for name in self.names.of_type(DirectoryName)]

    def __iter__(self) -> Iterator[GeneralName]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)


__all__ = ["SubjectAltName"]
