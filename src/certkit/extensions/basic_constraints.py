"""BasicConstraints extension (OID 2.5.29.19)."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import ClassVar, Optional

from pyasn1.type.base import Asn1Item
from pyasn1_modules import rfc5280

from certkit import oids
from certkit.extensions.base import ExtensionValue, register_extension


@register_extension
@dataclass(frozen=True)
class BasicConstraints(ExtensionValue):
    """Whether the subject is a CA and how deep a path below it may go.

    Parameters
    ----------
    ca:
        True for certificate authorities.
    path_length:
        Maximum number of intermediate CAs below this one; only meaningful
        when *ca* is True.
    critical:
        Emitted critical unless a parsed certificate says otherwise.
    """

    ca: bool = False
    path_length: Optional[int] = None
    critical: bool = True

    extension_id: ClassVar[str] = oids.BASIC_CONSTRAINTS
    schema: ClassVar[Asn1Item] = rfc5280.BasicConstraints()

    def __post_init__(self) -> None:
        if self.path_length is not None:
            if not self.ca:
                raise ValueError("path_length is only allowed when ca is True")
            if self.path_length < 0:
                raise ValueError(f"path_length must be >= 0, got {self.path_length}")

    def with_critical(self, critical: bool) -> "BasicConstraints":
        return replace(self, critical=critical)

    def to_asn1(self) -> Asn1Item:
        value = rfc5280.BasicConstraints()
        value.clear()
        if self.ca:
            value["cA"] = True
        if self.path_length is not None:
            value["pathLenConstraint"] = self.path_length
        return value

    @classmethod
    def from_asn1(cls, value: Asn1Item) -> "BasicConstraints":
        path_length = value.getComponentByName(
            "pathLenConstraint", default=None, instantiate=False
        )
        ca = value.getComponentByName("cA", default=None, instantiate=False)
        return cls(
            ca=bool(ca) if ca is not None and ca.isValue else False,
            path_length=int(path_length) if path_length is not None and path_length.isValue else None,
        )


__all__ = ["BasicConstraints"]
