"""ExtensionValue contract and the OID-keyed extension registry.

Every certificate extension type implements :class:`ExtensionValue`: it
names its OID, declares the pyasn1 schema its ``extnValue`` octets follow,
and converts between typed Python values and that schema. The registry maps
OIDs to extension classes so the certificate parser can turn an unknown
``extnValue`` back into a typed value without hard-coding every type.
Unregistered extensions are preserved verbatim as
:class:`UnrecognizedExtension`.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, ClassVar, Iterator, TypeVar

from pyasn1.codec.der import decoder, encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type.base import Asn1Item
from pyasn1_modules import rfc5280

from certkit.errors import MalformedExtension

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="ExtensionValue")


class ExtensionValue(ABC):
    """Capability every certificate-extension type provides.

    Subclasses set :attr:`extension_id` and :attr:`schema` as class
    attributes and implement :meth:`to_asn1` / :meth:`from_asn1`.
    :meth:`encode` and :meth:`decode` are shared and enforce DER: decoding
    rejects trailing bytes, missing fields and tag mismatches, and any input
    whose re-encoding differs from the original octets.
    """

    extension_id: ClassVar[str]
    schema: ClassVar[Asn1Item]

    @property
    @abstractmethod
    def critical(self) -> bool:
        """Whether certificates carry this extension marked critical."""

    @abstractmethod
    def to_asn1(self) -> Asn1Item:
        """Return a populated pyasn1 value conforming to :attr:`schema`."""

    @classmethod
    @abstractmethod
    def from_asn1(cls: type[E], value: Asn1Item) -> E:
        """Build a typed value from a decoded pyasn1 value."""

    def with_critical(self: E, critical: bool) -> E:
        """Return this value carrying the criticality read from a certificate.

        Types whose criticality is fixed ignore *critical* and return
        themselves unchanged.
        """
        return self

    # ------------------------------------------------------------------
    # Codec
    # ------------------------------------------------------------------

    def encode(self) -> bytes:
        """Return the DER encoding of this value (the ``extnValue`` octets)."""
        try:
            return encoder.encode(self.to_asn1())
        except PyAsn1Error as exc:
            raise MalformedExtension(self.extension_id, f"cannot encode: {exc}") from exc

    @classmethod
    def decode(cls: type[E], data: bytes) -> E:
        """Parse ``extnValue`` octets into a typed value.

        Raises
        ------
        MalformedExtension
            If *data* does not conform to :attr:`schema` or is not DER.
        """
        data = bytes(data)
        try:
            asn1_value, rest = decoder.decode(data, asn1Spec=cls.schema.clone())
        except PyAsn1Error as exc:
            raise MalformedExtension(cls.extension_id, str(exc)) from exc
        if rest:
            raise MalformedExtension(cls.extension_id, f"{len(rest)} trailing byte(s)")
        try:
            result = cls.from_asn1(asn1_value)
        except (PyAsn1Error, ValueError) as exc:
            raise MalformedExtension(cls.extension_id, str(exc)) from exc
        if result.encode() != data:
            raise MalformedExtension(cls.extension_id, "encoding is not canonical DER")
        return result

    def to_extension(self) -> rfc5280.Extension:
        """Wrap this value in an RFC 5280 ``Extension`` structure."""
        extension = rfc5280.Extension()
        extension["extnID"] = self.extension_id
        if self.critical:
            extension["critical"] = True
        extension["extnValue"] = self.encode()
        return extension


@dataclass(frozen=True)
class UnrecognizedExtension:
    """An extension whose OID is not registered; kept but not interpreted."""

    extension_id: str
    critical: bool
    value: bytes

    def encode(self) -> bytes:
        return self.value

    def to_extension(self) -> rfc5280.Extension:
        extension = rfc5280.Extension()
        extension["extnID"] = self.extension_id
        if self.critical:
            extension["critical"] = True
        extension["extnValue"] = self.value
        return extension


# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------


class ExtensionAlreadyRegisteredError(ValueError):
    """Raised when a second class is registered for an extension OID."""

    def __init__(self, extension_id: str, existing: type) -> None:
        self.extension_id = extension_id
        self.existing = existing
        super().__init__(
            f"Extension {extension_id} is already registered to {existing.__name__}"
        )


class ExtensionRegistry:
    """Lookup table from extension OID to :class:`ExtensionValue` subclass.

    Third parties add extension kinds by registering a class; the core codec
    never needs to change.
    """

    def __init__(self) -> None:
        self._types: dict[str, type[ExtensionValue]] = {}

    def register(self, cls: type[E]) -> type[E]:
        """Register *cls* under its ``extension_id``; usable as a decorator.

        Raises
        ------
        TypeError
            If *cls* is not a concrete ExtensionValue subclass.
        ExtensionAlreadyRegisteredError
            If another class already owns the OID.
        """
        if not isinstance(cls, type) or not issubclass(cls, ExtensionValue):
            raise TypeError(f"{cls!r} must be a subclass of ExtensionValue")
        extension_id = getattr(cls, "extension_id", None)
        if not extension_id:
            raise TypeError(f"{cls.__name__} does not declare an extension_id")
        existing = self._types.get(extension_id)
        if existing is not None and existing is not cls:
            raise ExtensionAlreadyRegisteredError(extension_id, existing)
        self._types[extension_id] = cls
        logger.debug("Registered extension %s -> %s", extension_id, cls.__name__)
        return cls

    def unregister(self, extension_id: str) -> None:
        """Remove a registration.

        Raises
        ------
        KeyError
            If nothing is registered for *extension_id*.
        """
        del self._types[extension_id]

    def get(self, extension_id: str) -> type[ExtensionValue] | None:
        return self._types.get(extension_id)

    def __contains__(self, extension_id: object) -> bool:
        return extension_id in self._types

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._types))

    def decode(
        self, extension_id: str, critical: bool, value: bytes
    ) -> ExtensionValue | UnrecognizedExtension:
        """Decode an ``extnValue`` into its registered type.

        Unregistered OIDs come back as :class:`UnrecognizedExtension` holding
        the untouched octets.
        """
        cls = self._types.get(extension_id)
        if cls is None:
            return UnrecognizedExtension(extension_id, critical, bytes(value))
        return cls.decode(value).with_critical(critical)


default_registry = ExtensionRegistry()

register_extension: Callable[[type[E]], type[E]] = default_registry.register


def extension_type_for(extension_id: str) -> type[ExtensionValue] | None:
    """Return the class registered in the default registry for an OID."""
    return default_registry.get(extension_id)


__all__ = [
    "ExtensionAlreadyRegisteredError",
    "ExtensionRegistry",
    "ExtensionValue",
    "UnrecognizedExtension",
    "default_registry",
    "extension_type_for",
    "register_extension",
]
