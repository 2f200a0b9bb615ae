"""Certificate extension values and their ASN.1 codecs.

Importing this package registers the built-in extension types
(SubjectAltName, KeyUsage, BasicConstraints) with the default registry.
"""
from __future__ import annotations

from certkit.extensions.base import (
    ExtensionAlreadyRegisteredError,
    ExtensionRegistry,
    ExtensionValue,
    UnrecognizedExtension,
    default_registry,
    extension_type_for,
    register_extension,
)
from certkit.extensions.basic_constraints import BasicConstraints
from certkit.extensions.general_name import (
    DirectoryName,
    DNSName,
    EDIPartyName,
    GeneralName,
    GeneralNames,
    IPAddress,
    OtherName,
    RegisteredID,
    RFC822Name,
    UniformResourceIdentifier,
    X400Address,
    decode_general_name,
)
from certkit.extensions.key_usage import KeyUsage, KeyUsageFlags
from certkit.extensions.subject_alt_name import SubjectAltName

__all__ = [
    "BasicConstraints",
    "DNSName",
    "DirectoryName",
    "EDIPartyName",
    "ExtensionAlreadyRegisteredError",
    "ExtensionRegistry",
    "ExtensionValue",
    "GeneralName",
    "GeneralNames",
    "IPAddress",
    "KeyUsage",
    "KeyUsageFlags",
    "OtherName",
    "RFC822Name",
    "RegisteredID",
    "SubjectAltName",
    "UniformResourceIdentifier",
    "UnrecognizedExtension",
    "X400Address",
    "decode_general_name",
    "default_registry",
    "extension_type_for",
    "register_extension",
]
