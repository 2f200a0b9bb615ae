"""certkit — X.509 certificate building and asymmetric key pair lifecycle.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import certkit
>>> certkit.__version__
'0.1.0'

Quick start
-----------
::

    from certkit import (
        # Keys
        KeyPair, KeyType, KeyFlags, Padding, DigestAlgorithm,
        # Certificates
        CertificateBuilder, Certificate, NameBuilder, TrustEvaluator,
        # Extensions
        SubjectAltName, DNSName, KeyUsageFlags,
    )

    pair = KeyPair.Builder(KeyType.RSA, 2048).generate(label="Test RSA Key")
    name = NameBuilder().add("Unit Testing", "CN").name
    cert = (
        CertificateBuilder()
        .subject(name)
        .issuer(name)
        .public_key(pair, usage=KeyUsageFlags.KEY_ENCIPHERMENT)
        .valid(86400 * 5)
        .build(pair.private_key)
    )
    assert pair.matches_certificate(cert, trusted_certificates=[cert])
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ------------------------------------------------------------------
# Errors and configuration
# ------------------------------------------------------------------
from certkit.errors import (
    BuilderStateError,
    CertKitError,
    CorruptArchive,
    CryptoOperationFailed,
    EncodingFailed,
    ExportUnsupported,
    HandleNotFound,
    IncompleteCertificate,
    InvalidBuilderState,
    InvalidCertificate,
    InvalidPassword,
    InvalidValidityPeriod,
    KeyGenerationFailed,
    KeyNotFound,
    KeyNotPersisted,
    KeyStoreError,
    MalformedExtension,
    MalformedInputError,
    UnknownGeneralNameTag,
    UnsupportedKeySize,
)
from certkit.policy import DEFAULT_POLICY, KeyPolicy

# ------------------------------------------------------------------
# Algorithms and keys
# ------------------------------------------------------------------
from certkit.algorithms import DigestAlgorithm, KeyAlgorithm, KeyFlags, KeyType, Padding
from certkit.keys import (
    CryptographyProvider,
    CryptoProvider,
    FilesystemSecureStore,
    InMemorySecureStore,
    KeyHandle,
    KeyPair,
    KeyPairBuilder,
    PrivateKey,
    PublicKey,
    SecureStore,
)

# ------------------------------------------------------------------
# Names and extensions
# ------------------------------------------------------------------
from certkit.names import Name, NameBuilder
from certkit.extensions import (
    BasicConstraints,
    DirectoryName,
    DNSName,
    EDIPartyName,
    ExtensionValue,
    GeneralName,
    GeneralNames,
    IPAddress,
    KeyUsage,
    KeyUsageFlags,
    OtherName,
    RegisteredID,
    RFC822Name,
    SubjectAltName,
    UniformResourceIdentifier,
    UnrecognizedExtension,
    X400Address,
    register_extension,
)

# ------------------------------------------------------------------
# Certificates
# ------------------------------------------------------------------
from certkit.certificates import (
    BuilderState,
    Certificate,
    CertificateBuilder,
    TrustEvaluator,
    TrustResult,
    load_certificate,
)

__all__ = [
    # version
    "__version__",
    # errors
    "BuilderStateError",
    "CertKitError",
    "CorruptArchive",
    "CryptoOperationFailed",
    "EncodingFailed",
    "ExportUnsupported",
    "HandleNotFound",
    "IncompleteCertificate",
    "InvalidBuilderState",
    "InvalidCertificate",
    "InvalidPassword",
    "InvalidValidityPeriod",
    "KeyGenerationFailed",
    "KeyNotFound",
    "KeyNotPersisted",
    "KeyStoreError",
    "MalformedExtension",
    "MalformedInputError",
    "UnknownGeneralNameTag",
    "UnsupportedKeySize",
    # configuration
    "DEFAULT_POLICY",
    "KeyPolicy",
    # algorithms and keys
    "CryptoProvider",
    "CryptographyProvider",
    "DigestAlgorithm",
    "FilesystemSecureStore",
    "InMemorySecureStore",
    "KeyAlgorithm",
    "KeyFlags",
    "KeyHandle",
    "KeyPair",
    "KeyPairBuilder",
    "KeyType",
    "Padding",
    "PrivateKey",
    "PublicKey",
    "SecureStore",
    # names and extensions
    "BasicConstraints",
    "DNSName",
    "DirectoryName",
    "EDIPartyName",
    "ExtensionValue",
    "GeneralName",
    "GeneralNames",
    "IPAddress",
    "KeyUsage",
    "KeyUsageFlags",
    "Name",
    "NameBuilder",
    "OtherName",
    "RFC822Name",
    "RegisteredID",
    "SubjectAltName",
    "UniformResourceIdentifier",
    "UnrecognizedExtension",
    "X400Address",
    "register_extension",
    # certificates
    "BuilderState",
    "Certificate",
    "CertificateBuilder",
    "TrustEvaluator",
    "TrustResult",
    "load_certificate",
]
