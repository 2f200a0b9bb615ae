"""Key pair lifecycle management.

Provides key generation through a crypto provider, persistence in secure
stores, PKCS#12 archive export/import and certificate matching.
"""
from __future__ import annotations

from certkit.keys.archive import export_archive, load_archive
from certkit.keys.key import PrivateKey, PublicKey
from certkit.keys.keypair import KeyPair, KeyPairBuilder, default_store
from certkit.keys.provider import CryptographyProvider, CryptoProvider
from certkit.keys.store import (
    FilesystemSecureStore,
    InMemorySecureStore,
    KeyHandle,
    KeyKind,
    SecureStore,
    StoredKey,
)

__all__ = [
    "CryptoProvider",
    "CryptographyProvider",
    "FilesystemSecureStore",
    "InMemorySecureStore",
    "KeyHandle",
    "KeyKind",
    "KeyPair",
    "KeyPairBuilder",
    "PrivateKey",
    "PublicKey",
    "SecureStore",
    "StoredKey",
    "default_store",
    "export_archive",
    "load_archive",
]
