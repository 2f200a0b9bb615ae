"""Shared fixtures: key pairs are expensive to generate, so share them per session."""
from __future__ import annotations

import datetime

import pytest

from certkit.algorithms import KeyType
from certkit.certificates import Certificate, CertificateBuilder
from certkit.extensions import KeyUsageFlags
from certkit.keys import InMemorySecureStore, KeyPair
from certkit.names import Name, NameBuilder


@pytest.fixture(scope="session")
def session_store() -> InMemorySecureStore:
    return InMemorySecureStore()


@pytest.fixture(scope="session")
def rsa_pair(session_store: InMemorySecureStore) -> KeyPair:
    return KeyPair.Builder(KeyType.RSA, 2048, store=session_store).generate(
        label="Test RSA Key", tag=b"Test RSA Key"
    )


@pytest.fixture(scope="session")
def ec_pair(session_store: InMemorySecureStore) -> KeyPair:
    return KeyPair.Builder(KeyType.EC, 256, store=session_store).generate(
        label="Test EC Key", tag=b"Test EC Key"
    )


@pytest.fixture()
def store() -> InMemorySecureStore:
    """A fresh store for tests that delete or count entries."""
    return InMemorySecureStore()


@pytest.fixture()
def unit_name() -> Name:
    return NameBuilder().add("Unit Testing", "CN").name


def _issue_self_signed(pair: KeyPair, name: Name, days: int = 5) -> Certificate:
    return (
        CertificateBuilder()
        .subject(name)
        .issuer(name)
        .public_key(pair, usage=KeyUsageFlags.KEY_ENCIPHERMENT)
        .valid(datetime.timedelta(days=days))
        .build(pair.private_key)
    )


@pytest.fixture()
def self_signed():
    """Factory issuing a self-signed certificate for a key pair."""
    return _issue_self_signed
