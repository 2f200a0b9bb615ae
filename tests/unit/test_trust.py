"""Tests for certkit.certificates.trust — TrustEvaluator."""
from __future__ import annotations

import datetime
import logging
from typing import Optional

import pytest

from certkit.algorithms import KeyType
from certkit.certificates import Certificate, CertificateBuilder, TrustEvaluator
from certkit.extensions import BasicConstraints, KeyUsageFlags
from certkit.keys import InMemorySecureStore, KeyPair
from certkit.names import Name

UTC = datetime.timezone.utc
NOW = datetime.datetime.now(UTC).replace(microsecond=0)


def _name(common_name: str) -> Name:
    return Name.from_attributes([("O", "certkit tests"), ("CN", common_name)])


def _issue(
    subject: str,
    subject_pair: KeyPair,
    issuer: Optional[str] = None,
    issuer_pair: Optional[KeyPair] = None,
    ca: bool = False,
    path_length: Optional[int] = None,
    not_before: Optional[datetime.datetime] = None,
    not_after: Optional[datetime.datetime] = None,
) -> Certificate:
    builder = (
        CertificateBuilder()
        .subject(_name(subject))
        .issuer(_name(issuer or subject))
        .public_key(
            subject_pair,
            usage=KeyUsageFlags.KEY_CERT_SIGN if ca else KeyUsageFlags.DIGITAL_SIGNATURE,
        )
        .valid_between(
            not_before or NOW - datetime.timedelta(hours=1),
            not_after or NOW + datetime.timedelta(days=30),
        )
    )
    if ca:
        builder.add_extension(BasicConstraints(ca=True, path_length=path_length))
    return builder.build(issuer_pair or subject_pair)


@pytest.fixture(scope="module")
def pairs() -> dict[str, KeyPair]:
    store = InMemorySecureStore()
    builder = KeyPair.Builder(KeyType.EC, 256, store=store)
    return {label: builder.generate(label) for label in ("root", "intermediate", "leaf", "rogue")}


@pytest.fixture(scope="module")
def root(pairs: dict[str, KeyPair]) -> Certificate:
    return _issue("Root CA", pairs["root"], ca=True)


@pytest.fixture(scope="module")
def intermediate(pairs: dict[str, KeyPair]) -> Certificate:
    return _issue(
        "Intermediate CA", pairs["intermediate"], "Root CA", pairs["root"], ca=True, path_length=0
    )


class TestTrustedPaths:
    def test_leaf_issued_by_anchor(self, pairs: dict[str, KeyPair], root: Certificate) -> None:
        leaf = _issue("leaf", pairs["leaf"], "Root CA", pairs["root"])
        result = TrustEvaluator([root]).evaluate(leaf)
        assert result.trusted, result.errors
        assert result.chain == [leaf, root]
        assert result.errors == []

    def test_through_intermediate(
        self, pairs: dict[str, KeyPair], root: Certificate, intermediate: Certificate
    ) -> None:
        leaf = _issue("leaf", pairs["leaf"], "Intermediate CA", pairs["intermediate"])
        result = TrustEvaluator([root]).evaluate(leaf, intermediates=[intermediate])
        assert result.trusted, result.errors
        assert result.chain == [leaf, intermediate, root]

    def test_anchor_itself(self, root: Certificate) -> None:
        result = TrustEvaluator([root]).evaluate(root)
        assert result.trusted
        assert result.chain == [root]

    def test_anchor_forms(self, pairs: dict[str, KeyPair], root: Certificate) -> None:
        leaf = _issue("leaf", pairs["leaf"], "Root CA", pairs["root"])
        assert TrustEvaluator([root.pem()]).evaluate(leaf.encoded()).trusted
        assert TrustEvaluator([root.to_cryptography()]).evaluate(leaf).trusted


class TestUntrustedPaths:
    def test_missing_intermediate(self, pairs: dict[str, KeyPair], root: Certificate) -> None:
        leaf = _issue("leaf", pairs["leaf"], "Intermediate CA", pairs["intermediate"])
        result = TrustEvaluator([root]).evaluate(leaf)
        assert not result.trusted
        assert result.chain == [leaf]
        assert any("No trusted issuer" in error for error in result.errors)

    def test_path_length_exceeded(self, pairs: dict[str, KeyPair], root: Certificate) -> None:
        strict_root = _issue("Strict Root", pairs["root"], ca=True, path_length=0)
        inter = _issue(
            "Intermediate CA", pairs["intermediate"], "Strict Root", pairs["root"], ca=True
        )
        leaf = _issue("leaf", pairs["leaf"], "Intermediate CA", pairs["intermediate"])
        result = TrustEvaluator([strict_root]).evaluate(leaf, intermediates=[inter])
        assert not result.trusted
        assert any("allows 0 intermediate" in error for error in result.errors)

    def test_issuer_is_not_a_ca(self, pairs: dict[str, KeyPair]) -> None:
        not_ca = _issue("Plain", pairs["root"])
        leaf = _issue("leaf", pairs["leaf"], "Plain", pairs["root"])
        result = TrustEvaluator([not_ca]).evaluate(leaf)
        assert not result.trusted
        assert any("is not a CA certificate" in error for error in result.errors)

    def test_forged_signature(self, pairs: dict[str, KeyPair], root: Certificate) -> None:
        forged = _issue("leaf", pairs["leaf"], "Root CA", pairs["rogue"])
        result = TrustEvaluator([root]).evaluate(forged)
        assert not result.trusted
        assert any("does not verify" in error for error in result.errors)

    def test_expired_leaf(self, pairs: dict[str, KeyPair], root: Certificate) -> None:
        leaf = _issue(
            "leaf",
            pairs["leaf"],
            "Root CA",
            pairs["root"],
            not_before=NOW - datetime.timedelta(days=10),
            not_after=NOW - datetime.timedelta(days=1),
        )
        result = TrustEvaluator([root]).evaluate(leaf)
        assert not result.trusted
        assert result.chain == [leaf, root]
        assert any("is not valid at" in error for error in result.errors)

    def test_anchor_outside_validity(self, root: Certificate) -> None:
        later = NOW + datetime.timedelta(days=365)
        result = TrustEvaluator([root], at_time=later).evaluate(root)
        assert not result.trusted

    def test_max_depth(
        self, pairs: dict[str, KeyPair], root: Certificate, intermediate: Certificate
    ) -> None:
        leaf = _issue("leaf", pairs["leaf"], "Intermediate CA", pairs["intermediate"])
        result = TrustEvaluator([root], max_depth=2).evaluate(leaf, intermediates=[intermediate])
        assert not result.trusted
        assert any("No anchor reached" in error for error in result.errors)

    def test_failure_is_logged(
        self, pairs: dict[str, KeyPair], root: Certificate, caplog: pytest.LogCaptureFixture
    ) -> None:
        forged = _issue("leaf", pairs["leaf"], "Root CA", pairs["rogue"])
        with caplog.at_level(logging.WARNING, logger="certkit.certificates.trust"):
            TrustEvaluator([root]).evaluate(forged)
        assert "Trust evaluation failed" in caplog.text
