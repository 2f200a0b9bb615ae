"""X.509 certificates: parsing, building and trust evaluation."""
from __future__ import annotations

from certkit.certificates.builder import BuilderState, CertificateBuilder
from certkit.certificates.certificate import Certificate, load_certificate
from certkit.certificates.trust import TrustEvaluator, TrustResult

__all__ = [
    "BuilderState",
    "Certificate",
    "CertificateBuilder",
    "TrustEvaluator",
    "TrustResult",
    "load_certificate",
]
