"""
Security models for chain evaluation outcomes and client credentials.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from ..models.certificate import Certificate, CertificateChain
from .errors import FailureReason


@dataclass
class CertificateFailure:
    """Structured record of one failed per-certificate check."""
    index: int
    certificate: Certificate
    reason: FailureReason
    message: str

    def to_dict(self) -> dict:
        return {
            'index': self.index,
            'certificate': self.certificate.describe(),
            'reason': self.reason.value,
            'message': self.message,
        }


@dataclass
class ValidationOutcome:
    """Either Authenticated(leaf) or Rejected, plus diagnostics."""
    authenticated: bool
    leaf: Optional[Certificate] = None
    failures: List[CertificateFailure] = field(default_factory=list)
    reasons: List[FailureReason] = field(default_factory=list)

    @classmethod
    def authenticated_with(cls, leaf: Certificate) -> 'ValidationOutcome':
        return cls(authenticated=True, leaf=leaf)

    @classmethod
    def rejected(cls, failures: List[CertificateFailure],
                 reasons: List[FailureReason]) -> 'ValidationOutcome':
        return cls(authenticated=False, leaf=None, failures=failures, reasons=reasons)

    def __bool__(self):
        return self.authenticated

    def summary(self) -> str:
        """One-line description of the outcome."""
        if self.authenticated:
            return f"Authenticated: {self.leaf.subject_dn}"
        if not self.reasons:
            return "Rejected"
        return "Rejected: " + ", ".join(reason.value for reason in self.reasons)


@dataclass
class X509CertificateCredential:
    """Certificates presented by a client and the leaf selected for it."""
    certificates: CertificateChain
    certificate: Optional[Certificate] = None

    def __str__(self):
        if self.certificate is not None:
            return self.certificate.describe()
        return f"X509CertificateCredential({len(self.certificates)} certificates)"


@dataclass
class AuthenticationResult:
    """Result of client certificate authentication."""
    is_authenticated: bool
    client_id: Optional[str]
    error_message: Optional[str]
    certificate: Optional[Certificate] = None
    outcome: Optional[ValidationOutcome] = None
