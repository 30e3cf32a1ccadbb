"""
Security package for certificate chain trust evaluation.
"""
from .errors import (
    FailureReason, CertificateValidationError, CertificateExpiredError,
    RevocationError, CertificateRevokedError, RevocationStatusUnavailableError,
    SubjectNotAllowedError, KeyUsageForbiddenError,
    UnspecifiedPathLengthNotAllowedError, PathLengthExceededError
)
from .models import CertificateFailure, ValidationOutcome, X509CertificateCredential, AuthenticationResult
from .revocation import RevocationChecker, NoOpRevocationChecker, CRLRevocationChecker, build_revocation_checker
from .chain_validator import ChainTrustValidator, ChainAudit, evaluate_chain
from .security_service import SecurityService
from .auth_middleware import MTLSAuthMiddleware, setup_mtls_authentication, require_authentication

__all__ = [
    'FailureReason',
    'CertificateValidationError',
    'CertificateExpiredError',
    'RevocationError',
    'CertificateRevokedError',
    'RevocationStatusUnavailableError',
    'SubjectNotAllowedError',
    'KeyUsageForbiddenError',
    'UnspecifiedPathLengthNotAllowedError',
    'PathLengthExceededError',
    'CertificateFailure',
    'ValidationOutcome',
    'X509CertificateCredential',
    'AuthenticationResult',
    'RevocationChecker',
    'NoOpRevocationChecker',
    'CRLRevocationChecker',
    'build_revocation_checker',
    'ChainTrustValidator',
    'ChainAudit',
    'evaluate_chain',
    'SecurityService',
    'MTLSAuthMiddleware',
    'setup_mtls_authentication',
    'require_authentication'
]
