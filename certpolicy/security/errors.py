"""
Failure taxonomy for certificate chain evaluation.

Per-certificate failures are raised as ``CertificateValidationError``
subclasses and caught by the chain validator; none of them is fatal to the
process. Chain-level failures are only reported as ``FailureReason`` values.
"""
from enum import Enum
from typing import Optional

from ..models.certificate import Certificate


class FailureReason(str, Enum):
    EXPIRED = "expired"
    REVOKED = "revoked"
    REVOCATION_UNAVAILABLE = "revocation_unavailable"
    SUBJECT_NOT_ALLOWED = "subject_not_allowed"
    KEY_USAGE_FORBIDDEN = "key_usage_forbidden"
    UNSPECIFIED_PATH_LENGTH_NOT_ALLOWED = "unspecified_path_length_not_allowed"
    PATH_LENGTH_EXCEEDED = "path_length_exceeded"
    INVALID_CERTIFICATE = "invalid_certificate"
    # Derived from the whole chain, never raised
    MISSING_TRUSTED_ISSUER = "missing_trusted_issuer"
    NO_END_ENTITY_CERTIFICATE = "no_end_entity_certificate"


class CertificateValidationError(Exception):
    """A single certificate failed a policy check."""

    reason = FailureReason.INVALID_CERTIFICATE

    def __init__(self, message: str, certificate: Optional[Certificate] = None):
        super().__init__(message)
        self.message = message
        self.certificate = certificate


class CertificateExpiredError(CertificateValidationError):
    reason = FailureReason.EXPIRED


class RevocationError(CertificateValidationError):
    """Base class for failures reported by a revocation checker."""
    reason = FailureReason.REVOKED


class CertificateRevokedError(RevocationError):
    reason = FailureReason.REVOKED


class RevocationStatusUnavailableError(RevocationError):
    reason = FailureReason.REVOCATION_UNAVAILABLE


class SubjectNotAllowedError(CertificateValidationError):
    reason = FailureReason.SUBJECT_NOT_ALLOWED


class KeyUsageForbiddenError(CertificateValidationError):
    reason = FailureReason.KEY_USAGE_FORBIDDEN


class UnspecifiedPathLengthNotAllowedError(CertificateValidationError):
    reason = FailureReason.UNSPECIFIED_PATH_LENGTH_NOT_ALLOWED


class PathLengthExceededError(CertificateValidationError):
    reason = FailureReason.PATH_LENGTH_EXCEEDED
