"""
Models package for the certificate trust-policy evaluator.
"""

from .certificate import (
    Certificate, CertificateChain, load_pem_chain,
    END_ENTITY_PATH_LENGTH, UNSPECIFIED_PATH_LENGTH, KEY_USAGE_OID
)
from .config import Config, TrustPolicy, ConfigurationError, ConfigValidationError, ConfigValidationResult

__all__ = [
    'Certificate',
    'CertificateChain',
    'load_pem_chain',
    'END_ENTITY_PATH_LENGTH',
    'UNSPECIFIED_PATH_LENGTH',
    'KEY_USAGE_OID',
    'Config',
    'TrustPolicy',
    'ConfigurationError',
    'ConfigValidationError',
    'ConfigValidationResult'
]
