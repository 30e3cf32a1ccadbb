"""
Services package for the certificate trust-policy evaluator.
"""

from .config_service import ConfigService
from .logging_service import LoggingService, JSONFormatter, AuditTrail

__all__ = [
    'ConfigService',
    'LoggingService',
    'JSONFormatter',
    'AuditTrail'
]
