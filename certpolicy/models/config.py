"""
Configuration data models for the certificate trust-policy evaluator.
"""
import re
from dataclasses import dataclass, field
from typing import List, Pattern


DEFAULT_SUBJECT_DN_PATTERN = ".*"
DEFAULT_MAX_PATH_LENGTH = 1

REVOCATION_CHECKERS = ("none", "crl")
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ConfigurationError(ValueError):
    """Raised when a policy cannot be built from the supplied settings."""


def compile_pattern(name: str, pattern: str) -> Pattern:
    """Compile a DN pattern, reporting regex errors as configuration errors."""
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"Invalid {name} '{pattern}': {e}")


@dataclass(frozen=True)
class TrustPolicy:
    """
    Immutable authentication policy applied to every submitted chain.

    Patterns are compiled once, when the policy is built, and matched against
    the full canonical DN string.
    """
    trusted_issuer_pattern: Pattern
    subject_pattern: Pattern = field(default_factory=lambda: re.compile(DEFAULT_SUBJECT_DN_PATTERN))
    max_path_length: int = DEFAULT_MAX_PATH_LENGTH
    allow_unspecified_path_length: bool = False
    check_key_usage: bool = False
    require_key_usage: bool = False

    def __post_init__(self):
        if self.trusted_issuer_pattern is None:
            raise ConfigurationError("trusted_issuer_pattern is required")
        for name in ('trusted_issuer_pattern', 'subject_pattern'):
            if not isinstance(getattr(self, name), re.Pattern):
                raise ConfigurationError(
                    f"{name} must be a compiled regular expression; use TrustPolicy.compile() for strings"
                )
        if not isinstance(self.max_path_length, int) or isinstance(self.max_path_length, bool):
            raise ConfigurationError("max_path_length must be an integer")

    @classmethod
    def compile(cls, trusted_issuer_dn_pattern: str,
                subject_dn_pattern: str = DEFAULT_SUBJECT_DN_PATTERN,
                max_path_length: int = DEFAULT_MAX_PATH_LENGTH,
                allow_unspecified_path_length: bool = False,
                check_key_usage: bool = False,
                require_key_usage: bool = False) -> 'TrustPolicy':
        """
        Build a policy from pattern strings.

        Raises:
            ConfigurationError: If the trusted issuer pattern is missing or
                either pattern is not a valid regular expression
        """
        if not trusted_issuer_dn_pattern:
            raise ConfigurationError("trusted_issuer_dn_pattern is required")

        return cls(
            trusted_issuer_pattern=compile_pattern("trusted_issuer_dn_pattern", trusted_issuer_dn_pattern),
            subject_pattern=compile_pattern("subject_dn_pattern", subject_dn_pattern),
            max_path_length=max_path_length,
            allow_unspecified_path_length=allow_unspecified_path_length,
            check_key_usage=check_key_usage,
            require_key_usage=require_key_usage,
        )


@dataclass
class Config:
    """Main configuration class containing all application settings."""

    # Trust policy settings
    trusted_issuer_dn_pattern: str = ""
    subject_dn_pattern: str = DEFAULT_SUBJECT_DN_PATTERN
    max_path_length: int = DEFAULT_MAX_PATH_LENGTH
    allow_unspecified_path_length: bool = False
    check_key_usage: bool = False
    require_key_usage: bool = False

    # Revocation settings
    revocation_checker: str = "none"
    crl_sources: List[str] = field(default_factory=list)
    crl_fetch_timeout_seconds: int = 30
    allow_unavailable_crl: bool = False

    # Security settings (mTLS)
    enable_mtls: bool = False
    client_cert_required: bool = True

    # Application settings
    log_level: str = "INFO"
    log_file_path: str = "logs/certpolicy.log"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_types()

    def _validate_types(self):
        """Ensure all configuration values have correct types."""
        if not isinstance(self.max_path_length, int) or isinstance(self.max_path_length, bool):
            raise ValueError("max_path_length must be an integer")

        if not isinstance(self.crl_fetch_timeout_seconds, int) or self.crl_fetch_timeout_seconds <= 0:
            raise ValueError("crl_fetch_timeout_seconds must be a positive integer")

        if self.revocation_checker not in REVOCATION_CHECKERS:
            raise ValueError(f"revocation_checker must be one of: {', '.join(REVOCATION_CHECKERS)}")

        if self.log_level not in LOG_LEVELS:
            raise ValueError("log_level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    def to_trust_policy(self) -> TrustPolicy:
        """Compile the policy settings into a TrustPolicy."""
        return TrustPolicy.compile(
            trusted_issuer_dn_pattern=self.trusted_issuer_dn_pattern,
            subject_dn_pattern=self.subject_dn_pattern,
            max_path_length=self.max_path_length,
            allow_unspecified_path_length=self.allow_unspecified_path_length,
            check_key_usage=self.check_key_usage,
            require_key_usage=self.require_key_usage,
        )


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    severity: str = "error"  # error, warning

    def __str__(self):
        return f"{self.severity.upper()}: {self.field} - {self.message}"


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: List[ConfigValidationError]
    warnings: List[ConfigValidationError]

    def __post_init__(self):
        """Separate errors and warnings."""
        all_issues = self.errors + self.warnings
        self.errors = [e for e in all_issues if e.severity == "error"]
        self.warnings = [e for e in all_issues if e.severity == "warning"]

    def has_errors(self) -> bool:
        """Check if there are any validation errors."""
        return len(self.errors) > 0

    def has_warnings(self) -> bool:
        """Check if there are any validation warnings."""
        return len(self.warnings) > 0

    def get_error_summary(self) -> str:
        """Get a formatted summary of all errors and warnings."""
        lines = []

        if self.errors:
            lines.append("Configuration Errors:")
            for error in self.errors:
                lines.append(f"  - {error}")

        if self.warnings:
            lines.append("Configuration Warnings:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")

        return "\n".join(lines) if lines else "Configuration is valid"
