"""
Configuration service for loading and validating trust policy settings.
"""
import os
import re
import configparser
from typing import Optional, Dict, Any, List
import logging

from ..models.config import Config, ConfigValidationError, ConfigValidationResult


# Maps "section.key" and flat keys to (Config field, type)
CONFIG_MAPPING = {
    # Trust policy settings
    "policy.trusted_issuer_dn_pattern": ("trusted_issuer_dn_pattern", str),
    "trusted_issuer_dn_pattern": ("trusted_issuer_dn_pattern", str),
    "policy.subject_dn_pattern": ("subject_dn_pattern", str),
    "subject_dn_pattern": ("subject_dn_pattern", str),
    "policy.max_path_length": ("max_path_length", int),
    "max_path_length": ("max_path_length", int),
    "policy.allow_unspecified_path_length": ("allow_unspecified_path_length", bool),
    "allow_unspecified_path_length": ("allow_unspecified_path_length", bool),
    "policy.check_key_usage": ("check_key_usage", bool),
    "check_key_usage": ("check_key_usage", bool),
    "policy.require_key_usage": ("require_key_usage", bool),
    "require_key_usage": ("require_key_usage", bool),

    # Revocation settings
    "revocation.checker": ("revocation_checker", str),
    "revocation_checker": ("revocation_checker", str),
    "revocation.crl_sources": ("crl_sources", list),
    "crl_sources": ("crl_sources", list),
    "revocation.fetch_timeout_seconds": ("crl_fetch_timeout_seconds", int),
    "crl_fetch_timeout_seconds": ("crl_fetch_timeout_seconds", int),
    "revocation.allow_unavailable": ("allow_unavailable_crl", bool),
    "allow_unavailable_crl": ("allow_unavailable_crl", bool),

    # Security settings
    "security.enable_mtls": ("enable_mtls", bool),
    "enable_mtls": ("enable_mtls", bool),
    "security.client_cert_required": ("client_cert_required", bool),
    "client_cert_required": ("client_cert_required", bool),

    # Application settings
    "app.log_level": ("log_level", str),
    "log_level": ("log_level", str),
    "app.log_file_path": ("log_file_path", str),
    "log_file_path": ("log_file_path", str),
}

DEFAULT_CONFIG_CONTENT = """# Certificate trust policy configuration

[policy]
# Full-match regular expressions against RFC 4514 distinguished names
trusted_issuer_dn_pattern = CN=Example Root CA,O=Example
subject_dn_pattern = .*
max_path_length = 1
allow_unspecified_path_length = false
check_key_usage = false
require_key_usage = false

[revocation]
# none or crl
checker = none
# Comma separated CRL files or URLs
crl_sources =
fetch_timeout_seconds = 30
allow_unavailable = false

[security]
enable_mtls = true
client_cert_required = true

[app]
log_level = INFO
log_file_path = logs/certpolicy.log
"""


class ConfigService:
    """Service for loading and validating application configuration."""

    def __init__(self, config_path: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self._config = None
        if config_path:
            self._config = self.load_config(config_path)

    def get_config(self) -> Config:
        """
        Get the loaded configuration.

        Raises:
            ValueError: If no configuration has been loaded
        """
        if self._config is None:
            raise ValueError("No configuration loaded. Call load_config() first.")
        return self._config

    def load_config(self, config_path: str) -> Config:
        """
        Load configuration from a property file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Config object with loaded settings

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid or has validation errors
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        config_data = self._load_config_file(config_path)
        config = self._create_config_from_data(config_data)

        validation_result = self.validate_config(config)

        if validation_result.has_errors():
            error_summary = validation_result.get_error_summary()
            raise ValueError(f"Configuration validation failed:\n{error_summary}")

        if validation_result.has_warnings():
            warning_summary = validation_result.get_error_summary()
            self.logger.warning(f"Configuration warnings:\n{warning_summary}")

        self._config = config
        return config

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """Load configuration data from file."""
        # DN patterns may legitimately contain '%'
        config_parser = configparser.ConfigParser(interpolation=None)

        try:
            config_parser.read(config_path)
        except configparser.Error as e:
            raise ValueError(f"Failed to parse configuration file: {e}")

        config_data = {}
        for section in config_parser.sections():
            for key, value in config_parser.items(section):
                config_data[f"{section}.{key}"] = value

        for key, value in config_parser.defaults().items():
            if key not in config_data:
                config_data[key] = value

        return config_data

    def _create_config_from_data(self, config_data: Dict[str, Any]) -> Config:
        """Create Config object from configuration data."""
        config_kwargs = {}

        for config_key, raw_value in config_data.items():
            if config_key not in CONFIG_MAPPING:
                continue

            field_name, field_type = CONFIG_MAPPING[config_key]
            try:
                if field_type == bool:
                    value = self._parse_bool(raw_value)
                elif field_type == int:
                    value = int(raw_value)
                elif field_type == list:
                    value = self._parse_list(raw_value)
                else:
                    value = str(raw_value).strip()

                config_kwargs[field_name] = value
            except (ValueError, TypeError) as e:
                raise ValueError(f"Invalid value for {config_key}: {raw_value} ({e})")

        return Config(**config_kwargs)

    def _parse_bool(self, value: Any) -> bool:
        """Parse boolean value from string."""
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "1", "on", "enabled")
        return bool(value)

    def _parse_list(self, value: Any) -> List[str]:
        """Split a comma or newline separated value."""
        if isinstance(value, list):
            return value
        return [item.strip() for item in re.split(r'[,\n]', str(value)) if item.strip()]

    def validate_config(self, config: Config) -> ConfigValidationResult:
        """
        Validate configuration settings.

        Args:
            config: Configuration object to validate

        Returns:
            ConfigValidationResult with validation results
        """
        errors = []
        warnings = []

        if not config.trusted_issuer_dn_pattern:
            errors.append(ConfigValidationError(
                "trusted_issuer_dn_pattern",
                "Trusted issuer DN pattern is required"
            ))
        else:
            self._check_pattern(config.trusted_issuer_dn_pattern, "trusted_issuer_dn_pattern", errors)
            if config.trusted_issuer_dn_pattern in (".*", ".+"):
                warnings.append(ConfigValidationError(
                    "trusted_issuer_dn_pattern",
                    "Pattern matches every issuer; any path-validated chain will be trusted",
                    "warning"
                ))

        self._check_pattern(config.subject_dn_pattern, "subject_dn_pattern", errors)

        if config.max_path_length < 0:
            errors.append(ConfigValidationError(
                "max_path_length",
                "Maximum path length must not be negative"
            ))

        if config.require_key_usage and not config.check_key_usage:
            warnings.append(ConfigValidationError(
                "require_key_usage",
                "require_key_usage has no effect unless check_key_usage is enabled",
                "warning"
            ))

        # Validate revocation settings
        if config.revocation_checker == "crl":
            if not config.crl_sources:
                errors.append(ConfigValidationError(
                    "crl_sources",
                    "At least one CRL source is required when the crl checker is selected"
                ))
            for source in config.crl_sources:
                if not source.startswith(('http://', 'https://')) and not os.path.exists(source):
                    errors.append(ConfigValidationError(
                        "crl_sources",
                        f"CRL file not found: {source}"
                    ))

        if config.log_file_path:
            log_dir = os.path.dirname(config.log_file_path)
            if log_dir and not os.path.exists(log_dir):
                warnings.append(ConfigValidationError(
                    "log_file_path",
                    f"Log directory does not exist: {log_dir}",
                    "warning"
                ))

        all_issues = errors + warnings
        return ConfigValidationResult(
            is_valid=len(errors) == 0,
            errors=all_issues,
            warnings=[]
        )

    def _check_pattern(self, pattern: str, field_name: str, errors: List[ConfigValidationError]):
        try:
            re.compile(pattern)
        except re.error as e:
            errors.append(ConfigValidationError(
                field_name,
                f"Invalid regular expression: {e}"
            ))

    def create_default_config_file(self, config_path: str) -> None:
        """
        Create a default configuration file with example settings.

        Args:
            config_path: Path where to create the config file
        """
        config_dir = os.path.dirname(config_path)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)

        with open(config_path, 'w') as f:
            f.write(DEFAULT_CONFIG_CONTENT)
