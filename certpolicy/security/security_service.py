"""
Security service for client certificate chain authentication.
"""
import logging
from typing import Optional, Sequence

from ..models.certificate import Certificate, load_pem_chain
from ..models.config import Config
from .chain_validator import ChainTrustValidator
from .models import AuthenticationResult, ValidationOutcome, X509CertificateCredential
from .revocation import RevocationChecker, build_revocation_checker


class SecurityService:
    """Service for authenticating clients from their certificate chains."""

    def __init__(self, config: Config,
                 revocation_checker: Optional[RevocationChecker] = None,
                 audit_trail=None):
        """
        Initialize the security service with configuration.

        Args:
            config: Application configuration holding the trust policy
            revocation_checker: Overrides the checker named in the configuration
            audit_trail: Optional sink receiving every evaluation outcome

        Raises:
            ConfigurationError: If the trust policy settings are invalid
        """
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.audit_trail = audit_trail
        self.policy = config.to_trust_policy()
        self.revocation_checker = revocation_checker or build_revocation_checker(config)
        self.validator = ChainTrustValidator(self.policy, self.revocation_checker)

    def validate_client_chain(self, chain_pem: str, source: Optional[str] = None) -> AuthenticationResult:
        """Authenticate a client from a PEM bundle, end-entity certificate first."""
        try:
            chain = load_pem_chain(chain_pem)
        except ValueError as e:
            self.logger.error(f"Certificate validation failed: {e}")
            return AuthenticationResult(
                is_authenticated=False,
                client_id=None,
                error_message=f"Certificate validation error: {str(e)}"
            )

        return self.validate_certificates(chain, source)

    def validate_certificates(self, chain: Sequence[Certificate],
                              source: Optional[str] = None) -> AuthenticationResult:
        """Authenticate a client from an already parsed chain."""
        credential = X509CertificateCredential(certificates=list(chain))
        outcome = self.validator.authenticate(credential)

        if self.audit_trail is not None:
            self.audit_trail.record(outcome, source)

        if not outcome.authenticated:
            return AuthenticationResult(
                is_authenticated=False,
                client_id=None,
                error_message=self._describe_rejection(outcome),
                outcome=outcome
            )

        client_id = self._extract_client_id(credential.certificate)
        self.logger.info(f"Successfully authenticated client: {client_id}")
        return AuthenticationResult(
            is_authenticated=True,
            client_id=client_id,
            error_message=None,
            certificate=credential.certificate,
            outcome=outcome
        )

    def _describe_rejection(self, outcome: ValidationOutcome) -> str:
        if outcome.failures:
            return "; ".join(failure.message for failure in outcome.failures)
        return outcome.summary()

    def _extract_client_id(self, certificate: Certificate) -> str:
        """Extract client ID from certificate subject."""
        if certificate.common_name:
            return certificate.common_name

        # Chains built by hand carry no parsed CN
        for rdn in certificate.subject_dn.split(','):
            key, _, value = rdn.strip().partition('=')
            if key.upper() == 'CN' and value:
                return value

        return str(certificate.serial_number)
