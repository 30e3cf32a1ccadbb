"""
Trust-policy evaluation of client certificate chains.

The transport layer has already parsed the chain and verified its signatures.
This module only decides whether the chain satisfies the deployer's policy
and which certificate is the authenticated end-entity. Every certificate is
audited, even after a failure, so that all problems end up in the logs.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, List, Optional, Pattern, Sequence, Tuple

from ..models.certificate import Certificate, KEY_USAGE_OID, DIGITAL_SIGNATURE, utc_now
from ..models.config import TrustPolicy
from .errors import (
    CertificateValidationError, CertificateExpiredError, SubjectNotAllowedError,
    KeyUsageForbiddenError, UnspecifiedPathLengthNotAllowedError,
    PathLengthExceededError, FailureReason
)
from .models import CertificateFailure, ValidationOutcome, X509CertificateCredential
from .revocation import RevocationChecker, NoOpRevocationChecker


@dataclass(frozen=True)
class ChainAudit:
    """Accumulated state while folding over a chain."""
    all_valid: bool = True
    has_trusted_issuer: bool = False
    leaf: Optional[Certificate] = None
    failures: Tuple[CertificateFailure, ...] = ()


class ChainTrustValidator:
    """Evaluates certificate chains against a TrustPolicy."""

    def __init__(self, policy: TrustPolicy,
                 revocation_checker: Optional[RevocationChecker] = None,
                 clock: Callable[[], datetime] = utc_now):
        """
        Initialize the validator.

        Args:
            policy: Compiled trust policy, shared read-only between evaluations
            revocation_checker: Revocation status source (defaults to no-op)
            clock: Returns the current time as an aware datetime
        """
        self.policy = policy
        self.revocation_checker = revocation_checker or NoOpRevocationChecker()
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def evaluate(self, chain: Sequence[Certificate]) -> ValidationOutcome:
        """
        Evaluate a chain and select its end-entity certificate.

        Certificates are visited once each, from the last index down to 0.
        A failed certificate marks the chain invalid but never stops the walk.

        Args:
            chain: Certificates as submitted, index 0 being the end-entity

        Returns:
            Authenticated outcome carrying the leaf, or a rejected outcome
            listing every per-certificate failure
        """
        audit = ChainAudit()
        for index in range(len(chain) - 1, -1, -1):
            audit = self._audit_certificate(audit, index, chain[index])

        return self._decide(chain, audit)

    def _audit_certificate(self, audit: ChainAudit, index: int,
                           certificate: Certificate) -> ChainAudit:
        self.logger.debug(f"Evaluating {certificate.describe()}")

        try:
            self.validate(certificate)
        except CertificateValidationError as e:
            failure = CertificateFailure(
                index=index,
                certificate=certificate,
                reason=e.reason,
                message=e.message
            )
            self.logger.warning(
                f"Failed to validate {certificate.describe()}: {e.message}",
                extra={'extra_data': failure.to_dict()}
            )
            return replace(audit, all_valid=False, failures=audit.failures + (failure,))

        has_trusted_issuer = audit.has_trusted_issuer or self.issuer_matches(certificate.issuer_dn)

        leaf = audit.leaf
        if certificate.is_end_entity:
            self.logger.debug("Found valid client certificate")
            if leaf is not None:
                self.logger.warning(
                    "Chain holds more than one end-entity certificate; "
                    f"{certificate.describe()} replaces {leaf.describe()}"
                )
            leaf = certificate
        else:
            self.logger.debug("Found valid CA certificate")

        return replace(audit, has_trusted_issuer=has_trusted_issuer, leaf=leaf)

    def _decide(self, chain: Sequence[Certificate], audit: ChainAudit) -> ValidationOutcome:
        if audit.all_valid and audit.has_trusted_issuer and audit.leaf is not None:
            self.logger.info(f"Successfully authenticated {audit.leaf.describe()}")
            return ValidationOutcome.authenticated_with(audit.leaf)

        reasons: List[FailureReason] = []
        for failure in audit.failures:
            if failure.reason not in reasons:
                reasons.append(failure.reason)
        if not audit.has_trusted_issuer:
            reasons.append(FailureReason.MISSING_TRUSTED_ISSUER)
        if not any(certificate.is_end_entity for certificate in chain):
            reasons.append(FailureReason.NO_END_ENTITY_CERTIFICATE)

        outcome = ValidationOutcome.rejected(list(audit.failures), reasons)
        self.logger.info(
            f"Failed to authenticate chain of {len(chain)} certificates: {outcome.summary()}",
            extra={'extra_data': {
                'reasons': [reason.value for reason in reasons],
                'failures': [failure.to_dict() for failure in audit.failures],
            }}
        )
        return outcome

    def validate(self, certificate: Certificate) -> None:
        """
        Run the per-certificate policy checks.

        Raises:
            CertificateValidationError: The first check the certificate fails,
                including whatever the revocation checker raises
        """
        now = self.clock()
        if not certificate.is_valid_at(now):
            if now < certificate.not_before:
                raise CertificateExpiredError(
                    f"Certificate not valid before {certificate.not_before.isoformat()}", certificate
                )
            raise CertificateExpiredError(
                f"Certificate expired on {certificate.not_after.isoformat()}", certificate
            )

        self.revocation_checker.check(certificate)

        if certificate.is_end_entity:
            if not self.subject_matches(certificate.subject_dn):
                raise SubjectNotAllowedError(
                    f"Certificate subject does not match pattern {self.policy.subject_pattern.pattern}",
                    certificate
                )
            if self.policy.check_key_usage and not self.is_valid_key_usage(certificate):
                raise KeyUsageForbiddenError(
                    "Certificate keyUsage constraint forbids SSL client authentication.",
                    certificate
                )
        elif certificate.has_unspecified_path_length:
            if not self.policy.allow_unspecified_path_length:
                raise UnspecifiedPathLengthNotAllowedError(
                    "Unlimited certificate path length not allowed by configuration.",
                    certificate
                )
        elif certificate.path_length > self.policy.max_path_length:
            raise PathLengthExceededError(
                f"Certificate path length {certificate.path_length} exceeds "
                f"maximum value {self.policy.max_path_length}.",
                certificate
            )

    def is_valid_key_usage(self, certificate: Certificate) -> bool:
        """Decide whether the keyUsage extension permits client authentication."""
        self.logger.debug("Checking certificate keyUsage extension")

        if certificate.key_usage is None:
            self.logger.warning(
                "Configuration specifies check_key_usage but keyUsage extension not found in certificate."
            )
            return not self.policy.require_key_usage

        if certificate.is_critical(KEY_USAGE_OID) or self.policy.require_key_usage:
            self.logger.debug("KeyUsage extension is marked critical or required by configuration.")
            return certificate.key_usage[DIGITAL_SIGNATURE]

        self.logger.debug(
            f"KeyUsage digitalSignature={certificate.key_usage[DIGITAL_SIGNATURE]}, "
            "returning true since keyUsage validation not required by configuration."
        )
        return True

    def issuer_matches(self, issuer_dn: str) -> bool:
        return self._name_matches(issuer_dn, self.policy.trusted_issuer_pattern)

    def subject_matches(self, subject_dn: str) -> bool:
        return self._name_matches(subject_dn, self.policy.subject_pattern)

    def _name_matches(self, name: str, pattern: Pattern) -> bool:
        result = pattern.fullmatch(name) is not None
        self.logger.debug(f"{pattern.pattern} matches {name} == {result}")
        return result

    def authenticate(self, credential: X509CertificateCredential) -> ValidationOutcome:
        """
        Evaluate the credential's chain and attach the selected leaf to it.

        Returns:
            The evaluation outcome, truthy when the chain was accepted
        """
        outcome = self.evaluate(credential.certificates)
        if outcome.authenticated:
            credential.certificate = outcome.leaf
        return outcome


def evaluate_chain(chain: Sequence[Certificate], policy: TrustPolicy,
                   revocation_checker: Optional[RevocationChecker] = None,
                   clock: Callable[[], datetime] = utc_now) -> ValidationOutcome:
    """Evaluate ``chain`` under ``policy`` with a throwaway validator."""
    return ChainTrustValidator(policy, revocation_checker, clock).evaluate(chain)
