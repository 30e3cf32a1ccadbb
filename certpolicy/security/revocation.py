"""
Revocation checkers consulted once per certificate during chain evaluation.
"""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional

import requests
from cryptography import x509

from ..models.certificate import Certificate, utc_now
from .errors import CertificateRevokedError, RevocationStatusUnavailableError


class RevocationChecker(ABC):
    """Abstract revocation status source."""

    @abstractmethod
    def check(self, certificate: Certificate) -> None:
        """
        Check the revocation status of a single certificate.

        Args:
            certificate: Certificate to check

        Raises:
            RevocationError: If the certificate is revoked or its status
                cannot be established
        """
        pass


class NoOpRevocationChecker(RevocationChecker):
    """Checker that accepts every certificate."""

    def check(self, certificate: Certificate) -> None:
        return None


class CRLRevocationChecker(RevocationChecker):
    """
    Revocation checker backed by certificate revocation lists.

    CRLs are read from local files (PEM or DER) or fetched over HTTP(S) when
    the checker is built or refreshed, and indexed by issuer DN. Lookups
    during evaluation never touch the network.
    """

    def __init__(self, sources: Optional[List[str]] = None, fetch_timeout: int = 30,
                 allow_unavailable: bool = False,
                 clock: Callable[[], datetime] = utc_now,
                 session: Optional[requests.Session] = None):
        self.sources = list(sources or [])
        self.fetch_timeout = fetch_timeout
        self.allow_unavailable = allow_unavailable
        self.clock = clock
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._crls: Dict[str, x509.CertificateRevocationList] = {}

        if self.sources:
            self.refresh()

    def refresh(self) -> int:
        """
        Reload every configured CRL source.

        Returns:
            Number of CRLs successfully loaded
        """
        crls = {}
        for source in self.sources:
            try:
                crl = self._parse_crl(self._read_source(source))
            except (OSError, ValueError, requests.RequestException) as e:
                self.logger.warning(f"Failed to load CRL from {source}: {e}")
                continue

            issuer = crl.issuer.rfc4514_string()
            crls[issuer] = crl
            self.logger.info(f"Loaded CRL for {issuer} from {source}")

        with self._lock:
            self._crls = crls
        return len(crls)

    def add_crl(self, crl: x509.CertificateRevocationList) -> None:
        """Register an already parsed CRL."""
        with self._lock:
            self._crls[crl.issuer.rfc4514_string()] = crl

    def _read_source(self, source: str) -> bytes:
        if source.startswith(('http://', 'https://')):
            response = self.session.get(source, timeout=self.fetch_timeout)
            response.raise_for_status()
            return response.content

        with open(source, 'rb') as f:
            return f.read()

    def _parse_crl(self, data: bytes) -> x509.CertificateRevocationList:
        if b'-----BEGIN X509 CRL-----' in data:
            return x509.load_pem_x509_crl(data)
        return x509.load_der_x509_crl(data)

    def check(self, certificate: Certificate) -> None:
        with self._lock:
            crl = self._crls.get(certificate.issuer_dn)

        if crl is None:
            self._unavailable(certificate, f"No CRL available for issuer {certificate.issuer_dn}")
            return

        next_update = crl.next_update_utc
        if next_update is not None and next_update < self.clock():
            self._unavailable(certificate, f"CRL for issuer {certificate.issuer_dn} expired at {next_update}")
            return

        revoked = crl.get_revoked_certificate_by_serial_number(certificate.serial_number)
        if revoked is not None:
            raise CertificateRevokedError(
                f"Certificate {certificate.serial_number} revoked on {revoked.revocation_date_utc}",
                certificate
            )

    def _unavailable(self, certificate: Certificate, message: str) -> None:
        if self.allow_unavailable:
            self.logger.warning(f"{message}; allowed by configuration")
            return
        raise RevocationStatusUnavailableError(message, certificate)


def build_revocation_checker(config) -> RevocationChecker:
    """Create the revocation checker named by the configuration."""
    if config.revocation_checker == "crl":
        return CRLRevocationChecker(
            sources=config.crl_sources,
            fetch_timeout=config.crl_fetch_timeout_seconds,
            allow_unavailable=config.allow_unavailable_crl
        )
    return NoOpRevocationChecker()
