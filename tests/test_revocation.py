"""
Tests for revocation checkers.
"""
import os
import tempfile
import unittest
from datetime import datetime, timezone, timedelta
from unittest.mock import Mock

import requests
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from certpolicy.models.certificate import Certificate
from certpolicy.models.config import Config
from certpolicy.security.errors import (
    CertificateRevokedError, RevocationStatusUnavailableError, RevocationError, FailureReason
)
from certpolicy.security.revocation import (
    NoOpRevocationChecker, CRLRevocationChecker, build_revocation_checker
)


ISSUER_DN = "CN=Root CA,O=Example"


class TestCRLRevocationChecker(unittest.TestCase):
    """Test cases for CRLRevocationChecker."""

    def setUp(self):
        """Set up test fixtures."""
        self.now = datetime.now(timezone.utc)
        self.ca_key = ec.generate_private_key(ec.SECP256R1())
        self.ca_name = x509.Name([
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example"),
            x509.NameAttribute(NameOID.COMMON_NAME, "Root CA"),
        ])
        self.crl = self._create_crl(revoked_serials=[1234])
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        for name in os.listdir(self.temp_dir):
            os.remove(os.path.join(self.temp_dir, name))
        os.rmdir(self.temp_dir)

    def _create_crl(self, revoked_serials, next_update=None):
        builder = x509.CertificateRevocationListBuilder().issuer_name(
            self.ca_name
        ).last_update(
            self.now - timedelta(days=1)
        ).next_update(
            next_update or self.now + timedelta(days=7)
        )
        for serial in revoked_serials:
            revoked = x509.RevokedCertificateBuilder().serial_number(
                serial
            ).revocation_date(
                self.now - timedelta(hours=1)
            ).build()
            builder = builder.add_revoked_certificate(revoked)
        return builder.sign(self.ca_key, hashes.SHA256())

    def _certificate(self, serial, issuer=ISSUER_DN):
        return Certificate(
            subject_dn="CN=alice",
            issuer_dn=issuer,
            not_before=self.now - timedelta(days=1),
            not_after=self.now + timedelta(days=1),
            serial_number=serial,
        )

    def _write(self, name, data):
        path = os.path.join(self.temp_dir, name)
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def test_revoked_serial_rejected(self):
        checker = CRLRevocationChecker()
        checker.add_crl(self.crl)

        with self.assertRaises(CertificateRevokedError) as cm:
            checker.check(self._certificate(1234))

        self.assertEqual(cm.exception.reason, FailureReason.REVOKED)
        self.assertIn("1234", str(cm.exception))

    def test_unrevoked_serial_accepted(self):
        checker = CRLRevocationChecker()
        checker.add_crl(self.crl)

        checker.check(self._certificate(5678))

    def test_missing_crl_unavailable(self):
        checker = CRLRevocationChecker()

        with self.assertRaises(RevocationStatusUnavailableError) as cm:
            checker.check(self._certificate(1, issuer="CN=Unknown CA"))

        self.assertIsInstance(cm.exception, RevocationError)
        self.assertEqual(cm.exception.reason, FailureReason.REVOCATION_UNAVAILABLE)

    def test_missing_crl_allowed_by_configuration(self):
        checker = CRLRevocationChecker(allow_unavailable=True)

        checker.check(self._certificate(1, issuer="CN=Unknown CA"))

    def test_expired_crl_unavailable(self):
        crl = self._create_crl([], next_update=self.now + timedelta(days=1))
        checker = CRLRevocationChecker(clock=lambda: self.now + timedelta(days=2))
        checker.add_crl(crl)

        with self.assertRaises(RevocationStatusUnavailableError):
            checker.check(self._certificate(1))

    def test_load_pem_and_der_files(self):
        pem_path = self._write("root.pem", self.crl.public_bytes(serialization.Encoding.PEM))
        der_path = self._write("root.crl", self.crl.public_bytes(serialization.Encoding.DER))

        for path in (pem_path, der_path):
            with self.subTest(path=path):
                checker = CRLRevocationChecker(sources=[path])
                with self.assertRaises(CertificateRevokedError):
                    checker.check(self._certificate(1234))

    def test_fetch_crl_over_http(self):
        session = Mock()
        session.get.return_value.content = self.crl.public_bytes(serialization.Encoding.DER)

        checker = CRLRevocationChecker(
            sources=["http://crl.example.com/root.crl"], fetch_timeout=5, session=session
        )

        session.get.assert_called_once_with("http://crl.example.com/root.crl", timeout=5)
        with self.assertRaises(CertificateRevokedError):
            checker.check(self._certificate(1234))

    def test_unreachable_source_skipped(self):
        session = Mock()
        session.get.side_effect = requests.ConnectionError("unreachable")
        good_path = self._write("root.crl", self.crl.public_bytes(serialization.Encoding.DER))

        checker = CRLRevocationChecker(
            sources=["https://crl.example.com/other.crl", good_path], session=session
        )

        self.assertEqual(checker.refresh(), 1)
        checker.check(self._certificate(5678))

    def test_garbage_crl_skipped(self):
        bad_path = self._write("bad.crl", b"not a crl")

        checker = CRLRevocationChecker(sources=[bad_path])

        with self.assertRaises(RevocationStatusUnavailableError):
            checker.check(self._certificate(1))


class TestRevocationCheckerFactory(unittest.TestCase):
    """Test cases for NoOpRevocationChecker and build_revocation_checker."""

    def test_noop_accepts_everything(self):
        certificate = Certificate(
            subject_dn="CN=alice",
            issuer_dn="CN=Anyone",
            not_before=datetime(2000, 1, 1, tzinfo=timezone.utc),
            not_after=datetime(2000, 1, 2, tzinfo=timezone.utc),
        )

        self.assertIsNone(NoOpRevocationChecker().check(certificate))

    def test_default_config_builds_noop(self):
        checker = build_revocation_checker(Config(trusted_issuer_dn_pattern="CN=Root"))

        self.assertIsInstance(checker, NoOpRevocationChecker)

    def test_crl_config_builds_crl_checker(self):
        config = Config(
            trusted_issuer_dn_pattern="CN=Root",
            revocation_checker="crl",
            crl_sources=[],
            allow_unavailable_crl=True,
            crl_fetch_timeout_seconds=10
        )

        checker = build_revocation_checker(config)

        self.assertIsInstance(checker, CRLRevocationChecker)
        self.assertTrue(checker.allow_unavailable)
        self.assertEqual(checker.fetch_timeout, 10)


if __name__ == '__main__':
    unittest.main()
