"""
Tests for the command line entry point.
"""
import io
import logging
import os
import shutil
import tempfile
import unittest
from datetime import datetime, timezone, timedelta
from unittest.mock import patch

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from certpolicy.main import main


def create_cert(common_name, issuer_name, signing_key, path_length=None, is_ca=False, days_valid=30):
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(timezone.utc)
    builder = x509.CertificateBuilder().subject_name(
        x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    ).issuer_name(
        x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_name)])
    ).public_key(
        key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        now - timedelta(days=1)
    ).not_valid_after(
        now + timedelta(days=days_valid)
    )
    if is_ca:
        builder = builder.add_extension(x509.BasicConstraints(ca=True, path_length=path_length), critical=True)
    return builder.sign(signing_key or key, hashes.SHA256()), key


class TestMain(unittest.TestCase):
    """Test cases for the certpolicy command."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        root_logger = logging.getLogger()
        self._saved_handlers = root_logger.handlers[:]
        self._saved_level = root_logger.level

        self.config_path = os.path.join(self.temp_dir, "certpolicy.conf")
        with open(self.config_path, 'w') as f:
            f.write(f"""[policy]
trusted_issuer_dn_pattern = CN=Root CA
subject_dn_pattern = CN=client-.*

[app]
log_file_path = {self.temp_dir}/logs/certpolicy.log
""")

        root_key = ec.generate_private_key(ec.SECP256R1())
        self.intermediate, self.intermediate_key = create_cert(
            "Issuing CA", "Root CA", root_key, path_length=0, is_ca=True
        )

    def tearDown(self):
        """Restore the root logger and remove temporary files."""
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()
        for handler in self._saved_handlers:
            root_logger.addHandler(handler)
        root_logger.setLevel(self._saved_level)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_chain(self, *certs):
        chain_path = os.path.join(self.temp_dir, "chain.pem")
        with open(chain_path, 'wb') as f:
            for cert in certs:
                f.write(cert.public_bytes(serialization.Encoding.PEM))
        return chain_path

    def _run(self, *argv):
        with patch('sys.stdout', new_callable=io.StringIO) as stdout, \
                patch('sys.stderr', new_callable=io.StringIO):
            exit_code = main(list(argv))
        return exit_code, stdout.getvalue()

    def test_authenticated_chain(self):
        leaf, _ = create_cert("client-1", "Issuing CA", self.intermediate_key)
        chain_path = self._write_chain(leaf, self.intermediate)

        exit_code, output = self._run('--config', self.config_path, chain_path)

        self.assertEqual(exit_code, 0)
        self.assertEqual(output.strip(), "AUTHENTICATED CN=client-1")

    def test_rejected_chain_lists_failures(self):
        leaf, _ = create_cert("server-1", "Issuing CA", self.intermediate_key)
        chain_path = self._write_chain(leaf, self.intermediate)

        exit_code, output = self._run('--config', self.config_path, chain_path)

        self.assertEqual(exit_code, 1)
        lines = output.strip().splitlines()
        self.assertEqual(lines[0], "REJECTED")
        self.assertIn("[0] subject_not_allowed", lines[1])
        self.assertEqual(len(lines), 2)

    def test_missing_trusted_issuer_reported(self):
        leaf, _ = create_cert("client-1", "Issuing CA", self.intermediate_key)
        chain_path = self._write_chain(leaf)

        exit_code, output = self._run('--config', self.config_path, chain_path)

        self.assertEqual(exit_code, 1)
        self.assertIn("missing_trusted_issuer", output)

    def test_unreadable_chain_file(self):
        exit_code, _ = self._run('--config', self.config_path, os.path.join(self.temp_dir, "missing.pem"))

        self.assertEqual(exit_code, 2)

    def test_invalid_configuration(self):
        with open(self.config_path, 'w') as f:
            f.write("[policy]\nsubject_dn_pattern = CN=(\n")

        exit_code, _ = self._run('--config', self.config_path, '--check-config')

        self.assertEqual(exit_code, 2)

    def test_unwritable_log_location(self):
        """A log path that cannot be created is a configuration error."""
        blocker = os.path.join(self.temp_dir, "blocker")
        with open(blocker, 'w') as f:
            f.write("not a directory")
        with open(self.config_path, 'w') as f:
            f.write(f"""[policy]
trusted_issuer_dn_pattern = CN=Root CA

[app]
log_file_path = {blocker}/logs/certpolicy.log
""")

        exit_code, _ = self._run('--config', self.config_path, '--check-config')

        self.assertEqual(exit_code, 2)

    def test_check_config(self):
        exit_code, output = self._run('--config', self.config_path, '--check-config')

        self.assertEqual(exit_code, 0)
        self.assertIn("Trusted issuer pattern: CN=Root CA", output)
        self.assertIn("Revocation checker: none", output)

    def test_create_config(self):
        target = os.path.join(self.temp_dir, "generated", "certpolicy.conf")

        exit_code, output = self._run('--create-config', target)

        self.assertEqual(exit_code, 0)
        self.assertTrue(os.path.exists(target))
        self.assertIn(target, output)

    def test_config_required(self):
        with patch('sys.stderr', new_callable=io.StringIO):
            with self.assertRaises(SystemExit) as cm:
                main(['chain.pem'])

        self.assertEqual(cm.exception.code, 2)


if __name__ == '__main__':
    unittest.main()
