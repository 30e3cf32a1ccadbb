"""
Certificate data models used by the trust-policy evaluator.

The evaluator never parses certificate bytes itself. Parsed certificates are
reduced to the handful of fields the policy looks at, so callers can feed it
from any X.509 stack; ``Certificate.from_x509`` covers the ``cryptography``
objects produced by the transport layer.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import FrozenSet, List, Optional, Tuple, Union

from cryptography import x509
from cryptography.x509.oid import ExtensionOID, NameOID


# Path-length indicator of a certificate that is not a CA.
END_ENTITY_PATH_LENGTH = -1

# Path-length indicator of a CA that declared no pathLenConstraint.
UNSPECIFIED_PATH_LENGTH = 2 ** 31 - 1

KEY_USAGE_OID = ExtensionOID.KEY_USAGE.dotted_string  # 2.5.29.15

# KeyUsage ::= BIT STRING { digitalSignature (0), nonRepudiation (1),
#   keyEncipherment (2), dataEncipherment (3), keyAgreement (4),
#   keyCertSign (5), cRLSign (6), encipherOnly (7), decipherOnly (8) }
KEY_USAGE_BITS = (
    "digital_signature",
    "content_commitment",
    "key_encipherment",
    "data_encipherment",
    "key_agreement",
    "key_cert_sign",
    "crl_sign",
    "encipher_only",
    "decipher_only",
)

DIGITAL_SIGNATURE = 0


@dataclass(frozen=True)
class Certificate:
    """Read-only view of the X.509 fields the trust policy evaluates."""
    subject_dn: str
    issuer_dn: str
    not_before: datetime
    not_after: datetime
    path_length: int = END_ENTITY_PATH_LENGTH
    key_usage: Optional[Tuple[bool, ...]] = None
    critical_extensions: FrozenSet[str] = field(default_factory=frozenset)
    serial_number: int = 0
    common_name: Optional[str] = None

    def __post_init__(self):
        # Naive datetimes are taken to be UTC
        for name in ('not_before', 'not_after'):
            value = getattr(self, name)
            if not isinstance(value, datetime):
                raise ValueError(f"{name} must be a datetime")
            if value.tzinfo is None:
                object.__setattr__(self, name, value.replace(tzinfo=timezone.utc))
        if self.key_usage is not None:
            if len(self.key_usage) != len(KEY_USAGE_BITS):
                raise ValueError(
                    f"key_usage must have {len(KEY_USAGE_BITS)} bits, got {len(self.key_usage)}"
                )
            object.__setattr__(self, 'key_usage', tuple(bool(b) for b in self.key_usage))
        object.__setattr__(self, 'critical_extensions', frozenset(self.critical_extensions))

    @property
    def is_end_entity(self) -> bool:
        """True for certificates that are not allowed to act as a CA."""
        return self.path_length < 0

    @property
    def has_unspecified_path_length(self) -> bool:
        return self.path_length == UNSPECIFIED_PATH_LENGTH

    def is_critical(self, oid: str) -> bool:
        return oid in self.critical_extensions

    def is_valid_at(self, instant: datetime) -> bool:
        """Check whether ``instant`` lies inside the validity window (inclusive)."""
        return self.not_before <= instant <= self.not_after

    def describe(self) -> str:
        """Short description used in log lines."""
        return (
            f"SubjectDN: {self.subject_dn}, "
            f"SerialNumber: {self.serial_number}, "
            f"IssuerDN: {self.issuer_dn}"
        )

    def __str__(self):
        return self.describe()

    @classmethod
    def from_x509(cls, cert: x509.Certificate) -> 'Certificate':
        """
        Build a Certificate from a parsed ``cryptography`` certificate.

        Args:
            cert: Certificate as produced by the TLS layer

        Returns:
            Certificate carrying subject/issuer in RFC 4514 form
        """
        critical = set()
        path_length = END_ENTITY_PATH_LENGTH
        key_usage = None

        for extension in cert.extensions:
            if extension.critical:
                critical.add(extension.oid.dotted_string)

            if isinstance(extension.value, x509.BasicConstraints):
                if extension.value.ca:
                    if extension.value.path_length is None:
                        path_length = UNSPECIFIED_PATH_LENGTH
                    else:
                        path_length = extension.value.path_length
            elif isinstance(extension.value, x509.KeyUsage):
                key_usage = _key_usage_bits(extension.value)

        common_name = None
        for attribute in cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME):
            common_name = attribute.value
            break

        return cls(
            subject_dn=cert.subject.rfc4514_string(),
            issuer_dn=cert.issuer.rfc4514_string(),
            not_before=cert.not_valid_before_utc,
            not_after=cert.not_valid_after_utc,
            path_length=path_length,
            key_usage=key_usage,
            critical_extensions=frozenset(critical),
            serial_number=cert.serial_number,
            common_name=common_name,
        )


# Ordered chain as submitted by the client: index 0 is the end-entity
# certificate, the last entry sits closest to the trust anchor.
CertificateChain = List[Certificate]


def _key_usage_bits(usage: x509.KeyUsage) -> Tuple[bool, ...]:
    bits = []
    for name in KEY_USAGE_BITS:
        try:
            bits.append(bool(getattr(usage, name)))
        except ValueError:
            # encipher_only/decipher_only are undefined without keyAgreement
            bits.append(False)
    return tuple(bits)


def load_pem_chain(data: Union[str, bytes]) -> CertificateChain:
    """
    Parse a PEM bundle into a certificate chain.

    Args:
        data: One or more concatenated PEM certificates, end-entity first

    Returns:
        List of Certificate objects in bundle order

    Raises:
        ValueError: If the bundle holds no parsable certificate
    """
    if isinstance(data, str):
        data = data.encode()

    parsed = x509.load_pem_x509_certificates(data)
    if not parsed:
        raise ValueError("No certificates found in PEM data")

    return [Certificate.from_x509(cert) for cert in parsed]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
