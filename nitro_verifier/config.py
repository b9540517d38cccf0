"""
Verifier configuration constants

Values here are fixed for the lifetime of the process. The signature
algorithm allow-list is a tuple of frozen entries so nothing can append to it
after import.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

from cryptography.x509 import ObjectIdentifier
from cryptography.x509.oid import SignatureAlgorithmOID

# AWS Nitro Enclaves Root Certificate Fingerprint (SHA-256)
# Source: https://docs.aws.amazon.com/enclaves/latest/user/verify-root.html
AWS_NITRO_ROOT_CERT_FINGERPRINT = "64:1A:03:21:A3:E2:44:EF:E4:56:46:31:95:D6:06:31:7E:D7:CD:CC:3C:17:56:E0:98:93:F3:C6:8F:79:BB:5B"

# Only measurement hash the platform emits today
SUPPORTED_DIGEST = "SHA384"

# Nitro Enclaves launch; documents cannot predate it
TIMESTAMP_FLOOR = datetime(2020, 1, 1, tzinfo=timezone.utc)
TIMESTAMP_FLOOR_MS = int(TIMESTAMP_FLOOR.timestamp() * 1000)

# Tolerated clock skew between producer and verifier
CLOCK_SKEW_MS = 24 * 60 * 60 * 1000

# PCR map must hold between MIN_PCRS and MAX_PCRS - 1 entries
MIN_PCRS = 1
MAX_PCRS = 32
PCR_LENGTHS = (32, 48, 64)

# COSE algorithm identifiers (RFC 8152, table 5)
COSE_HEADER_ALG = 1
COSE_ALG_ES384 = -35
COSE_SIGN1_TAG = 18
ES384_SIGNATURE_LENGTH = 96

# RSA path validation is optional, like big-integer support in webpki builds
ENABLE_RSA_SIGNATURES = True


@dataclass(frozen=True)
class SignatureAlgorithm:
    """One accepted (issuer key, signature hash) combination"""
    name: str
    oid: ObjectIdentifier
    key_type: str
    curve: Optional[str] = None
    min_key_bits: int = 0
    max_key_bits: int = 0


_EC_ALGORITHMS: Tuple[SignatureAlgorithm, ...] = (
    SignatureAlgorithm('ECDSA_P256_SHA256', SignatureAlgorithmOID.ECDSA_WITH_SHA256, 'ec', curve='secp256r1'),
    SignatureAlgorithm('ECDSA_P256_SHA384', SignatureAlgorithmOID.ECDSA_WITH_SHA384, 'ec', curve='secp256r1'),
    SignatureAlgorithm('ECDSA_P384_SHA256', SignatureAlgorithmOID.ECDSA_WITH_SHA256, 'ec', curve='secp384r1'),
    SignatureAlgorithm('ECDSA_P384_SHA384', SignatureAlgorithmOID.ECDSA_WITH_SHA384, 'ec', curve='secp384r1'),
    SignatureAlgorithm('ED25519', SignatureAlgorithmOID.ED25519, 'ed25519'),
)

_RSA_ALGORITHMS: Tuple[SignatureAlgorithm, ...] = (
    SignatureAlgorithm('RSA_PKCS1_2048_8192_SHA256', SignatureAlgorithmOID.RSA_WITH_SHA256, 'rsa', min_key_bits=2048, max_key_bits=8192),
    SignatureAlgorithm('RSA_PKCS1_2048_8192_SHA384', SignatureAlgorithmOID.RSA_WITH_SHA384, 'rsa', min_key_bits=2048, max_key_bits=8192),
    SignatureAlgorithm('RSA_PKCS1_2048_8192_SHA512', SignatureAlgorithmOID.RSA_WITH_SHA512, 'rsa', min_key_bits=2048, max_key_bits=8192),
    SignatureAlgorithm('RSA_PKCS1_3072_8192_SHA384', SignatureAlgorithmOID.RSA_WITH_SHA384, 'rsa', min_key_bits=3072, max_key_bits=8192),
)

ALLOWED_SIGNATURE_ALGORITHMS: Tuple[SignatureAlgorithm, ...] = (
    _EC_ALGORITHMS + (_RSA_ALGORITHMS if ENABLE_RSA_SIGNATURES else ())
)
