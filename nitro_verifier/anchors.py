"""
Trust anchor loading

Reads a pinned root certificate from disk and optionally checks its SHA-256
fingerprint before it is used for chain validation.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization

from .errors import AnchorError

logger = logging.getLogger(__name__)


def normalize_fingerprint(fingerprint: str) -> str:
    """Lowercase colonless hex, accepting 'AA:BB:..' or 'aabb..'"""
    return fingerprint.replace(':', '').strip().lower()


def load_trust_anchor(path: Union[str, Path], expected_fingerprint: Optional[str] = None) -> bytes:
    """
    Load a root certificate in PEM or DER format.

    Args:
        path: Path to the certificate file
        expected_fingerprint: SHA-256 fingerprint the certificate must have

    Returns:
        The certificate in DER format

    Raises:
        AnchorError: If the file is missing, unparseable, or the fingerprint
            does not match
    """
    cert_path = Path(path)
    if not cert_path.exists():
        raise AnchorError(f"Trust anchor file not found: {cert_path}")

    data = cert_path.read_bytes()

    try:
        if b"-----BEGIN CERTIFICATE-----" in data:
            cert = x509.load_pem_x509_certificate(data)
        else:
            cert = x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise AnchorError(f"Failed to parse trust anchor {cert_path}: {e}") from e

    fingerprint = cert.fingerprint(hashes.SHA256()).hex()
    logger.info(f"Trust anchor: {cert.subject.rfc4514_string()}")
    logger.info(f"  Fingerprint (SHA-256): {fingerprint}")

    if expected_fingerprint:
        expected = normalize_fingerprint(expected_fingerprint)
        if fingerprint != expected:
            raise AnchorError(f"Trust anchor fingerprint mismatch: expected {expected}, got {fingerprint}")
        logger.info("✓ Trust anchor matches pinned fingerprint")

    return cert.public_bytes(serialization.Encoding.DER)
