"""
COSE_Sign1 signature verification

The leaf certificate embedded in the payload carries the enclave's P-384
signing key. A signature that fails here is fatal whatever the chain
validator concluded: it means the payload is not what that key signed.
"""

import logging

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from .config import COSE_ALG_ES384, COSE_HEADER_ALG, ES384_SIGNATURE_LENGTH
from .envelope import CoseSign1
from .errors import SignatureVerificationError, X509Error

logger = logging.getLogger(__name__)


def load_leaf_public_key(certificate: bytes) -> ec.EllipticCurvePublicKey:
    """
    Extract the P-384 public key from the leaf certificate.

    Args:
        certificate: Leaf certificate in DER format

    Returns:
        The certificate's EC public key

    Raises:
        X509Error: If the certificate does not parse, is not X.509 v3, or its
            key is not a point on P-384
    """
    try:
        leaf = x509.load_der_x509_certificate(certificate)
    except x509.InvalidVersion as e:
        raise X509Error(f"wrong cert version: {e}") from e
    except ValueError as e:
        raise X509Error(f"x509 parsing failed: {e}") from e

    if leaf.public_bytes(serialization.Encoding.DER) != certificate:
        raise X509Error("trailing data after leaf certificate")

    if leaf.version != x509.Version.v3:
        raise X509Error("wrong cert version")

    try:
        public_key = leaf.public_key()
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise X509Error(f"Leaf certificate public key is invalid: {e}") from e

    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        raise X509Error(f"Unsupported public key type: {type(public_key).__name__}")
    if not isinstance(public_key.curve, ec.SECP384R1):
        raise X509Error(f"Unsupported curve {public_key.curve.name}, expected secp384r1")

    logger.debug(f"Leaf public key extracted ({public_key.curve.name})")

    return public_key


def verify_envelope_signature(envelope: CoseSign1, public_key: ec.EllipticCurvePublicKey) -> None:
    """
    Verify the ES384 signature of a COSE_Sign1 envelope.

    AWS Nitro uses the raw signature format (r || s, 48 bytes each), so it is
    re-encoded as DER before handing it to cryptography.

    Args:
        envelope: Unwrapped COSE_Sign1 envelope
        public_key: Leaf certificate P-384 public key

    Raises:
        SignatureVerificationError: If the algorithm is not ES384 or the
            signature does not match
    """
    logger.info("Verifying COSE signature...")

    algorithm = envelope.protected_headers.get(COSE_HEADER_ALG)
    if algorithm != COSE_ALG_ES384:
        raise SignatureVerificationError(f"Unsupported COSE algorithm {algorithm!r}, expected ES384 ({COSE_ALG_ES384})")

    signature = envelope.signature
    if len(signature) != ES384_SIGNATURE_LENGTH:
        raise SignatureVerificationError(f"Unexpected signature length: {len(signature)} bytes")

    half = ES384_SIGNATURE_LENGTH // 2
    r = int.from_bytes(signature[:half], byteorder='big')
    s = int.from_bytes(signature[half:], byteorder='big')
    der_signature = encode_dss_signature(r, s)

    try:
        public_key.verify(
            der_signature,
            envelope.sig_structure(),
            ec.ECDSA(hashes.SHA384())
        )
    except InvalidSignature as e:
        logger.error("✗ COSE signature is INVALID")
        raise SignatureVerificationError("COSE signature verification failed") from e

    logger.info("✓ COSE signature is VALID")
