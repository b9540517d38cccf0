"""
Certificate chain validation

The leaf certificate is validated against the document's intermediates and a
root the caller pins out of band. The first cabundle entry is the root the
document claims for itself and is never trusted.

Failures are returned, not raised: an untrusted chain does not make the
document corrupt, and callers decide what to do with it.
"""

from datetime import datetime, timezone
import logging
from typing import List, Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.x509.oid import ExtendedKeyUsageOID
from OpenSSL import crypto

from .config import ALLOWED_SIGNATURE_ALGORITHMS, SignatureAlgorithm

logger = logging.getLogger(__name__)


def _match_signature_algorithm(cert: x509.Certificate, issuer: x509.Certificate) -> Optional[SignatureAlgorithm]:
    """Find the allow-list entry for the signature on cert, if any"""
    issuer_key = issuer.public_key()

    for algorithm in ALLOWED_SIGNATURE_ALGORITHMS:
        if cert.signature_algorithm_oid != algorithm.oid:
            continue
        if algorithm.key_type == 'ec':
            if isinstance(issuer_key, ec.EllipticCurvePublicKey) and issuer_key.curve.name == algorithm.curve:
                return algorithm
        elif algorithm.key_type == 'ed25519':
            if isinstance(issuer_key, ed25519.Ed25519PublicKey):
                return algorithm
        elif algorithm.key_type == 'rsa':
            if (isinstance(issuer_key, rsa.RSAPublicKey)
                    and algorithm.min_key_bits <= issuer_key.key_size <= algorithm.max_key_bits):
                return algorithm

    return None


def _check_end_entity(leaf: x509.Certificate) -> Optional[str]:
    """Reject leaf certificates that cannot identify a server"""
    try:
        basic_constraints = leaf.extensions.get_extension_for_class(x509.BasicConstraints).value
        if basic_constraints.ca:
            return "CA certificate used as end-entity certificate"
    except x509.ExtensionNotFound:
        pass

    try:
        eku = leaf.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
        if ExtendedKeyUsageOID.SERVER_AUTH not in eku:
            return "Leaf certificate extended key usage does not allow server authentication"
    except x509.ExtensionNotFound:
        pass

    return None


def _check_signature_algorithms(verified_chain: List[crypto.X509]) -> Optional[str]:
    """Every signature below the trust anchor must use an allowed algorithm"""
    certs = [c.to_cryptography() for c in verified_chain]

    # The anchor's own self-signature is not part of the path
    for depth in range(len(certs) - 1):
        cert, issuer = certs[depth], certs[depth + 1]
        algorithm = _match_signature_algorithm(cert, issuer)
        if algorithm is None:
            return (f"Unsupported signature algorithm {cert.signature_algorithm_oid.dotted_string} "
                    f"on certificate at depth {depth} ({cert.subject.rfc4514_string()})")
        logger.debug(f"  depth {depth}: {algorithm.name}")

    return None


def validate_certificate_chain(
    certificate: bytes,
    cabundle: List[bytes],
    trust_anchor: bytes,
    reference_time: int
) -> Optional[str]:
    """
    Validate the leaf certificate up to the pinned trust anchor.

    Uses OpenSSL.crypto X509StoreContext for path building, signature and
    validity period checks at reference_time, then applies the end-entity and
    signature algorithm rules on the verified path.

    Args:
        certificate: Leaf certificate in DER format
        cabundle: CA bundle certificates in DER format, claimed root first
        trust_anchor: Pinned root certificate in DER format
        reference_time: Validation time in seconds since the Unix epoch

    Returns:
        None if the chain is trusted, otherwise the reason it is not
    """
    logger.info("Validating certificate chain...")

    try:
        anchor_cert = crypto.load_certificate(crypto.FILETYPE_ASN1, trust_anchor)
    except crypto.Error as e:
        logger.error(f"✗ Failed to parse trust anchor: {e}")
        return f"Failed to parse trust anchor: {e}"

    try:
        leaf_cert = crypto.load_certificate(crypto.FILETYPE_ASN1, certificate)
        leaf = leaf_cert.to_cryptography()
    except (crypto.Error, ValueError, x509.InvalidVersion) as e:
        logger.error(f"✗ Failed to parse leaf certificate: {e}")
        return f"Failed to parse leaf certificate: {e}"

    logger.info(f"  Leaf Subject: {leaf.subject.rfc4514_string()}")
    logger.info(f"  Leaf Issuer: {leaf.issuer.rfc4514_string()}")

    # Skip the claimed root; only the pinned anchor may terminate the path
    intermediates = []
    for i, ca_cert_der in enumerate(cabundle[1:], start=1):
        try:
            intermediates.append(crypto.load_certificate(crypto.FILETYPE_ASN1, ca_cert_der))
        except crypto.Error as e:
            logger.error(f"✗ Failed to parse CA certificate {i}: {e}")
            return f"Failed to parse CA certificate {i}: {e}"

    try:
        end_entity_error = _check_end_entity(leaf)
    except (ValueError, x509.DuplicateExtension) as e:
        end_entity_error = f"Failed to parse leaf certificate extensions: {e}"
    if end_entity_error:
        logger.error(f"✗ {end_entity_error}")
        return end_entity_error

    store = crypto.X509Store()
    store.add_cert(anchor_cert)
    store.set_time(datetime.fromtimestamp(reference_time, tz=timezone.utc))

    store_ctx = crypto.X509StoreContext(store, leaf_cert, chain=intermediates)

    try:
        verified_chain = store_ctx.get_verified_chain()
    except crypto.X509StoreContextError as e:
        logger.error(f"✗ Certificate chain validation failed: {e}")
        return f"Certificate chain validation failed: {e}"

    try:
        algorithm_error = _check_signature_algorithms(verified_chain)
    except (ValueError, UnsupportedAlgorithm, x509.InvalidVersion) as e:
        algorithm_error = f"Failed to inspect verified chain: {e}"
    if algorithm_error:
        logger.error(f"✗ {algorithm_error}")
        return algorithm_error

    logger.info(f"✓ Certificate chain valid ({len(verified_chain)} certificates up to the trust anchor)")
    return None
