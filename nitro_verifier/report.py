"""
JSON report of a verified attestation document

A projection of VerificationResult; nothing is re-validated here.
"""

import base64
import json
from typing import Any, Dict, List, Optional

from cryptography import x509

from .errors import X509Error
from .verifier import VerificationResult


def _b64(value: Optional[bytes]) -> Optional[str]:
    return base64.b64encode(value).decode('utf-8') if value is not None else None


def certificate_to_dict(der: bytes) -> Dict[str, Any]:
    """
    Render the issuer, subject and validity window of a certificate.

    Raises:
        X509Error: If the certificate cannot be parsed
    """
    try:
        cert = x509.load_der_x509_certificate(der)
    except (ValueError, x509.InvalidVersion) as e:
        raise X509Error(f"x509 parsing failed: {e}") from e

    return {
        'issuer': cert.issuer.rfc4514_string(),
        'subject': cert.subject.rfc4514_string(),
        'validity': {
            'not_before': cert.not_valid_before_utc.isoformat(),
            'not_after': cert.not_valid_after_utc.isoformat(),
        },
    }


def certificates_to_list(certificate: bytes, cabundle: List[bytes]) -> List[Dict[str, Any]]:
    """CA bundle in document order, then the leaf"""
    certs = [certificate_to_dict(der) for der in cabundle]
    certs.append(certificate_to_dict(certificate))
    return certs


def build_report(result: VerificationResult) -> Dict[str, Any]:
    """
    Build a JSON-serialisable report of a verification result.

    Args:
        result: Result returned by verify()

    Returns:
        Dict with document fields, hex PCRs sorted by index, certificate
        summaries, base64 optional fields and the chain error (or None)
    """
    doc = result.document

    return {
        'module_id': doc.module_id,
        'digest': doc.digest,
        'timestamp': doc.format_timestamp(),
        'pcrs': {str(pcr_num): doc.pcrs[pcr_num].hex() for pcr_num in sorted(doc.pcrs)},
        'certs': certificates_to_list(doc.certificate, doc.cabundle),
        'public_key': _b64(doc.public_key),
        'user_data': _b64(doc.user_data),
        'nonce': _b64(doc.nonce),
        'verification_error': result.chain_error,
    }


def to_json(result: VerificationResult, indent: Optional[int] = None) -> str:
    return json.dumps(build_report(result), indent=indent)
