"""
AWS Nitro attestation document verification
"""

from .document import AttestationRecord, decode_payload
from .envelope import CoseSign1, unwrap
from .errors import (
    AnchorError,
    AttestationError,
    EnvelopeFormatError,
    PayloadDecodeError,
    SignatureVerificationError,
    ValidationError,
    X509Error,
)
from .report import build_report, to_json
from .verifier import NitroAttestationDocument, VerificationResult, verify

__version__ = "0.1.0"

__all__ = [
    'AnchorError',
    'AttestationError',
    'AttestationRecord',
    'CoseSign1',
    'EnvelopeFormatError',
    'NitroAttestationDocument',
    'PayloadDecodeError',
    'SignatureVerificationError',
    'ValidationError',
    'VerificationResult',
    'X509Error',
    'build_report',
    'decode_payload',
    'to_json',
    'unwrap',
    'verify',
]
