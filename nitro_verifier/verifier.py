"""
Attestation document verification pipeline

COSE envelope -> CBOR payload -> field checks -> certificate chain ->
COSE signature. Every stage except the chain check aborts on failure; the
chain outcome is carried on the result so the caller can apply its own
trust policy.
"""

from dataclasses import dataclass
import logging
from typing import Optional

from .chain import validate_certificate_chain
from .document import AttestationRecord, decode_payload
from .envelope import CoseSign1, unwrap
from .signature import load_leaf_public_key, verify_envelope_signature
from .validation import validate_record

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of a successful verification.

    Holding one means the document is well-formed and its COSE signature
    matches the leaf certificate key. Whether that certificate chains to the
    trust anchor is reported separately in chain_error.
    """
    document: AttestationRecord
    envelope: CoseSign1
    chain_error: Optional[str] = None

    @property
    def chain_trusted(self) -> bool:
        """True when the leaf chains to the supplied trust anchor"""
        return self.chain_error is None

    def verification_error(self) -> Optional[str]:
        return self.chain_error


def verify(document: bytes, trust_anchor: bytes, reference_time: int) -> VerificationResult:
    """
    Verify an AWS Nitro attestation document.

    Args:
        document: Raw CBOR-encoded COSE_Sign1 attestation document
        trust_anchor: Pinned root certificate in DER format
        reference_time: Current time in seconds since the Unix epoch; used for
            both the timestamp window and certificate validity

    Returns:
        VerificationResult with the decoded document and the chain outcome

    Raises:
        EnvelopeFormatError: Malformed COSE envelope
        PayloadDecodeError: Malformed CBOR payload
        ValidationError: A payload field breaks a rule
        X509Error: Leaf certificate unusable for signature verification
        SignatureVerificationError: COSE signature does not match
    """
    logger.info("Starting attestation document verification")

    envelope = unwrap(document)
    record = decode_payload(envelope.payload)
    logger.info(f"✓ Attestation document parsed: module_id={record.module_id}, timestamp={record.format_timestamp()}")

    validate_record(record, reference_time)

    chain_error = validate_certificate_chain(
        record.certificate,
        record.cabundle,
        trust_anchor,
        reference_time
    )

    public_key = load_leaf_public_key(record.certificate)
    verify_envelope_signature(envelope, public_key)

    if chain_error:
        logger.warning(f"Attestation document signature valid but chain untrusted: {chain_error}")
    else:
        logger.info("✓ Attestation document verified")

    return VerificationResult(document=record, envelope=envelope, chain_error=chain_error)


class NitroAttestationDocument:
    """
    Verified attestation document with its JSON rendering.

    Thin object wrapper around verify() and the report builder for callers
    that prefer the from_bytes / to_json style.
    """

    def __init__(self, result: VerificationResult):
        self.result = result

    @classmethod
    def from_bytes(cls, document: bytes, trust_anchor: bytes, reference_time: int) -> 'NitroAttestationDocument':
        return cls(verify(document, trust_anchor, reference_time))

    @property
    def document(self) -> AttestationRecord:
        return self.result.document

    def verification_error(self) -> Optional[str]:
        return self.result.chain_error

    def to_json(self) -> str:
        from .report import to_json
        return to_json(self.result)
