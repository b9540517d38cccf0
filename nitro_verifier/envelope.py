"""
COSE_Sign1 envelope handling

An attestation document is a COSE_Sign1 structure (RFC 8152):
[protected, unprotected, payload, signature]. This module only checks the
shape of that array; the signature itself is checked in signature.py once
the leaf certificate has been extracted from the payload.
"""

from dataclasses import dataclass, field
import io
import logging
from typing import Any, Dict

import cbor2

from .config import COSE_SIGN1_TAG
from .errors import EnvelopeFormatError

logger = logging.getLogger(__name__)


def decode_single_item(data: bytes) -> Any:
    """
    Decode exactly one CBOR data item.

    Raises:
        ValueError: If bytes remain after the first item
    """
    fp = io.BytesIO(data)
    value = cbor2.CBORDecoder(fp).decode()
    if fp.tell() != len(data):
        raise ValueError(f"{len(data) - fp.tell()} trailing bytes after CBOR item")
    return value


@dataclass(frozen=True)
class CoseSign1:
    """Unwrapped COSE_Sign1 envelope"""
    protected: bytes
    unprotected: Dict[Any, Any]
    payload: bytes
    signature: bytes
    protected_headers: Dict[Any, Any] = field(default_factory=dict)

    def sig_structure(self) -> bytes:
        """
        Build the bytes covered by the signature.

        Sig_structure = [
            context = "Signature1",
            body_protected = protected header bytes,
            external_aad = b"",
            payload = payload bytes
        ]
        """
        return cbor2.dumps([
            "Signature1",
            self.protected,
            b"",  # external_aad (empty for attestation documents)
            self.payload
        ])


def unwrap(document: bytes) -> CoseSign1:
    """
    Decode the COSE_Sign1 envelope of an attestation document.

    Args:
        document: Raw CBOR bytes of the attestation document

    Returns:
        CoseSign1 with the raw protected header, payload and signature

    Raises:
        EnvelopeFormatError: If the bytes are not a four element COSE_Sign1 array
    """
    try:
        cose_structure = decode_single_item(document)
    except (cbor2.CBORDecodeError, ValueError, TypeError) as e:
        raise EnvelopeFormatError(f"Malformed CBOR in COSE envelope: {e}") from e

    # NSM emits untagged arrays, other producers wrap them in tag 18
    if isinstance(cose_structure, cbor2.CBORTag):
        if cose_structure.tag != COSE_SIGN1_TAG:
            raise EnvelopeFormatError(f"Unexpected CBOR tag {cose_structure.tag}, expected {COSE_SIGN1_TAG}")
        cose_structure = cose_structure.value

    if not isinstance(cose_structure, list) or len(cose_structure) != 4:
        raise EnvelopeFormatError(
            f"Invalid COSE structure: expected 4-element list, got {type(cose_structure).__name__}"
        )

    protected, unprotected, payload, signature = cose_structure

    if not isinstance(protected, bytes):
        raise EnvelopeFormatError("COSE protected header is not a byte string")
    if not isinstance(unprotected, dict):
        raise EnvelopeFormatError("COSE unprotected header is not a map")
    if not isinstance(payload, bytes):
        raise EnvelopeFormatError("COSE payload is not a byte string")
    if not isinstance(signature, bytes):
        raise EnvelopeFormatError("COSE signature is not a byte string")

    if protected:
        try:
            protected_headers = decode_single_item(protected)
        except (cbor2.CBORDecodeError, ValueError, TypeError) as e:
            raise EnvelopeFormatError(f"Malformed COSE protected header: {e}") from e
        if not isinstance(protected_headers, dict):
            raise EnvelopeFormatError("COSE protected header is not a map")
    else:
        protected_headers = {}

    logger.debug(f"COSE envelope unwrapped: protected={len(protected)} bytes, "
                 f"payload={len(payload)} bytes, signature={len(signature)} bytes")

    return CoseSign1(
        protected=protected,
        unprotected=unprotected,
        payload=payload,
        signature=signature,
        protected_headers=protected_headers
    )
