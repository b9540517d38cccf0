"""
Attestation document payload

Decodes the CBOR map carried in the COSE payload into an AttestationRecord.
Only wire types are checked here; field semantics are enforced by
validation.py.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional

import cbor2

from .envelope import decode_single_item
from .errors import PayloadDecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttestationRecord:
    """Decoded NSM attestation document payload"""
    module_id: str
    digest: str
    timestamp: int  # milliseconds since the Unix epoch
    pcrs: Dict[int, bytes]
    certificate: bytes
    cabundle: List[bytes]
    public_key: Optional[bytes] = None
    user_data: Optional[bytes] = None
    nonce: Optional[bytes] = None

    @property
    def timestamp_datetime(self) -> datetime:
        """Document timestamp as an aware UTC datetime"""
        return datetime.fromtimestamp(self.timestamp / 1000.0, tz=timezone.utc)

    def format_timestamp(self) -> str:
        """Convert the millisecond timestamp to ISO 8601 format"""
        return self.timestamp_datetime.isoformat(timespec='milliseconds').replace('+00:00', 'Z')

    def get_pcr_hex(self, pcr_num: int) -> Optional[str]:
        """Get PCR value as hexadecimal string"""
        value = self.pcrs.get(pcr_num)
        return value.hex() if value is not None else None


def _require(payload: Dict[Any, Any], key: str, expected: type, type_name: str) -> Any:
    if key not in payload:
        raise PayloadDecodeError(f"Attestation document missing '{key}' field")
    value = payload[key]
    # bool is an int subclass; CBOR true/false is never a valid timestamp
    if not isinstance(value, expected) or isinstance(value, bool):
        raise PayloadDecodeError(f"Field '{key}' must be {type_name}, got {type(value).__name__}")
    return value


def _optional_bytes(payload: Dict[Any, Any], key: str) -> Optional[bytes]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, bytes):
        raise PayloadDecodeError(f"Field '{key}' must be a byte string or null, got {type(value).__name__}")
    return value


def decode_payload(payload_bytes: bytes) -> AttestationRecord:
    """
    Decode the CBOR payload of an attestation document.

    Unknown keys are ignored so newer producers stay readable.

    Args:
        payload_bytes: Raw COSE payload

    Returns:
        AttestationRecord with typed fields

    Raises:
        PayloadDecodeError: If the payload is not a CBOR map, a required field
            is missing, or a field has the wrong wire type
    """
    try:
        payload = decode_single_item(payload_bytes)
    except (cbor2.CBORDecodeError, ValueError, TypeError) as e:
        raise PayloadDecodeError(f"Malformed CBOR in attestation payload: {e}") from e

    if not isinstance(payload, dict):
        raise PayloadDecodeError(f"Attestation payload must be a map, got {type(payload).__name__}")

    module_id = _require(payload, 'module_id', str, 'a text string')
    digest = _require(payload, 'digest', str, 'a text string')
    timestamp = _require(payload, 'timestamp', int, 'an unsigned integer')
    if timestamp < 0:
        raise PayloadDecodeError("Field 'timestamp' must be an unsigned integer")

    pcrs_raw = _require(payload, 'pcrs', dict, 'a map')
    pcrs: Dict[int, bytes] = {}
    for pcr_num, pcr_value in pcrs_raw.items():
        if not isinstance(pcr_num, int) or isinstance(pcr_num, bool) or not 0 <= pcr_num <= 255:
            raise PayloadDecodeError(f"PCR index {pcr_num!r} is not an integer in 0..255")
        if not isinstance(pcr_value, bytes):
            raise PayloadDecodeError(f"PCR{pcr_num} value is not a byte string")
        pcrs[pcr_num] = pcr_value

    certificate = _require(payload, 'certificate', bytes, 'a byte string')

    cabundle_raw = _require(payload, 'cabundle', list, 'an array')
    cabundle: List[bytes] = []
    for i, ca_cert_der in enumerate(cabundle_raw):
        if not isinstance(ca_cert_der, bytes):
            raise PayloadDecodeError(f"cabundle[{i}] is not a byte string")
        cabundle.append(ca_cert_der)

    record = AttestationRecord(
        module_id=module_id,
        digest=digest,
        timestamp=timestamp,
        pcrs=pcrs,
        certificate=certificate,
        cabundle=cabundle,
        public_key=_optional_bytes(payload, 'public_key'),
        user_data=_optional_bytes(payload, 'user_data'),
        nonce=_optional_bytes(payload, 'nonce')
    )

    logger.debug(f"Attestation payload decoded: module_id={record.module_id}, "
                 f"{len(record.pcrs)} PCRs, {len(record.cabundle)} CA certificates")

    return record
