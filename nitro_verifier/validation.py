"""
Field-level checks on a decoded attestation document

Checks run in a fixed order and stop at the first violation.
"""

import logging

from .config import (
    CLOCK_SKEW_MS,
    MAX_PCRS,
    MIN_PCRS,
    PCR_LENGTHS,
    SUPPORTED_DIGEST,
    TIMESTAMP_FLOOR_MS,
)
from .document import AttestationRecord
from .errors import ValidationError

logger = logging.getLogger(__name__)


def validate_record(record: AttestationRecord, reference_time: int) -> None:
    """
    Enforce the structural rules of an NSM attestation document.

    Measurement values are not compared against anything; deciding which
    images to trust is left to the caller.

    Args:
        record: Decoded attestation payload
        reference_time: Current time in seconds since the Unix epoch

    Raises:
        ValidationError: On the first rule the record breaks
    """
    if len(record.module_id) == 0:
        raise ValidationError("module_id is empty")

    if record.digest != SUPPORTED_DIGEST:
        raise ValidationError("digest signature is unknown")

    ts_end = reference_time * 1000 + CLOCK_SKEW_MS
    if not TIMESTAMP_FLOOR_MS < record.timestamp < ts_end:
        raise ValidationError("timestamp field has wrong value")

    pcrs_len = len(record.pcrs)
    if not MIN_PCRS <= pcrs_len < MAX_PCRS:
        raise ValidationError("wrong number of PCRs in the map")

    for i in range(pcrs_len):
        if i not in record.pcrs:
            raise ValidationError(f"PCR{i} is missing")
        if len(record.pcrs[i]) not in PCR_LENGTHS:
            raise ValidationError(f"PCR{i} len is other than 32/48/64 bytes")

    logger.info(f"✓ Attestation document fields valid ({pcrs_len} PCRs)")
