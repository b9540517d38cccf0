#!/usr/bin/env python3
"""
Command-line verifier for AWS Nitro attestation documents

Reads an attestation document from a file or retrieves it from an
attestation API, verifies it against a pinned root certificate, and prints
the JSON report.
"""

import argparse
import logging
from pathlib import Path
import sys
import time
from typing import List, Optional

from .anchors import load_trust_anchor
from .config import AWS_NITRO_ROOT_CERT_FINGERPRINT
from .errors import AttestationError
from .report import to_json
from .retrieval import request_attestation_document
from .verifier import verify

logger = logging.getLogger(__name__)


def configure_logging(log_file: Optional[str], verbose: bool = False) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Verify an AWS Nitro attestation document'
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        '--attestation-document-file',
        type=str,
        help='Path to a CBOR attestation document'
    )
    source.add_argument(
        '--attestation-api-url',
        type=str,
        help='Base URL of an attestation API serving POST /attest'
    )

    parser.add_argument(
        '--root-cert',
        type=str,
        required=True,
        help='Path to the pinned root certificate (PEM or DER)'
    )
    parser.add_argument(
        '--root-fingerprint',
        type=str,
        default=AWS_NITRO_ROOT_CERT_FINGERPRINT,
        help='Expected SHA-256 fingerprint of the root certificate '
             '(default: AWS Nitro Enclaves root; pass "" to skip)'
    )
    parser.add_argument(
        '--reference-time',
        type=int,
        default=None,
        help='Verification time in seconds since the Unix epoch (default: now)'
    )
    parser.add_argument(
        '--user-data',
        type=str,
        default=None,
        help='User data to request in the document (API retrieval only)'
    )
    parser.add_argument(
        '--require-trusted-chain',
        action='store_true',
        help='Fail when the certificate chain does not validate against the root'
    )
    parser.add_argument(
        '--output-file',
        type=str,
        default=None,
        help='Write the JSON report to this file'
    )
    parser.add_argument(
        '--save-document',
        type=str,
        default=None,
        help='Save the retrieved attestation document to this file'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        help='Also write logs to this file'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)
    configure_logging(args.log_file, args.verbose)

    reference_time = args.reference_time if args.reference_time is not None else int(time.time())

    try:
        trust_anchor = load_trust_anchor(args.root_cert, args.root_fingerprint or None)

        if args.attestation_document_file:
            document_path = Path(args.attestation_document_file)
            if not document_path.exists():
                raise FileNotFoundError(f"Attestation document file not found: {document_path}")
            attestation_document = document_path.read_bytes()
        else:
            attestation_document = request_attestation_document(
                args.attestation_api_url,
                user_data=args.user_data
            )
            if args.save_document:
                Path(args.save_document).write_bytes(attestation_document)
                logger.info(f"Attestation document saved to: {args.save_document}")

        result = verify(attestation_document, trust_anchor, reference_time)
        report = to_json(result, indent=2)

        if args.output_file:
            Path(args.output_file).write_text(report + "\n")
            logger.info(f"Report written to: {args.output_file}")

    except (AttestationError, RuntimeError, OSError) as e:
        logger.error(f"✗ ATTESTATION VERIFICATION FAILED: {e}")
        return 1

    print(report)

    if not result.chain_trusted:
        logger.warning(f"Certificate chain not trusted: {result.chain_error}")
        if args.require_trusted_chain:
            logger.error("✗ ATTESTATION VERIFICATION FAILED: untrusted certificate chain")
            return 1

    logger.info("✓ Attestation verification passed")
    return 0


if __name__ == '__main__':
    sys.exit(main())
