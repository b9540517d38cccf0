"""
Attestation document retrieval

Fetches a document from an attestation API running next to the enclave.
The API answers POST /attest with {"status": "success",
"attestation_document": <base64>} or a structured error body.
"""

import base64
import binascii
import logging
import time
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


def request_attestation_document(
    api_url: str,
    user_data: Optional[str] = None,
    max_attempts: int = 5,
    timeout: int = 30
) -> bytes:
    """
    Request attestation document from the HTTP API.

    Connection errors, timeouts and non-200 responses are retried with
    exponential backoff; an explicit error status in the body is not.

    Args:
        api_url: Base URL of the attestation API
        user_data: Optional user data to embed in the document
        max_attempts: Maximum number of attempts
        timeout: Per-request timeout in seconds

    Returns:
        Attestation document as bytes (CBOR format)

    Raises:
        RuntimeError: If the document cannot be retrieved
    """
    logger.info(f"Requesting attestation document from {api_url}...")

    endpoint = f"{api_url.rstrip('/')}/attest"
    payload: Dict[str, Any] = {}
    if user_data is not None:
        payload['user_data'] = user_data

    for attempt in range(1, max_attempts + 1):
        try:
            logger.info(f"Attempt {attempt}/{max_attempts}: Sending POST request to {endpoint}")

            response = requests.post(endpoint, json=payload, timeout=timeout)

            if response.status_code != 200:
                error_message = _parse_error_response(response)
                logger.warning(f"HTTP {response.status_code}: {error_message}")

                if attempt < max_attempts:
                    delay = 2 ** attempt  # Exponential backoff
                    logger.info(f"Retrying in {delay} seconds...")
                    time.sleep(delay)
                    continue
                raise RuntimeError(f"HTTP {response.status_code}: {error_message}")

            try:
                response_data = response.json()
            except ValueError as e:
                raise RuntimeError(f"Failed to parse JSON response: {e}") from e

            if not isinstance(response_data, dict):
                raise RuntimeError("Response body is not a JSON object")

            if response_data.get('status') == 'error':
                raise RuntimeError(f"API returned error: {_format_detailed_error(response_data)}")

            if 'attestation_document' not in response_data:
                raise RuntimeError("Response missing 'attestation_document' field")

            try:
                attestation_document = base64.b64decode(response_data['attestation_document'], validate=True)
            except (binascii.Error, TypeError, ValueError) as e:
                raise RuntimeError(f"Failed to decode base64 attestation document: {e}") from e

            logger.info(f"✓ Attestation document retrieved successfully ({len(attestation_document)} bytes)")
            return attestation_document

        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            logger.warning(f"Request failed: {e}")
            if attempt < max_attempts:
                delay = 2 ** attempt
                logger.info(f"Retrying in {delay} seconds...")
                time.sleep(delay)
            else:
                raise RuntimeError(f"Failed to reach attestation API after {max_attempts} attempts: {e}") from e

        except requests.exceptions.RequestException as e:
            logger.error(f"Request failed: {e}")
            raise RuntimeError(f"HTTP request failed: {e}") from e

    raise RuntimeError(f"Failed to retrieve attestation document after {max_attempts} attempts")


def _parse_error_response(response: requests.Response) -> str:
    """Extract an error summary from a non-200 response, falling back to raw text"""
    try:
        error_data = response.json()
    except ValueError:
        return response.text
    if not isinstance(error_data, dict):
        return response.text
    return _format_detailed_error(error_data)


def _format_detailed_error(error_data: Dict[str, Any]) -> str:
    """
    Log the structured error body of the attestation API and summarise it.

    Args:
        error_data: Error response data from the API

    Returns:
        Concise summary for the exception message
    """
    error_message = error_data.get('error', 'Unknown error')
    error_type = error_data.get('error_type', 'Unknown')
    details = error_data.get('details') or {}

    lines = [
        f"Error: {error_message}",
        f"Type: {error_type}"
    ]

    if 'timestamp' in details:
        lines.append(f"Timestamp: {details['timestamp']}")
    if 'command' in details:
        lines.append(f"Command: {details['command']}")
    if 'exit_code' in details:
        lines.append(f"Exit Code: {details['exit_code']}")

    for stream in ('stdout', 'stderr'):
        output = details.get(stream)
        if output:
            if len(output) > 500:
                output = output[:500] + "... (truncated)"
            lines.append(f"{stream}: {output}")

    for key, value in (details.get('context') or {}).items():
        lines.append(f"  {key}: {value}")

    logger.error("Attestation API error:\n" + "\n".join(lines))

    summary = f"{error_message} (Type: {error_type})"
    if 'exit_code' in details:
        summary += f" [Exit Code: {details['exit_code']}]"
    return summary
