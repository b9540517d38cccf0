"""Retrieval from the attestation API: retries, backoff and error bodies."""
from __future__ import annotations

import base64
from typing import Any, List

import pytest
import requests

from nitro_verifier import retrieval
from nitro_verifier.retrieval import request_attestation_document


class FakeResponse:
    def __init__(self, status_code: int, body: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


@pytest.fixture
def no_sleep(monkeypatch) -> List[float]:
    delays: List[float] = []
    monkeypatch.setattr(retrieval.time, "sleep", delays.append)
    return delays


def _queue(monkeypatch, responses: List[Any]) -> List[dict]:
    calls: List[dict] = []

    def fake_post(url, json=None, timeout=None):
        calls.append({"url": url, "json": json, "timeout": timeout})
        item = responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(retrieval.requests, "post", fake_post)
    return calls


def test_successful_request(monkeypatch, no_sleep) -> None:
    body = {"status": "success", "attestation_document": base64.b64encode(b"\x84cose").decode()}
    calls = _queue(monkeypatch, [FakeResponse(200, body)])

    assert request_attestation_document("http://10.0.0.5:8080/", user_data="hello") == b"\x84cose"
    assert calls == [{"url": "http://10.0.0.5:8080/attest", "json": {"user_data": "hello"}, "timeout": 30}]
    assert no_sleep == []


def test_retries_connection_errors_with_backoff(monkeypatch, no_sleep) -> None:
    body = {"status": "success", "attestation_document": base64.b64encode(b"doc").decode()}
    _queue(monkeypatch, [
        requests.exceptions.ConnectionError("refused"),
        FakeResponse(503, text="unavailable"),
        FakeResponse(200, body),
    ])

    assert request_attestation_document("http://api") == b"doc"
    assert no_sleep == [2, 4]


def test_gives_up_after_max_attempts(monkeypatch, no_sleep) -> None:
    _queue(monkeypatch, [requests.exceptions.Timeout("slow")] * 3)
    with pytest.raises(RuntimeError, match="after 3 attempts"):
        request_attestation_document("http://api", max_attempts=3)
    assert no_sleep == [2, 4]


def test_structured_api_error_is_not_retried(monkeypatch, no_sleep) -> None:
    body = {
        "status": "error",
        "error": "Failed to generate attestation document",
        "error_type": "SubprocessError",
        "details": {"exit_code": 1, "stderr": "nsm device missing"},
    }
    _queue(monkeypatch, [FakeResponse(200, body)])

    with pytest.raises(RuntimeError, match=r"SubprocessError\) \[Exit Code: 1\]"):
        request_attestation_document("http://api")
    assert no_sleep == []


def test_last_http_error_is_reported(monkeypatch, no_sleep) -> None:
    body = {"status": "error", "error": "Not Found"}
    _queue(monkeypatch, [FakeResponse(404, body), FakeResponse(404, body)])

    with pytest.raises(RuntimeError, match="HTTP 404: Not Found"):
        request_attestation_document("http://api", max_attempts=2)


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(200, None, text="<html>"),
        FakeResponse(200, ["not", "an", "object"]),
        FakeResponse(200, {"status": "success"}),
        FakeResponse(200, {"status": "success", "attestation_document": "***"}),
    ],
)
def test_malformed_success_response(monkeypatch, no_sleep, response) -> None:
    _queue(monkeypatch, [response])
    with pytest.raises(RuntimeError):
        request_attestation_document("http://api")
