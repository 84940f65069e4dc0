"""Error classification tests."""

import json

import httpx
import openai

from storyboard_studio.errors import ErrorKind, GenerationError, classify_error


class _StatusError(Exception):
    def __init__(self, status_code: int, message: str = "remote failure"):
        super().__init__(message)
        self.status_code = status_code


def _request():
    return httpx.Request("POST", "https://example.invalid/v1/chat/completions")


def test_generation_error_keeps_its_kind():
    assert classify_error(GenerationError(ErrorKind.INVALID, "bad")) is ErrorKind.INVALID


def test_sdk_exception_types_are_mapped():
    rate_limited = openai.RateLimitError(
        "slow down", response=httpx.Response(429, request=_request()), body=None
    )
    unauthorized = openai.AuthenticationError(
        "bad key", response=httpx.Response(401, request=_request()), body=None
    )
    connection = openai.APIConnectionError(request=_request())

    assert classify_error(rate_limited) is ErrorKind.RATE_LIMITED
    assert classify_error(unauthorized) is ErrorKind.UNAUTHORIZED
    assert classify_error(connection) is ErrorKind.TRANSIENT


def test_rejected_key_reported_as_bad_request_is_unauthorized():
    bad_key = openai.BadRequestError(
        "Error code: 400 - API key not valid. Please pass a valid API key.",
        response=httpx.Response(400, request=_request()),
        body=None,
    )
    bad_schema = openai.BadRequestError(
        "Error code: 400 - Invalid JSON schema",
        response=httpx.Response(400, request=_request()),
        body=None,
    )

    assert classify_error(bad_key) is ErrorKind.UNAUTHORIZED
    assert classify_error(bad_schema) is ErrorKind.INVALID
    assert classify_error(_StatusError(400, "API key not valid")) is ErrorKind.UNAUTHORIZED


def test_status_code_attribute_is_used():
    assert classify_error(_StatusError(429)) is ErrorKind.RATE_LIMITED
    assert classify_error(_StatusError(403)) is ErrorKind.UNAUTHORIZED
    assert classify_error(_StatusError(400)) is ErrorKind.INVALID
    assert classify_error(_StatusError(503)) is ErrorKind.TRANSIENT


def test_entity_not_found_message_means_unauthorized():
    exc = RuntimeError("Requested entity was not found.")

    assert classify_error(exc) is ErrorKind.UNAUTHORIZED


def test_quota_message_means_rate_limited():
    assert classify_error(RuntimeError("RESOURCE_EXHAUSTED: quota exceeded")) is ErrorKind.RATE_LIMITED


def test_parse_failures_are_invalid_and_unknown_is_transient():
    try:
        json.loads("{not json")
    except json.JSONDecodeError as exc:
        assert classify_error(exc) is ErrorKind.INVALID

    assert classify_error(RuntimeError("boom")) is ErrorKind.TRANSIENT
