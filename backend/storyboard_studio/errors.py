"""Error taxonomy shared by the generators and the UI."""

from __future__ import annotations

import json
from enum import Enum

import openai
from pydantic import ValidationError


class ErrorKind(str, Enum):
    MISSING_CREDENTIAL = "missing_credential"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    INVALID = "invalid"
    TRANSIENT = "transient"


class GenerationError(Exception):
    """Raised when a storyboard (or sketch request) cannot be produced."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class InvalidTransition(Exception):
    """Raised when a row or view action is not allowed in the current state."""


class ExportError(Exception):
    """Raised when the storyboard cannot be rasterized into a PDF."""


_UNAUTHORIZED_PATTERNS = (
    "requested entity was not found",
    "entity was not found",
    "api key not valid",
    "api key not found",
    "invalid api key",
    "incorrect api key",
)
_RATE_LIMIT_PATTERNS = (
    "resource_exhausted",
    "rate limit",
    "quota",
    "too many requests",
)


def _mentions_bad_key(exc: BaseException) -> bool:
    message = str(exc).lower()
    return any(pattern in message for pattern in _UNAUTHORIZED_PATTERNS)


def _kind_from_status(status: int) -> ErrorKind | None:
    if status in (401, 403, 404):
        return ErrorKind.UNAUTHORIZED
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if 400 <= status < 500:
        return ErrorKind.INVALID
    if status >= 500:
        return ErrorKind.TRANSIENT
    return None


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an arbitrary failure onto the closed set of error kinds.

    SDK exception types win, then an HTTP ``status_code`` attribute, then the
    message text. Message matching only exists because some providers report
    a revoked key as a plain "entity was not found" failure.
    """
    if isinstance(exc, GenerationError):
        return exc.kind
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError, openai.NotFoundError)):
        return ErrorKind.UNAUTHORIZED
    if isinstance(exc, openai.RateLimitError):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, openai.BadRequestError) and _mentions_bad_key(exc):
        # Gemini reports a rejected key as a 400.
        return ErrorKind.UNAUTHORIZED
    if isinstance(exc, (openai.BadRequestError, openai.UnprocessableEntityError)):
        return ErrorKind.INVALID
    if isinstance(exc, (openai.APIConnectionError, openai.InternalServerError)):
        return ErrorKind.TRANSIENT
    if isinstance(exc, (json.JSONDecodeError, ValidationError)):
        return ErrorKind.INVALID

    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        if status == 400 and _mentions_bad_key(exc):
            return ErrorKind.UNAUTHORIZED
        kind = _kind_from_status(status)
        if kind is not None:
            return kind

    if _mentions_bad_key(exc):
        return ErrorKind.UNAUTHORIZED
    message = str(exc).lower()
    if any(pattern in message for pattern in _RATE_LIMIT_PATTERNS):
        return ErrorKind.RATE_LIMITED
    return ErrorKind.TRANSIENT
