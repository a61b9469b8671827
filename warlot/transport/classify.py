"""Response classification: retryability and structured API errors."""

from __future__ import annotations

import json

from ..errors import APIError


def is_retryable(status_code: int) -> bool:
    """Return True for 429 and any 5xx status."""
    return status_code == 429 or 500 <= status_code <= 599


def build_api_error(status_code: int, body: bytes | str | None) -> APIError:
    """Build an :class:`APIError` from a non-2xx response body.

    The body is parsed as a best-effort JSON object with optional
    ``message``, ``error``, ``code`` and ``details`` keys. ``error`` is used
    when ``message`` is missing or empty. Bodies that are not JSON objects
    leave the optional fields empty; the raw text is always preserved.

    Args:
        status_code: HTTP status code
        body: Raw response body

    Returns:
        The structured error
    """
    if isinstance(body, bytes):
        text = body.decode("utf-8", errors="replace")
    else:
        text = body or ""

    message = ""
    code = ""
    details = None
    try:
        payload = json.loads(text)
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        raw_message = payload.get("message")
        raw_error = payload.get("error")
        if isinstance(raw_message, str) and raw_message:
            message = raw_message
        elif isinstance(raw_error, str) and raw_error:
            message = raw_error
        raw_code = payload.get("code")
        if isinstance(raw_code, str):
            code = raw_code
        details = payload.get("details")

    return APIError(
        status_code=status_code,
        body=text,
        message=message,
        code=code,
        details=details,
    )
