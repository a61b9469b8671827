"""Header helpers: merging and credential redaction."""

from __future__ import annotations

from collections.abc import Mapping

# Headers whose values are secrets and must be masked before logging
SENSITIVE_HEADERS = frozenset(["x-api-key", "authorization"])

API_KEY_HEADER = "x-api-key"
HOLDER_ID_HEADER = "x-holder-id"
PROJECT_NAME_HEADER = "x-project-name"
IDEMPOTENCY_KEY_HEADER = "x-idempotency-key"


def mask_secret(value: str) -> str:
    """Mask a secret, keeping a short prefix and suffix for long values."""
    if len(value) > 8:
        return f"{value[:4]}…{value[-4:]}"
    return "********"


def redact_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    """Return a copy of ``headers`` with sensitive values masked.

    The input mapping is never modified.
    """
    if not headers:
        return {}
    return {
        key: mask_secret(value) if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def merge_headers(*sources: Mapping[str, str] | None) -> dict[str, str]:
    """Merge header mappings left to right, later values winning.

    Keys are compared case-insensitively; the spelling of the last writer is kept.
    """
    merged: dict[str, str] = {}
    lowered: dict[str, str] = {}
    for source in sources:
        if not source:
            continue
        for key, value in source.items():
            previous = lowered.pop(key.lower(), None)
            if previous is not None:
                merged.pop(previous, None)
            merged[key] = value
            lowered[key.lower()] = key
    return merged
