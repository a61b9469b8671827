"""Retry-After header parsing."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Convert a Retry-After header value into a delay in seconds.

    Accepts either a non-negative integer number of seconds or an HTTP-date.
    Dates in the past, negative numbers and anything unparseable yield
    ``None`` so the caller falls back to its own backoff.

    Args:
        value: Raw header value
        now: Reference time for HTTP-date values (defaults to the current UTC time)

    Returns:
        Delay in seconds, or None
    """
    if not value:
        return None
    value = value.strip()

    if value.isascii() and value.isdigit():
        return float(int(value))

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        # RFC 7231 dates are always GMT
        when = when.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    delay = (when - now).total_seconds()
    if delay > 0:
        return delay
    return None
