from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import pytest

from warlot.transport import parse_retry_after

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("value, expected", [("0", 0.0), ("1", 1.0), ("120", 120.0), (" 5 ", 5.0)])
def test_seconds(value: str, expected: float) -> None:
    assert parse_retry_after(value, now=NOW) == expected


def test_future_http_date() -> None:
    value = format_datetime(NOW + timedelta(seconds=30), usegmt=True)
    assert parse_retry_after(value, now=NOW) == pytest.approx(30.0)


def test_past_http_date_is_ignored() -> None:
    value = format_datetime(NOW - timedelta(seconds=30), usegmt=True)
    assert parse_retry_after(value, now=NOW) is None


@pytest.mark.parametrize("value", [None, "", "-1", "soon", "1.5", "Mon, 99 Foo 2024", "\u00b2", "\u0661\u0662"])
def test_unusable_values(value) -> None:
    assert parse_retry_after(value, now=NOW) is None
