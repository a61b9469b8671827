"""Jittered exponential backoff.

Pure functions used by the request executor between attempts. Randomness is
confined to :func:`compute_jittered_delay`; everything else is deterministic.
All durations are in seconds.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_BACKOFF = 0.3
DEFAULT_MAX_BACKOFF = 3.0


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for one logical call.

    Attributes:
        max_retries: Retries after the first attempt (0 means a single attempt)
        initial_backoff: First backoff window in seconds
        max_backoff: Upper bound for any backoff window in seconds
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF
    max_backoff: float = DEFAULT_MAX_BACKOFF

    def normalized(self) -> RetryPolicy:
        """Return a copy with safe, strictly positive bounds."""
        initial, maximum = normalize_backoff(self.initial_backoff, self.max_backoff)
        return RetryPolicy(
            max_retries=normalize_retries(self.max_retries),
            initial_backoff=initial,
            max_backoff=maximum,
        )

    @property
    def max_attempts(self) -> int:
        return normalize_retries(self.max_retries) + 1


def normalize_backoff(initial: float, maximum: float) -> tuple[float, float]:
    """Replace non-positive backoff bounds with the defaults."""
    if initial <= 0:
        initial = DEFAULT_INITIAL_BACKOFF
    if maximum <= 0:
        maximum = DEFAULT_MAX_BACKOFF
    return initial, maximum


def normalize_retries(retries: int) -> int:
    """Clamp a retry count to be non-negative."""
    return max(retries, 0)


def compute_jittered_delay(
    backoff: float,
    max_backoff: float,
    rand: Callable[[], float] = random.random,
) -> float:
    """Pick a delay uniformly from ``[0.5 * backoff, backoff]``, capped at ``max_backoff``.

    Args:
        backoff: Current backoff window
        max_backoff: Hard cap for the returned delay
        rand: Source of floats in ``[0, 1)``; injectable for tests

    Returns:
        Delay in seconds
    """
    delay = backoff * (0.5 + 0.5 * rand())
    return min(delay, max_backoff)


def advance_backoff(backoff: float, max_backoff: float) -> float:
    """Double the backoff window, capped at ``max_backoff``."""
    return min(backoff * 2, max_backoff)
