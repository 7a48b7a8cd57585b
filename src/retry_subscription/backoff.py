"""
Exponential backoff with jitter for subscription retries.

The delay for attempt ``n`` is drawn uniformly from ``[backoff / 2, backoff]``
where ``backoff = min(max_delay_ms, base_ms * 2**n)``, so the average stays
close to the unjittered exponential curve.

See https://aws.amazon.com/blogs/architecture/exponential-backoff-and-jitter/
"""

import math
import random
from collections.abc import Callable


def compute_backoff(attempt: int, base_ms: float, max_delay_ms: float) -> float:
    """
    Calculate the unjittered backoff ceiling for an attempt.

    Args:
        attempt: Current attempt number (0-based)
        base_ms: Delay before the first retry in milliseconds
        max_delay_ms: Upper bound for any delay in milliseconds

    Returns:
        ``min(max_delay_ms, base_ms * 2**attempt)``
    """
    # Avoid float overflow for very large attempt counts
    if attempt >= 1024:
        return max_delay_ms
    return min(max_delay_ms, base_ms * (2**attempt))


def compute_delay(
    attempt: int,
    base_ms: float = 1000,
    max_delay_ms: float = 15000,
    rand: Callable[[], float] | None = None,
) -> int:
    """
    Calculate a jittered retry delay in milliseconds.

    Args:
        attempt: Current attempt number (0-based)
        base_ms: Delay before the first retry in milliseconds
        max_delay_ms: Upper bound for any delay in milliseconds
        rand: Uniform random source in [0, 1), defaults to random.random

    Returns:
        Delay in whole milliseconds

    Example:
        >>> compute_delay(0, rand=lambda: 0.5)
        750
        >>> compute_delay(1, rand=lambda: 0.5)
        1500
    """
    if attempt < 0:
        raise ValueError(f"attempt must be >= 0, got {attempt}.")

    backoff = compute_backoff(attempt, base_ms, max_delay_ms)
    draw = rand() if rand is not None else random.random()  # nosec B311 - not crypto
    jittered = backoff * (1 + draw) / 2

    # Round half up
    return math.floor(jittered + 0.5)


def should_retry(attempt: int, max_attempts: int | None) -> bool:
    """
    Check whether another attempt is allowed.

    Args:
        attempt: Number of failures so far in the current streak
        max_attempts: Retry budget, None for unbounded

    Returns:
        True if a retry should be scheduled
    """
    if max_attempts is None:
        return True
    return attempt < max_attempts


__all__ = [
    "compute_backoff",
    "compute_delay",
    "should_retry",
]
