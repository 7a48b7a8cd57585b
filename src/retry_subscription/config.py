"""
Configuration for retrying collection subscriptions.

This module provides:
- RetryCollectionSubscriptionConfig: Backoff bounds, retry budget and the
  injected strategies (error hook, revision projection, equality)
"""

from __future__ import annotations

import operator
from dataclasses import dataclass, field
from typing import Any

from retry_subscription.backoff import compute_delay, should_retry
from retry_subscription.types import Equality, GetRevision, OnError


def identity(value: Any) -> Any:
    """Default revision projection: the whole value is the revision."""
    return value


@dataclass(frozen=True)
class RetryCollectionSubscriptionConfig:
    """
    Configuration for a retrying collection subscription.

    Attributes:
        base_ms: Delay before the first retry in milliseconds. With
            ``base_ms=100`` retries happen in 100ms, 200ms, 400ms etc.
            (not counting jitter).
        max_delay_ms: Maximum delay between attempts in milliseconds. With
            ``base_ms=1000`` and ``max_delay_ms=3000`` retries happen in
            1000ms, 2000ms, 3000ms, 3000ms etc. (not counting jitter).
        max_attempts: Maximum number of consecutive retries before
            initialization. None means unbounded.
        on_error: Called as ``on_error(error, attempt, delay_ms)`` when the
            source fails, before the delay timer is set. If the source had
            already emitted a batch, ``attempt`` and ``delay_ms`` are None and
            the retry happens immediately. Otherwise ``attempt`` starts from 0
            and the retry happens after exponential backoff. Raise from the
            callback to prevent further retries.
        get_revision: Projects a value to a cheaper change indicator that is
            stored instead of the whole value. Defaults to identity.
        equality: Compares two revisions during resubscription diffing.
            Defaults to ``operator.eq`` (deep structural equality).

    Example:
        >>> config = RetryCollectionSubscriptionConfig(
        ...     base_ms=500,
        ...     max_delay_ms=10_000,
        ...     max_attempts=10,
        ...     get_revision=lambda order: order["version"],
        ... )
    """

    base_ms: float = 1000.0
    max_delay_ms: float = 15000.0
    max_attempts: int | None = None

    on_error: OnError | None = None
    get_revision: GetRevision = field(default=identity)
    equality: Equality = field(default=operator.eq)

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.base_ms <= 0:
            raise ValueError(
                f"base_ms must be positive, got {self.base_ms}. "
                "Use a value like 1000 (default) milliseconds."
            )

        if self.max_delay_ms <= 0:
            raise ValueError(
                f"max_delay_ms must be positive, got {self.max_delay_ms}. "
                "Use a value like 15000 (default) milliseconds."
            )

        if self.max_attempts is not None and self.max_attempts < 0:
            raise ValueError(
                f"max_attempts must be >= 0, got {self.max_attempts}. "
                "Use 0 for no retries or None for unbounded retries."
            )

        if self.on_error is not None and not callable(self.on_error):
            raise ValueError(f"on_error must be callable, got {self.on_error!r}.")

        if not callable(self.get_revision):
            raise ValueError(f"get_revision must be callable, got {self.get_revision!r}.")

        if not callable(self.equality):
            raise ValueError(f"equality must be callable, got {self.equality!r}.")

    def compute_delay(self, attempt: int) -> int:
        """Jittered delay in milliseconds for the given attempt."""
        return compute_delay(attempt, self.base_ms, self.max_delay_ms)

    def should_retry(self, attempt: int) -> bool:
        """Whether another attempt fits in the retry budget."""
        return should_retry(attempt, self.max_attempts)


__all__ = [
    "RetryCollectionSubscriptionConfig",
    "identity",
]
