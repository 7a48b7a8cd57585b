"""
Operator form of the retrying subscription.

Exposes the same behavior as a composable stage over async iterables: the
operator takes a source of update batches and returns an async iterable that
retries it. Each attempt iterates the source again, so the source must be
re-iterable (an object whose ``__aiter__`` opens a fresh subscription), not a
one-shot async generator object.

Example:
    >>> retrying = retry_collection_subscription_operator(base_ms=100)
    >>> async for updates in retrying(orders_feed):
    ...     apply(updates)
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import AsyncIterable, AsyncIterator, Callable
from typing import Any, Generic

from retry_subscription.config import RetryCollectionSubscriptionConfig
from retry_subscription.observability import Tracer
from retry_subscription.retrier import RetryCollectionSubscription
from retry_subscription.types import Batch, CollectionUpdate, K, V


class RetryCollectionSubscriptionIterable(Generic[K, V]):
    """
    Async iterable retrying a re-iterable source of update batches.

    Every ``async for`` over this object starts a new logical subscription
    with its own state.

    Args:
        source: Re-iterable async iterable of update batches
        config: Retry configuration (uses defaults if None)
        signal: Cancellation signal for the subscriptions started from here
        tracer: Optional custom tracer
        enable_tracing: Whether to create OpenTelemetry spans (default True)
    """

    def __init__(
        self,
        source: AsyncIterable[Batch],
        config: RetryCollectionSubscriptionConfig | None = None,
        *,
        signal: asyncio.Event | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._source = source
        self._config = config
        self._signal = signal
        self._tracer = tracer
        self._enable_tracing = enable_tracing

    def with_signal(self, signal: asyncio.Event) -> RetryCollectionSubscriptionIterable[K, V]:
        """Return a copy of this iterable bound to a cancellation signal."""
        return RetryCollectionSubscriptionIterable(
            self._source,
            self._config,
            signal=signal,
            tracer=self._tracer,
            enable_tracing=self._enable_tracing,
        )

    def _subscribe(self, signal: asyncio.Event | None) -> AsyncIterable[Batch]:
        return self._source

    def __aiter__(self) -> AsyncIterator[list[CollectionUpdate[K, V]]]:
        subscription: RetryCollectionSubscription[K, V] = RetryCollectionSubscription(
            self._subscribe,
            self._config,
            signal=self._signal,
            tracer=self._tracer,
            enable_tracing=self._enable_tracing,
        )
        return aiter(subscription)


def retry_collection_subscription_operator(
    config: RetryCollectionSubscriptionConfig | None = None,
    *,
    tracer: Tracer | None = None,
    enable_tracing: bool = True,
    **overrides: Any,
) -> Callable[[AsyncIterable[Batch]], RetryCollectionSubscriptionIterable[Any, Any]]:
    """
    Create an operator that retries a source of update batches.

    Args:
        config: Retry configuration (uses defaults if None)
        tracer: Optional custom tracer
        enable_tracing: Whether to create OpenTelemetry spans (default True)
        **overrides: RetryCollectionSubscriptionConfig fields overriding ``config``

    Returns:
        Function taking a source and returning a retrying async iterable
    """
    if overrides:
        config = dataclasses.replace(config or RetryCollectionSubscriptionConfig(), **overrides)

    def operator(source: AsyncIterable[Batch]) -> RetryCollectionSubscriptionIterable[Any, Any]:
        return RetryCollectionSubscriptionIterable(
            source,
            config,
            tracer=tracer,
            enable_tracing=enable_tracing,
        )

    return operator


__all__ = [
    "RetryCollectionSubscriptionIterable",
    "retry_collection_subscription_operator",
]
