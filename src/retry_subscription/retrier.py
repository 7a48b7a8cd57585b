"""
Retrying wrapper for collection subscriptions.

A collection subscription is a function that opens a live feed of batches of
keyed upserts and deletes. The first batch of every connection is a full
snapshot, later batches are incremental. RetryCollectionSubscription wraps
such a function so that:

- failures before the first batch of a connection are retried with
  exponential backoff and jitter
- failures after the first batch are retried immediately
- after a reconnect, the new snapshot is diffed against what the consumer
  already knows, and only the net difference is emitted

The consumer sees one uninterrupted stream of batches.

Example:
    >>> async def subscribe(signal):
    ...     async for batch in client.watch_orders():
    ...         yield [CollectionUpdate(o.id, o) for o in batch]
    >>>
    >>> subscription = retry_collection_subscription(
    ...     subscribe,
    ...     max_attempts=10,
    ...     get_revision=lambda order: order.version,
    ... )
    >>> async for updates in subscription:
    ...     apply(updates)
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Generic

from retry_subscription.config import RetryCollectionSubscriptionConfig
from retry_subscription.diffing import diff_snapshot, ensure_snapshot
from retry_subscription.exceptions import ProtocolViolationError, SubscriptionStateError
from retry_subscription.observability import (
    ATTR_ATTEMPT,
    ATTR_DELAY_MS,
    ATTR_ERROR_TYPE,
    ATTR_EVENTS_DELETED,
    ATTR_EVENTS_EMITTED,
    ATTR_KNOWN_KEYS,
    ATTR_SNAPSHOT_SIZE,
    ATTR_SUBSCRIPTION_INDEX,
    Tracer,
    create_tracer,
)
from retry_subscription.state import CollectionState
from retry_subscription.types import (
    LIVE,
    Attempt,
    Batch,
    CollectionUpdate,
    K,
    Live,
    PreInit,
    Subscribe,
    V,
)

logger = logging.getLogger(__name__)

# Marks the clean end of a source
_EXHAUSTED: Any = object()


@dataclass
class RetrySubscriptionStats:
    """
    Statistics for a retrying subscription.

    A snapshot taken at the time ``RetryCollectionSubscription.stats`` was
    read; mutating it has no effect on the subscription.

    Attributes:
        subscriptions_opened: Times the source was opened (including the first)
        batches_received: Batches received from the source
        reconciliations: Snapshots diffed against the known state
        failures: Errors raised by the source
        immediate_retries: Resubscriptions after initialization (no delay)
        backoff_retries: Resubscriptions after a backoff delay
        total_delay_ms: Total backoff time waited out in full
        last_error: String representation of the last source error
        attempt: Current attempt state
        known_keys: Number of keys the consumer currently knows about
    """

    subscriptions_opened: int = 0
    batches_received: int = 0
    reconciliations: int = 0
    failures: int = 0
    immediate_retries: int = 0
    backoff_retries: int = 0
    total_delay_ms: int = 0
    last_error: str | None = None
    attempt: Attempt = field(default_factory=PreInit)
    known_keys: int = 0

    def to_dict(self) -> dict[str, Any]:
        """
        Convert stats to dictionary for serialization.

        Returns:
            Dictionary representation of stats
        """
        return {
            "subscriptions_opened": self.subscriptions_opened,
            "batches_received": self.batches_received,
            "reconciliations": self.reconciliations,
            "failures": self.failures,
            "immediate_retries": self.immediate_retries,
            "backoff_retries": self.backoff_retries,
            "total_delay_ms": self.total_delay_ms,
            "last_error": self.last_error,
            "attempt": None if isinstance(self.attempt, Live) else self.attempt.attempt,
            "known_keys": self.known_keys,
        }


def _raise_if_cancelled(signal: asyncio.Event | None) -> None:
    if signal is not None and signal.is_set():
        raise asyncio.CancelledError()


async def _anext_or_exhausted(iterator: AsyncIterator[Batch]) -> Any:
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return _EXHAUSTED


def _retrieve(task: asyncio.Future[Any]) -> None:
    # Consume the outcome so asyncio does not report it as never retrieved
    if task.done() and not task.cancelled():
        task.exception()


async def _next_batch(iterator: AsyncIterator[Batch], signal: asyncio.Event | None) -> Any:
    """
    Await the next batch, or _EXHAUSTED when the source ends.

    Raises asyncio.CancelledError as soon as ``signal`` is set, cancelling the
    pending read of the source.
    """
    if signal is None:
        return await _anext_or_exhausted(iterator)

    _raise_if_cancelled(signal)

    next_task = asyncio.ensure_future(_anext_or_exhausted(iterator))
    cancel_task = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait({next_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        cancel_task.cancel()
        if not next_task.done():
            next_task.cancel()
            # The source must settle before it can be closed
            await asyncio.wait({next_task})
            _retrieve(next_task)

    if signal.is_set():
        _retrieve(next_task)
        raise asyncio.CancelledError()

    return next_task.result()


async def _sleep(delay_ms: int, signal: asyncio.Event | None) -> None:
    """Wait out a backoff delay, raising asyncio.CancelledError if ``signal`` is set."""
    seconds = delay_ms / 1000

    if signal is None:
        await asyncio.sleep(seconds)
        return

    _raise_if_cancelled(signal)
    try:
        await asyncio.wait_for(signal.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return
    raise asyncio.CancelledError()


async def _close(iterator: AsyncIterator[Batch]) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()


class RetryCollectionSubscription(Generic[K, V]):
    """
    One logical collection subscription with retries.

    The instance owns the known state (key -> revision) and the attempt
    counter for its whole lifetime. Neither is exposed; ``stats`` returns a
    copy for diagnostics. An instance can be iterated only once.

    Args:
        subscribe: Opens the source; called with ``signal`` on every attempt
        config: Retry configuration (uses defaults if None)
        signal: Cancellation signal shared by every suspension point. Setting
            it ends the iteration with asyncio.CancelledError.
        tracer: Optional custom tracer for testing or custom backends
        enable_tracing: Whether to create OpenTelemetry spans (default True)

    Raises (from iteration):
        ProtocolViolationError: The source broke the snapshot contract
        asyncio.CancelledError: ``signal`` was set or the task was cancelled
        Exception: The source error that exhausted ``max_attempts``, or the
            error raised by ``on_error``
    """

    def __init__(
        self,
        subscribe: Subscribe,
        config: RetryCollectionSubscriptionConfig | None = None,
        *,
        signal: asyncio.Event | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._subscribe = subscribe
        self._config = config or RetryCollectionSubscriptionConfig()
        self._signal = signal
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

        # Owned by the retry loop
        self._state = CollectionState()
        self._attempt: Attempt = PreInit(0)
        self._subscription_index = -1

        self._stats = RetrySubscriptionStats()
        self._started = False

    @property
    def config(self) -> RetryCollectionSubscriptionConfig:
        """Get the retry configuration."""
        return self._config

    @property
    def attempt(self) -> Attempt:
        """Get the current attempt state."""
        return self._attempt

    @property
    def stats(self) -> RetrySubscriptionStats:
        """Get a snapshot of the subscription statistics."""
        return dataclasses.replace(
            self._stats,
            attempt=self._attempt,
            known_keys=len(self._state),
        )

    def __aiter__(self) -> AsyncIterator[list[CollectionUpdate[K, V]]]:
        if self._started:
            raise SubscriptionStateError(
                "RetryCollectionSubscription can only be iterated once. "
                "Create a new instance to subscribe again."
            )
        self._started = True
        return self._run()

    async def _run(self) -> AsyncIterator[list[CollectionUpdate[K, V]]]:
        try:
            while True:
                self._subscription_index += 1
                self._stats.subscriptions_opened += 1
                iterator: AsyncIterator[Batch] | None = None
                failure: Exception

                try:
                    batch_index = -1
                    while True:
                        try:
                            if iterator is None:
                                iterator = self._open()
                            batch = await _next_batch(iterator, self._signal)
                        except ProtocolViolationError:
                            raise
                        except Exception as e:
                            failure = e
                            break

                        if batch is _EXHAUSTED:
                            logger.info(
                                "Subscription source completed",
                                extra={
                                    "subscription_index": self._subscription_index,
                                    "known_keys": len(self._state),
                                },
                            )
                            return

                        batch_index += 1
                        yield self._receive(batch, batch_index)
                finally:
                    if iterator is not None:
                        await _close(iterator)

                await self._handle_failure(failure)
        except asyncio.CancelledError:
            logger.info(
                "Subscription cancelled",
                extra={"subscription_index": self._subscription_index},
            )
            raise

    def _open(self) -> AsyncIterator[Batch]:
        _raise_if_cancelled(self._signal)

        logger.debug(
            "Opening subscription",
            extra={
                "subscription_index": self._subscription_index,
                "known_keys": len(self._state),
            },
        )
        return aiter(self._subscribe(self._signal))

    def _receive(self, batch: Batch, batch_index: int) -> list[CollectionUpdate[K, V]]:
        """Route a received batch to reconciliation or direct application."""
        updates = list(batch)
        self._attempt = LIVE
        self._stats.batches_received += 1

        logger.debug(
            "Received batch",
            extra={
                "subscription_index": self._subscription_index,
                "batch_index": batch_index,
                "batch_size": len(updates),
            },
        )

        try:
            if batch_index == 0:
                ensure_snapshot(updates)
                if self._subscription_index != 0:
                    return self._reconcile(updates)

            self._state.apply(updates, self._config.get_revision)
            return updates
        except ProtocolViolationError as e:
            logger.error(
                "Subscription source violated the update protocol",
                extra={
                    "subscription_index": self._subscription_index,
                    "batch_index": batch_index,
                    "key": e.key,
                    "error": str(e),
                },
            )
            raise

    def _reconcile(self, snapshot: list[CollectionUpdate[K, V]]) -> list[CollectionUpdate[K, V]]:
        """Diff a resubscription snapshot against the known state."""
        with self._tracer.span(
            "retry_subscription.reconcile",
            {
                ATTR_SUBSCRIPTION_INDEX: self._subscription_index,
                ATTR_KNOWN_KEYS: len(self._state),
                ATTR_SNAPSHOT_SIZE: len(snapshot),
            },
        ) as span:
            diff = diff_snapshot(
                self._state.revisions,
                snapshot,
                get_revision=self._config.get_revision,
                equality=self._config.equality,
            )
            if span is not None:
                span.set_attribute(ATTR_EVENTS_EMITTED, len(diff.events))
                span.set_attribute(ATTR_EVENTS_DELETED, diff.deleted)

        self._state.replace(diff.state)
        self._stats.reconciliations += 1
        return diff.events

    async def _handle_failure(self, error: Exception) -> None:
        """
        Decide how to continue after the source failed.

        Returns when the next attempt should be opened; raises to end the
        subscription.
        """
        on_error = self._config.on_error
        self._stats.failures += 1
        self._stats.last_error = str(error)

        if isinstance(self._attempt, Live):
            logger.warning(
                "Subscription failed after initialization, resubscribing immediately",
                extra={
                    "subscription_index": self._subscription_index,
                    "error": str(error),
                    "error_type": type(error).__name__,
                },
            )
            if on_error is not None:
                on_error(error, None, None)

            self._attempt = PreInit(0)
            self._stats.immediate_retries += 1
            return

        attempt = self._attempt.attempt

        if not self._config.should_retry(attempt):
            logger.error(
                "All retries exhausted for subscription",
                extra={
                    "subscription_index": self._subscription_index,
                    "attempt": attempt,
                    "max_attempts": self._config.max_attempts,
                    "error": str(error),
                    "error_type": type(error).__name__,
                },
            )
            raise error

        delay_ms = self._config.compute_delay(attempt)

        with self._tracer.span(
            "retry_subscription.backoff",
            {
                ATTR_SUBSCRIPTION_INDEX: self._subscription_index,
                ATTR_ATTEMPT: attempt,
                ATTR_DELAY_MS: delay_ms,
                ATTR_ERROR_TYPE: type(error).__name__,
            },
        ):
            logger.warning(
                "Retrying subscription after failure",
                extra={
                    "subscription_index": self._subscription_index,
                    "attempt": attempt,
                    "max_attempts": self._config.max_attempts,
                    "delay_ms": delay_ms,
                    "error": str(error),
                    "error_type": type(error).__name__,
                },
            )
            if on_error is not None:
                on_error(error, attempt, delay_ms)

            await _sleep(delay_ms, self._signal)
            self._stats.total_delay_ms += delay_ms

        self._attempt = PreInit(attempt + 1)
        self._stats.backoff_retries += 1


def retry_collection_subscription(
    subscribe: Subscribe,
    config: RetryCollectionSubscriptionConfig | None = None,
    *,
    signal: asyncio.Event | None = None,
    tracer: Tracer | None = None,
    enable_tracing: bool = True,
    **overrides: Any,
) -> RetryCollectionSubscription[Any, Any]:
    """
    Wrap a collection subscription with retries and reconciliation.

    Args:
        subscribe: Opens the source; called with ``signal`` on every attempt
        config: Retry configuration (uses defaults if None)
        signal: Cancellation signal shared by every suspension point
        tracer: Optional custom tracer
        enable_tracing: Whether to create OpenTelemetry spans (default True)
        **overrides: RetryCollectionSubscriptionConfig fields overriding
            ``config`` (e.g. ``base_ms=100, on_error=report``)

    Returns:
        An async iterable of update batches

    Example:
        >>> async for updates in retry_collection_subscription(subscribe, base_ms=100):
        ...     print(updates)
    """
    if overrides:
        config = dataclasses.replace(config or RetryCollectionSubscriptionConfig(), **overrides)

    return RetryCollectionSubscription(
        subscribe,
        config,
        signal=signal,
        tracer=tracer,
        enable_tracing=enable_tracing,
    )


__all__ = [
    "RetryCollectionSubscription",
    "RetrySubscriptionStats",
    "retry_collection_subscription",
]
