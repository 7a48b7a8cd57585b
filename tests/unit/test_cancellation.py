"""
Unit tests for cancelling a retrying subscription.

Cancellation is observed at every suspension point: opening the source,
awaiting the next batch, and waiting out a backoff delay. It always ends the
iteration with asyncio.CancelledError and never reaches the error hook.
"""

import asyncio
import gc

import pytest

from retry_subscription import CollectionUpdate, retry_collection_subscription
from retry_subscription.testing import ScriptedSubscribe, SubscriptionSink


async def settle():
    """Let pending tasks run until they block."""
    await asyncio.sleep(0.05)


class TestSignalCancellation:
    """Tests for cancellation through the shared signal."""

    @pytest.mark.asyncio
    async def test_already_set_signal_prevents_opening(self, on_error):
        """Test a set signal cancels before the source is opened."""
        signal = asyncio.Event()
        signal.set()
        subscribe = ScriptedSubscribe(SubscriptionSink())
        subscription = retry_collection_subscription(
            subscribe, signal=signal, on_error=on_error, enable_tracing=False
        )

        with pytest.raises(asyncio.CancelledError):
            await anext(aiter(subscription))

        assert subscribe.call_count == 0
        assert on_error.calls == []

    @pytest.mark.asyncio
    async def test_signal_while_awaiting_batch(self, on_error):
        """Test setting the signal interrupts a pending read of the source."""
        signal = asyncio.Event()
        sink = SubscriptionSink()
        subscription = retry_collection_subscription(
            ScriptedSubscribe(sink), signal=signal, on_error=on_error, enable_tracing=False
        )
        it = aiter(subscription)

        sink.write([CollectionUpdate("a", 1)])
        assert await anext(it) == [CollectionUpdate("a", 1)]

        pending = asyncio.ensure_future(anext(it))
        await settle()
        assert not pending.done()

        signal.set()
        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(pending, timeout=1.0)

        assert on_error.calls == []
        assert sink.closed

    @pytest.mark.asyncio
    async def test_signal_during_backoff(self, fixed_random, on_error):
        """Test setting the signal interrupts a backoff wait immediately."""
        signal = asyncio.Event()
        sink = SubscriptionSink()
        sink.error(ConnectionError("down"))
        subscribe = ScriptedSubscribe(sink, SubscriptionSink())
        subscription = retry_collection_subscription(
            subscribe,
            signal=signal,
            base_ms=60_000,
            max_delay_ms=60_000,
            on_error=on_error,
            enable_tracing=False,
        )

        pending = asyncio.ensure_future(anext(aiter(subscription)))
        await settle()
        assert on_error.signatures == [("down", 0, 45_000)]

        signal.set()
        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(pending, timeout=1.0)

        assert subscribe.call_count == 1
        assert subscription.stats.total_delay_ms == 0

    @pytest.mark.asyncio
    async def test_signal_set_by_hook(self, on_error):
        """Test a signal set from the hook cancels before the wait starts."""
        signal = asyncio.Event()

        def cancel(error, attempt, delay_ms):
            on_error(error, attempt, delay_ms)
            signal.set()

        sink = SubscriptionSink()
        sink.write([CollectionUpdate("a", 1)])
        sink.error(ConnectionError("dropped"))
        subscribe = ScriptedSubscribe(sink, SubscriptionSink())
        it = aiter(
            retry_collection_subscription(
                subscribe, signal=signal, on_error=cancel, enable_tracing=False
            )
        )

        await anext(it)
        with pytest.raises(asyncio.CancelledError):
            await anext(it)

        # The immediate retry checks the signal before opening again
        assert on_error.signatures == [("dropped", None, None)]
        assert subscribe.call_count == 1


class TestTaskCancellation:
    """Tests for cancelling the consuming task."""

    @pytest.mark.asyncio
    async def test_cancel_while_awaiting_batch(self, on_error):
        """Test cancelling the consumer closes the source without retrying."""
        sink = SubscriptionSink()
        subscribe = ScriptedSubscribe(sink)
        it = aiter(
            retry_collection_subscription(subscribe, on_error=on_error, enable_tracing=False)
        )

        pending = asyncio.ensure_future(anext(it))
        await settle()
        pending.cancel()

        with pytest.raises(asyncio.CancelledError):
            await pending

        assert on_error.calls == []
        assert subscribe.call_count == 1
        assert sink.closed

    @pytest.mark.asyncio
    async def test_cancel_with_signal_while_awaiting_batch(self, on_error):
        """Test cancelling the consumer also settles the pending read."""
        sink = SubscriptionSink()
        it = aiter(
            retry_collection_subscription(
                ScriptedSubscribe(sink),
                signal=asyncio.Event(),
                on_error=on_error,
                enable_tracing=False,
            )
        )

        pending = asyncio.ensure_future(anext(it))
        await settle()
        pending.cancel()

        with pytest.raises(asyncio.CancelledError):
            await pending

        assert on_error.calls == []
        assert sink.closed

    @pytest.mark.asyncio
    async def test_cancel_with_signal_retrieves_source_cleanup_error(self, on_error):
        """Test an error raised while the source unwinds is still retrieved."""
        unhandled = []
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda _loop, context: unhandled.append(context))

        async def subscribe(signal):
            yield [CollectionUpdate("a", 1)]
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                raise RuntimeError("cleanup failed") from None
            yield [CollectionUpdate("b", 2)]

        try:
            it = aiter(
                retry_collection_subscription(
                    subscribe,
                    signal=asyncio.Event(),
                    on_error=on_error,
                    enable_tracing=False,
                )
            )
            assert await anext(it) == [CollectionUpdate("a", 1)]

            pending = asyncio.ensure_future(anext(it))
            await settle()
            pending.cancel()

            with pytest.raises(asyncio.CancelledError):
                await pending

            del pending, it
            gc.collect()
            await settle()
        finally:
            loop.set_exception_handler(None)

        assert [c["message"] for c in unhandled] == []
        assert on_error.calls == []

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self, fixed_random, on_error):
        """Test cancelling the consumer during a backoff wait."""
        sink = SubscriptionSink()
        sink.error(ConnectionError("down"))
        subscribe = ScriptedSubscribe(sink, SubscriptionSink())
        it = aiter(
            retry_collection_subscription(
                subscribe, base_ms=60_000, on_error=on_error, enable_tracing=False
            )
        )

        pending = asyncio.ensure_future(anext(it))
        await settle()
        pending.cancel()

        with pytest.raises(asyncio.CancelledError):
            await pending

        assert len(on_error.calls) == 1
        assert subscribe.call_count == 1

    @pytest.mark.asyncio
    async def test_cancellation_raised_by_source(self, on_error):
        """Test a CancelledError from the source is propagated, not retried."""
        sink = SubscriptionSink()
        sink.error(asyncio.CancelledError())
        subscribe = ScriptedSubscribe(sink, SubscriptionSink())
        it = aiter(retry_collection_subscription(subscribe, on_error=on_error))

        with pytest.raises(asyncio.CancelledError):
            await anext(it)

        assert on_error.calls == []
        assert subscribe.call_count == 1
