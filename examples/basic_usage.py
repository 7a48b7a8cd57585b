"""
Basic Usage Example

This example demonstrates a retrying collection subscription:
- Wrapping a flaky watch feed with retry_collection_subscription
- Backoff before the first batch, immediate retry after it
- Reconciliation: only the difference is emitted after a reconnect
- Stopping the subscription with a cancellation signal

Run with: python -m examples.basic_usage
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

from retry_subscription import CollectionUpdate, retry_collection_subscription

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

# =============================================================================
# Step 1: A flaky source
# =============================================================================
# Every connection starts with a snapshot of the whole collection, followed
# by incremental changes. This fake server drops the first two connections.


@dataclass(frozen=True)
class Order:
    order_id: str
    status: str
    version: int


class FlakyOrderServer:
    """In-memory order collection that fails on its first connections."""

    def __init__(self) -> None:
        self.orders: dict[str, Order] = {
            "o-1": Order("o-1", "new", 1),
            "o-2": Order("o-2", "new", 1),
        }
        self.connections = 0

    async def watch(self, signal: asyncio.Event | None) -> AsyncIterator[list[CollectionUpdate]]:
        self.connections += 1
        connection = self.connections

        if connection == 1:
            raise ConnectionRefusedError("server is starting")

        yield [CollectionUpdate(order.order_id, order) for order in self.orders.values()]

        if connection == 2:
            await asyncio.sleep(0.01)
            self.orders["o-1"] = Order("o-1", "paid", 2)
            yield [CollectionUpdate("o-1", self.orders["o-1"])]

            # Changes made while the client is disconnected
            self.orders["o-2"] = Order("o-2", "shipped", 2)
            self.orders["o-3"] = Order("o-3", "new", 1)
            del self.orders["o-1"]
            raise ConnectionResetError("connection reset by peer")

        await asyncio.sleep(3600)


# =============================================================================
# Step 2: Consume with retries
# =============================================================================


def report(error: BaseException, attempt: int | None, delay_ms: int | None) -> None:
    if attempt is None:
        print(f"   ! {error} - resubscribing immediately")
    else:
        print(f"   ! {error} - retry #{attempt} in {delay_ms}ms")


async def main() -> None:
    print("=" * 60)
    print("retry-subscription: Basic Usage Example")
    print("=" * 60)

    server = FlakyOrderServer()
    stop = asyncio.Event()

    subscription = retry_collection_subscription(
        server.watch,
        signal=stop,
        base_ms=50,
        max_attempts=5,
        on_error=report,
        get_revision=lambda order: order.version,
        enable_tracing=False,
    )

    view: dict[str, Order] = {}
    received = 0

    try:
        async for updates in subscription:
            received += 1
            print(f"\n{received}. Received {len(updates)} update(s):")
            for update in updates:
                if update.is_delete:
                    print(f"   - {update.key} removed")
                    del view[update.key]
                else:
                    print(f"   + {update.key}: {update.value.status} (v{update.value.version})")
                    view[update.key] = update.value

            # Snapshot, incremental change, then the reconciliation diff
            if received == 3:
                stop.set()
    except asyncio.CancelledError:
        print("\nSubscription stopped.")

    print("\nFinal view:")
    for order_id, order in sorted(view.items()):
        print(f"   {order_id}: {order.status}")
    print(f"\nStats: {subscription.stats.to_dict()}")

    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
