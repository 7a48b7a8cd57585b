"""
Test utilities for retry_subscription.

Components:
    SubscriptionSink: Push-driven in-memory source of update batches
    ScriptedSubscribe: Subscribe function returning prepared sinks in order

Example:
    >>> from retry_subscription.testing import ScriptedSubscribe, SubscriptionSink
    >>>
    >>> first, second = SubscriptionSink(), SubscriptionSink()
    >>> first.write([CollectionUpdate("1", {"test": "1-1"})])
    >>> first.error(ConnectionError("dropped"))
    >>> second.write([CollectionUpdate("1", {"test": "1-2"})])
    >>>
    >>> subscription = retry_collection_subscription(ScriptedSubscribe(first, second))

Note:
    This module is intended for test code only. It should not be imported in
    production code paths.
"""

from retry_subscription.testing.sink import ScriptedSubscribe, SubscriptionSink

__all__ = [
    "ScriptedSubscribe",
    "SubscriptionSink",
]
