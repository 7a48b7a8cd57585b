"""
retry_subscription - Retry collection subscriptions with backoff and reconciliation.

This library provides:
- A wrapper retrying a live collection subscription with exponential backoff
  and jitter
- Snapshot diffing on resubscription, so consumers only see the net change
- An operator form for composing over async iterables
- OpenTelemetry tracing of reconciliations and backoff waits
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("retry-subscription")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from retry_subscription.backoff import compute_backoff, compute_delay, should_retry
from retry_subscription.config import RetryCollectionSubscriptionConfig
from retry_subscription.diffing import SnapshotDiff, diff_snapshot, ensure_snapshot
from retry_subscription.exceptions import (
    ProtocolViolationError,
    RetrySubscriptionError,
    SubscriptionStateError,
)
from retry_subscription.operators import (
    RetryCollectionSubscriptionIterable,
    retry_collection_subscription_operator,
)
from retry_subscription.retrier import (
    RetryCollectionSubscription,
    RetrySubscriptionStats,
    retry_collection_subscription,
)
from retry_subscription.state import CollectionState
from retry_subscription.types import (
    LIVE,
    Attempt,
    CollectionUpdate,
    Live,
    PreInit,
)

__all__ = [
    "__version__",
    # Wrapper
    "RetryCollectionSubscription",
    "RetrySubscriptionStats",
    "retry_collection_subscription",
    # Operator
    "RetryCollectionSubscriptionIterable",
    "retry_collection_subscription_operator",
    # Configuration
    "RetryCollectionSubscriptionConfig",
    # Types
    "CollectionUpdate",
    "Attempt",
    "PreInit",
    "Live",
    "LIVE",
    # State and diffing
    "CollectionState",
    "SnapshotDiff",
    "diff_snapshot",
    "ensure_snapshot",
    # Backoff
    "compute_backoff",
    "compute_delay",
    "should_retry",
    # Exceptions
    "RetrySubscriptionError",
    "ProtocolViolationError",
    "SubscriptionStateError",
]
