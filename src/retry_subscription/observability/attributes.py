"""
Standard span attributes for retry_subscription.

Example:
    >>> from retry_subscription.observability.attributes import ATTR_ATTEMPT
    >>>
    >>> with tracer.span("retry_subscription.backoff", attributes={ATTR_ATTEMPT: 2}):
    ...     pass
"""

# =============================================================================
# Subscription Attributes
# =============================================================================

ATTR_SUBSCRIPTION_INDEX = "retry_subscription.subscription.index"
"""How many times the source has been reopened (integer, 0 for the first open)."""

ATTR_ATTEMPT = "retry_subscription.attempt"
"""Consecutive failures before initialization (integer)."""

ATTR_DELAY_MS = "retry_subscription.delay_ms"
"""Chosen backoff delay in milliseconds (integer)."""

# =============================================================================
# Reconciliation Attributes
# =============================================================================

ATTR_KNOWN_KEYS = "retry_subscription.state.known_keys"
"""Number of keys in the state before reconciliation (integer)."""

ATTR_SNAPSHOT_SIZE = "retry_subscription.snapshot.size"
"""Number of updates in the reconciliation snapshot (integer)."""

ATTR_EVENTS_EMITTED = "retry_subscription.events.emitted"
"""Number of updates emitted by a reconciliation (integer)."""

ATTR_EVENTS_DELETED = "retry_subscription.events.deleted"
"""Number of deletes emitted by a reconciliation (integer)."""

# =============================================================================
# Error Attributes
# =============================================================================

ATTR_ERROR_TYPE = "retry_subscription.error.type"
"""Type of error encountered (exception class name)."""

# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "ATTR_SUBSCRIPTION_INDEX",
    "ATTR_ATTEMPT",
    "ATTR_DELAY_MS",
    "ATTR_KNOWN_KEYS",
    "ATTR_SNAPSHOT_SIZE",
    "ATTR_EVENTS_EMITTED",
    "ATTR_EVENTS_DELETED",
    "ATTR_ERROR_TYPE",
]
