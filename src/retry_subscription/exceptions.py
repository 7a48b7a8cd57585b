"""
Library exceptions for the retry_subscription package.

Errors raised by the wrapped subscription source are never wrapped in these
types: they are either retried or re-raised as-is.
"""

from collections.abc import Hashable


class RetrySubscriptionError(Exception):
    """Base exception for retry_subscription library."""

    pass


class ProtocolViolationError(RetrySubscriptionError):
    """
    Raised when the subscription source breaks the snapshot/incremental contract.

    Never retried: it indicates a bug in the source, not a transient condition.

    Attributes:
        key: Collection key of the offending update
        reason: Human-readable description of the violation
    """

    def __init__(self, key: Hashable, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Misbehaving subscription source: {reason}")

    @classmethod
    def none_in_initial_emission(cls, key: Hashable) -> "ProtocolViolationError":
        return cls(key, f"unexpected None value at key '{key}' in initial emission")

    @classmethod
    def delete_of_unknown_key(cls, key: Hashable) -> "ProtocolViolationError":
        return cls(key, f"unexpected None value at key '{key}' which was not present in the state")


class SubscriptionStateError(RetrySubscriptionError):
    """Raised when an operation is invalid for the current state."""

    pass
