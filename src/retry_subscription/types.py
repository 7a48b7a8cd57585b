"""
Core types for collection subscriptions.

This module provides:
- CollectionUpdate: A keyed upsert/delete event
- PreInit / Live: The two variants of the Attempt tagged union
- Callable aliases for the injected strategies (Subscribe, OnError, ...)
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, Callable, Hashable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeAlias, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class CollectionUpdate(Generic[K, V]):
    """
    A single change to a keyed collection.

    Attributes:
        key: Unique key of the item in the collection (str or int)
        value: New value of the item, or None if the item was removed

    Example:
        >>> CollectionUpdate.upsert("order-1", {"status": "new"})
        >>> CollectionUpdate.delete("order-1")
    """

    key: K
    value: V | None = None

    @property
    def is_delete(self) -> bool:
        """True if this update removes the key from the collection."""
        return self.value is None

    @classmethod
    def upsert(cls, key: K, value: V) -> CollectionUpdate[K, V]:
        return cls(key, value)

    @classmethod
    def delete(cls, key: K) -> CollectionUpdate[K, V]:
        return cls(key, None)


@dataclass(frozen=True)
class PreInit:
    """
    The current subscription attempt has not produced a batch yet.

    Attributes:
        attempt: Number of consecutive failures before initialization
    """

    attempt: int = 0


@dataclass(frozen=True)
class Live:
    """The current subscription attempt has produced at least one batch."""


LIVE = Live()

Attempt: TypeAlias = PreInit | Live

Batch: TypeAlias = Sequence[CollectionUpdate[Any, Any]]

Subscribe: TypeAlias = Callable[[asyncio.Event | None], AsyncIterable[Batch]]
"""Opens the source subscription, given the (optional) cancellation signal."""

OnError: TypeAlias = Callable[[BaseException, int | None, int | None], None]
"""Called with (error, attempt, delay_ms); attempt and delay_ms are None after init."""

GetRevision: TypeAlias = Callable[[Any], Any]

Equality: TypeAlias = Callable[[Any, Any], bool]


__all__ = [
    "K",
    "V",
    "CollectionUpdate",
    "PreInit",
    "Live",
    "LIVE",
    "Attempt",
    "Batch",
    "Subscribe",
    "OnError",
    "GetRevision",
    "Equality",
]
