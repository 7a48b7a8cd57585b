"""
State store for retrying collection subscriptions.

Tracks every key the downstream consumer currently believes exists, together
with the revision it was last told about. A CollectionState is owned by
exactly one RetryCollectionSubscription and is only mutated by its retry loop,
with updates that have been (or are about to be) emitted.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Iterator, Mapping
from typing import Any

from retry_subscription.exceptions import ProtocolViolationError
from retry_subscription.types import CollectionUpdate, GetRevision


class CollectionState:
    """
    Mapping from collection key to the last known revision.

    Invariant: the key set is exactly the set of keys for which the consumer
    received an upsert not yet followed by a delete.

    Example:
        >>> state = CollectionState()
        >>> state.apply([CollectionUpdate.upsert("a", 1)], get_revision=lambda v: v)
        >>> "a" in state
        True
    """

    def __init__(self, revisions: Mapping[Hashable, Any] | None = None) -> None:
        self._revisions: dict[Hashable, Any] = dict(revisions or {})

    def __contains__(self, key: object) -> bool:
        return key in self._revisions

    def __len__(self) -> int:
        return len(self._revisions)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._revisions)

    def __repr__(self) -> str:
        return f"CollectionState({self._revisions!r})"

    @property
    def revisions(self) -> Mapping[Hashable, Any]:
        """Read-only view of the stored revisions."""
        return self._revisions

    def revision(self, key: Hashable) -> Any:
        """Get the stored revision for a key (KeyError if unknown)."""
        return self._revisions[key]

    def apply(
        self,
        updates: Iterable[CollectionUpdate[Any, Any]],
        get_revision: GetRevision,
    ) -> None:
        """
        Apply an incremental batch of updates.

        Args:
            updates: Updates in the order they were received
            get_revision: Projection from value to revision

        Raises:
            ProtocolViolationError: If a delete targets a key that is not
                present in the state
        """
        for update in updates:
            if update.value is None:
                if update.key not in self._revisions:
                    raise ProtocolViolationError.delete_of_unknown_key(update.key)
                del self._revisions[update.key]
            else:
                self._revisions[update.key] = get_revision(update.value)

    def replace(self, revisions: Mapping[Hashable, Any]) -> None:
        """Replace the whole state, e.g. with the result of a reconciliation."""
        self._revisions = dict(revisions)

    def to_dict(self) -> dict[Hashable, Any]:
        """Copy of the stored revisions."""
        return dict(self._revisions)


__all__ = ["CollectionState"]
