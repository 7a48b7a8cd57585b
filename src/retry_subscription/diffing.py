"""
Snapshot diffing for resubscriptions.

When a subscription is reopened after a failure, its first batch is a full
snapshot of the collection. Instead of replaying it, the retry loop emits only
the net difference against what the consumer already knows:

- keys that are new or whose revision changed are emitted as upserts
- keys that were known but are missing from the snapshot are emitted as deletes

Both passes keep order: upserts follow snapshot order, deletes follow the
order in which the keys were stored.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from retry_subscription.exceptions import ProtocolViolationError
from retry_subscription.types import CollectionUpdate, Equality, GetRevision

logger = logging.getLogger(__name__)


@dataclass
class SnapshotDiff:
    """
    Result of reconciling a snapshot against the known state.

    Attributes:
        events: Minimal updates turning the old state into the snapshot
        state: Revisions of every key in the snapshot
        deleted: Number of delete events in ``events``
    """

    events: list[CollectionUpdate[Any, Any]] = field(default_factory=list)
    state: dict[Hashable, Any] = field(default_factory=dict)
    deleted: int = 0

    @property
    def is_empty(self) -> bool:
        """True if nothing changed across the reconnect."""
        return not self.events


def ensure_snapshot(updates: Iterable[CollectionUpdate[Any, Any]]) -> None:
    """
    Check that every update of an initial emission carries a value.

    Raises:
        ProtocolViolationError: On the first update with a None value
    """
    for update in updates:
        if update.value is None:
            raise ProtocolViolationError.none_in_initial_emission(update.key)


def diff_snapshot(
    state: Mapping[Hashable, Any],
    snapshot: Iterable[CollectionUpdate[Any, Any]],
    get_revision: GetRevision,
    equality: Equality,
) -> SnapshotDiff:
    """
    Compute the updates that turn ``state`` into ``snapshot``.

    Runs in O(len(snapshot) + len(state)). The input state is not modified.

    Args:
        state: Known revisions by key
        snapshot: Full membership of the collection, every value present
        get_revision: Projection from value to revision
        equality: Revision comparison

    Returns:
        SnapshotDiff with the events to emit and the new state

    Raises:
        ProtocolViolationError: If a snapshot update has a None value

    Example:
        >>> diff = diff_snapshot(
        ...     {"a": 1, "b": 2},
        ...     [CollectionUpdate("a", 1)],
        ...     get_revision=lambda v: v,
        ...     equality=lambda x, y: x == y,
        ... )
        >>> diff.events
        [CollectionUpdate(key='b', value=None)]
    """
    result = SnapshotDiff()
    remaining = dict(state)

    for update in snapshot:
        if update.value is None:
            raise ProtocolViolationError.none_in_initial_emission(update.key)

        revision = get_revision(update.value)

        if update.key not in remaining or not equality(remaining[update.key], revision):
            result.events.append(update)

        remaining.pop(update.key, None)
        result.state[update.key] = revision

    for key in remaining:
        result.events.append(CollectionUpdate(key, None))
        result.deleted += 1

    logger.debug(
        "Reconciled snapshot against known state",
        extra={
            "known_keys": len(state),
            "snapshot_keys": len(result.state),
            "events": len(result.events),
            "deleted": result.deleted,
        },
    )

    return result


__all__ = [
    "SnapshotDiff",
    "diff_snapshot",
    "ensure_snapshot",
]
