"""
Exploration index for a traversal session.

Tracks which source nodes have already been used as a traversal origin,
how many items were attributed to each group, and which item ids belong to
each group. The index is rebuilt from persisted records at startup and
folded incrementally as new batches arrive.

Note that ``group_item_counts[g]`` and ``len(group_to_item_ids[g])`` are
independent signals: counts grow once per record, while the membership
sets only grow on non-empty, previously unseen item ids.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Set

from recwalk.constants import STATE_CHANGED_EVENT
from recwalk.models import ItemRecord, coerce_record, fresh_records

logger = logging.getLogger(__name__)

Subscriber = Callable[[str], None]


@dataclass
class IndexSnapshot:
    """Detached copy of the index state."""

    visited: Set[str] = field(default_factory=set)
    group_counts: Dict[str, int] = field(default_factory=dict)
    group_to_item_ids: Dict[str, Set[str]] = field(default_factory=dict)
    buffer: List[ItemRecord] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.visited or self.group_counts or self.group_to_item_ids or self.buffer)


class ExplorationIndex:
    """
    In-memory index of what a traversal has seen so far.

    A single instance is owned by the hosting process and shared by
    reference with every run. Each fold and each read happens under one
    lock, so a snapshot never observes a half-applied batch.
    """

    def __init__(self):
        self._visited_source_ids: Set[str] = set()
        self._group_item_counts: Dict[str, int] = {}
        self._group_to_item_ids: Dict[str, Set[str]] = {}
        self._buffer: List[ItemRecord] = []
        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> None:
        """Register a callback invoked after every mutation."""
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        """Remove a previously registered callback."""
        with self._lock:
            self._subscribers = [cb for cb in self._subscribers if cb != callback]

    def _notify(self) -> None:
        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(STATE_CHANGED_EVENT)
            except Exception as e:
                logger.debug(f"Index subscriber {callback!r} failed: {e}")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def initialize(self, records: Iterable = ()) -> None:
        """
        Rebuild the index from a full record list.

        Args:
            records: ItemRecord instances or raw dictionaries (e.g. from a
                record store). Malformed entries fall into the unknown group.
        """
        items = [coerce_record(r) for r in (records or [])]

        with self._lock:
            self._clear()
            for record in items:
                self._fold(record)

            logger.info(
                f"Index initialized from {len(items)} records: "
                f"visited={len(self._visited_source_ids)}, "
                f"groups={len(self._group_item_counts)}, "
                f"items={self._total_unique_items()}"
            )

        self._notify()

    def reset(self) -> None:
        """Clear all indices and the buffer."""
        with self._lock:
            self._clear()
        logger.info("Index reset")
        self._notify()

    def add_batch(self, records: Iterable, include_in_buffer: bool = True) -> None:
        """
        Fold a batch of new records into the index.

        Args:
            records: New records from a collection step or an import.
            include_in_buffer: Whether the raw records are also appended to
                the side buffer. Counters and sets are always updated.
        """
        items = [coerce_record(r) for r in (records or [])]
        if not items:
            logger.warning("add_batch called with an empty batch, nothing to fold")
            return

        with self._lock:
            if include_in_buffer:
                self._buffer.extend(items)
            for record in items:
                self._fold(record)

            logger.debug(
                f"Folded {len(items)} records (buffered={include_in_buffer}): "
                f"visited={len(self._visited_source_ids)}, "
                f"groups={len(self._group_item_counts)}"
            )

        self._notify()

    def clear_buffer(self) -> None:
        """Drop the buffered records, leaving the indices intact."""
        with self._lock:
            self._buffer = []
        self._notify()

    def _clear(self) -> None:
        self._visited_source_ids.clear()
        self._group_item_counts.clear()
        self._group_to_item_ids.clear()
        self._buffer = []

    def _fold(self, record: ItemRecord) -> None:
        if record.source_node_id:
            self._visited_source_ids.add(record.source_node_id)

        group = record.group
        self._group_item_counts[group] = self._group_item_counts.get(group, 0) + 1

        members = self._group_to_item_ids.setdefault(group, set())
        if record.item_id:
            members.add(record.item_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> IndexSnapshot:
        """Return deep copies of all indices and the buffer."""
        with self._lock:
            return IndexSnapshot(
                visited=set(self._visited_source_ids),
                group_counts=dict(self._group_item_counts),
                group_to_item_ids={g: set(ids) for g, ids in self._group_to_item_ids.items()},
                # ItemRecord is frozen, so a new list is a deep copy
                buffer=list(self._buffer),
            )

    def get_buffer(self) -> List[ItemRecord]:
        """Copy of the buffered records."""
        with self._lock:
            return list(self._buffer)

    def fresh_buffer(self) -> List[ItemRecord]:
        """Buffered records excluding imported ones."""
        with self._lock:
            return fresh_records(self._buffer)

    def is_source_visited(self, source_id: str) -> bool:
        with self._lock:
            return source_id in self._visited_source_ids

    def unique_group_count(self) -> int:
        with self._lock:
            return len(self._group_item_counts)

    def total_unique_item_count(self) -> int:
        """Sum of the membership set sizes over all groups."""
        with self._lock:
            return self._total_unique_items()

    def _total_unique_items(self) -> int:
        return sum(len(ids) for ids in self._group_to_item_ids.values())
