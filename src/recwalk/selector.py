"""
Next-node selection by group diversification.

The selector prefers items from groups that are least represented in the
global index, so a crawl keeps branching into new groups instead of
circling around a few prolific ones.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Collection, Dict, List, Optional, Sequence

from recwalk.constants import (
    MIN_GROUPS_FOR_FRONTIER,
    SINGLETON_GROUP_COUNT,
    TOP_GROUPS_LIMIT,
)
from recwalk.index import ExplorationIndex, IndexSnapshot
from recwalk.interfaces import Blacklist
from recwalk.models import ItemRecord, SelectionMode, coerce_record
from recwalk.utils.popularity import parse_popularity

logger = logging.getLogger(__name__)


@dataclass
class GroupBucket:
    """Candidates of one group together with the group's global count."""

    name: str
    global_count: int
    items: List[ItemRecord] = field(default_factory=list)

    @property
    def popularity(self) -> int:
        return max((parse_popularity(i.popularity_signal) for i in self.items), default=0)


def least_populated_groups(
    group_counts: Dict[str, int],
    limit: int = TOP_GROUPS_LIMIT,
) -> List[str]:
    """Group names sorted by ascending global count, truncated to ``limit``."""
    ordered = sorted(group_counts.items(), key=lambda kv: kv[1])
    return [name for name, _ in ordered[:limit]]


class GroupDiversitySelector:
    """
    Picks the next node to visit.

    Algorithm:
    1. Escalate to global mode when the natural candidates span < 2 groups
    2. Build and filter candidates (current node, blacklist, excluded ids)
    3. Rank candidate groups by ascending global count, with singleton
       groups ordered by popularity
    4. Return the first unvisited item from the top groups
    5. Fall back to a random candidate
    """

    def __init__(
        self,
        blacklist: Optional[Blacklist] = None,
        top_groups: int = TOP_GROUPS_LIMIT,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the selector.

        Args:
            blacklist: Unavailable-id collaborator, read on every call
            top_groups: How many groups to consider when ranking
            rng: Random source for the fallback pick
        """
        self.blacklist = blacklist
        self.top_groups = top_groups
        self._rng = rng or random.Random()

    def select_next(
        self,
        index,
        current_source_id: Optional[str],
        mode: SelectionMode = SelectionMode.FRONTIER_ONLY,
        frontier: Sequence = (),
        exclude: Collection[str] = (),
    ) -> Optional[str]:
        """
        Select the next item id to navigate to.

        Args:
            index: ExplorationIndex or an IndexSnapshot taken from one
            current_source_id: Id of the node we are on now
            mode: Requested candidate source
            frontier: Records collected on the current node
            exclude: Ids the caller already rejected

        Returns:
            Item id, or None when no candidate survives filtering
        """
        snapshot = index.snapshot() if isinstance(index, ExplorationIndex) else index
        batch = [coerce_record(r) for r in frontier or []]
        mode = SelectionMode(mode)

        logger.debug(
            f"Selecting next node: mode={mode.value}, current={current_source_id}, "
            f"visited={len(snapshot.visited)}, groups={len(snapshot.group_counts)}"
        )

        effective_mode = self._effective_mode(mode, batch, snapshot)

        if effective_mode == SelectionMode.FRONTIER_ONLY:
            candidates = list(batch)
        else:
            candidates = self._global_candidates(snapshot)

        if not candidates:
            logger.warning(f"No candidates available in {effective_mode.value} mode")
            return None

        filtered = self._filter(candidates, current_source_id, exclude)
        if not filtered:
            logger.warning(
                f"All {len(candidates)} candidates were filtered out "
                f"(current node, blacklisted or excluded)"
            )
            return None

        ranked = self._rank_groups(filtered, snapshot.group_counts)

        for bucket in ranked[:self.top_groups]:
            for item in bucket.items:
                if item.item_id not in snapshot.visited:
                    logger.info(
                        f"Selected {item.item_id} from group '{bucket.name}' "
                        f"(global count {bucket.global_count})"
                    )
                    return item.item_id
            logger.debug(f"Group '{bucket.name}' has no unvisited candidates")

        pick = self._rng.choice(filtered)
        logger.warning(
            f"No unvisited candidate in top groups, falling back to random pick {pick.item_id}"
        )
        return pick.item_id

    def _effective_mode(
        self,
        mode: SelectionMode,
        batch: List[ItemRecord],
        snapshot: IndexSnapshot,
    ) -> SelectionMode:
        if mode == SelectionMode.FRONTIER_ONLY:
            groups = {r.group for r in batch}
        else:
            groups = set(least_populated_groups(snapshot.group_counts, self.top_groups))

        if len(groups) < MIN_GROUPS_FOR_FRONTIER:
            if mode != SelectionMode.GLOBAL:
                logger.warning(
                    f"Only {len(groups)} distinct group(s) among {mode.value} candidates, "
                    f"switching to {SelectionMode.GLOBAL.value} mode"
                )
            return SelectionMode.GLOBAL

        return mode

    def _global_candidates(self, snapshot: IndexSnapshot) -> List[ItemRecord]:
        """One synthetic record per item id in the least-populated groups."""
        top = least_populated_groups(snapshot.group_counts, self.top_groups)

        owner: Dict[str, str] = {}
        for group in top:
            for item_id in sorted(snapshot.group_to_item_ids.get(group, ())):
                owner.setdefault(item_id, group)

        logger.debug(f"Built {len(owner)} global candidates from {len(top)} groups")
        return [ItemRecord(item_id=item_id, group_id=group) for item_id, group in owner.items()]

    def _filter(
        self,
        candidates: List[ItemRecord],
        current_source_id: Optional[str],
        exclude: Collection[str] = (),
    ) -> List[ItemRecord]:
        filtered = []
        for item in candidates:
            if not item.item_id or item.item_id == current_source_id:
                continue
            if item.item_id in exclude:
                continue
            if self.blacklist is not None and self.blacklist.contains(item.item_id):
                continue
            filtered.append(item)
        return filtered

    def _rank_groups(
        self,
        candidates: List[ItemRecord],
        group_counts: Dict[str, int],
    ) -> List[GroupBucket]:
        buckets: Dict[str, GroupBucket] = {}
        for item in candidates:
            group = item.group
            if group not in buckets:
                buckets[group] = GroupBucket(name=group, global_count=group_counts.get(group, 0))
            buckets[group].items.append(item)

        ranked = sorted(buckets.values(), key=lambda b: b.global_count)

        # Singleton groups are indistinguishable by count; prefer the more popular one
        start = next(
            (i for i, b in enumerate(ranked) if b.global_count == SINGLETON_GROUP_COUNT),
            None,
        )
        if start is not None:
            end = start
            while end < len(ranked) and ranked[end].global_count == SINGLETON_GROUP_COUNT:
                end += 1
            ranked[start:end] = sorted(ranked[start:end], key=lambda b: b.popularity, reverse=True)

        return ranked
