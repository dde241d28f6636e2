"""Per-step diversity and novelty metrics."""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Optional, Set

from recwalk.constants import (
    ROLLING_AVERAGE_ATTENTION,
    ROLLING_AVERAGE_GOOD,
    ROLLING_WINDOW_SIZE,
    THEMATIC_MATCH_THRESHOLD_PERCENT,
    UNKNOWN_GROUP,
)
from recwalk.interfaces import Classifier
from recwalk.models import ItemRecord, coerce_record
from recwalk.utils.classifier import CyrillicTitleClassifier

logger = logging.getLogger(__name__)


@dataclass
class NewGroupsResult:
    """Groups of a batch that the global index has not seen yet."""

    count: int = 0
    group_names: Set[str] = field(default_factory=set)


@dataclass
class ThematicRatio:
    """Share of new groups whose batch titles match the theme."""

    matched_count: int = 0
    total: int = 0
    ratio_percent: float = 0.0
    matched_list: List[str] = field(default_factory=list)


@dataclass
class StepMetrics:
    """Everything computed for one collected batch."""

    new_groups: NewGroupsResult
    thematic: ThematicRatio
    rolling_average: float


class MetricsTracker:
    """
    Computes novelty signals for each batch and keeps a rolling average.

    The rolling window lives as long as the tracker, so one tracker per
    process gives an average that spans consecutive runs.
    """

    def __init__(
        self,
        classifier: Optional[Classifier] = None,
        window_size: int = ROLLING_WINDOW_SIZE,
    ):
        self.classifier = classifier or CyrillicTitleClassifier()
        self.window_size = window_size
        self._window: Deque[float] = deque(maxlen=window_size)

    def new_groups_in_batch(
        self,
        batch: Iterable,
        global_group_counts: Dict[str, int],
    ) -> NewGroupsResult:
        """
        Find groups in the batch that are absent from the global counts.

        Records without a group are never reported as new.
        """
        groups = {coerce_record(r).group for r in batch or []}
        groups.discard(UNKNOWN_GROUP)

        new_groups = {g for g in groups if g not in global_group_counts}
        return NewGroupsResult(count=len(new_groups), group_names=new_groups)

    def thematic_ratio(self, new_group_names: Iterable[str], batch: Iterable) -> ThematicRatio:
        """
        Classify each new group by the titles of its items in this batch.

        A group matches when strictly more than half of its titled items
        match. Groups with no titled items never match.
        """
        names = list(dict.fromkeys(new_group_names or []))
        if not names:
            return ThematicRatio()

        by_group: Dict[str, List[ItemRecord]] = {}
        for record in (coerce_record(r) for r in batch or []):
            by_group.setdefault(record.group, []).append(record)

        matched: List[str] = []
        for name in names:
            titled = [r for r in by_group.get(name, []) if r.title]
            if not titled:
                continue

            hits = sum(1 for r in titled if self.classifier.is_match(r.title))
            share = hits / len(titled) * 100
            if share > THEMATIC_MATCH_THRESHOLD_PERCENT:
                matched.append(name)

        total = len(names)
        return ThematicRatio(
            matched_count=len(matched),
            total=total,
            ratio_percent=round(len(matched) / total * 100, 2),
            matched_list=matched,
        )

    def update_rolling_average(self, latest_value: float) -> float:
        """
        Push a value into the window and return the rounded mean.

        Args:
            latest_value: Value observed for the latest step

        Returns:
            Mean over the window, rounded to 2 decimals
        """
        self._window.append(latest_value)
        average = round(sum(self._window) / len(self._window), 2)

        if average > ROLLING_AVERAGE_GOOD:
            logger.info(f"Rolling thematic average is healthy: {average}")
        elif average >= ROLLING_AVERAGE_ATTENTION:
            logger.warning(f"Rolling thematic average needs attention: {average}")
        else:
            logger.warning(f"Rolling thematic average is low: {average}")

        return average

    def reset_rolling_average(self) -> None:
        """Clear the rolling window in place."""
        self._window.clear()
        logger.info("Rolling thematic average reset")

    @property
    def window(self) -> List[float]:
        return list(self._window)

    def record(self, batch: Iterable, global_group_counts: Dict[str, int]) -> StepMetrics:
        """
        Run the full metrics pipeline for one batch.

        Must be called before the batch is folded into the index, otherwise
        every group of the batch is already known.
        """
        items = [coerce_record(r) for r in batch or []]
        new_groups = self.new_groups_in_batch(items, global_group_counts)
        thematic = self.thematic_ratio(new_groups.group_names, items)
        average = self.update_rolling_average(thematic.matched_count)

        logger.info(
            f"Batch metrics: {len(items)} items, {new_groups.count} new groups, "
            f"{thematic.matched_count} thematic ({thematic.ratio_percent}%)"
        )
        return StepMetrics(new_groups=new_groups, thematic=thematic, rolling_average=average)
