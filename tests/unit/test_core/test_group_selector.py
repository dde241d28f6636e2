"""Unit tests for GroupDiversitySelector."""

import random
from unittest.mock import MagicMock

import pytest

from recwalk.index import ExplorationIndex
from recwalk.models import ItemRecord, SelectionMode
from recwalk.selector import GroupBucket, GroupDiversitySelector, least_populated_groups
from recwalk.storage import MemoryBlacklist


def rec(item_id, group, source="", popularity=""):
    return ItemRecord(
        item_id=item_id,
        group_id=group,
        source_node_id=source,
        popularity_signal=popularity,
    )


def seeded_selector(seed=42, **kwargs):
    return GroupDiversitySelector(rng=random.Random(seed), **kwargs)


@pytest.fixture
def index():
    return ExplorationIndex()


class TestLeastPopulatedGroups:
    """Tests for the group ranking helper."""

    def test_sorted_ascending_and_truncated(self):
        counts = {"a": 5, "b": 1, "c": 3, "d": 2}

        assert least_populated_groups(counts, limit=3) == ["b", "d", "c"]

    def test_empty_counts(self):
        assert least_populated_groups({}) == []


class TestGroupBucket:
    """Tests for GroupBucket."""

    def test_popularity_is_max_of_items(self):
        bucket = GroupBucket(
            name="g",
            global_count=1,
            items=[rec("a", "g", popularity="15K"), rec("b", "g", popularity="1.2M")],
        )

        assert bucket.popularity == 1_200_000

    def test_popularity_of_empty_bucket(self):
        assert GroupBucket(name="g", global_count=0).popularity == 0


class TestFrontierSelection:
    """Tests for frontier-only selection."""

    def test_prefers_least_populated_group(self, index):
        """Test that the group with the smallest global count wins."""
        index.initialize(
            [rec(f"big{i}", "Big") for i in range(5)] + [rec("small0", "Small")] * 2
        )
        frontier = [rec("b1", "Big"), rec("s1", "Small"), rec("b2", "Big")]

        selected = seeded_selector().select_next(index, "current", SelectionMode.FRONTIER_ONLY, frontier)

        assert selected == "s1"

    def test_unknown_groups_rank_first(self, index):
        """Test that groups absent from the index count as zero."""
        index.initialize([rec("x", "Known")])
        frontier = [rec("k1", "Known"), rec("n1", "Brand New")]

        assert seeded_selector().select_next(index, None, SelectionMode.FRONTIER_ONLY, frontier) == "n1"

    def test_never_revisits_when_unvisited_exists(self, index):
        """Test that a visited candidate is skipped in favour of an unvisited one."""
        index.initialize([
            rec("visited1", "A", source="visited1"),
            rec("visited2", "B", source="visited2"),
            rec("filler", "B"),
        ])
        frontier = [rec("visited1", "A"), rec("visited2", "B"), rec("fresh", "B")]
        visited = index.snapshot().visited

        for seed in range(20):
            selected = seeded_selector(seed).select_next(
                index, "origin", SelectionMode.FRONTIER_ONLY, frontier
            )
            assert selected not in visited
            assert selected == "fresh"

    def test_filters_current_node(self, index):
        """Test that the current node is never selected."""
        frontier = [rec("here", "A"), rec("there", "B")]
        index.initialize([rec("x", "A")])

        assert seeded_selector().select_next(index, "here", SelectionMode.FRONTIER_ONLY, frontier) == "there"

    def test_filters_blacklisted_ids(self, index):
        """Test that blacklisted ids are removed before ranking."""
        blacklist = MemoryBlacklist(["bad"])
        frontier = [rec("bad", "Rare"), rec("good", "Common")]
        index.initialize([rec("c", "Common")] * 3 + [rec("r", "Rare")])

        selector = seeded_selector(blacklist=blacklist)

        assert selector.select_next(index, None, SelectionMode.FRONTIER_ONLY, frontier) == "good"

    def test_filters_excluded_ids(self, index):
        """Test that ids the caller rejected are skipped like blacklisted ones."""
        frontier = [rec("bad", "Rare"), rec("good", "Common")]
        index.initialize([rec("c", "Common")] * 3 + [rec("r", "Rare")])

        selector = seeded_selector()

        assert selector.select_next(index, None, SelectionMode.FRONTIER_ONLY, frontier) == "bad"
        assert selector.select_next(
            index, None, SelectionMode.FRONTIER_ONLY, frontier, exclude={"bad"}
        ) == "good"

    def test_exclusions_can_empty_the_pool(self, index):
        frontier = [rec("a", "A"), rec("b", "B")]

        selector = seeded_selector()

        assert selector.select_next(
            index, None, SelectionMode.FRONTIER_ONLY, frontier, exclude=["a", "b"]
        ) is None

    def test_blacklist_errors_propagate(self, index):
        """Test that a failing blacklist is not swallowed."""
        blacklist = MagicMock()
        blacklist.contains.side_effect = RuntimeError("storage down")
        frontier = [rec("a", "A"), rec("b", "B")]

        with pytest.raises(RuntimeError):
            seeded_selector(blacklist=blacklist).select_next(
                index, None, SelectionMode.FRONTIER_ONLY, frontier
            )

    def test_singleton_groups_tie_break_by_popularity(self, index):
        """Test that among singleton groups the most popular one wins."""
        index.initialize([rec("x", "Quiet"), rec("y", "Loud"), rec("z", "Many")] + [rec("m", "Many")] * 3)
        frontier = [
            rec("quiet1", "Quiet", popularity="900 views"),
            rec("loud1", "Loud", popularity="1.2M views"),
            rec("many1", "Many", popularity="5B views"),
        ]

        selected = seeded_selector().select_next(index, None, SelectionMode.FRONTIER_ONLY, frontier)

        assert selected == "loud1"

    def test_empty_ids_are_dropped(self, index):
        """Test that records without item ids are never returned."""
        frontier = [rec("", "A"), rec("real", "B")]

        assert seeded_selector().select_next(index, None, SelectionMode.FRONTIER_ONLY, frontier) == "real"

    def test_top_groups_limit(self, index):
        """Test that only the configured number of groups is scanned before fallback."""
        index.initialize(
            [rec("a", "A", source="a1")]
            + [rec("b", "B")] * 2
            + [rec("c", "C")] * 3
        )
        # A holds only a visited item; B and C are beyond the scan limit
        frontier = [rec("a1", "A"), rec("b1", "B"), rec("c1", "C")]

        selector = seeded_selector(top_groups=1)
        selected = selector.select_next(index, None, SelectionMode.FRONTIER_ONLY, frontier)

        assert selected in {"a1", "b1", "c1"}


class TestModeEscalation:
    """Tests for switching to global selection."""

    def test_single_group_frontier_behaves_like_global(self, index):
        """Test that a one-group frontier yields the same pick as global mode."""
        index.initialize([
            rec("g1", "G1"),
            rec("g2", "G2"),
            rec("g2b", "G2"),
            rec("h1", "H"),
            rec("h2", "H"),
            rec("h3", "H"),
        ])
        frontier = [rec("f1", "Solo"), rec("f2", "Solo")]

        for seed in range(5):
            frontier_pick = seeded_selector(seed).select_next(
                index, "cur", SelectionMode.FRONTIER_ONLY, frontier
            )
            global_pick = seeded_selector(seed).select_next(
                index, "cur", SelectionMode.GLOBAL, frontier
            )
            assert frontier_pick == global_pick

        assert frontier_pick == "g1"

    def test_global_mode_ignores_frontier(self, index):
        """Test that global mode draws candidates from the index."""
        index.initialize([rec("idx1", "A"), rec("idx2", "B"), rec("idx3", "B")])
        frontier = [rec("f1", "X"), rec("f2", "Y")]

        selected = seeded_selector().select_next(index, None, SelectionMode.GLOBAL, frontier)

        assert selected == "idx1"

    def test_global_candidates_are_deterministic(self, index):
        """Test that ids within a group are scanned in sorted order."""
        index.initialize([rec("zeta", "A"), rec("alpha", "A"), rec("mid", "A"), rec("o", "B")] + [rec("o2", "B")] * 3)

        selector = seeded_selector()
        picks = {selector.select_next(index, None, SelectionMode.GLOBAL) for _ in range(5)}

        assert picks == {"alpha"}

    def test_accepts_snapshot(self, index):
        """Test that an IndexSnapshot works in place of the index."""
        index.initialize([rec("a", "A"), rec("b", "B"), rec("b2", "B")])

        assert seeded_selector().select_next(index.snapshot(), None, SelectionMode.GLOBAL) == "a"


class TestFallbackAndEmpty:
    """Tests for fallback and empty results."""

    def test_random_fallback_when_everything_visited(self, index):
        """Test that a visited pick is accepted rather than stalling."""
        index.initialize([
            rec("a", "A", source="a"),
            rec("b", "B", source="b"),
        ])
        frontier = [rec("a", "A"), rec("b", "B")]

        selected = seeded_selector().select_next(index, None, SelectionMode.FRONTIER_ONLY, frontier)

        assert selected in {"a", "b"}

    def test_returns_none_without_candidates(self, index):
        """Test that an empty index and frontier yield None."""
        assert seeded_selector().select_next(index, None, SelectionMode.FRONTIER_ONLY, []) is None

    def test_returns_none_when_all_filtered(self, index):
        """Test that None is returned once filtering removes every candidate."""
        blacklist = MemoryBlacklist(["b"])
        frontier = [rec("a", "A"), rec("b", "B")]

        selector = seeded_selector(blacklist=blacklist)

        assert selector.select_next(index, "a", SelectionMode.FRONTIER_ONLY, frontier) is None
