"""Unit tests for the data models."""

from datetime import datetime

import pytest

from recwalk.constants import UNKNOWN_GROUP
from recwalk.exceptions import (
    EmptyBatchError,
    NavigationError,
    NodeUnavailableError,
    RecwalkError,
    SelectionExhaustedError,
    TransientStepError,
    TraversalStalledError,
)
from recwalk.models import (
    ItemRecord,
    RunResult,
    RunStatus,
    SelectionMode,
    coerce_record,
    fresh_records,
)


class TestItemRecord:
    """Tests for ItemRecord."""

    def test_defaults(self):
        record = ItemRecord()

        assert record.item_id == ""
        assert record.group_id == UNKNOWN_GROUP
        assert record.imported is False
        assert isinstance(record.observed_at, datetime)

    def test_group_property_applies_sentinel(self):
        assert ItemRecord(group_id="").group == UNKNOWN_GROUP
        assert ItemRecord(group_id="Chess").group == "Chess"

    def test_is_immutable(self):
        record = ItemRecord(item_id="a")

        with pytest.raises(AttributeError):
            record.item_id = "b"

    def test_to_dict_and_back(self):
        record = ItemRecord(
            item_id="v1",
            group_id="G",
            source_node_id="s1",
            popularity_signal="1.2M",
            thumbnail_ref="https://i.ytimg.com/vi/v1/hq720.jpg",
            title="Title",
            observed_at=datetime(2024, 1, 2, 3, 4, 5),
            imported=True,
        )

        assert ItemRecord.from_dict(record.to_dict()) == record

    def test_from_dict_legacy_keys(self):
        record = ItemRecord.from_dict({
            "videoId": "v9",
            "channelName": "Legacy Channel",
            "sourceVideoId": "s9",
            "views": "15K",
            "thumbnailUrl": "thumb.jpg",
            "isImported": True,
            "timestamp": 1_700_000_000_000,
        })

        assert record.item_id == "v9"
        assert record.group_id == "Legacy Channel"
        assert record.source_node_id == "s9"
        assert record.popularity_signal == "15K"
        assert record.imported is True
        assert record.observed_at == datetime.fromtimestamp(1_700_000_000)

    @pytest.mark.parametrize("raw", [
        None,
        [],
        "text",
        {"item_id": None, "group_id": None, "observed_at": "not a date"},
        {"observed_at": 10 ** 20},
    ])
    def test_from_dict_never_raises(self, raw):
        record = ItemRecord.from_dict(raw)

        assert record.group == UNKNOWN_GROUP
        assert record.item_id == ""

    @pytest.mark.parametrize("raw,expected", [
        ("false", False),
        ("False", False),
        ("0", False),
        ("", False),
        ("true", True),
        (" TRUE ", True),
        ("1", True),
        (1, True),
        (0, False),
        (None, False),
    ])
    def test_from_dict_imported_flag(self, raw, expected):
        assert ItemRecord.from_dict({"item_id": "x", "imported": raw}).imported is expected

    def test_from_dict_legacy_imported_string(self):
        assert ItemRecord.from_dict({"videoId": "x", "isImported": "false"}).imported is False

    def test_coerce_record(self):
        record = ItemRecord(item_id="x")

        assert coerce_record(record) is record
        assert coerce_record({"item_id": "y"}).item_id == "y"

    def test_fresh_records(self):
        records = [ItemRecord(item_id="a"), ItemRecord(item_id="b", imported=True)]

        assert [r.item_id for r in fresh_records(records)] == ["a"]


class TestRunModels:
    """Tests for run enums and results."""

    def test_selection_mode_values(self):
        assert SelectionMode("frontier_only") is SelectionMode.FRONTIER_ONLY
        assert SelectionMode("global") is SelectionMode.GLOBAL

    def test_run_result(self):
        result = RunResult(
            run_id="run_1",
            status=RunStatus.COMPLETED,
            target_transitions=3,
            completed_transitions=3,
        )

        assert result.succeeded
        assert result.to_dict() == {
            "run_id": "run_1",
            "status": "completed",
            "target_transitions": 3,
            "completed_transitions": 3,
            "error": None,
        }

    def test_failed_result_not_succeeded(self):
        result = RunResult("run_2", RunStatus.FAILED, 3, 1, error="stalled")

        assert not result.succeeded


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_transient_errors(self):
        for error in (EmptyBatchError("x"), NavigationError("n1"), SelectionExhaustedError("x")):
            assert isinstance(error, TransientStepError)
            assert isinstance(error, RecwalkError)

    def test_unavailable_is_not_transient(self):
        error = NodeUnavailableError("n1")

        assert not isinstance(error, TransientStepError)
        assert error.node_id == "n1"
        assert "n1" in str(error)

    def test_stalled_error_details(self):
        error = TraversalStalledError("run_1", 3, 2)

        assert error.streak == 3
        assert error.completed == 2
        assert "run_1" in str(error)
