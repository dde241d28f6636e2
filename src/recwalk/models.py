"""Data models for the traversal scheduler."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from recwalk.constants import UNKNOWN_GROUP


class SelectionMode(str, Enum):
    """Where the selector takes its candidates from."""

    FRONTIER_ONLY = "frontier_only"
    GLOBAL = "global"


class RunStatus(str, Enum):
    """Lifecycle states of a traversal run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


# Keys used by records exported from the browser extension
LEGACY_KEYS = {
    "videoId": "item_id",
    "channelName": "group_id",
    "sourceVideoId": "source_node_id",
    "views": "popularity_signal",
    "thumbnailUrl": "thumbnail_ref",
    "isImported": "imported",
    "timestamp": "observed_at",
}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(value)


def _timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        # Millisecond epoch values come from the extension export
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds)
        except (OverflowError, OSError, ValueError):
            return datetime.now()
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return datetime.now()
    return datetime.now()


@dataclass(frozen=True)
class ItemRecord:
    """One observed unit of content."""

    item_id: str = ""
    group_id: str = UNKNOWN_GROUP
    source_node_id: str = ""
    popularity_signal: str = ""  # raw text such as "1.2M views"
    thumbnail_ref: str = ""
    title: str = ""
    observed_at: datetime = field(default_factory=datetime.now)
    imported: bool = False

    @property
    def group(self) -> str:
        """Group key with the unknown sentinel applied."""
        return self.group_id or UNKNOWN_GROUP

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "item_id": self.item_id,
            "group_id": self.group_id,
            "source_node_id": self.source_node_id,
            "popularity_signal": self.popularity_signal,
            "thumbnail_ref": self.thumbnail_ref,
            "title": self.title,
            "observed_at": self.observed_at.isoformat(),
            "imported": self.imported,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ItemRecord":
        """Deserialize from dictionary.

        Missing or malformed fields fall back to empty values, so this
        never raises for dictionaries of any shape.
        """
        if not isinstance(data, dict):
            return cls()

        normalized = dict(data)
        for legacy, key in LEGACY_KEYS.items():
            if legacy in normalized and key not in normalized:
                normalized[key] = normalized[legacy]

        return cls(
            item_id=_text(normalized.get("item_id")),
            group_id=_text(normalized.get("group_id")) or UNKNOWN_GROUP,
            source_node_id=_text(normalized.get("source_node_id")),
            popularity_signal=_text(normalized.get("popularity_signal")),
            thumbnail_ref=_text(normalized.get("thumbnail_ref")),
            title=_text(normalized.get("title")),
            observed_at=_timestamp(normalized.get("observed_at")),
            imported=_flag(normalized.get("imported")),
        )


def coerce_record(value: Any) -> ItemRecord:
    """Accept either an ItemRecord or a raw dictionary."""
    if isinstance(value, ItemRecord):
        return value
    return ItemRecord.from_dict(value)


def fresh_records(records: Iterable[ItemRecord]) -> List[ItemRecord]:
    """Records that came from live traversal rather than bulk import."""
    return [r for r in records if not r.imported]


@dataclass
class TraversalRun:
    """Mutable state of one scheduler run."""

    run_id: str
    target_transitions: int
    name: str = "traversal"
    completed_transitions: int = 0
    no_progress_streak: int = 0
    status: RunStatus = RunStatus.IDLE
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


@dataclass
class RunResult:
    """Outcome of a finished run as seen by the caller."""

    run_id: str
    status: RunStatus
    target_transitions: int
    completed_transitions: int
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "target_transitions": self.target_transitions,
            "completed_transitions": self.completed_transitions,
            "error": self.error,
        }
