"""Recommendation graph traversal with group diversification."""

__version__ = "0.1.0"

from recwalk.index import ExplorationIndex, IndexSnapshot
from recwalk.selector import GroupDiversitySelector
from recwalk.metrics import MetricsTracker, NewGroupsResult, StepMetrics, ThematicRatio
from recwalk.runner import CancellationToken, TraversalRunner
from recwalk.engine import TraversalEngine
from recwalk.models import (
    ItemRecord,
    RunResult,
    RunStatus,
    SelectionMode,
    TraversalRun,
    fresh_records,
)
from recwalk.exceptions import (
    RecwalkError,
    NodeUnavailableError,
    TransientStepError,
    EmptyBatchError,
    NavigationError,
    SelectionExhaustedError,
    TraversalStalledError,
    RunCancelledError,
)
from recwalk.config import settings, TraversalConfig
from recwalk.pacing import AdaptivePacer, PacingConfig
from recwalk.storage import (
    MemoryBlacklist,
    MemoryRecordStore,
    SqliteBlacklist,
    SqliteRecordStore,
    get_blacklist,
    get_record_store,
)
from recwalk.telemetry import InMemoryTelemetrySink, LoggingTelemetrySink
from recwalk.utils import CyrillicTitleClassifier, KeywordClassifier, parse_popularity

__all__ = [
    "ExplorationIndex",
    "IndexSnapshot",
    "GroupDiversitySelector",
    "MetricsTracker",
    "NewGroupsResult",
    "StepMetrics",
    "ThematicRatio",
    "CancellationToken",
    "TraversalRunner",
    "TraversalEngine",
    "ItemRecord",
    "RunResult",
    "RunStatus",
    "SelectionMode",
    "TraversalRun",
    "fresh_records",
    "RecwalkError",
    "NodeUnavailableError",
    "TransientStepError",
    "EmptyBatchError",
    "NavigationError",
    "SelectionExhaustedError",
    "TraversalStalledError",
    "RunCancelledError",
    "settings",
    "TraversalConfig",
    "AdaptivePacer",
    "PacingConfig",
    "MemoryBlacklist",
    "MemoryRecordStore",
    "SqliteBlacklist",
    "SqliteRecordStore",
    "get_blacklist",
    "get_record_store",
    "InMemoryTelemetrySink",
    "LoggingTelemetrySink",
    "CyrillicTitleClassifier",
    "KeywordClassifier",
    "parse_popularity",
]
