"""
Traversal engine: hosts the shared index and the runs executing against it.

The engine owns one ExplorationIndex and one MetricsTracker per process and
hands them by reference to every runner it starts. Runs execute as asyncio
tasks on the caller's event loop.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from recwalk.config import TraversalConfig
from recwalk.exceptions import TraversalStalledError
from recwalk.index import ExplorationIndex, IndexSnapshot
from recwalk.interfaces import (
    AvailabilityProbe,
    Blacklist,
    Collector,
    Navigator,
    ReadinessProbe,
    RecordStore,
    TelemetrySink,
)
from recwalk.metrics import MetricsTracker
from recwalk.models import RunResult, RunStatus, SelectionMode, coerce_record
from recwalk.pacing import AdaptivePacer, PacingConfig
from recwalk.runner import CancellationToken, TraversalRunner, generate_run_id
from recwalk.selector import GroupDiversitySelector

logger = logging.getLogger(__name__)


class TraversalEngine:
    """Starts, tracks and cancels traversal runs."""

    def __init__(
        self,
        collector: Collector,
        navigator: Navigator,
        availability_probe: AvailabilityProbe,
        blacklist: Blacklist,
        record_store: RecordStore,
        telemetry: Optional[TelemetrySink] = None,
        readiness_probe: Optional[ReadinessProbe] = None,
        config: Optional[TraversalConfig] = None,
        index: Optional[ExplorationIndex] = None,
        metrics: Optional[MetricsTracker] = None,
        selector: Optional[GroupDiversitySelector] = None,
        use_pacing: bool = False,
    ):
        self.config = config or TraversalConfig()
        self.collector = collector
        self.navigator = navigator
        self.availability_probe = availability_probe
        self.readiness_probe = readiness_probe
        self.blacklist = blacklist
        self.record_store = record_store
        self.telemetry = telemetry
        self.index = index or ExplorationIndex()
        self.metrics = metrics or MetricsTracker(window_size=self.config.rolling_window_size)
        self.selector = selector or GroupDiversitySelector(
            blacklist=blacklist, top_groups=self.config.top_groups
        )
        self.pacer: Optional[AdaptivePacer] = None
        if use_pacing:
            self.pacer = AdaptivePacer(PacingConfig(
                base_delay=self.config.pacing_base_delay,
                min_delay=self.config.pacing_min_delay,
                max_delay=self.config.pacing_max_delay,
            ))

        self._runners: Dict[str, TraversalRunner] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._results: Dict[str, RunResult] = {}

    # ------------------------------------------------------------------
    # Index lifecycle
    # ------------------------------------------------------------------

    def bootstrap(self) -> int:
        """
        Rebuild the index from everything in the record store.

        Imported records are folded into the indices but kept out of the
        buffer. Returns the number of records loaded.
        """
        records = [coerce_record(r) for r in self.record_store.get_all()]
        live = [r for r in records if not r.imported]
        imported = [r for r in records if r.imported]

        self.index.reset()
        if live:
            self.index.add_batch(live)
        if imported:
            self.index.add_batch(imported, include_in_buffer=False)

        logger.info(
            f"Bootstrapped index from {len(records)} stored records "
            f"({len(imported)} imported)"
        )
        return len(records)

    def import_records(self, records: Iterable) -> int:
        """Persist and fold externally supplied records, flagged as imported."""
        items = []
        for raw in records or []:
            record = coerce_record(raw)
            if not record.imported:
                record = replace(record, imported=True)
            items.append(record)

        if not items:
            logger.warning("No records to import")
            return 0

        self.record_store.add_batch(items)
        self.index.add_batch(items, include_in_buffer=False)
        logger.info(f"Imported {len(items)} records")
        return len(items)

    def get_index_snapshot(self) -> IndexSnapshot:
        return self.index.snapshot()

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def start_run(
        self,
        target: int,
        mode: SelectionMode = SelectionMode.FRONTIER_ONLY,
        origin: Optional[str] = None,
        name: str = "traversal",
    ) -> str:
        """
        Start a run in the background and return its id.

        Args:
            target: Number of transitions to complete
            mode: Selection mode for the whole run
            origin: Starting node, or None to ask the navigator
            name: Human readable name shown by ``list_runs``
        """
        if target < 0:
            raise ValueError("target must be >= 0")

        run_id = generate_run_id()
        runner = TraversalRunner(
            index=self.index,
            collector=self.collector,
            navigator=self.navigator,
            availability_probe=self.availability_probe,
            blacklist=self.blacklist,
            record_store=self.record_store,
            selector=self.selector,
            metrics=self.metrics,
            telemetry=self.telemetry,
            readiness_probe=self.readiness_probe,
            config=self.config,
            pacer=self.pacer,
            run_id=run_id,
            cancel_token=CancellationToken(),
            name=name,
        )
        self._runners[run_id] = runner
        self._tasks[run_id] = asyncio.create_task(
            self._execute(runner, target, SelectionMode(mode), origin)
        )
        logger.info(f"Started run {run_id} '{name}' with target {target}")
        return run_id

    async def _execute(
        self,
        runner: TraversalRunner,
        target: int,
        mode: SelectionMode,
        origin: Optional[str],
    ) -> RunResult:
        try:
            result = await runner.run(target, mode, origin)
        except TraversalStalledError as e:
            result = RunResult(
                run_id=runner.run_id,
                status=RunStatus.FAILED,
                target_transitions=target,
                completed_transitions=e.completed,
                error=str(e),
            )
        except Exception as e:
            logger.exception(f"Run {runner.run_id} crashed")
            last = runner.last_run
            result = RunResult(
                run_id=runner.run_id,
                status=RunStatus.FAILED,
                target_transitions=target,
                completed_transitions=last.completed_transitions if last else 0,
                error=str(e),
            )
        finally:
            self._runners.pop(runner.run_id, None)
            self._tasks.pop(runner.run_id, None)

        self._results[runner.run_id] = result
        return result

    def cancel(self, run_id: str) -> bool:
        """Request cancellation of an active run. False if it is not active."""
        runner = self._runners.get(run_id)
        if runner is None:
            logger.warning(f"Cannot cancel {run_id}: no such active run")
            return False
        runner.cancel()
        logger.info(f"Cancellation requested for run {run_id}")
        return True

    def list_runs(self) -> List[Dict[str, str]]:
        """Active runs as ``{"run_id", "name"}`` entries."""
        return [
            {"run_id": run_id, "name": runner.name}
            for run_id, runner in self._runners.items()
        ]

    async def wait(self, run_id: str) -> RunResult:
        """Wait for a run to finish and return its result."""
        if run_id in self._results:
            return self._results[run_id]
        task = self._tasks.get(run_id)
        if task is None:
            raise KeyError(f"Unknown run id: {run_id}")
        return await task

    def get_result(self, run_id: str) -> Optional[RunResult]:
        return self._results.get(run_id)
