"""
Traversal runner: the retry/backoff state machine around each step.

One run moves through the graph until it has completed a target number of
transitions. Each transition is tried a bounded number of times:

    check cancellation -> probe availability -> collect -> metrics ->
    fold into index -> persist -> select next -> navigate -> wait for ready

Permanent failures (unavailable node) abandon the transition at once, and
the next transition starts from a replacement picked from the global pool.
Transient failures are retried after a reload-and-pause fallback. Too many
consecutive transitions without progress abort the run.
"""

import asyncio
import logging
import threading
import time
import uuid
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from recwalk.config import TraversalConfig
from recwalk.exceptions import (
    EmptyBatchError,
    NavigationError,
    NodeUnavailableError,
    RunCancelledError,
    SelectionExhaustedError,
    TraversalStalledError,
)
from recwalk.index import ExplorationIndex
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
from recwalk.models import (
    ItemRecord,
    RunResult,
    RunStatus,
    SelectionMode,
    TraversalRun,
    coerce_record,
)
from recwalk.pacing import AdaptivePacer
from recwalk.selector import GroupDiversitySelector
from recwalk.telemetry import safe_emit

logger = logging.getLogger(__name__)


def generate_run_id() -> str:
    return f"run_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class CancellationToken:
    """Cooperative cancellation flag polled at checkpoints."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelledError("Run cancelled")


class TraversalRunner:
    """
    Executes one traversal run against external collaborators.

    The runner borrows the shared ExplorationIndex and never replaces it.
    Its own TraversalRun state exists only while ``run()`` is executing.
    """

    def __init__(
        self,
        index: ExplorationIndex,
        collector: Collector,
        navigator: Navigator,
        availability_probe: AvailabilityProbe,
        blacklist: Blacklist,
        record_store: RecordStore,
        selector: Optional[GroupDiversitySelector] = None,
        metrics: Optional[MetricsTracker] = None,
        telemetry: Optional[TelemetrySink] = None,
        readiness_probe: Optional[ReadinessProbe] = None,
        config: Optional[TraversalConfig] = None,
        pacer: Optional[AdaptivePacer] = None,
        run_id: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
        name: str = "traversal",
    ):
        """
        Initialize the runner.

        Args:
            index: Shared exploration index
            collector: Produces candidate batches from the current node
            navigator: Moves the page to the selected node
            availability_probe: Detects permanently unavailable nodes
            blacklist: Durable set of unavailable ids
            record_store: Persistence for collected batches
            selector: Next-node selector (defaults to one reading ``blacklist``)
            metrics: Metrics tracker (a process-wide one keeps its window across runs)
            telemetry: Fire-and-forget metric sink
            readiness_probe: Polled after navigation until the node settles
            config: Retry limits and timings
            pacer: Optional adaptive delay between attempts
            run_id: Explicit run id, generated when omitted
            cancel_token: Token shared with whoever may cancel this run
            name: Human readable run name
        """
        self.config = config or TraversalConfig()
        self.index = index
        self.collector = collector
        self.navigator = navigator
        self.availability_probe = availability_probe
        self.blacklist = blacklist
        self.record_store = record_store
        self.selector = selector or GroupDiversitySelector(
            blacklist=blacklist, top_groups=self.config.top_groups
        )
        self.metrics = metrics or MetricsTracker(window_size=self.config.rolling_window_size)
        self.telemetry = telemetry
        self.readiness_probe = readiness_probe
        self.pacer = pacer
        self.run_id = run_id or generate_run_id()
        self.cancel_token = cancel_token or CancellationToken()
        self.name = name

        self._run: Optional[TraversalRun] = None
        self._last_run: Optional[TraversalRun] = None
        self._current_node: Optional[str] = None
        self._pending_node: Optional[str] = None
        self._mode = SelectionMode.FRONTIER_ONLY

    @property
    def state(self) -> Optional[TraversalRun]:
        """State of the run in progress, None when idle."""
        return self._run

    @property
    def last_run(self) -> Optional[TraversalRun]:
        """State of the most recent run, kept after it finishes."""
        return self._last_run

    @property
    def current_node(self) -> Optional[str]:
        return self._current_node

    def cancel(self) -> None:
        """Request cancellation. Observed at the next checkpoint."""
        self.cancel_token.cancel()

    async def run(
        self,
        target_transitions: int,
        mode: SelectionMode = SelectionMode.FRONTIER_ONLY,
        origin: Optional[str] = None,
    ) -> RunResult:
        """
        Run until ``target_transitions`` transitions have succeeded.

        Args:
            target_transitions: Number of successful navigations to perform
            mode: Candidate source for the selector
            origin: Node to start from; asks the navigator when omitted

        Returns:
            RunResult with status COMPLETED or CANCELLED

        Raises:
            TraversalStalledError: If too many consecutive transitions failed
        """
        if target_transitions < 0:
            raise ValueError("target_transitions must be >= 0")

        run = TraversalRun(
            run_id=self.run_id,
            target_transitions=target_transitions,
            name=self.name,
            status=RunStatus.RUNNING,
            started_at=datetime.now(),
        )
        self._run = run
        self._last_run = run
        self._mode = SelectionMode(mode)
        self._pending_node = None

        logger.info(
            f"Run {run.run_id} '{run.name}' started: target={target_transitions}, "
            f"mode={self._mode.value}"
        )

        try:
            self._current_node = origin or await self._resolve_current_node()

            while run.completed_transitions < run.target_transitions:
                self.cancel_token.raise_if_cancelled()

                if await self._run_transition():
                    run.completed_transitions += 1
                    run.no_progress_streak = 0
                    logger.info(
                        f"Transition {run.completed_transitions}/{run.target_transitions} "
                        f"completed, now at {self._current_node}"
                    )
                    safe_emit(
                        self.telemetry, "transition_completed", run.completed_transitions,
                        run_id=run.run_id,
                    )
                    continue

                run.no_progress_streak += 1
                logger.warning(
                    f"Transition made no progress "
                    f"({run.no_progress_streak}/{self.config.max_no_progress_streak})"
                )
                if run.no_progress_streak >= self.config.max_no_progress_streak:
                    raise TraversalStalledError(
                        run.run_id, run.no_progress_streak, run.completed_transitions
                    )

        except RunCancelledError:
            run.status = RunStatus.CANCELLED
            logger.warning(
                f"Run {run.run_id} cancelled after {run.completed_transitions} transitions"
            )
            return self._result(run)

        except TraversalStalledError as e:
            run.status = RunStatus.FAILED
            logger.error(str(e))
            safe_emit(self.telemetry, "run_stalled", run.no_progress_streak, run_id=run.run_id)
            raise

        except Exception as e:
            run.status = RunStatus.FAILED
            logger.error(f"Run {run.run_id} failed: {e}")
            raise

        finally:
            run.finished_at = datetime.now()
            self._run = None

        run.status = RunStatus.COMPLETED
        logger.info(f"Run {run.run_id} completed {run.completed_transitions} transitions")
        return self._result(run)

    def _result(self, run: TraversalRun) -> RunResult:
        return RunResult(
            run_id=run.run_id,
            status=run.status,
            target_transitions=run.target_transitions,
            completed_transitions=run.completed_transitions,
        )

    async def _resolve_current_node(self) -> Optional[str]:
        try:
            return await self.navigator.current_node()
        except Exception as e:
            logger.warning(f"Could not read the current node: {e}")
            return None

    # ------------------------------------------------------------------
    # Transition and attempts
    # ------------------------------------------------------------------

    async def _run_transition(self) -> bool:
        """Try one transition. Returns True when navigation succeeded."""
        max_attempts = self.config.max_attempts_per_transition

        for attempt in range(1, max_attempts + 1):
            self.cancel_token.raise_if_cancelled()

            if self.pacer is not None:
                await self.pacer.wait()
            started = time.time()

            try:
                await self._attempt()
                self._record_pacing(started, True)
                return True

            except NodeUnavailableError as e:
                self._record_pacing(started, False)
                logger.warning(f"{e}, blacklisting and abandoning the transition")
                safe_emit(self.telemetry, "node_unavailable", e.node_id, run_id=self.run_id)
                self._blacklist_node(e.node_id)
                self._reroute(e.node_id)
                return False

            except RunCancelledError:
                raise

            except Exception as e:
                self._record_pacing(started, False)
                logger.warning(
                    f"Attempt {attempt}/{max_attempts} failed "
                    f"({type(e).__name__}): {e}"
                )
                safe_emit(
                    self.telemetry, "attempt_failed", attempt,
                    run_id=self.run_id, reason=type(e).__name__, message=str(e),
                )

            if attempt < max_attempts:
                await self._recover()

        logger.error(f"Transition abandoned after {max_attempts} attempts")
        return False

    async def _attempt(self) -> None:
        if self._pending_node is not None:
            await self._navigate(self._pending_node)
            self._pending_node = None

        current = self._current_node

        if current and not await self.availability_probe.is_available(current):
            raise NodeUnavailableError(current)

        batch = self._prepare_batch(await self.collector.collect(current), current)
        if not batch:
            raise EmptyBatchError(f"Collector returned no items for {current}")

        # Metrics compare against the index before this batch is folded in
        snapshot = self.index.snapshot()
        step = self.metrics.record(batch, snapshot.group_counts)
        safe_emit(self.telemetry, "new_groups", step.new_groups.count, run_id=self.run_id)
        safe_emit(
            self.telemetry, "thematic_ratio", step.thematic.ratio_percent, run_id=self.run_id
        )
        safe_emit(
            self.telemetry, "rolling_thematic_average", step.rolling_average,
            run_id=self.run_id,
        )

        self.index.add_batch(batch)
        self.record_store.add_batch(batch)

        next_id = self._select_next(current, self._mode, batch)
        await self._navigate(next_id)

    async def _navigate(self, node_id: str) -> None:
        try:
            navigated = await self.navigator.go_to(node_id)
        except Exception as e:
            raise NavigationError(node_id, f"Navigation to {node_id} failed: {e}") from e
        if navigated is False:
            raise NavigationError(node_id)

        await self._wait_until_ready(node_id)
        self._current_node = node_id

    def _prepare_batch(self, raw, current: Optional[str]) -> List[ItemRecord]:
        batch = []
        for item in raw or []:
            record = coerce_record(item)
            if not record.source_node_id and current:
                record = replace(record, source_node_id=current)
            batch.append(record)
        return batch

    def _select_next(
        self,
        current: Optional[str],
        mode: SelectionMode,
        batch: List[ItemRecord],
    ) -> str:
        """Select the next node, skipping picks the blacklist rejects."""
        max_retries = self.config.max_selection_retries
        rejected = set()

        for selection_attempt in range(1, max_retries + 1):
            candidate = self.selector.select_next(
                self.index, current, mode, batch, exclude=rejected
            )
            if candidate is None:
                raise SelectionExhaustedError("No candidate available for the next node")
            if not self.blacklist.contains(candidate):
                return candidate
            rejected.add(candidate)
            logger.warning(
                f"Selected node {candidate} is blacklisted, retrying "
                f"({selection_attempt}/{max_retries})"
            )

        raise SelectionExhaustedError(
            f"Every pick was blacklisted after {max_retries} selection retries"
        )

    async def _wait_until_ready(self, node_id: str) -> bool:
        """Poll the readiness probe; a timeout only logs."""
        if self.readiness_probe is None:
            return True

        timeout = self.config.ready_timeout_ms / 1000
        interval = self.config.ready_poll_interval_ms / 1000
        waited = 0.0

        while True:
            try:
                if await self.readiness_probe.is_ready(node_id):
                    return True
            except Exception as e:
                logger.debug(f"Readiness probe failed for {node_id}: {e}")

            if waited >= timeout:
                break
            await asyncio.sleep(interval)
            waited += interval

        logger.warning(
            f"Node {node_id} not ready after {self.config.ready_timeout_ms}ms, proceeding anyway"
        )
        return False

    async def _recover(self) -> None:
        """Reload the surface and pause before the next attempt."""
        if self.config.reload_on_retry:
            try:
                await self.navigator.reload()
            except Exception as e:
                logger.warning(f"Reload before retry failed: {e}")

        if self.config.retry_pause_seconds > 0:
            await asyncio.sleep(self.config.retry_pause_seconds)

    def _blacklist_node(self, node_id: str) -> None:
        try:
            self.blacklist.add(node_id)
        except Exception as e:
            logger.error(f"Failed to blacklist {node_id}: {e}")

    def _reroute(self, dead_node: str) -> None:
        """Leave an unavailable node: queue a global replacement for the next transition."""
        try:
            replacement = self._select_next(dead_node, SelectionMode.GLOBAL, [])
        except SelectionExhaustedError as e:
            logger.warning(
                f"No replacement for unavailable node {dead_node} ({e}), "
                f"continuing without a current node"
            )
            self._current_node = None
            return
        except Exception as e:
            logger.error(f"Failed to pick a replacement for {dead_node}: {e}")
            self._current_node = None
            return

        logger.info(f"Leaving unavailable node {dead_node}, next transition starts at {replacement}")
        self._pending_node = replacement

    def _record_pacing(self, started: float, success: bool) -> None:
        if self.pacer is not None:
            self.pacer.record_attempt(time.time() - started, success)
