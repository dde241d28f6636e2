"""Exception types raised by the traversal scheduler."""

from typing import Optional


class RecwalkError(Exception):
    """Base class for all scheduler errors."""


class NodeUnavailableError(RecwalkError):
    """Raised when the current node is permanently unavailable."""

    def __init__(self, node_id: str, message: Optional[str] = None):
        self.node_id = node_id
        super().__init__(message or f"Node is unavailable: {node_id}")


class TransientStepError(RecwalkError):
    """A step failure that is worth another attempt."""


class EmptyBatchError(TransientStepError):
    """Raised when the collector returned no candidates."""


class NavigationError(TransientStepError):
    """Raised when the navigator could not reach the chosen node."""

    def __init__(self, node_id: str, message: Optional[str] = None):
        self.node_id = node_id
        super().__init__(message or f"Navigation failed: {node_id}")


class SelectionExhaustedError(TransientStepError):
    """Raised when no usable next node could be selected."""


class TraversalStalledError(RecwalkError):
    """Raised when a run made no progress for too many transitions."""

    def __init__(self, run_id: str, streak: int, completed: int):
        self.run_id = run_id
        self.streak = streak
        self.completed = completed
        super().__init__(
            f"Run {run_id} stalled after {streak} transitions without progress "
            f"({completed} completed)"
        )


class RunCancelledError(RecwalkError):
    """Raised at a checkpoint when the run has been cancelled."""
