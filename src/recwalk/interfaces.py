"""Collaborator interfaces consumed by the traversal scheduler.

Browser-facing collaborators (collector, navigator, probes) are async since
every call crosses into a live page. Storage, telemetry and classification
are synchronous.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Union

from recwalk.models import ItemRecord


class Collector(ABC):
    """Produces a batch of candidate records from the current node."""

    @abstractmethod
    async def collect(self, origin: Optional[str]) -> List[ItemRecord]:
        """Scroll and extract candidates reachable from ``origin``.

        Args:
            origin: Id of the node the batch is collected from.

        Returns:
            Collected records. An empty list means nothing was found (for
            example, the page is still loading); this must not raise for that.
        """
        pass


class Navigator(ABC):
    """Moves the page to a node."""

    @abstractmethod
    async def go_to(self, node_id: str) -> bool:
        """Navigate to ``node_id``.

        Returns:
            True on success. Implementations may also raise on failure.
        """
        pass

    @abstractmethod
    async def current_node(self) -> Optional[str]:
        """Id of the node currently shown, if known."""
        pass

    async def reload(self) -> None:
        """Reload the current surface. Used as the retry fallback."""
        return None


class AvailabilityProbe(ABC):
    """Tells whether a node can be traversed at all."""

    @abstractmethod
    async def is_available(self, node_id: str) -> bool:
        pass


class ReadinessProbe(ABC):
    """Tells whether a freshly navigated node has settled."""

    @abstractmethod
    async def is_ready(self, node_id: str) -> bool:
        pass


class Blacklist(ABC):
    """Durable set of ids that must never be selected."""

    @abstractmethod
    def contains(self, item_id: str) -> bool:
        pass

    @abstractmethod
    def add(self, ids: Union[str, Iterable[str]]) -> None:
        """Add one id or an iterable of ids. Empty ids are ignored."""
        pass


class RecordStore(ABC):
    """Persistence for collected records."""

    @abstractmethod
    def add_batch(self, records: List[ItemRecord]) -> None:
        pass

    @abstractmethod
    def get_all(self) -> List[ItemRecord]:
        pass


class TelemetrySink(ABC):
    """Fire-and-forget metric channel."""

    @abstractmethod
    def emit(self, metric_name: str, value: Any, **opts: Any) -> None:
        pass


class Classifier(ABC):
    """Pure predicate over item titles."""

    @abstractmethod
    def is_match(self, title: str) -> bool:
        pass


def normalize_ids(ids: Union[str, Iterable[str], None]) -> List[str]:
    """Flatten a single id or an iterable into a list of non-empty ids."""
    if ids is None:
        return []
    if isinstance(ids, str):
        ids = [ids]
    return [i for i in ids if i]
