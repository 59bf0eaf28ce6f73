"""
Published dashboard state.

Owns the current snapshot and the metric histories and notifies subscribed
observers after each mutation.
"""

import logging
from collections.abc import Callable

from hrv_snapshot.domain.metrics import MetricSample
from hrv_snapshot.services.history import HistoryStore

logger = logging.getLogger(__name__)


class DashboardState:
    """
    Snapshot and history container observed by consumers.

    Mutated only by the refresh cycle; consumers receive it explicitly and
    register callbacks with subscribe().
    """

    def __init__(self, history: HistoryStore) -> None:
        self.history = history
        self._snapshot: tuple[MetricSample, ...] = ()
        self._observers: list[Callable[["DashboardState"], None]] = []

    @property
    def snapshot(self) -> list[MetricSample]:
        return list(self._snapshot)

    def sample(self, title: str) -> MetricSample | None:
        """Current sample with the given title, if any."""
        for sample in self._snapshot:
            if sample.title == title:
                return sample
        return None

    def replace_snapshot(self, samples: list[MetricSample]) -> None:
        """Swap in a complete new snapshot."""
        self._snapshot = tuple(samples)

    def subscribe(self, callback: Callable[["DashboardState"], None]) -> Callable[[], None]:
        """
        Register an observer called after every publish.

        Returns:
            Function removing the observer.
        """
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def publish(self) -> None:
        """Notify observers; a failing observer does not stop the others."""
        for callback in list(self._observers):
            try:
                callback(self)
            except Exception as e:
                logger.error(f"State observer {callback!r} failed: {e}")
