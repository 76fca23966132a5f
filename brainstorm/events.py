"""Coalesced change notification."""

import logging
from typing import Callable, List, Optional

from brainstorm.scheduler import Scheduler

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """Observer registry that folds bursts of changes into one callback round.

    Without a scheduler, notifications are delivered immediately.
    """

    def __init__(self, scheduler: Optional[Scheduler] = None):
        self.scheduler = scheduler
        self._listeners: List[Callable[[], None]] = []
        self._pending: Optional[int] = None

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a listener. Returns a function that unregisters it."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    @property
    def is_pending(self) -> bool:
        return self._pending is not None

    def notify(self):
        """Schedule a notification round unless one is already queued."""
        if self.scheduler is None:
            self._deliver()
            return
        if self._pending is None:
            self._pending = self.scheduler.idle_add(self._flush)

    def _flush(self) -> bool:
        self._pending = None
        self._deliver()
        return False

    def _deliver(self):
        for callback in list(self._listeners):
            callback()

    def cancel(self):
        """Drop a queued notification round."""
        if self._pending is not None and self.scheduler is not None:
            self.scheduler.source_remove(self._pending)
        self._pending = None
