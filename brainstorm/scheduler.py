"""Timer and idle scheduling.

Everything time-driven in Brainstorm (simulation ticks, the settle timer and
coalesced change notifications) goes through a scheduler. The GTK shell uses
the GLib main loop; headless code and tests drive a manual clock.
"""

import heapq
import itertools
import logging
from typing import Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

# Callbacks follow the GLib convention: return True to keep a repeating
# timeout alive, anything else removes it.
SourceCallback = Callable[[], bool]


class Scheduler:
    """Interface shared by the schedulers."""

    def timeout_add(self, interval_ms: int, callback: SourceCallback) -> int:
        raise NotImplementedError

    def idle_add(self, callback: SourceCallback) -> int:
        raise NotImplementedError

    def source_remove(self, source_id: int) -> bool:
        raise NotImplementedError


class GLibScheduler(Scheduler):
    """Scheduler backed by the GLib main loop."""

    def __init__(self):
        from gi.repository import GLib

        self._glib = GLib
        self._live: Dict[int, bool] = {}

    def _wrap(self, callback: SourceCallback) -> Callable[[int], bool]:
        def run(source_id: int) -> bool:
            if callback():
                return True
            self._live.pop(source_id, None)
            return False
        return run

    def timeout_add(self, interval_ms: int, callback: SourceCallback) -> int:
        holder: List[int] = []
        wrapped = self._wrap(callback)
        source_id = self._glib.timeout_add(interval_ms, lambda: wrapped(holder[0]))
        holder.append(source_id)
        self._live[source_id] = True
        return source_id

    def idle_add(self, callback: SourceCallback) -> int:
        holder: List[int] = []
        wrapped = self._wrap(callback)
        source_id = self._glib.idle_add(lambda: wrapped(holder[0]))
        holder.append(source_id)
        self._live[source_id] = True
        return source_id

    def source_remove(self, source_id: int) -> bool:
        # GLib warns when removing a source that already finished
        if self._live.pop(source_id, None) is None:
            return False
        return bool(self._glib.source_remove(source_id))


class ManualScheduler(Scheduler):
    """Deterministic virtual clock for headless runs and tests."""

    def __init__(self):
        self.now = 0
        self._ids = itertools.count(1)
        self._timers: List[Tuple[int, int, int]] = []
        self._callbacks: Dict[int, Tuple[int, SourceCallback]] = {}
        self._idle: Dict[int, SourceCallback] = {}

    def timeout_add(self, interval_ms: int, callback: SourceCallback) -> int:
        source_id = next(self._ids)
        self._callbacks[source_id] = (interval_ms, callback)
        heapq.heappush(self._timers, (self.now + interval_ms, source_id, interval_ms))
        return source_id

    def idle_add(self, callback: SourceCallback) -> int:
        source_id = next(self._ids)
        self._idle[source_id] = callback
        return source_id

    def source_remove(self, source_id: int) -> bool:
        if source_id in self._callbacks:
            del self._callbacks[source_id]
            return True
        if source_id in self._idle:
            del self._idle[source_id]
            return True
        return False

    @property
    def pending_timers(self) -> int:
        return len(self._callbacks)

    @property
    def pending_idle(self) -> int:
        return len(self._idle)

    def is_active(self, source_id: int) -> bool:
        return source_id in self._callbacks or source_id in self._idle

    def run_idle(self) -> int:
        """Run idle callbacks until the queue drains; returns how many ran."""
        ran = 0
        while self._idle:
            source_id = next(iter(self._idle))
            callback = self._idle[source_id]
            ran += 1
            if not callback():
                self._idle.pop(source_id, None)
        return ran

    def advance(self, ms: int) -> int:
        """Move the clock forward, firing due timers in order. Returns fire count."""
        target = self.now + ms
        fired = 0
        while self._timers and self._timers[0][0] <= target:
            due, source_id, interval = heapq.heappop(self._timers)
            entry = self._callbacks.get(source_id)
            if entry is None:
                continue
            self.now = due
            fired += 1
            if entry[1]():
                if source_id in self._callbacks:
                    heapq.heappush(self._timers, (due + interval, source_id, interval))
            else:
                self._callbacks.pop(source_id, None)
            self.run_idle()
        self.now = target
        self.run_idle()
        return fired
