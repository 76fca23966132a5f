"""Tests for the manual scheduler and change notifier."""

from brainstorm.events import ChangeNotifier
from brainstorm.scheduler import ManualScheduler


class TestManualScheduler:
    def test_timer_fires_when_due(self):
        scheduler = ManualScheduler()
        fired = []
        scheduler.timeout_add(100, lambda: fired.append(scheduler.now))
        scheduler.advance(99)
        assert fired == []
        scheduler.advance(1)
        assert fired == [100]
        assert scheduler.pending_timers == 0

    def test_repeating_timer(self):
        scheduler = ManualScheduler()
        fired = []

        def tick():
            fired.append(scheduler.now)
            return True

        scheduler.timeout_add(16, tick)
        scheduler.advance(50)
        assert fired == [16, 32, 48]
        assert scheduler.pending_timers == 1

    def test_timers_fire_in_order(self):
        scheduler = ManualScheduler()
        order = []
        scheduler.timeout_add(30, lambda: order.append("late"))
        scheduler.timeout_add(10, lambda: order.append("early"))
        scheduler.advance(40)
        assert order == ["early", "late"]

    def test_source_remove(self):
        scheduler = ManualScheduler()
        fired = []
        source = scheduler.timeout_add(10, lambda: fired.append(1))
        assert scheduler.source_remove(source)
        assert not scheduler.source_remove(source)
        scheduler.advance(20)
        assert fired == []

    def test_idle_runs_after_advance(self):
        scheduler = ManualScheduler()
        ran = []
        scheduler.idle_add(lambda: ran.append(1))
        assert scheduler.pending_idle == 1
        scheduler.advance(0)
        assert ran == [1]
        assert scheduler.pending_idle == 0


class TestChangeNotifier:
    def test_immediate_without_scheduler(self):
        notifier = ChangeNotifier()
        calls = []
        notifier.subscribe(lambda: calls.append(1))
        notifier.notify()
        notifier.notify()
        assert calls == [1, 1]

    def test_bursts_are_coalesced(self):
        scheduler = ManualScheduler()
        notifier = ChangeNotifier(scheduler)
        calls = []
        notifier.subscribe(lambda: calls.append(1))
        for _ in range(10):
            notifier.notify()
        assert calls == []
        assert notifier.is_pending
        scheduler.run_idle()
        assert calls == [1]
        assert not notifier.is_pending

    def test_unsubscribe(self):
        notifier = ChangeNotifier()
        calls = []
        unsubscribe = notifier.subscribe(lambda: calls.append(1))
        unsubscribe()
        notifier.notify()
        assert calls == []

    def test_cancel(self):
        scheduler = ManualScheduler()
        notifier = ChangeNotifier(scheduler)
        calls = []
        notifier.subscribe(lambda: calls.append(1))
        notifier.notify()
        notifier.cancel()
        scheduler.run_idle()
        assert calls == []
