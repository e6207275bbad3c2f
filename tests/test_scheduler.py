"""Tests for the timer executor."""

import threading

from lightsync.sync import MonotonicClock, Scheduler


def test_callbacks_run_in_deadline_order(scheduler):
    calls = []
    scheduler.call_later(300, calls.append, "c")
    scheduler.call_later(100, calls.append, "a")
    scheduler.call_later(200, calls.append, "b")

    assert scheduler.run_until(250) == 2
    assert calls == ["a", "b"]
    scheduler.run_until(300)
    assert calls == ["a", "b", "c"]


def test_equal_deadlines_keep_insertion_order(scheduler):
    calls = []
    for name in "xyz":
        scheduler.call_later(50, calls.append, name)
    scheduler.advance(50)
    assert calls == ["x", "y", "z"]


def test_callback_sees_clock_at_its_deadline(scheduler, clock):
    seen = []
    scheduler.call_later(120, lambda: seen.append(clock.now_ms()))
    scheduler.call_later(480, lambda: seen.append(clock.now_ms()))
    scheduler.run_until(1000)
    assert seen == [120, 480]
    assert clock.now_ms() == 1000


def test_cancel_is_idempotent(scheduler):
    calls = []
    handle = scheduler.call_later(100, calls.append, 1)
    handle.cancel()
    handle.cancel()
    scheduler.advance(200)
    assert calls == []
    assert handle.cancelled
    assert not handle.active


def test_cancel_after_run_is_harmless(scheduler):
    calls = []
    handle = scheduler.call_later(10, calls.append, 1)
    scheduler.advance(10)
    handle.cancel()
    scheduler.advance(100)
    assert calls == [1]


def test_callback_can_reschedule_itself(scheduler):
    ticks = []

    def tick():
        ticks.append(scheduler.clock.now_ms())
        if len(ticks) < 3:
            scheduler.call_later(100, tick)

    scheduler.call_soon(tick)
    scheduler.run_until(1000)
    assert ticks == [0, 100, 200]


def test_failing_callback_does_not_stop_others(scheduler):
    calls = []

    def boom():
        raise RuntimeError("boom")

    scheduler.call_later(10, boom)
    scheduler.call_later(20, calls.append, "after")
    scheduler.advance(30)
    assert calls == ["after"]


def test_pending_counts_only_live_timers(scheduler):
    first = scheduler.call_later(10, lambda: None)
    scheduler.call_later(20, lambda: None)
    first.cancel()
    assert scheduler.pending == 1


def test_negative_delay_runs_immediately(scheduler):
    calls = []
    scheduler.call_later(-50, calls.append, "now")
    scheduler.run_pending()
    assert calls == ["now"]


def test_executor_thread_runs_callbacks():
    scheduler = Scheduler(MonotonicClock())
    done = threading.Event()
    scheduler.start()
    try:
        scheduler.call_later(10, done.set)
        assert done.wait(2.0)
    finally:
        scheduler.stop()
    assert not scheduler.is_running
