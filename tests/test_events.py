"""Tests for the observer registry."""

import pytest

from lightsync.sync import Granularity, SyncEvent, SyncEvents


def test_handlers_run_in_registration_order():
    events = SyncEvents()
    calls = []
    events.on(SyncEvent.NEW_BEAT, lambda c, n: calls.append(("first", c, n)))
    events.on("new_beat", lambda c, n: calls.append(("second", c, n)))

    events.emit(SyncEvent.NEW_BEAT, 1, 2)
    assert calls == [("first", 1, 2), ("second", 1, 2)]


def test_decorator_registration():
    events = SyncEvents()
    seen = []

    @events.on(SyncEvent.TRACK_STOPPED)
    def stopped():
        seen.append("stopped")

    events.emit(SyncEvent.TRACK_STOPPED)
    assert seen == ["stopped"]
    assert stopped is not None


def test_off_unregisters():
    events = SyncEvents()
    calls = []
    handler = events.on(SyncEvent.ERROR, calls.append)
    events.off(SyncEvent.ERROR, handler)
    events.off(SyncEvent.ERROR, handler)

    events.emit(SyncEvent.ERROR, RuntimeError())
    assert calls == []
    assert events.handler_count(SyncEvent.ERROR) == 0


def test_failing_handler_does_not_block_others():
    events = SyncEvents()
    calls = []

    def broken(track):
        raise RuntimeError("bad handler")

    events.on(SyncEvent.TRACK_CHANGED, broken)
    events.on(SyncEvent.TRACK_CHANGED, calls.append)
    events.emit(SyncEvent.TRACK_CHANGED, "track")
    assert calls == ["track"]


def test_unknown_event_name():
    with pytest.raises(ValueError):
        SyncEvents().on("new_measure", print)


def test_granularity_events():
    assert SyncEvent.for_granularity(Granularity.SEGMENTS) is SyncEvent.NEW_SEGMENT
    assert {SyncEvent.for_granularity(g) for g in Granularity} == {
        SyncEvent.NEW_BAR,
        SyncEvent.NEW_BEAT,
        SyncEvent.NEW_SECTION,
        SyncEvent.NEW_SEGMENT,
        SyncEvent.NEW_TATUM,
    }
