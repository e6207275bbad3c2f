"""Tests for the playback sync engine, driven through simulated time."""

import threading
import time

import pytest

from lightsync.errors import AnalysisError, NoTrackError, PlaybackSourceError
from lightsync.sync import Granularity, ManualClock, Scheduler, SyncEngine, TrackInfo

ONE_SECOND_SPANS = [(float(i), 1.0) for i in range(10)]


@pytest.fixture
def playing(source, engine):
    """Track "a" (10s, 1s intervals everywhere) loaded at position 0."""
    source.add_track("a", 10_000, ONE_SECOND_SPANS)
    source.play("a", 0)
    engine.poll_once()
    return source.tracks["a"]


def test_end_to_end_four_beats(source, engine, scheduler, recorder):
    source.add_track("short", 4000, [(0, 1), (1, 1), (2, 1), (3, 1)])
    source.play("short", 0)
    engine.poll_once()
    scheduler.run_until(10_000)

    beats = recorder.of("new_beat")
    assert [at for _, at in beats] == [1000, 2000, 3000]
    starts = [(current.start, upcoming.start) for (current, upcoming), _ in beats]
    assert starts == [(0, 1000), (1000, 2000), (2000, 3000)]


def test_new_track_emits_track_changed(source, engine, recorder, playing):
    (args, at), = recorder.of("track_changed")
    assert args == (playing,)
    assert engine.current_track == playing
    assert engine.position_ms() == 0
    assert engine.active_interval(Granularity.SEGMENTS).start == 0


def test_track_loads_at_remote_position(source, engine):
    source.add_track("a", 10_000, ONE_SECOND_SPANS)
    source.play("a", 3500)
    engine.poll_once()

    assert engine.position_ms() == pytest.approx(3500)
    assert engine.active_interval(Granularity.BARS).start == 3000


def test_each_granularity_has_its_own_event(source, engine, scheduler, recorder, playing):
    scheduler.run_until(1000)
    for name in ("new_bar", "new_beat", "new_section", "new_segment", "new_tatum"):
        assert len(recorder.of(name)) == 1
    granularities = {args[0] for args, _ in recorder.of("interval")}
    assert granularities == set(Granularity)


def test_drift_above_threshold_reanchors(source, engine, scheduler, recorder, playing):
    scheduler.run_until(4800)
    assert engine.position_ms() == pytest.approx(4800)

    source.play("a", 5000)
    engine.poll_once()

    assert engine.position_ms() == pytest.approx(5000)
    for granularity in Granularity:
        assert engine.active_interval(granularity).start == 5000

    # Next boundary is position 6000, i.e. 1000ms after the correction
    before = len(recorder.of("new_beat"))
    scheduler.run_until(5799)
    assert len(recorder.of("new_beat")) == before
    scheduler.run_until(5800)
    assert len(recorder.of("new_beat")) == before + 1


def test_drift_within_threshold_changes_nothing(source, engine, scheduler, playing):
    scheduler.run_until(4800)
    timer = engine.tracks[Granularity.BEATS]._timer
    index = engine.tracks[Granularity.BEATS].active_index

    source.play("a", 4850)
    engine.poll_once()

    assert engine.position_ms() == pytest.approx(4800)
    assert engine.tracks[Granularity.BEATS]._timer is timer
    assert engine.tracks[Granularity.BEATS].active_index == index


def test_paused_then_new_track(source, engine, scheduler, recorder, playing):
    scheduler.run_until(2500)
    source.play("a", 2500, is_playing=False)
    engine.poll_once()

    assert len(recorder.of("track_stopped")) == 1
    assert engine.current_track is None
    assert all(not track.is_armed for track in engine.tracks.values())
    with pytest.raises(NoTrackError):
        engine.position_ms()

    count = len(recorder.records)
    scheduler.run_until(5000)
    assert len(recorder.records) == count

    source.add_track("b", 6000, [(0, 2), (2, 2), (4, 2)])
    source.play("b", 0)
    engine.poll_once()

    assert recorder.of("track_changed")[-1][0] == (source.tracks["b"],)
    assert source.analysis_calls == ["a", "b"]
    assert engine.active_interval(Granularity.BEATS).duration == 2000


def test_nothing_playing_is_silent_without_a_track(source, engine, recorder):
    source.playback = None
    engine.poll_once()
    assert recorder.records == []


def test_track_change_does_not_emit_stopped(source, engine, recorder, playing):
    source.add_track("b", 6000, [(0, 2), (2, 2), (4, 2)])
    source.play("b", 100)
    engine.poll_once()

    assert recorder.of("track_stopped") == []
    assert len(recorder.of("track_changed")) == 2
    assert engine.current_track.id == "b"


def test_poll_failure_keeps_state(source, engine, scheduler, recorder, playing):
    scheduler.run_until(1500)
    source.playback = PlaybackSourceError("connection reset")

    assert engine.tick() is False
    assert engine.current_track == playing
    assert engine.position_ms() == pytest.approx(1500)

    source.play("a", 1500)
    assert engine.tick() is True


def test_bad_analysis_reverts_to_no_track(source, engine, recorder):
    source.add_track("a", 10_000, ONE_SECOND_SPANS)
    source.analyses["a"] = AnalysisError("analysis has no beats")
    source.play("a", 0)
    engine.poll_once()

    (args, _), = recorder.of("error")
    assert isinstance(args[0], AnalysisError)
    assert engine.current_track is None

    # Not refetched while the same track keeps playing
    engine.poll_once()
    assert source.analysis_calls == ["a"]


def test_empty_granularity_is_an_analysis_error(source, engine, recorder):
    source.add_track("a", 10_000, ONE_SECOND_SPANS)
    source.analyses["a"].sections = []
    source.play("a", 0)
    engine.poll_once()

    assert len(recorder.of("error")) == 1
    assert recorder.of("track_changed") == []
    assert engine.current_track is None


def test_no_track_queries_raise(engine):
    with pytest.raises(NoTrackError):
        engine.position_ms()
    with pytest.raises(NoTrackError):
        engine.active_interval(Granularity.BEATS)


def test_stop_drops_track(engine, recorder, playing):
    engine.stop()
    assert len(recorder.of("track_stopped")) == 1
    assert engine.current_track is None


def test_poll_loop_runs_until_stopped(source):
    scheduler = Scheduler(ManualClock())
    engine = SyncEngine(source, scheduler, poll_interval_ms=5)
    polled = threading.Event()
    original = source.current_playback

    def counting():
        if source.playback_calls >= 2:
            polled.set()
        return original()

    source.current_playback = counting
    engine.start()
    try:
        assert polled.wait(2.0)
    finally:
        engine.stop()

    calls = source.playback_calls
    time.sleep(0.05)
    assert source.playback_calls == calls


def test_non_numeric_interval_is_an_analysis_error(source, engine, recorder):
    source.add_track("a", 10_000, ONE_SECOND_SPANS)
    payload = {g.value: [{"start": 0.0, "duration": 10.0}] for g in Granularity}
    payload["beats"] = [{"start": 0.0, "duration": 1.0}, {"start": None, "duration": 1.0}]
    source.analyses["a"] = payload
    source.play("a", 0)

    assert engine.tick() is True
    assert engine.tick() is True

    (args, _), = recorder.of("error")
    assert isinstance(args[0], AnalysisError)
    assert engine.current_track is None
    assert source.analysis_calls == ["a"]


def test_relinked_track_id_is_not_a_track_change(source, engine, recorder):
    source.add_track("a", 10_000, ONE_SECOND_SPANS)
    source.tracks["a"] = TrackInfo(id="a-relinked", duration_ms=10_000, name="a")
    source.play("a", 0)

    for _ in range(3):
        engine.poll_once()

    assert len(recorder.of("track_changed")) == 1
    assert source.analysis_calls == ["a"]
    assert engine.current_track.id == "a-relinked"


def _poll_threads():
    return [t for t in threading.enumerate() if t.name == "lightsync-poll" and t.is_alive()]


def test_restart_waits_for_a_stuck_poll_thread(source):
    engine = SyncEngine(source, Scheduler(ManualClock()), poll_interval_ms=5)
    entered = threading.Event()
    release = threading.Event()

    def stuck():
        entered.set()
        release.wait(5.0)
        return None

    source.current_playback = stuck
    engine.start()
    try:
        assert entered.wait(2.0)
        engine.stop(timeout=0.01)

        engine.start()
        assert len(_poll_threads()) == 1
    finally:
        release.set()

    for thread in _poll_threads():
        thread.join(2.0)
    assert _poll_threads() == []

    source.current_playback = lambda: None
    engine.start()
    try:
        assert len(_poll_threads()) == 1
    finally:
        engine.stop()
    assert _poll_threads() == []
