"""Shared test fixtures for lightsync tests."""

from __future__ import annotations

import pytest

from lightsync.errors import PlaybackSourceError
from lightsync.lights import LoggingActuator, TransitionController
from lightsync.sync import (
    AudioAnalysis,
    ManualClock,
    Playback,
    Scheduler,
    Section,
    Segment,
    SyncEngine,
    SyncEvent,
    SyncEvents,
    TimeInterval,
    TrackInfo,
)


def seconds(spans: list[tuple[float, float]], cls=TimeInterval, **extra) -> list:
    """Intervals from (start_s, duration_s) pairs."""
    return [cls(start=start, duration=duration, **extra) for start, duration in spans]


def make_analysis(spans: list[tuple[float, float]]) -> AudioAnalysis:
    """Analysis using the same (start_s, duration_s) spans at every granularity."""
    return AudioAnalysis(
        bars=seconds(spans),
        beats=seconds(spans),
        sections=seconds(spans, Section),
        segments=seconds(spans, Segment, pitches=tuple([0.5] * 12)),
        tatums=seconds(spans),
    )


class FakePlaybackSource:
    """
    Scripted PlaybackSource.

    Set ``playback`` to what the next poll should return, or to an
    exception instance to have the poll raise it. Analyses may be stored
    as raw payload dicts, parsed like the Spotify client does.
    """

    def __init__(self):
        self.playback: Playback | Exception | None = None
        self.tracks: dict[str, TrackInfo] = {}
        self.analyses: dict[str, AudioAnalysis | dict | Exception] = {}
        self.playback_calls = 0
        self.analysis_calls: list[str] = []

    def add_track(self, track_id: str, duration_ms: float, spans, name: str = "") -> TrackInfo:
        track = TrackInfo(id=track_id, duration_ms=duration_ms, name=name or track_id)
        self.tracks[track_id] = track
        self.analyses[track_id] = make_analysis(spans)
        return track

    def play(self, track_id: str, progress_ms: float, is_playing: bool = True) -> None:
        self.playback = Playback(track_id=track_id, is_playing=is_playing, progress_ms=progress_ms)

    def current_playback(self) -> Playback | None:
        self.playback_calls += 1
        if isinstance(self.playback, Exception):
            raise self.playback
        return self.playback

    def track(self, track_id: str) -> TrackInfo:
        try:
            return self.tracks[track_id]
        except KeyError:
            raise PlaybackSourceError(f"unknown track {track_id}")

    def audio_analysis(self, track_id: str) -> AudioAnalysis:
        self.analysis_calls.append(track_id)
        analysis = self.analyses[track_id]
        if isinstance(analysis, Exception):
            raise analysis
        if isinstance(analysis, dict):
            return AudioAnalysis.from_dict(analysis)
        return analysis


class EventRecorder:
    """Collects every emitted event as (name, args, clock time)."""

    def __init__(self, events: SyncEvents, clock: ManualClock):
        self.records: list[tuple[str, tuple, float]] = []
        self._clock = clock
        for event in SyncEvent:
            events.on(event, self._recorder(event.value))

    def _recorder(self, name: str):
        def record(*args):
            self.records.append((name, args, self._clock.now_ms()))
        return record

    def of(self, name: str) -> list[tuple[tuple, float]]:
        return [(args, at) for event, args, at in self.records if event == name]


@pytest.fixture
def clock():
    """Simulated clock starting at t=0."""
    return ManualClock()


@pytest.fixture
def scheduler(clock):
    """Scheduler driven by hand through run_until/advance."""
    return Scheduler(clock)


@pytest.fixture
def source():
    return FakePlaybackSource()


@pytest.fixture
def engine(source, scheduler):
    return SyncEngine(source, scheduler, poll_interval_ms=1000, drift_threshold_ms=100)


@pytest.fixture
def recorder(engine, clock):
    return EventRecorder(engine.events, clock)


@pytest.fixture
def light():
    """Recording actuator."""
    return LoggingActuator("test-light")


@pytest.fixture
def controller(scheduler):
    return TransitionController(scheduler, command_delay_ms=50)
