"""
Musical time intervals and the per-granularity interval scheduler.

Spotify's audio analysis describes a track at five nested granularities
(bars, beats, sections, segments, tatums). Each is a list of intervals in
seconds. normalize_intervals() turns one list into a contiguous millisecond
timeline covering the whole track, and an IntervalTrack walks that timeline
with a single timer, reporting every interval boundary it crosses.
"""

from __future__ import annotations

import bisect
import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from numbers import Real
from typing import Any, Callable, Sequence, TypeVar

from ..errors import AnalysisError
from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


# =============================================================================
# INTERVAL TYPES
# =============================================================================

@dataclass(frozen=True)
class TimeInterval:
    """One bar/beat/tatum. Units are seconds before normalization, ms after."""
    start: float
    duration: float
    confidence: float = 1.0

    @property
    def end(self) -> float:
        return self.start + self.duration


@dataclass(frozen=True)
class Section(TimeInterval):
    """A large structural section (verse, chorus, ...)."""
    loudness: float = 0.0
    tempo: float = 0.0
    tempo_confidence: float = 0.0
    key: int = -1
    key_confidence: float = 0.0
    mode: int = -1
    mode_confidence: float = 0.0
    time_signature: int = 4
    time_signature_confidence: float = 0.0


@dataclass(frozen=True)
class Segment(TimeInterval):
    """A short, roughly uniform sound, with loudness and 12-bin pitch/timbre vectors."""
    loudness_start: float = -60.0
    loudness_max: float = -60.0
    loudness_max_time: float = 0.0
    loudness_end: float = -60.0
    pitches: tuple[float, ...] = ()
    timbre: tuple[float, ...] = ()


class Granularity(Enum):
    """Nested levels of musical structure, named as in the analysis payload."""
    BARS = "bars"
    BEATS = "beats"
    SECTIONS = "sections"
    SEGMENTS = "segments"
    TATUMS = "tatums"

    @property
    def interval_type(self) -> type[TimeInterval]:
        if self is Granularity.SECTIONS:
            return Section
        if self is Granularity.SEGMENTS:
            return Segment
        return TimeInterval


T = TypeVar("T", bound=TimeInterval)


def _parse_interval(cls: type[T], data: dict[str, Any]) -> T:
    if not isinstance(data, dict):
        raise AnalysisError(f"malformed {cls.__name__.lower()}: {data!r}")
    fields = dataclasses.fields(cls)
    kwargs = {f.name: data[f.name] for f in fields if f.name in data}
    for f in fields:
        # Annotations are strings under postponed evaluation
        if f.type in ("float", "int") and f.name in kwargs:
            value = kwargs[f.name]
            if isinstance(value, bool) or not isinstance(value, Real):
                raise AnalysisError(f"{cls.__name__.lower()} {f.name} is not a number: {data!r}")
    try:
        for vector in ("pitches", "timbre"):
            if vector in kwargs:
                kwargs[vector] = tuple(kwargs[vector])
        return cls(**kwargs)
    except TypeError as e:
        raise AnalysisError(f"malformed {cls.__name__.lower()}: {data!r}") from e


@dataclass
class AudioAnalysis:
    """Raw analysis for one track, intervals in seconds."""
    bars: list[TimeInterval] = field(default_factory=list)
    beats: list[TimeInterval] = field(default_factory=list)
    sections: list[Section] = field(default_factory=list)
    segments: list[Segment] = field(default_factory=list)
    tatums: list[TimeInterval] = field(default_factory=list)

    def get(self, granularity: Granularity) -> list:
        return getattr(self, granularity.value)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AudioAnalysis":
        """
        Build from a Spotify audio-analysis payload.

        Raises:
            AnalysisError: If any granularity is missing or not a list
        """
        kwargs: dict[str, list] = {}
        for granularity in Granularity:
            raw = data.get(granularity.value)
            if not isinstance(raw, list):
                raise AnalysisError(f"analysis has no {granularity.value}")
            kwargs[granularity.value] = [
                _parse_interval(granularity.interval_type, item) for item in raw
            ]
        return cls(**kwargs)


# =============================================================================
# NORMALIZATION
# =============================================================================

def normalize_intervals(intervals: Sequence[T], track_duration_ms: float) -> list[T]:
    """
    Convert intervals from seconds to milliseconds and force full coverage.

    The result starts at 0, ends exactly at track_duration_ms, and every
    interval ends where the next one starts. Intervals starting at or past
    the end of the track, or sharing a start with an earlier interval, are
    dropped. Granularity payload (pitches, loudness, ...) is preserved.

    Args:
        intervals: Raw intervals in seconds
        track_duration_ms: Track length in milliseconds

    Returns:
        New list of intervals in milliseconds

    Raises:
        AnalysisError: If nothing usable remains
    """
    if track_duration_ms <= 0:
        raise AnalysisError(f"invalid track duration {track_duration_ms}")

    ordered = sorted(intervals, key=lambda i: i.start)
    starts: list[float] = []
    kept: list[T] = []
    for interval in ordered:
        start_ms = max(0.0, interval.start * 1000.0)
        if start_ms >= track_duration_ms:
            break
        if starts and start_ms <= starts[-1]:
            continue
        starts.append(start_ms)
        kept.append(interval)

    if not kept:
        raise AnalysisError("no intervals inside the track")

    # First interval always starts at zero
    starts[0] = 0.0
    ends = starts[1:] + [float(track_duration_ms)]

    return [
        dataclasses.replace(interval, start=start, duration=end - start)
        for interval, start, end in zip(kept, starts, ends)
    ]


def normalize_analysis(
    analysis: AudioAnalysis,
    track_duration_ms: float,
) -> dict[Granularity, list[TimeInterval]]:
    """
    Normalize every granularity of an analysis.

    Raises:
        AnalysisError: If any granularity is empty
    """
    normalized = {}
    for granularity in Granularity:
        raw = analysis.get(granularity)
        if not raw:
            raise AnalysisError(f"analysis has no {granularity.value}")
        normalized[granularity] = normalize_intervals(raw, track_duration_ms)
    return normalized


# =============================================================================
# INTERVAL TRACK
# =============================================================================

IntervalHandler = Callable[[Granularity, TimeInterval, "TimeInterval | None"], None]


class TrackState(Enum):
    EMPTY = "empty"
    ACTIVE = "active"
    TERMINAL = "terminal"


class IntervalTrack:
    """
    Cursor over one normalized interval sequence, driven by a single timer.

    State machine: EMPTY -> ACTIVE(i) -> ACTIVE(i+1) -> ... -> TERMINAL(last).
    When the active interval ends the handler is called with
    (granularity, ended interval, new active interval) and the timer is
    re-armed for the new interval's own duration. Small lateness between
    ticks accumulates; the sync engine corrects it by re-syncing.

    There is at most one pending timer. seed(), sync_to() and cancel() all
    cancel it first, so a timer armed before a reseed can never fire after it.
    All methods must be called on the scheduler thread or with
    scheduler.lock held.
    """

    def __init__(
        self,
        granularity: Granularity,
        scheduler: Scheduler,
        on_change: IntervalHandler | None = None,
    ):
        self.granularity = granularity
        self.scheduler = scheduler
        self.on_change = on_change
        self.intervals: tuple[TimeInterval, ...] = ()
        self.active_index = 0
        self._starts: list[float] = []
        self._timer: TimerHandle | None = None

    @property
    def state(self) -> TrackState:
        if not self.intervals:
            return TrackState.EMPTY
        if self.active_index == len(self.intervals) - 1:
            return TrackState.TERMINAL
        return TrackState.ACTIVE

    @property
    def active(self) -> TimeInterval | None:
        """The interval the cursor is on, or None when empty."""
        if not self.intervals:
            return None
        return self.intervals[self.active_index]

    @property
    def is_armed(self) -> bool:
        return self._timer is not None and self._timer.active

    def seed(self, intervals: Sequence[TimeInterval], active_index: int = 0) -> None:
        """Replace the sequence and cursor. Cancels any pending timer."""
        with self.scheduler.lock:
            self.cancel()
            self.intervals = tuple(intervals)
            self._starts = [i.start for i in self.intervals]
            if self.intervals:
                self.active_index = max(0, min(active_index, len(self.intervals) - 1))
            else:
                self.active_index = 0

    def clear(self) -> None:
        """Back to EMPTY."""
        self.seed(())

    def sync_to(self, position_ms: float) -> None:
        """
        Point the cursor at the interval containing position_ms and arm the timer.

        Positions before the first interval clamp to it. Positions in or
        beyond the last interval leave the track TERMINAL with no timer.
        """
        with self.scheduler.lock:
            self.cancel()
            if not self.intervals:
                return

            index = bisect.bisect_right(self._starts, position_ms) - 1
            self.active_index = max(0, min(index, len(self.intervals) - 1))

            if self.state is TrackState.TERMINAL:
                return
            active = self.intervals[self.active_index]
            self._arm(active.end - max(position_ms, active.start))

    def cancel(self) -> None:
        """Drop the pending timer without emitting. Idempotent."""
        with self.scheduler.lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _arm(self, delay_ms: float) -> None:
        self._timer = self.scheduler.call_later(delay_ms, self._fire)

    def _fire(self) -> None:
        self._timer = None
        if self.state is not TrackState.ACTIVE:
            return

        current = self.intervals[self.active_index]
        self.active_index += 1
        upcoming = self.intervals[self.active_index]
        if self.state is TrackState.ACTIVE:
            self._arm(upcoming.duration)

        # Cursor and timer are committed before anyone hears about it
        if self.on_change is not None:
            self.on_change(self.granularity, current, upcoming)

    def __repr__(self) -> str:
        return (
            f"IntervalTrack({self.granularity.value}, {self.state.value}, "
            f"{self.active_index}/{len(self.intervals)})"
        )
