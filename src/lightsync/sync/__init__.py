"""Playback synchronization: clock, timers, interval tracks and the poll engine."""

from .clock import Clock, MonotonicClock, ManualClock, PlaybackClock
from .scheduler import Scheduler, TimerHandle
from .intervals import (
    TimeInterval,
    Section,
    Segment,
    Granularity,
    AudioAnalysis,
    IntervalTrack,
    TrackState,
    normalize_intervals,
    normalize_analysis,
)
from .events import SyncEvent, SyncEvents
from .source import Playback, TrackInfo, PlaybackSource
from .engine import SyncEngine

__all__ = [
    "Clock",
    "MonotonicClock",
    "ManualClock",
    "PlaybackClock",
    "Scheduler",
    "TimerHandle",
    "TimeInterval",
    "Section",
    "Segment",
    "Granularity",
    "AudioAnalysis",
    "IntervalTrack",
    "TrackState",
    "normalize_intervals",
    "normalize_analysis",
    "SyncEvent",
    "SyncEvents",
    "Playback",
    "TrackInfo",
    "PlaybackSource",
    "SyncEngine",
]
