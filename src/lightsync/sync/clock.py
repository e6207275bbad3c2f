"""
Time sources and the simulated playback clock.

All times are milliseconds as floats. Wall-clock sources are monotonic, so
playback positions never jump because the system clock was adjusted.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol

from ..errors import NoTrackError


class Clock(Protocol):
    """Anything that can report the current time in milliseconds."""

    def now_ms(self) -> float: ...


class MonotonicClock:
    """Real wall clock backed by ``time.monotonic``."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0


class ManualClock:
    """
    Clock that only moves when told to.

    Used to drive the scheduler through simulated time.
    """

    def __init__(self, start_ms: float = 0.0):
        self._now = float(start_ms)
        self._lock = threading.Lock()

    def now_ms(self) -> float:
        with self._lock:
            return self._now

    def set(self, now_ms: float) -> None:
        """Jump to an absolute time. Time never runs backwards."""
        with self._lock:
            self._now = max(self._now, float(now_ms))

    def advance(self, delta_ms: float) -> None:
        """Move forward by delta_ms."""
        self.set(self.now_ms() + delta_ms)


class PlaybackClock:
    """
    Local estimate of the track position.

    Position is derived, never incremented: an anchor pins a known track
    offset to a wall-clock instant and every read extrapolates from it.
    Re-anchoring is the only mutation.
    """

    def __init__(self, clock: Clock):
        self._clock = clock
        self.track_id: str | None = None
        self.start_wall_clock: float = 0.0
        self.start_offset_ms: float = 0.0

    @property
    def is_anchored(self) -> bool:
        return self.track_id is not None

    def anchor(self, track_id: str, offset_ms: float, at_ms: float | None = None) -> None:
        """
        Pin the track position offset_ms to a wall-clock instant.

        Args:
            track_id: Track the position belongs to (must be non-empty)
            offset_ms: Track position at the anchor instant
            at_ms: Wall-clock instant the offset was observed (default: now)

        Raises:
            NoTrackError: If track_id is empty
        """
        if not track_id:
            raise NoTrackError("cannot anchor playback clock without a track id")
        self.track_id = track_id
        self.start_wall_clock = self._clock.now_ms() if at_ms is None else at_ms
        self.start_offset_ms = float(offset_ms)

    def position_ms(self, at_ms: float | None = None) -> float:
        """Track position in milliseconds now, or at wall-clock instant at_ms."""
        if self.track_id is None:
            raise NoTrackError("playback clock is not anchored")
        now = self._clock.now_ms() if at_ms is None else at_ms
        return self.start_offset_ms + (now - self.start_wall_clock)

    def clear(self) -> None:
        """Forget the anchor (nothing playing)."""
        self.track_id = None
        self.start_wall_clock = 0.0
        self.start_offset_ms = 0.0
