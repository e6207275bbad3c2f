"""What the sync engine needs from a music service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from .intervals import AudioAnalysis


@dataclass(frozen=True)
class Playback:
    """Snapshot of the player as reported by the service."""
    track_id: Optional[str]
    is_playing: bool
    progress_ms: Optional[float]

    @property
    def has_track(self) -> bool:
        return self.is_playing and bool(self.track_id) and self.progress_ms is not None


@dataclass(frozen=True)
class TrackInfo:
    """Track metadata needed for scheduling (and logging)."""
    id: str
    duration_ms: float
    name: str = ""
    artists: tuple[str, ...] = ()

    def __str__(self) -> str:
        if self.name and self.artists:
            return f"{self.name} by {', '.join(self.artists)}"
        return self.name or self.id


class PlaybackSource(Protocol):
    """
    Ground truth for what is playing.

    Every method may raise PlaybackSourceError on transient failures.
    """

    def current_playback(self) -> Optional[Playback]:
        """Current player state, or None if nothing is loaded."""
        ...

    def track(self, track_id: str) -> TrackInfo:
        ...

    def audio_analysis(self, track_id: str) -> AudioAnalysis:
        ...
