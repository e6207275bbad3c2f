"""
Playback sync engine.

Keeps a locally simulated playback position in step with a music service
that can only be polled. Each poll either:
- stops everything (nothing playing),
- loads a new track (analysis fetch, normalize, anchor, seed all tracks),
- or compares the local clock with the service and re-anchors on drift.

Polls run on their own thread with blocking HTTP. Every state change is
made while holding scheduler.lock, so interval timers never observe a
half-applied poll. Analysis fetches happen outside the lock.
"""

from __future__ import annotations

import logging
import threading

from ..errors import AnalysisError, NoTrackError
from .clock import PlaybackClock
from .events import SyncEvent, SyncEvents
from .intervals import (
    Granularity,
    IntervalTrack,
    TimeInterval,
    normalize_analysis,
)
from .scheduler import Scheduler
from .source import Playback, PlaybackSource, TrackInfo

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 1000.0
DEFAULT_DRIFT_THRESHOLD_MS = 100.0


class SyncEngine:
    """
    Owns the playback clock and one IntervalTrack per granularity.

    Usage:
        engine = SyncEngine(spotify_client, scheduler)
        engine.events.on(SyncEvent.NEW_SEGMENT, coordinator.on_new_segment)
        scheduler.start()
        engine.start()
    """

    def __init__(
        self,
        source: PlaybackSource,
        scheduler: Scheduler,
        events: SyncEvents | None = None,
        poll_interval_ms: float = DEFAULT_POLL_INTERVAL_MS,
        drift_threshold_ms: float = DEFAULT_DRIFT_THRESHOLD_MS,
    ):
        self.source = source
        self.scheduler = scheduler
        self.events = events or SyncEvents()
        self.poll_interval_ms = poll_interval_ms
        self.drift_threshold_ms = drift_threshold_ms

        self.clock = PlaybackClock(scheduler.clock)
        self.tracks: dict[Granularity, IntervalTrack] = {
            granularity: IntervalTrack(granularity, scheduler, self._on_interval)
            for granularity in Granularity
        }

        self._current_track: TrackInfo | None = None
        # Id as reported by polls; track metadata may carry a relinked id
        self._current_track_id: str | None = None
        self._failed_track_id: str | None = None

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def current_track(self) -> TrackInfo | None:
        return self._current_track

    def position_ms(self) -> float:
        """
        Simulated position in the current track.

        Raises:
            NoTrackError: If no track is loaded
        """
        with self.scheduler.lock:
            if self._current_track is None:
                raise NoTrackError("no track is playing")
            return self.clock.position_ms()

    def active_interval(self, granularity: Granularity) -> TimeInterval:
        """
        Interval the given granularity's cursor is on.

        Raises:
            NoTrackError: If no track is loaded
        """
        with self.scheduler.lock:
            if self._current_track is None:
                raise NoTrackError("no track is playing")
            return self.tracks[granularity].active

    # ------------------------------------------------------------------
    # Poll loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start polling on a background thread."""
        if self._thread is not None and self._thread.is_alive():
            if self._stop_event.is_set():
                logger.warning("Previous poll thread has not exited yet, not starting another")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="lightsync-poll", daemon=True)
        self._thread.start()
        logger.info("Polling playback every %.0fms", self.poll_interval_ms)

    def stop(self, timeout: float = 5.0) -> None:
        """
        Stop polling and drop the current track.

        If the poll thread is still stuck in a request after timeout, it
        stays referenced and start() refuses to run a second one.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        if thread is None or not thread.is_alive():
            self._thread = None
        elif thread is not threading.current_thread():
            logger.warning("Poll thread did not exit within %.1fs", timeout)
        with self.scheduler.lock:
            self._stop_track()

    def _run(self) -> None:
        # The next poll is only scheduled after this one's work is done,
        # so two polls never overlap.
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(self.poll_interval_ms / 1000.0)

    def tick(self) -> bool:
        """
        One poll. Never raises.

        Returns:
            False if the poll failed (it is logged and the loop carries on)
        """
        try:
            self.poll_once()
            return True
        except Exception:
            logger.exception("Playback poll failed, retrying in %.0fms", self.poll_interval_ms)
            return False

    def poll_once(self) -> None:
        """
        Fetch the remote player state and reconcile local state with it.

        Raises:
            PlaybackSourceError: On transient I/O failure (state is left consistent)
        """
        sent_at = self.scheduler.clock.now_ms()
        playback = self.source.current_playback()
        received_at = self.scheduler.clock.now_ms()

        if playback is None or not playback.has_track:
            with self.scheduler.lock:
                if self._current_track is not None:
                    logger.info("Nothing playing")
                self._stop_track()
                self._failed_track_id = None
            return

        # Progress was sampled somewhere during the round trip
        remote_ms = playback.progress_ms + (received_at - sent_at)

        with self.scheduler.lock:
            if self._current_track_id is not None and self._current_track_id == playback.track_id:
                self._check_drift(remote_ms, received_at)
                return
            if playback.track_id == self._failed_track_id:
                return
            if self._current_track is not None:
                logger.info("Track changed from %s", self._current_track)
            self._stop_track(emit=False)

        self._load_track(playback, remote_ms, received_at)

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def _load_track(self, playback: Playback, remote_ms: float, received_at: float) -> None:
        track_id = playback.track_id
        logger.info("Getting track info for %s", track_id)
        track = self.source.track(track_id)
        logger.info("Getting audio analysis for %s", track)
        try:
            analysis = self.source.audio_analysis(track_id)
            normalized = normalize_analysis(analysis, track.duration_ms)
        except AnalysisError as e:
            logger.error("Unusable analysis for %s: %s", track, e)
            with self.scheduler.lock:
                self._failed_track_id = track_id
                self._stop_track(emit=False)
            self.events.emit(SyncEvent.ERROR, e)
            return

        with self.scheduler.lock:
            if self._stop_event.is_set():
                return
            self._failed_track_id = None
            self._current_track = track
            self._current_track_id = track_id
            # Anchored at the moment the poll came back, so the time spent
            # fetching the analysis still counts as playback.
            self.clock.anchor(track_id, remote_ms, at_ms=received_at)
            position = self.clock.position_ms()
            for granularity, interval_track in self.tracks.items():
                interval_track.seed(normalized[granularity])
                interval_track.sync_to(position)
            logger.info("All track info for %s loaded, starting at %.0fms", track, position)
            self.events.emit(SyncEvent.TRACK_CHANGED, track)

    def _check_drift(self, remote_ms: float, received_at: float) -> None:
        local_ms = self.clock.position_ms(at_ms=received_at)
        drift = local_ms - remote_ms
        if abs(drift) <= self.drift_threshold_ms:
            logger.debug("Current track in sync (drift %.0fms)", drift)
            return

        logger.warning("Current track out of sync by %.0fms, re-anchoring", drift)
        self._cancel_tracks()
        self.clock.anchor(self._current_track_id, remote_ms, at_ms=received_at)
        position = self.clock.position_ms()
        for track in self.tracks.values():
            track.sync_to(position)

    def _cancel_tracks(self) -> None:
        for track in self.tracks.values():
            track.cancel()

    def _stop_track(self, emit: bool = True) -> None:
        """Cancel every timer and forget the track. Caller holds scheduler.lock."""
        was_playing = self._current_track is not None
        for track in self.tracks.values():
            track.clear()
        self.clock.clear()
        self._current_track = None
        self._current_track_id = None
        if was_playing and emit:
            self.events.emit(SyncEvent.TRACK_STOPPED)

    def _on_interval(
        self,
        granularity: Granularity,
        current: TimeInterval,
        upcoming: TimeInterval | None,
    ) -> None:
        self.events.emit(SyncEvent.INTERVAL, granularity, current, upcoming)
        self.events.emit(SyncEvent.for_granularity(granularity), current, upcoming)
