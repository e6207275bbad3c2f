"""
Segment-to-light mapping.

On every new segment each light gets one color ramp and one brightness
ramp toward the next segment. Lights split the 12 pitch classes between
them by position: light i of N owns pitch classes
[floor(i*12/N), floor((i+1)*12/N)), so the last light takes whatever
remainder an uneven split leaves.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from .lights.actuator import Actuator
from .lights.color import RGB
from .lights.transitions import TransitionController
from .sync.events import SyncEvent, SyncEvents
from .sync.intervals import Segment

logger = logging.getLogger(__name__)

PITCH_CLASSES = 12


def pitch_bands(pitch_count: int, light_count: int) -> list[tuple[int, int]]:
    """
    Slice bounds of a pitch vector for each light.

    Every light gets at least one pitch class; with more lights than
    pitch classes neighbouring lights share one.
    """
    if light_count <= 0 or pitch_count <= 0:
        return []
    bands = []
    for i in range(light_count):
        start = min(i * pitch_count // light_count, pitch_count - 1)
        end = (i + 1) * pitch_count // light_count if i < light_count - 1 else pitch_count
        bands.append((start, max(end, start + 1)))
    return bands


def band_energy(pitches: Sequence[float], band: tuple[int, int]) -> float:
    """Mean pitch energy inside a band (0.0 for an empty vector)."""
    values = pitches[band[0]:band[1]]
    if not values:
        return 0.0
    return sum(values) / len(values)


def loudness_to_brightness(loudness_db: float) -> float:
    """Segment start loudness (dB, about -60..0) to brightness percent."""
    return max(0.0, min(1.0, abs(loudness_db + 50) / 100)) * 100


class Coordinator:
    """Fans segment events out to brightness/color transitions on every light."""

    def __init__(
        self,
        actuators: Sequence[Actuator],
        controller: TransitionController,
        interpolator: Callable[[float], RGB],
        duration_scale: float = 0.95,
    ):
        self.actuators = list(actuators)
        self.controller = controller
        self.interpolator = interpolator
        self.duration_scale = duration_scale

    def attach(self, events: SyncEvents) -> None:
        """Subscribe to the sync engine's events."""
        events.on(SyncEvent.NEW_SEGMENT, self.on_new_segment)
        events.on(SyncEvent.TRACK_STOPPED, self.on_track_stopped)

    def colors_for(self, segment: Segment) -> list[RGB]:
        """One color per light from that light's share of the pitch vector."""
        bands = pitch_bands(len(segment.pitches) or PITCH_CLASSES, len(self.actuators))
        return [self.interpolator(band_energy(segment.pitches, band)) for band in bands]

    def on_new_segment(self, current: Segment, upcoming: Segment | None) -> None:
        if upcoming is None or not self.actuators:
            return

        duration = current.duration * self.duration_scale
        current_colors = self.colors_for(current)
        next_colors = self.colors_for(upcoming)
        brightness_from = loudness_to_brightness(current.loudness_start)
        brightness_to = loudness_to_brightness(upcoming.loudness_start)

        for light, start, end in zip(self.actuators, current_colors, next_colors):
            self.controller.transition_color(light, start, end, duration)
            self.controller.transition_brightness(light, brightness_from, brightness_to, duration)

    def on_track_stopped(self) -> None:
        logger.info("Track stopped, cancelling transitions")
        self.controller.cancel_all()
