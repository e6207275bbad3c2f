"""
Timed brightness/color ramps over any Actuator.

A ramp is a chain of scheduler callbacks, one actuator write per
command_delay_ms. At most one ramp per (actuator, kind) runs at a time:
a request that finds the pair busy is dropped with a warning, never
queued, so fast-firing segments cannot build a backlog. Brightness and
color ramps on the same actuator are independent and run side by side.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from ..errors import InvalidArgumentError
from ..sync.scheduler import Scheduler, TimerHandle
from .actuator import Actuator
from .color import RGB, Interpolation, interpolate

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_DELAY_MS = 50.0


class TransitionKind(Enum):
    BRIGHTNESS = "brightness"
    COLOR = "color"


@dataclass(eq=False)
class Ramp:
    """One in-flight transition."""
    actuator: Actuator
    kind: TransitionKind
    samples: list[Any]
    write: Callable[[Any], None]
    index: int = 0
    cancelled: bool = False
    handle: TimerHandle | None = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.index >= len(self.samples)


def ramp_fractions(duration_ms: float, command_delay_ms: float) -> list[float]:
    """
    Evenly spaced interpolation points for a ramp.

    floor(duration / delay) samples (at least one), the first at 0.0 and
    the last at 1.0. A single sample jumps straight to the target.
    """
    steps = max(1, int(duration_ms // command_delay_ms))
    if steps == 1:
        return [1.0]
    return [k / (steps - 1) for k in range(steps)]


class TransitionController:
    """
    Mutually exclusive brightness/color ramps per actuator.

    Usage:
        controller = TransitionController(scheduler, command_delay_ms=50)
        controller.transition_brightness(light, 20, 80, 1000)
        controller.transition_color(light, RGB(255, 0, 0), RGB(0, 0, 255), 1000)
    """

    def __init__(
        self,
        scheduler: Scheduler,
        command_delay_ms: float = DEFAULT_COMMAND_DELAY_MS,
        interpolation: Interpolation | str = Interpolation.HSV,
    ):
        if command_delay_ms <= 0:
            raise InvalidArgumentError(f"command delay must be positive, got {command_delay_ms}")
        self.scheduler = scheduler
        self.command_delay_ms = command_delay_ms
        self.interpolation = Interpolation(interpolation)

        self._guard = threading.Lock()
        self._locks: dict[tuple[Actuator, TransitionKind], threading.Lock] = {}
        self._ramps: dict[tuple[Actuator, TransitionKind], Ramp] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def transition_brightness(
        self,
        actuator: Actuator,
        from_pct: float,
        to_pct: float,
        duration_ms: float,
    ) -> bool:
        """
        Ramp brightness linearly from from_pct to to_pct over duration_ms.

        Returns:
            True if the ramp started, False if one was already running

        Raises:
            InvalidArgumentError: If a percentage is outside 0-100 or the
                duration is negative (nothing is written)
        """
        for value in (from_pct, to_pct):
            if (
                isinstance(value, bool)
                or not isinstance(value, (int, float))
                or math.isnan(value)
                or not 0 <= value <= 100
            ):
                raise InvalidArgumentError(f"invalid brightness {value!r}")
        self._check_duration(duration_ms)

        samples = [
            from_pct + (to_pct - from_pct) * t
            for t in ramp_fractions(duration_ms, self.command_delay_ms)
        ]
        return self._begin(actuator, TransitionKind.BRIGHTNESS, samples, actuator.set_brightness)

    def transition_color(
        self,
        actuator: Actuator,
        from_color: RGB | str,
        to_color: RGB | str,
        duration_ms: float,
    ) -> bool:
        """
        Ramp color from from_color to to_color over duration_ms.

        Colors may be RGB values or hex strings.

        Returns:
            True if the ramp started, False if one was already running

        Raises:
            InvalidArgumentError: If a color cannot be parsed or the duration
                is negative (nothing is written)
        """
        start = self._coerce_color(from_color)
        end = self._coerce_color(to_color)
        self._check_duration(duration_ms)

        samples = [
            interpolate(start, end, t, self.interpolation)
            for t in ramp_fractions(duration_ms, self.command_delay_ms)
        ]
        return self._begin(actuator, TransitionKind.COLOR, samples, actuator.set_color)

    def is_locked(self, actuator: Actuator, kind: TransitionKind) -> bool:
        """True while a ramp of this kind is running on actuator."""
        with self._guard:
            lock = self._locks.get((actuator, kind))
        return lock is not None and lock.locked()

    def cancel(self, actuator: Actuator, kind: TransitionKind | None = None) -> None:
        """Stop ramps on actuator (one kind or both) where they are. Idempotent."""
        kinds = [kind] if kind is not None else list(TransitionKind)
        with self.scheduler.lock:
            for k in kinds:
                ramp = self._ramps.get((actuator, k))
                if ramp is not None:
                    ramp.cancelled = True
                    if ramp.handle is not None:
                        ramp.handle.cancel()
                    self._finish(ramp)

    def cancel_all(self) -> None:
        with self.scheduler.lock:
            for actuator, kind in list(self._ramps):
                self.cancel(actuator, kind)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _check_duration(duration_ms: float) -> None:
        if (
            isinstance(duration_ms, bool)
            or not isinstance(duration_ms, (int, float))
            or math.isnan(duration_ms)
            or duration_ms < 0
        ):
            raise InvalidArgumentError(f"invalid duration {duration_ms!r}")

    @staticmethod
    def _coerce_color(color: RGB | str) -> RGB:
        if isinstance(color, RGB):
            return color
        if isinstance(color, str):
            try:
                return RGB.from_hex(color)
            except ValueError as e:
                raise InvalidArgumentError(str(e)) from e
        raise InvalidArgumentError(f"invalid color {color!r}")

    def _begin(
        self,
        actuator: Actuator,
        kind: TransitionKind,
        samples: list[Any],
        write: Callable[[Any], None],
    ) -> bool:
        key = (actuator, kind)
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())

        if not lock.acquire(blocking=False):
            logger.warning(
                "%s: %s transition already in progress, dropping new one",
                getattr(actuator, "name", actuator), kind.value,
            )
            return False

        ramp = Ramp(actuator=actuator, kind=kind, samples=samples, write=write)
        with self.scheduler.lock:
            self._ramps[key] = ramp
            self._step(ramp)
        return True

    def _step(self, ramp: Ramp) -> None:
        ramp.handle = None
        if ramp.cancelled:
            return
        if ramp.done:
            self._finish(ramp)
            return

        value = ramp.samples[ramp.index]
        ramp.index += 1
        try:
            ramp.write(value)
        except Exception as e:
            # The driver owns reconnection; a failed write is one missed frame
            logger.debug("%s: %s write failed: %s", getattr(ramp.actuator, "name", ramp.actuator), ramp.kind.value, e)

        ramp.handle = self.scheduler.call_later(self.command_delay_ms, self._step, ramp)

    def _finish(self, ramp: Ramp) -> None:
        key = (ramp.actuator, ramp.kind)
        if self._ramps.get(key) is not ramp:
            return
        del self._ramps[key]
        self._locks[key].release()
