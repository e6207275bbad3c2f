"""
Light actuator interface.

An actuator is anything with set_power/set_brightness/set_color. Writes are
best effort: implementations return quickly and handle their own
connection problems. Transitions are layered on top by TransitionController
rather than by subclassing.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Protocol, runtime_checkable

from .color import RGB

logger = logging.getLogger(__name__)

# Writes kept per LoggingActuator; older ones are discarded
MAX_RECORDED_CALLS = 1000


@runtime_checkable
class Actuator(Protocol):
    """Capabilities the transition engine drives."""

    name: str

    def start(self) -> None: ...

    def disconnect(self) -> None: ...

    def set_power(self, on: bool) -> None: ...

    def set_brightness(self, percent: float) -> None:
        """Brightness 0-100."""
        ...

    def set_color(self, color: RGB) -> None: ...


class LoggingActuator:
    """No-op actuator that logs and records its most recent writes (debug mode and tests)."""

    def __init__(self, name: str, max_calls: int = MAX_RECORDED_CALLS):
        self.name = name
        self.connected = False
        self.power: bool | None = None
        self.brightness: float | None = None
        self.color: RGB | None = None
        self.calls: deque[tuple[str, object]] = deque(maxlen=max_calls)
        self._lock = threading.Lock()

    def start(self) -> None:
        self.connected = True
        logger.info("%s: mock light connected", self.name)

    def disconnect(self) -> None:
        self.connected = False
        logger.info("%s: mock light disconnected", self.name)

    def set_power(self, on: bool) -> None:
        with self._lock:
            self.power = on
            self.calls.append(("power", on))
        logger.debug("%s: power set to %s", self.name, on)

    def set_brightness(self, percent: float) -> None:
        with self._lock:
            self.brightness = percent
            self.calls.append(("brightness", percent))
        logger.debug("%s: brightness %.1f%%", self.name, percent)

    def set_color(self, color: RGB) -> None:
        with self._lock:
            self.color = color
            self.calls.append(("color", color))
        logger.debug("%s: color %s", self.name, color.to_hex())

    def calls_of(self, kind: str) -> list:
        """Values written for one kind ("power", "brightness", "color")."""
        with self._lock:
            return [value for name, value in self.calls if name == kind]

    def __repr__(self) -> str:
        return f"LoggingActuator({self.name!r})"
