"""Observer registry for sync engine notifications."""

from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable

from .intervals import Granularity

logger = logging.getLogger(__name__)


class SyncEvent(Enum):
    """
    Notifications published by the sync engine.

    Handler signatures:
        TRACK_CHANGED(track: TrackInfo)
        TRACK_STOPPED()
        ERROR(exc: Exception)
        INTERVAL(granularity, current, next)
        NEW_BAR / NEW_BEAT / NEW_SECTION / NEW_SEGMENT / NEW_TATUM(current, next)
    """
    TRACK_CHANGED = "track_changed"
    TRACK_STOPPED = "track_stopped"
    ERROR = "error"
    INTERVAL = "interval"
    NEW_BAR = "new_bar"
    NEW_BEAT = "new_beat"
    NEW_SECTION = "new_section"
    NEW_SEGMENT = "new_segment"
    NEW_TATUM = "new_tatum"

    @classmethod
    def for_granularity(cls, granularity: Granularity) -> "SyncEvent":
        return _GRANULARITY_EVENTS[granularity]


_GRANULARITY_EVENTS = {
    Granularity.BARS: SyncEvent.NEW_BAR,
    Granularity.BEATS: SyncEvent.NEW_BEAT,
    Granularity.SECTIONS: SyncEvent.NEW_SECTION,
    Granularity.SEGMENTS: SyncEvent.NEW_SEGMENT,
    Granularity.TATUMS: SyncEvent.NEW_TATUM,
}


class SyncEvents:
    """
    Explicit handler registration per event kind.

    Handlers run synchronously, in registration order, after the engine has
    finished the state change they describe. A failing handler is logged
    and does not stop the others.

    Usage:
        events = SyncEvents()

        @events.on(SyncEvent.NEW_BEAT)
        def flash(current, next_beat):
            ...
    """

    def __init__(self):
        self._handlers: dict[SyncEvent, list[Callable[..., Any]]] = defaultdict(list)

    def on(self, event: SyncEvent | str, handler: Callable[..., Any] | None = None):
        """
        Register handler for event. Without a handler, returns a decorator.

        Raises:
            ValueError: If event is not a known event name
        """
        kind = SyncEvent(event)
        if handler is None:
            def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
                self._handlers[kind].append(fn)
                return fn
            return decorator
        self._handlers[kind].append(handler)
        return handler

    def off(self, event: SyncEvent | str, handler: Callable[..., Any]) -> None:
        """Unregister handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(SyncEvent(event), [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: SyncEvent, *args: Any) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(*args)
            except Exception:
                logger.exception("%s handler %r failed", event.value, handler)

    def handler_count(self, event: SyncEvent | str) -> int:
        return len(self._handlers.get(SyncEvent(event), ()))
