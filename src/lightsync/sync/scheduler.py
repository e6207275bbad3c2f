"""
Single-threaded timer executor.

Every interval timer and every transition step is a callback on one
Scheduler. Callbacks run one at a time while holding ``scheduler.lock``, so
code on other threads (the poll loop) that takes the same lock can mutate
scheduled state without racing a callback that is about to fire.

Usage:
    scheduler = Scheduler()
    scheduler.start()
    handle = scheduler.call_later(500, print, "half a second later")
    handle.cancel()  # safe at any time, any number of times
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from typing import Any, Callable

from .clock import Clock, MonotonicClock

logger = logging.getLogger(__name__)


class TimerHandle:
    """A scheduled callback. Cancelling is idempotent."""

    __slots__ = ("deadline_ms", "_scheduler", "_callback", "_args", "_cancelled", "_done")

    def __init__(
        self,
        scheduler: "Scheduler",
        deadline_ms: float,
        callback: Callable[..., Any],
        args: tuple,
    ):
        self.deadline_ms = deadline_ms
        self._scheduler = scheduler
        self._callback = callback
        self._args = args
        self._cancelled = False
        self._done = False

    def cancel(self) -> None:
        """Prevent the callback from running. No-op if it already ran or was cancelled."""
        with self._scheduler.lock:
            self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        """True while the callback is still due to run."""
        return not (self._cancelled or self._done)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "done" if self._done else "pending"
        return f"TimerHandle({self.deadline_ms:.1f}ms, {state})"


class Scheduler:
    """Min-heap of (deadline, callback) pairs drained by a single executor."""

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or MonotonicClock()
        self.lock = threading.RLock()
        self._wakeup = threading.Condition(self.lock)
        self._heap: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()
        self._running = False
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def call_at(self, deadline_ms: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        """Run callback(*args) once the clock reaches deadline_ms."""
        with self.lock:
            handle = TimerHandle(self, deadline_ms, callback, args)
            heapq.heappush(self._heap, (deadline_ms, next(self._seq), handle))
            self._wakeup.notify()
        return handle

    def call_later(self, delay_ms: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        """Run callback(*args) after delay_ms (negative delays run immediately)."""
        return self.call_at(self.clock.now_ms() + max(0.0, delay_ms), callback, *args)

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        """Run callback(*args) on the next executor pass."""
        return self.call_at(self.clock.now_ms(), callback, *args)

    @property
    def pending(self) -> int:
        """Number of callbacks still due to run."""
        with self.lock:
            return sum(1 for _, _, handle in self._heap if handle.active)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _discard_cancelled(self) -> None:
        while self._heap and not self._heap[0][2].active:
            heapq.heappop(self._heap)

    def _next_deadline(self) -> float | None:
        self._discard_cancelled()
        return self._heap[0][0] if self._heap else None

    def run_pending(self) -> int:
        """
        Run every callback whose deadline has passed, in deadline order.

        Returns:
            Number of callbacks run
        """
        ran = 0
        while True:
            with self.lock:
                deadline = self._next_deadline()
                if deadline is None or deadline > self.clock.now_ms():
                    return ran
                _, _, handle = heapq.heappop(self._heap)
                # Flag is re-checked under the lock: a cancel() that won the
                # lock first always wins.
                if not handle.active:
                    continue
                handle._done = True
                try:
                    handle._callback(*handle._args)
                except Exception:
                    logger.exception("Scheduled callback %r failed", handle._callback)
            ran += 1

    def run_until(self, target_ms: float) -> int:
        """
        Step a ManualClock to each deadline up to target_ms, running callbacks.

        Callbacks see the clock exactly at their own deadline.

        Returns:
            Number of callbacks run
        """
        ran = 0
        while True:
            with self.lock:
                deadline = self._next_deadline()
            if deadline is None or deadline > target_ms:
                break
            self.clock.set(deadline)  # type: ignore[attr-defined]
            ran += self.run_pending()
        self.clock.set(target_ms)  # type: ignore[attr-defined]
        return ran + self.run_pending()

    def advance(self, delta_ms: float) -> int:
        """run_until relative to the current time."""
        return self.run_until(self.clock.now_ms() + delta_ms)

    def run_forever(self) -> None:
        """Executor loop. Blocks until stop() is called."""
        while True:
            self.run_pending()
            with self.lock:
                if not self._running:
                    return
                deadline = self._next_deadline()
                if deadline is None:
                    self._wakeup.wait()
                else:
                    timeout = (deadline - self.clock.now_ms()) / 1000.0
                    if timeout > 0:
                        self._wakeup.wait(timeout)

    def start(self) -> None:
        """Start the executor on a daemon thread."""
        with self.lock:
            if self._running:
                return
            self._running = True
        self._thread = threading.Thread(target=self.run_forever, name="lightsync-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the executor thread. Pending callbacks stay queued."""
        with self.lock:
            self._running = False
            self._wakeup.notify_all()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._running
