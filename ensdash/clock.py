"""
Countdown clock for the commit/reveal wait window.

A Countdown decrements once per tick through a Scheduler and stops for good
when cancelled. ThreadingScheduler runs ticks on daemon timers; tests drive
ticks by hand with their own scheduler.
"""

import logging
import threading
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        ...


class ThreadingScheduler:
    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class Countdown:
    """Counts `seconds` down to zero, one step per `interval`."""

    def __init__(
        self,
        scheduler: Scheduler,
        seconds: int,
        interval: float = 1.0,
        on_tick: Optional[Callable[[int], None]] = None,
    ):
        self._scheduler = scheduler
        self._seconds = int(seconds)
        self._interval = interval
        self._on_tick = on_tick
        self._lock = threading.Lock()
        self._remaining = int(seconds)
        self._handle: Optional[Cancellable] = None
        self._cancelled = False

    @property
    def remaining(self) -> int:
        with self._lock:
            return self._remaining

    @property
    def running(self) -> bool:
        with self._lock:
            return self._handle is not None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> None:
        """(Re)start from the full window."""
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._cancelled = False
            self._remaining = self._seconds
            self._handle = self._schedule() if self._remaining > 0 else None

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None

    def _schedule(self) -> Cancellable:
        return self._scheduler.call_later(self._interval, self._tick)

    def _tick(self) -> None:
        with self._lock:
            if self._cancelled or self._handle is None:
                return
            self._remaining = max(0, self._remaining - 1)
            remaining = self._remaining
            self._handle = self._schedule() if remaining > 0 else None
        if self._on_tick is not None:
            self._on_tick(remaining)
