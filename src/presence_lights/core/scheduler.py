"""
Schedulers provide the clock and timer substrate for delayed actions.

The engine never reads the wall clock or starts threads directly; it asks
a Scheduler. Production code uses ThreadingScheduler, tests use
ManualScheduler to step time deterministically.
"""

import heapq
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, UTC
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], None]
CancelTimer = Callable[[], None]


class Scheduler(ABC):
    """
    Abstract clock and timer source.

    Implementations must run callbacks on a context separate from the
    caller of call_later (the caller never blocks).
    """

    @abstractmethod
    def now(self) -> datetime:
        """
        Get the current time.

        Returns:
            Current datetime (timezone-aware)
        """
        pass

    @abstractmethod
    def call_later(self, seconds: float, callback: TimerCallback) -> CancelTimer:
        """
        Run a callback once after a number of seconds.

        Args:
            seconds: Delay before the callback runs
            callback: Zero-argument callable

        Returns:
            Function that cancels the underlying timer (best effort)
        """
        pass


class ThreadingScheduler(Scheduler):
    """Wall-clock scheduler backed by daemon threading.Timer threads."""

    def __init__(self, thread_name_prefix: str = "presence-lights-timer") -> None:
        self._thread_name_prefix = thread_name_prefix
        self._counter = itertools.count(1)

    def now(self) -> datetime:
        return datetime.now(UTC)

    def call_later(self, seconds: float, callback: TimerCallback) -> CancelTimer:
        timer = threading.Timer(max(0.0, seconds), callback)
        timer.daemon = True
        timer.name = f"{self._thread_name_prefix}-{next(self._counter)}"
        timer.start()
        return timer.cancel


class ManualScheduler(Scheduler):
    """
    Deterministic scheduler for tests.

    Time only moves when advance() or set_time() is called. Due callbacks
    run synchronously inside advance(), in due-time order, on the thread
    that called advance(). Safe to use from several threads.

    Example:
        scheduler = ManualScheduler()
        scheduler.call_later(5, callback)
        scheduler.advance(4.9)   # nothing runs
        scheduler.advance(0.1)   # callback runs
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = start or datetime(2025, 1, 15, 20, 0, 0, tzinfo=UTC)
        self._lock = threading.Lock()
        self._queue: List[tuple[datetime, int, "_ManualTimer"]] = []
        self._seq = itertools.count()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set_time(self, dt: datetime) -> None:
        """Jump the clock without running any callbacks."""
        with self._lock:
            self._now = dt

    def call_later(self, seconds: float, callback: TimerCallback) -> CancelTimer:
        timer = _ManualTimer(callback)
        with self._lock:
            due = self._now + timedelta(seconds=max(0.0, seconds))
            heapq.heappush(self._queue, (due, next(self._seq), timer))
        return timer.cancel

    @property
    def pending_count(self) -> int:
        """Number of scheduled callbacks that have neither run nor been canceled."""
        with self._lock:
            return sum(1 for _, _, timer in self._queue if not timer.canceled)

    def advance(self, seconds: float = 0.0) -> int:
        """
        Move the clock forward and run every callback that falls due.

        Callbacks scheduled by other callbacks run too if they fall due
        before the new time.

        Args:
            seconds: How far to move the clock

        Returns:
            Number of callbacks that ran
        """
        ran = 0
        with self._lock:
            target = self._now + timedelta(seconds=seconds)

        while True:
            with self._lock:
                if not self._queue or self._queue[0][0] > target:
                    self._now = max(self._now, target)
                    return ran
                due, _, timer = heapq.heappop(self._queue)
                self._now = max(self._now, due)

            if timer.canceled:
                continue

            timer.callback()
            ran += 1


class _ManualTimer:
    """Queue entry for ManualScheduler."""

    def __init__(self, callback: TimerCallback) -> None:
        self.callback = callback
        self.canceled = False

    def cancel(self) -> None:
        self.canceled = True
