"""
Cancelable delay primitive.

Arms a timer that either fires an action once after a duration or is
canceled beforehand. Firing and canceling are decided under the handle's
own lock, so exactly one of the two outcomes ever happens.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional

from presence_lights.core.scheduler import CancelTimer, Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)

DelayAction = Callable[[], None]


class DelayState(Enum):
    """Lifecycle of an armed delay."""

    PENDING = "pending"  # Armed, action not yet started
    FIRED = "fired"  # Action started (or finished)
    CANCELED = "canceled"  # Canceled before firing


class DelayHandle:
    """
    Handle to a single armed delay.

    Once the state leaves PENDING it never changes again.
    """

    def __init__(self, action: DelayAction, name: str = "delay") -> None:
        self._action = action
        self._name = name
        self._lock = threading.Lock()
        self._state = DelayState.PENDING
        self._cancel_timer: Optional[CancelTimer] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> DelayState:
        with self._lock:
            return self._state

    @property
    def pending(self) -> bool:
        """True while the action can still fire."""
        return self.state is DelayState.PENDING

    def cancel(self) -> bool:
        """
        Cancel the delay.

        Canceling a delay that already fired or was already canceled is a
        no-op.

        Returns:
            True if this call prevented the action from running
        """
        with self._lock:
            if self._state is not DelayState.PENDING:
                return False
            self._state = DelayState.CANCELED
            cancel_timer = self._cancel_timer

        if cancel_timer is not None:
            cancel_timer()
        logger.debug(f"Canceled {self._name}")
        return True

    def _bind_timer(self, cancel_timer: CancelTimer) -> None:
        with self._lock:
            self._cancel_timer = cancel_timer

    def _fire(self) -> None:
        """Timer callback: claim the handle, then run the action outside the lock."""
        with self._lock:
            if self._state is not DelayState.PENDING:
                return
            self._state = DelayState.FIRED

        logger.debug(f"Firing {self._name}")
        try:
            self._action()
        except Exception as e:
            logger.error(f"Error in delayed action {self._name}: {e}", exc_info=True)

    def __repr__(self) -> str:
        return f"DelayHandle(name={self._name!r}, state={self.state.value})"


class CancelableDelay:
    """
    Factory for DelayHandles bound to a scheduler.

    Re-arming for the same purpose is the caller's job: cancel the old
    handle before arming a new one.
    """

    def __init__(self, scheduler: Optional[Scheduler] = None) -> None:
        self._scheduler = scheduler or ThreadingScheduler()

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    def arm(self, duration: float, action: DelayAction, name: str = "delay") -> DelayHandle:
        """
        Schedule an action to run once after a duration.

        Args:
            duration: Seconds to wait (0 = as soon as the scheduler can run it)
            action: Zero-argument callable
            name: Label used in logs

        Returns:
            Handle that can cancel the delay

        Raises:
            ValueError: If duration is negative
        """
        if duration < 0:
            raise ValueError(f"Delay duration must be >= 0, got {duration}")

        handle = DelayHandle(action, name=name)
        handle._bind_timer(self._scheduler.call_later(duration, handle._fire))
        logger.debug(f"Armed {name} for {duration}s")
        return handle
