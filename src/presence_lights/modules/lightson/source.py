"""
Presence sources deliver device join/leave notifications to the trigger.

The actual poller (a router client, an ARP scanner, ...) lives outside
this library. It reports changes either by implementing PresenceSource
directly or by publishing presence.changed events on the EventBus, which
BusPresenceSource turns into PresenceEvents.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from presence_lights.core.bus import Event, EventBus, EventFilter

from .models import PresenceEvent

logger = logging.getLogger(__name__)

PRESENCE_CHANGED = "presence.changed"

PresenceCallback = Callable[[Optional[PresenceEvent], Optional[Exception]], None]
Unsubscribe = Callable[[], None]


class PresenceSource(ABC):
    """
    Abstract source of presence changes.

    Callbacks receive either an event or an error, never both. Errors are
    informational: subscribers drop them and keep listening.
    """

    @abstractmethod
    def subscribe(self, poll_interval: float, callback: PresenceCallback) -> Unsubscribe:
        """
        Start delivering presence changes.

        Args:
            poll_interval: Seconds between polls of the underlying device list
            callback: Called with (event, None) or (None, error)

        Returns:
            Function that stops delivery to this callback
        """
        pass


class BusPresenceSource(PresenceSource):
    """
    Presence source fed by presence.changed events on the EventBus.

    Expected payload:
        {"identity": "aa:bb:cc:00:11:22", "change": "appeared" | "disappeared"}

    The publisher owns the polling cadence; poll_interval is only logged.
    """

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus

    def subscribe(self, poll_interval: float, callback: PresenceCallback) -> Unsubscribe:
        def on_presence_changed(event: Event) -> None:
            payload = dict(event.payload)
            if event.entity_id and "identity" not in payload:
                payload["identity"] = event.entity_id

            try:
                presence = PresenceEvent.from_payload(payload, observed_at=event.timestamp)
            except ValueError as e:
                callback(None, e)
                return
            callback(presence, None)

        self._bus.subscribe(on_presence_changed, EventFilter(event_type=PRESENCE_CHANGED))
        logger.debug(f"Subscribed to {PRESENCE_CHANGED} (publisher polls every {poll_interval}s)")

        def unsubscribe() -> None:
            self._bus.unsubscribe(on_presence_changed)

        return unsubscribe


class MockPresenceSource(PresenceSource):
    """
    Mock presence source for testing.

    Events are delivered synchronously to every subscriber on emit().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callbacks: List[PresenceCallback] = []
        self.poll_intervals: List[float] = []
        self._subscribe_error: Optional[Exception] = None

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def subscribe(self, poll_interval: float, callback: PresenceCallback) -> Unsubscribe:
        if self._subscribe_error:
            raise self._subscribe_error

        with self._lock:
            self._callbacks.append(callback)
            self.poll_intervals.append(poll_interval)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def fail_subscribe(self, error: Optional[Exception]) -> None:
        """Make subscribe raise (None to stop failing)."""
        self._subscribe_error = error

    def emit(self, event: PresenceEvent) -> None:
        """Deliver an event to all subscribers."""
        for callback in self._snapshot():
            callback(event, None)

    def emit_error(self, error: Exception) -> None:
        """Deliver an error to all subscribers."""
        for callback in self._snapshot():
            callback(None, error)

    def _snapshot(self) -> List[PresenceCallback]:
        with self._lock:
            return list(self._callbacks)
