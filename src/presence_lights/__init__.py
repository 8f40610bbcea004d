"""
presence-lights: Presence-driven lighting triggers.

This library turns a device joining or leaving the network into lighting
actions:
- Debounced power-off when the device leaves
- Gated scene recall when it returns
- Synchronous Event Bus for presence and trigger events
- Pluggable schedulers for deterministic testing
"""

from presence_lights.core.bus import Event, EventBus, EventFilter
from presence_lights.core.delay import CancelableDelay, DelayHandle
from presence_lights.core.scheduler import ManualScheduler, ThreadingScheduler
from presence_lights.modules.lightson import (
    DebouncedTriggerEngine,
    DeviceLightsModule,
    PresenceEvent,
    TriggerConfig,
)

__version__ = "0.1.0"

__all__ = [
    "Event",
    "EventBus",
    "EventFilter",
    "CancelableDelay",
    "DelayHandle",
    "ManualScheduler",
    "ThreadingScheduler",
    "DebouncedTriggerEngine",
    "DeviceLightsModule",
    "PresenceEvent",
    "TriggerConfig",
]
