"""
Core components of the presence-lights library.

This package contains:
- bus: Event Bus implementation
- scheduler: Clock and timer sources
- delay: Cancelable delay primitive
"""

from presence_lights.core.bus import Event, EventBus, EventFilter
from presence_lights.core.scheduler import Scheduler, ThreadingScheduler, ManualScheduler
from presence_lights.core.delay import CancelableDelay, DelayHandle, DelayState

__all__ = [
    "Event",
    "EventBus",
    "EventFilter",
    "Scheduler",
    "ThreadingScheduler",
    "ManualScheduler",
    "CancelableDelay",
    "DelayHandle",
    "DelayState",
]
