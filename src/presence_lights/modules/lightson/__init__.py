"""
Device lights trigger for presence-lights.

Turns lights off when a device leaves the network and recalls a scene
when it comes back.

Features:
- Debounced power-off (a quick reconnect cancels it)
- Scene recall only from an all-off baseline
- Precondition hooks (time window, day of week, entity state, custom)
- Execution history for debugging

Architecture:
    Presence events flow from a PresenceSource into the
    DebouncedTriggerEngine, which drives a LightingAdapter.

    ┌────────────────┐    ┌──────────────────────────┐    ┌─────────────────┐
    │ PresenceSource │ -> │ DebouncedTriggerEngine   │ -> │ LightingAdapter │
    └────────────────┘    │  (CancelableDelay,       │    └─────────────────┘
                          │   HookChain)             │
                          └──────────────────────────┘
"""

from .module import DeviceLightsModule
from .models import (
    # Enums
    PresenceKind,
    PresenceState,
    ActivationOutcome,
    # Events and config
    PresenceEvent,
    TriggerConfig,
    normalize_identity,
    # Records
    TriggerExecution,
    EngineResult,
    # Errors
    SceneNotFoundError,
)
from .adapter import LightState, Scene, LightingAdapter, MockLightingAdapter
from .source import PresenceSource, BusPresenceSource, MockPresenceSource, PRESENCE_CHANGED
from .hooks import (
    ShouldTurnOn,
    HookChain,
    time_of_day_hook,
    day_of_week_hook,
    entity_state_hook,
)
from .engine import DebouncedTriggerEngine

__all__ = [
    # Main module
    "DeviceLightsModule",
    # Engine
    "DebouncedTriggerEngine",
    "EngineResult",
    # Adapter
    "LightState",
    "Scene",
    "LightingAdapter",
    "MockLightingAdapter",
    # Sources
    "PresenceSource",
    "BusPresenceSource",
    "MockPresenceSource",
    "PRESENCE_CHANGED",
    # Hooks
    "ShouldTurnOn",
    "HookChain",
    "time_of_day_hook",
    "day_of_week_hook",
    "entity_state_hook",
    # Models
    "PresenceKind",
    "PresenceState",
    "ActivationOutcome",
    "PresenceEvent",
    "TriggerConfig",
    "normalize_identity",
    "TriggerExecution",
    "SceneNotFoundError",
]
