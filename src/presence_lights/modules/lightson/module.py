"""
DeviceLightsModule implementation.

Listens for a device connecting to or disconnecting from the network and
drives a lighting scene through the debounced trigger engine.
"""

import logging
from concurrent.futures import Executor
from typing import Any, Dict, Iterable, List, Optional, Union

from presence_lights.core.bus import Event, EventBus
from presence_lights.core.scheduler import Scheduler
from presence_lights.modules.base import TriggerModule

from .adapter import LightingAdapter
from .engine import DebouncedTriggerEngine
from .hooks import HookChain, ShouldTurnOn
from .models import PresenceEvent, TriggerConfig, TriggerExecution
from .source import BusPresenceSource, PresenceSource, Unsubscribe

logger = logging.getLogger(__name__)

TRIGGERED = "lightson.triggered"

# Config keys used before version 2
_LEGACY_KEYS = {
    "trigger_device_mac": "watched_identity",
    "router_poll_interval": "poll_interval",
    "debounce": "debounce_interval",
}


class DeviceLightsModule(TriggerModule):
    """
    Module that turns lights on and off as a device comes and goes.

    Wires a presence source and a lighting adapter to a
    DebouncedTriggerEngine, and publishes lightson.triggered events for
    observability.

    Features:
    - Debounced power-off when the device leaves
    - Scene recall when the device returns (all lights off + hooks pass)
    - Execution history for debugging
    """

    def __init__(
        self,
        config: Union[TriggerConfig, Dict[str, Any]],
        adapter: LightingAdapter,
        source: Optional[PresenceSource] = None,
        hooks: Optional[Iterable[ShouldTurnOn]] = None,
        scheduler: Optional[Scheduler] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        """
        Initialize the module.

        Args:
            config: TriggerConfig or its dict form (legacy keys are migrated)
            adapter: Lighting adapter for the bridge
            source: Presence source (default: presence.changed events on
                the bus passed to attach())
            hooks: Precondition hooks checked before the lights turn on
            scheduler: Clock and timer source (default: ThreadingScheduler)
            executor: Where to run activation attempts (None = inline)
        """
        if isinstance(config, dict):
            config = TriggerConfig.from_dict(self.load_config(config))

        self._config = config
        self._adapter = adapter
        self._source = source
        self._hooks = HookChain(hooks)
        self._scheduler = scheduler
        self._executor = executor

        self._bus: Optional[EventBus] = None
        self._engine: Optional[DebouncedTriggerEngine] = None
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def id(self) -> str:
        return "lightson"

    @property
    def CURRENT_CONFIG_VERSION(self) -> int:
        return 2

    @property
    def config(self) -> TriggerConfig:
        return self._config

    @property
    def engine(self) -> Optional[DebouncedTriggerEngine]:
        return self._engine

    def add_hook(self, hook: ShouldTurnOn) -> None:
        """Append a precondition hook (takes effect immediately)."""
        self._hooks.add(hook)

    def attach(self, bus: EventBus) -> None:
        """
        Attach the module to the bus.

        Uses the bus as the presence source unless one was given.
        """
        logger.info("Attaching DeviceLightsModule")
        self._bus = bus
        if self._source is None:
            self._source = BusPresenceSource(bus)

    def start(self) -> None:
        """
        Boot the trigger and begin listening for the device.

        Raises:
            SceneNotFoundError: If the configured scene doesn't exist
            RuntimeError: If there is no presence source, or already started
            Exception: Whatever the presence source raises from subscribe
                (the engine is stopped again first)
        """
        if self._source is None:
            raise RuntimeError("No presence source: pass one or call attach() first")
        if self._unsubscribe is not None:
            raise RuntimeError("DeviceLightsModule already started")

        engine = DebouncedTriggerEngine(
            self._config,
            self._adapter,
            hooks=self._hooks,
            scheduler=self._scheduler,
            executor=self._executor,
            on_execution=self._emit_triggered,
        )
        engine.start()
        self._engine = engine

        try:
            self._unsubscribe = self._source.subscribe(self._config.poll_interval, self._on_presence)
        except Exception:
            engine.stop()
            self._engine = None
            raise
        logger.info(f"Listening for device connections ({self._config.watched_identity})")

    def stop(self) -> None:
        """Stop listening and cancel any pending power-off."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._engine is not None:
            self._engine.stop()

    def _on_presence(self, event: Optional[PresenceEvent], error: Optional[Exception]) -> None:
        """Handle a notification from the presence source."""
        if error is not None or event is None:
            logger.debug(f"Ignoring presence notification: {error}")
            return

        if not self._engine:
            logger.debug("No engine, skipping event")
            return

        result = self._engine.handle_event(event)
        if not result.ignored:
            logger.info(f"Detected device status change: {event.identity} {event.kind.value}")

    def _emit_triggered(self, execution: TriggerExecution) -> None:
        """Emit lightson.triggered event for observability."""
        if not self._bus:
            return

        self._bus.publish(
            Event(
                type=TRIGGERED,
                source=self.id,
                entity_id=execution.identity,
                payload=execution.to_dict(),
                timestamp=execution.timestamp,
            )
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def get_history(self, action: Optional[str] = None, limit: int = 20) -> List[Dict]:
        """
        Get trigger execution history.

        Args:
            action: Filter by "activation" or "deactivation" (optional)
            limit: Maximum entries to return

        Returns:
            List of execution records (newest first)
        """
        if not self._engine:
            return []
        return [h.to_dict() for h in self._engine.get_history(action, limit)]

    # =========================================================================
    # TriggerModule Interface
    # =========================================================================

    def default_config(self) -> Dict:
        """Get default trigger configuration."""
        return {
            "version": self.CURRENT_CONFIG_VERSION,
            "watched_identity": "",
            "scene_name": "",
            "poll_interval": 5.0,
            "debounce_interval": 60.0,
        }

    def config_schema(self) -> Dict:
        """
        Get configuration schema for the trigger.

        Returns a JSON-schema-like structure for UI rendering.
        """
        return {
            "type": "object",
            "properties": {
                "version": {
                    "type": "integer",
                    "title": "Config Version",
                    "readOnly": True,
                },
                "watched_identity": {
                    "type": "string",
                    "title": "Device",
                    "description": "Hardware address of the device that triggers the lights",
                },
                "scene_name": {
                    "type": "string",
                    "title": "Scene",
                    "description": "Scene to recall when the device connects",
                },
                "poll_interval": {
                    "type": "number",
                    "title": "Poll Interval (seconds)",
                    "description": "Time between queries for connected devices",
                    "exclusiveMinimum": 0,
                    "default": 5.0,
                },
                "debounce_interval": {
                    "type": "number",
                    "title": "Debounce Interval (seconds)",
                    "description": (
                        "Time to wait before powering the lights off, and the window "
                        "after a disconnect in which the lights won't turn back on"
                    ),
                    "minimum": 0,
                    "default": 60.0,
                },
            },
            "required": ["watched_identity", "scene_name"],
        }

    def migrate_config(self, config: Dict) -> Dict:
        """Migrate configuration from older versions."""
        version = config.get("version", 1)
        if version >= self.CURRENT_CONFIG_VERSION:
            return config

        # v1 used the router-oriented key names
        for old_key, new_key in _LEGACY_KEYS.items():
            if old_key in config and new_key not in config:
                config[new_key] = config.pop(old_key)

        config["version"] = self.CURRENT_CONFIG_VERSION
        return config

    def dump_state(self) -> Dict:
        """Export runtime state for diagnostics."""
        if not self._engine:
            return {}

        last_disconnect_at = self._engine.last_disconnect_at
        return {
            "version": self.CURRENT_CONFIG_VERSION,
            "watched_identity": self._config.watched_identity,
            "state": self._engine.state.value,
            "last_disconnect_at": last_disconnect_at.isoformat() if last_disconnect_at else None,
            "hooks": len(self._engine.hooks),
        }
