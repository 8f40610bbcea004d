"""
Base class for presence-lights modules.

A module binds one trigger to the event bus: it is attached, started once
its actuator is validated, and stopped before shutdown. Stored configs
carry a version and are upgraded on load.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class TriggerModule(ABC):
    """
    Base class for trigger modules.

    Lifecycle: attach(bus) -> start() -> stop(). start() may be called again
    after stop().
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique identifier, also used as the source of emitted events."""
        pass

    @property
    @abstractmethod
    def CURRENT_CONFIG_VERSION(self) -> int:
        pass

    @abstractmethod
    def attach(self, bus) -> None:
        """Capture the bus and register event subscriptions."""
        pass

    @abstractmethod
    def start(self) -> None:
        """
        Validate the actuator and begin reacting to presence changes.

        Raises:
            RuntimeError: If the module is already started
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop reacting and drop any pending actions."""
        pass

    @abstractmethod
    def default_config(self) -> Dict:
        pass

    @abstractmethod
    def config_schema(self) -> Dict:
        """JSON-schema-like definition for UI configuration."""
        pass

    @abstractmethod
    def migrate_config(self, config: Dict) -> Dict:
        """Upgrade an older config dict in place to CURRENT_CONFIG_VERSION."""
        pass

    def load_config(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Prepare a stored config dict for use.

        Copies the dict and upgrades it with migrate_config().

        Raises:
            ValueError: If the config was written by a newer version
        """
        version = data.get("version", 1)
        if version > self.CURRENT_CONFIG_VERSION:
            raise ValueError(
                f"{self.id} config version {version} is newer than supported "
                f"({self.CURRENT_CONFIG_VERSION})"
            )
        return self.migrate_config(dict(data))

    def dump_state(self) -> Dict:
        """Runtime state for diagnostics (empty when not running)."""
        return {}
