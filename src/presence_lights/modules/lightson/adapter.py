"""
Lighting adapter interface for the device lights trigger.

The adapter is the narrow contract between the trigger engine and the
lighting bridge that actually owns the lights and scenes. The host
provides a concrete implementation (e.g., a Hue bridge client).

Design Principle:
    The adapter is intentionally minimal. Scene storage, scene recall
    logic and light enumeration belong to the bridge; the engine only
    queries power state, looks up scenes by name, and issues commands.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class LightState:
    """Snapshot of a single light."""

    id: str
    name: str = ""
    on: bool = False


@dataclass(frozen=True)
class Scene:
    """A named scene known to the bridge."""

    id: str
    name: str
    light_ids: tuple[str, ...] = field(default_factory=tuple)


class LightingAdapter(ABC):
    """
    Abstract interface for lighting bridge operations.

    This interface is intentionally minimal:
    - get_scene_by_name: Validate the configured scene at startup
    - get_all_lights: Check whether any light is on
    - set_all_power: Power every light on or off
    - recall_scene: Activate a scene by name
    """

    @abstractmethod
    def get_scene_by_name(self, name: str) -> Optional[Scene]:
        """
        Look up a scene by its name.

        Args:
            name: Scene name

        Returns:
            The scene, or None if no scene has that name
        """
        pass

    @abstractmethod
    def get_all_lights(self) -> List[LightState]:
        """
        Get the current state of every light.

        Returns:
            List of light states

        Raises:
            Exception: Any bridge/transport error
        """
        pass

    @abstractmethod
    def set_all_power(self, on: bool) -> None:
        """
        Power every light on or off.

        Args:
            on: True to power on, False to power off
        """
        pass

    @abstractmethod
    def recall_scene(self, name: str) -> None:
        """
        Recall a scene by name.

        Args:
            name: Scene name
        """
        pass

    def get_state(self, entity_id: str) -> Optional[str]:
        """
        Get the state of an auxiliary entity (sensor, switch, flag).

        Used by entity_state_hook. Adapters without auxiliary entities
        keep the default.

        Args:
            entity_id: Entity to query

        Returns:
            Current state string, or None if the entity doesn't exist
        """
        return None


class MockLightingAdapter(LightingAdapter):
    """
    Mock adapter for testing.

    Tracks commands and allows setting lights, scenes, and failures.

    Example:
        adapter = MockLightingAdapter(scenes=["Evening"])
        adapter.set_lights([LightState("1", on=False)])
        ...
        assert adapter.get_recalled_scenes() == ["Evening"]
    """

    def __init__(self, scenes: Optional[List[str]] = None) -> None:
        self._scenes: Dict[str, Scene] = {}
        self._lights: List[LightState] = []
        self._states: Dict[str, str] = {}
        self._power_calls: List[bool] = []
        self._recalled: List[str] = []
        self._query_error: Optional[Exception] = None
        self._command_error: Optional[Exception] = None
        self.query_count = 0

        for name in scenes or []:
            self.add_scene(name)

    def add_scene(self, name: str, light_ids: tuple[str, ...] = ()) -> Scene:
        """Register a scene for testing."""
        scene = Scene(id=f"scene-{len(self._scenes) + 1}", name=name, light_ids=light_ids)
        self._scenes[name] = scene
        return scene

    def set_lights(self, lights: List[LightState]) -> None:
        """Set light states for testing."""
        self._lights = list(lights)

    def set_state(self, entity_id: str, state: str) -> None:
        """Set auxiliary entity state for testing."""
        self._states[entity_id] = state

    def fail_queries(self, error: Optional[Exception]) -> None:
        """Make get_all_lights raise (None to stop failing)."""
        self._query_error = error

    def fail_commands(self, error: Optional[Exception]) -> None:
        """Make set_all_power and recall_scene raise (None to stop failing)."""
        self._command_error = error

    def get_power_calls(self) -> List[bool]:
        """Get recorded set_all_power calls."""
        return self._power_calls.copy()

    def get_recalled_scenes(self) -> List[str]:
        """Get recorded recall_scene calls."""
        return self._recalled.copy()

    def clear_calls(self) -> None:
        """Clear recorded commands."""
        self._power_calls.clear()
        self._recalled.clear()

    # LightingAdapter implementation

    def get_scene_by_name(self, name: str) -> Optional[Scene]:
        return self._scenes.get(name)

    def get_all_lights(self) -> List[LightState]:
        self.query_count += 1
        if self._query_error:
            raise self._query_error
        return list(self._lights)

    def set_all_power(self, on: bool) -> None:
        self._power_calls.append(on)
        if self._command_error:
            raise self._command_error
        self._lights = [LightState(light.id, light.name, on) for light in self._lights]

    def recall_scene(self, name: str) -> None:
        self._recalled.append(name)
        if self._command_error:
            raise self._command_error
        scene = self._scenes.get(name)
        if scene and scene.light_ids:
            self._lights = [
                LightState(light.id, light.name, light.on or light.id in scene.light_ids)
                for light in self._lights
            ]

    def get_state(self, entity_id: str) -> Optional[str]:
        return self._states.get(entity_id)
