"""
Tests for DeviceLightsModule.

Tests the module's integration with the EventBus and presence sources.
"""

import pytest

from presence_lights.core import Event, EventBus, EventFilter, ManualScheduler
from presence_lights.modules.lightson import (
    PRESENCE_CHANGED,
    DeviceLightsModule,
    LightState,
    MockLightingAdapter,
    MockPresenceSource,
    PresenceEvent,
    PresenceState,
    SceneNotFoundError,
    TriggerConfig,
)

MAC = "aa:bb:cc:00:11:22"


@pytest.fixture
def bus():
    """Create an event bus."""
    return EventBus()


@pytest.fixture
def scheduler():
    """Create a manual scheduler."""
    return ManualScheduler()


@pytest.fixture
def adapter():
    """Create a mock lighting adapter with one light off."""
    adapter = MockLightingAdapter(scenes=["Evening"])
    adapter.set_lights([LightState("1", "Desk")])
    return adapter


@pytest.fixture
def config():
    return TriggerConfig(watched_identity=MAC, scene_name="Evening", debounce_interval=5)


@pytest.fixture
def module(bus, adapter, config, scheduler):
    """Create a started module fed by the bus."""
    module = DeviceLightsModule(config, adapter, scheduler=scheduler)
    module.attach(bus)
    module.start()
    scheduler.advance(10)
    return module


def publish_presence(bus, change, identity=MAC):
    bus.publish(
        Event(
            type=PRESENCE_CHANGED,
            source="router",
            entity_id=identity,
            payload={"change": change},
        )
    )


class TestBusSource:
    """Tests for presence events arriving on the bus."""

    def test_disappear_then_power_off(self, module, bus, adapter, scheduler):
        """A removed device powers the lights off after the debounce."""
        publish_presence(bus, "removed")
        assert module.engine.state is PresenceState.PENDING_DEACTIVATION

        scheduler.advance(5)
        assert adapter.get_power_calls() == [False]

    def test_quick_reconnect(self, module, bus, adapter, scheduler):
        """A quick reconnect keeps the lights on."""
        publish_presence(bus, "removed")
        scheduler.advance(2)
        publish_presence(bus, "added")
        scheduler.advance(100)

        assert adapter.get_power_calls() == []
        assert adapter.get_recalled_scenes() == []

    def test_arrival_recalls_scene(self, module, bus, adapter):
        """Arriving with the lights off recalls the scene."""
        publish_presence(bus, "appeared")

        assert adapter.get_recalled_scenes() == ["Evening"]

    def test_identity_in_payload(self, module, bus, adapter):
        """The identity may come in the payload instead of entity_id."""
        bus.publish(
            Event(
                type=PRESENCE_CHANGED,
                source="router",
                payload={"identity": "AA:BB:CC:00:11:22", "change": "appeared"},
            )
        )

        assert adapter.get_recalled_scenes() == ["Evening"]

    def test_other_device_ignored(self, module, bus, adapter, scheduler):
        """Other devices don't affect the lights."""
        publish_presence(bus, "removed", identity="de:ad:be:ef:00:01")
        scheduler.advance(100)

        assert adapter.get_power_calls() == []

    def test_malformed_event_ignored(self, module, bus, adapter):
        """Malformed payloads are dropped."""
        publish_presence(bus, "exploded")
        bus.publish(Event(type=PRESENCE_CHANGED, source="router", payload={}))

        assert module.engine.state is PresenceState.CONNECTED
        assert adapter.get_recalled_scenes() == []

    def test_emits_triggered_events(self, module, bus, scheduler):
        """Activations and deactivations are published for observability."""
        received = []
        bus.subscribe(received.append, EventFilter(event_type="lightson.triggered"))

        publish_presence(bus, "appeared")
        publish_presence(bus, "removed")
        scheduler.advance(5)

        assert [e.payload["outcome"] for e in received] == ["recalled", "powered_off"]
        assert received[0].source == "lightson"
        assert received[0].entity_id == MAC


class TestLifecycle:
    """Tests for start/stop."""

    def test_unknown_scene_fails_start(self, bus, adapter):
        """Start raises when the scene doesn't exist."""
        module = DeviceLightsModule(TriggerConfig(MAC, "Missing"), adapter)
        module.attach(bus)

        with pytest.raises(SceneNotFoundError):
            module.start()

    def test_start_without_source(self, adapter, config):
        """Start needs a source or a bus."""
        module = DeviceLightsModule(config, adapter)

        with pytest.raises(RuntimeError):
            module.start()

    def test_start_twice(self, module):
        """Starting twice is an error."""
        with pytest.raises(RuntimeError):
            module.start()

    def test_stop_unsubscribes(self, module, bus, adapter, scheduler):
        """After stop, presence events are ignored and the power-off is dropped."""
        publish_presence(bus, "removed")
        module.stop()
        scheduler.advance(100)
        publish_presence(bus, "appeared")

        assert adapter.get_power_calls() == []
        assert adapter.get_recalled_scenes() == []

    def test_restart_after_stop(self, module, bus, adapter, scheduler):
        """A stopped module can be started again."""
        module.stop()
        module.start()
        scheduler.advance(10)
        publish_presence(bus, "appeared")

        assert adapter.get_recalled_scenes() == ["Evening"]


class TestCustomSource:
    """Tests with an explicit presence source."""

    def test_mock_source(self, adapter, config, scheduler):
        """Events from a custom source drive the engine."""
        source = MockPresenceSource()
        module = DeviceLightsModule(config, adapter, source=source, scheduler=scheduler)
        module.start()
        scheduler.advance(10)

        assert source.poll_intervals == [5.0]

        source.emit(PresenceEvent.appeared(MAC, scheduler.now()))
        assert adapter.get_recalled_scenes() == ["Evening"]

    def test_source_errors_ignored(self, adapter, config, scheduler):
        """Errors from the source are dropped."""
        source = MockPresenceSource()
        module = DeviceLightsModule(config, adapter, source=source, scheduler=scheduler)
        module.start()

        source.emit_error(ConnectionError("router offline"))

        assert module.engine.state is PresenceState.CONNECTED
        assert module.get_history() == []

    def test_failed_subscribe_leaves_no_engine(self, adapter, config, scheduler):
        """If subscribing fails, the engine is stopped and start can be retried."""
        source = MockPresenceSource()
        source.fail_subscribe(ConnectionError("router unreachable"))
        module = DeviceLightsModule(config, adapter, source=source, scheduler=scheduler)

        with pytest.raises(ConnectionError):
            module.start()
        assert module.engine is None

        source.fail_subscribe(None)
        module.start()
        scheduler.advance(10)
        source.emit(PresenceEvent.disappeared(MAC, scheduler.now()))
        source.emit(PresenceEvent.appeared(MAC, scheduler.now()))
        scheduler.advance(100)

        assert source.subscriber_count == 1
        assert scheduler.pending_count == 0
        assert adapter.get_power_calls() == []

    def test_stop_unsubscribes_source(self, adapter, config, scheduler):
        """Stop detaches from the source."""
        source = MockPresenceSource()
        module = DeviceLightsModule(config, adapter, source=source, scheduler=scheduler)
        module.start()
        assert source.subscriber_count == 1

        module.stop()
        assert source.subscriber_count == 0


class TestHooks:
    """Tests for hooks configured on the module."""

    def test_hook_blocks_recall(self, bus, adapter, config, scheduler):
        module = DeviceLightsModule(config, adapter, hooks=[lambda: False], scheduler=scheduler)
        module.attach(bus)
        module.start()
        scheduler.advance(10)

        publish_presence(bus, "appeared")
        assert adapter.get_recalled_scenes() == []

    def test_add_hook_after_start(self, module, bus, adapter):
        module.add_hook(lambda: False)

        publish_presence(bus, "appeared")
        assert adapter.get_recalled_scenes() == []


class TestConfig:
    """Tests for configuration handling."""

    def test_dict_config(self, adapter):
        module = DeviceLightsModule(
            {"watched_identity": MAC, "scene_name": "Evening", "debounce_interval": 120},
            adapter,
        )
        assert module.config.debounce_interval == 120.0
        assert module.config.version == 2

    def test_legacy_config_migrated(self, adapter):
        module = DeviceLightsModule(
            {
                "version": 1,
                "trigger_device_mac": "AA-BB-CC-00-11-22",
                "scene_name": "Evening",
                "router_poll_interval": 15,
                "debounce": 30,
            },
            adapter,
        )
        assert module.config.watched_identity == MAC
        assert module.config.poll_interval == 15.0
        assert module.config.debounce_interval == 30.0

    def test_newer_config_rejected(self, adapter):
        with pytest.raises(ValueError, match="newer"):
            DeviceLightsModule(
                {"version": 3, "watched_identity": MAC, "scene_name": "Evening"},
                adapter,
            )

    def test_load_config_copies(self, module):
        stored = {"version": 1, "trigger_device_mac": MAC, "scene_name": "Evening"}
        loaded = module.load_config(stored)

        assert loaded["watched_identity"] == MAC
        assert "trigger_device_mac" in stored

    def test_default_config_matches_schema(self, module):
        defaults = module.default_config()
        schema = module.config_schema()

        assert defaults["version"] == module.CURRENT_CONFIG_VERSION
        assert set(defaults) <= set(schema["properties"])
        assert schema["required"] == ["watched_identity", "scene_name"]

    def test_dump_state(self, module, bus):
        publish_presence(bus, "removed")
        state = module.dump_state()

        assert state["state"] == "pending_deactivation"
        assert state["watched_identity"] == MAC
        assert state["last_disconnect_at"] is not None

    def test_history_dicts(self, module, bus):
        publish_presence(bus, "appeared")

        history = module.get_history()
        assert history[0]["action"] == "activation"
        assert history[0]["outcome"] == "recalled"
