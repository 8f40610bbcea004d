"""Tests for trigger data models."""

from datetime import datetime, UTC

import pytest

from presence_lights.modules.lightson import (
    PresenceEvent,
    PresenceKind,
    TriggerConfig,
    TriggerExecution,
    normalize_identity,
)

MAC = "aa:bb:cc:00:11:22"
NOW = datetime(2025, 1, 15, 20, 0, 0, tzinfo=UTC)


class TestNormalizeIdentity:
    """Tests for identity normalization."""

    def test_case_and_separator(self):
        assert normalize_identity(" AA-BB-CC-00-11-22 ") == MAC

    def test_opaque_keys_pass_through(self):
        assert normalize_identity("phone") == "phone"


class TestPresenceEvent:
    """Tests for PresenceEvent."""

    def test_constructors(self):
        """Convenience constructors set the kind."""
        assert PresenceEvent.appeared(MAC, NOW).kind is PresenceKind.APPEARED
        assert PresenceEvent.disappeared(MAC, NOW).kind is PresenceKind.DISAPPEARED

    def test_identity_normalized(self):
        """Identity is normalized on construction."""
        assert PresenceEvent.appeared("AA:BB:CC:00:11:22", NOW).identity == MAC

    def test_immutable(self):
        """Events are frozen."""
        event = PresenceEvent.appeared(MAC, NOW)
        with pytest.raises(AttributeError):
            event.kind = PresenceKind.DISAPPEARED

    def test_from_payload(self):
        """Parse a bus payload."""
        event = PresenceEvent.from_payload({"identity": MAC, "change": "disappeared"}, NOW)

        assert event.identity == MAC
        assert event.kind is PresenceKind.DISAPPEARED
        assert event.observed_at == NOW

    def test_from_payload_router_names(self):
        """Router-style added/removed changes are understood."""
        assert PresenceEvent.from_payload({"identity": MAC, "change": "added"}).kind is (
            PresenceKind.APPEARED
        )
        assert PresenceEvent.from_payload({"identity": MAC, "change": "REMOVED"}).kind is (
            PresenceKind.DISAPPEARED
        )

    def test_from_payload_timestamp(self):
        """An ISO timestamp in the payload wins."""
        event = PresenceEvent.from_payload(
            {"identity": MAC, "change": "appeared", "observed_at": "2025-01-15T08:00:00+00:00"},
            NOW,
        )
        assert event.observed_at == datetime(2025, 1, 15, 8, 0, 0, tzinfo=UTC)

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"change": "appeared"},
            {"identity": "", "change": "appeared"},
            {"identity": MAC},
            {"identity": MAC, "change": "exploded"},
        ],
    )
    def test_from_payload_malformed(self, payload):
        """Malformed payloads raise ValueError."""
        with pytest.raises(ValueError):
            PresenceEvent.from_payload(payload)


class TestTriggerConfig:
    """Tests for TriggerConfig."""

    def test_defaults(self):
        config = TriggerConfig(watched_identity=MAC, scene_name="Evening")
        assert config.poll_interval == 5.0
        assert config.debounce_interval == 60.0

    def test_identity_normalized(self):
        config = TriggerConfig(watched_identity="AA-BB-CC-00-11-22", scene_name="Evening")
        assert config.watched_identity == MAC

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"watched_identity": "", "scene_name": "Evening"},
            {"watched_identity": MAC, "scene_name": "  "},
            {"watched_identity": MAC, "scene_name": "Evening", "poll_interval": 0},
            {"watched_identity": MAC, "scene_name": "Evening", "debounce_interval": -1},
        ],
    )
    def test_validation(self, kwargs):
        """Invalid configs are rejected at construction."""
        with pytest.raises(ValueError):
            TriggerConfig(**kwargs)

    def test_dict_round_trip(self):
        config = TriggerConfig(MAC, "Evening", poll_interval=10, debounce_interval=300)
        assert TriggerConfig.from_dict(config.to_dict()) == config

    def test_from_dict_missing_key(self):
        with pytest.raises(ValueError, match="scene_name"):
            TriggerConfig.from_dict({"watched_identity": MAC})


def test_execution_to_dict():
    """History records serialize timestamps as ISO strings."""
    record = TriggerExecution(
        action="deactivation",
        identity=MAC,
        outcome="powered_off",
        timestamp=NOW,
        last_disconnect_at=NOW,
    )
    data = record.to_dict()

    assert data["timestamp"] == NOW.isoformat()
    assert data["last_disconnect_at"] == NOW.isoformat()
    assert data["error"] is None
