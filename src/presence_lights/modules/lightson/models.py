"""
Data models for the device lights trigger.

Defines presence events, trigger configuration, and execution records.
"""

from dataclasses import dataclass
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, Optional


class SceneNotFoundError(ValueError):
    """Raised at startup when the configured scene does not exist on the actuator."""


# =============================================================================
# Enums
# =============================================================================


class PresenceKind(Enum):
    """Direction of a presence change."""

    APPEARED = "appeared"  # Device joined the network
    DISAPPEARED = "disappeared"  # Device left the network


# Router clients report "added"/"removed"
_KIND_ALIASES = {
    "appeared": PresenceKind.APPEARED,
    "added": PresenceKind.APPEARED,
    "connected": PresenceKind.APPEARED,
    "disappeared": PresenceKind.DISAPPEARED,
    "removed": PresenceKind.DISAPPEARED,
    "disconnected": PresenceKind.DISAPPEARED,
}


class PresenceState(Enum):
    """Presence of the watched device as seen by the engine."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    PENDING_DEACTIVATION = "pending_deactivation"  # Disconnected, power-off armed


class ActivationOutcome(Enum):
    """Result of a single activation attempt."""

    RECALLED = "recalled"  # Scene recalled
    DEBOUNCED = "debounced"  # Within the debounce window of the last disconnect
    LIGHTS_ON = "lights_on"  # At least one light already on
    HOOK_REJECTED = "hook_rejected"  # A precondition hook returned False
    QUERY_FAILED = "query_failed"  # Could not read light states
    RECALL_FAILED = "recall_failed"  # Scene recall raised
    SUPERSEDED = "superseded"  # Device left again before a queued attempt ran


# =============================================================================
# Presence Events
# =============================================================================


def normalize_identity(identity: str) -> str:
    """
    Normalize a device identity for comparison.

    MAC addresses are compared case-insensitively and with either ':' or '-'
    separators, e.g. "AA-BB-CC-00-11-22" == "aa:bb:cc:00:11:22".
    """
    return identity.strip().lower().replace("-", ":")


@dataclass(frozen=True)
class PresenceEvent:
    """
    A device joined or left the monitored network.

    Attributes:
        identity: Opaque device key (normalized, usually a MAC address)
        kind: Appeared or disappeared
        observed_at: When the change was observed
    """

    identity: str
    kind: PresenceKind
    observed_at: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "identity", normalize_identity(self.identity))

    @classmethod
    def appeared(cls, identity: str, observed_at: Optional[datetime] = None) -> "PresenceEvent":
        return cls(identity, PresenceKind.APPEARED, observed_at or datetime.now(UTC))

    @classmethod
    def disappeared(cls, identity: str, observed_at: Optional[datetime] = None) -> "PresenceEvent":
        return cls(identity, PresenceKind.DISAPPEARED, observed_at or datetime.now(UTC))

    @classmethod
    def from_payload(
        cls,
        payload: Dict[str, Any],
        observed_at: Optional[datetime] = None,
    ) -> "PresenceEvent":
        """
        Parse a presence.changed event payload.

        Args:
            payload: Dict with "identity" and "change" keys
            observed_at: Timestamp to use when the payload has none

        Returns:
            Parsed PresenceEvent

        Raises:
            ValueError: If the payload is malformed
        """
        identity = payload.get("identity")
        if not isinstance(identity, str) or not identity.strip():
            raise ValueError(f"Presence payload missing identity: {payload}")

        change = payload.get("change")
        kind = _KIND_ALIASES.get(str(change).lower()) if change is not None else None
        if kind is None:
            raise ValueError(f"Unknown presence change: {change!r}")

        timestamp = payload.get("observed_at")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        if not isinstance(timestamp, datetime):
            timestamp = observed_at or datetime.now(UTC)

        return cls(identity=identity, kind=kind, observed_at=timestamp)


# =============================================================================
# Trigger Config
# =============================================================================


@dataclass(frozen=True)
class TriggerConfig:
    """
    Configuration for one device driving one lighting scene.

    Attributes:
        watched_identity: Device whose presence triggers the lights
        scene_name: Scene to recall when the device connects
        poll_interval: Seconds between presence polls (passed to the source)
        debounce_interval: Seconds to wait before powering off, and the window
            after a disconnect in which the lights are not turned back on
    """

    watched_identity: str
    scene_name: str
    poll_interval: float = 5.0
    debounce_interval: float = 60.0
    version: int = 2

    def __post_init__(self) -> None:
        if not self.watched_identity or not self.watched_identity.strip():
            raise ValueError("watched_identity is required")
        if not self.scene_name or not self.scene_name.strip():
            raise ValueError("scene_name is required")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {self.poll_interval}")
        if self.debounce_interval < 0:
            raise ValueError(f"debounce_interval must be >= 0, got {self.debounce_interval}")

        object.__setattr__(self, "watched_identity", normalize_identity(self.watched_identity))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for storage/transport."""
        return {
            "version": self.version,
            "watched_identity": self.watched_identity,
            "scene_name": self.scene_name,
            "poll_interval": self.poll_interval,
            "debounce_interval": self.debounce_interval,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TriggerConfig":
        """Deserialize from dict."""
        try:
            return cls(
                watched_identity=data["watched_identity"],
                scene_name=data["scene_name"],
                poll_interval=float(data.get("poll_interval", 5.0)),
                debounce_interval=float(data.get("debounce_interval", 60.0)),
                version=data.get("version", 2),
            )
        except KeyError as e:
            raise ValueError(f"Missing required config key: {e.args[0]}") from e


# =============================================================================
# Execution Records
# =============================================================================


@dataclass
class TriggerExecution:
    """Record of an activation attempt or deactivation (for history/debugging)."""

    action: str  # "activation" or "deactivation"
    identity: str
    outcome: str
    timestamp: datetime
    last_disconnect_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "identity": self.identity,
            "outcome": self.outcome,
            "timestamp": self.timestamp.isoformat(),
            "last_disconnect_at": (
                self.last_disconnect_at.isoformat() if self.last_disconnect_at else None
            ),
            "error": self.error,
        }


@dataclass
class EngineResult:
    """Result of handling one presence event."""

    ignored: bool = False
    deactivation_armed: bool = False
    deactivation_canceled: bool = False
    # None when no attempt was made or it was handed to an executor
    activation_outcome: Optional[ActivationOutcome] = None
