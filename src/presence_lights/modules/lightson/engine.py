"""
Debounced trigger engine - core presence-to-lights logic.

Turns a stream of presence changes for one device into at most one
pending power-off and immediate, gated scene recalls.

State machine (per watched device):

    CONNECTED --disappeared--> PENDING_DEACTIVATION --(debounce elapses)--> DISCONNECTED
        ^                              |                                         |
        +-----------appeared-----------+-----------------appeared----------------+

A quick reconnect cancels the pending power-off, so the lights never go
off. Reappearance recalls the scene only from an all-off baseline, only
after the debounce window since the last disconnect, and only if every
precondition hook passes.
"""

import logging
import threading
from collections import deque
from concurrent.futures import Executor, Future
from datetime import datetime
from functools import partial
from typing import Callable, Deque, Iterable, List, Optional, Union

from presence_lights.core.delay import CancelableDelay, DelayHandle
from presence_lights.core.scheduler import Scheduler

from .adapter import LightingAdapter, Scene
from .hooks import HookChain, ShouldTurnOn
from .models import (
    ActivationOutcome,
    EngineResult,
    PresenceEvent,
    PresenceKind,
    PresenceState,
    SceneNotFoundError,
    TriggerConfig,
    TriggerExecution,
)

logger = logging.getLogger(__name__)

ACTIVATION = "activation"
DEACTIVATION = "deactivation"

POWERED_OFF = "powered_off"
POWER_OFF_FAILED = "power_off_failed"

ExecutionListener = Callable[[TriggerExecution], None]


class DebouncedTriggerEngine:
    """
    Core engine for one device driving one lighting scene.

    Responsibilities:
    - Filter presence events down to the watched device
    - Arm (and re-arm) the debounced power-off on disconnect
    - Cancel the pending power-off on reconnect
    - Run gated activation attempts
    - Track execution history

    All EngineState mutation happens under a single lock inside
    handle_event(). Actuator calls and hooks run outside it.
    """

    HISTORY_SIZE = 100  # Number of executions to keep in history

    def __init__(
        self,
        config: TriggerConfig,
        adapter: LightingAdapter,
        hooks: Optional[Union[HookChain, Iterable[ShouldTurnOn]]] = None,
        scheduler: Optional[Scheduler] = None,
        executor: Optional[Executor] = None,
        on_execution: Optional[ExecutionListener] = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            config: Trigger configuration
            adapter: Lighting adapter for queries and commands
            hooks: Precondition hooks (HookChain or iterable of callables)
            scheduler: Clock and timer source (default: ThreadingScheduler)
            executor: Where to run activation attempts (None = inline, after
                the state update)
            on_execution: Called with every history record as it is written
        """
        self._config = config
        self._adapter = adapter
        self._hooks = hooks if isinstance(hooks, HookChain) else HookChain(hooks)
        self._delay = CancelableDelay(scheduler)
        self._scheduler = self._delay.scheduler
        self._executor = executor
        self._on_execution = on_execution

        # EngineState, guarded by _lock
        self._lock = threading.Lock()
        self._started = False
        self._stopped = False
        self._connected = True
        self._last_disconnect_at: Optional[datetime] = None
        self._pending: Optional[DelayHandle] = None
        self._disconnects = 0  # Bumped on every disappearance

        # Execution history (ring buffer)
        self._history_lock = threading.Lock()
        self._history: Deque[TriggerExecution] = deque(maxlen=self.HISTORY_SIZE)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def config(self) -> TriggerConfig:
        return self._config

    @property
    def hooks(self) -> HookChain:
        return self._hooks

    def start(self) -> Scene:
        """
        Validate configuration and start accepting events.

        Returns:
            The resolved scene

        Raises:
            SceneNotFoundError: If the configured scene doesn't exist
        """
        scene = self._adapter.get_scene_by_name(self._config.scene_name)
        if scene is None:
            raise SceneNotFoundError(f"Scene '{self._config.scene_name}' not found")

        with self._lock:
            self._connected = True
            self._last_disconnect_at = self._scheduler.now()
            # A restart must not orphan a power-off armed before it
            self._cancel_pending_locked()
            self._started = True
            self._stopped = False

        logger.info(
            f"Trigger started for {self._config.watched_identity} "
            f"(scene={scene.name}, debounce={self._config.debounce_interval}s)"
        )
        return scene

    def stop(self) -> None:
        """Cancel any pending power-off and ignore further events."""
        with self._lock:
            self._cancel_pending_locked()
            self._stopped = True
        logger.info(f"Trigger stopped for {self._config.watched_identity}")

    # =========================================================================
    # Event Processing
    # =========================================================================

    def handle_event(self, event: PresenceEvent) -> EngineResult:
        """
        Process a presence change.

        Args:
            event: The presence event

        Returns:
            Summary of what the event caused

        Raises:
            RuntimeError: If the engine has not been started
        """
        if not self._started:
            raise RuntimeError("Engine not started")

        if event.identity != self._config.watched_identity:
            return EngineResult(ignored=True)

        if event.kind is PresenceKind.DISAPPEARED:
            return self._on_disappeared(event)
        return self._on_appeared(event)

    def _on_disappeared(self, event: PresenceEvent) -> EngineResult:
        with self._lock:
            if self._stopped:
                return EngineResult(ignored=True)

            # Re-disappearance restarts the clock
            canceled = self._cancel_pending_locked()

            disconnected_at = self._scheduler.now()
            self._last_disconnect_at = disconnected_at
            self._disconnects += 1
            self._connected = False
            self._pending = self._delay.arm(
                self._config.debounce_interval,
                partial(self._deactivate, event.identity, disconnected_at),
                name=f"power-off for {event.identity}",
            )

        logger.info(
            f"Device {event.identity} disconnected, powering off in "
            f"{self._config.debounce_interval}s unless it reconnects"
        )
        return EngineResult(deactivation_armed=True, deactivation_canceled=canceled)

    def _on_appeared(self, event: PresenceEvent) -> EngineResult:
        with self._lock:
            if self._stopped:
                return EngineResult(ignored=True)

            canceled = self._cancel_pending_locked()
            last_disconnect_at = self._last_disconnect_at
            disconnects = self._disconnects
            self._connected = True

        if canceled:
            logger.info(f"Device {event.identity} reconnected, power-off canceled")
        else:
            logger.info(f"Device {event.identity} connected")

        if self._executor is not None:
            self._submit_activation(event.identity, last_disconnect_at, disconnects)
            return EngineResult(deactivation_canceled=canceled)

        outcome = self._attempt_activation(event.identity, last_disconnect_at)
        return EngineResult(deactivation_canceled=canceled, activation_outcome=outcome)

    def _submit_activation(
        self,
        identity: str,
        last_disconnect_at: Optional[datetime],
        disconnects: int,
    ) -> None:
        """
        Hand the activation attempt to the executor.

        The pending power-off has already been canceled, so a rejected
        submit (e.g. executor shut down) only loses the recall. Queued
        attempts run in submission order relative to each other but not to
        later events: one that starts after the device left again is
        recorded as SUPERSEDED instead of recalling the scene.
        """
        try:
            future = self._executor.submit(
                self._run_queued_activation, identity, last_disconnect_at, disconnects
            )
        except RuntimeError as e:
            logger.error(f"Could not schedule activation for {identity}: {e}")
            return
        future.add_done_callback(partial(self._on_activation_done, identity))

    def _run_queued_activation(
        self,
        identity: str,
        last_disconnect_at: Optional[datetime],
        disconnects: int,
    ) -> ActivationOutcome:
        with self._lock:
            current = disconnects == self._disconnects and not self._stopped

        if not current:
            logger.debug(f"Activation for {identity} superseded (device left again or engine stopped)")
            outcome = ActivationOutcome.SUPERSEDED
            self._record(ACTIVATION, identity, outcome.value, last_disconnect_at, None)
            return outcome

        return self._attempt_activation(identity, last_disconnect_at)

    def _on_activation_done(self, identity: str, future: Future) -> None:
        if future.cancelled():
            logger.warning(f"Activation for {identity} was cancelled before it ran")
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Error in activation for {identity}: {error}", exc_info=error)

    def _cancel_pending_locked(self) -> bool:
        """Cancel the pending power-off. Caller holds _lock."""
        pending, self._pending = self._pending, None
        if pending is None:
            return False
        return pending.cancel()

    # =========================================================================
    # Actions
    # =========================================================================

    def _deactivate(self, identity: str, disconnected_at: datetime) -> None:
        """Power-off action, runs on the scheduler's timer context."""
        logger.info(
            f"Device {identity} still away since {disconnected_at.isoformat()}, "
            f"powering lights off"
        )
        outcome = POWERED_OFF
        error = None
        try:
            self._adapter.set_all_power(False)
        except Exception as e:
            outcome = POWER_OFF_FAILED
            error = str(e)
            logger.error(f"Error powering lights off: {e}", exc_info=True)

        self._record(DEACTIVATION, identity, outcome, disconnected_at, error)

    def _attempt_activation(
        self,
        identity: str,
        last_disconnect_at: Optional[datetime],
    ) -> ActivationOutcome:
        """
        Recall the scene if every gate passes.

        Gates, in order: debounce window, all lights off, hooks.
        """
        outcome, error = self._evaluate_activation(last_disconnect_at)

        if outcome is ActivationOutcome.RECALLED:
            try:
                self._adapter.recall_scene(self._config.scene_name)
                logger.info(f"Recalled scene {self._config.scene_name}")
            except Exception as e:
                outcome = ActivationOutcome.RECALL_FAILED
                error = str(e)
                logger.error(f"Error recalling scene {self._config.scene_name}: {e}", exc_info=True)
        else:
            logger.debug(f"Activation skipped for {identity}: {outcome.value}")

        self._record(ACTIVATION, identity, outcome.value, last_disconnect_at, error)
        return outcome

    def _evaluate_activation(
        self,
        last_disconnect_at: Optional[datetime],
    ) -> tuple[ActivationOutcome, Optional[str]]:
        # Stale or duplicate reconnect inside the debounce window
        if last_disconnect_at is not None:
            elapsed = (self._scheduler.now() - last_disconnect_at).total_seconds()
            if elapsed < self._config.debounce_interval:
                return ActivationOutcome.DEBOUNCED, None

        try:
            lights = self._adapter.get_all_lights()
        except Exception as e:
            logger.warning(f"Could not read light states, skipping activation: {e}")
            return ActivationOutcome.QUERY_FAILED, str(e)

        # Only recall from an all-off baseline
        if any(light.on for light in lights):
            return ActivationOutcome.LIGHTS_ON, None

        if not self._hooks.evaluate():
            return ActivationOutcome.HOOK_REJECTED, None

        return ActivationOutcome.RECALLED, None

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def state(self) -> PresenceState:
        """Current presence state of the watched device."""
        with self._lock:
            if self._connected:
                return PresenceState.CONNECTED
            if self._pending is not None and self._pending.pending:
                return PresenceState.PENDING_DEACTIVATION
            return PresenceState.DISCONNECTED

    @property
    def has_pending_deactivation(self) -> bool:
        return self.state is PresenceState.PENDING_DEACTIVATION

    @property
    def last_disconnect_at(self) -> Optional[datetime]:
        with self._lock:
            return self._last_disconnect_at

    # =========================================================================
    # History
    # =========================================================================

    def _record(
        self,
        action: str,
        identity: str,
        outcome: str,
        last_disconnect_at: Optional[datetime],
        error: Optional[str],
    ) -> None:
        """Record an execution in history and notify the listener."""
        execution = TriggerExecution(
            action=action,
            identity=identity,
            outcome=outcome,
            timestamp=self._scheduler.now(),
            last_disconnect_at=last_disconnect_at,
            error=error,
        )
        with self._history_lock:
            self._history.append(execution)

        if self._on_execution is not None:
            try:
                self._on_execution(execution)
            except Exception as e:
                logger.error(f"Error in execution listener: {e}", exc_info=True)

    def get_history(self, action: Optional[str] = None, limit: int = 20) -> List[TriggerExecution]:
        """
        Get execution history.

        Args:
            action: Filter by "activation" or "deactivation" (optional)
            limit: Maximum entries to return

        Returns:
            List of TriggerExecution records (newest first)
        """
        with self._history_lock:
            snapshot = list(self._history)

        result = []
        for execution in reversed(snapshot):
            if action and execution.action != action:
                continue
            result.append(execution)
            if len(result) >= limit:
                break
        return result
