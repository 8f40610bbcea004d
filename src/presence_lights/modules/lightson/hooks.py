"""
Precondition hooks for the device lights trigger.

A hook is a zero-argument callable returning True when the lights may be
turned on. Hooks are queries: they may read external state but must not
command anything, and must return promptly (the engine does not time
them out).
"""

import logging
from datetime import datetime, time, UTC
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, List, Optional

if TYPE_CHECKING:
    from .adapter import LightingAdapter

logger = logging.getLogger(__name__)

ShouldTurnOn = Callable[[], bool]
Clock = Callable[[], datetime]

DAY_NAMES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class HookChain:
    """
    Ordered set of ShouldTurnOn hooks (AND logic).

    Evaluation short-circuits on the first hook returning False. An empty
    chain evaluates to True. A hook that raises counts as False.
    """

    def __init__(self, hooks: Optional[Iterable[ShouldTurnOn]] = None) -> None:
        self._hooks: List[ShouldTurnOn] = list(hooks or [])

    def add(self, hook: ShouldTurnOn) -> None:
        """Append a hook to the end of the chain."""
        self._hooks.append(hook)

    def evaluate(self) -> bool:
        """
        Evaluate all hooks in order.

        Returns:
            True if ALL hooks pass
        """
        for hook in self._hooks:
            try:
                passed = bool(hook())
            except Exception as e:
                logger.warning(f"Hook {_hook_name(hook)} failed, treating as False: {e}")
                return False

            if not passed:
                logger.debug(f"Hook rejected activation: {_hook_name(hook)}")
                return False
        return True

    def __len__(self) -> int:
        return len(self._hooks)

    def __iter__(self) -> Iterator[ShouldTurnOn]:
        return iter(self._hooks)


def _hook_name(hook: ShouldTurnOn) -> str:
    return getattr(hook, "__name__", repr(hook))


# =============================================================================
# Built-in Hooks
# =============================================================================


def time_of_day_hook(
    after: Optional[str] = None,
    before: Optional[str] = None,
    clock: Clock = _utc_now,
) -> ShouldTurnOn:
    """
    Only allow activation inside a time window.

    Args:
        after: Window start, "HH:MM" or "HH:MM:SS" (None = no lower bound)
        before: Window end, "HH:MM" or "HH:MM:SS" (None = no upper bound)
        clock: Returns the current datetime (in the timezone the window is in)

    Returns:
        ShouldTurnOn hook

    Example:
        # Only bring the lights up in the evening and at night
        hook = time_of_day_hook(after="17:00", before="02:00")
    """
    after_time = time.fromisoformat(after.strip()) if after else None
    before_time = time.fromisoformat(before.strip()) if before else None

    def within_time_window() -> bool:
        current_time = clock().time()

        if after_time and before_time:
            if after_time <= before_time:
                return after_time <= current_time <= before_time
            # Spans midnight (e.g., 22:00 to 06:00)
            return current_time >= after_time or current_time <= before_time
        elif after_time:
            return current_time >= after_time
        elif before_time:
            return current_time <= before_time

        return True  # No constraints

    return within_time_window


def day_of_week_hook(days: Iterable[str], clock: Clock = _utc_now) -> ShouldTurnOn:
    """
    Only allow activation on certain days.

    Args:
        days: Day names, e.g. {"mon", "tue", "wed", "thu", "fri"}
        clock: Returns the current datetime

    Returns:
        ShouldTurnOn hook

    Raises:
        ValueError: If a day name is not recognised
    """
    allowed = frozenset(d.strip().lower()[:3] for d in days)
    unknown = allowed - set(DAY_NAMES)
    if unknown:
        raise ValueError(f"Unknown day names: {sorted(unknown)}")

    def on_allowed_day() -> bool:
        return DAY_NAMES[clock().weekday()] in allowed

    return on_allowed_day


def entity_state_hook(
    adapter: "LightingAdapter",
    entity_id: str,
    state: str,
) -> ShouldTurnOn:
    """
    Only allow activation while an auxiliary entity is in a given state.

    Args:
        adapter: Lighting adapter exposing get_state()
        entity_id: Entity to check (e.g., "input_boolean.auto_lights")
        state: Required state value

    Returns:
        ShouldTurnOn hook (False if the entity doesn't exist)
    """

    def entity_in_state() -> bool:
        actual = adapter.get_state(entity_id)
        if actual is None:
            logger.warning(f"Entity not found: {entity_id}")
            return False
        return actual == state

    return entity_in_state
