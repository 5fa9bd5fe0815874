"""
Faith Token economy: double points and freeze time power-ups.
"""
import asyncio
import logging
import time
from typing import Any, Callable, Optional

from .models import PowerUpState
from .errors import InsufficientTokens, InvalidState

logger = logging.getLogger(__name__)

DEFAULT_FREEZE_MS = 5000

Scheduler = Callable[[float, Callable[[], None]], Any]


def call_later(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    """Schedule a callback on the running event loop."""
    return asyncio.get_running_loop().call_later(delay, callback)


class PowerUpEconomy:
    """Tracks Faith Tokens and the one-shot power-up flags."""

    def __init__(self, scheduler: Optional[Scheduler] = None):
        """
        Args:
            scheduler: ``scheduler(delay_seconds, callback)`` used to end a freeze;
                returns a handle with ``cancel()``. Defaults to the running loop.
        """
        self._scheduler = scheduler or call_later
        self._state = PowerUpState()
        self._freeze_handle: Any = None
        self._resume_fn: Optional[Callable[[], None]] = None
        self.tokens_earned = 0
        self.power_ups_used = 0

    @property
    def state(self) -> PowerUpState:
        return PowerUpState(
            self._state.token_balance,
            self._state.double_points_active,
            self._state.freeze_active
        )

    @property
    def token_balance(self) -> int:
        return self._state.token_balance

    @property
    def double_points_active(self) -> bool:
        return self._state.double_points_active

    @property
    def freeze_active(self) -> bool:
        return self._state.freeze_active

    def reset(self) -> None:
        """Clear balance and flags, dropping any pending freeze resume."""
        self.cancel_freeze()
        self._state = PowerUpState()
        self.tokens_earned = 0
        self.power_ups_used = 0

    def earn_token(self) -> int:
        self._state.token_balance += 1
        self.tokens_earned += 1
        logger.info(
            f"Faith Token earned, balance {self._state.token_balance}",
            extra={
                'event_type': 'token_earned',
                'balance': self._state.token_balance,
                'timestamp': time.time()
            }
        )
        return self._state.token_balance

    def _check(self, power_up: str, already_active: bool) -> None:
        if self._state.token_balance < 1:
            raise InsufficientTokens(f"No Faith Tokens available for {power_up}")
        if already_active:
            raise InvalidState(f"{power_up} is already active")

    def _spend(self, power_up: str, already_active: bool) -> None:
        self._check(power_up, already_active)
        self._state.token_balance -= 1
        self.power_ups_used += 1

    def can_activate_double_points(self) -> bool:
        return self._state.token_balance >= 1 and not self._state.double_points_active

    def can_activate_freeze(self) -> bool:
        return self._state.token_balance >= 1 and not self._state.freeze_active

    def activate_double_points(self) -> None:
        """
        Spend a token to double the next scored answer.

        Raises:
            InsufficientTokens: If the balance is empty
            InvalidState: If double points is already active
        """
        self._spend("double points", self._state.double_points_active)
        self._state.double_points_active = True
        logger.info("Double points activated", extra={'event_type': 'double_points_activated', 'timestamp': time.time()})

    def consume_double_points(self) -> int:
        """Return the scoring multiplier and clear the flag."""
        multiplier = 2 if self._state.double_points_active else 1
        self._state.double_points_active = False
        return multiplier

    def activate_freeze(
        self,
        pause_fn: Callable[[], None],
        resume_fn: Callable[[], None],
        duration_ms: int = DEFAULT_FREEZE_MS
    ) -> None:
        """
        Spend a token to pause the active timer for ``duration_ms``.

        Raises:
            InsufficientTokens: If the balance is empty
            InvalidState: If a freeze is already in flight

        Nothing is spent or paused if the scheduler raises.
        """
        self._check("freeze time", self._state.freeze_active)
        handle = self._scheduler(duration_ms / 1000, self._end_freeze)
        self._spend("freeze time", False)
        self._state.freeze_active = True
        self._resume_fn = resume_fn
        self._freeze_handle = handle
        pause_fn()
        logger.info(
            f"Freeze activated for {duration_ms}ms",
            extra={
                'event_type': 'freeze_activated',
                'duration_ms': duration_ms,
                'timestamp': time.time()
            }
        )

    def _end_freeze(self) -> None:
        resume_fn = self._resume_fn
        self._freeze_handle = None
        self._resume_fn = None
        self._state.freeze_active = False
        if resume_fn is not None:
            resume_fn()
        logger.info("Freeze ended", extra={'event_type': 'freeze_ended', 'timestamp': time.time()})

    def cancel_freeze(self) -> None:
        """Drop a pending freeze without resuming the timer."""
        if self._freeze_handle is not None and hasattr(self._freeze_handle, "cancel"):
            self._freeze_handle.cancel()
        self._freeze_handle = None
        self._resume_fn = None
        self._state.freeze_active = False
