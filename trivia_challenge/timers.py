"""
Countdown timers for trivia questions and time-attack rounds.
Handles the per-question timer, the whole-round timer and pause/resume for freeze.
"""
import asyncio
import logging
import time
from typing import Callable, Optional

from .models import TimerState

# Set up logger for timer operations
logger = logging.getLogger(__name__)

QUESTION_TIME_LIMIT = 20
ROUND_TIME_LIMIT = 180


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_start(timer_name: str, limit: int) -> None:
        logger.info(
            f"Timer lifecycle: START - Timer {timer_name}, Limit {limit}s",
            extra={
                'event_type': 'timer_start',
                'timer': timer_name,
                'limit': limit,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_update(timer_name: str, remaining_time: int, total_duration: int) -> None:
        """Log timer update events (throttled to avoid spam)."""
        if remaining_time % 10 == 0 or remaining_time <= 5:
            progress_percent = ((total_duration - remaining_time) / total_duration) * 100 if total_duration else 100.0
            logger.debug(
                f"Timer lifecycle: UPDATE - Timer {timer_name}, Remaining {remaining_time}s ({progress_percent:.1f}% complete)",
                extra={
                    'event_type': 'timer_update',
                    'timer': timer_name,
                    'remaining_time': remaining_time,
                    'total_duration': total_duration,
                    'progress_percent': progress_percent,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_state_transition(timer_name: str, from_state: TimerState, to_state: TimerState, reason: str = None) -> None:
        logger.info(
            f"Timer lifecycle: STATE_TRANSITION - Timer {timer_name}, {from_state.value} -> {to_state.value}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'timer_state_transition',
                'timer': timer_name,
                'from_state': from_state.value,
                'to_state': to_state.value,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(timer_name: str, error_type: str, error_message: str, operation: str) -> None:
        logger.error(
            f"Timer lifecycle: ERROR - Timer {timer_name}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'timer': timer_name,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )


class CountdownTimer:
    """A single countdown ticking down one second per ``tick()``."""

    def __init__(
        self,
        name: str,
        limit: int,
        on_tick: Optional[Callable[[int], None]] = None,
        on_expire: Optional[Callable[[], None]] = None
    ):
        self.name = name
        self.limit = limit
        self.on_tick = on_tick
        self.on_expire = on_expire
        self._remaining = limit
        self._state = TimerState.STOPPED

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def is_running(self) -> bool:
        return self._state == TimerState.RUNNING

    def _transition(self, to_state: TimerState, reason: str) -> None:
        TimerLifecycleLogger.log_timer_state_transition(self.name, self._state, to_state, reason)
        self._state = to_state

    def start(self, limit: Optional[int] = None) -> None:
        """Reset remaining time to the limit and start running."""
        if limit is not None:
            self.limit = limit
        self._remaining = self.limit
        TimerLifecycleLogger.log_timer_start(self.name, self.limit)
        self._transition(TimerState.RUNNING, "start requested")

    def pause(self) -> bool:
        if self._state != TimerState.RUNNING:
            return False
        self._transition(TimerState.PAUSED, "pause requested")
        return True

    def resume(self) -> bool:
        if self._state != TimerState.PAUSED:
            return False
        self._transition(TimerState.RUNNING, "resume requested")
        return True

    def stop(self) -> None:
        if self._state != TimerState.STOPPED:
            self._transition(TimerState.STOPPED, "stop requested")

    def tick(self) -> bool:
        """
        Advance the countdown by one second.

        Returns:
            True if this tick expired the timer; ticks outside RUNNING are ignored
        """
        if self._state != TimerState.RUNNING:
            return False

        self._remaining = max(0, self._remaining - 1)
        TimerLifecycleLogger.log_timer_update(self.name, self._remaining, self.limit)
        if self.on_tick:
            self.on_tick(self._remaining)

        # on_tick may have stopped the timer
        if self._remaining == 0 and self._state == TimerState.RUNNING:
            self._transition(TimerState.EXPIRED, "countdown reached zero")
            if self.on_expire:
                self.on_expire()
            return True
        return False


class TimerController:
    """
    Owns the per-question and whole-round timers.

    Starting one timer always stops the other, so at most one runs at a time.
    """

    def __init__(
        self,
        question_limit: int = QUESTION_TIME_LIMIT,
        round_limit: int = ROUND_TIME_LIMIT,
        use_round_timer: bool = False
    ):
        self.question_timer = CountdownTimer("per_question", question_limit)
        self.round_timer = CountdownTimer("whole_round", round_limit)
        self.use_round_timer = use_round_timer

    @property
    def active(self) -> CountdownTimer:
        """The timer selected by the session mode."""
        return self.round_timer if self.use_round_timer else self.question_timer

    @property
    def remaining(self) -> int:
        return self.active.remaining

    @property
    def state(self) -> TimerState:
        return self.active.state

    def bind(
        self,
        on_tick: Callable[[str, int], None],
        on_question_expired: Callable[[], None],
        on_round_expired: Callable[[], None]
    ) -> None:
        """Attach session callbacks to both timers."""
        self.question_timer.on_tick = lambda remaining: on_tick(self.question_timer.name, remaining)
        self.round_timer.on_tick = lambda remaining: on_tick(self.round_timer.name, remaining)
        self.question_timer.on_expire = on_question_expired
        self.round_timer.on_expire = on_round_expired

    def start_question_timer(self) -> None:
        self.round_timer.stop()
        self.question_timer.start()

    def start_round_timer(self) -> None:
        self.question_timer.stop()
        self.round_timer.start()

    def start(self) -> None:
        """Start whichever timer the mode selects."""
        if self.use_round_timer:
            self.start_round_timer()
        else:
            self.start_question_timer()

    def pause(self) -> bool:
        return self.active.pause()

    def resume(self) -> bool:
        return self.active.resume()

    def stop(self) -> None:
        self.question_timer.stop()
        self.round_timer.stop()

    def tick(self) -> bool:
        return self.active.tick()

    def is_ticking(self) -> bool:
        """Whether the active timer still needs a driver (running or paused)."""
        return self.active.state in (TimerState.RUNNING, TimerState.PAUSED)

    async def run(self, interval: float = 1.0) -> None:
        """
        Drive the active timer from an asyncio task until it stops or expires.

        Args:
            interval: Seconds between ticks
        """
        timer_name = self.active.name
        try:
            while self.is_ticking():
                await asyncio.sleep(interval)
                self.tick()
        except asyncio.CancelledError:
            logger.debug(f"Timer driver cancelled for {timer_name}")
            raise
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(timer_name, "driver_error", str(e), "run")
            raise
