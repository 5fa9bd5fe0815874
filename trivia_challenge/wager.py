"""
Wager rules: stake ceilings, clamping, risk tiers and the Friday bonus.
"""
import logging
import math
from typing import Any

from .models import GameMode, RiskTier, WagerState

logger = logging.getLogger(__name__)

MIN_WAGER = 1
DEFAULT_WAGER = 5
TEAM_MAX = 20
TEAM_LIGHTNING_MAX = 40


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def is_lightning_round(question_index: int, round_size: int) -> bool:
    """Every ``round_size``-th question after the first is a lightning round."""
    return round_size > 0 and question_index > 0 and question_index % round_size == 0


def compute_max(
    mode: GameMode,
    is_lightning: bool,
    solo_score: int,
    question_index: int,
    total_questions: int
) -> int:
    """
    Compute the wager ceiling for a question.

    Args:
        mode: Solo or teams
        is_lightning: Whether the question is a lightning round
        solo_score: Current solo points (ignored for teams)
        question_index: Zero-based index of the question
        total_questions: Number of questions in the draw

    Returns:
        Maximum stake for the question
    """
    if mode == GameMode.TEAMS:
        return TEAM_LIGHTNING_MAX if is_lightning else TEAM_MAX

    if is_lightning:
        return _clamp(int(solo_score * 0.5), 40, 100)

    maximum = _clamp(int(solo_score * 0.25), 20, 50)
    if question_index > total_questions / 2:
        maximum = int(maximum * 1.5)
    return maximum


def apply_day_bonus(wager: int, is_friday: bool) -> int:
    """Amount used for scoring; the stored stake is left untouched."""
    return wager * 2 if is_friday else wager


def risk_tier(value: int, maximum: int) -> RiskTier:
    """Classify a stake by its share of the ceiling."""
    percentage = (value / maximum) * 100 if maximum else 100
    if percentage <= 25:
        return RiskTier.LOW
    if percentage <= 50:
        return RiskTier.MODERATE
    if percentage <= 75:
        return RiskTier.HIGH
    return RiskTier.EXTREME


class WagerManager:
    """Tracks the bounded stake for the current question."""

    def __init__(self, initial: int = DEFAULT_WAGER, maximum: int = TEAM_MAX):
        self._state = WagerState(value=_clamp(initial, MIN_WAGER, maximum), minimum=MIN_WAGER, maximum=maximum)

    @property
    def value(self) -> int:
        return self._state.value

    @property
    def maximum(self) -> int:
        return self._state.maximum

    @property
    def state(self) -> WagerState:
        return WagerState(self._state.value, self._state.minimum, self._state.maximum)

    def reset(self, initial: int = DEFAULT_WAGER, maximum: int = TEAM_MAX) -> None:
        self._state = WagerState(value=_clamp(initial, MIN_WAGER, maximum), minimum=MIN_WAGER, maximum=maximum)

    def recalculate(
        self,
        mode: GameMode,
        is_lightning: bool,
        solo_score: int,
        question_index: int,
        total_questions: int
    ) -> int:
        """Recompute the ceiling for a new question and re-clamp the stake."""
        self._state.maximum = compute_max(mode, is_lightning, solo_score, question_index, total_questions)
        self._state.value = _clamp(self._state.value, MIN_WAGER, self._state.maximum)
        logger.debug(
            f"Wager ceiling recalculated to {self._state.maximum} (stake {self._state.value})"
        )
        return self._state.maximum

    def set_wager(self, value: Any) -> int:
        """
        Set the stake, coercing invalid input to the minimum.

        Args:
            value: Requested stake; strings are stripped of non-digits

        Returns:
            The stored stake
        """
        if isinstance(value, bool):
            parsed = MIN_WAGER
        elif isinstance(value, int):
            parsed = value
        elif isinstance(value, float):
            parsed = int(value) if math.isfinite(value) else MIN_WAGER
        else:
            digits = "".join(ch for ch in str(value or "") if ch.isdigit())
            parsed = int(digits) if digits else MIN_WAGER

        self._state.value = _clamp(parsed, MIN_WAGER, self._state.maximum)
        return self._state.value

    def risk_tier(self) -> RiskTier:
        return risk_tier(self._state.value, self._state.maximum)

    def risk_label(self) -> str:
        """Feedback text such as ``Low Risk (5/20)``."""
        return f"{self.risk_tier().value} ({self._state.value}/{self._state.maximum})"
