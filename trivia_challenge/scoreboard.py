"""
Score ledgers for solo and two-team play.
"""
import logging
from typing import Dict, List, Optional

from .models import GameMode, SoloScore, Team

logger = logging.getLogger(__name__)

COMEBACK_WRONG_STREAK = 3


class ScoreBoard:
    """
    Holds exactly one ledger kind, chosen by mode at reset.

    Solo play tracks points, streaks and correct answers; team play tracks
    points (and correct answers) per team. Points never drop below zero.
    """

    def __init__(self, mode: GameMode = GameMode.SOLO):
        self.reset(mode)

    def reset(self, mode: GameMode) -> None:
        self.mode = mode
        self.solo: Optional[SoloScore] = SoloScore() if mode == GameMode.SOLO else None
        self.teams: Optional[Dict[Team, int]] = (
            {Team.BLUE: 0, Team.BLACK: 0} if mode == GameMode.TEAMS else None
        )
        self.team_correct: Dict[Team, int] = {Team.BLUE: 0, Team.BLACK: 0}
        self.answered = 0
        self.wrong_streak = 0
        self.had_wrong_streak = False
        self.answer_times: List[float] = []

    # --- Queries ---

    def points(self, team: Optional[Team] = None) -> int:
        if self.mode == GameMode.SOLO:
            return self.solo.points
        return self.teams[team or Team.BLUE]

    @property
    def streak(self) -> int:
        return self.solo.streak if self.solo else 0

    @property
    def longest_streak(self) -> int:
        return self.solo.longest_streak if self.solo else 0

    @property
    def correct_count(self) -> int:
        if self.solo:
            return self.solo.correct_count
        return sum(self.team_correct.values())

    @property
    def average_answer_time(self) -> float:
        if not self.answer_times:
            return 0.0
        return sum(self.answer_times) / len(self.answer_times)

    # --- Mutations ---

    def _apply(self, delta: int, team: Optional[Team]) -> int:
        """Apply a delta to the acting ledger, flooring at zero; returns the applied change."""
        if self.mode == GameMode.SOLO:
            before = self.solo.points
            self.solo.points = max(0, before + delta)
            return self.solo.points - before
        key = team or Team.BLUE
        before = self.teams[key]
        self.teams[key] = max(0, before + delta)
        return self.teams[key] - before

    def record_correct(self, points: int, team: Optional[Team] = None) -> int:
        """
        Credit a correct answer.

        Returns:
            Points actually added
        """
        self.answered += 1
        self.wrong_streak = 0
        if self.mode == GameMode.SOLO:
            self.solo.streak += 1
            self.solo.correct_count += 1
            self.solo.longest_streak = max(self.solo.longest_streak, self.solo.streak)
        else:
            self.team_correct[team or Team.BLUE] += 1
        return self._apply(points, team)

    def record_incorrect(self, points: int, team: Optional[Team] = None) -> int:
        """
        Debit an incorrect answer, flooring the ledger at zero.

        Returns:
            Points actually removed, as a non-positive number
        """
        self.answered += 1
        self.reset_streak()
        self.wrong_streak += 1
        if self.wrong_streak >= COMEBACK_WRONG_STREAK:
            self.had_wrong_streak = True
        return self._apply(-points, team)

    def record_timeout(self) -> None:
        """An unanswered question counts as a miss without changing points."""
        self.answered += 1
        self.reset_streak()
        self.wrong_streak += 1
        if self.wrong_streak >= COMEBACK_WRONG_STREAK:
            self.had_wrong_streak = True

    def reset_streak(self) -> None:
        if self.solo:
            self.solo.streak = 0

    def deduct(self, points: int, team: Optional[Team] = None) -> int:
        """Charge a lifeline cost; returns the points actually removed."""
        return -self._apply(-points, team)

    def record_answer_time(self, seconds: float) -> None:
        self.answer_times.append(max(0.0, seconds))

    def reset_turn(self) -> None:
        """Clear per-turn counters before the second team's sequential round."""
        self.reset_streak()
        self.wrong_streak = 0

    def leader(self) -> Optional[Team]:
        """Team with more points, or None on a tie (teams mode only)."""
        if not self.teams:
            return None
        if self.teams[Team.BLUE] > self.teams[Team.BLACK]:
            return Team.BLUE
        if self.teams[Team.BLACK] > self.teams[Team.BLUE]:
            return Team.BLACK
        return None
