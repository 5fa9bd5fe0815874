"""
End-of-game evaluation: star rubric, achievements and leaderboard ranking.
"""
import math
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from .models import (
    Achievement, GameMode, GameStats, LeaderboardEntry, ResultSummary, Team
)

logger = logging.getLogger(__name__)

LEADERBOARD_BUCKETS = (10, 20, 50, 100)
LEADERBOARD_SIZE = 10
COMEBACK_MIN_PCT = 80


@dataclass(frozen=True)
class AchievementRule:
    achievement: Achievement
    check: Callable[[GameStats], bool]


ACHIEVEMENTS: List[AchievementRule] = [
    AchievementRule(
        Achievement('novice_guardian', 'Novice Guardian', 'Complete a game.'),
        lambda stats: stats.completed
    ),
    AchievementRule(
        Achievement('accuracy_ace', 'Accuracy Ace', 'Get 90% or more correct answers in a game.'),
        lambda stats: stats.correct_pct >= 90
    ),
    AchievementRule(
        Achievement('streak_master', 'Streak Master', 'Achieve a streak of 10 or more correct answers in a row.'),
        lambda stats: stats.longest_streak >= 10
    ),
    AchievementRule(
        Achievement('speedster', 'Speedster', 'Average answer time under 7 seconds.'),
        lambda stats: stats.avg_answer_time < 7
    ),
    AchievementRule(
        Achievement('faithful_finisher', 'Faithful Finisher', 'Finish a game without using any power-ups.'),
        lambda stats: stats.power_ups_used == 0
    ),
    AchievementRule(
        Achievement('comeback_kid', 'Comeback Kid',
                    'Recover from a streak of 3+ wrong answers to finish with 80%+ accuracy.'),
        lambda stats: stats.comeback and stats.correct_pct >= COMEBACK_MIN_PCT
    ),
    AchievementRule(
        Achievement('token_tycoon', 'Token Tycoon', 'Earn 10 or more Faith Tokens in a single game.'),
        lambda stats: stats.tokens_earned >= 10
    ),
    AchievementRule(
        Achievement('perfect_game', 'Perfect Game', 'Answer all questions correctly in a game.'),
        lambda stats: stats.correct_answers == stats.total_questions
    ),
]

STAR_EXPLANATIONS = [
    'Beginner – Needs improvement.',
    'Learner – Some knowledge, keep practicing.',
    'Competent – Good performance, above average.',
    'Expert – Excellent knowledge and consistency.',
    'Master – Outstanding, near-perfect play.'
]


def correct_percentage(correct: int, total: int) -> int:
    """Percentage rounded half up; zero when nothing was asked."""
    if total <= 0:
        return 0
    return int(math.floor(correct / total * 100 + 0.5))


def calculate_stars(correct_pct: int) -> int:
    if correct_pct < 50:
        return 1
    if correct_pct < 70:
        return 2
    if correct_pct < 85:
        return 3
    if correct_pct < 95:
        return 4
    return 5


def star_explanation(stars: int) -> str:
    if 1 <= stars <= len(STAR_EXPLANATIONS):
        return STAR_EXPLANATIONS[stars - 1]
    return ''


def format_time(seconds: float) -> str:
    """Format seconds as ``m:ss``."""
    total = int(round(seconds))
    return f"{total // 60}:{total % 60:02d}"


def match_achievements(stats: GameStats) -> List[Achievement]:
    """Every achievement whose rule holds, in table order."""
    return [rule.achievement for rule in ACHIEVEMENTS if rule.check(stats)]


def question_count_bucket(count: int) -> int:
    """Leaderboard bucket for a game length: the smallest bucket not below it."""
    for bucket in LEADERBOARD_BUCKETS:
        if count <= bucket:
            return bucket
    return LEADERBOARD_BUCKETS[-1]


def build_entry(
    player_name: str,
    score: int,
    correct_answers: int,
    total_questions: int,
    elapsed_seconds: float,
    question_count: int,
    timestamp: Optional[datetime] = None
) -> LeaderboardEntry:
    stamp = timestamp or datetime.now(timezone.utc)
    return LeaderboardEntry(
        player_name=(player_name or '').strip() or 'Anonymous Player',
        score=score,
        correct_answers=correct_answers,
        total_questions=total_questions,
        timestamp=stamp.isoformat(),
        elapsed_seconds=round(elapsed_seconds, 2),
        question_count_bucket=question_count_bucket(question_count)
    )


def merge_leaderboard(
    existing: Sequence[LeaderboardEntry],
    entry: LeaderboardEntry,
    limit: int = LEADERBOARD_SIZE
) -> List[LeaderboardEntry]:
    """
    Add an entry and keep the top ``limit`` by descending score.

    Ties keep their existing order (stable sort on score only).
    """
    merged = list(existing) + [entry]
    merged.sort(key=lambda e: e.score, reverse=True)
    return merged[:limit]


class ResultsEvaluator:
    """Computes the final ResultSummary for a finished session."""

    def evaluate(
        self,
        mode: GameMode,
        score: int,
        correct_answers: int,
        total_questions: int,
        longest_streak: int,
        avg_answer_time: float,
        power_ups_used: int,
        tokens_earned: int,
        had_wrong_streak: bool,
        elapsed_seconds: float,
        team_scores: Optional[Dict[Team, int]] = None,
        player_name: Optional[str] = None,
        question_count: Optional[int] = None,
        completed: bool = True
    ) -> ResultSummary:
        correct_pct = correct_percentage(correct_answers, total_questions)
        stats = GameStats(
            completed=completed,
            correct_answers=correct_answers,
            total_questions=total_questions,
            correct_pct=correct_pct,
            longest_streak=longest_streak,
            avg_answer_time=avg_answer_time,
            power_ups_used=power_ups_used,
            tokens_earned=tokens_earned,
            comeback=had_wrong_streak and correct_pct >= COMEBACK_MIN_PCT
        )
        stars = calculate_stars(correct_pct)
        achievements = match_achievements(stats)

        winner = None
        if team_scores:
            if team_scores[Team.BLUE] > team_scores[Team.BLACK]:
                winner = Team.BLUE
            elif team_scores[Team.BLACK] > team_scores[Team.BLUE]:
                winner = Team.BLACK

        entry = None
        if mode == GameMode.SOLO:
            entry = build_entry(
                player_name or 'Anonymous Player',
                score,
                correct_answers,
                total_questions,
                elapsed_seconds,
                question_count if question_count is not None else total_questions
            )

        logger.info(
            f"Game evaluated: {correct_pct}% correct, {stars} stars, "
            f"{len(achievements)} achievements"
        )
        return ResultSummary(
            mode=mode,
            correct_pct=correct_pct,
            stars=stars,
            achievements=achievements,
            elapsed_seconds=elapsed_seconds,
            stats=stats,
            score=score,
            team_scores=dict(team_scores or {}),
            winner=winner,
            leaderboard_entry=entry
        )
