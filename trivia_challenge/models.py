"""
Core data models for the Trivia Challenge game engine.
"""
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Tuple
from enum import Enum


class GameMode(Enum):
    """Competitive modes a session can be started in."""
    SOLO = "solo"
    TEAMS = "teams"


class Team(Enum):
    """Team identifiers for two-team play."""
    BLUE = "blue"
    BLACK = "black"


class GamePhase(Enum):
    """Lifecycle phases of a game session."""
    IDLE = "idle"
    ACTIVE = "active"
    ROUND_BOUNDARY = "round_boundary"
    FINISHED = "finished"


class TimerState(Enum):
    """States of a countdown timer."""
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"
    EXPIRED = "expired"


class RiskTier(Enum):
    """Risk classification of a wager relative to its ceiling."""
    LOW = "Low Risk"
    MODERATE = "Moderate Risk"
    HIGH = "High Risk"
    EXTREME = "Extreme Risk!"


@dataclass(frozen=True)
class Question:
    """Represents a single trivia question."""
    id: str
    category: str
    text: str
    options: Tuple[str, ...]
    answer: str
    explanation: Optional[str] = None
    difficulty: str = "medium"


@dataclass
class SoloScore:
    """Score ledger for a single player."""
    points: int = 0
    streak: int = 0
    longest_streak: int = 0
    correct_count: int = 0


@dataclass
class WagerState:
    """Current stake with its bounds."""
    value: int = 5
    minimum: int = 1
    maximum: int = 20


@dataclass
class PowerUpState:
    """Faith Token balance and power-up flags."""
    token_balance: int = 0
    double_points_active: bool = False
    freeze_active: bool = False


@dataclass
class GameSettings:
    """Configuration settings for a game session."""
    question_count: int = 20
    category: str = "All"
    time_attack: bool = False
    round_size: int = 20
    question_time_limit: int = 20
    round_time_limit: int = 180
    freeze_duration_ms: int = 5000
    question_directory: str = "./questions/"
    leaderboard_path: str = "./data/leaderboard.json"


@dataclass
class LeaderboardEntry:
    """A single leaderboard row."""
    player_name: str
    score: int
    correct_answers: int
    total_questions: int
    timestamp: str
    elapsed_seconds: float
    question_count_bucket: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "LeaderboardEntry":
        return cls(
            player_name=str(data.get("player_name", "Anonymous Player")),
            score=int(data.get("score", 0)),
            correct_answers=int(data.get("correct_answers", 0)),
            total_questions=int(data.get("total_questions", 0)),
            timestamp=str(data.get("timestamp", "")),
            elapsed_seconds=float(data.get("elapsed_seconds", 0.0)),
            question_count_bucket=int(data.get("question_count_bucket", 0)),
        )


@dataclass(frozen=True)
class Achievement:
    """An achievement rule's display data."""
    id: str
    name: str
    description: str


@dataclass
class GameStats:
    """Final statistics snapshot used for stars and achievements."""
    completed: bool
    correct_answers: int
    total_questions: int
    correct_pct: int
    longest_streak: int
    avg_answer_time: float
    power_ups_used: int
    tokens_earned: int
    comeback: bool


@dataclass
class ResultSummary:
    """Read-only results computed once when a session finishes."""
    mode: GameMode
    correct_pct: int
    stars: int
    achievements: List[Achievement]
    elapsed_seconds: float
    stats: GameStats
    score: int = 0
    team_scores: Dict[Team, int] = field(default_factory=dict)
    winner: Optional[Team] = None
    leaderboard_entry: Optional[LeaderboardEntry] = None


# --- Session events delivered to observers ---

@dataclass(frozen=True)
class QuestionShown:
    question_text: str
    category_label: str
    options: Tuple[str, ...]
    question_number: int
    total_questions: int
    team: Optional[Team]
    wager_max: int
    is_lightning_round: bool


@dataclass(frozen=True)
class AnswerResolved:
    is_correct: bool
    correct_option: str
    score_delta: int
    explanation: Optional[str]
    team: Optional[Team] = None
    timed_out: bool = False


@dataclass(frozen=True)
class TimerTick:
    time_remaining: int
    timer: str


@dataclass(frozen=True)
class Cue:
    """Discrete audio/visual notification, e.g. ``streak_level:5``."""
    name: str
