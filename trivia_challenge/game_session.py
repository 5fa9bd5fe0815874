"""
Game session state machine for the Trivia Challenge.
Sequences questions, scores answers and drives timers, wagers and power-ups.
"""
import logging
import time
from datetime import date
from typing import Callable, List, Optional, Tuple

from .models import (
    AnswerResolved, Cue, GameMode, GamePhase, GameSettings, Question,
    QuestionShown, ResultSummary, Team, TimerTick
)
from .errors import InsufficientQuestions, InvalidState
from .question_bank import QuestionBank, fisher_yates
from .power_ups import PowerUpEconomy, Scheduler
from .scoreboard import ScoreBoard
from .timers import TimerController
from .results import ResultsEvaluator
from . import wager as wager_rules

logger = logging.getLogger(__name__)

HINT_COST = 3
TAKE_AWAY_COST = 2
STREAK_CUE_LEVELS = (3, 5, 7, 10)
STREAK_CUE_FLOOR = 15
TOKEN_STREAK = 3


class SessionObserver:
    """
    Receives session lifecycle events.

    Observers are invoked synchronously in registration order; override only
    the hooks you need.
    """

    def on_question_shown(self, event: QuestionShown) -> None:
        pass

    def on_answer_scored(self, event: AnswerResolved) -> None:
        pass

    def on_timer_tick(self, event: TimerTick) -> None:
        pass

    def on_cue(self, cue: Cue) -> None:
        pass

    def on_round_boundary(self, blue_final_score: int) -> None:
        pass

    def on_round_advanced(self, team: Team) -> None:
        pass

    def on_finished(self, summary: ResultSummary) -> None:
        pass


class GameSession:
    """
    Orchestrates one game from mode selection to final results.

    Phases run ``IDLE -> ACTIVE -> (ROUND_BOUNDARY -> ACTIVE)? -> FINISHED``.
    The round boundary only exists for sequential time-attack team play,
    where blue plays a full timed round before black plays a disjoint one.
    """

    def __init__(
        self,
        bank: QuestionBank,
        settings: Optional[GameSettings] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = date.today,
        evaluator: Optional[ResultsEvaluator] = None
    ):
        """
        Args:
            bank: Question source for every draw
            settings: Game settings; defaults are used if None
            scheduler: Delayed-call scheduler used to end a freeze
            clock: Monotonic clock in seconds for latency and elapsed time
            today: Date source for the Friday wager bonus
            evaluator: Results evaluator used when the game finishes
        """
        self.bank = bank
        self.settings = settings or GameSettings()
        self._clock = clock
        self._today = today
        self.evaluator = evaluator or ResultsEvaluator()
        self._observers: List[SessionObserver] = []

        self.scoreboard = ScoreBoard()
        self.wager = wager_rules.WagerManager()
        self.power_ups = PowerUpEconomy(scheduler)
        self.timers = TimerController(
            self.settings.question_time_limit,
            self.settings.round_time_limit
        )
        self.timers.bind(self._on_timer_tick, self._on_question_expired, self._on_round_expired)

        self._clear()

    def _clear(self) -> None:
        self.phase = GamePhase.IDLE
        self.mode: Optional[GameMode] = None
        self.category = self.settings.category
        self.question_count = self.settings.question_count
        self.time_attack = False
        self.player_name: Optional[str] = None
        self.draw: List[Question] = []
        self.question_index = 0
        self.current_options: Tuple[str, ...] = ()
        self.turn: Optional[Team] = None
        self.is_lightning = False
        self.pending = False
        self.resolved = False
        self.hint_used = False
        self.take_away_used = False
        self.removed_options: Tuple[str, ...] = ()
        self.blue_question_ids: List[str] = []
        self.blue_final_score: Optional[int] = None
        self.questions_presented = 0
        self.round_timed_out = False
        self.question_started_at: Optional[float] = None
        self.game_started_at: Optional[float] = None
        self.summary: Optional[ResultSummary] = None

    # --- Observers ---

    def add_observer(self, observer: SessionObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: SessionObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, hook: str, *args) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, hook)(*args)
            except Exception as e:
                # Log error but don't raise to avoid breaking game flow
                logger.error(f"Observer {type(observer).__name__}.{hook} failed: {e}", exc_info=True)

    def _cue(self, name: str) -> None:
        self._notify("on_cue", Cue(name))

    # --- Queries ---

    @property
    def current_question(self) -> Optional[Question]:
        if self.phase != GamePhase.ACTIVE or self.question_index >= len(self.draw):
            return None
        return self.draw[self.question_index]

    @property
    def is_friday(self) -> bool:
        return self._today().weekday() == 4

    @property
    def sequential_teams(self) -> bool:
        return self.mode == GameMode.TEAMS and self.time_attack

    def acting_team(self) -> Optional[Team]:
        return self.turn if self.mode == GameMode.TEAMS else None

    def team_scores(self) -> dict:
        if self.mode != GameMode.TEAMS:
            return {}
        blue = self.scoreboard.points(Team.BLUE)
        if self.sequential_teams and self.blue_final_score is not None:
            blue = self.blue_final_score
        return {Team.BLUE: blue, Team.BLACK: self.scoreboard.points(Team.BLACK)}

    def progress(self) -> dict:
        """Snapshot of the session for status displays."""
        return {
            'phase': self.phase.value,
            'mode': self.mode.value if self.mode else None,
            'category': self.category,
            'time_attack': self.time_attack,
            'current_question': self.question_index + 1 if self.draw else 0,
            'total_questions': len(self.draw),
            'turn': self.turn.value if self.turn else None,
            'score': self.scoreboard.points() if self.mode == GameMode.SOLO else None,
            'team_scores': {team.value: points for team, points in self.team_scores().items()},
            'streak': self.scoreboard.streak,
            'wager': self.wager.value,
            'wager_max': self.wager.maximum,
            'faith_tokens': self.power_ups.token_balance,
            'time_remaining': self.timers.remaining,
            'timer_state': self.timers.state.value,
            'awaiting_answer': self.pending
        }

    # --- Lifecycle ---

    def start(
        self,
        mode: GameMode,
        category: Optional[str] = None,
        question_count: Optional[int] = None,
        time_attack: Optional[bool] = None,
        player_name: Optional[str] = None
    ) -> QuestionShown:
        """
        Reset all state, draw the question set and show the first question.

        Raises:
            InsufficientQuestions: If the count is below 1 or the draw fails;
                the session stays idle
        """
        self.timers.stop()
        self.power_ups.reset()
        self._clear()

        category = category or self.settings.category
        count = question_count if question_count is not None else self.settings.question_count
        use_time_attack = self.settings.time_attack if time_attack is None else time_attack

        if count < 1:
            raise InsufficientQuestions(f"Question count must be at least 1, got {count}")

        if use_time_attack:
            draw = self.bank.draw_excluding(category, (), lenient=False)[:count]
        else:
            draw = self.bank.draw(category, count)

        self.mode = mode
        self.category = category
        self.question_count = count
        self.time_attack = use_time_attack
        self.player_name = player_name
        self.draw = draw
        self.scoreboard.reset(mode)
        self.wager.reset()
        self.timers.use_round_timer = use_time_attack
        if mode == GameMode.TEAMS:
            self.turn = Team.BLUE
            if use_time_attack:
                self.blue_question_ids = [q.id for q in draw]

        self.phase = GamePhase.ACTIVE
        self.game_started_at = self._clock()
        logger.info(
            f"Session started: mode={mode.value}, category={category}, "
            f"questions={len(draw)}, time_attack={use_time_attack}",
            extra={
                'event_type': 'session_started',
                'mode': mode.value,
                'category': category,
                'question_count': len(draw),
                'time_attack': use_time_attack,
                'timestamp': time.time()
            }
        )

        if use_time_attack:
            self.timers.start_round_timer()
        return self._show_question()

    def exit(self) -> None:
        """
        Abort the session, discarding all transient state.

        Raises:
            InvalidState: If the session is already idle
        """
        if self.phase == GamePhase.IDLE:
            raise InvalidState("No session to exit")
        self.timers.stop()
        self.power_ups.reset()
        previous = self.phase
        self._clear()
        logger.info(
            f"Session exited from phase {previous.value}",
            extra={'event_type': 'session_exited', 'from_phase': previous.value, 'timestamp': time.time()}
        )

    def _show_question(self) -> QuestionShown:
        question = self.draw[self.question_index]
        total = len(self.draw)

        self.is_lightning = wager_rules.is_lightning_round(self.question_index, self.settings.round_size)
        solo_score = self.scoreboard.points() if self.mode == GameMode.SOLO else 0
        self.wager.recalculate(self.mode, self.is_lightning, solo_score, self.question_index, total)

        if self.mode == GameMode.TEAMS and not self.time_attack:
            self.turn = Team.BLUE if self.question_index % 2 == 0 else Team.BLACK

        if not self.time_attack and self.power_ups.freeze_active:
            self.power_ups.cancel_freeze()

        self.current_options = self.bank.shuffled_options(question)
        self.pending = True
        self.resolved = False
        self.hint_used = False
        self.take_away_used = False
        self.removed_options = ()
        self.questions_presented += 1
        self.question_started_at = self._clock()

        if not self.time_attack:
            self.timers.start_question_timer()

        event = QuestionShown(
            question_text=question.text,
            category_label=question.category,
            options=self.current_options,
            question_number=self.question_index + 1,
            total_questions=total,
            team=self.acting_team(),
            wager_max=self.wager.maximum,
            is_lightning_round=self.is_lightning
        )
        logger.debug(f"Showing question {event.question_number}/{total} ({question.id})")
        self._notify("on_question_shown", event)
        return event

    def _require_pending(self, operation: str) -> Question:
        if self.phase != GamePhase.ACTIVE or not self.pending:
            raise InvalidState(f"Cannot {operation}: no question is awaiting an answer")
        return self.draw[self.question_index]

    # --- Answering ---

    def submit_answer(self, selected_option: str) -> AnswerResolved:
        """
        Score the answer to the pending question.

        Raises:
            InvalidState: If no question is awaiting an answer
        """
        question = self._require_pending("submit answer")
        self.pending = False
        self.resolved = True
        if not self.time_attack:
            self.timers.question_timer.stop()

        self.scoreboard.record_answer_time(self._clock() - self.question_started_at)

        team = self.acting_team()
        is_correct = selected_option == question.answer
        amount = wager_rules.apply_day_bonus(self.wager.value, self.is_friday)
        multiplier = self.power_ups.consume_double_points()

        if is_correct:
            delta = self.scoreboard.record_correct(amount * multiplier, team)
            streak = self.scoreboard.streak
            if self.mode == GameMode.SOLO and streak > 0 and streak % TOKEN_STREAK == 0:
                self.power_ups.earn_token()
        else:
            delta = self.scoreboard.record_incorrect(amount, team)

        event = AnswerResolved(
            is_correct=is_correct,
            correct_option=question.answer,
            score_delta=delta,
            explanation=question.explanation,
            team=team
        )
        logger.info(
            f"Answer scored: correct={is_correct}, delta={delta}",
            extra={
                'event_type': 'answer_scored',
                'question_id': question.id,
                'is_correct': is_correct,
                'score_delta': delta,
                'team': team.value if team else None,
                'timestamp': time.time()
            }
        )
        self._notify("on_answer_scored", event)
        self._cue("correct" if is_correct else "incorrect")
        if is_correct and self.mode == GameMode.SOLO:
            streak = self.scoreboard.streak
            if streak in STREAK_CUE_LEVELS or streak >= STREAK_CUE_FLOOR:
                self._cue(f"streak_level:{streak}")

        if self.time_attack:
            self._advance()
        return event

    def advance(self) -> None:
        """
        Move past a resolved question.

        Raises:
            InvalidState: If the current question has not been resolved yet
        """
        if self.phase != GamePhase.ACTIVE or self.pending or not self.resolved:
            raise InvalidState("Cannot advance before the current question is resolved")
        self._advance()

    def _advance(self) -> None:
        next_index = self.question_index + 1
        if next_index < len(self.draw):
            next_question = self.draw[next_index]
            self._cue(f"round_transition:{str(QuestionBank.is_prophecy(next_question)).lower()}")
            self.question_index = next_index
            self._show_question()
        else:
            self._end_round()

    def _end_round(self) -> None:
        self.timers.stop()
        self.pending = False
        if self.sequential_teams and self.turn == Team.BLUE:
            self.blue_final_score = self.scoreboard.points(Team.BLUE)
            self.phase = GamePhase.ROUND_BOUNDARY
            logger.info(
                f"Blue team round over with {self.blue_final_score} points; awaiting hand-off",
                extra={
                    'event_type': 'round_boundary',
                    'blue_final_score': self.blue_final_score,
                    'timestamp': time.time()
                }
            )
            self._notify("on_round_boundary", self.blue_final_score)
        else:
            self._finish()

    def continue_to_next_team(self) -> QuestionShown:
        """
        Hand the game to the black team with a question set disjoint from blue's.

        Raises:
            InvalidState: If the session is not at the round boundary
            InsufficientQuestions: If no unplayed questions remain; the
                session stays at the boundary
        """
        if self.phase != GamePhase.ROUND_BOUNDARY:
            raise InvalidState("No team hand-off is pending")

        draw = self.bank.draw_excluding(self.category, self.blue_question_ids, lenient=True)
        self.draw = draw[:self.question_count]
        self.question_index = 0
        self.turn = Team.BLACK
        self.round_timed_out = False
        self.scoreboard.reset_turn()
        self.power_ups.cancel_freeze()
        self.phase = GamePhase.ACTIVE
        self.timers.start_round_timer()
        logger.info(f"Black team turn started with {len(self.draw)} questions")
        self._notify("on_round_advanced", Team.BLACK)
        return self._show_question()

    def _finish(self) -> ResultSummary:
        self.timers.stop()
        self.power_ups.cancel_freeze()
        self.pending = False
        self.phase = GamePhase.FINISHED

        if self.time_attack and self.round_timed_out:
            elapsed = float(self.settings.round_time_limit)
        else:
            elapsed = self._clock() - (self.game_started_at or self._clock())

        team_scores = self.team_scores()
        self.summary = self.evaluator.evaluate(
            mode=self.mode,
            score=self.scoreboard.points() if self.mode == GameMode.SOLO else 0,
            correct_answers=self.scoreboard.correct_count,
            total_questions=self.questions_presented,
            longest_streak=self.scoreboard.longest_streak,
            avg_answer_time=self.scoreboard.average_answer_time,
            power_ups_used=self.power_ups.power_ups_used,
            tokens_earned=self.power_ups.tokens_earned,
            had_wrong_streak=self.scoreboard.had_wrong_streak,
            elapsed_seconds=elapsed,
            team_scores=team_scores or None,
            player_name=self.player_name,
            question_count=self.question_count
        )
        logger.info(
            f"Session finished: mode={self.mode.value}, pct={self.summary.correct_pct}",
            extra={'event_type': 'session_finished', 'mode': self.mode.value, 'timestamp': time.time()}
        )
        self._notify("on_finished", self.summary)
        return self.summary

    # --- Timer callbacks ---

    def _on_timer_tick(self, timer_name: str, remaining: int) -> None:
        self._notify("on_timer_tick", TimerTick(time_remaining=remaining, timer=timer_name))

    def _on_question_expired(self) -> None:
        if self.phase != GamePhase.ACTIVE or not self.pending:
            return
        question = self.draw[self.question_index]
        self.pending = False
        self.resolved = True
        self.power_ups.consume_double_points()
        self.scoreboard.record_timeout()
        event = AnswerResolved(
            is_correct=False,
            correct_option=question.answer,
            score_delta=0,
            explanation=question.explanation,
            team=self.acting_team(),
            timed_out=True
        )
        logger.info(f"Time up on question {question.id}", extra={'event_type': 'question_timed_out', 'timestamp': time.time()})
        self._notify("on_answer_scored", event)
        self._cue("time_up")

    def _on_round_expired(self) -> None:
        if self.phase != GamePhase.ACTIVE:
            return
        self.round_timed_out = True
        self._cue("time_up")
        self._end_round()

    # --- Wager, power-ups and lifelines ---

    def set_wager(self, value) -> int:
        self._require_pending("change the wager")
        return self.wager.set_wager(value)

    def activate_double_points(self) -> None:
        """
        Raises:
            InvalidState: If no question is pending or double points is active
            InsufficientTokens: If no Faith Token is available
        """
        self._require_pending("activate double points")
        self.power_ups.activate_double_points()

    def activate_freeze(self) -> None:
        """
        Pause the active timer for the configured freeze duration.

        Raises:
            InvalidState: If no timer can be frozen or a freeze is in flight
            InsufficientTokens: If no Faith Token is available
        """
        if self.phase != GamePhase.ACTIVE or (not self.time_attack and not self.pending):
            raise InvalidState("Cannot freeze time: no timer is running")
        self.power_ups.activate_freeze(
            self.timers.pause,
            self._resume_after_freeze,
            self.settings.freeze_duration_ms
        )

    def _resume_after_freeze(self) -> None:
        if self.phase == GamePhase.ACTIVE:
            self.timers.resume()

    def use_hint(self) -> str:
        """
        Reveal the correct option for a point cost.

        Raises:
            InvalidState: If no question is pending or the hint was used
        """
        question = self._require_pending("use a hint")
        if self.hint_used:
            raise InvalidState("Hint already used for this question")
        self.hint_used = True
        self.scoreboard.deduct(HINT_COST, self.acting_team())
        return question.answer

    def use_take_away_two(self) -> Tuple[str, ...]:
        """
        Remove up to two incorrect options for a point cost.

        Raises:
            InvalidState: If no question is pending or the lifeline was used
        """
        question = self._require_pending("take away two options")
        if self.take_away_used:
            raise InvalidState("Take away two already used for this question")
        self.take_away_used = True
        self.scoreboard.deduct(TAKE_AWAY_COST, self.acting_team())
        incorrect = [option for option in self.current_options if option != question.answer]
        self.removed_options = tuple(fisher_yates(incorrect, self.bank.rng)[:2])
        return self.removed_options
