"""
Game controller for the Trivia Challenge Discord bot.
Manages one game session per Discord channel, its timer driver and result recording.
"""
import asyncio
import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Set

from .models import GameMode, GamePhase, ResultSummary
from .errors import InsufficientQuestions, InsufficientTokens, InvalidState, TriviaError
from .question_bank import QuestionBank
from .config_manager import ConfigManager
from .leaderboard_store import LeaderboardRepository
from .game_session import GameSession, SessionObserver
from .power_ups import Scheduler
from .results import merge_leaderboard, question_count_bucket

OPTION_LETTERS = "ABCDEFGH"


class _ResultRecorder(SessionObserver):
    """Stores a finished solo game on the leaderboard."""

    def __init__(self, controller: "GameController", channel_id: int):
        self.controller = controller
        self.channel_id = channel_id

    def on_finished(self, summary: ResultSummary) -> None:
        if summary.leaderboard_entry is not None:
            self.controller.schedule_record(self.channel_id, summary)


class GameController:
    """
    Orchestrates trivia sessions across Discord channels.

    Each channel has at most one session. Every public operation returns the
    ``{'success', 'message'|'error', 'user_message'}`` dictionary the bot
    turns into a reply.
    """

    def __init__(
        self,
        bank: QuestionBank,
        config_manager: ConfigManager,
        store: LeaderboardRepository,
        scheduler: Optional[Scheduler] = None
    ):
        """
        Args:
            bank: Loaded question bank shared by every channel
            config_manager: Source of the settings each new game starts with
            store: Leaderboard and player-name persistence
            scheduler: Delayed-call scheduler for freeze; the running loop if None
        """
        self.logger = logging.getLogger(__name__)
        self.bank = bank
        self.config_manager = config_manager
        self.store = store
        self._scheduler = scheduler

        self._sessions: Dict[int, GameSession] = {}
        self._timer_tasks: Dict[int, asyncio.Task] = {}
        self._record_tasks: Set[asyncio.Task] = set()
        self._record_lock = threading.Lock()
        self._last_rank: Dict[int, Optional[int]] = {}

        self.logger.info("GameController initialized")

    # --- Session lookup ---

    def get_session(self, channel_id: int) -> Optional[GameSession]:
        return self._sessions.get(channel_id)

    def has_active_session(self, channel_id: int) -> bool:
        session = self._sessions.get(channel_id)
        return session is not None and session.phase in (GamePhase.ACTIVE, GamePhase.ROUND_BOUNDARY)

    def _require_session(self, channel_id: int) -> GameSession:
        session = self._sessions.get(channel_id)
        if session is None or session.phase == GamePhase.IDLE:
            raise InvalidState("No game is running in this channel")
        return session

    # --- Error handling ---

    def _handle_error(self, channel_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Map an exception to the controller's result dictionary.

        Args:
            channel_id: Discord channel identifier
            error: The exception that occurred
            operation: Description of the operation that failed
        """
        if isinstance(error, InvalidState):
            self.logger.info(f"Ignored {operation} in channel {channel_id}: {error}")
            user_message = f"⚠️ {error}"
        elif isinstance(error, InsufficientTokens):
            self.logger.info(f"Power-up refused in channel {channel_id}: {error}")
            user_message = "🔒 You need a Faith Token for that. Earn one with every 3 correct answers in a row."
        elif isinstance(error, InsufficientQuestions):
            self.logger.warning(f"Insufficient questions for {operation} in channel {channel_id}: {error}")
            user_message = f"❌ {error} Returning to mode selection."
        else:
            self.logger.error(f"Error in {operation} for channel {channel_id}: {error}", exc_info=True)
            user_message = f"❌ An unexpected error occurred during {operation}. Please try again."

        return {
            'success': False,
            'error': str(error),
            'error_type': type(error).__name__,
            'operation': operation,
            'user_message': user_message
        }

    # --- Timer driver ---

    def _ensure_timer_driver(self, channel_id: int, restart: bool = False) -> None:
        """
        Start an asyncio task ticking the channel's timer if none is alive.

        Args:
            channel_id: Discord channel identifier
            restart: Cancel a live driver first, so a freshly started timer
                gets a full interval before its first tick
        """
        session = self._sessions.get(channel_id)
        if session is None or not session.timers.is_ticking():
            return
        if restart:
            self._cancel_timer_driver(channel_id)
        task = self._timer_tasks.get(channel_id)
        if task is not None and not task.done():
            return
        self._timer_tasks[channel_id] = asyncio.create_task(session.timers.run())
        self.logger.debug(
            f"Timer driver started for channel {channel_id}",
            extra={'event_type': 'timer_driver_started', 'channel_id': channel_id, 'timestamp': time.time()}
        )

    def _cancel_timer_driver(self, channel_id: int) -> bool:
        task = self._timer_tasks.pop(channel_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    # --- Game lifecycle ---

    def start_game(
        self,
        channel_id: int,
        mode: GameMode,
        category: Optional[str] = None,
        time_attack: Optional[bool] = None,
        player_key: Optional[str] = None,
        player_name: Optional[str] = None,
        observers: Iterable[SessionObserver] = ()
    ) -> Dict[str, Any]:
        """
        Start a new game in a channel, replacing any finished one.

        Args:
            channel_id: Discord channel identifier
            mode: Solo or teams
            category: Category to draw from; configured default if None
            time_attack: Overrides the configured time attack setting if given
            player_key: Key for a remembered player name (Discord user id)
            player_name: Fallback display name for the leaderboard
            observers: Renderers to attach before the first question is shown
        """
        if self.has_active_session(channel_id):
            return {
                'success': False,
                'error': "Session already active",
                'user_message': "❌ A game is already running in this channel. Use `/exit` to end it first."
            }

        if player_key is not None:
            player_name = self.store.load_player_name(player_key) or player_name

        self._cancel_timer_driver(channel_id)
        session = GameSession(
            self.bank,
            settings=self.config_manager.get_game_settings(),
            scheduler=self._scheduler
        )
        for observer in observers:
            session.add_observer(observer)
        session.add_observer(_ResultRecorder(self, channel_id))

        try:
            session.start(mode, category=category, time_attack=time_attack, player_name=player_name)
        except TriviaError as e:
            self._sessions.pop(channel_id, None)
            return self._handle_error(channel_id, e, "start game")

        self._sessions[channel_id] = session
        self._last_rank.pop(channel_id, None)
        self._ensure_timer_driver(channel_id)
        self.logger.info(
            f"Started {mode.value} game for channel {channel_id}",
            extra={
                'event_type': 'game_started',
                'channel_id': channel_id,
                'mode': mode.value,
                'time_attack': session.time_attack,
                'timestamp': time.time()
            }
        )
        return {
            'success': True,
            'message': f"Started {mode.value} game with {len(session.draw)} questions",
            'user_message': f"🎮 {mode.value.title()} game started with {len(session.draw)} questions!",
            'session_info': session.progress()
        }

    def exit_game(self, channel_id: int) -> Dict[str, Any]:
        try:
            session = self._require_session(channel_id)
            self._cancel_timer_driver(channel_id)
            session.exit()
        except TriviaError as e:
            return self._handle_error(channel_id, e, "exit game")
        del self._sessions[channel_id]
        return {
            'success': True,
            'message': "Game exited",
            'user_message': "👋 Game ended. Nothing was recorded."
        }

    def resolve_option(self, session: GameSession, choice: str) -> str:
        """
        Map a letter (A-D), a 1-based number or option text to the option text.

        Unknown input is passed through and scored as a wrong answer.
        """
        choice = (choice or "").strip()
        options = session.current_options
        if len(choice) == 1 and choice.upper() in OPTION_LETTERS[:len(options)]:
            return options[OPTION_LETTERS.index(choice.upper())]
        if choice.isdigit() and 1 <= int(choice) <= len(options):
            return options[int(choice) - 1]
        for option in options:
            if option.lower() == choice.lower():
                return option
        return choice

    def submit_answer(self, channel_id: int, choice: str) -> Dict[str, Any]:
        try:
            session = self._require_session(channel_id)
            event = session.submit_answer(self.resolve_option(session, choice))
        except TriviaError as e:
            return self._handle_error(channel_id, e, "submit answer")
        self._ensure_timer_driver(channel_id)
        return {
            'success': True,
            'message': "Answer scored",
            'user_message': "✅ Correct!" if event.is_correct else f"❌ The answer was {event.correct_option}",
            'result': event,
            'phase': session.phase
        }

    def advance(self, channel_id: int) -> Dict[str, Any]:
        try:
            session = self._require_session(channel_id)
            session.advance()
        except TriviaError as e:
            return self._handle_error(channel_id, e, "next question")
        self._ensure_timer_driver(channel_id, restart=not session.time_attack)
        return {'success': True, 'message': "Advanced", 'user_message': "➡️ Next!", 'phase': session.phase}

    def continue_to_next_team(self, channel_id: int) -> Dict[str, Any]:
        try:
            session = self._require_session(channel_id)
            session.continue_to_next_team()
        except InsufficientQuestions as e:
            result = self._handle_error(channel_id, e, "continue to next team")
            self._cancel_timer_driver(channel_id)
            session.exit()
            del self._sessions[channel_id]
            return result
        except TriviaError as e:
            return self._handle_error(channel_id, e, "continue to next team")
        self._ensure_timer_driver(channel_id, restart=True)
        return {
            'success': True,
            'message': "Black team turn started",
            'user_message': "⚫ Black team, you're up!"
        }

    # --- Wager, power-ups and lifelines ---

    def set_wager(self, channel_id: int, value: Any) -> Dict[str, Any]:
        try:
            session = self._require_session(channel_id)
            stake = session.set_wager(value)
        except TriviaError as e:
            return self._handle_error(channel_id, e, "set wager")
        return {
            'success': True,
            'message': f"Wager set to {stake}",
            'user_message': f"🎲 Wager: {session.wager.risk_label()}",
            'wager': stake
        }

    def activate_double_points(self, channel_id: int) -> Dict[str, Any]:
        try:
            session = self._require_session(channel_id)
            session.activate_double_points()
        except TriviaError as e:
            return self._handle_error(channel_id, e, "double points")
        return {
            'success': True,
            'message': "Double points active",
            'user_message': f"✨ Double points active! Tokens left: {session.power_ups.token_balance}"
        }

    def activate_freeze(self, channel_id: int) -> Dict[str, Any]:
        try:
            session = self._require_session(channel_id)
            session.activate_freeze()
        except TriviaError as e:
            return self._handle_error(channel_id, e, "freeze time")
        seconds = session.settings.freeze_duration_ms / 1000
        return {
            'success': True,
            'message': "Timer frozen",
            'user_message': f"❄️ Time frozen for {seconds:g} seconds! Tokens left: {session.power_ups.token_balance}"
        }

    def use_hint(self, channel_id: int) -> Dict[str, Any]:
        try:
            session = self._require_session(channel_id)
            answer = session.use_hint()
        except TriviaError as e:
            return self._handle_error(channel_id, e, "hint")
        return {
            'success': True,
            'message': "Hint used",
            'user_message': f"💡 Hint: the answer is **{answer}** (-3 points)",
            'answer': answer
        }

    def use_take_away_two(self, channel_id: int) -> Dict[str, Any]:
        try:
            session = self._require_session(channel_id)
            removed = session.use_take_away_two()
        except TriviaError as e:
            return self._handle_error(channel_id, e, "take away two")
        remaining = [option for option in session.current_options if option not in removed]
        return {
            'success': True,
            'message': "Two options removed",
            'user_message': "✂️ Remaining options: " + ", ".join(remaining) + " (-2 points)",
            'removed': removed
        }

    # --- Results and leaderboard ---

    def schedule_record(self, channel_id: int, summary: ResultSummary) -> asyncio.Task:
        """Record a finished game on a worker thread so file I/O stays off the event loop."""
        task = asyncio.create_task(asyncio.to_thread(self.record_result, channel_id, summary))
        self._record_tasks.add(task)
        task.add_done_callback(self._record_done)
        return task

    def _record_done(self, task: asyncio.Task) -> None:
        self._record_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error(
                f"Leaderboard recording failed: {task.exception()}",
                exc_info=task.exception()
            )

    async def wait_for_records(self) -> None:
        """Wait until every scheduled leaderboard write has finished."""
        if self._record_tasks:
            await asyncio.gather(*self._record_tasks, return_exceptions=True)

    def record_result(self, channel_id: int, summary: ResultSummary) -> Optional[int]:
        """
        Merge a finished solo game into its leaderboard bucket.

        Returns:
            1-based rank of the new entry, or None if it did not place
        """
        entry = summary.leaderboard_entry
        if entry is None:
            return None

        bucket = entry.question_count_bucket
        try:
            with self._record_lock:
                merged = merge_leaderboard(self.store.load_leaderboard(bucket), entry)
                self.store.save_leaderboard(bucket, merged)
        except OSError as e:
            self.logger.error(f"Failed to record leaderboard entry for channel {channel_id}: {e}", exc_info=True)
            return None

        rank = next((i + 1 for i, row in enumerate(merged) if row is entry), None)
        self._last_rank[channel_id] = rank
        self.logger.info(
            f"Recorded leaderboard entry for {entry.player_name} in bucket {bucket}, rank {rank}",
            extra={
                'event_type': 'leaderboard_recorded',
                'channel_id': channel_id,
                'bucket': bucket,
                'rank': rank,
                'timestamp': time.time()
            }
        )
        return rank

    def get_last_rank(self, channel_id: int) -> Optional[int]:
        return self._last_rank.get(channel_id)

    def get_leaderboard(self, question_count: Optional[int] = None) -> Dict[str, Any]:
        count = question_count or self.config_manager.get_question_count()
        bucket = question_count_bucket(count)
        try:
            entries = self.store.load_leaderboard(bucket)
        except OSError as e:
            return self._handle_error(0, e, "load leaderboard")
        return {
            'success': True,
            'message': f"Loaded {len(entries)} entries",
            'user_message': f"🏆 Top scores for {bucket}-question games",
            'bucket': bucket,
            'entries': entries
        }

    def set_player_name(self, player_key: str, name: str) -> Dict[str, Any]:
        name = (name or "").strip()
        if not name or len(name) > 32:
            return {
                'success': False,
                'error': "Invalid player name",
                'user_message': "❌ Player names must be 1-32 characters"
            }
        try:
            self.store.save_player_name(player_key, name)
        except OSError as e:
            return self._handle_error(0, e, "save player name")
        return {
            'success': True,
            'message': f"Player name set to {name}",
            'user_message': f"✅ Your leaderboard name is now **{name}**"
        }

    # --- Status ---

    def get_session_progress(self, channel_id: int) -> Optional[Dict[str, Any]]:
        session = self._sessions.get(channel_id)
        return session.progress() if session is not None else None

    def get_status_summary(self, channel_id: int) -> str:
        """
        Get a human-readable summary of the channel's game.

        Returns:
            Formatted string describing the session status
        """
        info = self.get_session_progress(channel_id)
        if info is None or info['phase'] == GamePhase.IDLE.value:
            return "No game running in this channel."

        parts = [f"Mode: {info['mode']}{' (time attack)' if info['time_attack'] else ''}"]
        parts.append(f"Category: {info['category']}")
        parts.append(f"Question: {info['current_question']}/{info['total_questions']}")
        if info['score'] is not None:
            parts.append(f"Score: {info['score']}")
            parts.append(f"Streak: {info['streak']}")
        else:
            scores = info['team_scores']
            parts.append(f"Blue {scores.get('blue', 0)} - Black {scores.get('black', 0)}")
            parts.append(f"Turn: {info['turn']}")
        parts.append(f"Tokens: {info['faith_tokens']}")
        parts.append(f"Timer: {info['time_remaining']}s ({info['timer_state']})")
        return " | ".join(parts)

    def get_all_active_sessions(self) -> List[int]:
        return [channel_id for channel_id in self._sessions if self.has_active_session(channel_id)]

    async def shutdown(self) -> None:
        """Cancel every timer driver, finish pending leaderboard writes and drop all sessions."""
        tasks = [task for task in self._timer_tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._timer_tasks.clear()
        await self.wait_for_records()
        for session in self._sessions.values():
            if session.phase != GamePhase.IDLE:
                session.exit()
        self._sessions.clear()
        self.logger.info("GameController shut down")
