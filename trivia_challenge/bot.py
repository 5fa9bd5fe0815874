import discord
from discord.ext import commands
import logging
import asyncio
from typing import Optional, Set
import os

from .models import (
    AnswerResolved, Cue, GameMode, QuestionShown, ResultSummary, Team, TimerTick
)
from .question_bank import QuestionBank
from .config_manager import ConfigManager
from .leaderboard_store import JsonLeaderboardStore
from .controller import GameController, OPTION_LETTERS
from .game_session import SessionObserver
from .results import format_time, star_explanation

logger = logging.getLogger(__name__)

TEAM_COLORS = {Team.BLUE: 0x3366ff, Team.BLACK: 0x222222}
CUE_MESSAGES = {
    "time_up": "⏰ Time's up!",
    "streak_level:3": "🔥 3 in a row!",
    "streak_level:5": "🔥🔥 5 in a row!",
    "streak_level:7": "🔥🔥🔥 7 in a row!",
    "streak_level:10": "🌟 10 in a row! Unstoppable!",
}


class DiscordRenderer(SessionObserver):
    """
    Turns session events into channel messages.

    Session hooks are synchronous, so each send is scheduled as a task on the
    running loop; the question message is edited in place as the timer ticks.
    """

    def __init__(self, channel: discord.abc.Messageable):
        self.channel = channel
        self.question_message: Optional[discord.Message] = None
        self.current_question: Optional[QuestionShown] = None
        self._tasks: Set[asyncio.Task] = set()

    def _schedule(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send(self, **kwargs) -> Optional[discord.Message]:
        try:
            return await self.channel.send(**kwargs)
        except discord.HTTPException as e:
            logger.error(f"Failed to send game message: {e}")
            return None

    async def _send_question(self, embed: discord.Embed) -> None:
        self.question_message = await self._send(embed=embed)

    async def _edit_question(self, embed: discord.Embed) -> None:
        if self.question_message is None:
            return
        try:
            await self.question_message.edit(embed=embed)
        except discord.HTTPException as e:
            logger.error(f"Failed to update timer message: {e}")

    def question_embed(self, event: QuestionShown, remaining: Optional[int] = None) -> discord.Embed:
        title = f"🎯 Question {event.question_number}/{event.total_questions}"
        if event.is_lightning_round:
            title = "⚡ Lightning Round! " + title
        color = TEAM_COLORS.get(event.team, 0x00ff00)
        if remaining is not None and remaining <= 3:
            color = 0xff6600 if remaining > 1 else 0xff0000

        embed = discord.Embed(title=title, description=event.question_text, color=color)
        embed.add_field(
            name="Options",
            value="\n".join(f"**{OPTION_LETTERS[i]}.** {option}" for i, option in enumerate(event.options)),
            inline=False
        )
        embed.add_field(name="📚 Category", value=event.category_label, inline=True)
        embed.add_field(name="🎲 Max Wager", value=str(event.wager_max), inline=True)
        if event.team is not None:
            embed.add_field(name="👥 Turn", value=f"{event.team.value.title()} team", inline=True)
        if remaining is not None:
            timer_emoji = "⏱️" if remaining > 3 else "⚠️" if remaining > 1 else "🚨"
            embed.add_field(
                name=f"{timer_emoji} Time Remaining",
                value=f"{remaining} second{'s' if remaining != 1 else ''}",
                inline=True
            )
        embed.set_footer(text="Answer with /answer A-D")
        return embed

    def on_question_shown(self, event: QuestionShown) -> None:
        self.current_question = event
        self.question_message = None
        self._schedule(self._send_question(self.question_embed(event)))

    def on_timer_tick(self, event: TimerTick) -> None:
        remaining = event.time_remaining
        if self.current_question is None or not (remaining % 5 == 0 or remaining <= 3):
            return
        self._schedule(self._edit_question(self.question_embed(self.current_question, remaining)))

    def on_answer_scored(self, event: AnswerResolved) -> None:
        if event.timed_out:
            title, color = "⏰ Time's Up!", 0xff0000
        elif event.is_correct:
            title, color = "✅ Correct!", 0x00ff00
        else:
            title, color = "❌ Incorrect", 0xff0000

        embed = discord.Embed(title=title, color=color)
        embed.add_field(name="Correct Answer", value=f"**{event.correct_option}**", inline=False)
        if event.explanation:
            embed.add_field(name="📖 Explanation", value=event.explanation, inline=False)
        if not event.timed_out:
            sign = "+" if event.score_delta >= 0 else ""
            label = f"{event.team.value.title()} team" if event.team else "Points"
            embed.add_field(name=label, value=f"{sign}{event.score_delta}", inline=True)
        self._schedule(self._send(embed=embed))

    def on_cue(self, cue: Cue) -> None:
        text = CUE_MESSAGES.get(cue.name)
        if text is None and cue.name.startswith("streak_level:"):
            text = f"🌟 {cue.name.split(':', 1)[1]} in a row!"
        if text is not None:
            self._schedule(self._send(content=text))

    def on_round_boundary(self, blue_final_score: int) -> None:
        embed = discord.Embed(
            title="🔵 Blue Team's Round Is Over",
            description=f"Blue scored **{blue_final_score}** points.\nBlack team, use `/continue` when ready.",
            color=TEAM_COLORS[Team.BLUE]
        )
        self._schedule(self._send(embed=embed))

    def on_round_advanced(self, team: Team) -> None:
        self._schedule(self._send(content=f"⚫ {team.value.title()} team's turn begins!"))

    def on_finished(self, summary: ResultSummary) -> None:
        self.current_question = None
        self._schedule(self._send(embed=self.results_embed(summary)))

    def results_embed(self, summary: ResultSummary) -> discord.Embed:
        embed = discord.Embed(title="🏁 Game Over", color=0xffcc00)
        if summary.team_scores:
            blue = summary.team_scores.get(Team.BLUE, 0)
            black = summary.team_scores.get(Team.BLACK, 0)
            winner = f"{summary.winner.value.title()} team wins!" if summary.winner else "It's a tie!"
            embed.description = f"🔵 Blue {blue} - ⚫ Black {black}\n**{winner}**"
        else:
            embed.description = f"Final score: **{summary.score}**"
        embed.add_field(
            name="⭐ Rating",
            value=f"{'⭐' * summary.stars}\n{star_explanation(summary.stars)}",
            inline=False
        )
        embed.add_field(
            name="📊 Stats",
            value=(
                f"Correct: {summary.stats.correct_answers}/{summary.stats.total_questions} "
                f"({summary.correct_pct}%)\n"
                f"Longest streak: {summary.stats.longest_streak}\n"
                f"Time: {format_time(summary.elapsed_seconds)}"
            ),
            inline=False
        )
        if summary.achievements:
            embed.add_field(
                name="🏅 Achievements",
                value="\n".join(f"**{a.name}** - {a.description}" for a in summary.achievements),
                inline=False
            )
        return embed


class TriviaBot(commands.Bot):
    """Discord bot hosting Trivia Challenge games"""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,  # Fallback prefix, mainly using slash commands
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.question_bank: Optional[QuestionBank] = None
        self.config_manager: Optional[ConfigManager] = None
        self.game_controller: Optional[GameController] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            self.config_manager = ConfigManager()
            if self.app_config:
                self.apply_configuration()

            settings = self.config_manager.get_game_settings()
            self.question_bank = QuestionBank(question_directory=settings.question_directory)
            self.load_question_data()

            store = JsonLeaderboardStore(settings.leaderboard_path)
            self.game_controller = GameController(self.question_bank, self.config_manager, store)

            await self.setup_commands()
            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def apply_configuration(self):
        """Apply the game section of config.json; invalid values keep defaults."""
        rejected = self.config_manager.apply_config(self.app_config)
        for message in rejected:
            logger.warning(f"Configuration value rejected: {message}")
        logger.info("Configuration applied")

    def load_question_data(self):
        count = self.question_bank.load_question_files()
        summary = self.question_bank.get_loading_summary()
        logger.info(f"Loaded {count} questions in {len(summary['categories']) - 1} categories")
        if summary['sample_bank_active']:
            logger.warning("Using built-in sample questions")

    async def setup_commands(self):
        """Register all slash commands"""
        @self.tree.command(name="help", description="Display available commands and their descriptions")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="categories", description="List question categories")
        async def categories_command(interaction: discord.Interaction):
            await self.handle_categories(interaction)

        @self.tree.command(name="solo", description="Start a solo game")
        async def solo_command(interaction: discord.Interaction, category: Optional[str] = None,
                               time_attack: Optional[bool] = None):
            await self.handle_start(interaction, GameMode.SOLO, category, time_attack)

        @self.tree.command(name="teams", description="Start a blue vs black team game")
        async def teams_command(interaction: discord.Interaction, category: Optional[str] = None,
                                time_attack: Optional[bool] = None):
            await self.handle_start(interaction, GameMode.TEAMS, category, time_attack)

        @self.tree.command(name="answer", description="Answer the current question (A-D)")
        async def answer_command(interaction: discord.Interaction, choice: str):
            await self.handle_answer(interaction, choice)

        @self.tree.command(name="wager", description="Set your wager for the current question")
        async def wager_command(interaction: discord.Interaction, amount: int):
            await self.handle_action(interaction, self.game_controller.set_wager, amount)

        @self.tree.command(name="next", description="Go to the next question")
        async def next_command(interaction: discord.Interaction):
            await self.handle_action(interaction, self.game_controller.advance, ephemeral=True)

        @self.tree.command(name="hint", description="Reveal the answer (costs 3 points)")
        async def hint_command(interaction: discord.Interaction):
            await self.handle_action(interaction, self.game_controller.use_hint)

        @self.tree.command(name="takeaway", description="Remove two wrong options (costs 2 points)")
        async def takeaway_command(interaction: discord.Interaction):
            await self.handle_action(interaction, self.game_controller.use_take_away_two)

        @self.tree.command(name="double", description="Spend a Faith Token to double the next answer")
        async def double_command(interaction: discord.Interaction):
            await self.handle_action(interaction, self.game_controller.activate_double_points)

        @self.tree.command(name="freeze", description="Spend a Faith Token to freeze the timer")
        async def freeze_command(interaction: discord.Interaction):
            await self.handle_action(interaction, self.game_controller.activate_freeze)

        @self.tree.command(name="continue", description="Hand the game to the black team")
        async def continue_command(interaction: discord.Interaction):
            await self.handle_action(interaction, self.game_controller.continue_to_next_team)

        @self.tree.command(name="exit", description="End the current game without saving")
        async def exit_command(interaction: discord.Interaction):
            await self.handle_action(interaction, self.game_controller.exit_game)

        @self.tree.command(name="status", description="Show the current game status")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="leaderboard", description="Show top scores")
        async def leaderboard_command(interaction: discord.Interaction, questions: Optional[int] = None):
            await self.handle_leaderboard(interaction, questions)

        @self.tree.command(name="name", description="Set your leaderboard name")
        async def name_command(interaction: discord.Interaction, name: str):
            result = self.game_controller.set_player_name(str(interaction.user.id), name)
            await self.send_result(interaction, result, ephemeral=True)

        @self.tree.command(name="set_questions", description="Set the number of questions per game (1-100)")
        async def set_questions_command(interaction: discord.Interaction, number: int):
            await self.send_result(interaction, self.config_manager.set_question_count(number))

        @self.tree.command(name="time_attack", description="Toggle time attack mode")
        async def time_attack_command(interaction: discord.Interaction):
            await self.send_result(interaction, self.config_manager.toggle_time_attack())

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        print(f"🤖 {self.user} is Ready and Online!")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.game_controller is not None:
            await self.game_controller.shutdown()
        await super().close()

    # --- Command handlers ---

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        help_embed = discord.Embed(
            title="🎯 Trivia Challenge Commands",
            description="Play solo or blue vs black, wager points and earn Faith Tokens",
            color=0x00ff00
        )
        help_embed.add_field(
            name="🎮 Playing",
            value=(
                "`/solo [category] [time_attack]` - Start a solo game\n"
                "`/teams [category] [time_attack]` - Start a team game\n"
                "`/answer <A-D>` - Answer the current question\n"
                "`/wager <amount>` - Set your stake\n"
                "`/next` - Next question\n"
                "`/continue` - Hand over to the black team (time attack)\n"
                "`/exit` - End the game"
            ),
            inline=False
        )
        help_embed.add_field(
            name="✨ Power-ups & Lifelines",
            value=(
                "`/double` - Double points (1 Faith Token)\n"
                "`/freeze` - Freeze the timer (1 Faith Token)\n"
                "`/hint` - Reveal the answer (-3 points)\n"
                "`/takeaway` - Remove two wrong options (-2 points)"
            ),
            inline=False
        )
        help_embed.add_field(
            name="📋 Other",
            value=(
                "`/categories`, `/status`, `/leaderboard [questions]`, `/name <name>`,\n"
                "`/set_questions <number>`, `/time_attack`"
            ),
            inline=False
        )
        help_embed.add_field(
            name="⚙️ Current Settings",
            value=f"```\n{self.config_manager.get_settings_summary()}\n```",
            inline=False
        )
        await interaction.response.send_message(embed=help_embed)

    async def handle_categories(self, interaction: discord.Interaction):
        categories = self.question_bank.load_categories()
        lines = [f"• {name} ({self.question_bank.filtered_count(name)})" for name in categories]
        embed = discord.Embed(title="📚 Categories", description="\n".join(lines), color=0x6699ff)
        if self.question_bank.sample_bank_active:
            embed.set_footer(text="Using built-in sample questions")
        await interaction.response.send_message(embed=embed)

    async def handle_start(self, interaction: discord.Interaction, mode: GameMode,
                           category: Optional[str], time_attack: Optional[bool]):
        """Handle /solo and /teams"""
        if category is not None and category not in self.question_bank.load_categories():
            await self.send_error_response(
                interaction, f"Unknown category '{category}'. Use `/categories` to list them."
            )
            return

        renderer = DiscordRenderer(interaction.channel)
        await interaction.response.defer()
        result = self.game_controller.start_game(
            interaction.channel_id,
            mode,
            category=category,
            time_attack=time_attack,
            player_key=str(interaction.user.id),
            player_name=interaction.user.display_name,
            observers=[renderer]
        )
        await self.send_result(interaction, result)

    async def handle_answer(self, interaction: discord.Interaction, choice: str):
        result = self.game_controller.submit_answer(interaction.channel_id, choice)
        if result['success']:
            await self.send_info_response(interaction, "📝 Answer locked in", "Answer")
        else:
            await self.send_result(interaction, result)

    async def handle_action(self, interaction: discord.Interaction, action, *args, ephemeral: bool = False):
        """Run a controller operation for this channel and reply with its message."""
        result = action(interaction.channel_id, *args)
        await self.send_result(interaction, result, ephemeral=ephemeral)

    async def handle_status(self, interaction: discord.Interaction):
        summary = self.game_controller.get_status_summary(interaction.channel_id)
        await self.send_info_response(interaction, summary, "📊 Game Status")

    async def handle_leaderboard(self, interaction: discord.Interaction, questions: Optional[int]):
        result = self.game_controller.get_leaderboard(questions)
        if not result['success']:
            await self.send_result(interaction, result)
            return

        entries = result['entries']
        if entries:
            lines = [
                f"**{rank}.** {entry.player_name} - {entry.score} pts "
                f"({entry.correct_answers}/{entry.total_questions}, {format_time(entry.elapsed_seconds)})"
                for rank, entry in enumerate(entries, start=1)
            ]
        else:
            lines = ["No scores yet. Be the first!"]
        embed = discord.Embed(title=result['user_message'], description="\n".join(lines), color=0xffcc00)
        await interaction.response.send_message(embed=embed)

    # --- Responses ---

    async def send_result(self, interaction: discord.Interaction, result: dict, ephemeral: bool = False):
        """Reply with a controller result dictionary."""
        if result['success']:
            try:
                if interaction.response.is_done():
                    await interaction.followup.send(result['user_message'], ephemeral=ephemeral)
                else:
                    await interaction.response.send_message(result['user_message'], ephemeral=ephemeral)
            except discord.HTTPException as e:
                logger.error(f"Failed to send response: {e}")
        else:
            await self.send_error_response(interaction, result['user_message'])

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(title=title, description=message, color=0xff0000)
            embed.set_footer(text="If this error persists, try using /help for available commands")

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        try:
            embed = discord.Embed(title=title, description=message, color=0x6699ff)

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send info response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = TriviaBot(config)

    try:
        logger.info("Starting Trivia Challenge bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
