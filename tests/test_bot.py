"""
Tests for the Discord bot handlers and the session renderer.
Discord API objects are mocked.
"""
import asyncio
import unittest
from unittest.mock import Mock, patch

from trivia_challenge.bot import DiscordRenderer, TriviaBot
from trivia_challenge.config_manager import ConfigManager
from trivia_challenge.models import (
    AnswerResolved, Cue, GameMode, QuestionShown, Team, TimerTick
)
from trivia_challenge.results import ResultsEvaluator
from tests.test_fixtures import TestFixtures, MockDiscordObjects


def make_question_event(team=None, lightning=False) -> QuestionShown:
    return QuestionShown(
        question_text="Who built the ark?",
        category_label="Bible People",
        options=("Moses", "Noah", "Elijah", "Abraham"),
        question_number=1,
        total_questions=5,
        team=team,
        wager_max=20,
        is_lightning_round=lightning
    )


class TestDiscordRenderer(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.channel = MockDiscordObjects.create_mock_channel()
        self.renderer = DiscordRenderer(self.channel)

    async def flush(self):
        await asyncio.sleep(0)
        await asyncio.sleep(0)

    async def test_question_is_sent_and_remembered(self):
        self.renderer.on_question_shown(make_question_event(team=Team.BLUE))
        await self.flush()

        embed = self.channel.send.call_args.kwargs['embed']
        self.assertIn("Question 1/5", embed.title)
        self.assertIn("**B.** Noah", embed.fields[0].value)
        self.assertIs(self.renderer.question_message, self.channel.send.return_value)

    async def test_lightning_title(self):
        embed = self.renderer.question_embed(make_question_event(lightning=True))
        self.assertTrue(embed.title.startswith("⚡ Lightning Round!"))

    async def test_ticks_edit_question_message_when_throttle_allows(self):
        self.renderer.on_question_shown(make_question_event())
        await self.flush()
        message = self.renderer.question_message

        self.renderer.on_timer_tick(TimerTick(time_remaining=17, timer="per_question"))
        await self.flush()
        message.edit.assert_not_called()

        self.renderer.on_timer_tick(TimerTick(time_remaining=15, timer="per_question"))
        await self.flush()
        message.edit.assert_called_once()

    async def test_answer_embed_shows_explanation(self):
        self.renderer.on_answer_scored(AnswerResolved(
            is_correct=True, correct_option="Noah", score_delta=5, explanation="Genesis 6."
        ))
        await self.flush()
        embed = self.channel.send.call_args.kwargs['embed']
        self.assertEqual(embed.title, "✅ Correct!")
        self.assertIn("Genesis 6.", [field.value for field in embed.fields])

    async def test_unknown_cues_are_silent(self):
        self.renderer.on_cue(Cue("correct"))
        self.renderer.on_cue(Cue("streak_level:15"))
        await self.flush()
        self.channel.send.assert_called_once_with(content="🌟 15 in a row!")

    async def test_results_embed_for_teams(self):
        summary = ResultsEvaluator().evaluate(
            mode=GameMode.TEAMS, score=0, correct_answers=2, total_questions=4, longest_streak=0,
            avg_answer_time=3.0, power_ups_used=0, tokens_earned=0, had_wrong_streak=False,
            elapsed_seconds=95, team_scores={Team.BLUE: 10, Team.BLACK: 0}
        )
        embed = self.renderer.results_embed(summary)
        self.assertIn("Blue team wins!", embed.description)
        self.assertIn("1:35", embed.fields[1].value)


class TestTriviaBotHandlers(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.bot = TriviaBot({'bot': {'command_prefix': '?'}})
        self.bot.config_manager = ConfigManager(TestFixtures.create_settings())
        self.bot.question_bank = TestFixtures.create_bank()
        self.bot.game_controller = Mock()
        self.interaction = MockDiscordObjects.create_mock_interaction()

    async def test_command_prefix_from_config(self):
        self.assertEqual(self.bot.command_prefix, '?')

    async def test_start_rejects_unknown_category(self):
        await self.bot.handle_start(self.interaction, GameMode.SOLO, "Astronomy", None)
        self.bot.game_controller.start_game.assert_not_called()
        self.assertTrue(self.interaction.response.send_message.call_args.kwargs['ephemeral'])

    async def test_start_attaches_renderer(self):
        self.bot.game_controller.start_game.return_value = {
            'success': True, 'message': "ok", 'user_message': "🎮 Solo game started"
        }
        self.interaction.response.is_done.return_value = True

        await self.bot.handle_start(self.interaction, GameMode.SOLO, "Music", True)

        kwargs = self.bot.game_controller.start_game.call_args.kwargs
        self.assertEqual(kwargs['category'], "Music")
        self.assertTrue(kwargs['time_attack'])
        self.assertEqual(kwargs['player_key'], "67890")
        self.assertIsInstance(kwargs['observers'][0], DiscordRenderer)
        self.interaction.followup.send.assert_called_once_with("🎮 Solo game started", ephemeral=False)

    async def test_answer_acknowledged_privately(self):
        self.bot.game_controller.submit_answer.return_value = {
            'success': True, 'message': "scored", 'user_message': "✅ Correct!"
        }
        await self.bot.handle_answer(self.interaction, "B")
        self.bot.game_controller.submit_answer.assert_called_once_with(12345, "B")
        self.assertTrue(self.interaction.response.send_message.call_args.kwargs['ephemeral'])

    async def test_failed_action_sends_error_embed(self):
        action = Mock(return_value={'success': False, 'error': "x", 'user_message': "🔒 No tokens"})
        await self.bot.handle_action(self.interaction, action)

        action.assert_called_once_with(12345)
        embed = self.interaction.response.send_message.call_args.kwargs['embed']
        self.assertEqual(embed.description, "🔒 No tokens")

    async def test_leaderboard_lists_entries(self):
        from trivia_challenge.results import build_entry
        self.bot.game_controller.get_leaderboard.return_value = {
            'success': True, 'message': "ok", 'user_message': "🏆 Top scores for 20-question games",
            'bucket': 20, 'entries': [build_entry("Ada", 90, 18, 20, 65, 20)]
        }
        await self.bot.handle_leaderboard(self.interaction, None)
        embed = self.interaction.response.send_message.call_args.kwargs['embed']
        self.assertIn("Ada - 90 pts", embed.description)

    async def test_apply_configuration_logs_rejections(self):
        self.bot.app_config = {'game': {'question_count': 0}}
        with patch('trivia_challenge.bot.logger') as mock_logger:
            self.bot.apply_configuration()
        mock_logger.warning.assert_called_once()


if __name__ == '__main__':
    unittest.main()
