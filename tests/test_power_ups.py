"""
Unit tests for the Faith Token economy.
"""
import unittest
from unittest.mock import Mock

from trivia_challenge.errors import InsufficientTokens, InvalidState
from trivia_challenge.power_ups import PowerUpEconomy
from tests.test_fixtures import FakeScheduler


class TestPowerUpEconomy(unittest.TestCase):

    def setUp(self):
        self.scheduler = FakeScheduler()
        self.economy = PowerUpEconomy(self.scheduler)

    def test_double_points_requires_token(self):
        with self.assertRaises(InsufficientTokens):
            self.economy.activate_double_points()
        self.assertEqual(self.economy.power_ups_used, 0)

    def test_double_points_consumed_once(self):
        self.economy.earn_token()
        self.economy.activate_double_points()

        self.assertEqual(self.economy.token_balance, 0)
        self.assertEqual(self.economy.consume_double_points(), 2)
        self.assertEqual(self.economy.consume_double_points(), 1)

    def test_double_points_cannot_stack(self):
        self.economy.earn_token()
        self.economy.earn_token()
        self.economy.activate_double_points()
        with self.assertRaises(InvalidState):
            self.economy.activate_double_points()
        self.assertEqual(self.economy.token_balance, 1)

    def test_freeze_pauses_and_resumes(self):
        pause, resume = Mock(), Mock()
        self.economy.earn_token()
        self.economy.activate_freeze(pause, resume, 5000)

        pause.assert_called_once()
        resume.assert_not_called()
        self.assertTrue(self.economy.freeze_active)
        self.assertEqual(self.scheduler.handles[0].delay, 5.0)

        self.scheduler.fire_all()
        resume.assert_called_once()
        self.assertFalse(self.economy.freeze_active)

    def test_freeze_without_tokens_leaves_timer_alone(self):
        pause, resume = Mock(), Mock()
        with self.assertRaises(InsufficientTokens):
            self.economy.activate_freeze(pause, resume)
        pause.assert_not_called()
        self.assertEqual(self.scheduler.handles, [])

    def test_failing_scheduler_changes_nothing(self):
        pause = Mock()
        economy = PowerUpEconomy(Mock(side_effect=RuntimeError("no running event loop")))
        economy.earn_token()

        with self.assertRaises(RuntimeError):
            economy.activate_freeze(pause, Mock())

        pause.assert_not_called()
        self.assertEqual(economy.token_balance, 1)
        self.assertEqual(economy.power_ups_used, 0)
        self.assertTrue(economy.can_activate_freeze())

    def test_second_freeze_while_active_is_rejected(self):
        self.economy.earn_token()
        self.economy.earn_token()
        self.economy.activate_freeze(Mock(), Mock())
        with self.assertRaises(InvalidState):
            self.economy.activate_freeze(Mock(), Mock())

    def test_cancel_freeze_drops_resume(self):
        resume = Mock()
        self.economy.earn_token()
        self.economy.activate_freeze(Mock(), resume)
        self.economy.cancel_freeze()
        self.scheduler.fire_all()

        resume.assert_not_called()
        self.assertFalse(self.economy.freeze_active)

    def test_reset_clears_everything(self):
        self.economy.earn_token()
        self.economy.activate_double_points()
        self.economy.reset()

        self.assertEqual(self.economy.token_balance, 0)
        self.assertFalse(self.economy.double_points_active)
        self.assertEqual(self.economy.tokens_earned, 0)
        self.assertEqual(self.economy.power_ups_used, 0)


if __name__ == '__main__':
    unittest.main()
