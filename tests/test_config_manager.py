"""
Unit tests for the ConfigManager class.
"""
import unittest

from trivia_challenge.config_manager import ConfigManager
from trivia_challenge.models import GameSettings


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager setters and validation."""

    def setUp(self):
        self.config_manager = ConfigManager()

    def test_defaults(self):
        settings = self.config_manager.get_game_settings()
        self.assertEqual(settings.question_count, 20)
        self.assertEqual(settings.category, "All")
        self.assertFalse(settings.time_attack)
        self.assertEqual(settings.question_time_limit, 20)
        self.assertEqual(settings.round_time_limit, 180)

    def test_get_game_settings_returns_copy(self):
        settings = self.config_manager.get_game_settings()
        settings.question_count = 99
        self.assertEqual(self.config_manager.get_question_count(), 20)

    def test_set_question_count_valid(self):
        result = self.config_manager.set_question_count(50)
        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_question_count(), 50)

    def test_set_question_count_out_of_range(self):
        for value in (0, 101):
            result = self.config_manager.set_question_count(value)
            self.assertFalse(result['success'])
            self.assertIn('user_message', result)
        self.assertEqual(self.config_manager.get_question_count(), 20)

    def test_set_question_count_wrong_type(self):
        self.assertFalse(self.config_manager.set_question_count("ten")['success'])
        self.assertFalse(self.config_manager.set_question_count(True)['success'])

    def test_toggle_time_attack(self):
        result = self.config_manager.toggle_time_attack()
        self.assertTrue(result['success'])
        self.assertTrue(result['new_value'])
        self.assertTrue(self.config_manager.get_game_settings().time_attack)

    def test_set_category_against_known_list(self):
        self.assertTrue(self.config_manager.set_category("Music", ["All", "Music"])['success'])
        self.assertFalse(self.config_manager.set_category("Astronomy", ["All", "Music"])['success'])
        self.assertEqual(self.config_manager.get_game_settings().category, "Music")

    def test_apply_config_reports_rejections(self):
        rejected = self.config_manager.apply_config({
            "game": {
                "question_count": 10,
                "round_time_limit": 1,
                "time_attack": True,
                "leaderboard_path": "./tmp/board.json",
                "unknown_key": 3
            }
        })
        settings = self.config_manager.get_game_settings()

        self.assertEqual(len(rejected), 1)
        self.assertEqual(settings.question_count, 10)
        self.assertEqual(settings.round_time_limit, 180)
        self.assertTrue(settings.time_attack)
        self.assertEqual(settings.leaderboard_path, "./tmp/board.json")

    def test_validate_settings(self):
        self.assertTrue(self.config_manager.validate_settings()['valid'])
        broken = ConfigManager(GameSettings(question_count=0, freeze_duration_ms=10))
        result = broken.validate_settings()
        self.assertFalse(result['valid'])
        self.assertEqual(len(result['issues']), 2)

    def test_reset_to_defaults(self):
        self.config_manager.set_question_count(5)
        self.config_manager.reset_to_defaults()
        self.assertEqual(self.config_manager.get_question_count(), 20)

    def test_settings_summary(self):
        summary = self.config_manager.get_settings_summary()
        self.assertIn("Questions: 20", summary)
        self.assertIn("all categories", summary)
        self.assertIn("Freeze: 5 seconds", summary)


if __name__ == '__main__':
    unittest.main()
