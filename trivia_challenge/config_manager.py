"""
Configuration manager for Trivia Challenge game settings.
"""
import logging
from typing import Optional, Dict, Any, List
from pathlib import Path

from .models import GameSettings
from .question_bank import ALL_CATEGORIES


class ConfigManager:
    """Manages game settings loaded from config.json and changed by commands."""

    # Default configuration values
    DEFAULT_QUESTION_COUNT = 20
    DEFAULT_QUESTION_DIRECTORY = "./questions/"
    DEFAULT_LEADERBOARD_PATH = "./data/leaderboard.json"

    # Validation limits
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 100
    MIN_TIME_LIMIT = 5
    MAX_TIME_LIMIT = 600
    MIN_FREEZE_MS = 1000
    MAX_FREEZE_MS = 30000

    def __init__(self, settings: Optional[GameSettings] = None):
        self.logger = logging.getLogger(__name__)
        self._settings = settings or GameSettings()

    def get_game_settings(self) -> GameSettings:
        """
        Get a copy of the current game settings.

        Returns:
            GameSettings object with current configuration
        """
        s = self._settings
        return GameSettings(
            question_count=s.question_count,
            category=s.category,
            time_attack=s.time_attack,
            round_size=s.round_size,
            question_time_limit=s.question_time_limit,
            round_time_limit=s.round_time_limit,
            freeze_duration_ms=s.freeze_duration_ms,
            question_directory=s.question_directory,
            leaderboard_path=s.leaderboard_path
        )

    def _failure(self, error_msg: str, user_message: str) -> Dict[str, Any]:
        self.logger.error(error_msg)
        return {'success': False, 'error': error_msg, 'user_message': user_message}

    def _set_int(self, field: str, label: str, value: Any, low: int, high: int, unit: str = "") -> Dict[str, Any]:
        if isinstance(value, bool) or not isinstance(value, int):
            return self._failure(
                f"{label} must be an integer, got {type(value).__name__}",
                f"❌ Invalid input: Expected a number, got {type(value).__name__}"
            )
        if value < low:
            return self._failure(
                f"{label} must be at least {low}",
                f"❌ {label} too small: Minimum is {low}{unit}"
            )
        if value > high:
            return self._failure(
                f"{label} cannot exceed {high}",
                f"❌ {label} too large: Maximum is {high}{unit}"
            )
        setattr(self._settings, field, value)
        self.logger.info(f"{label} set to {value}")
        return {
            'success': True,
            'message': f"{label} set to {value}",
            'user_message': f"✅ {label} set to {value}{unit}"
        }

    def set_question_count(self, count: int) -> Dict[str, Any]:
        """
        Set the number of questions per game.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        return self._set_int(
            'question_count', "Question count", count,
            self.MIN_QUESTION_COUNT, self.MAX_QUESTION_COUNT
        )

    def get_question_count(self) -> int:
        return self._settings.question_count

    def set_question_time_limit(self, seconds: int) -> Dict[str, Any]:
        return self._set_int(
            'question_time_limit', "Question time limit", seconds,
            self.MIN_TIME_LIMIT, self.MAX_TIME_LIMIT, " seconds"
        )

    def set_round_time_limit(self, seconds: int) -> Dict[str, Any]:
        return self._set_int(
            'round_time_limit', "Round time limit", seconds,
            self.MIN_TIME_LIMIT, self.MAX_TIME_LIMIT, " seconds"
        )

    def set_freeze_duration(self, duration_ms: int) -> Dict[str, Any]:
        return self._set_int(
            'freeze_duration_ms', "Freeze duration", duration_ms,
            self.MIN_FREEZE_MS, self.MAX_FREEZE_MS, " ms"
        )

    def set_round_size(self, size: int) -> Dict[str, Any]:
        """Every ``size``-th question becomes a lightning round."""
        return self._set_int('round_size', "Round size", size, 1, self.MAX_QUESTION_COUNT)

    def set_time_attack(self, enabled: bool) -> Dict[str, Any]:
        if not isinstance(enabled, bool):
            return self._failure(
                f"Time attack must be a boolean, got {type(enabled).__name__}",
                f"❌ Invalid input: Expected true/false, got {type(enabled).__name__}"
            )
        self._settings.time_attack = enabled
        state = "enabled" if enabled else "disabled"
        self.logger.info(f"Time attack {state}")
        return {
            'success': True,
            'message': f"Time attack {state}",
            'user_message': f"✅ Time attack mode {state}"
        }

    def toggle_time_attack(self) -> Dict[str, Any]:
        new_value = not self._settings.time_attack
        result = self.set_time_attack(new_value)
        if result['success']:
            result['new_value'] = new_value
        return result

    def set_category(self, category: str, available: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Set the default category.

        Args:
            category: Category name, or "All"
            available: Known categories to validate against, if given
        """
        if not isinstance(category, str) or not category.strip():
            return self._failure("Category cannot be empty", "❌ Please choose a category")
        category = category.strip()
        if available is not None and category not in available:
            return self._failure(
                f"Unknown category: {category}",
                f"❌ Unknown category '{category}'. Use /categories to list them."
            )
        self._settings.category = category
        self.logger.info(f"Category set to {category}")
        return {
            'success': True,
            'message': f"Category set to {category}",
            'user_message': f"✅ Category set to {category}"
        }

    def set_question_directory(self, directory: str) -> Dict[str, Any]:
        if not isinstance(directory, str):
            return self._failure(
                f"Question directory must be a string, got {type(directory).__name__}",
                f"❌ Invalid input: Expected a path string, got {type(directory).__name__}"
            )
        if not directory.strip():
            return self._failure("Question directory cannot be empty", "❌ Directory path cannot be empty")

        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            return self._failure(f"Invalid directory path format: {e}", f"❌ Invalid path format: {directory}")

        self._settings.question_directory = normalized_path
        self.logger.info(f"Question directory set to {normalized_path}")
        return {
            'success': True,
            'message': f"Question directory set to {normalized_path}",
            'user_message': f"✅ Question directory set to {normalized_path}"
        }

    def apply_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply the ``game`` section of a config.json document.

        Invalid values are skipped and keep their defaults.

        Returns:
            User-friendly messages for every rejected value
        """
        game = config.get('game', {}) if isinstance(config, dict) else {}
        setters = {
            'question_count': self.set_question_count,
            'question_time_limit': self.set_question_time_limit,
            'round_time_limit': self.set_round_time_limit,
            'freeze_duration_ms': self.set_freeze_duration,
            'round_size': self.set_round_size,
            'time_attack': self.set_time_attack,
            'category': self.set_category,
            'question_directory': self.set_question_directory,
        }
        rejected = []
        for key, value in game.items():
            if key == 'leaderboard_path':
                if isinstance(value, str) and value.strip():
                    self._settings.leaderboard_path = value
                else:
                    rejected.append(f"❌ Invalid leaderboard path: {value!r}")
                continue
            setter = setters.get(key)
            if setter is None:
                self.logger.warning(f"Ignoring unknown game setting '{key}'")
                continue
            result = setter(value)
            if not result['success']:
                rejected.append(result['user_message'])
        return rejected

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._settings = GameSettings()
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        s = self._settings
        issues = []

        if not isinstance(s.question_count, int) or not (
                self.MIN_QUESTION_COUNT <= s.question_count <= self.MAX_QUESTION_COUNT):
            issues.append(f"Invalid question count: {s.question_count}")

        for label, value in (("question time limit", s.question_time_limit),
                             ("round time limit", s.round_time_limit)):
            if not isinstance(value, int) or not (self.MIN_TIME_LIMIT <= value <= self.MAX_TIME_LIMIT):
                issues.append(f"Invalid {label}: {value}")

        if not isinstance(s.freeze_duration_ms, int) or not (
                self.MIN_FREEZE_MS <= s.freeze_duration_ms <= self.MAX_FREEZE_MS):
            issues.append(f"Invalid freeze duration: {s.freeze_duration_ms}")

        if not isinstance(s.time_attack, bool):
            issues.append(f"Invalid time attack setting: {s.time_attack}")

        if not isinstance(s.question_directory, str) or not s.question_directory.strip():
            issues.append(f"Invalid question directory: {s.question_directory}")

        return {"valid": not issues, "issues": issues}

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        s = self._settings
        category = s.category if s.category != ALL_CATEGORIES else "all categories"
        return (
            f"Game Settings:\n"
            f"• Questions: {s.question_count}\n"
            f"• Category: {category}\n"
            f"• Time Attack: {'on' if s.time_attack else 'off'}\n"
            f"• Question Timer: {s.question_time_limit} seconds\n"
            f"• Round Timer: {s.round_time_limit} seconds\n"
            f"• Freeze: {s.freeze_duration_ms / 1000:g} seconds"
        )
