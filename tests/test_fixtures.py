"""
Test fixtures and sample data for Trivia Challenge tests.
"""
import json
import random
from datetime import date
from pathlib import Path
from typing import Callable, Dict, List, Optional
from unittest.mock import Mock, AsyncMock
import discord

from trivia_challenge.models import GameSettings, Question
from trivia_challenge.question_bank import QuestionBank

MONDAY = date(2024, 1, 1)
FRIDAY = date(2024, 1, 5)


class TestFixtures:
    """Centralized test fixtures for all test modules."""

    @staticmethod
    def create_question(qid: str, category: str = "Bible People", answer_index: int = 0) -> Question:
        options = tuple(f"{qid}-option-{i}" for i in range(4))
        return Question(
            id=qid,
            category=category,
            text=f"Question {qid}?",
            options=options,
            answer=options[answer_index],
            explanation=f"Because of {qid}.",
            difficulty="easy"
        )

    @staticmethod
    def create_sample_questions(count: int = 10, category: str = "Bible People", prefix: str = "BP") -> List[Question]:
        return [TestFixtures.create_question(f"{prefix}{i:03d}", category) for i in range(1, count + 1)]

    @staticmethod
    def create_mixed_questions() -> List[Question]:
        """Questions across three categories, including a prophecy one."""
        return (
            TestFixtures.create_sample_questions(6, "Bible People", "BP")
            + TestFixtures.create_sample_questions(4, "Prophecy", "PR")
            + TestFixtures.create_sample_questions(3, "Music", "MU")
        )

    @staticmethod
    def create_bank(questions: Optional[List[Question]] = None, seed: int = 7) -> QuestionBank:
        return QuestionBank(
            questions if questions is not None else TestFixtures.create_mixed_questions(),
            rng=random.Random(seed)
        )

    @staticmethod
    def create_settings(**overrides) -> GameSettings:
        settings = GameSettings(question_count=5)
        for key, value in overrides.items():
            setattr(settings, key, value)
        return settings

    @staticmethod
    def create_valid_question_json() -> Dict:
        return {
            "questions": [
                {
                    "id": "BP001",
                    "question": "Who built the ark?",
                    "options": ["Moses", "Abraham", "Noah", "Elijah"],
                    "answer": "Noah",
                    "category": "Bible People",
                    "difficulty": "easy",
                    "explanation": "Noah built the ark at God's command."
                },
                {
                    "id": "PR001",
                    "question": "How many beasts rise from the sea in Daniel 7?",
                    "options": ["Two", "Three", "Four", "Seven"],
                    "answer": "Four",
                    "category": "Prophecy",
                    "difficulty": "medium"
                }
            ]
        }

    @staticmethod
    def create_temp_question_files(temp_dir: str) -> Dict[str, Path]:
        """Write a valid, an invalid-JSON and a partially valid question file."""
        base = Path(temp_dir)
        files = {
            'valid': base / "valid.json",
            'broken': base / "broken.json",
            'partial': base / "partial.json",
        }
        files['valid'].write_text(json.dumps(TestFixtures.create_valid_question_json()), encoding='utf-8')
        files['broken'].write_text('{"questions": [', encoding='utf-8')
        files['partial'].write_text(json.dumps({
            "questions": [
                {
                    "id": "MU001",
                    "question": "Song is a weapon against what?",
                    "options": ["Temptation", "Discouragement"],
                    "answer": "Discouragement",
                    "category": "Music",
                    "difficulty": "easy"
                },
                {
                    "id": "MU002",
                    "question": "Missing answer from options",
                    "options": ["A", "B"],
                    "answer": "C",
                    "category": "Music",
                    "difficulty": "easy"
                }
            ]
        }), encoding='utf-8')
        return files


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHandle:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Records delayed callbacks so tests can fire them on demand."""

    def __init__(self):
        self.handles: List[FakeHandle] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    def fire_all(self) -> None:
        pending, self.handles = self.handles, []
        for handle in pending:
            if not handle.cancelled:
                handle.callback()


class MockDiscordObjects:
    """Mock Discord objects for testing bot functionality."""

    @staticmethod
    def create_mock_interaction(channel_id: int = 12345, user_id: int = 67890) -> Mock:
        """Create mock Discord interaction."""
        interaction = Mock(spec=discord.Interaction)
        interaction.channel_id = channel_id
        interaction.channel = MockDiscordObjects.create_mock_channel(channel_id)
        interaction.user = Mock()
        interaction.user.id = user_id
        interaction.user.display_name = "Tester"
        interaction.response = Mock()
        interaction.response.is_done.return_value = False
        interaction.response.send_message = AsyncMock()
        interaction.response.defer = AsyncMock()
        interaction.followup = Mock()
        interaction.followup.send = AsyncMock()
        return interaction

    @staticmethod
    def create_mock_channel(channel_id: int = 12345) -> Mock:
        """Create mock Discord channel."""
        channel = Mock(spec=discord.TextChannel)
        channel.id = channel_id
        channel.send = AsyncMock(return_value=MockDiscordObjects.create_mock_message())
        return channel

    @staticmethod
    def create_mock_message(message_id: int = 11111) -> Mock:
        """Create mock Discord message."""
        message = Mock(spec=discord.Message)
        message.id = message_id
        message.edit = AsyncMock()
        return message
