"""
Question bank for loading, validating and drawing trivia questions.
"""
import json
import os
import random
import logging
import time
from typing import Dict, Iterable, List, Optional, Sequence
from pathlib import Path

from .models import Question
from .errors import InsufficientQuestions

ALL_CATEGORIES = "All"
REQUIRED_FIELDS = ("id", "question", "options", "answer", "category", "difficulty")

logger = logging.getLogger(__name__)


def fisher_yates(items: list, rng: Optional[random.Random] = None) -> list:
    """
    Shuffle a list in place with an unbiased Fisher-Yates pass.

    Args:
        items: List to shuffle
        rng: Random source, module-level random if None

    Returns:
        The same list, shuffled
    """
    rand = rng or random
    for i in range(len(items) - 1, 0, -1):
        j = rand.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def validate_question(data: dict) -> Optional[str]:
    """
    Validate a raw question record.

    Returns:
        None if the record is valid, otherwise a description of the problem
    """
    if not isinstance(data, dict):
        return "Question must be an object"

    for name in REQUIRED_FIELDS:
        if not data.get(name):
            return f"Question missing required field '{name}'"

    if not isinstance(data["options"], list) or len(data["options"]) < 2:
        return "'options' must be an array with at least two entries"

    if not all(isinstance(option, str) for option in data["options"]):
        return "Every option must be a string"

    if data["answer"] not in data["options"]:
        return f"Correct answer not in options: {data['answer']!r}"

    if "explanation" in data and data["explanation"] is not None and not isinstance(data["explanation"], str):
        return "'explanation' must be a string"

    return None


class QuestionBank:
    """Holds question records and produces shuffled draws without replacement."""

    def __init__(
        self,
        questions: Optional[Iterable[Question]] = None,
        question_directory: str = "./questions/",
        rng: Optional[random.Random] = None
    ):
        """
        Initialize the bank.

        Args:
            questions: Pre-validated questions to hold, if any
            question_directory: Directory containing JSON question files
            rng: Random source used for every shuffle
        """
        self.question_directory = Path(question_directory)
        self.rng = rng or random.Random()
        self._questions: List[Question] = []
        self._ids: set = set()
        self.load_errors: List[str] = []
        self.sample_bank_active = False

        for question in questions or []:
            self.add_question(question)

    # --- Loading ---

    def add_question(self, question: Question) -> bool:
        """Add a question, ignoring duplicates by identity."""
        if question.id in self._ids:
            self.load_errors.append(f"Duplicate question id: {question.id}")
            logger.warning(f"Skipping duplicate question id {question.id}")
            return False
        self._questions.append(question)
        self._ids.add(question.id)
        return True

    def load_question_files(self) -> int:
        """
        Load all JSON files from the question directory.

        Returns:
            Number of questions held after loading
        """
        self._questions.clear()
        self._ids.clear()
        self.load_errors.clear()
        self.sample_bank_active = False

        if not self.question_directory.is_dir():
            self.load_errors.append(f"Question directory not found: {self.question_directory}")
            return self._load_sample_bank()

        try:
            json_files = sorted(self.question_directory.glob("*.json"))
        except OSError as e:
            self.load_errors.append(f"System error scanning {self.question_directory}: {e}")
            return self._load_sample_bank()

        if not json_files:
            logger.warning(f"No JSON files found in {self.question_directory}")
            self.load_errors.append(f"No question files found in {self.question_directory}")
            return self._load_sample_bank()

        for json_file in json_files:
            error = self._load_question_file(json_file)
            if error:
                self.load_errors.append(f"{json_file.name}: {error}")

        if not self._questions:
            logger.error("No question files could be loaded successfully")
            self.load_errors.append("All question files failed to load")
            return self._load_sample_bank()

        logger.info(
            f"Loaded {len(self._questions)} questions from {len(json_files)} files",
            extra={
                'event_type': 'question_bank_loaded',
                'question_count': len(self._questions),
                'file_count': len(json_files),
                'timestamp': time.time()
            }
        )
        if self.load_errors:
            logger.warning(f"Encountered {len(self.load_errors)} loading errors")
        return len(self._questions)

    def _load_question_file(self, json_file: Path) -> Optional[str]:
        """
        Load a single question file.

        Returns:
            None on success, otherwise an error message
        """
        if not os.access(json_file, os.R_OK):
            return "Permission denied: Cannot read file"

        max_size = 10 * 1024 * 1024
        if json_file.stat().st_size > max_size:
            return f"File too large. Maximum size is {max_size // 1024 // 1024}MB"

        try:
            with open(json_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in {json_file}: {e}")
            return f"Invalid JSON: {e}"
        except OSError as e:
            logger.error(f"Failed to read question file {json_file}: {e}")
            return f"System error: {e}"

        if not isinstance(data, dict) or not isinstance(data.get("questions"), list):
            return "File must contain a 'questions' array"

        loaded = 0
        for index, record in enumerate(data["questions"]):
            problem = validate_question(record)
            if problem:
                logger.error(f"Invalid question {index} in {json_file.name}: {problem}")
                self.load_errors.append(f"{json_file.name}[{index}]: {problem}")
                continue
            if self.add_question(self._parse_question(record)):
                loaded += 1

        if loaded == 0:
            return "No valid questions found in file"

        logger.info(f"Loaded {loaded} questions from '{json_file.name}'")
        return None

    @staticmethod
    def _parse_question(record: dict) -> Question:
        """Build a Question from a validated record."""
        return Question(
            id=record["id"],
            category=record["category"],
            text=record["question"],
            options=tuple(record["options"]),
            answer=record["answer"],
            explanation=record.get("explanation"),
            difficulty=record["difficulty"]
        )

    def _load_sample_bank(self) -> int:
        """Fall back to a small built-in bank when no files could be loaded."""
        sample = [
            Question(
                id="BP001", category="Bible People",
                text="Who was thrown into a den of lions but was protected by God?",
                options=("Joseph", "Daniel", "David", "Jeremiah"), answer="Daniel",
                explanation="God sent an angel to shut the lions' mouths.", difficulty="easy"
            ),
            Question(
                id="BP002", category="Bible People",
                text="Who built the ark?",
                options=("Moses", "Abraham", "Noah", "Elijah"), answer="Noah",
                explanation="Noah built the ark at God's command.", difficulty="easy"
            ),
            Question(
                id="DH001", category="Diet & Health",
                text="What was man's original diet in Eden?",
                options=("Fruits, grains, nuts, and vegetables", "Fish and bread",
                         "Meat and dairy", "Honey and locusts"),
                answer="Fruits, grains, nuts, and vegetables", difficulty="easy"
            ),
        ]
        for question in sample:
            self.add_question(question)
        self.sample_bank_active = True
        logger.warning("Loaded built-in sample bank due to file loading failures")
        return len(self._questions)

    def get_loading_summary(self) -> Dict[str, any]:
        """Summarise the last load operation."""
        return {
            'total_questions': len(self._questions),
            'has_errors': bool(self.load_errors),
            'error_count': len(self.load_errors),
            'errors': self.load_errors.copy(),
            'sample_bank_active': self.sample_bank_active,
            'question_directory': str(self.question_directory),
            'categories': self.load_categories()
        }

    # --- Queries ---

    @property
    def questions(self) -> List[Question]:
        return list(self._questions)

    def __len__(self) -> int:
        return len(self._questions)

    def load_categories(self) -> List[str]:
        """
        Distinct non-empty categories in first-seen order, after the "All" wildcard.
        """
        categories = [ALL_CATEGORIES]
        for question in self._questions:
            if question.category and question.category not in categories:
                categories.append(question.category)
        return categories

    def _filter(self, category: str) -> List[Question]:
        if category == ALL_CATEGORIES:
            return list(self._questions)
        return [q for q in self._questions if q.category == category]

    def draw(self, category: str, count: int) -> List[Question]:
        """
        Draw up to ``count`` shuffled questions from a category.

        Raises:
            InsufficientQuestions: If the category has no questions
        """
        pool = fisher_yates(self._filter(category), self.rng)
        if not pool:
            raise InsufficientQuestions(f"No questions found for category: {category}")
        return pool[:max(count, 0)]

    def draw_excluding(
        self,
        category: str,
        exclude_ids: Iterable[str],
        lenient: bool = False
    ) -> List[Question]:
        """
        Draw every question of a category whose id is not excluded, shuffled.

        Both strict and lenient draws accept any pool of at least one question.

        Raises:
            InsufficientQuestions: If nothing remains after exclusion
        """
        excluded = set(exclude_ids)
        pool = fisher_yates(
            [q for q in self._filter(category) if q.id not in excluded],
            self.rng
        )
        if len(pool) < 1:
            logger.warning(
                f"Exclusion draw left no questions for category {category}",
                extra={
                    'event_type': 'draw_insufficient',
                    'category': category,
                    'excluded': len(excluded),
                    'lenient': lenient,
                    'timestamp': time.time()
                }
            )
            raise InsufficientQuestions(
                'Too few unique questions available for a full game. '
                'Please try "All" categories or add more questions.'
            )
        return pool

    def shuffled_options(self, question: Question) -> tuple:
        """Return the question's options in a fresh random order."""
        return tuple(fisher_yates(list(question.options), self.rng))

    def get_question(self, question_id: str) -> Optional[Question]:
        for question in self._questions:
            if question.id == question_id:
                return question
        return None

    @staticmethod
    def is_prophecy(question: Optional[Question]) -> bool:
        """Whether a question belongs to the prophecy-themed categories."""
        return question is not None and question.category in ("Prophecy", "The Great Controversy")

    def filtered_count(self, category: str, exclude_ids: Sequence[str] = ()) -> int:
        excluded = set(exclude_ids)
        return sum(1 for q in self._filter(category) if q.id not in excluded)
