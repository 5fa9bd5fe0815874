"""
Exceptions raised by the Trivia Challenge game engine.
"""


class TriviaError(Exception):
    """Base exception for game engine errors."""
    pass


class InsufficientQuestions(TriviaError):
    """Raised when the category or exclusion filter leaves no questions to play."""
    pass


class InsufficientTokens(TriviaError):
    """Raised when a power-up is activated without a Faith Token to spend."""
    pass


class InvalidState(TriviaError):
    """Raised when an operation is not valid in the session's current state."""
    pass
