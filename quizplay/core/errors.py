"""Exceptions raised by the quiz attempt engine."""

from __future__ import annotations


class QuizPlayError(Exception):
    """Base class for engine errors."""


class QuizNotFoundError(QuizPlayError, LookupError):
    def __init__(self, quiz_id: str) -> None:
        super().__init__(f"Quiz {quiz_id!r} not found")
        self.quiz_id = quiz_id


class QuestionNotFoundError(QuizPlayError, LookupError):
    def __init__(self, question_id: str) -> None:
        super().__init__(f"Question {question_id!r} not found")
        self.question_id = question_id


class ScoreNotFoundError(QuizPlayError, LookupError):
    def __init__(self, score_id: str) -> None:
        super().__init__(f"Score {score_id!r} not found")
        self.score_id = score_id


class AttemptNotFoundError(QuizPlayError, LookupError):
    def __init__(self, attempt_id: str) -> None:
        super().__init__(f"Attempt {attempt_id!r} not found")
        self.attempt_id = attempt_id


class ScoreAccessError(QuizPlayError, PermissionError):
    """Raised when a user asks for someone else's score."""


class QuizValidationError(QuizPlayError, ValueError):
    """Raised when a quiz definition is rejected."""


class AttemptStateError(QuizPlayError, RuntimeError):
    """Raised for an interaction the attempt's current phase does not allow."""


class AggregateUpdateError(QuizPlayError):
    """Raised when quiz or user aggregates could not be updated for a new score.

    The score and its aggregates are rolled back together; the caller sees the
    failure instead of a half-applied attempt.
    """

    def __init__(self, message: str, quiz_id: str | None = None, user_id: str | None = None) -> None:
        super().__init__(message)
        self.quiz_id = quiz_id
        self.user_id = user_id
