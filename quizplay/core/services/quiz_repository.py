"""In-memory store for quizzes and their play statistics."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from uuid import uuid4

from quizplay.constants.quiz_constants import (
    MAX_EXPLANATION_LENGTH,
    MAX_OPTION_COUNT,
    MAX_POINTS,
    MAX_PROMPT_LENGTH,
    MAX_TIME_LIMIT_SECONDS,
    MAX_TITLE_LENGTH,
    MIN_OPTION_COUNT,
    MIN_TIME_LIMIT_SECONDS,
)
from quizplay.core.errors import QuestionNotFoundError, QuizNotFoundError, QuizValidationError
from quizplay.core.models import Question, Quiz, QuizStats


class QuizRepository:
    """Stores validated quiz snapshots and the aggregates derived from plays."""

    def __init__(self) -> None:
        self._quizzes: dict[str, Quiz] = {}
        self._stats: dict[str, QuizStats] = {}

    def add_quiz(
        self,
        author_id: str,
        title: str,
        questions: list[Question],
        passing_score: int = 60,
        time_limit_seconds: int | None = None,
        description: str | None = None,
    ) -> Quiz:
        """Validate and store a new quiz. Question ids are assigned here."""
        cleaned_title = title.strip()
        if not cleaned_title:
            raise QuizValidationError("Quiz title must not be empty.")
        if len(cleaned_title) > MAX_TITLE_LENGTH:
            raise QuizValidationError(f"Quiz title must be at most {MAX_TITLE_LENGTH} characters.")
        if not questions:
            raise QuizValidationError("Quiz must contain at least one question.")
        if not 0 <= passing_score <= 100:
            raise QuizValidationError("Passing score must be between 0 and 100.")

        quiz = Quiz(
            id=uuid4().hex,
            title=cleaned_title,
            author_id=author_id,
            questions=tuple(self._prepare_question(q) for q in questions),
            passing_score=passing_score,
            time_limit_seconds=self._normalize_time_limit(time_limit_seconds),
            description=(description or "").strip() or None,
            created_at=datetime.utcnow(),
        )
        self._quizzes[quiz.id] = quiz
        self._stats[quiz.id] = QuizStats(quiz_id=quiz.id)
        return quiz

    def get_quiz(self, quiz_id: str) -> Quiz:
        quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            raise QuizNotFoundError(quiz_id)
        return quiz

    def get_question(self, quiz_id: str, question_id: str) -> Question:
        question = self.get_quiz(quiz_id).find_question(question_id)
        if question is None:
            raise QuestionNotFoundError(question_id)
        return question

    def has_quiz(self, quiz_id: str) -> bool:
        return quiz_id in self._quizzes

    def get_stats(self, quiz_id: str) -> QuizStats:
        stats = self._stats.get(quiz_id)
        if stats is None:
            raise QuizNotFoundError(quiz_id)
        return stats

    def list_stats(self) -> list[QuizStats]:
        return list(self._stats.values())

    def snapshot_stats(self, quiz_id: str) -> QuizStats:
        """Return a detached copy of one quiz's stats for later restore."""
        return replace(self.get_stats(quiz_id))

    def restore_stats(self, snapshot: QuizStats) -> None:
        self._stats[snapshot.quiz_id] = snapshot

    def _prepare_question(self, question: Question) -> Question:
        """Validate and normalize a question before storage."""
        prompt = question.prompt.strip()
        if not prompt:
            raise QuizValidationError("Question text must not be empty.")
        if len(prompt) > MAX_PROMPT_LENGTH:
            raise QuizValidationError(f"Question text must be at most {MAX_PROMPT_LENGTH} characters.")

        options = self._validate_options(question.options)
        correct = self._validate_correct_indices(
            question.correct_indices, len(options), question.is_multiple_choice
        )

        if not 1 <= question.points <= MAX_POINTS:
            raise QuizValidationError(f"Points must be between 1 and {MAX_POINTS}.")

        explanation = (question.explanation or "").strip() or None
        if explanation is not None and len(explanation) > MAX_EXPLANATION_LENGTH:
            raise QuizValidationError(
                f"Explanation must be at most {MAX_EXPLANATION_LENGTH} characters."
            )

        return Question(
            id=uuid4().hex,
            prompt=prompt,
            options=options,
            correct_indices=correct,
            is_multiple_choice=question.is_multiple_choice,
            points=question.points,
            explanation=explanation,
        )

    @staticmethod
    def _validate_options(options: tuple[str, ...] | list[str]) -> tuple[str, ...]:
        if not MIN_OPTION_COUNT <= len(options) <= MAX_OPTION_COUNT:
            raise QuizValidationError(
                f"Each question must have between {MIN_OPTION_COUNT} and {MAX_OPTION_COUNT} options."
            )
        cleaned = tuple(option.strip() for option in options)
        if any(not option for option in cleaned):
            raise QuizValidationError("Option text cannot be empty.")
        return cleaned

    @staticmethod
    def _validate_correct_indices(
        indices: tuple[int, ...] | list[int], option_count: int, is_multiple_choice: bool
    ) -> tuple[int, ...]:
        distinct = tuple(sorted(set(indices)))
        if not distinct:
            raise QuizValidationError("Each question needs at least one correct option.")
        if any(not 0 <= index < option_count for index in distinct):
            raise QuizValidationError("Correct option index is out of range.")
        if not is_multiple_choice and len(distinct) != 1:
            raise QuizValidationError("Single-choice questions must have exactly one correct option.")
        return distinct

    @staticmethod
    def _normalize_time_limit(time_limit_seconds: int | None) -> int | None:
        if time_limit_seconds is None:
            return None
        if not isinstance(time_limit_seconds, int):
            raise QuizValidationError("Time limit must be provided as an integer number of seconds.")
        if not MIN_TIME_LIMIT_SECONDS <= time_limit_seconds <= MAX_TIME_LIMIT_SECONDS:
            raise QuizValidationError(
                f"Time limit must be between {MIN_TIME_LIMIT_SECONDS} and {MAX_TIME_LIMIT_SECONDS} seconds."
            )
        return time_limit_seconds
