"""Domain models for the quiz attempt engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Question:
    """Question snapshot; option order defines the index space."""

    id: str
    prompt: str
    options: tuple[str, ...]
    correct_indices: tuple[int, ...]
    is_multiple_choice: bool = False
    points: int = 10
    explanation: str | None = None


@dataclass(frozen=True, slots=True)
class Quiz:
    """Quiz definition as read by the engine. Aggregates live in QuizStats."""

    id: str
    title: str
    author_id: str
    questions: tuple[Question, ...]
    passing_score: int = 60
    time_limit_seconds: int | None = None
    description: str | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def find_question(self, question_id: str) -> Question | None:
        return next((q for q in self.questions if q.id == question_id), None)


@dataclass(slots=True)
class QuizStats:
    """Mutable per-quiz aggregate maintained by the aggregate updater."""

    quiz_id: str
    play_count: int = 0
    avg_score: float | None = None


@dataclass(slots=True)
class UserStats:
    """Mutable lifetime totals for a player."""

    user_id: str
    total_score: int = 0
    quizzes_taken: int = 0
    quizzes_created: int = 0


@dataclass(frozen=True, slots=True)
class AnswerSubmission:
    """Selected option indices for one question. Empty means unanswered."""

    question_id: str
    selected_indices: tuple[int, ...] = ()
    time_spent_seconds: int | None = None


@dataclass(frozen=True, slots=True)
class AnswerCheck:
    """Immediate feedback for a single question."""

    is_correct: bool
    correct_indices: tuple[int, ...]
    explanation: str | None


@dataclass(frozen=True, slots=True)
class QuestionResult:
    """Per-question outcome of a scored attempt."""

    question_id: str
    prompt: str
    options: tuple[str, ...]
    selected_indices: tuple[int, ...]
    correct_indices: tuple[int, ...]
    is_multiple_choice: bool
    is_correct: bool
    explanation: str | None
    points: int


@dataclass(frozen=True, slots=True)
class ScoredAttempt:
    """Totals produced by the scorer before anything is persisted."""

    score: int
    max_score: int
    percentage: float
    correct_count: int
    total_count: int
    results: tuple[QuestionResult, ...]

    def passed(self, passing_score: int) -> bool:
        return self.percentage >= passing_score


@dataclass(frozen=True, slots=True)
class ScoreRecord:
    """Persisted outcome of one finalized attempt."""

    id: str
    user_id: str
    quiz_id: str
    score: int
    max_score: int
    percentage: float
    correct_count: int
    total_count: int
    passed: bool
    time_spent_seconds: int | None
    results: tuple[QuestionResult, ...]
    created_at: datetime


@dataclass(frozen=True, slots=True)
class AnswerHistoryEntry:
    """One answered question from a finalized attempt."""

    user_id: str
    question_id: str
    selected_indices: tuple[int, ...]
    is_correct: bool
    time_spent_seconds: int | None
    created_at: datetime
