"""Interaction state for a single quiz attempt.

Two protocols share the same answer bookkeeping:

* ``ExamSession``: free navigation, answers can be overwritten until the
  attempt is submitted manually or the countdown runs out.
* ``OneByOneSession``: questions are presented in order, each answer is checked
  and locked before moving on, and there is no way back.

Sessions never score anything themselves; they hand their accumulated answers
to the engine, which runs the same scorer for both protocols.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
import math

from quizplay.core.answer_comparator import normalize_indices
from quizplay.core.errors import AttemptStateError, QuestionNotFoundError
from quizplay.core.models import AnswerCheck, AnswerSubmission, Question, Quiz, ScoreRecord
from quizplay.core.services.attempt_scorer import check_answer


class AttemptMode(str, Enum):
    EXAM = "exam"
    ONE_BY_ONE = "one_by_one"


class AttemptPhase(str, Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    PRESENTING = "presenting"
    CHECKED = "checked"
    FINISHED = "finished"


@dataclass(slots=True)
class AttemptView:
    """Snapshot of an attempt returned to callers."""

    attempt_id: str
    quiz_id: str
    mode: AttemptMode
    phase: AttemptPhase
    current_index: int
    question_count: int
    selections: dict[str, tuple[int, ...]]
    checks: dict[str, AnswerCheck] = field(default_factory=dict)
    remaining_seconds: int | None = None
    score: ScoreRecord | None = None
    auto_submitted: bool = False


class PlaySession:
    """Answer bookkeeping shared by both attempt protocols."""

    mode: AttemptMode

    def __init__(self, attempt_id: str, user_id: str, quiz: Quiz, clock: Callable[[], float]) -> None:
        if not quiz.questions:
            raise AttemptStateError("Quiz has no questions to play.")
        self._attempt_id = attempt_id
        self._user_id = user_id
        self._quiz = quiz
        self._clock = clock
        self._started_at = clock()
        self._current_index = 0
        self._selections: dict[str, tuple[int, ...]] = {}
        self._time_spent: dict[str, int] = {}
        self._phase = AttemptPhase.IN_PROGRESS

    @property
    def attempt_id(self) -> str:
        return self._attempt_id

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def quiz(self) -> Quiz:
        return self._quiz

    @property
    def phase(self) -> AttemptPhase:
        return self._phase

    @property
    def current_index(self) -> int:
        return self._current_index

    def current_question(self) -> Question:
        return self._quiz.questions[self._current_index]

    def selection_for(self, question_id: str) -> tuple[int, ...]:
        return self._selections.get(question_id, ())

    def elapsed_seconds(self) -> int:
        return max(0, int(self._clock() - self._started_at))

    def remaining_seconds(self) -> int | None:
        return None

    def is_expired(self) -> bool:
        return False

    def can_finalize(self) -> bool:
        raise NotImplementedError

    def mark_finalized(self) -> None:
        raise NotImplementedError

    def answers(self) -> list[AnswerSubmission]:
        """Return one submission per question, in quiz order."""
        return [
            AnswerSubmission(
                question_id=question.id,
                selected_indices=self.selection_for(question.id),
                time_spent_seconds=self._time_spent.get(question.id),
            )
            for question in self._quiz.questions
        ]

    def checks(self) -> dict[str, AnswerCheck]:
        return {}

    def snapshot(self) -> AttemptView:
        return AttemptView(
            attempt_id=self._attempt_id,
            quiz_id=self._quiz.id,
            mode=self.mode,
            phase=self._phase,
            current_index=self._current_index,
            question_count=len(self._quiz.questions),
            selections=dict(self._selections),
            checks=self.checks(),
            remaining_seconds=self.remaining_seconds(),
        )

    def _require_question(self, question_id: str) -> Question:
        question = self._quiz.find_question(question_id)
        if question is None:
            raise QuestionNotFoundError(question_id)
        return question

    def _apply_option(self, question: Question, option_index: int) -> None:
        """Single choice replaces the selection, multiple choice toggles the option."""
        if not question.is_multiple_choice:
            self._selections[question.id] = (option_index,)
            return
        current = self._selections.get(question.id, ())
        if option_index in current:
            remaining = tuple(i for i in current if i != option_index)
            if remaining:
                self._selections[question.id] = remaining
            else:
                self._selections.pop(question.id, None)
        else:
            self._selections[question.id] = normalize_indices((*current, option_index))

    def _store_selection(self, question_id: str, indices: Iterable[int]) -> None:
        normalized = normalize_indices(indices)
        if normalized:
            self._selections[question_id] = normalized
        else:
            self._selections.pop(question_id, None)


class ExamSession(PlaySession):
    """Free-navigation attempt with an optional countdown."""

    mode = AttemptMode.EXAM

    def __init__(self, attempt_id: str, user_id: str, quiz: Quiz, clock: Callable[[], float]) -> None:
        super().__init__(attempt_id, user_id, quiz, clock)
        self._deadline: float | None = None
        if quiz.time_limit_seconds:
            self._deadline = self._started_at + quiz.time_limit_seconds

    def is_expired(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def remaining_seconds(self) -> int | None:
        if self._deadline is None:
            return None
        return max(0, math.ceil(self._deadline - self._clock()))

    def go_to(self, index: int) -> None:
        self._ensure_open()
        if not 0 <= index < len(self._quiz.questions):
            raise AttemptStateError(f"Question index {index} out of range")
        self._current_index = index

    def select_option(self, question_id: str, option_index: int) -> None:
        self._ensure_open()
        self._apply_option(self._require_question(question_id), option_index)

    def set_selection(self, question_id: str, indices: Iterable[int]) -> None:
        self._ensure_open()
        self._require_question(question_id)
        self._store_selection(question_id, indices)

    def can_finalize(self) -> bool:
        return self._phase is AttemptPhase.IN_PROGRESS

    def mark_finalized(self) -> None:
        self._phase = AttemptPhase.SUBMITTED

    def _ensure_open(self) -> None:
        if self._phase is not AttemptPhase.IN_PROGRESS:
            raise AttemptStateError("Attempt has already been submitted.")


class OneByOneSession(PlaySession):
    """Sequential attempt where each answer is checked and locked in turn."""

    mode = AttemptMode.ONE_BY_ONE

    def __init__(self, attempt_id: str, user_id: str, quiz: Quiz, clock: Callable[[], float]) -> None:
        super().__init__(attempt_id, user_id, quiz, clock)
        self._phase = AttemptPhase.PRESENTING
        self._presented_at = self._started_at
        self._checks: dict[str, AnswerCheck] = {}

    def go_to(self, index: int) -> None:
        raise AttemptStateError("Questions are answered in order in one-by-one mode.")

    def select_option(self, question_id: str, option_index: int) -> None:
        question = self._require_current(question_id)
        self._apply_option(question, option_index)

    def set_selection(self, question_id: str, indices: Iterable[int]) -> None:
        self._require_current(question_id)
        self._store_selection(question_id, indices)

    def check(self) -> AnswerCheck:
        """Reveal the current question's result and lock its selection."""
        if self._phase is not AttemptPhase.PRESENTING:
            raise AttemptStateError("The current question has already been checked.")
        question = self.current_question()
        selected = self.selection_for(question.id)
        if not selected:
            raise AttemptStateError("Select at least one option before checking.")

        result = check_answer(question, selected)
        self._checks[question.id] = result
        self._time_spent[question.id] = max(0, int(self._clock() - self._presented_at))
        self._phase = AttemptPhase.CHECKED
        return result

    def advance(self) -> bool:
        """Move past a checked question. Returns True once the last one is done."""
        if self._phase is not AttemptPhase.CHECKED:
            raise AttemptStateError("Check the current question before moving on.")
        if self._current_index + 1 >= len(self._quiz.questions):
            self._phase = AttemptPhase.FINISHED
            return True
        self._current_index += 1
        self._presented_at = self._clock()
        self._phase = AttemptPhase.PRESENTING
        return False

    def last_check(self) -> AnswerCheck | None:
        return self._checks.get(self.current_question().id)

    def checks(self) -> dict[str, AnswerCheck]:
        return dict(self._checks)

    def can_finalize(self) -> bool:
        return self._phase is AttemptPhase.FINISHED

    def mark_finalized(self) -> None:
        self._phase = AttemptPhase.FINISHED

    def _require_current(self, question_id: str) -> Question:
        if self._phase is not AttemptPhase.PRESENTING:
            raise AttemptStateError("The answer for this question is locked.")
        question = self.current_question()
        if question.id != question_id:
            raise AttemptStateError("Only the current question can be answered in one-by-one mode.")
        return question


def create_session(
    mode: AttemptMode,
    attempt_id: str,
    user_id: str,
    quiz: Quiz,
    clock: Callable[[], float],
) -> PlaySession:
    if mode is AttemptMode.ONE_BY_ONE:
        return OneByOneSession(attempt_id, user_id, quiz, clock)
    return ExamSession(attempt_id, user_id, quiz, clock)
