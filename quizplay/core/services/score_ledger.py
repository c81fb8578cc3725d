"""Append-only storage for finalized attempts and per-question answer history."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import uuid4

from quizplay.core.errors import ScoreNotFoundError
from quizplay.core.models import AnswerHistoryEntry, AnswerSubmission, ScoredAttempt, ScoreRecord


class ScoreLedger:
    """Holds every score ever created. Records are never updated or removed."""

    def __init__(self) -> None:
        self._scores: dict[str, ScoreRecord] = {}
        self._history: list[AnswerHistoryEntry] = []

    def create_score(
        self,
        user_id: str,
        quiz_id: str,
        scored: ScoredAttempt,
        passed: bool,
        time_spent_seconds: int | None = None,
        created_at: datetime | None = None,
    ) -> ScoreRecord:
        record = ScoreRecord(
            id=uuid4().hex,
            user_id=user_id,
            quiz_id=quiz_id,
            score=scored.score,
            max_score=scored.max_score,
            percentage=scored.percentage,
            correct_count=scored.correct_count,
            total_count=scored.total_count,
            passed=passed,
            time_spent_seconds=time_spent_seconds,
            results=scored.results,
            created_at=created_at or datetime.utcnow(),
        )
        self._scores[record.id] = record
        return record

    def record_answers(
        self,
        record: ScoreRecord,
        submissions: dict[str, AnswerSubmission],
    ) -> list[AnswerHistoryEntry]:
        """Append a history entry for each question the player actually answered."""
        entries: list[AnswerHistoryEntry] = []
        for result in record.results:
            submission = submissions.get(result.question_id)
            if submission is None or not result.selected_indices:
                continue
            entries.append(
                AnswerHistoryEntry(
                    user_id=record.user_id,
                    question_id=result.question_id,
                    selected_indices=result.selected_indices,
                    is_correct=result.is_correct,
                    time_spent_seconds=submission.time_spent_seconds,
                    created_at=record.created_at,
                )
            )
        self._history.extend(entries)
        return entries

    def get_score(self, score_id: str) -> ScoreRecord:
        record = self._scores.get(score_id)
        if record is None:
            raise ScoreNotFoundError(score_id)
        return record

    def percentages_for_quiz(self, quiz_id: str) -> list[float]:
        return [s.percentage for s in self._scores.values() if s.quiz_id == quiz_id]

    def scores_for_user(self, user_id: str) -> list[ScoreRecord]:
        return [s for s in self._scores.values() if s.user_id == user_id]

    def history_for_user(self, user_id: str, question_ids: Iterable[str] | None = None) -> list[AnswerHistoryEntry]:
        wanted = set(question_ids) if question_ids is not None else None
        return [
            entry
            for entry in self._history
            if entry.user_id == user_id and (wanted is None or entry.question_id in wanted)
        ]

    def mark(self) -> tuple[int, int]:
        """Return a rollback point; records are only ever appended after it."""
        return len(self._scores), len(self._history)

    def rollback(self, mark: tuple[int, int]) -> None:
        score_count, history_length = mark
        while len(self._scores) > score_count:
            self._scores.popitem()
        del self._history[history_length:]
