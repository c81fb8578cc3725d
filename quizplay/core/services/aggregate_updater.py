"""Quiz and player aggregates derived from newly created scores."""

from __future__ import annotations

import logging

from quizplay.core.errors import AggregateUpdateError, QuizNotFoundError
from quizplay.core.models import ScoreRecord
from quizplay.core.services.player_registry import PlayerRegistry
from quizplay.core.services.quiz_repository import QuizRepository
from quizplay.core.services.score_ledger import ScoreLedger

logger = logging.getLogger(__name__)


class AggregateUpdater:
    """Applies the play-count, average and lifetime-total updates for one score.

    The quiz average is recomputed from every stored percentage for the quiz
    rather than maintained incrementally, so it is always the exact mean.
    """

    def __init__(self, repository: QuizRepository, ledger: ScoreLedger, players: PlayerRegistry) -> None:
        self._repository = repository
        self._ledger = ledger
        self._players = players

    def apply(self, record: ScoreRecord) -> None:
        self.update_quiz(record)
        self.update_player(record)

    def update_quiz(self, record: ScoreRecord) -> None:
        try:
            stats = self._repository.get_stats(record.quiz_id)
        except QuizNotFoundError as exc:
            raise AggregateUpdateError(
                f"No statistics for quiz {record.quiz_id!r}", quiz_id=record.quiz_id
            ) from exc

        percentages = self._ledger.percentages_for_quiz(record.quiz_id)
        if not percentages:
            raise AggregateUpdateError(
                f"Score {record.id!r} is missing from the history of quiz {record.quiz_id!r}",
                quiz_id=record.quiz_id,
            )

        stats.play_count += 1
        stats.avg_score = sum(percentages) / len(percentages)
        logger.debug(
            "Quiz %s now has %d plays, average %.2f%%", record.quiz_id, stats.play_count, stats.avg_score
        )

    def update_player(self, record: ScoreRecord) -> None:
        stats = self._players.get_stats(record.user_id)
        stats.total_score += record.score
        stats.quizzes_taken += 1
