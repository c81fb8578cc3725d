"""Service ranking players and quizzes from their aggregates."""

from __future__ import annotations

from dataclasses import dataclass

from quizplay.core.models import QuizStats, UserStats


@dataclass(frozen=True, slots=True)
class PlayerRankingRow:
    """Immutable snapshot returned to consumers."""

    rank: int
    user_id: str
    total_score: int
    quizzes_taken: int
    quizzes_created: int


@dataclass(frozen=True, slots=True)
class QuizRankingRow:
    rank: int
    quiz_id: str
    title: str
    question_count: int
    play_count: int
    avg_score: float | None


class Leaderboard:
    """Orders aggregates into ranking rows."""

    @staticmethod
    def rank_players(players: list[UserStats], limit: int) -> list[PlayerRankingRow]:
        """Return the top players by lifetime score, ties broken by fewer attempts."""
        ordered = sorted(players, key=lambda p: (-p.total_score, p.quizzes_taken, p.user_id))
        return [
            PlayerRankingRow(
                rank=position,
                user_id=entry.user_id,
                total_score=entry.total_score,
                quizzes_taken=entry.quizzes_taken,
                quizzes_created=entry.quizzes_created,
            )
            for position, entry in enumerate(ordered[:limit], start=1)
        ]

    @staticmethod
    def rank_quizzes(
        stats: list[QuizStats],
        titles: dict[str, str],
        question_counts: dict[str, int],
        limit: int,
    ) -> list[QuizRankingRow]:
        """Return the most played quizzes."""
        ordered = sorted(stats, key=lambda s: (-s.play_count, -(s.avg_score or 0.0), s.quiz_id))
        return [
            QuizRankingRow(
                rank=position,
                quiz_id=entry.quiz_id,
                title=titles.get(entry.quiz_id, ""),
                question_count=question_counts.get(entry.quiz_id, 0),
                play_count=entry.play_count,
                avg_score=entry.avg_score,
            )
            for position, entry in enumerate(ordered[:limit], start=1)
        ]
