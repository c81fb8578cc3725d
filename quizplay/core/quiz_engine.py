"""Business logic for running quiz attempts, shared by the API and tests."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import replace
import logging
from threading import Lock
import time
from uuid import uuid4

from quizplay.constants.quiz_constants import DEFAULT_PASSING_SCORE, MAX_RANKING_LIMIT
from quizplay.constants.rate_limit_constants import ROUTE_API
from quizplay.core.errors import (
    AggregateUpdateError,
    AttemptNotFoundError,
    AttemptStateError,
    ScoreAccessError,
)
from quizplay.core.models import (
    AnswerCheck,
    AnswerSubmission,
    Question,
    Quiz,
    QuizStats,
    ScoredAttempt,
    ScoreRecord,
    UserStats,
)
from quizplay.core.services.aggregate_updater import AggregateUpdater
from quizplay.core.services.attempt_scorer import check_answer, index_submissions, score_attempt
from quizplay.core.services.leaderboard import Leaderboard, PlayerRankingRow, QuizRankingRow
from quizplay.core.services.play_session import (
    AttemptMode,
    AttemptView,
    OneByOneSession,
    PlaySession,
    create_session,
)
from quizplay.core.services.player_registry import PlayerRegistry
from quizplay.core.services.quiz_repository import QuizRepository
from quizplay.core.services.rate_limiter import RateLimitDecision, RateLimiter
from quizplay.core.services.score_ledger import ScoreLedger

logger = logging.getLogger(__name__)


class QuizEngine:
    """Facade for quiz services: repository, ledger, aggregates, sessions and throttle."""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self._lock = Lock()
        self._clock = clock

        # Services
        self._repository = QuizRepository()
        self._ledger = ScoreLedger()
        self._players = PlayerRegistry()
        self._aggregates = AggregateUpdater(self._repository, self._ledger, self._players)
        self._rate_limiter = rate_limiter or RateLimiter(clock=clock)

        # Attempts in progress, discarded once finalized or abandoned
        self._sessions: dict[str, PlaySession] = {}

    # --- Quizzes ---

    def create_quiz(
        self,
        author_id: str,
        title: str,
        questions: list[Question],
        passing_score: int = DEFAULT_PASSING_SCORE,
        time_limit_seconds: int | None = None,
        description: str | None = None,
    ) -> Quiz:
        with self._lock:
            quiz = self._repository.add_quiz(
                author_id,
                title,
                questions,
                passing_score=passing_score,
                time_limit_seconds=time_limit_seconds,
                description=description,
            )
            self._players.record_quiz_created(author_id)
        logger.info("Quiz %s created by %s with %d questions", quiz.id, author_id, len(quiz.questions))
        return quiz

    def get_quiz(self, quiz_id: str) -> Quiz:
        with self._lock:
            return self._repository.get_quiz(quiz_id)

    def get_quiz_stats(self, quiz_id: str) -> QuizStats:
        with self._lock:
            return replace(self._repository.get_stats(quiz_id))

    def get_user_stats(self, user_id: str) -> UserStats:
        with self._lock:
            return self._players.peek_stats(user_id)

    # --- Answers and scores ---

    def check_answer(self, quiz_id: str, question_id: str, selected_indices: Iterable[int]) -> AnswerCheck:
        """Reveal correctness for one question; no state is touched."""
        with self._lock:
            question = self._repository.get_question(quiz_id, question_id)
        return check_answer(question, selected_indices)

    def submit_attempt(
        self,
        user_id: str,
        quiz_id: str,
        answers: Iterable[AnswerSubmission],
        total_time_spent: int | None = None,
    ) -> ScoreRecord:
        """Score a complete answer set and persist it with its aggregates.

        Every call creates a new score; repeated submissions are not deduplicated.
        """
        answer_list = list(answers)
        with self._lock:
            quiz = self._repository.get_quiz(quiz_id)
        scored = score_attempt(quiz, answer_list)
        with self._lock:
            return self._persist_attempt_locked(
                user_id, quiz, scored, index_submissions(answer_list), total_time_spent
            )

    def get_score(self, score_id: str, user_id: str) -> ScoreRecord:
        with self._lock:
            record = self._ledger.get_score(score_id)
        if record.user_id != user_id:
            raise ScoreAccessError(f"Score {score_id!r} belongs to another user")
        return record

    def get_user_scores(self, user_id: str) -> list[ScoreRecord]:
        with self._lock:
            return self._ledger.scores_for_user(user_id)

    # --- Attempt protocols ---

    def start_attempt(self, user_id: str, quiz_id: str, mode: AttemptMode = AttemptMode.EXAM) -> AttemptView:
        self.sweep_expired_attempts()
        with self._lock:
            quiz = self._repository.get_quiz(quiz_id)
            session = create_session(mode, uuid4().hex, user_id, quiz, self._clock)
            self._sessions[session.attempt_id] = session
        logger.info("Attempt %s started by %s on quiz %s (%s)", session.attempt_id, user_id, quiz_id, mode.value)
        return session.snapshot()

    def get_attempt(self, attempt_id: str, user_id: str) -> AttemptView:
        return self._run_on_session(attempt_id, user_id, lambda session: None)

    def go_to_question(self, attempt_id: str, user_id: str, index: int) -> AttemptView:
        return self._run_on_session(attempt_id, user_id, lambda session: session.go_to(index))

    def select_option(self, attempt_id: str, user_id: str, question_id: str, option_index: int) -> AttemptView:
        return self._run_on_session(
            attempt_id, user_id, lambda session: session.select_option(question_id, option_index)
        )

    def set_selection(
        self, attempt_id: str, user_id: str, question_id: str, indices: Iterable[int]
    ) -> AttemptView:
        selected = tuple(indices)
        return self._run_on_session(
            attempt_id, user_id, lambda session: session.set_selection(question_id, selected)
        )

    def check_current_answer(self, attempt_id: str, user_id: str) -> AttemptView:
        return self._run_on_session(attempt_id, user_id, lambda session: self._require_one_by_one(session).check())

    def advance_attempt(self, attempt_id: str, user_id: str) -> AttemptView:
        with self._lock:
            session = self._get_session_locked(attempt_id, user_id)
            if self._require_one_by_one(session).advance():
                return self._finalize_session_locked(session)
            return session.snapshot()

    def finish_attempt(self, attempt_id: str, user_id: str) -> AttemptView:
        """Submit an exam attempt, or retry finalizing a finished one-by-one attempt."""
        with self._lock:
            session = self._get_session_locked(attempt_id, user_id)
            if session.is_expired():
                return self._finalize_session_locked(session, auto_submitted=True)
            if not session.can_finalize():
                raise AttemptStateError("Answer every question before finishing this attempt.")
            return self._finalize_session_locked(session)

    def abandon_attempt(self, attempt_id: str, user_id: str) -> None:
        with self._lock:
            session = self._get_session_locked(attempt_id, user_id)
            del self._sessions[session.attempt_id]
        logger.info("Attempt %s abandoned", attempt_id)

    def sweep_expired_attempts(self) -> list[ScoreRecord]:
        """Finalize every exam attempt whose countdown has run out.

        An attempt whose aggregates cannot be written stays pending for the next
        sweep; it never blocks the others.
        """
        finalized: list[ScoreRecord] = []
        with self._lock:
            expired = [s for s in self._sessions.values() if s.is_expired() and s.can_finalize()]
            for session in expired:
                try:
                    view = self._finalize_session_locked(session, auto_submitted=True)
                except AggregateUpdateError:
                    logger.warning("Expired attempt %s left pending after a failed finalize", session.attempt_id)
                    continue
                if view.score is not None:
                    finalized.append(view.score)
        return finalized

    def get_active_attempt_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    # --- Rankings ---

    def get_top_users(self, limit: int) -> list[PlayerRankingRow]:
        with self._lock:
            return Leaderboard.rank_players(self._players.list_stats(), _clamp_limit(limit))

    def get_top_quizzes(self, limit: int) -> list[QuizRankingRow]:
        with self._lock:
            stats = self._repository.list_stats()
            quizzes = [self._repository.get_quiz(s.quiz_id) for s in stats]
            return Leaderboard.rank_quizzes(
                stats,
                titles={q.id: q.title for q in quizzes},
                question_counts={q.id: len(q.questions) for q in quizzes},
                limit=_clamp_limit(limit),
            )

    # --- Throttle ---

    def check_rate_limit(self, client_id: str, route_class: str = ROUTE_API) -> RateLimitDecision:
        return self._rate_limiter.check(client_id, route_class)

    def now(self) -> float:
        return self._clock()

    # --- Internals ---

    def _run_on_session(
        self, attempt_id: str, user_id: str, action: Callable[[PlaySession], object]
    ) -> AttemptView:
        with self._lock:
            session = self._get_session_locked(attempt_id, user_id)
            if session.is_expired():
                return self._finalize_session_locked(session, auto_submitted=True)
            action(session)
            return session.snapshot()

    def _get_session_locked(self, attempt_id: str, user_id: str) -> PlaySession:
        session = self._sessions.get(attempt_id)
        if session is None or session.user_id != user_id:
            raise AttemptNotFoundError(attempt_id)
        return session

    @staticmethod
    def _require_one_by_one(session: PlaySession) -> OneByOneSession:
        if not isinstance(session, OneByOneSession):
            raise AttemptStateError("Answers are only checked one by one in one-by-one mode.")
        return session

    def _finalize_session_locked(self, session: PlaySession, auto_submitted: bool = False) -> AttemptView:
        answers = session.answers()
        time_spent = session.elapsed_seconds()
        if auto_submitted and session.quiz.time_limit_seconds:
            time_spent = min(time_spent, session.quiz.time_limit_seconds)

        scored = score_attempt(session.quiz, answers)
        record = self._persist_attempt_locked(
            session.user_id, session.quiz, scored, index_submissions(answers), time_spent
        )
        session.mark_finalized()
        self._sessions.pop(session.attempt_id, None)
        if auto_submitted:
            logger.info("Attempt %s auto-submitted after its time limit", session.attempt_id)

        view = session.snapshot()
        view.score = record
        view.auto_submitted = auto_submitted
        view.remaining_seconds = None
        return view

    def _persist_attempt_locked(
        self,
        user_id: str,
        quiz: Quiz,
        scored: ScoredAttempt,
        submissions: dict[str, AnswerSubmission],
        total_time_spent: int | None,
    ) -> ScoreRecord:
        with self._unit_of_work(quiz.id, user_id):
            record = self._ledger.create_score(
                user_id,
                quiz.id,
                scored,
                passed=scored.passed(quiz.passing_score),
                time_spent_seconds=total_time_spent,
            )
            self._ledger.record_answers(record, submissions)
            try:
                self._aggregates.apply(record)
            except AggregateUpdateError:
                logger.exception("Aggregate update failed for score %s on quiz %s", record.id, quiz.id)
                raise
            except Exception as exc:
                logger.exception("Aggregate update failed for score %s on quiz %s", record.id, quiz.id)
                raise AggregateUpdateError(
                    f"Aggregates for quiz {quiz.id!r} could not be updated", quiz_id=quiz.id, user_id=user_id
                ) from exc

        logger.info(
            "Score %s recorded for %s on quiz %s: %d/%d (%.1f%%)",
            record.id,
            user_id,
            quiz.id,
            record.score,
            record.max_score,
            record.percentage,
        )
        return record

    @contextmanager
    def _unit_of_work(self, quiz_id: str, user_id: str) -> Iterator[None]:
        """Undo this write's ledger rows and aggregates if the enclosed block fails."""
        ledger_mark = self._ledger.mark()
        quiz_stats = self._repository.snapshot_stats(quiz_id)
        player_stats = self._players.snapshot(user_id)
        try:
            yield
        except Exception:
            self._ledger.rollback(ledger_mark)
            self._repository.restore_stats(quiz_stats)
            self._players.restore(user_id, player_stats)
            raise


def _clamp_limit(limit: int) -> int:
    return max(1, min(limit, MAX_RANKING_LIMIT))
