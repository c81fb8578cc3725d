"""FastAPI server exposing quiz play, scoring and rankings."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field
import uvicorn

from quizplay.constants.about import APP_NAME, APP_VERSION
from quizplay.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT, USER_ID_HEADER
from quizplay.constants.quiz_constants import DEFAULT_PASSING_SCORE, DEFAULT_POINTS, DEFAULT_RANKING_LIMIT
from quizplay.constants.rate_limit_constants import ROUTE_API, ROUTE_CREATE, ROUTE_SCORE, ROUTE_SEARCH
from quizplay.core.errors import (
    AggregateUpdateError,
    AttemptNotFoundError,
    AttemptStateError,
    QuestionNotFoundError,
    QuizNotFoundError,
    QuizValidationError,
    ScoreAccessError,
    ScoreNotFoundError,
)
from quizplay.core.markdown_renderer import renderer
from quizplay.core.models import AnswerCheck, AnswerSubmission, Question, Quiz, QuestionResult, ScoreRecord
from quizplay.core.quiz_engine import QuizEngine
from quizplay.core.services.play_session import AttemptMode, AttemptView
from quizplay.core.services.rate_limiter import rate_limit_headers, resolve_client_id


class QuestionPayload(BaseModel):
    """Payload schema for one authored question."""

    prompt: str
    options: list[str]
    correct_indices: list[int]
    is_multiple_choice: bool = False
    explanation: str | None = None
    points: int = DEFAULT_POINTS


class QuizPayload(BaseModel):
    """Payload schema for publishing a quiz."""

    title: str
    description: str | None = None
    passing_score: int = DEFAULT_PASSING_SCORE
    time_limit_seconds: int | None = None
    questions: list[QuestionPayload]


class CheckAnswerPayload(BaseModel):
    question_id: str
    selected_indices: list[int]


class AnswerPayload(BaseModel):
    question_id: str
    selected_indices: list[int] = Field(default_factory=list)
    time_spent: int | None = Field(default=None, ge=0)


class SubmitPayload(BaseModel):
    """Payload schema for finalizing a whole attempt in one call."""

    quiz_id: str
    answers: list[AnswerPayload]
    total_time_spent: int | None = Field(default=None, ge=0)


class StartAttemptPayload(BaseModel):
    quiz_id: str
    mode: AttemptMode = AttemptMode.EXAM


class NavigatePayload(BaseModel):
    index: int


class SelectOptionPayload(BaseModel):
    question_id: str
    option_index: int


class SelectionPayload(BaseModel):
    selected_indices: list[int] = Field(default_factory=list)


@contextmanager
def _domain_errors() -> Iterator[None]:
    """Translate engine exceptions into HTTP responses."""
    try:
        yield
    except (QuizNotFoundError, QuestionNotFoundError, ScoreNotFoundError, AttemptNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ScoreAccessError as exc:
        raise HTTPException(status_code=403, detail="Forbidden") from exc
    except AttemptStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except QuizValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except AggregateUpdateError as exc:
        raise HTTPException(status_code=500, detail="Failed to record the attempt") from exc


def _get_engine_dependency(engine: QuizEngine) -> Callable[[], QuizEngine]:
    def dependency() -> QuizEngine:
        return engine

    return dependency


def _require_user(x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER)) -> str:
    """Return the authenticated user id forwarded by the auth layer."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id.strip()


def _rate_limit_dependency(engine: QuizEngine, route_class: str) -> Callable[[Request, Response], None]:
    def dependency(request: Request, response: Response) -> None:
        decision = engine.check_rate_limit(resolve_client_id(request.headers), route_class)
        headers = rate_limit_headers(decision)
        if not decision.allowed:
            retry_after = decision.retry_after_seconds(engine.now())
            raise HTTPException(
                status_code=429,
                detail={
                    "error": "Too many requests",
                    "message": "Rate limit exceeded. Please try again later.",
                    "retry_after": retry_after,
                },
                headers={**headers, "Retry-After": str(retry_after)},
            )
        response.headers.update(headers)

    return dependency


def _serialize_play_question(question: Question) -> dict[str, object]:
    """Question as shown while playing: no correct answers, no explanation."""
    return {
        "id": question.id,
        "prompt": question.prompt,
        "prompt_html": renderer.render_block(question.prompt),
        "options": list(question.options),
        "options_html": [renderer.render_inline(option) for option in question.options],
        "is_multiple_choice": question.is_multiple_choice,
        "points": question.points,
    }


def _serialize_quiz_summary(quiz: Quiz) -> dict[str, object]:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "author_id": quiz.author_id,
        "question_count": len(quiz.questions),
        "passing_score": quiz.passing_score,
        "time_limit_seconds": quiz.time_limit_seconds,
        "created_at": quiz.created_at.isoformat(),
    }


def _serialize_check(check: AnswerCheck) -> dict[str, object]:
    return {
        "is_correct": check.is_correct,
        "correct_indices": list(check.correct_indices),
        "explanation": check.explanation,
        "explanation_html": renderer.render_block(check.explanation),
    }


def _serialize_result(result: QuestionResult) -> dict[str, object]:
    return {
        "question_id": result.question_id,
        "prompt": result.prompt,
        "options": list(result.options),
        "selected_indices": list(result.selected_indices),
        "correct_indices": list(result.correct_indices),
        "is_multiple_choice": result.is_multiple_choice,
        "is_correct": result.is_correct,
        "explanation": result.explanation,
        "points": result.points,
    }


def _serialize_score(record: ScoreRecord) -> dict[str, object]:
    return {
        "score_id": record.id,
        "quiz_id": record.quiz_id,
        "user_id": record.user_id,
        "score": record.score,
        "max_score": record.max_score,
        "percentage": record.percentage,
        "correct_count": record.correct_count,
        "total_count": record.total_count,
        "passed": record.passed,
        "time_spent": record.time_spent_seconds,
        "created_at": record.created_at.isoformat(),
        "results": [_serialize_result(result) for result in record.results],
    }


def _serialize_attempt(view: AttemptView, engine: QuizEngine) -> dict[str, object]:
    current_question = None
    if view.score is None:
        quiz = engine.get_quiz(view.quiz_id)
        current_question = _serialize_play_question(quiz.questions[view.current_index])
    return {
        "attempt_id": view.attempt_id,
        "quiz_id": view.quiz_id,
        "mode": view.mode.value,
        "phase": view.phase.value,
        "current_index": view.current_index,
        "question_count": view.question_count,
        "current_question": current_question,
        "selections": {qid: list(indices) for qid, indices in view.selections.items()},
        "checks": {qid: _serialize_check(check) for qid, check in view.checks.items()},
        "remaining_seconds": view.remaining_seconds,
        "auto_submitted": view.auto_submitted,
        "result": _serialize_score(view.score) if view.score is not None else None,
    }


def create_api_app(engine: QuizEngine) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz engine."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    engine_dep = _get_engine_dependency(engine)
    general_limit = Depends(_rate_limit_dependency(engine, ROUTE_API))
    create_limit = Depends(_rate_limit_dependency(engine, ROUTE_CREATE))
    score_limit = Depends(_rate_limit_dependency(engine, ROUTE_SCORE))
    search_limit = Depends(_rate_limit_dependency(engine, ROUTE_SEARCH))

    @app.post("/api/quizzes", status_code=201, dependencies=[create_limit])
    def create_quiz(
        payload: QuizPayload,
        user_id: str = Depends(_require_user),
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        questions = [
            Question(
                id="",
                prompt=q.prompt,
                options=tuple(q.options),
                correct_indices=tuple(q.correct_indices),
                is_multiple_choice=q.is_multiple_choice,
                points=q.points,
                explanation=q.explanation,
            )
            for q in payload.questions
        ]
        with _domain_errors():
            quiz = manager.create_quiz(
                user_id,
                payload.title,
                questions,
                passing_score=payload.passing_score,
                time_limit_seconds=payload.time_limit_seconds,
                description=payload.description,
            )
        return _serialize_quiz_summary(quiz)

    @app.get("/api/quizzes/{quiz_id}/questions", dependencies=[general_limit])
    def get_play_questions(
        quiz_id: str,
        user_id: str = Depends(_require_user),
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        with _domain_errors():
            quiz = manager.get_quiz(quiz_id)
        return {
            "quiz_id": quiz.id,
            "title": quiz.title,
            "time_limit_seconds": quiz.time_limit_seconds,
            "passing_score": quiz.passing_score,
            "questions": [_serialize_play_question(q) for q in quiz.questions],
        }

    @app.post("/api/quizzes/{quiz_id}/check-answer", dependencies=[general_limit])
    def check_answer(
        quiz_id: str,
        payload: CheckAnswerPayload,
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        with _domain_errors():
            check = manager.check_answer(quiz_id, payload.question_id, payload.selected_indices)
        return _serialize_check(check)

    @app.post("/api/scores", status_code=201, dependencies=[score_limit])
    def submit_attempt(
        payload: SubmitPayload,
        user_id: str = Depends(_require_user),
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        answers = [
            AnswerSubmission(
                question_id=a.question_id,
                selected_indices=tuple(a.selected_indices),
                time_spent_seconds=a.time_spent,
            )
            for a in payload.answers
        ]
        with _domain_errors():
            record = manager.submit_attempt(user_id, payload.quiz_id, answers, payload.total_time_spent)
        return _serialize_score(record)

    @app.get("/api/scores/{score_id}", dependencies=[general_limit])
    def get_score(
        score_id: str,
        user_id: str = Depends(_require_user),
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        with _domain_errors():
            record = manager.get_score(score_id, user_id)
            quiz = manager.get_quiz(record.quiz_id)
        body = _serialize_score(record)
        body["quiz"] = {"id": quiz.id, "title": quiz.title, "passing_score": quiz.passing_score}
        return body

    @app.post("/api/attempts", status_code=201, dependencies=[create_limit])
    def start_attempt(
        payload: StartAttemptPayload,
        user_id: str = Depends(_require_user),
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        with _domain_errors():
            view = manager.start_attempt(user_id, payload.quiz_id, payload.mode)
            return _serialize_attempt(view, manager)

    @app.get("/api/attempts/{attempt_id}", dependencies=[general_limit])
    def get_attempt(
        attempt_id: str,
        user_id: str = Depends(_require_user),
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        with _domain_errors():
            view = manager.get_attempt(attempt_id, user_id)
            return _serialize_attempt(view, manager)

    @app.post("/api/attempts/{attempt_id}/navigate", dependencies=[general_limit])
    def navigate(
        attempt_id: str,
        payload: NavigatePayload,
        user_id: str = Depends(_require_user),
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        with _domain_errors():
            view = manager.go_to_question(attempt_id, user_id, payload.index)
            return _serialize_attempt(view, manager)

    @app.post("/api/attempts/{attempt_id}/select", dependencies=[general_limit])
    def select_option(
        attempt_id: str,
        payload: SelectOptionPayload,
        user_id: str = Depends(_require_user),
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        with _domain_errors():
            view = manager.select_option(attempt_id, user_id, payload.question_id, payload.option_index)
            return _serialize_attempt(view, manager)

    @app.put("/api/attempts/{attempt_id}/answers/{question_id}", dependencies=[general_limit])
    def set_selection(
        attempt_id: str,
        question_id: str,
        payload: SelectionPayload,
        user_id: str = Depends(_require_user),
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        with _domain_errors():
            view = manager.set_selection(attempt_id, user_id, question_id, payload.selected_indices)
            return _serialize_attempt(view, manager)

    @app.post("/api/attempts/{attempt_id}/check", dependencies=[general_limit])
    def check_current(
        attempt_id: str,
        user_id: str = Depends(_require_user),
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        with _domain_errors():
            view = manager.check_current_answer(attempt_id, user_id)
            return _serialize_attempt(view, manager)

    @app.post("/api/attempts/{attempt_id}/advance", dependencies=[general_limit])
    def advance(
        attempt_id: str,
        user_id: str = Depends(_require_user),
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        with _domain_errors():
            view = manager.advance_attempt(attempt_id, user_id)
            return _serialize_attempt(view, manager)

    @app.post("/api/attempts/{attempt_id}/submit", dependencies=[score_limit])
    def finish_attempt(
        attempt_id: str,
        user_id: str = Depends(_require_user),
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        with _domain_errors():
            view = manager.finish_attempt(attempt_id, user_id)
            return _serialize_attempt(view, manager)

    @app.delete("/api/attempts/{attempt_id}", status_code=204, dependencies=[general_limit])
    def abandon_attempt(
        attempt_id: str,
        user_id: str = Depends(_require_user),
        manager: QuizEngine = Depends(engine_dep),
    ) -> Response:
        with _domain_errors():
            manager.abandon_attempt(attempt_id, user_id)
        return Response(status_code=204)

    @app.get("/api/rankings", dependencies=[search_limit])
    def get_rankings(
        ranking_type: str = Query(default="users", alias="type"),
        limit: int = DEFAULT_RANKING_LIMIT,
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        if ranking_type == "users":
            rankings = [
                {
                    "rank": row.rank,
                    "user_id": row.user_id,
                    "total_score": row.total_score,
                    "quizzes_taken": row.quizzes_taken,
                    "quizzes_created": row.quizzes_created,
                }
                for row in manager.get_top_users(limit)
            ]
        elif ranking_type == "quizzes":
            rankings = [
                {
                    "rank": row.rank,
                    "quiz_id": row.quiz_id,
                    "title": row.title,
                    "question_count": row.question_count,
                    "play_count": row.play_count,
                    "avg_score": row.avg_score,
                }
                for row in manager.get_top_quizzes(limit)
            ]
        else:
            raise HTTPException(status_code=400, detail="Invalid ranking type")
        return {"rankings": rankings, "type": ranking_type}

    return app


def run_api_server(
    engine: QuizEngine,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API until the process is interrupted."""
    app = create_api_app(engine)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    server.run()
