import pytest

from quizplay.core.errors import AttemptNotFoundError, AttemptStateError, QuestionNotFoundError
from quizplay.core.models import AnswerSubmission, Quiz
from quizplay.core.services.play_session import (
    AttemptMode,
    AttemptPhase,
    ExamSession,
    OneByOneSession,
)


# --- Exam mode ---


def test_exam_navigation_and_overwrite(engine, quiz):
    view = engine.start_attempt("player-1", quiz.id)
    first, second, third = quiz.questions
    assert view.phase is AttemptPhase.IN_PROGRESS
    assert view.remaining_seconds is None

    engine.go_to_question(view.attempt_id, "player-1", 2)
    engine.select_option(view.attempt_id, "player-1", third.id, 0)
    engine.go_to_question(view.attempt_id, "player-1", 0)
    engine.select_option(view.attempt_id, "player-1", first.id, 0)
    view = engine.select_option(view.attempt_id, "player-1", first.id, 1)

    assert view.current_index == 0
    assert view.selections == {first.id: (1,), third.id: (0,)}
    assert second.id not in view.selections


def test_exam_multiple_choice_toggles(engine, quiz):
    view = engine.start_attempt("player-1", quiz.id)
    multi = quiz.questions[1]
    engine.select_option(view.attempt_id, "player-1", multi.id, 3)
    view = engine.select_option(view.attempt_id, "player-1", multi.id, 1)
    assert view.selections[multi.id] == (1, 3)

    engine.select_option(view.attempt_id, "player-1", multi.id, 1)
    view = engine.select_option(view.attempt_id, "player-1", multi.id, 3)
    assert multi.id not in view.selections


def test_exam_set_selection_and_clear(engine, quiz):
    view = engine.start_attempt("player-1", quiz.id)
    multi = quiz.questions[1]
    view = engine.set_selection(view.attempt_id, "player-1", multi.id, [3, 1, 3])
    assert view.selections[multi.id] == (1, 3)
    view = engine.set_selection(view.attempt_id, "player-1", multi.id, [])
    assert multi.id not in view.selections


def test_exam_rejects_bad_navigation_and_unknown_question(engine, quiz):
    view = engine.start_attempt("player-1", quiz.id)
    with pytest.raises(AttemptStateError):
        engine.go_to_question(view.attempt_id, "player-1", 3)
    with pytest.raises(QuestionNotFoundError):
        engine.select_option(view.attempt_id, "player-1", "missing", 0)


def test_exam_manual_submit_scores_once(engine, quiz):
    view = engine.start_attempt("player-1", quiz.id)
    for question in quiz.questions:
        engine.set_selection(view.attempt_id, "player-1", question.id, question.correct_indices)

    finished = engine.finish_attempt(view.attempt_id, "player-1")
    assert finished.phase is AttemptPhase.SUBMITTED
    assert finished.score.percentage == pytest.approx(100.0)
    assert not finished.auto_submitted
    assert engine.get_active_attempt_count() == 0

    with pytest.raises(AttemptNotFoundError):
        engine.finish_attempt(view.attempt_id, "player-1")
    assert engine.get_quiz_stats(quiz.id).play_count == 1


def test_exam_countdown_auto_submits(engine, timed_quiz, clock):
    view = engine.start_attempt("player-1", timed_quiz.id)
    first = timed_quiz.questions[0]
    assert view.remaining_seconds == 60

    clock.advance(20.5)
    view = engine.select_option(view.attempt_id, "player-1", first.id, 1)
    assert view.remaining_seconds == 40

    clock.advance(45)
    view = engine.select_option(view.attempt_id, "player-1", timed_quiz.questions[1].id, 0)

    assert view.auto_submitted
    assert view.phase is AttemptPhase.SUBMITTED
    assert view.score.score == 10
    assert view.score.time_spent_seconds == 60
    assert engine.get_quiz_stats(timed_quiz.id).play_count == 1
    assert engine.get_active_attempt_count() == 0


def test_expired_attempts_are_swept(engine, timed_quiz, quiz, clock):
    engine.start_attempt("player-1", timed_quiz.id)
    engine.start_attempt("player-2", quiz.id)
    clock.advance(61)

    records = engine.sweep_expired_attempts()

    assert [r.user_id for r in records] == ["player-1"]
    assert records[0].score == 0
    assert engine.get_active_attempt_count() == 1


def test_attempt_belongs_to_its_player(engine, quiz):
    view = engine.start_attempt("player-1", quiz.id)
    with pytest.raises(AttemptNotFoundError):
        engine.get_attempt(view.attempt_id, "player-2")


def test_abandon_discards_attempt(engine, quiz):
    view = engine.start_attempt("player-1", quiz.id)
    engine.abandon_attempt(view.attempt_id, "player-1")
    assert engine.get_active_attempt_count() == 0
    assert engine.get_quiz_stats(quiz.id).play_count == 0


# --- One-by-one mode ---


def test_one_by_one_locks_answers_and_moves_forward(engine, quiz):
    first, second, third = quiz.questions
    view = engine.start_attempt("player-1", quiz.id, AttemptMode.ONE_BY_ONE)
    attempt_id = view.attempt_id
    assert view.phase is AttemptPhase.PRESENTING

    with pytest.raises(AttemptStateError):
        engine.check_current_answer(attempt_id, "player-1")
    with pytest.raises(AttemptStateError):
        engine.select_option(attempt_id, "player-1", second.id, 0)

    engine.select_option(attempt_id, "player-1", first.id, 0)
    view = engine.check_current_answer(attempt_id, "player-1")
    assert view.phase is AttemptPhase.CHECKED
    assert not view.checks[first.id].is_correct
    assert view.checks[first.id].correct_indices == (1,)
    assert view.checks[first.id].explanation == "Two pairs make four."

    with pytest.raises(AttemptStateError):
        engine.select_option(attempt_id, "player-1", first.id, 1)
    with pytest.raises(AttemptStateError):
        engine.check_current_answer(attempt_id, "player-1")
    with pytest.raises(AttemptStateError):
        engine.go_to_question(attempt_id, "player-1", 0)

    view = engine.advance_attempt(attempt_id, "player-1")
    assert view.current_index == 1
    assert view.phase is AttemptPhase.PRESENTING
    with pytest.raises(AttemptStateError):
        engine.advance_attempt(attempt_id, "player-1")
    with pytest.raises(AttemptStateError):
        engine.finish_attempt(attempt_id, "player-1")

    engine.select_option(attempt_id, "player-1", second.id, 3)
    engine.select_option(attempt_id, "player-1", second.id, 1)
    engine.check_current_answer(attempt_id, "player-1")
    engine.advance_attempt(attempt_id, "player-1")
    engine.set_selection(attempt_id, "player-1", third.id, [1])
    engine.check_current_answer(attempt_id, "player-1")
    view = engine.advance_attempt(attempt_id, "player-1")

    assert view.phase is AttemptPhase.FINISHED
    assert view.score is not None
    assert view.score.score == 15
    assert [r.is_correct for r in view.score.results] == [False, True, True]
    assert engine.get_active_attempt_count() == 0


def test_check_is_exam_only_rejected(engine, quiz):
    view = engine.start_attempt("player-1", quiz.id)
    with pytest.raises(AttemptStateError):
        engine.check_current_answer(view.attempt_id, "player-1")
    with pytest.raises(AttemptStateError):
        engine.advance_attempt(view.attempt_id, "player-1")


def test_one_by_one_records_time_per_question(engine, quiz, clock):
    view = engine.start_attempt("player-1", quiz.id, AttemptMode.ONE_BY_ONE)
    for question in quiz.questions:
        clock.advance(3)
        engine.set_selection(view.attempt_id, "player-1", question.id, question.correct_indices)
        engine.check_current_answer(view.attempt_id, "player-1")
        view = engine.advance_attempt(view.attempt_id, "player-1")

    history = engine._ledger.history_for_user("player-1")
    assert [entry.time_spent_seconds for entry in history] == [3, 3, 3]
    assert view.score.time_spent_seconds == 9


def test_feedback_matches_final_result(engine, quiz):
    view = engine.start_attempt("player-1", quiz.id, AttemptMode.ONE_BY_ONE)
    selections = [(1,), (1,), (0,)]
    checks = {}
    for question, selection in zip(quiz.questions, selections):
        engine.set_selection(view.attempt_id, "player-1", question.id, selection)
        checks[question.id] = engine.check_current_answer(view.attempt_id, "player-1").checks[question.id]
        view = engine.advance_attempt(view.attempt_id, "player-1")

    for result in view.score.results:
        assert checks[result.question_id].is_correct == result.is_correct


def test_both_protocols_score_identically(engine, quiz):
    selections = {q.id: sel for q, sel in zip(quiz.questions, [(1,), (3, 1), (0,)])}

    exam = engine.start_attempt("exam-player", quiz.id, AttemptMode.EXAM)
    for question_id, selection in selections.items():
        engine.set_selection(exam.attempt_id, "exam-player", question_id, selection)
    exam_result = engine.finish_attempt(exam.attempt_id, "exam-player").score

    sequential = engine.start_attempt("seq-player", quiz.id, AttemptMode.ONE_BY_ONE)
    for question_id, selection in selections.items():
        engine.set_selection(sequential.attempt_id, "seq-player", question_id, selection)
        engine.check_current_answer(sequential.attempt_id, "seq-player")
        sequential = engine.advance_attempt(sequential.attempt_id, "seq-player")
    sequential_result = sequential.score

    direct = engine.submit_attempt(
        "direct-player", quiz.id, [AnswerSubmission(qid, sel) for qid, sel in selections.items()]
    )

    for record in (exam_result, sequential_result):
        assert record.score == direct.score
        assert record.percentage == direct.percentage
        assert [r.is_correct for r in record.results] == [r.is_correct for r in direct.results]


# --- Sessions in isolation ---


def test_session_requires_questions(clock):
    empty = Quiz(id="q", title="Empty", author_id="a", questions=())
    with pytest.raises(AttemptStateError):
        ExamSession("attempt", "player", empty, clock)


def test_session_answers_cover_every_question(engine, quiz, clock):
    session = OneByOneSession("attempt", "player", quiz, clock)
    answers = session.answers()
    assert [a.question_id for a in answers] == [q.id for q in quiz.questions]
    assert all(a.selected_indices == () for a in answers)
    assert session.last_check() is None


def test_failed_sweep_does_not_block_other_players(engine, timed_quiz, quiz, clock, monkeypatch):
    record_aggregates = engine._aggregates.apply

    def apply(record):
        if record.user_id == "stale":
            raise RuntimeError("storage offline")
        record_aggregates(record)

    monkeypatch.setattr(engine._aggregates, "apply", apply)
    stale = engine.start_attempt("stale", timed_quiz.id)
    clock.advance(61)

    view = engine.start_attempt("innocent", quiz.id, AttemptMode.ONE_BY_ONE)
    assert view.phase is AttemptPhase.PRESENTING
    assert engine.get_active_attempt_count() == 2
    assert engine.get_user_scores("stale") == []
    assert engine.get_quiz_stats(timed_quiz.id).play_count == 0

    monkeypatch.setattr(engine._aggregates, "apply", record_aggregates)
    records = engine.sweep_expired_attempts()
    assert [r.user_id for r in records] == ["stale"]
    assert engine.get_active_attempt_count() == 1
    with pytest.raises(AttemptNotFoundError):
        engine.get_attempt(stale.attempt_id, "stale")
