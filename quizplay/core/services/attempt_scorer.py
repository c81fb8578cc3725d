"""Scoring of whole attempts and single-question feedback.

Both functions go through ``answers_match`` so a question reported correct
during one-by-one play is always scored correct when the attempt is finalized.
"""

from __future__ import annotations

from collections.abc import Iterable

from quizplay.core.answer_comparator import answers_match, normalize_indices
from quizplay.core.models import (
    AnswerCheck,
    AnswerSubmission,
    Question,
    QuestionResult,
    Quiz,
    ScoredAttempt,
)


def check_answer(question: Question, selected_indices: Iterable[int]) -> AnswerCheck:
    """Reveal correctness for one question without touching any score."""
    return AnswerCheck(
        is_correct=answers_match(question.correct_indices, selected_indices),
        correct_indices=tuple(question.correct_indices),
        explanation=question.explanation,
    )


def index_submissions(answers: Iterable[AnswerSubmission]) -> dict[str, AnswerSubmission]:
    """Key submissions by question id, keeping the first entry per question."""
    indexed: dict[str, AnswerSubmission] = {}
    for answer in answers:
        indexed.setdefault(answer.question_id, answer)
    return indexed


def calculate_percentage(score: int, max_score: int) -> float:
    if max_score <= 0:
        return 0.0
    return score * 100 / max_score


def score_attempt(quiz: Quiz, answers: Iterable[AnswerSubmission]) -> ScoredAttempt:
    """Score every question of ``quiz`` against the submitted answers.

    Questions without a submission count as unanswered. Every question adds its
    points to ``max_score`` whether it was answered or not, and submissions for
    unknown question ids are ignored.
    """
    by_question = index_submissions(answers)
    score = 0
    max_score = 0
    correct_count = 0
    results: list[QuestionResult] = []

    for question in quiz.questions:
        submission = by_question.get(question.id)
        selected = normalize_indices(submission.selected_indices) if submission else ()
        is_correct = answers_match(question.correct_indices, selected)

        max_score += question.points
        if is_correct:
            score += question.points
            correct_count += 1

        results.append(
            QuestionResult(
                question_id=question.id,
                prompt=question.prompt,
                options=question.options,
                selected_indices=selected,
                correct_indices=tuple(question.correct_indices),
                is_multiple_choice=question.is_multiple_choice,
                is_correct=is_correct,
                explanation=question.explanation,
                points=question.points,
            )
        )

    return ScoredAttempt(
        score=score,
        max_score=max_score,
        percentage=calculate_percentage(score, max_score),
        correct_count=correct_count,
        total_count=len(quiz.questions),
        results=tuple(results),
    )
