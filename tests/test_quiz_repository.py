import pytest

from quizplay.core.errors import QuizNotFoundError, QuizValidationError
from quizplay.core.services.quiz_repository import QuizRepository
from tests.conftest import make_question


@pytest.fixture
def repository():
    return QuizRepository()


def test_add_quiz_normalizes_input(repository):
    quiz = repository.add_quiz(
        "author",
        "  Capitals  ",
        [make_question(prompt=" Capital of Norway? ", options=(" Oslo ", "Bergen"), correct=(0,), explanation="  ")],
        description="   ",
    )
    question = quiz.questions[0]
    assert quiz.title == "Capitals"
    assert quiz.description is None
    assert question.prompt == "Capital of Norway?"
    assert question.options == ("Oslo", "Bergen")
    assert question.explanation is None
    assert repository.get_stats(quiz.id).play_count == 0
    assert repository.get_question(quiz.id, question.id) == question


@pytest.mark.parametrize(
    "kwargs",
    [
        {"title": ""},
        {"title": "x" * 101},
        {"questions": []},
        {"passing_score": 101},
        {"passing_score": -1},
        {"time_limit_seconds": 29},
        {"time_limit_seconds": 7201},
    ],
)
def test_add_quiz_rejects_invalid_quiz(repository, kwargs):
    arguments = {"title": "Quiz", "questions": [make_question()], **kwargs}
    with pytest.raises(QuizValidationError):
        repository.add_quiz("author", **arguments)


@pytest.mark.parametrize(
    "question",
    [
        make_question(prompt=" "),
        make_question(options=("only",), correct=(0,)),
        make_question(options=tuple("abcdefg")),
        make_question(options=("a", " ")),
        make_question(correct=()),
        make_question(correct=(4,)),
        make_question(correct=(0, 1)),
        make_question(points=0),
        make_question(points=101),
        make_question(explanation="x" * 2001),
    ],
)
def test_add_quiz_rejects_invalid_question(repository, question):
    with pytest.raises(QuizValidationError):
        repository.add_quiz("author", "Quiz", [question])


def test_multiple_choice_keeps_every_correct_index(repository):
    quiz = repository.add_quiz("author", "Quiz", [make_question(correct=(3, 1, 1), multiple=True)])
    assert quiz.questions[0].correct_indices == (1, 3)


def test_time_limit_bounds_are_inclusive(repository):
    assert repository.add_quiz("a", "Quiz", [make_question()], time_limit_seconds=30).time_limit_seconds == 30
    assert repository.add_quiz("a", "Quiz", [make_question()], time_limit_seconds=7200).time_limit_seconds == 7200


def test_unknown_quiz(repository):
    with pytest.raises(QuizNotFoundError):
        repository.get_quiz("missing")
    with pytest.raises(QuizNotFoundError):
        repository.get_stats("missing")
    assert not repository.has_quiz("missing")


def test_stats_snapshot_is_independent(repository):
    quiz = repository.add_quiz("author", "Quiz", [make_question()])
    snapshot = repository.snapshot_stats(quiz.id)
    repository.get_stats(quiz.id).play_count = 5
    repository.restore_stats(snapshot)
    assert repository.get_stats(quiz.id).play_count == 0
