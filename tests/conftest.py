import pytest

from quizplay.core.models import Question
from quizplay.core.quiz_engine import QuizEngine


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_question(
    prompt="What is 2 + 2?",
    options=("3", "4", "5", "6"),
    correct=(1,),
    multiple=False,
    points=10,
    explanation=None,
    question_id="",
):
    return Question(
        id=question_id,
        prompt=prompt,
        options=tuple(options),
        correct_indices=tuple(correct),
        is_multiple_choice=multiple,
        points=points,
        explanation=explanation,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(clock):
    return QuizEngine(clock=clock)


@pytest.fixture
def quiz(engine):
    """Three-question quiz: single choice, multiple choice, single choice worth 5."""
    return engine.create_quiz(
        "author-1",
        "Arithmetic",
        [
            make_question(explanation="Two pairs make four."),
            make_question(
                prompt="Which are even?",
                options=("1", "2", "3", "4"),
                correct=(1, 3),
                multiple=True,
            ),
            make_question(prompt="What is 3 * 3?", options=("6", "9"), correct=(1,), points=5),
        ],
        passing_score=60,
    )


@pytest.fixture
def timed_quiz(engine):
    return engine.create_quiz(
        "author-1",
        "Timed",
        [make_question(), make_question(prompt="What is 1 + 1?", options=("2", "3"), correct=(0,))],
        time_limit_seconds=60,
    )
