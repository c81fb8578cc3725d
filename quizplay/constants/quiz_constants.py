"""Quiz-related constants shared across the engine and the API layer."""

MIN_OPTION_COUNT: int = 2
MAX_OPTION_COUNT: int = 6
OPTION_LETTERS: tuple[str, ...] = ("A", "B", "C", "D", "E", "F")

DEFAULT_POINTS: int = 10
MAX_POINTS: int = 100
DEFAULT_PASSING_SCORE: int = 60

MIN_TIME_LIMIT_SECONDS: int = 30
MAX_TIME_LIMIT_SECONDS: int = 7200

MAX_TITLE_LENGTH: int = 100
MAX_PROMPT_LENGTH: int = 1000
MAX_EXPLANATION_LENGTH: int = 2000

DEFAULT_RANKING_LIMIT: int = 10
MAX_RANKING_LIMIT: int = 100
