"""Application entry point: load quiz files and serve the QuizPlay API."""

from __future__ import annotations

from pathlib import Path
import sys

from quizplay.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quizplay.core.errors import QuizValidationError
from quizplay.core.quiz_engine import QuizEngine
from quizplay.core.quiz_importer import QuizImportError, load_quiz_from_file
from quizplay.server.api_server import run_api_server
from quizplay.utils.logging_config import configure_logging

_SYSTEM_AUTHOR = "system"


def main() -> None:
    """Initialize logging, import quiz files given on the command line, start the API."""
    logger = configure_logging()
    logger.info("Starting QuizPlay…")

    engine = QuizEngine()
    for raw_path in sys.argv[1:]:
        path = Path(raw_path)
        try:
            imported = load_quiz_from_file(path)
            quiz = engine.create_quiz(
                _SYSTEM_AUTHOR,
                imported.title,
                imported.questions,
                passing_score=imported.passing_score,
                time_limit_seconds=imported.time_limit_seconds,
                description=imported.description,
            )
        except (OSError, QuizImportError, QuizValidationError) as exc:
            logger.error("Could not load quiz file %s: %s", path, exc)
            sys.exit(1)
        logger.info("Loaded quiz %r from %s as %s", quiz.title, path, quiz.id)

    run_api_server(engine, host=DEFAULT_HOST, port=DEFAULT_PORT)


if __name__ == "__main__":
    main()
