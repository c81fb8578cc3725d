"""Utilities for importing quizzes from a human-friendly text file.

File format: an optional header followed by question blocks separated by
blank lines or '---'.

    TITLE: Quiz title                 (defaults to the file name)
    DESCRIPTION: One line summary     (optional)
    PASSING: 60                       (optional passing percentage)
    TIMELIMIT: 600                    (optional, seconds for the whole quiz)

    Q: Question text (supports markdown). Additional lines until the next
       marker are treated as part of the question.
    A: First option text
    B: Second option text
    ...                               (two to six options, A-F)
    CORRECT: B        or   CORRECT: A, C
    POINTS: 10                        (optional)
    EXPLANATION: Why B is right.      (optional, may continue on later lines)

Example:

    TITLE: Arithmetic

    Q: What is $2 + 2$?
    A: 3
    B: 4
    C: 5
    CORRECT: B
    EXPLANATION: Two pairs make four.

Naming more than one correct letter makes the question multiple-choice.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from quizplay.constants.quiz_constants import DEFAULT_PASSING_SCORE, DEFAULT_POINTS, OPTION_LETTERS
from quizplay.core.models import Question


class QuizImportError(ValueError):
    """Raised when a quiz definition cannot be parsed."""


@dataclass(slots=True)
class ImportedQuiz:
    """Container for imported quiz metadata and questions."""

    source_path: Path
    title: str
    questions: list[Question]
    description: str | None = None
    passing_score: int = DEFAULT_PASSING_SCORE
    time_limit_seconds: int | None = None


_HEADER_KEYS = ("TITLE", "DESCRIPTION", "PASSING", "TIMELIMIT")


def load_quiz_from_file(file_path: Path) -> ImportedQuiz:
    text = file_path.read_text(encoding="utf-8")
    imported = parse_quiz_text(text, default_title=file_path.stem)
    imported.source_path = file_path
    return imported


def parse_quiz_text(text: str, default_title: str = "Untitled quiz") -> ImportedQuiz:
    header: dict[str, str] = {}
    blocks = _split_blocks(text)
    if blocks and not blocks[0].lstrip().upper().startswith("Q:"):
        header = _parse_header(blocks.pop(0))

    questions = [_parse_block(block) for block in blocks]
    if not questions:
        raise QuizImportError("Quiz file did not contain any questions.")

    return ImportedQuiz(
        source_path=Path(),
        title=header.get("TITLE") or default_title,
        questions=questions,
        description=header.get("DESCRIPTION"),
        passing_score=_parse_int(header, "PASSING", DEFAULT_PASSING_SCORE),
        time_limit_seconds=_parse_int(header, "TIMELIMIT", None),
    )


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return blocks


def _parse_header(block: str) -> dict[str, str]:
    header: dict[str, str] = {}
    for raw_line in block.splitlines():
        key, sep, value = raw_line.strip().partition(":")
        key = key.strip().upper()
        if not sep or key not in _HEADER_KEYS:
            raise QuizImportError(f"Unknown header line: '{raw_line.strip()}'.")
        header[key] = value.strip()
    return header


def _parse_int(header: dict[str, str], key: str, default: int | None) -> int | None:
    raw_value = header.get(key)
    if raw_value is None or raw_value == "":
        return default
    try:
        return int(raw_value)
    except ValueError as exc:
        raise QuizImportError(f"{key} must be an integer.") from exc


def _parse_block(block: str) -> Question:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    explanation_lines: list[str] = []
    correct_letters: list[str] = []
    points = DEFAULT_POINTS
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        upper = line.upper()

        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            raw_letters = line.split(":", 1)[1].replace(",", " ").upper().split()
            if not raw_letters:
                raise QuizImportError("CORRECT must name at least one option letter.")
            correct_letters = raw_letters
            current_section = None
            continue

        if upper.startswith("POINTS:"):
            raw_value = line.split(":", 1)[1].strip()
            try:
                points = int(raw_value)
            except ValueError as exc:
                raise QuizImportError("POINTS must be an integer.") from exc
            current_section = None
            continue

        if upper.startswith("EXPLANATION:"):
            explanation_lines = [line.split(":", 1)[1].strip()]
            current_section = "EXPLANATION"
            continue

        if len(line) > 2 and line[0].upper() in OPTION_LETTERS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section == "EXPLANATION":
            explanation_lines.append(line)
        elif current_section in OPTION_LETTERS:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(f"Encountered text outside of a known section: '{line}'.")

    if not question_lines:
        raise QuizImportError("Question text missing (Q: ...)")

    letters = [letter for letter in OPTION_LETTERS if letter in options]
    if letters != list(OPTION_LETTERS[: len(letters)]):
        raise QuizImportError("Options must be lettered consecutively starting at A.")
    if len(letters) < 2:
        raise QuizImportError("Each question must define at least two options.")
    if not correct_letters:
        raise QuizImportError("Each question must name its correct option (CORRECT: ...).")

    correct_indices: list[int] = []
    for letter in correct_letters:
        if letter not in letters:
            raise QuizImportError(f"CORRECT refers to an unknown option '{letter}'.")
        correct_indices.append(letters.index(letter))

    explanation = "\n".join(explanation_lines).strip() or None
    return Question(
        id="",  # assigned when the quiz is stored
        prompt="\n".join(question_lines).strip(),
        options=tuple(options[letter].strip() for letter in letters),
        correct_indices=tuple(sorted(set(correct_indices))),
        is_multiple_choice=len(set(correct_indices)) > 1,
        points=points,
        explanation=explanation,
    )
