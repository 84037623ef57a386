"""
quiz/models.py -- Domain dataclasses for the question bank and quiz results.

Pure data containers. Validation of incoming data happens in api/models.py;
scoring lives in quiz/scoring.py; persistence in quiz/store.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

SUBJECTS: tuple[str, ...] = ("HTML", "CSS", "JavaScript", "React", "Node.js", "MongoDB")

OPTION_COUNT = 4

# Lowercased aliases accepted in query strings (?subject=nodejs).
_SUBJECT_ALIASES: dict[str, str] = {s.lower(): s for s in SUBJECTS}
_SUBJECT_ALIASES["nodejs"] = "Node.js"


def normalize_subject(value: str) -> Optional[str]:
    """Map a case-insensitive subject name to its canonical form, or None."""
    return _SUBJECT_ALIASES.get(value.strip().lower())


@dataclass
class Question:
    """A multiple-choice question with exactly four options.

    correct_answer is the 0-based index into options.
    """

    question: str
    subject: str
    options: list[str]
    correct_answer: int
    explanation: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class AnswerRecord:
    """One graded answer inside a Result."""

    question_id: int
    selected_answer: Optional[int]
    correct_answer: Optional[int]
    is_correct: bool


@dataclass
class Result:
    """A completed quiz attempt. score is a 0-100 percentage."""

    user_id: int
    subject: str
    score: float
    correct_count: int
    total_questions: int
    answers: list[AnswerRecord] = field(default_factory=list)
    time_spent: int = 0  # seconds
    id: Optional[int] = None
    created_at: str = ""
