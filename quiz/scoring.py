"""
quiz/scoring.py -- Grading of submitted answers.

grade_submission() is the only place correctness is decided. Route handlers
pass the raw (question_id, selected_answer) pairs and get back everything the
client needs to render a result screen.

Rules:
  - total_questions counts every submitted answer, including ones whose
    question no longer exists; those are skipped in the per-question detail
    and simply cannot be correct.
  - score is correct / total * 100 rounded half-up to an integer; an empty
    submission scores 0.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional

from core.database import MAX_ROW_ID
from quiz.models import AnswerRecord, Question
from quiz.store import QuizStore


@dataclass
class GradedAnswer:
    question_id: int
    question: str
    selected_answer: Optional[int]
    correct_answer: int
    is_correct: bool
    explanation: Optional[str] = None


@dataclass
class Grading:
    score: int
    correct_count: int
    total_questions: int
    results: list[GradedAnswer] = field(default_factory=list)


def percentage(correct: int, total: int) -> int:
    """Return correct/total as a whole percentage, rounding .5 up. 0 when total is 0."""
    if total <= 0:
        return 0
    return int(math.floor(correct * 100 / total + 0.5))


def coerce_question_id(value: Any) -> Optional[int]:
    """Return value as a positive int id, or None if it is not one.

    Values past MAX_ROW_ID cannot name a stored row and are treated like
    any other unusable id.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        digits = value.strip()
        # int() refuses very long digit strings; anything this long is out of range anyway.
        if not digits.isdecimal() or len(digits.lstrip("0")) > len(str(MAX_ROW_ID)):
            return None
        value = int(digits)
    if isinstance(value, int) and 0 < value <= MAX_ROW_ID:
        return value
    return None


def grade_submission(store: QuizStore, answers: list[tuple[Any, Optional[int]]]) -> Grading:
    """Grade (question_id, selected_answer) pairs against the question bank."""
    ids = [qid for qid in (coerce_question_id(a[0]) for a in answers) if qid is not None]
    questions: dict[int, Question] = store.get_questions_by_ids(ids)

    graded: list[GradedAnswer] = []
    correct = 0
    for raw_id, selected in answers:
        qid = coerce_question_id(raw_id)
        question = questions.get(qid) if qid is not None else None
        if question is None:
            continue
        is_correct = selected is not None and question.correct_answer == selected
        if is_correct:
            correct += 1
        graded.append(
            GradedAnswer(
                question_id=question.id,
                question=question.question,
                selected_answer=selected,
                correct_answer=question.correct_answer,
                is_correct=is_correct,
                explanation=question.explanation,
            )
        )

    return Grading(
        score=percentage(correct, len(answers)),
        correct_count=correct,
        total_questions=len(answers),
        results=graded,
    )


def clean_answer_records(raw: list[dict]) -> list[AnswerRecord]:
    """Turn client-supplied answer dicts into AnswerRecords for storage.

    Entries without a usable question id are dropped rather than failing
    the whole save.
    """
    records: list[AnswerRecord] = []
    for entry in raw:
        qid = coerce_question_id(entry.get("question_id"))
        if qid is None:
            continue
        records.append(
            AnswerRecord(
                question_id=qid,
                selected_answer=entry.get("selected_answer"),
                correct_answer=entry.get("correct_answer"),
                is_correct=bool(entry.get("is_correct", False)),
            )
        )
    return records
