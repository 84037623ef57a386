"""
quiz/store.py -- SQLAlchemy-backed persistence for questions and results.

Uses SQLAlchemy Core (not ORM) so the dataclasses in quiz/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. QuizStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Storage notes:
  options and answers are JSON arrays serialized as text. A result keeps its
  own copy of each answer's correct_answer, so later edits to a question do
  not rewrite history.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = QuizStore("sqlite:///quizdesk.db")
    qid = store.create_question(question)
    store.list_questions(subject="CSS")
    store.close()
"""

import json
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Float, Index, Integer, MetaData, String, Table, Text, text
from sqlalchemy.engine import Engine

from core.database import make_engine
from quiz.models import AnswerRecord, Question, Result

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_questions = Table(
    "questions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("question", Text, nullable=False),
    Column("subject", String(30), nullable=False, index=True),
    Column("options", Text, nullable=False),  # JSON array of 4 strings
    Column("correct_answer", Integer, nullable=False),
    Column("explanation", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_results = Table(
    "results",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("subject", String(30), nullable=False),
    Column("score", Float, nullable=False),
    Column("correct_count", Integer, nullable=False),
    Column("total_questions", Integer, nullable=False),
    Column("answers", Text, nullable=False),  # JSON array of AnswerRecord dicts
    Column("time_spent", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Index("ix_results_user_subject", "user_id", "subject", "created_at"),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class QuizStore:
    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine)

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    def create_question(self, question: Question) -> int:
        """Insert a question and return its assigned database ID."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _questions.insert().values(
                    question=question.question,
                    subject=question.subject,
                    options=json.dumps(question.options),
                    correct_answer=question.correct_answer,
                    explanation=question.explanation,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_question(self, question_id: int) -> Optional[Question]:
        with self.engine.connect() as conn:
            row = conn.execute(_questions.select().where(_questions.c.id == question_id)).fetchone()
        return _row_to_question(row) if row is not None else None

    def get_questions_by_ids(self, question_ids: list[int]) -> dict[int, Question]:
        """Return {id: Question} for the ids that exist. One query regardless of list size."""
        if not question_ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_questions.select().where(_questions.c.id.in_(set(question_ids)))).fetchall()
        return {row.id: _row_to_question(row) for row in rows}

    def list_questions(self, subject: Optional[str] = None) -> list[Question]:
        """Return questions newest first, optionally filtered to one subject."""
        query = _questions.select()
        if subject:
            query = query.where(_questions.c.subject == subject)
        query = query.order_by(_questions.c.created_at.desc(), _questions.c.id.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_question(r) for r in rows]

    def update_question(self, question_id: int, **fields) -> bool:
        """Update question fields. Accepted: question, subject, options,
        correct_answer, explanation.

        Returns True if a row was updated, False if question_id was not found.
        """
        if "options" in fields:
            fields["options"] = json.dumps(fields["options"])
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_questions.update().where(_questions.c.id == question_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_question(self, question_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_questions.delete().where(_questions.c.id == question_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def create_result(self, result: Result) -> int:
        with self.engine.connect() as conn:
            inserted = conn.execute(
                _results.insert().values(
                    user_id=result.user_id,
                    subject=result.subject,
                    score=result.score,
                    correct_count=result.correct_count,
                    total_questions=result.total_questions,
                    answers=json.dumps([asdict(a) for a in result.answers]),
                    time_spent=result.time_spent,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return inserted.inserted_primary_key[0]

    def get_result(self, result_id: int) -> Optional[Result]:
        with self.engine.connect() as conn:
            row = conn.execute(_results.select().where(_results.c.id == result_id)).fetchone()
        return _row_to_result(row) if row is not None else None

    def list_results(self, user_id: int, subject: Optional[str] = None) -> list[Result]:
        """Return a user's results newest first, optionally for one subject."""
        query = _results.select().where(_results.c.user_id == user_id)
        if subject:
            query = query.where(_results.c.subject == subject)
        query = query.order_by(_results.c.created_at.desc(), _results.c.id.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_result(r) for r in rows]

    def best_result(self, user_id: int, subject: str) -> Optional[Result]:
        """Return the highest-scoring result for (user, subject); newest wins a tie."""
        query = (
            _results.select()
            .where((_results.c.user_id == user_id) & (_results.c.subject == subject))
            .order_by(_results.c.score.desc(), _results.c.created_at.desc(), _results.c.id.desc())
            .limit(1)
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_result(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_question(row) -> Question:
    return Question(
        id=row.id,
        question=row.question,
        subject=row.subject,
        options=json.loads(row.options) if row.options else [],
        correct_answer=row.correct_answer,
        explanation=row.explanation,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_result(row) -> Result:
    answers = [AnswerRecord(**a) for a in json.loads(row.answers)] if row.answers else []
    return Result(
        id=row.id,
        user_id=row.user_id,
        subject=row.subject,
        score=row.score,
        correct_count=row.correct_count,
        total_questions=row.total_questions,
        answers=answers,
        time_spent=row.time_spent,
        created_at=row.created_at,
    )
