"""
api/routes/v1/questions.py -- Question bank and quiz grading.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /questions/admin              -- full bank, optional ?subject= (staff)
  GET    /questions/subject/{subject}  -- quiz questions without answers (any user)
  POST   /questions/submit             -- grade a set of answers (any user)
  POST   /questions                    -- create (CAN_CREATE)
  GET    /questions/{question_id}      -- full question (staff)
  PUT    /questions/{question_id}      -- partial update (CAN_EDIT)
  DELETE /questions/{question_id}      -- delete (CAN_DELETE)

The answer key (correct_answer, explanation) is only ever returned by the
staff routes and by /submit after grading.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    GradedAnswerResponse,
    MessageResponse,
    QuestionCreate,
    QuestionResponse,
    QuestionUpdate,
    QuizQuestion,
    RowId,
    SubmitRequest,
    SubmitResponse,
)
from auth.dependencies import get_current_user, require_roles
from auth.models import User
from auth.permissions import CAN_CREATE, CAN_DELETE, CAN_EDIT, STAFF
from quiz.models import Question, normalize_subject
from quiz.scoring import grade_submission
from quiz.store import QuizStore

logger = logging.getLogger("quizdesk.api.questions")

router = APIRouter()

_staff = require_roles(STAFF, "Admin access required.")
_can_create = require_roles(CAN_CREATE, "You don't have permission to create questions.")
_can_edit = require_roles(CAN_EDIT, "You don't have permission to edit questions.")
_can_delete = require_roles(CAN_DELETE, "You don't have permission to delete questions.")


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "not_found", "message": "Question not found."},
    )


def _subject_or_400(value: str) -> str:
    subject = normalize_subject(value)
    if subject is None:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_subject", "message": f"Unknown subject: {value}"},
        )
    return subject


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


@router.get("/questions/admin", response_model=list[QuestionResponse])
def list_questions_admin(
    request: Request,
    subject: Optional[str] = None,
    _user: User = Depends(_staff),
) -> list[QuestionResponse]:
    """Return the whole bank newest first. subject=all (or omitted) means no filter."""
    store: QuizStore = request.app.state.quiz_store
    canonical = None
    if subject and subject.strip().lower() != "all":
        canonical = _subject_or_400(subject)
    return [QuestionResponse.from_question(q) for q in store.list_questions(canonical)]


@router.get("/questions/subject/{subject}", response_model=list[QuizQuestion])
def list_quiz_questions(
    request: Request,
    subject: str,
    _user: User = Depends(get_current_user),
) -> list[QuizQuestion]:
    store: QuizStore = request.app.state.quiz_store
    canonical = _subject_or_400(subject)
    return [QuizQuestion.from_question(q) for q in store.list_questions(canonical)]


# ---------------------------------------------------------------------------
# POST /questions/submit -- grade answers
# ---------------------------------------------------------------------------


@router.post("/questions/submit", response_model=SubmitResponse)
def submit_answers(
    request: Request,
    body: SubmitRequest,
    _user: User = Depends(get_current_user),
) -> SubmitResponse:
    """Grade answers against the bank. Nothing is persisted here; the client
    saves the attempt through POST /results.
    """
    store: QuizStore = request.app.state.quiz_store
    grading = grade_submission(store, [(a.question_id, a.selected_answer) for a in body.answers])
    return SubmitResponse(
        score=grading.score,
        correct_count=grading.correct_count,
        total_questions=grading.total_questions,
        results=[
            GradedAnswerResponse(
                question_id=g.question_id,
                question=g.question,
                selected_answer=g.selected_answer,
                correct_answer=g.correct_answer,
                is_correct=g.is_correct,
                explanation=g.explanation,
            )
            for g in grading.results
        ],
    )


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@router.post("/questions", response_model=QuestionResponse, status_code=201)
def create_question(
    request: Request,
    body: QuestionCreate,
    user: User = Depends(_can_create),
) -> QuestionResponse:
    store: QuizStore = request.app.state.quiz_store
    question_id = store.create_question(
        Question(
            question=body.question,
            subject=body.subject.value,
            options=body.options,
            correct_answer=body.correct_answer,
            explanation=body.explanation,
        )
    )
    logger.info("Question %s created by user_id=%s", question_id, user.id)
    return QuestionResponse.from_question(store.get_question(question_id))


@router.get("/questions/{question_id}", response_model=QuestionResponse)
def get_question(
    request: Request,
    question_id: RowId,
    _user: User = Depends(_staff),
) -> QuestionResponse:
    store: QuizStore = request.app.state.quiz_store
    question = store.get_question(question_id)
    if question is None:
        raise _not_found()
    return QuestionResponse.from_question(question)


@router.put("/questions/{question_id}", response_model=QuestionResponse)
def update_question(
    request: Request,
    question_id: RowId,
    body: QuestionUpdate,
    user: User = Depends(_can_edit),
) -> QuestionResponse:
    """Apply the fields present in the body; everything else is kept."""
    store: QuizStore = request.app.state.quiz_store
    if store.get_question(question_id) is None:
        raise _not_found()

    fields = body.model_dump(exclude_unset=True)
    if fields.get("subject") is not None:
        fields["subject"] = body.subject.value
    fields = {k: v for k, v in fields.items() if v is not None or k == "explanation"}
    if fields:
        store.update_question(question_id, **fields)
        logger.info("Question %s updated by user_id=%s", question_id, user.id)
    return QuestionResponse.from_question(store.get_question(question_id))


@router.delete("/questions/{question_id}", response_model=MessageResponse)
def delete_question(
    request: Request,
    question_id: RowId,
    user: User = Depends(_can_delete),
) -> MessageResponse:
    store: QuizStore = request.app.state.quiz_store
    if not store.delete_question(question_id):
        raise _not_found()
    logger.info("Question %s deleted by user_id=%s", question_id, user.id)
    return MessageResponse(message="Question deleted successfully.")
