"""
api/routes/v1/results.py -- Saved quiz attempts for the signed-in user.

Routes (in registration order to avoid FastAPI path capture conflicts):
  POST /results                 -- save an attempt
  GET  /results/my-results      -- own attempts, newest first, ?subject=
  GET  /results/best/{subject}  -- own highest score for a subject
  GET  /results/{result_id}     -- one own attempt with per-question detail

Ownership: a result is only ever returned to the user who saved it. Staff
roles get no special access here.
"""

from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    AnswerQuestionInfo,
    MessageResponse,
    ResultAnswerDetail,
    ResultCreate,
    ResultDetail,
    ResultSummary,
    RowId,
)
from auth.dependencies import get_current_user
from auth.models import User
from quiz.models import Result, normalize_subject
from quiz.scoring import clean_answer_records
from quiz.store import QuizStore

# Every results route requires authentication.
router = APIRouter(dependencies=[Depends(get_current_user)])


def _subject_or_400(value: str) -> str:
    subject = normalize_subject(value)
    if subject is None:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_subject", "message": f"Unknown subject: {value}"},
        )
    return subject


@router.post("/results", response_model=ResultSummary, status_code=201)
def save_result(
    request: Request,
    body: ResultCreate,
    user: User = Depends(get_current_user),
) -> ResultSummary:
    """Store an attempt for the current user. Answers with unusable ids are dropped."""
    store: QuizStore = request.app.state.quiz_store
    result_id = store.create_result(
        Result(
            user_id=user.id,
            subject=body.subject.value,
            score=body.score,
            correct_count=body.correct_count,
            total_questions=body.total_questions,
            answers=clean_answer_records([a.model_dump() for a in body.answers]),
            time_spent=body.time_spent,
        )
    )
    return ResultSummary.from_result(store.get_result(result_id))


@router.get("/results/my-results", response_model=list[ResultSummary])
def my_results(
    request: Request,
    subject: Optional[str] = None,
    user: User = Depends(get_current_user),
) -> list[ResultSummary]:
    store: QuizStore = request.app.state.quiz_store
    canonical = None
    if subject and subject.strip().lower() != "all":
        canonical = _subject_or_400(subject)
    return [ResultSummary.from_result(r) for r in store.list_results(user.id, canonical)]


@router.get("/results/best/{subject}", response_model=Union[ResultSummary, MessageResponse])
def best_result(
    request: Request,
    subject: str,
    user: User = Depends(get_current_user),
) -> Union[ResultSummary, MessageResponse]:
    """Return the best attempt, or a message when the user has none for this subject."""
    store: QuizStore = request.app.state.quiz_store
    best = store.best_result(user.id, _subject_or_400(subject))
    if best is None:
        return MessageResponse(message="No results found for this subject.")
    return ResultSummary.from_result(best)


@router.get("/results/{result_id}", response_model=ResultDetail)
def get_result(
    request: Request,
    result_id: RowId,
    user: User = Depends(get_current_user),
) -> ResultDetail:
    """Return one attempt with each answer joined to its question text.

    Answers whose question has since been deleted keep question=None.
    """
    store: QuizStore = request.app.state.quiz_store
    result = store.get_result(result_id)
    if result is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Result not found."},
        )
    if result.user_id != user.id:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Access denied."},
        )

    questions = store.get_questions_by_ids([a.question_id for a in result.answers])
    answers = []
    for a in result.answers:
        q = questions.get(a.question_id)
        answers.append(
            ResultAnswerDetail(
                question_id=a.question_id,
                selected_answer=a.selected_answer,
                correct_answer=a.correct_answer,
                is_correct=a.is_correct,
                question=(
                    AnswerQuestionInfo(question=q.question, options=q.options, explanation=q.explanation)
                    if q is not None
                    else None
                ),
            )
        )

    summary = ResultSummary.from_result(result)
    return ResultDetail(**summary.model_dump(), answers=answers)
