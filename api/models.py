"""
API request and response models for QuizDesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
quiz/models.py, which own the internal domain representation. Route handlers
map between the two.

Constraint violations surface as 422 validation_error through the handler in
api/main.py; business-rule violations (duplicate email, own-role change) are
raised by the routes as 400s.
"""

import re
from enum import Enum
from typing import Annotated, Optional, Union

from fastapi import Path
from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import User
from core.database import MAX_ROW_ID
from quiz.models import OPTION_COUNT, Question, Result

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# bcrypt ignores everything past 72 bytes.
_PASSWORD_MAX_BYTES = 72

# Path ids must fit an SQLite INTEGER; larger values fail as 422 before any query.
RowId = Annotated[int, Path(gt=0, le=MAX_ROW_ID)]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    manager = "manager"
    admin = "admin"
    superadmin = "superadmin"


class SubjectEnum(str, Enum):
    html = "HTML"
    css = "CSS"
    javascript = "JavaScript"
    react = "React"
    nodejs = "Node.js"
    mongodb = "MongoDB"


# ---------------------------------------------------------------------------
# Shared validators
# ---------------------------------------------------------------------------


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value


def _normalize_username(value: str) -> str:
    value = value.strip()
    if len(value) < 3:
        raise ValueError("Username must be at least 3 characters long")
    return value


def _check_password(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters long")
    if len(value.encode("utf-8")) > _PASSWORD_MAX_BYTES:
        raise ValueError("Password must be at most 72 bytes long")
    return value


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    No role field: self-service accounts are always "user".
    """

    username: str = Field(max_length=50)
    email: str = Field(max_length=255)
    password: str

    check_username = field_validator("username")(_normalize_username)
    check_email = field_validator("email")(_normalize_email)
    check_password = field_validator("password")(_check_password)


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.strip().lower()


class ForgotPasswordRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.strip().lower()


class VerifyOtpRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    otp: str = Field(min_length=1, max_length=12)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("otp")
    @classmethod
    def strip_otp(cls, value: str) -> str:
        return value.strip()


class ResetPasswordRequest(VerifyOtpRequest):
    new_password: str

    check_new_password = field_validator("new_password")(_check_password)


class GoogleLoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/google.

    Accepts token_id or the camelCase tokenId sent by Google's JS client.
    Left optional so a missing token is reported as a 400 by the route.
    """

    model_config = ConfigDict(populate_by_name=True)

    token_id: Optional[str] = Field(default=None, alias="tokenId", max_length=8192)


# ---------------------------------------------------------------------------
# Auth / users -- responses
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. Password hashes never leave the server."""

    id: int
    username: str
    email: str
    role: str
    profile_picture: Optional[str] = None
    has_password: bool = False
    google_linked: bool = False
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            profile_picture=user.profile_picture,
            has_password=bool(user.hashed_password),
            google_linked=bool(user.google_id),
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class AuthResponse(BaseModel):
    """Returned by register, login and Google sign-in."""

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class VerifyOtpResponse(BaseModel):
    message: str
    verified: bool


# ---------------------------------------------------------------------------
# User management -- requests
# ---------------------------------------------------------------------------


class UserCreate(RegisterRequest):
    """Request body for POST /api/v1/users. Admins may pick any role."""

    role: RoleEnum = RoleEnum.user


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{id}. Omitted fields are left alone.

    An empty password string means "keep the current password".
    """

    username: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = None
    role: Optional[RoleEnum] = None

    @field_validator("username")
    @classmethod
    def check_username(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_username(value) if value else None

    @field_validator("email")
    @classmethod
    def check_email(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_email(value) if value else None

    @field_validator("password")
    @classmethod
    def check_password(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return _check_password(value)


class RoleUpdate(BaseModel):
    role: RoleEnum


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------


class QuestionCreate(BaseModel):
    question: str = Field(min_length=1, max_length=2000)
    subject: SubjectEnum
    options: list[str] = Field(min_length=OPTION_COUNT, max_length=OPTION_COUNT)
    correct_answer: int = Field(ge=0, le=3)
    explanation: Optional[str] = Field(default=None, max_length=4000)

    @field_validator("question")
    @classmethod
    def strip_question(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Question text is required")
        return value


class QuestionUpdate(BaseModel):
    """Request body for PUT /api/v1/questions/{id}. Omitted fields are left alone."""

    question: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    subject: Optional[SubjectEnum] = None
    options: Optional[list[str]] = Field(default=None, min_length=OPTION_COUNT, max_length=OPTION_COUNT)
    correct_answer: Optional[int] = Field(default=None, ge=0, le=3)
    explanation: Optional[str] = Field(default=None, max_length=4000)


class QuestionResponse(BaseModel):
    """Full question, including the answer key. Staff only."""

    id: int
    question: str
    subject: str
    options: list[str]
    correct_answer: int
    explanation: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_question(cls, q: Question) -> "QuestionResponse":
        return cls(
            id=q.id,
            question=q.question,
            subject=q.subject,
            options=q.options,
            correct_answer=q.correct_answer,
            explanation=q.explanation,
            created_at=q.created_at,
            updated_at=q.updated_at,
        )


class QuizQuestion(BaseModel):
    """A question as served to quiz takers: no answer key, no explanation."""

    id: int
    question: str
    subject: str
    options: list[str]

    @classmethod
    def from_question(cls, q: Question) -> "QuizQuestion":
        return cls(id=q.id, question=q.question, subject=q.subject, options=q.options)


class SubmittedAnswer(BaseModel):
    question_id: Union[int, str, None] = None
    selected_answer: Optional[int] = None


class SubmitRequest(BaseModel):
    answers: list[SubmittedAnswer] = Field(default_factory=list, max_length=500)


class GradedAnswerResponse(BaseModel):
    question_id: int
    question: str
    selected_answer: Optional[int]
    correct_answer: int
    is_correct: bool
    explanation: Optional[str] = None


class SubmitResponse(BaseModel):
    score: int
    correct_count: int
    total_questions: int
    results: list[GradedAnswerResponse]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ResultAnswerIn(BaseModel):
    question_id: Union[int, str, None] = None
    selected_answer: Optional[int] = None
    correct_answer: Optional[int] = None
    is_correct: Optional[bool] = None


class ResultCreate(BaseModel):
    subject: SubjectEnum
    score: float = Field(ge=0, le=100)
    correct_count: int = Field(ge=0)
    total_questions: int = Field(ge=1)
    answers: list[ResultAnswerIn] = Field(default_factory=list, max_length=500)
    time_spent: int = Field(default=0, ge=0)


class ResultSummary(BaseModel):
    """One row of GET /results/my-results -- no per-answer detail."""

    id: int
    user_id: int
    subject: str
    score: float
    correct_count: int
    total_questions: int
    time_spent: int
    created_at: str

    @classmethod
    def from_result(cls, r: Result) -> "ResultSummary":
        return cls(
            id=r.id,
            user_id=r.user_id,
            subject=r.subject,
            score=r.score,
            correct_count=r.correct_count,
            total_questions=r.total_questions,
            time_spent=r.time_spent,
            created_at=r.created_at,
        )


class AnswerQuestionInfo(BaseModel):
    question: str
    options: list[str]
    explanation: Optional[str] = None


class ResultAnswerDetail(BaseModel):
    question_id: int
    selected_answer: Optional[int]
    correct_answer: Optional[int]
    is_correct: bool
    question: Optional[AnswerQuestionInfo] = None


class ResultDetail(ResultSummary):
    answers: list[ResultAnswerDetail] = Field(default_factory=list)
