"""
api/routes/v1/users.py -- Account administration.

Routes:
  GET    /users                  -- all users, newest first
  POST   /users                  -- create a user with any role
  GET    /users/{user_id}        -- one user
  PUT    /users/{user_id}        -- edit username / email / password / role
  PUT    /users/{user_id}/role   -- change role only
  DELETE /users/{user_id}        -- delete

Every route requires a role in CAN_MANAGE_USERS (admin, superadmin).

Guard rails:
  - Nobody changes their own role, so an admin cannot lock themselves out
    or escalate through this API.
  - Edits may only assign roles in ASSIGNABLE_ROLES; superadmin is granted
    at creation time or from the CLI.
  - Nobody deletes their own account.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError

from api.models import MessageResponse, RoleUpdate, RowId, UserCreate, UserResponse, UserUpdate
from auth.dependencies import require_roles
from auth.models import User
from auth.permissions import ASSIGNABLE_ROLES, CAN_MANAGE_USERS
from auth.store import UserStore
from auth.tokens import hash_password

logger = logging.getLogger("quizdesk.api.users")

_admin = require_roles(CAN_MANAGE_USERS, "Admin access required.")

router = APIRouter(dependencies=[Depends(_admin)])


def _get_or_404(user_store: UserStore, user_id: int) -> User:
    user = user_store.get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return user


def _conflict_error(conflict: User, email: str) -> HTTPException:
    if conflict.email == email:
        return HTTPException(
            status_code=400,
            detail={"code": "email_taken", "message": "User with this email already exists."},
        )
    return HTTPException(
        status_code=400,
        detail={"code": "username_taken", "message": "Username already taken."},
    )


def _integrity_error(exc: IntegrityError) -> HTTPException:
    logger.warning("User write rejected by constraint: %s", exc.orig)
    return HTTPException(
        status_code=400,
        detail={"code": "conflict", "message": "Email or username already exists."},
    )


def _own_role_error() -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"code": "own_role", "message": "You cannot change your own role."},
    )


def _check_assignable(role: str) -> None:
    if role not in ASSIGNABLE_ROLES:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_role", "message": f"Role cannot be assigned: {role}"},
        )


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    admin: User = Depends(_admin),
) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    conflict = user_store.find_conflict(body.email, body.username)
    if conflict is not None:
        raise _conflict_error(conflict, body.email)

    try:
        user_id = user_store.create_user(
            User(
                email=body.email,
                username=body.username,
                role=body.role.value,
                hashed_password=hash_password(body.password),
            )
        )
    except IntegrityError as exc:
        raise _integrity_error(exc) from exc

    logger.info("User %s (%s) created by user_id=%s", user_id, body.role.value, admin.id)
    return UserResponse.from_user(user_store.get_by_id(user_id))


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: RowId) -> UserResponse:
    return UserResponse.from_user(_get_or_404(request.app.state.user_store, user_id))


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: RowId,
    body: UserUpdate,
    admin: User = Depends(_admin),
) -> UserResponse:
    """Partial edit. An omitted or blank password leaves the current one in place."""
    user_store: UserStore = request.app.state.user_store
    target = _get_or_404(user_store, user_id)

    fields: dict = {}
    if body.role is not None and body.role.value != target.role:
        if target.id == admin.id:
            raise _own_role_error()
        _check_assignable(body.role.value)
        fields["role"] = body.role.value

    new_email = body.email or target.email
    new_username = body.username or target.username
    if new_email != target.email or new_username != target.username:
        conflict = user_store.find_conflict(new_email, new_username, exclude_id=target.id)
        if conflict is not None:
            raise _conflict_error(conflict, new_email)
        fields["email"] = new_email
        fields["username"] = new_username

    if body.password:
        fields["hashed_password"] = hash_password(body.password)

    if fields:
        try:
            user_store.update_user(target.id, **fields)
        except IntegrityError as exc:
            raise _integrity_error(exc) from exc
        logger.info("User %s updated by user_id=%s (%s)", target.id, admin.id, ", ".join(sorted(fields)))

    return UserResponse.from_user(user_store.get_by_id(target.id))


@router.put("/users/{user_id}/role", response_model=UserResponse)
def update_role(
    request: Request,
    user_id: RowId,
    body: RoleUpdate,
    admin: User = Depends(_admin),
) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    target = _get_or_404(user_store, user_id)
    if target.id == admin.id:
        raise _own_role_error()
    _check_assignable(body.role.value)

    user_store.update_user(target.id, role=body.role.value)
    logger.info("User %s role %s -> %s by user_id=%s", target.id, target.role, body.role.value, admin.id)
    return UserResponse.from_user(user_store.get_by_id(target.id))


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    request: Request,
    user_id: RowId,
    admin: User = Depends(_admin),
) -> MessageResponse:
    user_store: UserStore = request.app.state.user_store
    if user_id == admin.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "own_account", "message": "You cannot delete your own account."},
        )
    if not user_store.delete_user(user_id):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    logger.info("User %s deleted by user_id=%s", user_id, admin.id)
    return MessageResponse(message="User deleted successfully.")
