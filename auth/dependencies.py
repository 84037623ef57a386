"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and
role gates.

Two token sources are checked in priority order:
  1. Authorization: Bearer <token> header -- the SPA and API clients.
  2. "access_token" cookie -- set by the Google redirect flow.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
require_roles() builds a dependency that also raises HTTP 403 when the
user's role is not in the given allow-list.

The role checked is the one stored in the database, not the JWT claim, so
demotions apply to tokens that are already issued.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from fastapi import HTTPException, Request

from auth.models import User
from auth.tokens import decode_access_token


def try_get_current_user(request: Request) -> User | None:
    """Return the authenticated User or None. Never raises."""
    user_store = request.app.state.user_store

    token: str | None = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get("access_token")
    if not token:
        return None

    payload = decode_access_token(token)
    if payload is None:
        return None
    return user_store.get_by_id(payload["user_id"])


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def require_roles(roles: Iterable[str], message: str = "Access denied.") -> Callable[[Request], User]:
    """Build a dependency that admits only users whose role is in roles.

    Use as a FastAPI dependency:
        @router.delete("/{id}")
        async def route(user: User = Depends(require_roles(CAN_DELETE, "Delete permission required."))): ...
    """
    allowed = frozenset(roles)

    def dependency(request: Request) -> User:
        user = get_current_user(request)
        if user.role not in allowed:
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": message},
            )
        return user

    return dependency
