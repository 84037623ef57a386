"""
auth/models.py -- Domain dataclasses for authentication entities.

Pure data containers with zero logic. Stores and routes do the work.

Layer rule: no imports from api/ or quiz/.
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

ROLE_USER = "user"
ROLE_MANAGER = "manager"
ROLE_ADMIN = "admin"
ROLE_SUPERADMIN = "superadmin"

ROLES: tuple[str, ...] = (ROLE_USER, ROLE_MANAGER, ROLE_ADMIN, ROLE_SUPERADMIN)


@dataclass
class User:
    """A QuizDesk account.

    email is stored lowercased and is the login identifier. username is
    display-facing and unique as well.

    hashed_password is None for Google-only accounts. Rows created before
    hashing was enforced may still hold a plaintext value; authenticate_user()
    upgrades those on the next successful login.
    """

    email: str
    username: str
    role: str = ROLE_USER
    id: int | None = None
    hashed_password: str | None = None
    google_id: str | None = None  # Google "sub" claim
    profile_picture: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class OneTimePassword:
    """A password-reset code awaiting use.

    code_hash is HMAC-SHA256(SECRET_KEY, code). The raw 6-digit code exists
    only in the email sent to the user.
    """

    email: str
    code_hash: str
    expires_at: str  # ISO 8601, UTC
    id: int | None = None
    created_at: str | None = None
