"""
auth/tokens.py -- JWT, password hashing, and OTP hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry user_id, role, iat and exp.
       Verification returns None on any failure -- route layer turns that
       into a 401. Dependencies reload the user from the store on every
       request, so a role change or deletion takes effect immediately even
       though the old token still carries the old role claim.

  Passwords: bcrypt directly. _DUMMY_HASH lets authenticate_user() spend the
       same bcrypt work whether or not the email exists, so response time
       does not reveal registered addresses.

  Legacy rows: accounts imported from the old system may hold a plaintext
       password. Those are compared in constant time and re-hashed on the
       first successful login.

  OTP codes: only HMAC-SHA256(SECRET_KEY, code) is stored. Six digits are
       low entropy, so the hash protects against a leaked DB only together
       with SECRET_KEY; the 10-minute TTL and rate limits do the rest.

Layer rule: no imports from api/ or quiz/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("quizdesk.auth")

_settings = get_settings()

_ALGORITHM = "HS256"
_BCRYPT_ROUNDS = 10
# bcrypt refuses (bcrypt>=5) or truncates anything longer.
_BCRYPT_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Callers must keep plain within _BCRYPT_MAX_BYTES; the API models
    enforce that for every password they accept for storage.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def is_bcrypt_hash(value: str) -> bool:
    return value.startswith("$2")


_DUMMY_HASH: str = hash_password("quizdesk_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(user_id: int, role: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT for the given user.

    expire_seconds <= 0 falls back to Settings.token_expire_seconds (7 days).
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "user_id": user_id,
        "role": role,
        "iat": now,
        "exp": now + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Expired tokens, bad signatures and tokens missing user_id/role all
    collapse to None.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "user_id" not in payload or "role" not in payload:
        return None
    return payload


# ---------------------------------------------------------------------------
# User authentication
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> tuple[User | None, str | None]:
    """Check an email/password login.

    Returns (user, None) on success or (None, error_code) on failure, where
    error_code is "bad_credentials" or "google_only". Unknown emails still
    run bcrypt against _DUMMY_HASH before returning.
    """
    user = store.get_by_email(email.strip().lower())
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None, "bad_credentials"
    if not user.hashed_password:
        return None, "google_only"

    if is_bcrypt_hash(user.hashed_password):
        if not verify_password(password, user.hashed_password):
            return None, "bad_credentials"
        return user, None

    # Legacy plaintext row
    if not hmac.compare_digest(password.encode("utf-8"), user.hashed_password.encode("utf-8")):
        verify_password(password, _DUMMY_HASH)
        return None, "bad_credentials"
    if len(password.encode("utf-8")) > _BCRYPT_MAX_BYTES:
        logger.warning("Legacy password for user_id=%s is too long to re-hash; left as is", user.id)
        return user, None
    new_hash = hash_password(password)
    store.update_user(user.id, hashed_password=new_hash)
    user.hashed_password = new_hash
    logger.info("Upgraded legacy plaintext password for user_id=%s", user.id)
    return user, None


# ---------------------------------------------------------------------------
# OTP hashing
# ---------------------------------------------------------------------------


def hash_otp(code: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, code) as a hex string."""
    return hmac.new(
        _settings.secret_key.encode(),
        code.strip().encode(),
        hashlib.sha256,
    ).hexdigest()


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str) -> None:
    """Write the JWT as an httpOnly cookie matching the token lifetime.

    Used by the Google redirect flow, where the browser lands on the API and
    has no other way to receive the token.
    """
    response.set_cookie(
        "access_token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=_settings.token_expire_seconds,
    )
