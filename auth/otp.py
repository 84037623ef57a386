"""
auth/otp.py -- Password-reset one-time codes.

Lifecycle:
  issue_otp()   -- new random 6-digit code, replaces any earlier code for the
                   same email, expires after the configured TTL (10 minutes).
  check_otp()   -- look up by (email, HMAC(code)); reject unknown codes and
                   delete expired ones on sight.
  consume_otp() -- delete after the password has been reset, so a code works
                   exactly once.

Expired rows that nobody asks about are removed by the purge task started in
api/main.py lifespan.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from auth.models import OneTimePassword
from auth.store import UserStore
from auth.tokens import hash_otp

DEFAULT_TTL_SECONDS = 600


class InvalidOTP(Exception):
    """No outstanding code matches the email/code pair."""


class ExpiredOTP(Exception):
    """The code matched but its TTL has passed."""


def generate_otp() -> str:
    """Return a uniformly random code in 100000..999999."""
    return str(100000 + secrets.randbelow(900000))


def issue_otp(store: UserStore, email: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> tuple[str, int]:
    """Create a fresh code for email. Returns (raw_code, otp_id).

    The raw code is returned so the caller can mail it; only its HMAC is
    stored. otp_id lets the caller roll back if delivery fails.
    """
    code = generate_otp()
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
    otp_id = store.replace_otp(
        OneTimePassword(
            email=email,
            code_hash=hash_otp(code),
            expires_at=expires_at.isoformat(),
        )
    )
    return code, otp_id


def check_otp(store: UserStore, email: str, code: str, now: datetime | None = None) -> OneTimePassword:
    """Return the matching OTP record or raise InvalidOTP / ExpiredOTP."""
    record = store.get_otp(email, hash_otp(code))
    if record is None:
        raise InvalidOTP()
    now = now or datetime.now(timezone.utc)
    if now > datetime.fromisoformat(record.expires_at):
        store.delete_otp(record.id)
        raise ExpiredOTP()
    return record


def consume_otp(store: UserStore, otp: OneTimePassword) -> None:
    store.delete_otp(otp.id)
