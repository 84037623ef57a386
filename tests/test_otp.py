"""Unit tests for auth/otp.py -- password-reset code lifecycle.

Covers:
- generate_otp() always yields six digits
- issue/check/consume happy path
- a new code replaces the previous one for the same email
- expired codes raise ExpiredOTP and are deleted on sight
- purge_expired_otps() removes only stale rows
- the background purge loop deletes stale rows and survives database errors
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

import api.main as api_main
from auth.otp import ExpiredOTP, InvalidOTP, check_otp, consume_otp, generate_otp, issue_otp


def _otp_count(store) -> int:
    with store.engine.connect() as conn:
        return conn.exec_driver_sql("SELECT COUNT(*) FROM otps").scalar()


def test_generate_otp_is_six_digits():
    for _ in range(200):
        code = generate_otp()
        assert len(code) == 6
        assert 100000 <= int(code) <= 999999


def test_issue_check_consume(user_store):
    code, otp_id = issue_otp(user_store, "a@example.com")
    record = check_otp(user_store, "a@example.com", code)
    assert record.id == otp_id

    consume_otp(user_store, record)
    with pytest.raises(InvalidOTP):
        check_otp(user_store, "a@example.com", code)


def test_code_is_stored_hashed(user_store):
    code, _ = issue_otp(user_store, "a@example.com")
    with user_store.engine.connect() as conn:
        stored = conn.exec_driver_sql("SELECT code_hash FROM otps").scalar()
    assert stored != code
    assert code not in stored


def test_wrong_email_or_code_is_invalid(user_store):
    code, _ = issue_otp(user_store, "a@example.com")
    with pytest.raises(InvalidOTP):
        check_otp(user_store, "b@example.com", code)
    wrong = "100000" if code != "100000" else "100001"
    with pytest.raises(InvalidOTP):
        check_otp(user_store, "a@example.com", wrong)


def test_reissue_replaces_previous_code(user_store):
    issue_otp(user_store, "a@example.com")
    second, _ = issue_otp(user_store, "a@example.com")
    assert _otp_count(user_store) == 1
    assert check_otp(user_store, "a@example.com", second) is not None


def test_expired_code_raises_and_is_deleted(user_store):
    code, _ = issue_otp(user_store, "a@example.com", ttl_seconds=600)
    later = datetime.now(timezone.utc) + timedelta(minutes=11)
    with pytest.raises(ExpiredOTP):
        check_otp(user_store, "a@example.com", code, now=later)
    assert _otp_count(user_store) == 0


def test_code_valid_just_before_expiry(user_store):
    code, _ = issue_otp(user_store, "a@example.com", ttl_seconds=600)
    almost = datetime.now(timezone.utc) + timedelta(minutes=9)
    assert check_otp(user_store, "a@example.com", code, now=almost) is not None


def test_purge_removes_only_expired(user_store):
    issue_otp(user_store, "old@example.com", ttl_seconds=1)
    issue_otp(user_store, "new@example.com", ttl_seconds=600)
    cutoff = (datetime.now(timezone.utc) + timedelta(seconds=60)).isoformat()
    assert user_store.purge_expired_otps(cutoff) == 1
    assert _otp_count(user_store) == 1


def _run_purge_loop(app, passes: int = 5) -> None:
    """Let _purge_loop run a few iterations with no delay, then cancel it."""

    async def driver():
        task = asyncio.create_task(api_main._purge_loop(app))
        for _ in range(passes):
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(driver())


def test_purge_loop_deletes_expired_codes(user_store, monkeypatch):
    monkeypatch.setattr(api_main, "_OTP_PURGE_INTERVAL", 0)
    issue_otp(user_store, "old@example.com", ttl_seconds=-60)
    live, _ = issue_otp(user_store, "new@example.com", ttl_seconds=600)

    _run_purge_loop(SimpleNamespace(state=SimpleNamespace(user_store=user_store)))

    assert _otp_count(user_store) == 1
    assert check_otp(user_store, "new@example.com", live) is not None


def test_purge_loop_keeps_running_after_database_error(monkeypatch, caplog):
    monkeypatch.setattr(api_main, "_OTP_PURGE_INTERVAL", 0)
    calls = []

    def flaky_purge():
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("DELETE FROM otps", {}, Exception("database is locked"))
        return 0

    app = SimpleNamespace(state=SimpleNamespace(user_store=SimpleNamespace(purge_expired_otps=flaky_purge)))
    with caplog.at_level(logging.ERROR, logger="quizdesk.api"):
        _run_purge_loop(app)

    assert len(calls) > 1
    assert "OTP purge failed" in caplog.text
