"""
api/routes/v1/auth.py -- Registration, login, password reset and Google sign-in.

Routes:
  POST /api/v1/auth/register          -- create a "user" account; returns JWT
  POST /api/v1/auth/login             -- email + password; returns JWT
  GET  /api/v1/auth/me                -- current user (requires auth)
  POST /api/v1/auth/logout            -- clears the auth cookie
  POST /api/v1/auth/forgot-password   -- email a 6-digit reset code
  POST /api/v1/auth/verify-otp        -- check a reset code without using it
  POST /api/v1/auth/reset-password    -- set a new password with a reset code
  POST /api/v1/auth/google            -- sign in with a Google ID token
  GET  /api/v1/auth/google/login      -- start the Google redirect flow
  GET  /api/v1/auth/google/callback   -- finish it; sets cookie, redirects to the SPA

Security:
  [H2] login, register and the OTP endpoints are rate-limited per IP.
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on every response that carries a token.
  forgot-password answers identically whether or not the email is registered.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import (
    AuthResponse,
    ForgotPasswordRequest,
    GoogleLoginRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from auth.dependencies import get_current_user
from auth.models import ROLE_USER, User
from auth.oauth import identity_from_claims, upsert_google_user, verify_google_id_token
from auth.otp import ExpiredOTP, InvalidOTP, check_otp, consume_otp, issue_otp
from auth.store import UserStore
from auth.tokens import authenticate_user, create_access_token, hash_password, set_auth_cookie
from core.config import get_settings
from core.mailer import MailerError

logger = logging.getLogger("quizdesk.api.auth")

_settings = get_settings()

_FORGOT_MESSAGE = "If the email exists, an OTP has been sent to your email address."

# Auth policy:
# - register, login, logout, forgot-password, verify-otp, reset-password: public
# - google, google/login, google/callback: public
# - me: requires auth (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _token_response(user: User, status_code: int = 200) -> JSONResponse:
    """Issue a JWT for user and wrap it in a no-store JSON response."""
    token = create_access_token(user.id, user.role)
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=_settings.token_expire_seconds,
            user=UserResponse.from_user(user),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _otp_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ExpiredOTP):
        return HTTPException(
            status_code=400,
            detail={"code": "expired_otp", "message": "OTP has expired. Please request a new one."},
        )
    return HTTPException(
        status_code=400,
        detail={"code": "invalid_otp", "message": "Invalid or expired OTP."},
    )


def _oauth_failure_redirect() -> RedirectResponse:
    return RedirectResponse(f"{_settings.frontend_url}/login?error=oauth_failed", status_code=302)


# ---------------------------------------------------------------------------
# Registration and password login
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(_settings.login_rate_limit)  # [H2]
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a self-service account. The role is always "user"."""
    user_store: UserStore = request.app.state.user_store

    conflict = user_store.find_conflict(body.email, body.username)
    if conflict is not None:
        if conflict.email == body.email:
            raise HTTPException(
                status_code=400,
                detail={"code": "email_taken", "message": "User with this email already exists."},
            )
        raise HTTPException(
            status_code=400,
            detail={"code": "username_taken", "message": "Username already taken."},
        )

    try:
        user_id = user_store.create_user(
            User(
                email=body.email,
                username=body.username,
                role=ROLE_USER,
                hashed_password=hash_password(body.password),
            )
        )
    except IntegrityError as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "conflict", "message": "Email or username already exists."},
        ) from exc

    user = user_store.get_by_id(user_id)
    logger.info("Registered user_id=%s", user_id)
    return _token_response(user, status_code=201)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(_settings.login_rate_limit)  # [H2]
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Wrong email and wrong password share the bad_credentials error so the
    response does not reveal which addresses are registered.
    """
    user_store: UserStore = request.app.state.user_store
    user, error = authenticate_user(user_store, body.email, body.password)
    if error == "google_only":
        raise HTTPException(
            status_code=400,
            detail={
                "code": "google_only",
                "message": "This account uses Google Sign-In. Please use Google to login.",
            },
        )
    if user is None:
        resp = JSONResponse(
            status_code=400,
            content={"error": {"code": "bad_credentials", "message": "Invalid credentials."}},
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp
    return _token_response(user)


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the currently authenticated user."""
    return UserResponse.from_user(current_user)


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Clear the auth cookie. Bearer tokens simply expire client-side."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie("access_token")
    return resp


# ---------------------------------------------------------------------------
# Password reset via OTP
# ---------------------------------------------------------------------------


@router.post("/auth/forgot-password", response_model=MessageResponse)
@limiter.limit(_settings.otp_rate_limit)  # [H2]
def forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    """Email a reset code if the address belongs to an account.

    The issued code is deleted again when the email cannot be sent, and the
    failure is reported as 500 so the client can offer a retry.
    """
    user_store: UserStore = request.app.state.user_store
    if user_store.get_by_email(body.email) is None:
        return MessageResponse(message=_FORGOT_MESSAGE)

    code, otp_id = issue_otp(user_store, body.email, _settings.otp_ttl_seconds)
    try:
        request.app.state.mailer.send_otp(body.email, code, _settings.otp_ttl_seconds)
    except MailerError as exc:
        user_store.delete_otp(otp_id)
        raise HTTPException(
            status_code=500,
            detail={"code": "email_failed", "message": str(exc)},
        ) from exc
    return MessageResponse(message=_FORGOT_MESSAGE)


@router.post("/auth/verify-otp", response_model=VerifyOtpResponse)
@limiter.limit(_settings.otp_rate_limit)  # [H2]
def verify_otp(request: Request, body: VerifyOtpRequest) -> VerifyOtpResponse:
    """Confirm a code is valid without consuming it."""
    user_store: UserStore = request.app.state.user_store
    try:
        check_otp(user_store, body.email, body.otp)
    except (InvalidOTP, ExpiredOTP) as exc:
        raise _otp_error(exc) from exc
    return VerifyOtpResponse(message="OTP verified successfully.", verified=True)


@router.post("/auth/reset-password", response_model=MessageResponse)
@limiter.limit(_settings.otp_rate_limit)  # [H2]
def reset_password(request: Request, body: ResetPasswordRequest) -> MessageResponse:
    """Replace the password and burn the code."""
    user_store: UserStore = request.app.state.user_store
    try:
        otp = check_otp(user_store, body.email, body.otp)
    except (InvalidOTP, ExpiredOTP) as exc:
        raise _otp_error(exc) from exc

    user = user_store.get_by_email(body.email)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )

    user_store.update_user(user.id, hashed_password=hash_password(body.new_password))
    consume_otp(user_store, otp)
    logger.info("Password reset for user_id=%s", user.id)
    return MessageResponse(message="Password has been reset successfully. You can now login with your new password.")


# ---------------------------------------------------------------------------
# Google sign-in
# ---------------------------------------------------------------------------


@router.post("/auth/google", response_model=AuthResponse)
@limiter.limit(_settings.login_rate_limit)  # [H2]
def google_login(request: Request, body: GoogleLoginRequest) -> JSONResponse:
    """Exchange a Google ID token for a QuizDesk JWT, creating the account if needed."""
    if not body.token_id:
        raise HTTPException(
            status_code=400,
            detail={"code": "missing_token", "message": "Google token is required."},
        )
    if not _settings.google_enabled:
        logger.error("Google sign-in attempted but GOOGLE_CLIENT_ID is not configured")
        raise HTTPException(
            status_code=500,
            detail={"code": "oauth_not_configured", "message": "Google OAuth not configured on server."},
        )

    try:
        identity = verify_google_id_token(body.token_id, _settings.google_client_id)
    except ValueError as exc:
        logger.warning("Google token rejected: %s", exc)
        raise HTTPException(
            status_code=401,
            detail={
                "code": "invalid_google_token",
                "message": "Invalid Google token. Please try signing in again.",
            },
        ) from exc

    user = upsert_google_user(request.app.state.user_store, identity)
    return _token_response(user)


@router.get("/auth/google/login")
async def google_redirect(request: Request):
    """Start the authorization code flow. 404 when Google is not configured."""
    client = request.app.state.oauth.create_client("google")
    if client is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Google sign-in is not enabled."},
        )
    redirect_uri = str(request.url_for("google_callback"))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/auth/google/callback", name="google_callback")
async def google_callback(request: Request) -> RedirectResponse:
    """Finish the redirect flow: set the auth cookie and send the browser to the SPA."""
    client = request.app.state.oauth.create_client("google")
    if client is None:
        return _oauth_failure_redirect()
    try:
        token = await client.authorize_access_token(request)
        identity = identity_from_claims(token.get("userinfo") or {})
    except (OAuthError, ValueError) as exc:
        logger.warning("Google callback failed: %s", exc)
        return _oauth_failure_redirect()

    user = upsert_google_user(request.app.state.user_store, identity)
    resp = RedirectResponse(_settings.frontend_url, status_code=302)
    set_auth_cookie(resp, create_access_token(user.id, user.role))
    return resp
