"""
auth/oauth.py -- Google sign-in: ID-token verification, account linking, and
the Authlib registry for the redirect flow.

Two entry points reach the same account logic:
  POST /auth/google          -- the SPA obtains an ID token from Google
                                Identity Services and posts it here;
                                verify_google_id_token() checks it with
                                google-auth.
  GET  /auth/google/login    -- server-side authorization code flow via
       /auth/google/callback    Authlib; the id_token claims arrive already
                                validated in token["userinfo"].

Both produce a GoogleIdentity and hand it to upsert_google_user().

Security notes:
  [H1] Email verification is mandatory. An unverified address could belong to
       somebody else, and accounts are matched by email on first sign-in.

  OAuth state (CSRF protection for the redirect flow) is kept by Authlib in
  the Starlette session; api/main.py installs SessionMiddleware for it.

Layer rule: no imports from api/ or quiz/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from authlib.integrations.starlette_client import OAuth
from google.auth.exceptions import GoogleAuthError
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token
from sqlalchemy.exc import IntegrityError

from auth.models import ROLE_USER, User
from auth.store import UserStore
from core.config import get_settings

logger = logging.getLogger("quizdesk.auth.oauth")

# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------

oauth = OAuth()

_cfg = get_settings()

if _cfg.google_client_id and _cfg.google_client_secret:
    oauth.register(
        name="google",
        client_id=_cfg.google_client_id,
        client_secret=_cfg.google_client_secret,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={"scope": "openid email profile"},
    )
    logger.info("Google OAuth provider registered")


@dataclass
class GoogleIdentity:
    subject: str
    email: str
    name: str | None = None
    picture: str | None = None


# ---------------------------------------------------------------------------
# Token verification [H1]
# ---------------------------------------------------------------------------


def identity_from_claims(claims: dict) -> GoogleIdentity:
    """Build a GoogleIdentity from verified id_token claims.

    Raises ValueError when the email is unverified or sub/email are missing.
    """
    if not claims.get("email_verified", False):
        raise ValueError("Google account email is not verified.")
    subject = claims.get("sub")
    email = claims.get("email")
    if not subject or not email:
        raise ValueError("Google token is missing the sub or email claim.")
    return GoogleIdentity(
        subject=str(subject),
        email=email.strip().lower(),
        name=claims.get("name"),
        picture=claims.get("picture"),
    )


def verify_google_id_token(token: str, client_id: str) -> GoogleIdentity:
    """Verify a Google ID token's signature, issuer, expiry and audience.

    Raises ValueError on any verification failure.
    """
    try:
        claims = google_id_token.verify_oauth2_token(token, google_requests.Request(), client_id)
    except GoogleAuthError as exc:
        raise ValueError(str(exc)) from exc
    return identity_from_claims(claims)


# ---------------------------------------------------------------------------
# Account linking
# ---------------------------------------------------------------------------


def _available_username(store: UserStore, base: str) -> str:
    """Return base, or base followed by the smallest free numeric suffix."""
    base = base.strip() or "user"
    candidate = base
    suffix = 1
    while store.get_by_username(candidate) is not None:
        candidate = f"{base}{suffix}"
        suffix += 1
    return candidate


def upsert_google_user(store: UserStore, identity: GoogleIdentity) -> User:
    """Find or create the account for a verified Google identity.

    Lookup order is google_id, then email. A matched account that is not yet
    linked gets the Google subject and picture attached; its role and
    password are untouched. Unknown identities become new "user" accounts.
    """
    user = store.get_by_google_id(identity.subject) or store.get_by_email(identity.email)

    if user is not None:
        if not user.google_id:
            store.update_user(user.id, google_id=identity.subject, profile_picture=identity.picture)
            user.google_id = identity.subject
            user.profile_picture = identity.picture
            logger.info("Linked Google account to user_id=%s", user.id)
        return user

    username = _available_username(store, identity.name or identity.email.split("@")[0])
    new_user = User(
        email=identity.email,
        username=username,
        role=ROLE_USER,
        google_id=identity.subject,
        profile_picture=identity.picture,
    )
    try:
        user_id = store.create_user(new_user)
    except IntegrityError:
        # A concurrent sign-in created the same identity first.
        existing = store.get_by_google_id(identity.subject)
        if existing is None:
            raise
        return existing
    logger.info("Created Google account user_id=%s", user_id)
    new_user.id = user_id
    return store.get_by_id(user_id) or new_user
