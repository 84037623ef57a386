"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper. UserStore is the repository;
_row_to_user / _row_to_otp are the mappers. Route and dependency code never
touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  email, username and google_id carry UNIQUE constraints. google_id is NULL
  for password accounts; SQLite treats NULLs as distinct in UNIQUE
  constraints, so any number of unlinked users may coexist.

  OTP rows hold an HMAC of the code, never the code itself.

Layer rule: no imports from api/ or quiz/. Import from core/ is allowed.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, or_, text
from sqlalchemy.engine import Engine

from auth.models import OneTimePassword, User
from core.database import make_engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text),  # NULL for Google-only users
    Column("role", String(30), nullable=False, server_default="user"),
    Column("google_id", String(255), unique=True),
    Column("profile_picture", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_otps = Table(
    "otps",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, index=True),
    Column("code_hash", String(64), nullable=False),  # HMAC-SHA256 hex
    Column("expires_at", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and OneTimePassword entities.

    Usage:
        store = UserStore("sqlite:///quizdesk.db")
        store.create_user(User(email="a@b.co", username="alice", hashed_password=hash_password("secret")))
        user = store.get_by_email("a@b.co")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return (result or 0) > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email, username or
        google_id is already taken. Callers check find_conflict() first for a
        friendly message and still catch IntegrityError for the race.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=user.email,
                    username=user.username,
                    hashed_password=user.hashed_password,
                    role=user.role,
                    google_id=user.google_id,
                    profile_picture=user.profile_picture,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email. The caller passes the normalized (lowercased) form."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_username(self, username: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_google_id(self, google_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.google_id == google_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_conflict(self, email: str, username: str, exclude_id: int | None = None) -> User | None:
        """Return a user that already owns this email or username, if any.

        exclude_id skips the user being edited so an unchanged field does not
        count as a collision with itself.
        """
        query = _users.select().where(or_(_users.c.email == email, _users.c.username == username))
        if exclude_id is not None:
            query = query.where(_users.c.id != exclude_id)
        with self.engine.connect() as conn:
            row = conn.execute(query.order_by(_users.c.id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.created_at.desc(), _users.c.id.desc())).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: email, username, hashed_password, role, google_id,
        profile_picture. updated_at is stamped automatically.

        Returns True if a row was updated, False if user_id was not found.
        Raises IntegrityError when a new email/username collides.
        """
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # OTP queries
    # ------------------------------------------------------------------

    def replace_otp(self, otp: OneTimePassword) -> int:
        """Delete every outstanding code for otp.email, then insert otp.

        Both statements run in one transaction so a user never holds two
        live codes at once.
        """
        with self.engine.begin() as conn:
            conn.execute(_otps.delete().where(_otps.c.email == otp.email))
            result = conn.execute(
                _otps.insert().values(
                    email=otp.email,
                    code_hash=otp.code_hash,
                    expires_at=otp.expires_at,
                    created_at=_now_iso(),
                )
            )
            return result.inserted_primary_key[0]

    def get_otp(self, email: str, code_hash: str) -> OneTimePassword | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _otps.select().where((_otps.c.email == email) & (_otps.c.code_hash == code_hash))
            ).fetchone()
        return _row_to_otp(row) if row is not None else None

    def delete_otp(self, otp_id: int) -> None:
        with self.engine.connect() as conn:
            conn.execute(_otps.delete().where(_otps.c.id == otp_id))
            conn.commit()

    def purge_expired_otps(self, now_iso: str | None = None) -> int:
        """Delete codes whose expires_at is in the past. Returns the number removed."""
        cutoff = now_iso or _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_otps.delete().where(_otps.c.expires_at < cutoff))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        username=row.username,
        hashed_password=row.hashed_password,
        role=row.role,
        google_id=row.google_id,
        profile_picture=row.profile_picture,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_otp(row) -> OneTimePassword:
    return OneTimePassword(
        id=row.id,
        email=row.email,
        code_hash=row.code_hash,
        expires_at=row.expires_at,
        created_at=row.created_at,
    )
