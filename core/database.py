"""
core/database.py -- SQLAlchemy engine factory shared by every store.

Each store (auth/store.py, quiz/store.py) owns its tables but builds its
engine here so the SQLite connection settings stay identical across them.

In-memory SQLite URLs (":memory:" or a "mode=memory" URI) get a StaticPool:
every thread then talks to the one connection that holds the database.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

# Largest value an SQLite INTEGER primary key can hold (signed 64-bit).
MAX_ROW_ID = 2**63 - 1


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. In-memory databases silently keep their
    "memory" journal mode.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def is_memory_url(db_url: str) -> bool:
    """Return True for SQLite URLs that point at an in-memory database."""
    if not db_url.startswith("sqlite"):
        return False
    return db_url.rstrip("/") == "sqlite:" or ":memory:" in db_url or "mode=memory" in db_url


def make_engine(db_url: str) -> Engine:
    """Create an engine for db_url with SQLite thread and WAL settings applied."""
    kwargs: dict = {}
    if db_url.startswith("sqlite"):
        # FastAPI runs sync handlers in a thread pool.
        kwargs["connect_args"] = {"check_same_thread": False}
    if is_memory_url(db_url):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(db_url, **kwargs)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine
