"""Unit tests for core/database.py -- engine settings per URL kind."""

import warnings

import pytest
from sqlalchemy import text
from sqlalchemy.pool import StaticPool

from core.database import is_memory_url, make_engine


@pytest.mark.parametrize(
    "url,expected",
    [
        ("sqlite://", True),
        ("sqlite:///:memory:", True),
        ("sqlite:///file:shared_db?mode=memory&cache=shared&uri=true", True),
        ("sqlite:///quizdesk.db", False),
        ("postgresql://localhost/quizdesk", False),
    ],
)
def test_is_memory_url(url, expected):
    assert is_memory_url(url) is expected


def test_named_memory_url_uses_static_pool_without_warnings():
    url = "sqlite:///file:test_database_pool?mode=memory&cache=shared&uri=true"
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        engine = make_engine(url)
        try:
            assert isinstance(engine.pool, StaticPool)
            with engine.connect() as conn:
                assert conn.execute(text("SELECT 1")).scalar() == 1
        finally:
            engine.dispose()


def test_file_url_keeps_default_pool(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'quizdesk.db'}")
    try:
        assert not isinstance(engine.pool, StaticPool)
        with engine.connect() as conn:
            assert conn.exec_driver_sql("PRAGMA journal_mode").scalar() == "wal"
    finally:
        engine.dispose()
