"""Tests for the operator commands in main.py.

Each test points the CLI at a throwaway SQLite file by patching the settings
lookup main.py uses.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import inspect

import main
from auth.passwords import hash_password
from auth.store import SessionStore, UserStore
from core.config import get_settings
from core.database import create_db_engine


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    settings = get_settings().model_copy(update={"database_url": url})
    monkeypatch.setattr(main, "get_settings", lambda: settings)
    return url


def test_init_db_creates_every_table(db_url, capsys):
    assert main._init_db() == 0
    engine = create_db_engine(db_url)
    try:
        assert {"users", "refresh_tokens", "reports"} <= set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert "Schema ready" in capsys.readouterr().out


def test_init_db_is_repeatable(db_url):
    assert main._init_db() == 0
    assert main._init_db() == 0


def test_purge_sessions_removes_expired_only(db_url, capsys):
    engine = create_db_engine(db_url)
    try:
        user = UserStore(engine).create_user("cli@example.com", hash_password("Passw0rd"))
        sessions = SessionStore(engine)
        now = datetime.now(timezone.utc)
        sessions.create(user.id, "expired-1", now - timedelta(days=1))
        sessions.create(user.id, "expired-2", now - timedelta(hours=1))
        sessions.create(user.id, "live", now + timedelta(days=1))
    finally:
        engine.dispose()

    assert main._purge_sessions() == 0
    assert "Removed 2 expired session(s)." in capsys.readouterr().out


def test_no_command_prints_help(monkeypatch, capsys):
    monkeypatch.setattr("sys.argv", ["main.py"])
    main.main()
    assert "init-db" in capsys.readouterr().out
