"""
core/database.py -- SQLAlchemy engine factory shared by every store.

One Engine is created per process (in the API lifespan or the CLI) and handed
to UserStore, SessionStore and ReportStore. Stores never create their own
engines; they check a connection out with `with engine.connect()` for each
call, so the connection goes back to the pool on success, error or
cancellation alike.

SQLite (default, local dev and tests):
  - check_same_thread=False because FastAPI runs sync routes in a thread pool.
  - WAL journal mode per connection for concurrent read safety.
  - foreign_keys=ON per connection so ON DELETE CASCADE is honoured.

PostgreSQL (production):
  - Bounded pool (pool_size, pool_timeout) from Settings.
  - pool_pre_ping so a dropped connection is replaced instead of failing a request.

Layer rule: core/ is the kernel and may not import from api/, auth/ or reports/.
"""

from __future__ import annotations

import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger("compliance.db")


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL and foreign keys on every new SQLite connection.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(db_url: str, pool_size: int = 20, pool_timeout: float = 2.0) -> Engine:
    """Build an Engine for db_url with backend-appropriate pool settings."""
    if db_url.startswith("sqlite"):
        engine = create_engine(db_url, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _set_sqlite_pragmas)
        return engine
    return create_engine(
        db_url,
        pool_size=pool_size,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
    )


def ping(engine: Engine) -> bool:
    """Return True if a trivial query succeeds. Used by the health endpoint."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        logger.exception("Database ping failed")
        return False
