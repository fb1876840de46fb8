"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as reports/store.py).
UserStore and SessionStore are the repositories; _row_to_user /
_row_to_refresh_token are the mappers. Service and route code never touches
SQL directly.

Ownership:
  UserStore owns the users table, SessionStore owns refresh_tokens. Both are
  built on the single Engine created by the process (api lifespan or CLI) and
  check out a connection per call with `with self.engine.connect()`.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email uniqueness is enforced by the UNIQUE index on users.email. Emails are
  lower-cased before they reach this module, so the index is case-insensitive
  in effect. AuthService treats the IntegrityError raised on a duplicate
  insert the same as a failed pre-check, which closes the race between two
  concurrent registrations.

  Expired refresh tokens are filtered inside the lookup query itself
  (expires_at > now). An expired row is indistinguishable from a missing one
  even before purge_expired() removes it.

Timestamps:
  Stored as naive UTC DateTime columns so the expiry comparison is a plain
  SQL comparison on SQLite and PostgreSQL alike. The mappers re-attach UTC
  tzinfo so domain objects always carry aware datetimes.

Layer rule: no imports from api/ or reports/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    func,
    select,
)
from sqlalchemy.engine import Engine

from auth.models import RefreshToken, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("full_name", String(255)),
    Column("is_verified", Boolean, nullable=False, default=False),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("token", String(500), nullable=False, unique=True),
    Column("expires_at", DateTime, nullable=False),
    Column("created_at", DateTime, nullable=False),
    Index("idx_refresh_tokens_user_id", "user_id"),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_db_time(value: datetime | None = None) -> datetime:
    """Return `value` (default: now) as a naive UTC datetime for storage."""
    if value is None:
        value = datetime.now(timezone.utc)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_time(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def init_auth_schema(engine: Engine) -> None:
    """Create the users and refresh_tokens tables if they do not exist."""
    metadata.create_all(engine)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore(engine)
        user = store.create_user("a@b.com", hash_password("Passw0rd"), "Ada")
        store.get_by_email("a@b.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        init_auth_schema(engine)

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def create_user(self, email: str, password_hash: str, full_name: str | None = None) -> User:
        """Insert a new user and return it with its assigned ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        now = _to_db_time()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=email,
                    password_hash=password_hash,
                    full_name=full_name,
                    is_verified=False,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            user_id = result.inserted_primary_key[0]
        return User(
            id=user_id,
            email=email,
            password_hash=password_hash,
            full_name=full_name,
            is_verified=False,
            created_at=_from_db_time(now),
            updated_at=_from_db_time(now),
        )

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by normalized (lower-cased) email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None


# ---------------------------------------------------------------------------
# Refresh-token sessions
# ---------------------------------------------------------------------------


class SessionStore:
    """Repository for RefreshToken records.

    Every operation touches rows keyed by the unique token value or by
    user_id, and refresh never updates a row, so there are no
    read-modify-write races to guard against.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        init_auth_schema(engine)

    def create(self, user_id: int, token: str, expires_at: datetime) -> RefreshToken:
        """Persist a new refresh token.

        Raises sqlalchemy.exc.IntegrityError on a duplicate token value or an
        unknown user_id.
        """
        now = _to_db_time()
        stored_expiry = _to_db_time(expires_at)
        with self.engine.connect() as conn:
            result = conn.execute(
                _refresh_tokens.insert().values(
                    user_id=user_id,
                    token=token,
                    expires_at=stored_expiry,
                    created_at=now,
                )
            )
            conn.commit()
            token_id = result.inserted_primary_key[0]
        return RefreshToken(
            id=token_id,
            user_id=user_id,
            token=token,
            expires_at=_from_db_time(stored_expiry),
            created_at=_from_db_time(now),
        )

    def find_valid(self, token: str, now: datetime | None = None) -> RefreshToken | None:
        """Return the token record if it exists and has not expired, else None."""
        cutoff = _to_db_time(now)
        with self.engine.connect() as conn:
            row = conn.execute(
                _refresh_tokens.select().where(
                    (_refresh_tokens.c.token == token) & (_refresh_tokens.c.expires_at > cutoff)
                )
            ).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def delete_by_value(self, token: str) -> int:
        """Delete one token by value. Returns the number of rows removed (0 or 1)."""
        with self.engine.connect() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.token == token))
            conn.commit()
        return result.rowcount

    def delete_all_for_user(self, user_id: int) -> int:
        """Delete every token owned by user_id. Returns the number of rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.user_id == user_id))
            conn.commit()
        return result.rowcount

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete all expired tokens. Returns number of rows removed.

        Called periodically by the API purge task and by `main.py purge-sessions`.
        """
        cutoff = _to_db_time(now)
        with self.engine.connect() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.expires_at <= cutoff))
            conn.commit()
        return result.rowcount

    def count_for_user(self, user_id: int, now: datetime | None = None) -> int:
        """Return the number of unexpired sessions for user_id."""
        cutoff = _to_db_time(now)
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count())
                .select_from(_refresh_tokens)
                .where((_refresh_tokens.c.user_id == user_id) & (_refresh_tokens.c.expires_at > cutoff))
            ).scalar()
        return result or 0


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        full_name=row.full_name,
        is_verified=bool(row.is_verified),
        created_at=_from_db_time(row.created_at),
        updated_at=_from_db_time(row.updated_at),
    )


def _row_to_refresh_token(row) -> RefreshToken:
    return RefreshToken(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        expires_at=_from_db_time(row.expires_at),
        created_at=_from_db_time(row.created_at),
    )
