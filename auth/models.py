"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores map rows into
these; AuthService and routes pass them around. Pydantic models in api/models.py
own the wire format.

Layer rule: no imports from api/ or reports/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A registered account.

    email is always stored lower-cased; the UNIQUE index on it is what makes
    "A@B.com" and "a@b.com" the same account.

    is_verified is persisted for a future email-confirmation flow and is not
    consulted by login.
    """

    email: str
    password_hash: str
    id: int | None = None
    full_name: str | None = None
    is_verified: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class RefreshToken:
    """A stored refresh token -- one row per login session.

    The token value is opaque: validity comes only from a store lookup, and a
    row whose expires_at has passed is treated as absent even before it is
    purged.
    """

    user_id: int
    token: str
    expires_at: datetime
    id: int | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class AccessTokenClaims:
    """Identity carried inside a signed access token. Never persisted."""

    user_id: int
    email: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class PublicUser:
    """The subset of User that is safe to return to clients."""

    id: int
    email: str
    full_name: str | None

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
        return cls(id=user.id, email=user.email, full_name=user.full_name)


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful register or login."""

    access_token: str
    refresh_token: str
    user: PublicUser


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of a successful refresh.

    refresh_token is None unless rotation is enabled, in which case it holds
    the replacement for the token the client presented.
    """

    access_token: str
    refresh_token: str | None = None
