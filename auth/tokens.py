"""
auth/tokens.py -- Access-token JWTs and opaque refresh-token values.

Security design decisions:
  Access tokens: python-jose with HS256. Tokens are signed with SECRET_KEY and
       carry user_id, email, iat and exp. They are the only proof of identity
       for authenticated routes -- no DB lookup. Verification returns None on
       any failure (bad signature, malformed token, expiry, missing claims);
       the dependency layer turns that into a uniform 401 so callers cannot
       tell the causes apart.

  Refresh tokens: secrets.token_hex(64) gives 512 bits of entropy as 128 hex
       characters. The value has no structure; validity is decided only by
       SessionStore.find_valid(). Uniqueness is enforced by the UNIQUE index
       on refresh_tokens.token -- AuthService retries with a fresh value on
       the vanishing chance of a collision.

  Lifetimes: Settings.access_token_expiry (timedelta, default 15 minutes) and
       Settings.refresh_token_expiry_days (default 7), both validated at
       startup in core/config.py.

Layer rule: no imports from api/ or reports/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.models import AccessTokenClaims
from core.config import get_settings

logger = logging.getLogger("compliance.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

REFRESH_TOKEN_BYTES = 64


# ---------------------------------------------------------------------------
# Access tokens (stateless JWT)
# ---------------------------------------------------------------------------


def create_access_token(user_id: int, email: str, lifetime: timedelta | None = None) -> str:
    """Encode a signed JWT carrying the user's identity.

    Args:
        user_id:  Numeric user ID stored in the DB.
        email:    Normalized email, echoed back in the claims.
        lifetime: Token validity. Defaults to Settings.access_token_expiry.
                  A negative value produces an already-expired token, which
                  tests use to exercise the expiry path without sleeping.
    """
    duration = lifetime if lifetime is not None else _settings.access_token_expiry
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "user_id": user_id,
        "email": email,
        "iat": issued_at,
        "exp": issued_at + duration,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> AccessTokenClaims | None:
    """Verify a JWT and return its claims, or None on any failure.

    Returning None (rather than raising) keeps the caller simple: any invalid
    token is treated as unauthenticated.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError as exc:
        logger.debug("Access token rejected: %s", type(exc).__name__)
        return None
    user_id = payload.get("user_id")
    email = payload.get("email")
    # bool is an int subclass; a forged {"user_id": true} must not pass.
    if not isinstance(user_id, int) or isinstance(user_id, bool) or not isinstance(email, str):
        return None
    try:
        issued_at = datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    except (KeyError, TypeError, ValueError, OverflowError):
        return None
    return AccessTokenClaims(user_id=user_id, email=email, issued_at=issued_at, expires_at=expires_at)


# ---------------------------------------------------------------------------
# Refresh tokens (opaque, store-backed)
# ---------------------------------------------------------------------------


def generate_refresh_token() -> str:
    """Return a new opaque refresh-token value (128 hex chars, 512 bits)."""
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


def refresh_token_expiry(now: datetime | None = None, days: int | None = None) -> datetime:
    """Return the expiry for a refresh token issued at `now` (default: current UTC time).

    days defaults to Settings.refresh_token_expiry_days.
    """
    start = now if now is not None else datetime.now(timezone.utc)
    lifetime = timedelta(days=days) if days is not None else _settings.refresh_token_lifetime
    return start + lifetime
