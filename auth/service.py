"""
auth/service.py -- Registration, login, refresh and logout orchestration.

AuthService is the only place that combines the password hasher, the token
issuer and the two stores. Routes call one method per request and map the
ServiceError subclasses it raises to HTTP responses.

Session lifecycle:
  Anonymous -> register/login -> Authenticated(access, refresh)
  Authenticated -> refresh  -> new access token, same refresh token
                 -> logout   -> refresh token deleted
                 -> logout_all -> every refresh token of the user deleted
                 -> (time)   -> refresh token expired, treated as absent

Rules:
  - All input validation runs before any write. Every violation is reported.
  - Unknown email and wrong password produce the same UnauthorizedError, and
    bcrypt runs in both cases so timing does not leak account existence.
  - Store failures are logged with traceback and surfaced as InternalError.
    Nothing is retried except a refresh-token value collision, where a fresh
    random value is generated.

Layer rule: no imports from api/ or reports/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import AuthResult, PublicUser, RefreshResult, User
from auth.passwords import (
    hash_password,
    normalize_email,
    validate_email_format,
    validate_password_policy,
    verify_password,
)
from auth.store import SessionStore, UserStore
from auth.tokens import create_access_token, generate_refresh_token, refresh_token_expiry
from core.config import Settings, get_settings
from core.errors import ConflictError, InternalError, InvalidInputError, UnauthorizedError

logger = logging.getLogger("compliance.auth")

_BAD_CREDENTIALS = "Invalid email or password"
_BAD_REFRESH_TOKEN = "Invalid or expired refresh token"

# Attempts at inserting a refresh token before a UNIQUE violation is treated
# as a real store failure rather than a random-value collision.
_REFRESH_INSERT_ATTEMPTS = 3


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate unexpected database failures into InternalError.

    The full exception goes to the server log; the client only sees a generic
    message naming the operation.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Store failure during %s", operation)
        raise InternalError(f"Failed to {operation}") from exc


class AuthService:
    """Two-tier session protocol: short-lived JWT + long-lived stored refresh token.

    Usage:
        service = AuthService(UserStore(engine), SessionStore(engine))
        result = service.register("a@b.com", "Passw0rd", "Ada")
        service.refresh(result.refresh_token)
    """

    def __init__(self, users: UserStore, sessions: SessionStore, settings: Settings | None = None) -> None:
        self.users = users
        self.sessions = sessions
        self.settings = settings or get_settings()
        # Verified against for unknown emails; same cost as stored hashes.
        self._dummy_hash = hash_password("compliance_timing_dummy", rounds=self.settings.password_hash_rounds)

    # ------------------------------------------------------------------
    # Register / login
    # ------------------------------------------------------------------

    def register(self, email: str | None, password: str | None, full_name: str | None = None) -> AuthResult:
        """Create an account and open its first session.

        Raises:
            InvalidInputError: missing fields, malformed email, weak password.
            ConflictError:     the normalized email is already registered.
            InternalError:     store failure.
        """
        if not email or not password:
            raise InvalidInputError("Email and password are required")

        normalized = normalize_email(email)
        violations: list[str] = []
        email_ok = validate_email_format(normalized)
        if not email_ok:
            violations.append("Invalid email format")
        policy = validate_password_policy(password)
        violations.extend(policy.violations)
        if violations:
            if email_ok:
                message = "Password does not meet requirements"
            elif policy.valid:
                message = "Invalid email format"
            else:
                message = "Invalid registration details"
            raise InvalidInputError(message, details=violations)

        display_name = full_name.strip() if full_name else None

        with _store_errors("register user"):
            if self.users.get_by_email(normalized) is not None:
                raise ConflictError("User with this email already exists")
            password_hash = hash_password(password, rounds=self.settings.password_hash_rounds)
            try:
                user = self.users.create_user(normalized, password_hash, display_name or None)
            except IntegrityError as exc:
                # Lost the race against a concurrent registration.
                raise ConflictError("User with this email already exists") from exc
            result = self._open_session(user)

        logger.info("Registered user id=%s", user.id)
        return result

    def login(self, email: str | None, password: str | None) -> AuthResult:
        """Verify credentials and open an additional session.

        Existing sessions of the user are left untouched (multi-device).
        """
        if not email or not password:
            raise InvalidInputError("Email and password are required")

        with _store_errors("login"):
            user = self.users.get_by_email(normalize_email(email))
            if user is None:
                # Equalize timing -- do NOT return before running bcrypt.
                verify_password(password, self._dummy_hash)
                raise UnauthorizedError(_BAD_CREDENTIALS)
            if not verify_password(password, user.password_hash):
                raise UnauthorizedError(_BAD_CREDENTIALS)
            result = self._open_session(user)

        logger.info("Login succeeded for user id=%s", user.id)
        return result

    # ------------------------------------------------------------------
    # Refresh / logout
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str | None) -> RefreshResult:
        """Exchange a valid refresh token for a new access token.

        The refresh token is not rotated unless Settings.refresh_token_rotation
        is enabled; by default it stays usable until it expires or is logged out.
        """
        if not refresh_token:
            raise InvalidInputError("Refresh token is required")

        with _store_errors("refresh token"):
            stored = self.sessions.find_valid(refresh_token)
            if stored is None:
                raise UnauthorizedError(_BAD_REFRESH_TOKEN)
            user = self.users.get_by_id(stored.user_id)
            if user is None:
                raise UnauthorizedError(_BAD_REFRESH_TOKEN)

            access_token = create_access_token(user.id, user.email, self.settings.access_token_expiry)
            if not self.settings.refresh_token_rotation:
                return RefreshResult(access_token=access_token)

            # Rotation: the presented token is spent. If a concurrent request
            # already deleted it, that request won and this one must fail.
            if self.sessions.delete_by_value(refresh_token) == 0:
                raise UnauthorizedError(_BAD_REFRESH_TOKEN)
            replacement = self._persist_refresh_token(user.id)
            return RefreshResult(access_token=access_token, refresh_token=replacement)

    def logout(self, refresh_token: str | None) -> None:
        """End one session. Succeeds whether or not the token still exists."""
        if not refresh_token:
            raise InvalidInputError("Refresh token is required")
        with _store_errors("logout"):
            self.sessions.delete_by_value(refresh_token)

    def logout_all(self, user_id: int) -> int:
        """End every session of user_id. Returns the number of sessions removed.

        user_id must come from verified access-token claims, never from the
        request body.
        """
        with _store_errors("logout"):
            removed = self.sessions.delete_all_for_user(user_id)
        logger.info("Revoked %d session(s) for user id=%s", removed, user_id)
        return removed

    def get_profile(self, user_id: int) -> PublicUser:
        """Return the public view of user_id, or UnauthorizedError if the account is gone."""
        with _store_errors("load user"):
            user = self.users.get_by_id(user_id)
        if user is None:
            raise UnauthorizedError("Invalid or expired token")
        return PublicUser.from_user(user)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _open_session(self, user: User) -> AuthResult:
        access_token = create_access_token(user.id, user.email, self.settings.access_token_expiry)
        refresh_token = self._persist_refresh_token(user.id)
        return AuthResult(
            access_token=access_token,
            refresh_token=refresh_token,
            user=PublicUser.from_user(user),
        )

    def _persist_refresh_token(self, user_id: int) -> str:
        """Generate and store a refresh token, regenerating on a value collision."""
        attempt = 0
        while True:
            attempt += 1
            token = generate_refresh_token()
            expires_at = refresh_token_expiry(days=self.settings.refresh_token_expiry_days)
            try:
                self.sessions.create(user_id, token, expires_at)
                return token
            except IntegrityError:
                if attempt >= _REFRESH_INSERT_ATTEMPTS:
                    raise
                logger.warning("Refresh token insert rejected (attempt %d); regenerating", attempt)
