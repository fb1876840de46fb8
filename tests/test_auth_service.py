"""Tests for auth/service.py -- the session protocol without HTTP.

Runs AuthService against real stores on in-memory SQLite. Store failures
are simulated with small stand-in classes rather than MagicMock so the
exception types raised are exactly what SQLAlchemy would raise.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from auth.service import AuthService
from auth.tokens import decode_access_token
from core.config import get_settings
from core.errors import ConflictError, InternalError, InvalidInputError, UnauthorizedError

PASSWORD = "Passw0rd"


# ---------------------------------------------------------------------------
# TestRegister
# ---------------------------------------------------------------------------


class TestRegister:
    def test_register_returns_tokens_and_public_user(self, auth_service, session_store):
        result = auth_service.register("Ada@Example.com", PASSWORD, "  Ada Lovelace ")

        assert result.user.email == "ada@example.com"
        assert result.user.full_name == "Ada Lovelace"
        claims = decode_access_token(result.access_token)
        assert claims.user_id == result.user.id
        assert claims.email == "ada@example.com"
        assert session_store.find_valid(result.refresh_token) is not None

    def test_password_stored_hashed(self, auth_service, user_store):
        auth_service.register("ada@example.com", PASSWORD)
        stored = user_store.get_by_email("ada@example.com")
        assert stored.password_hash != PASSWORD
        assert stored.password_hash.startswith("$2")

    def test_blank_full_name_stored_as_none(self, auth_service):
        assert auth_service.register("ada@example.com", PASSWORD, "   ").user.full_name is None

    @pytest.mark.parametrize("email, password", [(None, PASSWORD), ("ada@example.com", None), ("", "")])
    def test_missing_fields(self, auth_service, email, password):
        with pytest.raises(InvalidInputError) as exc_info:
            auth_service.register(email, password)
        assert exc_info.value.message == "Email and password are required"

    def test_invalid_email(self, auth_service):
        with pytest.raises(InvalidInputError) as exc_info:
            auth_service.register("not-an-email", PASSWORD)
        assert exc_info.value.message == "Invalid email format"
        assert exc_info.value.details == ["Invalid email format"]

    def test_weak_password_reports_every_rule(self, auth_service, user_store):
        with pytest.raises(InvalidInputError) as exc_info:
            auth_service.register("ada@example.com", "abc")
        err = exc_info.value
        assert err.message == "Password does not meet requirements"
        assert err.details == [
            "Password must be at least 8 characters long",
            "Password must contain at least one uppercase letter",
            "Password must contain at least one number",
        ]
        assert user_store.has_users() is False

    def test_invalid_email_and_weak_password_reported_together(self, auth_service):
        with pytest.raises(InvalidInputError) as exc_info:
            auth_service.register("nope", "abcdefgh")
        err = exc_info.value
        assert err.message == "Invalid registration details"
        assert err.details[0] == "Invalid email format"
        assert len(err.details) == 3

    def test_duplicate_email_case_insensitive(self, auth_service):
        auth_service.register("ada@example.com", PASSWORD)
        with pytest.raises(ConflictError) as exc_info:
            auth_service.register("ADA@example.com", PASSWORD)
        assert exc_info.value.status_code == 409
        assert exc_info.value.message == "User with this email already exists"

    def test_lost_insert_race_is_conflict(self, user_store, session_store):
        """The pre-check passes but the UNIQUE index rejects the insert."""

        class RacingUserStore:
            def get_by_email(self, email):
                return None

            def create_user(self, email, password_hash, full_name=None):
                raise IntegrityError("INSERT INTO users", {}, Exception("UNIQUE constraint failed: users.email"))

        service = AuthService(RacingUserStore(), session_store, get_settings())
        with pytest.raises(ConflictError):
            service.register("ada@example.com", PASSWORD)


# ---------------------------------------------------------------------------
# TestLogin
# ---------------------------------------------------------------------------


class TestLogin:
    def test_login_opens_additional_session(self, auth_service, session_store):
        registered = auth_service.register("ada@example.com", PASSWORD)
        logged_in = auth_service.login("  ADA@example.com ", PASSWORD)

        assert logged_in.user == registered.user
        assert logged_in.refresh_token != registered.refresh_token
        assert session_store.count_for_user(registered.user.id) == 2

    def test_wrong_password_and_unknown_email_look_identical(self, auth_service):
        auth_service.register("ada@example.com", PASSWORD)

        with pytest.raises(UnauthorizedError) as wrong_password:
            auth_service.login("ada@example.com", "Wrong1234")
        with pytest.raises(UnauthorizedError) as unknown_email:
            auth_service.login("nobody@example.com", PASSWORD)

        assert wrong_password.value.to_dict() == unknown_email.value.to_dict()
        assert wrong_password.value.message == "Invalid email or password"

    def test_missing_fields(self, auth_service):
        with pytest.raises(InvalidInputError):
            auth_service.login("ada@example.com", "")

    def test_unknown_email_verifies_against_hash_of_configured_cost(self, user_store, session_store, monkeypatch):
        """The timing dummy follows the service's own rounds, not the module default."""
        settings = get_settings().model_copy(update={"password_hash_rounds": 5})
        service = AuthService(user_store, session_store, settings)
        assert service._dummy_hash.startswith("$2b$05$")

        seen = []

        def recording_verify(plain, hashed):
            seen.append(hashed)
            return False

        monkeypatch.setattr("auth.service.verify_password", recording_verify)
        with pytest.raises(UnauthorizedError):
            service.login("nobody@example.com", PASSWORD)
        assert seen == [service._dummy_hash]


# ---------------------------------------------------------------------------
# TestRefreshAndLogout
# ---------------------------------------------------------------------------


class TestRefreshAndLogout:
    def test_refresh_issues_new_access_token_without_rotation(self, auth_service):
        registered = auth_service.register("ada@example.com", PASSWORD)

        result = auth_service.refresh(registered.refresh_token)
        assert result.refresh_token is None
        assert decode_access_token(result.access_token).user_id == registered.user.id
        # Same refresh token keeps working.
        assert auth_service.refresh(registered.refresh_token).access_token

    def test_refresh_unknown_token(self, auth_service):
        with pytest.raises(UnauthorizedError) as exc_info:
            auth_service.refresh("f" * 128)
        assert exc_info.value.message == "Invalid or expired refresh token"

    def test_refresh_missing_token(self, auth_service):
        with pytest.raises(InvalidInputError):
            auth_service.refresh(None)

    def test_refresh_expired_token(self, auth_service, user_store, session_store):
        registered = auth_service.register("ada@example.com", PASSWORD)
        session_store.create(registered.user.id, "expired-value", datetime.now(timezone.utc) - timedelta(seconds=1))
        with pytest.raises(UnauthorizedError):
            auth_service.refresh("expired-value")

    def test_logout_then_refresh_fails(self, auth_service):
        registered = auth_service.register("ada@example.com", PASSWORD)
        auth_service.logout(registered.refresh_token)
        with pytest.raises(UnauthorizedError):
            auth_service.refresh(registered.refresh_token)

    def test_logout_is_idempotent(self, auth_service):
        auth_service.logout("never-issued")
        auth_service.logout("never-issued")

    def test_logout_only_ends_one_session(self, auth_service):
        first = auth_service.register("ada@example.com", PASSWORD)
        second = auth_service.login("ada@example.com", PASSWORD)
        auth_service.logout(first.refresh_token)
        assert auth_service.refresh(second.refresh_token).access_token

    def test_logout_all_ends_every_session_of_that_user_only(self, auth_service):
        ada_one = auth_service.register("ada@example.com", PASSWORD)
        ada_two = auth_service.login("ada@example.com", PASSWORD)
        bob = auth_service.register("bob@example.com", PASSWORD)

        assert auth_service.logout_all(ada_one.user.id) == 2
        for token in (ada_one.refresh_token, ada_two.refresh_token):
            with pytest.raises(UnauthorizedError):
                auth_service.refresh(token)
        assert auth_service.refresh(bob.refresh_token).access_token

    def test_get_profile(self, auth_service):
        registered = auth_service.register("ada@example.com", PASSWORD, "Ada")
        assert auth_service.get_profile(registered.user.id) == registered.user
        with pytest.raises(UnauthorizedError):
            auth_service.get_profile(999)


# ---------------------------------------------------------------------------
# TestRotation
# ---------------------------------------------------------------------------


class TestRotation:
    @pytest.fixture
    def rotating_service(self, user_store, session_store):
        settings = get_settings().model_copy(update={"refresh_token_rotation": True})
        return AuthService(user_store, session_store, settings)

    def test_rotation_replaces_presented_token(self, rotating_service):
        registered = rotating_service.register("ada@example.com", PASSWORD)

        result = rotating_service.refresh(registered.refresh_token)
        assert result.refresh_token is not None
        assert result.refresh_token != registered.refresh_token

        with pytest.raises(UnauthorizedError):
            rotating_service.refresh(registered.refresh_token)
        assert rotating_service.refresh(result.refresh_token).refresh_token


# ---------------------------------------------------------------------------
# TestStoreFailures
# ---------------------------------------------------------------------------


class _BrokenSessionStore:
    def _fail(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    create = find_valid = delete_by_value = delete_all_for_user = _fail


class TestStoreFailures:
    def test_store_failure_surfaces_as_internal_error(self, user_store):
        service = AuthService(user_store, _BrokenSessionStore(), get_settings())
        with pytest.raises(InternalError) as exc_info:
            service.refresh("anything")
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Failed to refresh token"

    def test_register_failure_after_user_insert(self, user_store):
        service = AuthService(user_store, _BrokenSessionStore(), get_settings())
        with pytest.raises(InternalError):
            service.register("ada@example.com", PASSWORD)

    def test_refresh_token_collision_retried(self, user_store, session_store, monkeypatch):
        """A duplicate refresh-token value is regenerated, not surfaced."""
        values = iter(["dup", "dup", "unique-value"])
        monkeypatch.setattr("auth.service.generate_refresh_token", lambda: next(values))
        service = AuthService(user_store, session_store, get_settings())

        first = service.register("ada@example.com", PASSWORD)
        assert first.refresh_token == "dup"
        second = service.login("ada@example.com", PASSWORD)
        assert second.refresh_token == "unique-value"
