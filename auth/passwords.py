"""
auth/passwords.py -- Password hashing, password policy, and email shape checks.

Security design decisions:
  Passwords: bcrypt, used directly (no passlib wrapper). The cost factor comes
       from Settings.password_hash_rounds (default 10) so it can be raised in
       production and lowered in tests. The hash string encodes algorithm,
       cost, salt and digest, so verification needs nothing else.

  Malformed hashes: bcrypt.checkpw raises ValueError on a hash it cannot
       parse. verify_password() turns that into False after running a real
       bcrypt comparison against DUMMY_HASH, so a corrupt row costs the same
       time as a wrong password.

  DUMMY_HASH: computed once at module load with the configured cost. Each
       AuthService derives its own dummy hash from its settings, so an
       unknown-email login costs the same as a wrong password for that
       service.

Layer rule: no imports from api/ or reports/. Import from core/ is allowed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import bcrypt

from core.config import get_settings

_settings = get_settings()

MIN_PASSWORD_LENGTH = 8

# Structure only: something@something.tld with no whitespace. Deliverability
# is not our concern.
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only reads the first 72 bytes, and bcrypt 5.x raises ValueError
    on longer input instead of truncating. We truncate explicitly in both
    hash_password() and verify_password() so the two always agree.
    """
    salt = bcrypt.gensalt(rounds=rounds or _settings.password_hash_rounds)
    return bcrypt.hashpw(plain.encode("utf-8")[:72], salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    candidate = plain.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(candidate, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        # Spend the same bcrypt work as a real mismatch.
        bcrypt.checkpw(candidate, DUMMY_HASH.encode("utf-8"))
        return False


DUMMY_HASH: str = hash_password("compliance_timing_dummy")


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PasswordPolicyResult:
    valid: bool
    violations: list[str] = field(default_factory=list)


def validate_password_policy(plain: str) -> PasswordPolicyResult:
    """Check a candidate password against the strength rules.

    Every failed rule is reported, not just the first, so a client can render
    the whole checklist at once.
    """
    violations: list[str] = []
    if len(plain) < MIN_PASSWORD_LENGTH:
        violations.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not re.search(r"[A-Z]", plain):
        violations.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", plain):
        violations.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", plain):
        violations.append("Password must contain at least one number")
    return PasswordPolicyResult(valid=not violations, violations=violations)


def validate_email_format(value: str) -> bool:
    return bool(_EMAIL_RE.match(value))


def normalize_email(value: str) -> str:
    return value.strip().lower()
