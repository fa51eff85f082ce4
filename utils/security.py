"""Credential rules: password hashing, one-time passcodes, role resolution, response headers.

Everything here is free of database access. OTP helpers return the column
changes the caller must persist instead of mutating an account in place.
"""
import hmac
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Tuple

from werkzeug.security import check_password_hash, generate_password_hash

DEFAULT_HASH_METHOD = "pbkdf2:sha256:600000"
OTP_LENGTH = 6
OTP_TTL_MINUTES = 10

CLEARED_OTP: Dict[str, Any] = {"otp_hash": None, "otp_expires_at": None}


def hash_password(password: str, method: str = DEFAULT_HASH_METHOD) -> str:
    return generate_password_hash(password, method=method, salt_length=16)


def verify_password(password_hash: str | None, candidate: str | None) -> bool:
    if not password_hash or not candidate:
        return False
    return check_password_hash(password_hash, candidate)


def generate_token(length: int = 32) -> str:
    return secrets.token_urlsafe(length)


def generate_otp(length: int = OTP_LENGTH) -> str:
    digits = "0123456789"
    return "".join(secrets.choice(digits) for _ in range(length))


def issue_otp(
    now: datetime | None = None,
    ttl_minutes: int = OTP_TTL_MINUTES,
    method: str = DEFAULT_HASH_METHOD,
) -> Tuple[str, Dict[str, Any]]:
    """Create a fresh passcode; the returned changes replace any previous one."""
    now = now or datetime.utcnow()
    code = generate_otp()
    changes = {
        "otp_hash": generate_password_hash(code, method=method, salt_length=12),
        "otp_expires_at": now + timedelta(minutes=ttl_minutes),
    }
    return code, changes


def check_otp(
    otp_hash: str | None,
    otp_expires_at: datetime | None,
    candidate: str | None,
    now: datetime | None = None,
) -> Tuple[bool, Dict[str, Any]]:
    """Verify a candidate code against the stored one.

    An expired code is consumed even though verification fails; a wrong code
    leaves the pending one in place. Success consumes the code and marks the
    account verified.
    """
    if not otp_hash or not otp_expires_at:
        return False, {}
    now = now or datetime.utcnow()
    if now > otp_expires_at:
        return False, dict(CLEARED_OTP)
    if not candidate or not check_password_hash(otp_hash, str(candidate)):
        return False, {}
    return True, {**CLEARED_OTP, "is_verified": True}


def secret_matches(candidate: str | None, expected: str | None) -> bool:
    if not candidate or not expected:
        return False
    return hmac.compare_digest(str(candidate).encode("utf-8"), str(expected).encode("utf-8"))


def resolve_role(secret: str | None, admin_secret: str | None, department: str | None) -> Tuple[str, str | None]:
    """Role granted at registration: staff with a department, admin without, user otherwise."""
    if secret_matches(secret, admin_secret):
        if department:
            return "staff", department
        return "admin", None
    return "user", None


def apply_security_headers(response):
    """Baseline headers for a JSON API."""
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("Cache-Control", "no-store")
    return response
