"""Unit tests for credential rules."""

from datetime import datetime, timedelta

from utils.security import (
    check_otp,
    hash_password,
    issue_otp,
    resolve_role,
    secret_matches,
    verify_password,
)

FAST_HASH = "pbkdf2:sha256:1000"


class TestPasswords:
    def test_hash_is_salted_and_verifiable(self):
        first = hash_password("secret123", method=FAST_HASH)
        second = hash_password("secret123", method=FAST_HASH)

        assert first != second
        assert verify_password(first, "secret123")
        assert not verify_password(first, "wrong")

    def test_missing_values_never_verify(self):
        assert not verify_password(None, "secret123")
        assert not verify_password(hash_password("x", method=FAST_HASH), "")


class TestOtp:
    def test_issue_returns_six_digits_and_hashed_changes(self):
        now = datetime(2026, 1, 1, 12, 0)
        code, changes = issue_otp(now=now, method=FAST_HASH)

        assert len(code) == 6 and code.isdigit()
        assert changes["otp_hash"] != code
        assert changes["otp_expires_at"] == now + timedelta(minutes=10)

    def test_success_consumes_and_verifies(self):
        now = datetime(2026, 1, 1, 12, 0)
        code, changes = issue_otp(now=now, method=FAST_HASH)

        ok, updates = check_otp(changes["otp_hash"], changes["otp_expires_at"], code, now=now + timedelta(minutes=9))

        assert ok
        assert updates == {"otp_hash": None, "otp_expires_at": None, "is_verified": True}

    def test_code_is_single_use(self):
        now = datetime(2026, 1, 1, 12, 0)
        code, changes = issue_otp(now=now, method=FAST_HASH)
        _, updates = check_otp(changes["otp_hash"], changes["otp_expires_at"], code, now=now)
        changes.update(updates)

        ok, _ = check_otp(changes["otp_hash"], changes["otp_expires_at"], code, now=now)

        assert not ok

    def test_expired_code_fails_and_is_cleared(self):
        now = datetime(2026, 1, 1, 12, 0)
        code, changes = issue_otp(now=now, method=FAST_HASH)

        ok, updates = check_otp(changes["otp_hash"], changes["otp_expires_at"], code, now=now + timedelta(minutes=11))

        assert not ok
        assert updates == {"otp_hash": None, "otp_expires_at": None}

    def test_wrong_code_keeps_pending_code(self):
        now = datetime(2026, 1, 1, 12, 0)
        code, changes = issue_otp(now=now, method=FAST_HASH)
        wrong = "000000" if code != "000000" else "111111"

        ok, updates = check_otp(changes["otp_hash"], changes["otp_expires_at"], wrong, now=now)

        assert not ok
        assert updates == {}

    def test_no_pending_code(self):
        assert check_otp(None, None, "123456") == (False, {})


class TestResolveRole:
    def test_secret_with_department_gives_staff(self):
        assert resolve_role("s3cret", "s3cret", "Water") == ("staff", "Water")

    def test_secret_without_department_gives_admin(self):
        assert resolve_role("s3cret", "s3cret", None) == ("admin", None)

    def test_wrong_secret_gives_user_and_drops_department(self):
        assert resolve_role("guess", "s3cret", "Water") == ("user", None)

    def test_unset_server_secret_never_matches(self):
        assert resolve_role("", "", "Water") == ("user", None)
        assert not secret_matches("anything", "")
