"""Account operations backed by the users table.

Each function does its own lookups and commits; the credential rules
themselves live in ``utils.security``.
"""
from typing import Tuple

from flask import current_app
from flask_jwt_extended import create_access_token
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import DEPARTMENTS, ROLES, User
from utils.errors import DuplicateEmail, InvalidCredentials, InvalidOrExpiredOtp, NotFound, ValidationError
from utils.lifecycle import apply_changes
from utils.security import check_otp, generate_token, hash_password, issue_otp, resolve_role, verify_password


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _hash_method() -> str:
    return current_app.config.get("PASSWORD_HASH_METHOD") or "pbkdf2:sha256:600000"


def find_account_by_email(email: str | None) -> User | None:
    email = normalize_email(email)
    if not email:
        return None
    return User.query.filter(func.lower(User.email) == email).first()


def _persist_new_account(user: User) -> User:
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise DuplicateEmail() from exc
    return user


def register_account(
    name: str,
    email: str,
    password: str,
    secret: str | None = None,
    department: str | None = None,
    phone: str | None = None,
) -> User:
    email = normalize_email(email)
    if find_account_by_email(email):
        raise DuplicateEmail()

    role, department = resolve_role(secret, current_app.config.get("ADMIN_SECRET"), department)
    user = User(
        name=name.strip(),
        email=email,
        phone=phone,
        password_hash=hash_password(password, method=_hash_method()),
        role=role,
        department=department,
        is_verified=False,
    )
    _persist_new_account(user)
    current_app.logger.info("Account registered", extra={"user_id": user.id, "role": role})
    return user


def authenticate(email: str, password: str) -> User:
    user = find_account_by_email(email)
    if not user or not verify_password(user.password_hash, password):
        current_app.logger.info("Failed login attempt", extra={"email": normalize_email(email)})
        raise InvalidCredentials()
    return user


def _store_new_otp(user: User) -> str:
    code, changes = issue_otp(
        ttl_minutes=int(current_app.config.get("OTP_TTL_MINUTES", 10)),
        method=_hash_method(),
    )
    apply_changes(user, changes)
    db.session.commit()
    return code


def _consume_otp(user: User | None, otp: str | None) -> User:
    if not user:
        raise InvalidOrExpiredOtp()
    ok, changes = check_otp(user.otp_hash, user.otp_expires_at, otp)
    if changes:
        apply_changes(user, changes)
        db.session.commit()
    if not ok:
        raise InvalidOrExpiredOtp()
    return user


def request_login_otp(email: str) -> Tuple[User, str]:
    user = find_account_by_email(email)
    if not user:
        raise NotFound("User not found")
    return user, _store_new_otp(user)


def login_with_otp(email: str, otp: str) -> User:
    return _consume_otp(find_account_by_email(email), otp)


def request_signup_otp(name: str, email: str) -> Tuple[User, str]:
    """Create an unverified placeholder account and issue its first passcode."""
    email = normalize_email(email)
    if find_account_by_email(email):
        raise DuplicateEmail()
    user = User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(generate_token(), method=_hash_method()),
        role="user",
        is_verified=False,
        signup_pending=True,
    )
    _persist_new_account(user)
    return user, _store_new_otp(user)


def complete_signup_otp(email: str, name: str, otp: str, password: str | None = None) -> User:
    """Finalize a placeholder from ``request_signup_otp``; finished accounts are left alone."""
    user = find_account_by_email(email)
    if user and not user.signup_pending:
        raise DuplicateEmail()
    user = _consume_otp(user, otp)
    user.name = name.strip()
    user.signup_pending = False
    if password:
        user.password_hash = hash_password(password, method=_hash_method())
    db.session.commit()
    return user


def issue_session_token(user: User) -> str:
    return create_access_token(identity=str(user.id), additional_claims={"role": user.role})


def change_role(user: User, role: str, department: str | None = None) -> User:
    if role not in ROLES:
        raise ValidationError("Invalid role", errors={"role": ["Role must be one of: " + ", ".join(ROLES)]})
    if department is not None and department not in DEPARTMENTS:
        raise ValidationError("Invalid department", errors={"department": ["Unknown department"]})

    if role == "user":
        department = None
    elif role == "staff":
        department = department or user.department
        if not department:
            raise ValidationError(
                "Staff accounts need a department",
                errors={"department": ["Department is required for staff"]},
            )
    else:
        department = department if department is not None else user.department

    apply_changes(user, {"role": role, "department": department})
    db.session.commit()
    current_app.logger.info("Account role changed", extra={"user_id": user.id, "new_role": role})
    return user
