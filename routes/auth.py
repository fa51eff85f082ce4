"""Account registration, password and passcode sign-in, staff onboarding."""
from flask import Blueprint, current_app, jsonify
from flask_jwt_extended import current_user
from wtforms import PasswordField, StringField
from wtforms.validators import AnyOf, DataRequired, Email, Length, Optional

from models import DEPARTMENTS
from utils.accounts import (
    authenticate,
    complete_signup_otp,
    issue_session_token,
    login_with_otp,
    register_account,
    request_login_otp,
    request_signup_otp,
)
from utils.decorators import login_required
from utils.email_service import EmailDeliveryError, send_otp_email
from utils.errors import AccessDenied
from utils.security import secret_matches
from utils.validation import ApiForm, as_text, blank_to_none, lower_value, strip_value, validate_form

auth_bp = Blueprint("auth", __name__)

NAME_LENGTH = Length(min=2, max=50, message="Name must be between 2 and 50 characters")
PASSWORD_LENGTH = Length(min=6, message="Password must be at least 6 characters long")
VALID_EMAIL = Email(message="Please provide a valid email")
VALID_DEPARTMENT = AnyOf(DEPARTMENTS, message="Department must be one of: " + ", ".join(DEPARTMENTS))
OTP_LENGTH = Length(min=6, max=6, message="OTP must be 6 digits")


def _email_field():
    return StringField("Email", filters=[as_text, strip_value, lower_value], validators=[DataRequired(), VALID_EMAIL, Length(max=255)])


def _name_field():
    return StringField("Name", filters=[as_text, strip_value], validators=[DataRequired(message="Name is required"), NAME_LENGTH])


def _otp_field():
    return StringField("OTP", filters=[as_text, strip_value], validators=[DataRequired(message="OTP is required"), OTP_LENGTH])


class SignupForm(ApiForm):
    name = _name_field()
    email = _email_field()
    password = PasswordField("Password", filters=[as_text], validators=[DataRequired(), PASSWORD_LENGTH])
    phone = StringField("Phone", filters=[as_text, strip_value, blank_to_none], validators=[Optional(), Length(max=32)])
    secret = StringField("Secret", filters=[as_text, strip_value, blank_to_none])
    department = StringField("Department", filters=[as_text, strip_value, blank_to_none], validators=[Optional(), VALID_DEPARTMENT])


class AdminRegisterForm(SignupForm):
    phone = StringField("Phone", filters=[as_text, strip_value], validators=[DataRequired(message="Phone is required"), Length(max=32)])
    secret = StringField("Secret", filters=[as_text, strip_value], validators=[DataRequired(message="Secret is required")])


class LoginForm(ApiForm):
    email = _email_field()
    password = PasswordField("Password", filters=[as_text], validators=[DataRequired(message="Password is required")])


class OtpRequestForm(ApiForm):
    email = _email_field()


class OtpLoginForm(ApiForm):
    email = _email_field()
    otp = _otp_field()


class SignupOtpRequestForm(ApiForm):
    name = _name_field()
    email = _email_field()


class SignupOtpForm(ApiForm):
    name = _name_field()
    email = _email_field()
    otp = _otp_field()
    password = PasswordField("Password", filters=[as_text, blank_to_none], validators=[Optional(), PASSWORD_LENGTH])


class CheckSecretForm(ApiForm):
    secret = StringField("Secret", filters=[as_text, strip_value, blank_to_none])


def _session_payload(message: str, user) -> dict:
    return {"message": message, "token": issue_session_token(user), "user": user.to_dict()}


def _deliver_otp(user, code: str, purpose: str) -> dict:
    """Send the passcode; a delivery failure is logged and reported, never raised."""
    ttl = int(current_app.config.get("OTP_TTL_MINUTES", 10))
    try:
        send_otp_email(user.email, user.name, code, purpose, ttl)
    except EmailDeliveryError as exc:
        current_app.logger.warning("OTP email delivery failed", extra={"user_id": user.id, "error": str(exc)})
        return {"message": "OTP generated but the email could not be delivered", "delivered": False}
    return {"message": "OTP sent successfully", "delivered": True}


@auth_bp.route("/signup", methods=["POST"])
def signup():
    form = validate_form(SignupForm())
    user = register_account(
        form.name.data,
        form.email.data,
        form.password.data,
        secret=form.secret.data,
        department=form.department.data,
        phone=form.phone.data,
    )
    return jsonify(_session_payload("User registered successfully", user)), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    form = validate_form(LoginForm())
    user = authenticate(form.email.data, form.password.data)
    current_app.logger.info("User signed in", extra={"user_id": user.id})
    return jsonify(_session_payload("Login successful", user))


@auth_bp.route("/request-otp", methods=["POST"])
def request_otp():
    form = validate_form(OtpRequestForm())
    user, code = request_login_otp(form.email.data)
    return jsonify(_deliver_otp(user, code, "Login OTP"))


@auth_bp.route("/login-otp", methods=["POST"])
def login_otp():
    form = validate_form(OtpLoginForm())
    user = login_with_otp(form.email.data, form.otp.data)
    current_app.logger.info("User signed in with OTP", extra={"user_id": user.id})
    return jsonify(_session_payload("Login successful", user))


@auth_bp.route("/request-signup-otp", methods=["POST"])
def request_signup_otp_view():
    form = validate_form(SignupOtpRequestForm())
    user, code = request_signup_otp(form.name.data, form.email.data)
    return jsonify(_deliver_otp(user, code, "Signup OTP"))


@auth_bp.route("/signup-otp", methods=["POST"])
def signup_otp():
    form = validate_form(SignupOtpForm())
    user = complete_signup_otp(form.email.data, form.name.data, form.otp.data, password=form.password.data)
    return jsonify(_session_payload("Account created successfully", user)), 201


@auth_bp.route("/admin-register", methods=["POST"])
def admin_register():
    form = validate_form(AdminRegisterForm())
    if not secret_matches(form.secret.data, current_app.config.get("ADMIN_SECRET")):
        current_app.logger.warning("Staff registration with invalid secret", extra={"email": form.email.data})
        raise AccessDenied("Invalid secret number")
    user = register_account(
        form.name.data,
        form.email.data,
        form.password.data,
        secret=form.secret.data,
        department=form.department.data,
        phone=form.phone.data,
    )
    return jsonify(_session_payload("Admin registered successfully", user)), 201


@auth_bp.route("/admin-login", methods=["POST"])
def admin_login():
    form = validate_form(LoginForm())
    user = authenticate(form.email.data, form.password.data)
    if not user.is_triage:
        current_app.logger.warning("Admin login by non-staff account", extra={"user_id": user.id})
        raise AccessDenied()
    return jsonify(_session_payload("Login successful", user))


@auth_bp.route("/check-secret", methods=["POST"])
def check_secret():
    form = CheckSecretForm()
    form.validate()
    if not secret_matches(form.secret.data, current_app.config.get("ADMIN_SECRET")):
        return jsonify({"valid": False, "message": "Invalid secret number"}), 403
    return jsonify({"valid": True, "isNewUser": True})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
