"""Form base class and helpers for validating JSON, multipart and query input."""
from flask import request
from flask_wtf import FlaskForm

from utils.errors import ValidationError


class ApiForm(FlaskForm):
    """FlaskForm reading JSON bodies as well as form posts.

    CSRF is off: callers authenticate with a bearer token, not a cookie.
    """

    class Meta(FlaskForm.Meta):
        csrf = False

        def wrap_formdata(self, form, formdata):
            # Explicit formdata (query strings) carries no JSON body.
            if not hasattr(formdata, "getlist") and request.is_json:
                payload = request.get_json(silent=True)
                if payload is not None and not isinstance(payload, dict):
                    raise ValidationError(errors={"body": ["JSON object expected"]})
            return super().wrap_formdata(form, formdata)


def strip_value(value):
    return value.strip() if isinstance(value, str) else value


def lower_value(value):
    return value.lower() if isinstance(value, str) else value


def blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def form_errors(form) -> dict:
    """Field errors keyed by the wire name of each field."""
    return {field.name: list(field.errors) for field in form if field.errors}


def validate_form(form, message: str = "Validation error"):
    if not form.validate():
        raise ValidationError(message, errors=form_errors(form))
    return form


def as_text(value):
    """JSON bodies may carry numbers where a string field is expected."""
    if value is None or isinstance(value, str):
        return value
    return str(value)
