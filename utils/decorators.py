"""Authentication and role-based access decorators for bearer-token views."""
from functools import wraps

from flask import current_app, request
from flask_jwt_extended import current_user, verify_jwt_in_request

from utils.errors import AccessDenied


def login_required(view_func):
    @wraps(view_func)
    def wrapped(*args, **kwargs):
        verify_jwt_in_request()
        return view_func(*args, **kwargs)

    return wrapped


def roles_required(*roles):
    allowed = {r.lower() for r in roles}

    def decorator(view_func):
        @wraps(view_func)
        @login_required
        def wrapped(*args, **kwargs):
            if current_user.role in allowed:
                return view_func(*args, **kwargs)

            current_app.logger.warning(
                "Unauthorized role access attempt",
                extra={"user_id": current_user.id, "role": current_user.role, "path": request.path},
            )
            raise AccessDenied()

        return wrapped

    return decorator
