"""Shared helpers for route blueprints."""

from __future__ import annotations

from functools import wraps

from flask import current_app, g, jsonify
from flask_wtf.csrf import validate_csrf
from wtforms.validators import ValidationError

from services.project_service import user_has_permission

__all__ = ["json_error", "requires_permission", "validate_request_csrf"]


def json_error(message: str, *, status: int = 400, **extra):
    """Return a JSON error response."""
    payload = {"success": False, "message": message}
    payload.update(extra)
    return jsonify(payload), status


def validate_request_csrf(token: str | None) -> tuple[bool, str | None]:
    """Validate CSRF tokens supplied with JSON payloads."""
    if not current_app.config.get("WTF_CSRF_ENABLED", True):
        return True, None
    if not token:
        return False, "The CSRF token is missing."
    try:
        validate_csrf(token)
    except ValidationError:
        return (
            False,
            "The CSRF token is invalid or has expired. Please refresh and try again.",
        )
    except Exception:
        return False, "The CSRF token is invalid."
    return True, None


def requires_permission(permission):
    """Requires a specific permission for the route to be accessed

    Decorator that can be specified in any route to require a permission of
    the current User's Role. Admins pass every check.
    Usage:
        @projects_bp.route('/', methods=['POST'])   # Flask route\n
        @requires_permission('projects.create')    # Permission required\n
        def create_project():                      # Method definition\n

    Arguments:
        permission -- Permission string (see models.role.DEFAULT_PERMISSIONS)
    """

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.user is None:
                return json_error("Authentication required.", status=401)
            if not user_has_permission(g.user, permission):
                return json_error("Insufficient permissions.", status=403)
            return f(*args, **kwargs)

        return decorated_function

    return decorator
