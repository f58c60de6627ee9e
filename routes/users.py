"""User management blueprint."""
from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from database import db
from forms import UserForm, UserUpdateForm, form_from_payload, submitted_values
from models.audit_log import AuditAction
from routes import json_error, requires_permission, validate_request_csrf
from services.audit_service import record_audit
from services.user_service import (
    can_edit_preferences,
    create_user as create_user_record,
    deactivate_user,
    get_user,
    list_users as list_user_records,
    update_user as update_user_record,
)

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _json_payload():
    return request.get_json(silent=True) or {}


def _commit(error_message: str):
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logging.error(error_message, exc_info=True)
        return json_error("An internal error has occurred.", status=500)
    return None


def _check_csrf(payload):
    csrf_valid, csrf_message = validate_request_csrf(payload.get("csrf_token"))
    if not csrf_valid:
        return json_error(csrf_message or "Invalid CSRF token.")
    return None


@users_bp.route("/", methods=["GET"])
@requires_permission("users.read")
def list_users():
    users = list_user_records()
    return jsonify({"success": True, "users": [user.to_dict() for user in users]})


@users_bp.route("/<int:user_id>", methods=["GET"])
@requires_permission("users.read")
def get_user_detail(user_id: int):
    user = get_user(user_id)
    if user is None:
        return json_error("User not found.", status=404)
    return jsonify({"success": True, "user": user.to_dict()})


@users_bp.route("/", methods=["POST"])
@requires_permission("users.create")
def create_user():
    payload = _json_payload()
    error = _check_csrf(payload)
    if error:
        return error

    form = form_from_payload(UserForm, payload)
    if not form.validate():
        return json_error("Please correct the highlighted fields.", errors=form.errors)

    values = {key: value.strip() if isinstance(value, str) else value for key, value in form.data.items()}
    values["password"] = form.password.data
    user = create_user_record(values)
    db.session.flush()
    record_audit(
        g.user,
        AuditAction.CREATE,
        "user",
        user.id,
        {key: value for key, value in values.items() if key != "password"},
    )
    error = _commit("Database error while creating user")
    if error:
        return error

    logging.info("User %s created by user %s", user.id, g.user.id)
    return (
        jsonify({"success": True, "message": "User created successfully.", "user": user.to_dict()}),
        201,
    )


@users_bp.route("/<int:user_id>", methods=["PUT"])
@requires_permission("users.update")
def update_user(user_id: int):
    user = get_user(user_id)
    if user is None:
        return json_error("User not found.", status=404)

    payload = _json_payload()
    error = _check_csrf(payload)
    if error:
        return error

    form = form_from_payload(UserUpdateForm, payload, user=user)
    if not form.validate():
        return json_error("Please correct the highlighted fields.", errors=form.errors)

    values = submitted_values(form, payload)
    if user.id == g.user.id and values.get("is_active") is False:
        return json_error("You cannot deactivate your own account.")

    before = update_user_record(user, values)
    record_audit(
        g.user,
        AuditAction.UPDATE,
        "user",
        user.id,
        {"before": before, "after": {key: values[key] for key in before}},
    )
    error = _commit("Database error while updating user")
    if error:
        return error

    return jsonify({"success": True, "message": "User updated successfully.", "user": user.to_dict()})


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@requires_permission("users.delete")
def delete_user(user_id: int):
    """Deactivate a user. Accounts are never removed."""

    user = get_user(user_id)
    if user is None:
        return json_error("User not found.", status=404)
    if user.id == g.user.id:
        return json_error("You cannot delete your own account.")

    deactivate_user(user)
    record_audit(g.user, AuditAction.DELETE, "user", user.id)
    error = _commit("Database error while deleting user")
    if error:
        return error
    return jsonify({"success": True, "message": "User deleted successfully."})


@users_bp.route("/<int:user_id>/preferences", methods=["PUT"])
def update_preferences(user_id: int):
    user = get_user(user_id)
    if user is None:
        return json_error("User not found.", status=404)
    if not can_edit_preferences(g.user, user):
        return json_error("You cannot update another user's preferences.", status=403)

    payload = _json_payload()
    error = _check_csrf(payload)
    if error:
        return error

    preferences = payload.get("preferences")
    if not isinstance(preferences, dict):
        return json_error("preferences must be an object.")

    user.update_preferences(preferences)
    error = _commit("Database error while updating preferences")
    if error:
        return error
    return jsonify(
        {
            "success": True,
            "message": "Preferences updated successfully.",
            "preferences": dict(user.preferences),
        }
    )
