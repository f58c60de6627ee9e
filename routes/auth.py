"""Session authentication endpoints."""
from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request, session
from flask_wtf.csrf import generate_csrf
from sqlalchemy.exc import SQLAlchemyError

from database import db
from forms import LoginForm, PasswordChangeForm, RegistrationForm, form_from_payload
from models.audit_log import AuditAction
from models.role import Role
from models.user import User
from routes import json_error, validate_request_csrf
from services.audit_service import record_audit
from services.user_service import create_user

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def authenticate_user(username, password) -> User | None:
    user = User.query.filter_by(username=username).first()
    if user and user.is_active and user.check_password(password):
        session["user_id"] = user.id
        session["user"] = user.name
        return user
    return None


@auth_bp.route("/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True) or {}
    form = form_from_payload(LoginForm, payload)
    if not form.validate():
        return json_error("Username and password are required.", errors=form.errors)

    user = authenticate_user(form.username.data, form.password.data)
    if user is None:
        return json_error("Invalid username or password.", status=401)

    user.record_login()
    record_audit(user, AuditAction.LOGIN, "user", user.id)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logging.error("Database error while recording login", exc_info=True)
        return json_error("An internal error has occurred.", status=500)

    g.user = user
    return jsonify({"success": True, "user": user.to_dict(), "csrf_token": generate_csrf()})


@auth_bp.route("/logout", methods=["POST"])
def logout():
    user = g.user
    session.pop("user", None)
    session.pop("user_id", None)
    g.user = None
    if user is not None:
        record_audit(user, AuditAction.LOGOUT, "user", user.id)
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logging.error("Database error while recording logout", exc_info=True)
    return jsonify({"success": True})


@auth_bp.route("/me", methods=["GET"])
def me():
    if g.user is None:
        return json_error("Authentication required.", status=401)
    permissions = list(g.user.role.permissions or []) if g.user.role else []
    return jsonify(
        {
            "success": True,
            "user": g.user.to_dict(),
            "permissions": permissions,
            "csrf_token": generate_csrf(),
        }
    )


@auth_bp.route("/password", methods=["PUT"])
def change_password():
    payload = request.get_json(silent=True) or {}
    csrf_valid, csrf_message = validate_request_csrf(payload.get("csrf_token"))
    if not csrf_valid:
        return json_error(csrf_message or "Invalid CSRF token.")

    form = form_from_payload(PasswordChangeForm, payload, user=g.user)
    if not form.validate():
        if form.current_password.errors and form.current_password.data:
            return json_error(form.current_password.errors[0], status=401)
        return json_error("Please correct the highlighted fields.", errors=form.errors)

    g.user.set_password(form.new_password.data)
    record_audit(g.user, AuditAction.PASSWORD_CHANGE, "user", g.user.id)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logging.error("Database error while changing password", exc_info=True)
        return json_error("An internal error has occurred.", status=500)
    return jsonify({"success": True, "message": "Password updated successfully."})


@auth_bp.route("/register", methods=["POST"])
def register():
    """Self-service sign up. Only the technician and client roles are offered."""
    payload = request.get_json(silent=True) or {}
    csrf_valid, csrf_message = validate_request_csrf(payload.get("csrf_token"))
    if not csrf_valid:
        return json_error(csrf_message or "Invalid CSRF token.")

    form = form_from_payload(RegistrationForm, payload)
    if not form.validate():
        return json_error("Please correct the highlighted fields.", errors=form.errors)

    role = Role.query.filter_by(name=form.role.data or Role.TECHNICIAN).one_or_none()
    if role is None:
        return json_error("Invalid role.")

    user = create_user(
        {
            "username": form.username.data.strip(),
            "name": form.name.data.strip(),
            "email": form.email.data.strip(),
            "password": form.password.data,
            "department": form.department.data,
            "role_id": role.id,
        }
    )
    db.session.flush()
    record_audit(user, AuditAction.REGISTER, "user", user.id, {"email": user.email})
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logging.error("Database error while registering user", exc_info=True)
        return json_error("An internal error has occurred.", status=500)

    session["user_id"] = user.id
    session["user"] = user.name
    return (
        jsonify({"success": True, "user": user.to_dict(), "csrf_token": generate_csrf()}),
        201,
    )
