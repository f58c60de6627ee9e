"""Role management blueprint."""
from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from database import db
from forms import RoleForm, RoleUpdateForm, form_from_payload, submitted_values
from models.audit_log import AuditAction
from models.role import Role
from models.user import User
from routes import json_error, requires_permission, validate_request_csrf
from services.audit_service import record_audit

roles_bp = Blueprint("roles", __name__, url_prefix="/api/roles")

DEFAULT_CUSTOM_ROLE_PRIORITY = 10


def _json_payload():
    return request.get_json(silent=True) or {}


def _check_csrf(payload):
    csrf_valid, csrf_message = validate_request_csrf(payload.get("csrf_token"))
    if not csrf_valid:
        return json_error(csrf_message or "Invalid CSRF token.")
    return None


def _commit(error_message: str):
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logging.error(error_message, exc_info=True)
        return json_error("An internal error has occurred.", status=500)
    return None


def _permission_list(value) -> list[str] | None:
    """Return the stripped permission names, or None when malformed."""
    if not isinstance(value, list) or not all(
        isinstance(permission, str) and permission.strip() for permission in value
    ):
        return None
    return [permission.strip() for permission in value]


def _set_permissions(role: Role, permissions: list[str]) -> None:
    role.permissions = []
    for permission in permissions:
        role.add_permission(permission)


def _load_role(role_id: int):
    role = db.session.get(Role, role_id)
    if role is None:
        return None, json_error("Role not found.", status=404)
    return role, None


@roles_bp.route("/", methods=["GET"])
def list_roles():
    roles = Role.query.order_by(Role.priority.desc(), Role.id).all()
    return jsonify({"success": True, "roles": [role.to_dict() for role in roles]})


@roles_bp.route("/<int:role_id>", methods=["GET"])
def get_role(role_id: int):
    role, error = _load_role(role_id)
    if error:
        return error
    return jsonify({"success": True, "role": role.to_dict()})


@roles_bp.route("/", methods=["POST"])
@requires_permission("roles.manage")
def create_role():
    payload = _json_payload()
    error = _check_csrf(payload)
    if error:
        return error

    form = form_from_payload(RoleForm, payload)
    if not form.validate():
        return json_error("Please correct the highlighted fields.", errors=form.errors)
    permissions = _permission_list(payload.get("permissions", []))
    if permissions is None:
        return json_error("permissions must be a list of permission names.")

    role = Role(
        name=form.name.data,
        display_name=form.display_name.data.strip(),
        description=form.description.data or None,
        priority=form.priority.data if form.priority.data is not None else DEFAULT_CUSTOM_ROLE_PRIORITY,
        is_system=False,
    )
    _set_permissions(role, permissions)
    db.session.add(role)
    db.session.flush()
    record_audit(g.user, AuditAction.CREATE, "role", role.id, role.to_dict())
    error = _commit("Database error while creating role")
    if error:
        return error

    return (
        jsonify({"success": True, "message": "Role created successfully.", "role": role.to_dict()}),
        201,
    )


@roles_bp.route("/<int:role_id>", methods=["PUT"])
@requires_permission("roles.manage")
def update_role(role_id: int):
    role, error = _load_role(role_id)
    if error:
        return error
    if role.is_system:
        return json_error("System roles cannot be modified.")

    payload = _json_payload()
    error = _check_csrf(payload)
    if error:
        return error

    form = form_from_payload(RoleUpdateForm, payload)
    if not form.validate():
        return json_error("Please correct the highlighted fields.", errors=form.errors)

    permissions = None
    if "permissions" in payload:
        permissions = _permission_list(payload["permissions"])
        if permissions is None:
            return json_error("permissions must be a list of permission names.")

    before = role.to_dict()
    for key, value in submitted_values(form, payload).items():
        if value is None and key != "description":
            continue
        setattr(role, key, value)
    if permissions is not None:
        _set_permissions(role, permissions)

    record_audit(g.user, AuditAction.UPDATE, "role", role.id, {"before": before, "after": role.to_dict()})
    error = _commit("Database error while updating role")
    if error:
        return error
    return jsonify({"success": True, "message": "Role updated successfully.", "role": role.to_dict()})


@roles_bp.route("/<int:role_id>", methods=["DELETE"])
@requires_permission("roles.manage")
def delete_role(role_id: int):
    role, error = _load_role(role_id)
    if error:
        return error
    if role.is_system:
        return json_error("System roles cannot be deleted.")

    assigned = User.query.filter_by(role_id=role.id).count()
    if assigned:
        return json_error(f"Cannot delete a role with {assigned} assigned user(s).")

    record_audit(g.user, AuditAction.DELETE, "role", role.id)
    db.session.delete(role)
    error = _commit("Database error while deleting role")
    if error:
        return error
    return jsonify({"success": True, "message": "Role deleted successfully."})


@roles_bp.route("/<int:role_id>/permissions", methods=["PUT"])
@requires_permission("roles.manage")
def update_role_permissions(role_id: int):
    """Replace the permissions granted by a role."""

    role, error = _load_role(role_id)
    if error:
        return error

    payload = _json_payload()
    error = _check_csrf(payload)
    if error:
        return error

    permissions = _permission_list(payload.get("permissions"))
    if permissions is None:
        return json_error("permissions must be a list of permission names.")

    before = list(role.permissions or [])
    _set_permissions(role, permissions)

    record_audit(
        g.user,
        AuditAction.UPDATE,
        "role",
        role.id,
        {"before": before, "after": list(role.permissions)},
    )
    error = _commit("Database error while updating role permissions")
    if error:
        return error

    return jsonify({"success": True, "role": role.to_dict()})


@roles_bp.route("/<int:role_id>/permissions", methods=["POST"])
@requires_permission("roles.manage")
def add_role_permission(role_id: int):
    role, error = _load_role(role_id)
    if error:
        return error

    payload = _json_payload()
    error = _check_csrf(payload)
    if error:
        return error

    permission = payload.get("permission")
    if not isinstance(permission, str) or not permission.strip():
        return json_error("permission is required.")

    role.add_permission(permission.strip())
    record_audit(
        g.user,
        AuditAction.UPDATE,
        "role",
        role.id,
        {"action": "add_permission", "permission": permission.strip()},
    )
    error = _commit("Database error while adding permission")
    if error:
        return error
    return jsonify({"success": True, "permissions": list(role.permissions)})


@roles_bp.route("/<int:role_id>/permissions/<string:permission>", methods=["DELETE"])
@requires_permission("roles.manage")
def remove_role_permission(role_id: int, permission: str):
    role, error = _load_role(role_id)
    if error:
        return error

    role.remove_permission(permission)
    record_audit(
        g.user,
        AuditAction.UPDATE,
        "role",
        role.id,
        {"action": "remove_permission", "permission": permission},
    )
    error = _commit("Database error while removing permission")
    if error:
        return error
    return jsonify({"success": True, "permissions": list(role.permissions)})
