"""Project and task management blueprint."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict

from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from database import db
from forms import (
    ProjectForm,
    ProjectUpdateForm,
    TaskForm,
    TaskUpdateForm,
    form_from_payload,
    submitted_values,
)
from models.audit_log import AuditAction
from models.project import Project
from routes import json_error, requires_permission, validate_request_csrf
from services.audit_service import entity_history, record_audit
from services.project_service import (
    DEFAULT_PAGE_SIZE,
    create_project as create_project_record,
    get_project,
    list_projects as list_visible_projects,
    project_stats,
    serialize_project,
    serialize_task,
    serialize_tasks,
    soft_delete_project,
    update_project as update_project_record,
    user_can_access_project,
    user_can_update_tasks,
)
from services.task_tree import ValidationError as TaskTreeValidationError

projects_bp = Blueprint("projects", __name__, url_prefix="/api/projects")

# Task fields a patch may change but never clear.
REQUIRED_TASK_FIELDS = ("name", "status", "priority")


def _json_payload() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def _parse_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _task_values(form, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return JSON-ready task values from a validated form."""
    values = submitted_values(form, payload)
    for key, value in values.items():
        if isinstance(value, date):
            values[key] = value.isoformat()
        elif isinstance(value, str):
            values[key] = value.strip()
    return values


def _form_error(form, message: str | None = None):
    return json_error(
        message or "Please correct the highlighted fields.",
        errors=form.errors,
    )


def _load_project(project_id: str, permission: str) -> tuple[Project | None, Any]:
    """Return the project or an error response when missing or forbidden."""
    project = get_project(project_id)
    if project is None:
        return None, json_error("Project not found.", status=404)
    if not user_can_access_project(g.user, project, permission):
        return None, json_error("Access denied.", status=403)
    return project, None


def _commit(error_message: str):
    """Commit the session, returning an error response on failure."""
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logging.error(error_message, exc_info=True)
        return json_error("An internal error has occurred.", status=500)
    return None


def _check_csrf(payload: Dict[str, Any]):
    csrf_valid, csrf_message = validate_request_csrf(payload.get("csrf_token"))
    if not csrf_valid:
        return json_error(csrf_message or "Invalid CSRF token.")
    return None


# Projects
# ------------------------------
@projects_bp.route("/", methods=["GET"])
def list_projects():
    args = request.args
    limit = _parse_int(args.get("limit"), DEFAULT_PAGE_SIZE)
    offset = _parse_int(args.get("offset"), 0)
    projects, total = list_visible_projects(
        g.user,
        status=args.get("status"),
        project_type=args.get("type"),
        search=args.get("search"),
        limit=limit,
        offset=offset,
    )
    return jsonify(
        {
            "success": True,
            "projects": [serialize_project(project) for project in projects],
            "pagination": {"total": total, "limit": limit, "offset": offset},
        }
    )


@projects_bp.route("/stats/overview", methods=["GET"])
def stats_overview():
    return jsonify({"success": True, "stats": project_stats(g.user)})


@projects_bp.route("/<string:project_id>", methods=["GET"])
def get_project_detail(project_id: str):
    project, error = _load_project(project_id, "projects.read")
    if error:
        return error
    return jsonify({"success": True, "project": serialize_project(project)})


@projects_bp.route("/", methods=["POST"])
@requires_permission("projects.create")
def create_project():
    payload = _json_payload()
    error = _check_csrf(payload)
    if error:
        return error

    form = form_from_payload(ProjectForm, payload)
    if not form.validate():
        return _form_error(form)

    values = submitted_values(form, payload)
    project = create_project_record(g.user, values)
    db.session.flush()
    record_audit(
        g.user,
        AuditAction.CREATE,
        "project",
        project.id,
        {key: payload.get(key) for key in values},
    )
    error = _commit("Database error while creating project")
    if error:
        return error

    logging.info("Project %s created by user %s", project.id, g.user.id)
    return (
        jsonify(
            {
                "success": True,
                "message": "Project created successfully.",
                "project": serialize_project(project),
            }
        ),
        201,
    )


@projects_bp.route("/<string:project_id>", methods=["PUT"])
def update_project(project_id: str):
    project, error = _load_project(project_id, "projects.update")
    if error:
        return error

    payload = _json_payload()
    error = _check_csrf(payload)
    if error:
        return error

    form = form_from_payload(ProjectUpdateForm, payload)
    if not form.validate():
        return _form_error(form)

    values = submitted_values(form, payload)
    before = update_project_record(project, values)
    record_audit(
        g.user,
        AuditAction.UPDATE,
        "project",
        project.id,
        {"before": before, "after": {key: payload.get(key) for key in values}},
    )
    error = _commit("Database error while updating project")
    if error:
        return error

    return jsonify(
        {
            "success": True,
            "message": "Project updated successfully.",
            "project": serialize_project(project),
        }
    )


@projects_bp.route("/<string:project_id>", methods=["DELETE"])
@requires_permission("projects.delete")
def delete_project(project_id: str):
    project, error = _load_project(project_id, "projects.delete")
    if error:
        return error

    record_audit(g.user, AuditAction.DELETE, "project", project.id)
    soft_delete_project(project)
    error = _commit("Database error while deleting project")
    if error:
        return error
    return jsonify({"success": True, "message": "Project deleted successfully."})


@projects_bp.route("/<string:project_id>/history", methods=["GET"])
@requires_permission("audit.view")
def project_history(project_id: str):
    project, error = _load_project(project_id, "projects.read")
    if error:
        return error

    limit = min(max(_parse_int(request.args.get("limit"), 50), 1), 200)
    entries = entity_history("project", project.id, limit=limit)
    return jsonify({"success": True, "history": [entry.to_dict() for entry in entries]})


# Tasks
# ------------------------------
@projects_bp.route("/<string:project_id>/tasks", methods=["POST"])
def add_task(project_id: str):
    project, error = _load_project(project_id, "projects.update")
    if error:
        return error

    payload = _json_payload()
    error = _check_csrf(payload)
    if error:
        return error

    form = form_from_payload(TaskForm, payload)
    if not form.validate():
        return _form_error(form)

    try:
        task = project.add_task(_task_values(form, payload))
    except TaskTreeValidationError as exc:
        return json_error(str(exc))

    record_audit(g.user, AuditAction.CREATE, "task", task["id"], dict(task))
    error = _commit("Database error while adding task")
    if error:
        return error

    return (
        jsonify(
            {
                "success": True,
                "message": "Task added successfully.",
                "task": serialize_task(task),
                "progress": project.progress,
            }
        ),
        201,
    )


@projects_bp.route("/<string:project_id>/tasks/reorder", methods=["PUT"])
def reorder_tasks(project_id: str):
    project, error = _load_project(project_id, "projects.update")
    if error:
        return error

    payload = _json_payload()
    error = _check_csrf(payload)
    if error:
        return error

    task_orders = payload.get("task_orders")
    if not isinstance(task_orders, list):
        return json_error("task_orders must be an array.")
    orders = []
    for entry in task_orders:
        if not isinstance(entry, dict):
            return json_error("Each task order must be an object with id and position.")
        position = entry.get("position")
        if position is not None and (isinstance(position, bool) or not isinstance(position, int)):
            return json_error("Task positions must be integers.")
        orders.append({"id": entry.get("id"), "position": position})

    tasks = project.reorder_tasks(orders)
    record_audit(g.user, AuditAction.REORDER, "tasks", project.id, {"task_orders": orders})
    error = _commit("Database error while reordering tasks")
    if error:
        return error

    return jsonify(
        {
            "success": True,
            "message": "Tasks reordered successfully.",
            "tasks": serialize_tasks(tasks),
        }
    )


@projects_bp.route("/<string:project_id>/tasks/<string:task_id>", methods=["PUT"])
def update_task(project_id: str, task_id: str):
    project = get_project(project_id)
    if project is None:
        return json_error("Project not found.", status=404)
    if not user_can_update_tasks(g.user, project):
        return json_error("Access denied.", status=403)

    payload = _json_payload()
    error = _check_csrf(payload)
    if error:
        return error

    form = form_from_payload(TaskUpdateForm, payload)
    if not form.validate():
        return _form_error(form)
    cleared = [key for key in REQUIRED_TASK_FIELDS if key in payload and payload[key] is None]
    if cleared:
        return json_error(
            "Please correct the highlighted fields.",
            errors={key: ["This field cannot be cleared."] for key in cleared},
        )

    patch = _task_values(form, payload)
    patch.pop("parent_id", None)
    task = project.update_task(task_id, patch)
    if task is not None:
        record_audit(g.user, AuditAction.UPDATE, "task", task_id, patch)
        error = _commit("Database error during task update")
        if error:
            return error

    return jsonify(
        {
            "success": True,
            "message": "Task updated successfully.",
            "project": serialize_project(project),
        }
    )


@projects_bp.route("/<string:project_id>/tasks/<string:task_id>", methods=["DELETE"])
def delete_task(project_id: str, task_id: str):
    project, error = _load_project(project_id, "projects.update")
    if error:
        return error

    removed = project.delete_task(task_id)
    if removed:
        record_audit(
            g.user,
            AuditAction.DELETE,
            "task",
            task_id,
            {"removed": [task["id"] for task in removed]},
        )
        error = _commit("Database error while deleting task")
        if error:
            return error

    return jsonify(
        {
            "success": True,
            "message": "Task deleted successfully.",
            "project": serialize_project(project),
        }
    )
