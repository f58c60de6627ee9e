"""Utilities supporting project access control, queries and presentation."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy import func, or_

from database import db
from models.project import Project, ProjectStatus
from models.role import Role
from models.task import render_task_description_html
from models.user import User

DEFAULT_PAGE_SIZE = 100


def user_has_permission(user: User | None, permission: str) -> bool:
    """Return True when the user's role grants ``permission``.

    Admins are granted every permission.
    """
    if user is None or user.role is None:
        return False
    if user.is_admin:
        return True
    return user.role.has_permission(permission)


def user_can_access_project(user: User | None, project: Project | None, permission: str) -> bool:
    if user is None or project is None:
        return False
    return project.can_user_access(user, permission)


def user_can_update_tasks(user: User | None, project: Project | None) -> bool:
    """True when the user may change task records of the project."""

    if user is None or project is None:
        return False
    return user_has_permission(user, "projects.update.tasks") or project.can_user_access(
        user, "projects.update"
    )


def get_project(project_id: str) -> Project | None:
    """Return a project that has not been soft deleted."""
    return Project.query.filter(Project.id == project_id, Project.deleted_at.is_(None)).one_or_none()


def visible_projects_query(user: User | None):
    """Return the base query of projects the user may list."""

    query = Project.query.filter(Project.deleted_at.is_(None))
    role_name = user.role_name if user is not None else None
    if role_name == Role.CLIENT:
        query = query.filter(Project.client_user_id == user.id)
    elif role_name == Role.TECHNICIAN:
        # JSON containment is not portable across backends.
        visible_ids = [
            project.id
            for project in query.all()
            if user.id in (project.team_members or [])
        ]
        query = Project.query.filter(Project.id.in_(visible_ids))
    return query


def list_projects(
    user: User | None,
    *,
    status: str | None = None,
    project_type: str | None = None,
    search: str | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> tuple[list[Project], int]:
    """Return the filtered page of visible projects and the total count."""

    query = visible_projects_query(user)
    if status:
        query = query.filter(Project.status == status)
    if project_type:
        query = query.filter(Project.type == project_type)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Project.name.ilike(pattern), Project.client.ilike(pattern)))

    total = query.count()
    projects = (
        query.order_by(Project.created_at.desc(), Project.id)
        .limit(limit)
        .offset(offset)
        .all()
    )
    return projects, total


def project_stats(user: User | None, today: date | None = None) -> dict[str, Any]:
    """Return project counts grouped by status and type, plus overdue."""

    today = today or date.today()
    query = visible_projects_query(user)
    by_status = dict(
        query.with_entities(Project.status, func.count(Project.id)).group_by(Project.status).all()
    )
    by_type = dict(
        query.with_entities(Project.type, func.count(Project.id)).group_by(Project.type).all()
    )
    overdue = query.filter(
        Project.end_date < today,
        Project.status != ProjectStatus.COMPLETED.value,
    ).count()
    return {
        "total": query.count(),
        "by_status": by_status,
        "by_type": by_type,
        "overdue": overdue,
    }


def create_project(owner: User, data: dict[str, Any]) -> Project:
    """Create a project owned by ``owner`` who also joins its team."""

    values = {key: value for key, value in data.items() if value is not None}
    project = Project(owner_id=owner.id, team_members=[owner.id], tasks=[], **values)
    db.session.add(project)
    return project


def update_project(project: Project, data: dict[str, Any]) -> dict[str, Any]:
    """Apply ``data`` to the project and return the previous values."""

    columns = Project.__table__.columns
    changes = {
        key: value
        for key, value in data.items()
        if value is not None or key not in columns or columns[key].nullable
    }
    before = {key: _json_value(getattr(project, key, None)) for key in changes}
    for key, value in changes.items():
        setattr(project, key, value)
    return before


def soft_delete_project(project: Project) -> None:
    project.deleted_at = datetime.utcnow()


def _json_value(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def serialize_task(task: dict[str, Any]) -> dict[str, Any]:
    """Return a task record augmented with its rendered description."""

    payload = dict(task)
    payload["description_html"] = str(render_task_description_html(task.get("description")))
    return payload


def serialize_tasks(tasks: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    return [serialize_task(task) for task in tasks]


def serialize_project(project: Project, *, include_tasks: bool = True) -> dict[str, Any]:
    """Return a serialized representation of the project."""

    owner = project.owner
    payload = {
        "id": project.id,
        "name": project.name,
        "client": project.client,
        "type": project.type,
        "status": project.status,
        "priority": project.priority,
        "description": project.description,
        "start_date": _json_value(project.start_date),
        "end_date": _json_value(project.end_date),
        "estimated_budget": _json_value(project.estimated_budget),
        "actual_budget": _json_value(project.actual_budget),
        "progress": project.progress,
        "team_members": list(project.team_members or []),
        "notes": project.notes,
        "client_user_id": project.client_user_id,
        "is_overdue": project.is_overdue(),
        "days_remaining": project.days_remaining(),
        "owner": (
            {"id": owner.id, "name": owner.name, "email": owner.email} if owner else None
        ),
        "created_at": _json_value(project.created_at),
        "updated_at": _json_value(project.updated_at),
    }
    if include_tasks:
        payload["tasks"] = serialize_tasks(project.tasks or [])
    return payload
