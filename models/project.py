"""A Project is the aggregate that owns a list of Tasks.

A User can create Projects when his Role allows it
A User is the owner of the Projects he creates
A Project has a team (list of User ids) and optionally a client User
A Project keeps its Tasks and sub-tasks as a flat list (see Task)
The progress of a Project is derived from its Tasks after every change
Deleting a Project only marks it as deleted

"""
from __future__ import annotations

import copy
import math
import uuid
from datetime import date, datetime
from enum import StrEnum
from typing import Any, Iterable, Mapping

from sqlalchemy.orm.attributes import flag_modified

from database import db
from models.task import TaskPriority
from services.task_tree import TaskRecord, TaskTree


class ProjectType(StrEnum):
    NEW_BUILD = "new-build"
    RENOVATION = "renovation"
    MAINTENANCE = "maintenance"
    OTHER = "other"


class ProjectStatus(StrEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def _new_project_id() -> str:
    return str(uuid.uuid4())


class Project(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_new_project_id)
    name = db.Column(db.String(255), nullable=False)
    client = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(32), nullable=False, default=ProjectType.NEW_BUILD.value)
    status = db.Column(db.String(32), nullable=False, default=ProjectStatus.DRAFT.value, index=True)
    priority = db.Column(db.String(32), nullable=False, default=TaskPriority.MEDIUM.value)
    description = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    estimated_budget = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    actual_budget = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    progress = db.Column(db.Integer, nullable=False, default=0)
    tasks = db.Column(db.JSON, nullable=False, default=list)
    team_members = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.Text, nullable=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)
    client_user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )
    deleted_at = db.Column(db.DateTime, nullable=True)

    owner = db.relationship("User", back_populates="owned_projects", foreign_keys=[owner_id])
    client_user = db.relationship("User", foreign_keys=[client_user_id])

    # Task list
    # ------------------------------
    def task_tree(self) -> TaskTree:
        """Return an engine over a private copy of the stored task list."""
        return TaskTree(copy.deepcopy(list(self.tasks or [])))

    def _store_tasks(self, tree: TaskTree, *, refresh_progress: bool = True) -> None:
        self.tasks = tree.tasks
        flag_modified(self, "tasks")
        if refresh_progress:
            self.progress = tree.calculate_progress()

    def add_task(self, data: Mapping[str, Any]) -> TaskRecord:
        tree = self.task_tree()
        task = tree.add_task(data)
        self._store_tasks(tree)
        return task

    def update_task(self, task_id: str, patch: Mapping[str, Any]) -> TaskRecord | None:
        tree = self.task_tree()
        task = tree.update_task(task_id, patch)
        if task is None:
            return None
        self._store_tasks(tree)
        return task

    def delete_task(self, task_id: str) -> list[TaskRecord]:
        tree = self.task_tree()
        removed = tree.delete_task(task_id)
        if removed:
            self._store_tasks(tree)
        return removed

    def reorder_tasks(self, orders: Iterable[Mapping[str, Any]]) -> list[TaskRecord]:
        tree = self.task_tree()
        tree.reorder_tasks(orders)
        self._store_tasks(tree, refresh_progress=False)
        return tree.tasks

    def calculate_progress(self) -> int:
        return TaskTree(list(self.tasks or [])).calculate_progress()

    # Schedule
    # ------------------------------
    def is_overdue(self, today: date | None = None) -> bool:
        today = today or date.today()
        return self.end_date is not None and today > self.end_date and self.status != ProjectStatus.COMPLETED

    def days_remaining(self, now: datetime | None = None) -> int | None:
        if self.end_date is None:
            return None
        now = now or datetime.utcnow()
        end = datetime.combine(self.end_date, datetime.min.time())
        return math.ceil((end - now).total_seconds() / 86400)

    # Access
    # ------------------------------
    def can_user_access(self, user, permission: str) -> bool:
        """True when ``user`` may perform ``permission`` on this project."""
        from models.role import Role

        if user is None:
            return False
        role = user.role
        if role is not None and role.name == Role.ADMIN:
            return True
        if self.owner_id == user.id:
            return True
        if user.id in (self.team_members or []):
            if role is not None and role.has_permission(permission):
                return True
        if role is not None and role.name == Role.CLIENT and self.client_user_id == user.id:
            return "read" in permission
        return False

    def __repr__(self):
        return f"<Project {self.name}>"
