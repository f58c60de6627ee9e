"""In-memory operations over the task list of a single project.

A project keeps its tasks as a flat, ordered list of dictionaries. Nesting is
expressed through ``parent_id`` and is limited to one level: a top-level task
may hold sub-tasks, a sub-task may not. ``TaskTree`` mutates the list it is
given in place; loading and persisting that list is the caller's job.
"""
from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, MutableSequence

from models.task import TaskPriority, TaskStatus

logger = logging.getLogger(__name__)

TaskRecord = dict[str, Any]

# Keys a patch can never overwrite.
IMMUTABLE_TASK_FIELDS = frozenset({"id", "parent_id", "created_at"})

LEAF_STATUS_WEIGHTS = {
    TaskStatus.COMPLETED.value: 1.0,
    TaskStatus.IN_PROGRESS.value: 0.5,
}


class ValidationError(ValueError):
    """Raised when a task cannot be added to the tree."""


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class TaskTree:
    """Task list of one project with rollup and propagation rules."""

    def __init__(self, tasks: MutableSequence[TaskRecord] | None = None):
        self.tasks = tasks if tasks is not None else []

    def __len__(self) -> int:
        return len(self.tasks)

    def __iter__(self):
        return iter(self.tasks)

    def get_task(self, task_id: str | None) -> TaskRecord | None:
        if task_id is None:
            return None
        for task in self.tasks:
            if task.get("id") == task_id:
                return task
        return None

    def top_level_tasks(self) -> list[TaskRecord]:
        return [task for task in self.tasks if not task.get("parent_id")]

    def subtasks_of(self, parent_id: str) -> list[TaskRecord]:
        return [task for task in self.tasks if task.get("parent_id") == parent_id]

    def add_task(self, data: Mapping[str, Any]) -> TaskRecord:
        """Append a new task and return it.

        ``position`` defaults to the number of top-level tasks, ``status`` to
        not-started and ``priority`` to medium. A ``parent_id`` must name an
        existing top-level task, otherwise ``ValidationError`` is raised and the
        list is left untouched.
        """
        parent_id = data.get("parent_id") or None
        if parent_id is not None:
            parent = self.get_task(parent_id)
            if parent is None:
                raise ValidationError("Parent task not found")
            if parent.get("parent_id"):
                raise ValidationError("Sub-tasks cannot have sub-tasks of their own")

        now = _timestamp()
        task: TaskRecord = {
            key: value for key, value in data.items() if key not in IMMUTABLE_TASK_FIELDS
        }
        task["id"] = str(uuid.uuid4())
        task["parent_id"] = parent_id
        if task.get("position") is None:
            task["position"] = len(self.top_level_tasks())
        task["status"] = task.get("status") or TaskStatus.NOT_STARTED.value
        task["priority"] = task.get("priority") or TaskPriority.MEDIUM.value
        task["created_at"] = now
        task["updated_at"] = now

        self.tasks.append(task)
        logger.debug("Added task %s (parent=%s)", task["id"], parent_id)

        if parent_id is not None:
            self.update_parent_task_status(parent_id)
        return task

    def update_task(self, task_id: str, patch: Mapping[str, Any]) -> TaskRecord | None:
        """Merge ``patch`` into the task. Unknown ids are ignored."""
        task = self.get_task(task_id)
        if task is None:
            return None

        previous_status = task.get("status")
        for key, value in patch.items():
            if key in IMMUTABLE_TASK_FIELDS:
                continue
            task[key] = value
        task["updated_at"] = _timestamp()

        new_status = patch.get("status")
        if task.get("parent_id") and new_status and new_status != previous_status:
            self.update_parent_task_status(task["parent_id"])
        return task

    def delete_task(self, task_id: str) -> list[TaskRecord]:
        """Remove the task and its sub-tasks, returning the removed records."""
        task = self.get_task(task_id)
        if task is None:
            return []

        removed = [
            item
            for item in self.tasks
            if item.get("id") == task_id or item.get("parent_id") == task_id
        ]
        self.tasks[:] = [
            item
            for item in self.tasks
            if item.get("id") != task_id and item.get("parent_id") != task_id
        ]
        logger.debug("Deleted task %s with %d sub-task(s)", task_id, len(removed) - 1)

        if task.get("parent_id"):
            self.update_parent_task_status(task["parent_id"])
        return removed

    def reorder_tasks(self, orders: Iterable[Mapping[str, Any]]) -> None:
        """Apply new positions and sort top-level tasks by them.

        Sub-tasks keep their slots in the list; only the slots occupied by
        top-level tasks are refilled in position order. The sort is stable.
        """
        now = _timestamp()
        for order in orders:
            task = self.get_task(order.get("id"))
            if task is None:
                continue
            task["position"] = order.get("position")
            task["updated_at"] = now

        slots = [index for index, task in enumerate(self.tasks) if not task.get("parent_id")]
        ordered = sorted(
            (self.tasks[index] for index in slots),
            key=lambda task: task.get("position") or 0,
        )
        for index, task in zip(slots, ordered):
            self.tasks[index] = task

    def calculate_progress(self) -> int:
        """Return overall completion as an integer percentage.

        Each top-level task weighs the same. A task with sub-tasks scores the
        share of its completed sub-tasks; a task without scores 1 when
        completed, 0.5 when in progress and 0 otherwise.
        """
        main_tasks = self.top_level_tasks()
        if not main_tasks:
            return 0

        completed_weight = 0.0
        for task in main_tasks:
            subtasks = self.subtasks_of(task["id"])
            if subtasks:
                completed = sum(
                    1 for subtask in subtasks if subtask.get("status") == TaskStatus.COMPLETED
                )
                completed_weight += completed / len(subtasks)
            else:
                completed_weight += LEAF_STATUS_WEIGHTS.get(task.get("status"), 0.0)

        return _round_half_up(completed_weight / len(main_tasks) * 100)

    def update_parent_task_status(self, parent_id: str | None) -> None:
        """Derive the parent's status from its direct sub-tasks."""
        parent = self.get_task(parent_id)
        if parent is None:
            return
        subtasks = self.subtasks_of(parent_id)
        if not subtasks:
            return

        statuses = [subtask.get("status") for subtask in subtasks]
        if all(status == TaskStatus.COMPLETED for status in statuses):
            parent["status"] = TaskStatus.COMPLETED.value
        elif any(status != TaskStatus.NOT_STARTED for status in statuses):
            parent["status"] = TaskStatus.IN_PROGRESS.value
        else:
            parent["status"] = TaskStatus.NOT_STARTED.value
        parent["updated_at"] = _timestamp()
