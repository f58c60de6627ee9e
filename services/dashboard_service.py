"""Aggregations feeding the dashboard endpoints.

All functions work on already loaded projects so they can be reused for any
visibility filter.
"""
from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Iterable

from models.project import Project, ProjectStatus
from models.task import TaskStatus

DEFAULT_DUE_SOON_DAYS = 7


def _amount(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def build_metrics(projects: Iterable[Project], today: date | None = None) -> dict[str, Any]:
    """Return headline numbers for a set of projects."""

    projects = list(projects)
    today = today or date.today()
    total = len(projects)
    estimated = sum(_amount(project.estimated_budget) for project in projects)
    actual = sum(_amount(project.actual_budget) for project in projects)

    task_counts: Counter[str] = Counter()
    for project in projects:
        for task in project.tasks or []:
            task_counts[task.get("status") or TaskStatus.NOT_STARTED.value] += 1

    return {
        "projects": {
            "total": total,
            "active": sum(1 for project in projects if project.status == ProjectStatus.ACTIVE),
            "completed": sum(1 for project in projects if project.status == ProjectStatus.COMPLETED),
            "overdue": sum(1 for project in projects if project.is_overdue(today)),
            "by_status": dict(Counter(project.status for project in projects)),
            "by_type": dict(Counter(project.type for project in projects)),
        },
        "budget": {
            "estimated": round(estimated, 2),
            "actual": round(actual, 2),
            "utilization": round(actual / estimated * 100) if estimated else 0,
        },
        "average_progress": (
            round(sum(project.progress or 0 for project in projects) / total) if total else 0
        ),
        "tasks": {
            "total": sum(task_counts.values()),
            "by_status": {status.value: task_counts.get(status.value, 0) for status in TaskStatus},
        },
    }


def recent_projects(projects: Iterable[Project], limit: int = 5) -> list[dict[str, Any]]:
    """Return the most recently updated projects with task counts."""

    ordered = sorted(
        projects,
        key=lambda project: project.updated_at or datetime.min,
        reverse=True,
    )
    results = []
    for project in ordered[:limit]:
        tasks = project.tasks or []
        results.append(
            {
                "id": project.id,
                "name": project.name,
                "client": project.client,
                "status": project.status,
                "progress": project.progress,
                "end_date": project.end_date.isoformat() if project.end_date else None,
                "total_tasks": len(tasks),
                "completed_tasks": sum(
                    1 for task in tasks if task.get("status") == TaskStatus.COMPLETED
                ),
            }
        )
    return results


def build_alerts(
    projects: Iterable[Project],
    today: date | None = None,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
) -> list[dict[str, Any]]:
    """Return overdue, due-soon and over-budget alerts, most severe first."""

    today = today or date.today()
    due_soon_limit = today + timedelta(days=due_soon_days)
    alerts: list[dict[str, Any]] = []
    for project in projects:
        if project.status in (ProjectStatus.COMPLETED, ProjectStatus.CANCELLED):
            continue
        if project.is_overdue(today):
            alerts.append(
                {
                    "type": "overdue",
                    "severity": "high",
                    "project_id": project.id,
                    "message": f"{project.name} is past its end date",
                }
            )
        elif project.end_date and today <= project.end_date <= due_soon_limit:
            alerts.append(
                {
                    "type": "due_soon",
                    "severity": "medium",
                    "project_id": project.id,
                    "message": f"{project.name} is due on {project.end_date.isoformat()}",
                }
            )
        estimated = _amount(project.estimated_budget)
        actual = _amount(project.actual_budget)
        if actual > 0 and estimated and actual > estimated:
            alerts.append(
                {
                    "type": "over_budget",
                    "severity": "high",
                    "project_id": project.id,
                    "message": f"{project.name} is {round((actual / estimated - 1) * 100)}% over budget",
                }
            )
    severity_rank = {"high": 0, "medium": 1}
    alerts.sort(key=lambda alert: severity_rank.get(alert["severity"], 2))
    return alerts
