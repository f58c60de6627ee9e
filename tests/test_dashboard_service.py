from datetime import date, datetime
from decimal import Decimal

from models.audit_log import AuditLog  # noqa: F401 - registers the mapper
from models.project import Project
from models.role import Role  # noqa: F401
from models.user import User  # noqa: F401
from services.dashboard_service import build_alerts, build_metrics, recent_projects

TODAY = date(2026, 5, 10)


def _project(project_id, **overrides):
    values = {
        "id": project_id,
        "name": f"Project {project_id}",
        "client": "Acme",
        "type": "renovation",
        "status": "active",
        "start_date": date(2026, 1, 1),
        "end_date": date(2026, 12, 31),
        "estimated_budget": Decimal("1000.00"),
        "actual_budget": Decimal("0"),
        "progress": 0,
        "tasks": [],
        "updated_at": datetime(2026, 5, 1),
    }
    values.update(overrides)
    return Project(**values)


def _sample_projects():
    return [
        _project(
            "p1",
            progress=50,
            actual_budget=Decimal("1200.00"),
            tasks=[
                {"id": "t1", "status": "completed"},
                {"id": "t2", "status": "in-progress"},
            ],
            updated_at=datetime(2026, 5, 9),
        ),
        _project("p2", status="completed", type="new-build", progress=100, end_date=date(2026, 4, 1)),
        _project("p3", progress=10, end_date=date(2026, 5, 1), tasks=[{"id": "t3", "status": "on-hold"}]),
        _project("p4", status="draft", end_date=date(2026, 5, 14), updated_at=datetime(2026, 5, 5)),
    ]


def test_build_metrics_counts_projects_budget_and_tasks():
    metrics = build_metrics(_sample_projects(), today=TODAY)

    assert metrics["projects"]["total"] == 4
    assert metrics["projects"]["active"] == 2
    assert metrics["projects"]["completed"] == 1
    assert metrics["projects"]["overdue"] == 1
    assert metrics["projects"]["by_type"] == {"renovation": 3, "new-build": 1}
    assert metrics["budget"] == {"estimated": 4000.0, "actual": 1200.0, "utilization": 30}
    assert metrics["average_progress"] == 40
    assert metrics["tasks"]["total"] == 3
    assert metrics["tasks"]["by_status"]["completed"] == 1
    assert metrics["tasks"]["by_status"]["on-hold"] == 1
    assert metrics["tasks"]["by_status"]["not-started"] == 0


def test_build_metrics_on_empty_set():
    metrics = build_metrics([], today=TODAY)

    assert metrics["projects"]["total"] == 0
    assert metrics["average_progress"] == 0
    assert metrics["budget"]["utilization"] == 0


def test_recent_projects_orders_by_update_and_counts_tasks():
    projects = recent_projects(_sample_projects(), limit=2)

    assert [project["id"] for project in projects] == ["p1", "p4"]
    assert projects[0]["total_tasks"] == 2
    assert projects[0]["completed_tasks"] == 1


def test_build_alerts_reports_overdue_due_soon_and_budget():
    alerts = build_alerts(_sample_projects(), today=TODAY, due_soon_days=7)

    by_type = {(alert["type"], alert["project_id"]) for alert in alerts}
    assert by_type == {("overdue", "p3"), ("due_soon", "p4"), ("over_budget", "p1")}
    assert alerts[-1]["type"] == "due_soon"
