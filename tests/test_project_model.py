from datetime import date, datetime

from models.audit_log import AuditLog  # noqa: F401 - registers the mapper
from models.project import Project
from models.role import DEFAULT_PERMISSIONS, Role
from models.user import User


def _project(**overrides):
    values = {
        "name": "Harbour Office",
        "client": "Harbour Ltd",
        "status": "active",
        "start_date": date(2026, 1, 1),
        "end_date": date(2026, 6, 30),
        "tasks": [],
        "team_members": [],
        "progress": 0,
    }
    values.update(overrides)
    return Project(**values)


def _user(user_id, role_name):
    role = Role(name=role_name, display_name=role_name, permissions=list(DEFAULT_PERMISSIONS[role_name]))
    return User(id=user_id, username=f"user{user_id}", name=f"User {user_id}", email=f"{user_id}@x.io", role=role)


def test_task_operations_store_progress():
    project = _project()

    parent = project.add_task({"name": "Structure"})
    child = project.add_task({"name": "Beams", "parent_id": parent["id"]})
    project.add_task({"name": "Permit", "status": "completed"})
    assert project.progress == 50

    project.update_task(child["id"], {"status": "completed"})
    assert project.progress == 100
    assert project.tasks[0]["status"] == "completed"

    project.delete_task(parent["id"])
    assert project.progress == 100
    assert [task["name"] for task in project.tasks] == ["Permit"]


def test_unknown_task_ids_leave_project_untouched():
    project = _project()
    project.add_task({"name": "Survey", "status": "in-progress"})
    tasks_before = [dict(task) for task in project.tasks]
    progress_before = project.progress

    assert project.update_task("missing", {"status": "completed"}) is None
    assert project.delete_task("missing") == []

    assert project.tasks == tasks_before
    assert project.progress == progress_before


def test_reorder_tasks_returns_sorted_list():
    project = _project()
    first = project.add_task({"name": "First"})
    second = project.add_task({"name": "Second"})

    tasks = project.reorder_tasks([{"id": first["id"], "position": 5}, {"id": second["id"], "position": 1}])

    assert [task["name"] for task in tasks] == ["Second", "First"]
    assert [task["name"] for task in project.tasks] == ["Second", "First"]


def test_stored_tasks_are_not_shared_with_callers():
    original = [{"id": "a", "name": "Existing", "status": "completed", "parent_id": None, "position": 0}]
    project = _project(tasks=original)

    project.update_task("a", {"status": "not-started"})

    assert original[0]["status"] == "completed"
    assert project.calculate_progress() == 0


def test_is_overdue_and_days_remaining():
    project = _project(end_date=date(2026, 3, 1))

    assert project.is_overdue(date(2026, 3, 2))
    assert not project.is_overdue(date(2026, 3, 1))
    project.status = "completed"
    assert not project.is_overdue(date(2026, 3, 2))

    assert project.days_remaining(datetime(2026, 2, 27, 12, 0)) == 2
    assert project.days_remaining(datetime(2026, 3, 1, 0, 0)) == 0


def test_can_user_access_rules():
    project = _project(owner_id=1, team_members=[1, 3, 4], client_user_id=5)

    assert project.can_user_access(_user(2, "admin"), "projects.delete")
    assert project.can_user_access(_user(1, "technician"), "projects.delete")
    assert project.can_user_access(_user(3, "team_lead"), "projects.update")
    assert not project.can_user_access(_user(4, "technician"), "projects.update")
    assert project.can_user_access(_user(4, "technician"), "projects.read")
    assert project.can_user_access(_user(5, "client"), "projects.read")
    assert not project.can_user_access(_user(5, "client"), "projects.update")
    assert not project.can_user_access(_user(6, "project_manager"), "projects.read")
    assert not project.can_user_access(None, "projects.read")


def test_role_permission_helpers():
    role = Role(name="custom", display_name="Custom", permissions=["projects.read"])

    role.add_permission("projects.update")
    role.add_permission("projects.update")
    assert role.permissions == ["projects.read", "projects.update"]

    role.remove_permission("projects.read")
    assert role.has_permission("projects.update")
    assert not role.has_permission("projects.read")
