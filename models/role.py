"""A role groups the permissions granted to Users.

Every User has exactly one Role
System roles are created on start-up and cannot be deleted
Permissions are plain strings such as ``projects.update``

"""
from __future__ import annotations

from database import db


DEFAULT_PERMISSIONS = {
    "admin": [
        "users.create", "users.read", "users.update", "users.delete",
        "projects.create", "projects.read", "projects.update", "projects.delete",
        "reports.executive", "reports.portfolio", "reports.resource", "reports.risk",
        "settings.manage", "roles.manage", "audit.view",
    ],
    "project_manager": [
        "projects.create", "projects.read", "projects.update", "projects.delete",
        "reports.executive", "reports.portfolio", "reports.resource", "reports.risk",
        "users.read", "audit.view",
    ],
    "team_lead": [
        "projects.read", "projects.update",
        "reports.portfolio", "reports.risk", "reports.project",
        "users.read",
    ],
    "technician": [
        "projects.read", "projects.update.tasks",
        "reports.project",
    ],
    "client": [
        "projects.read.own",
        "reports.project.own",
    ],
}

DEFAULT_ROLES = [
    {
        "name": "admin",
        "display_name": "Administrator",
        "description": "Full system access with all permissions",
        "priority": 100,
    },
    {
        "name": "project_manager",
        "display_name": "Project Manager",
        "description": "Can manage all projects and view all reports",
        "priority": 80,
    },
    {
        "name": "team_lead",
        "display_name": "Team Lead",
        "description": "Can edit assigned projects and view team reports",
        "priority": 60,
    },
    {
        "name": "technician",
        "display_name": "Technician",
        "description": "Can update task status and add notes",
        "priority": 40,
    },
    {
        "name": "client",
        "display_name": "Client",
        "description": "View-only access to specific projects",
        "priority": 20,
    },
]


class Role(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), unique=True, nullable=False)
    display_name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    permissions = db.Column(db.JSON, nullable=False, default=list)
    # Higher number = higher priority
    priority = db.Column(db.Integer, nullable=False, default=0)
    is_system = db.Column(db.Boolean, nullable=False, default=False)

    users = db.relationship("User", back_populates="role", lazy=True)

    ADMIN = "admin"
    PROJECT_MANAGER = "project_manager"
    TEAM_LEAD = "team_lead"
    TECHNICIAN = "technician"
    CLIENT = "client"

    def has_permission(self, permission: str) -> bool:
        return permission in (self.permissions or [])

    def add_permission(self, permission: str) -> None:
        if not self.has_permission(permission):
            # Reassign so the JSON column is flagged as changed.
            self.permissions = [*(self.permissions or []), permission]

    def remove_permission(self, permission: str) -> None:
        self.permissions = [item for item in (self.permissions or []) if item != permission]

    @classmethod
    def create_default_roles(cls) -> list["Role"]:
        """Create the system roles that do not exist yet."""

        roles = []
        for role_data in DEFAULT_ROLES:
            role = cls.query.filter_by(name=role_data["name"]).one_or_none()
            if role is None:
                role = cls(
                    permissions=list(DEFAULT_PERMISSIONS[role_data["name"]]),
                    is_system=True,
                    **role_data,
                )
                db.session.add(role)
            roles.append(role)
        return roles

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "permissions": list(self.permissions or []),
            "priority": self.priority,
            "is_system": self.is_system,
        }

    def __repr__(self):
        return f"<Role {self.name}>"
