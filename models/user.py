""" Represents a user in the system.

Users have limited access to the system by default.
Users can login to the system to get acceess and manage Projects.
A User has one Role which defines its permissions (see Role)
An admin User has every permission
A User can own multiple Projects (see Project)
A User can be a team member of Projects he does not own
A User with the client role can only read the Projects he is the client of

"""
from datetime import datetime

from werkzeug.security import generate_password_hash, check_password_hash
from database import db
from models.role import Role


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.Text)
    name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    department = db.Column(db.String(80), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_login = db.Column(db.DateTime, nullable=True)
    preferences = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    role_id = db.Column(db.Integer, db.ForeignKey("role.id"), nullable=True)

    role = db.relationship("Role", back_populates="users", lazy="joined")
    owned_projects = db.relationship(
        "Project", back_populates="owner", lazy=True, foreign_keys="Project.owner_id"
    )
    audit_logs = db.relationship("AuditLog", back_populates="user", lazy="dynamic")

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def record_login(self):
        self.last_login = datetime.utcnow()

    def update_preferences(self, values):
        # Reassign so the JSON column is flagged as changed.
        self.preferences = {**(self.preferences or {}), **values}
        return self.preferences

    @property
    def role_name(self) -> str | None:
        return self.role.name if self.role else None

    @property
    def is_admin(self) -> bool:
        return self.role_name == Role.ADMIN

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "email": self.email,
            "department": self.department,
            "role": self.role_name,
            "is_active": self.is_active,
            "last_login": self.last_login.isoformat() if self.last_login else None,
            "preferences": dict(self.preferences or {}),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}>"
