"""Append-only record of actions performed by users."""
from __future__ import annotations
from datetime import datetime
from enum import StrEnum

from database import db


class AuditAction(StrEnum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    REORDER = "REORDER"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    REGISTER = "REGISTER"
    EXPORT = "EXPORT"
    IMPORT = "IMPORT"


ACTION_LABELS = {
    AuditAction.CREATE: "created",
    AuditAction.UPDATE: "updated",
    AuditAction.DELETE: "deleted",
    AuditAction.REORDER: "reordered",
    AuditAction.LOGIN: "logged in",
    AuditAction.LOGOUT: "logged out",
    AuditAction.PASSWORD_CHANGE: "changed the password of",
    AuditAction.REGISTER: "registered as",
    AuditAction.EXPORT: "exported",
    AuditAction.IMPORT: "imported",
}


class AuditLog(db.Model):
    """A single audited action. Rows are never updated."""

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)
    action = db.Column(db.String(32), nullable=False, index=True)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.String(64), nullable=True)
    changes = db.Column(db.JSON, nullable=False, default=dict)
    request_metadata = db.Column(db.JSON, nullable=False, default=dict)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    user = db.relationship("User", back_populates="audit_logs")

    __table_args__ = (
        db.Index("ix_audit_log_entity", "entity_type", "entity_id"),
    )

    @property
    def formatted_action(self) -> str:
        """Return a past-tense label for the action."""

        try:
            return ACTION_LABELS[AuditAction(self.action)]
        except ValueError:
            return self.action.lower()

    @property
    def summary(self) -> str:
        actor = self.user.name if self.user and self.user.name else "Unknown user"
        return f"{actor} {self.formatted_action} {self.entity_type} {self.entity_id or ''}".rstrip()

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "changes": self.changes or {},
            "metadata": self.request_metadata or {},
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "summary": self.summary,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<AuditLog {self.action} {self.entity_type}={self.entity_id}>"
