"""Helpers for writing audit log entries."""
from __future__ import annotations

from typing import Any

from flask import has_request_context, request

from database import db
from models.audit_log import AuditAction, AuditLog
from models.user import User


def _request_details() -> tuple[dict[str, Any], str | None, str | None]:
    if not has_request_context():
        return {}, None, None
    metadata = {"method": request.method, "path": request.path}
    return metadata, request.remote_addr, request.headers.get("User-Agent")


def record_audit(
    user: User | None,
    action: AuditAction | str,
    entity_type: str,
    entity_id: Any = None,
    changes: dict[str, Any] | None = None,
) -> AuditLog:
    """Add an audit entry to the session. The caller commits."""

    metadata, ip_address, user_agent = _request_details()
    entry = AuditLog(
        user_id=user.id if user is not None else None,
        action=str(action),
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        changes=changes or {},
        request_metadata=metadata,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.session.add(entry)
    return entry


def entity_history(entity_type: str, entity_id: Any, limit: int = 50) -> list[AuditLog]:
    """Return the most recent entries for one entity."""

    return (
        AuditLog.query.filter_by(entity_type=entity_type, entity_id=str(entity_id))
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )
