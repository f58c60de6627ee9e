"""User account management helpers."""
from __future__ import annotations

from typing import Any

from database import db
from models.user import User

DEFAULT_DEPARTMENT = "AV Team"

# Fields an administrator may change through the update endpoint.
UPDATABLE_USER_FIELDS = ("username", "name", "email", "department", "role_id", "is_active")


def list_users() -> list[User]:
    return User.query.order_by(User.created_at.desc(), User.id.desc()).all()


def get_user(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def create_user(data: dict[str, Any]) -> User:
    """Create a user from validated form values. The caller commits."""

    user = User(
        username=data["username"],
        name=data["name"],
        email=data["email"],
        department=data.get("department") or DEFAULT_DEPARTMENT,
        role_id=data["role_id"],
    )
    user.set_password(data["password"])
    db.session.add(user)
    return user


def update_user(user: User, data: dict[str, Any]) -> dict[str, Any]:
    """Apply ``data`` to the user and return the previous values.

    ``None`` only clears the department; other fields keep their value.
    """

    before = {}
    for key in UPDATABLE_USER_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if value is None and key != "department":
            continue
        before[key] = getattr(user, key)
        setattr(user, key, value)
    return before


def deactivate_user(user: User) -> None:
    user.is_active = False


def can_edit_preferences(actor: User | None, user: User) -> bool:
    """Users edit their own preferences; admins edit anyone's."""

    if actor is None:
        return False
    return actor.id == user.id or actor.is_admin
