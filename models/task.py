"""A task represents a unit of work inside a Project.

Tasks are not stored in their own table. A Project keeps them as an ordered
list of records in its ``tasks`` JSON column.
A Task can contain multiple Tasks (sub-tasks) through ``parent_id``
A sub-task cannot contain sub-tasks of its own
A Task holding sub-tasks takes its status from them
A Task is deleted together with its sub-tasks

"""
from __future__ import annotations
from enum import StrEnum
from typing import Optional

import bleach
from markdown import markdown as render_markdown
from markupsafe import Markup


class TaskStatus(StrEnum):
    """Lifecycle states for tasks."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"


class TaskPriority(StrEnum):
    """Priority levels shared by tasks and projects."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


TASK_STATUS_CHOICES = [(status.value, status.value) for status in TaskStatus]
TASK_PRIORITY_CHOICES = [(priority.value, priority.value) for priority in TaskPriority]


def render_task_description_html(description: Optional[str]) -> Markup:
    """Render task description Markdown into sanitized HTML."""
    if not description:
        return Markup("")
    html = render_markdown(
        description,
        extensions=["extra", "sane_lists"],
        output_format="html5",
        tab_length=2,
    )
    allowed_tags = list(bleach.sanitizer.ALLOWED_TAGS) + [
        "p",
        "pre",
        "code",
        "ul",
        "ol",
        "li",
        "table",
        "thead",
        "tbody",
        "tr",
        "th",
        "td",
        "strong",
        "em",
        "blockquote",
        "br",
        "h1",
        "h2",
        "h3",
        "h4",
        "hr",
    ]
    allowed_attributes = {
        **bleach.sanitizer.ALLOWED_ATTRIBUTES,
        "a": ["href", "title", "target", "rel"],
        "code": ["class"],
    }
    sanitized_html = bleach.clean(html, tags=allowed_tags, attributes=allowed_attributes)
    return Markup(sanitized_html)
