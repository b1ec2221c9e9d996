# src/todo_companion/tasks/task_api.py

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from .task_models import Category, Priority, Task, normalize_tags
from .task_store import TaskStore

logger = logging.getLogger(__name__)

DUE_DATE_FORMAT = "%Y-%m-%d"


def parse_due_date(raw: Any) -> datetime | None:
    """
    Parse a YYYY-MM-DD string into UTC midnight.
    Anything else (None, wrong format, impossible date) means "no due date".
    """
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return datetime.strptime(raw.strip(), DUE_DATE_FORMAT).replace(tzinfo=UTC)
    except ValueError:
        return None


def format_due_date(ts: datetime | None) -> str:
    return ts.strftime(DUE_DATE_FORMAT) if ts is not None else "-"


def parse_tags(raw: str | None) -> list[str]:
    """Comma-separated user input -> normalized tag list."""
    if not raw:
        return []
    return normalize_tags(raw.split(","))


def create_task_from_input(
    store: TaskStore,
    title: str,
    *,
    description: str = "",
    priority: str | None = None,
    category: str | None = None,
    due: str | None = None,
    tags: str | None = None,
) -> Task | None:
    """
    Convenience helper for front-ends: trims input and skips blank titles
    instead of raising. Labels go through the lenient enum parsers.
    """
    title = (title or "").strip()
    if not title:
        return None

    return store.add_task(
        title,
        description=(description or "").strip(),
        priority=Priority.parse(priority) if priority else Priority.MEDIUM,
        category=Category.parse(category) if category else Category.OTHER,
        due_date=parse_due_date(due),
        tags=parse_tags(tags),
    )


def edit_task(store: TaskStore, task_id: str, fields: dict[str, str]) -> Task | None:
    """
    Apply user edits (title, description, priority, category, due, tags).

    Returns the updated record, or None if the task is unknown or the new
    title would be blank.
    """
    task = store.get_task(task_id)
    if task is None:
        return None

    changes: dict[str, Any] = {}
    if "title" in fields:
        title = fields["title"].strip()
        if not title:
            return None
        changes["title"] = title
    if "description" in fields:
        changes["description"] = fields["description"].strip()
    if "priority" in fields:
        changes["priority"] = Priority.parse(fields["priority"])
    if "category" in fields:
        changes["category"] = Category.parse(fields["category"])
    if "due" in fields:
        changes["due_date"] = parse_due_date(fields["due"])
    if "tags" in fields:
        changes["tags"] = parse_tags(fields["tags"])

    if not changes:
        return task

    store.update_task(replace(task, **changes))
    logger.debug("Task edited id=%s fields=%s", task_id, sorted(changes))
    return store.get_task(task_id)


def find_task_by_prefix(store: TaskStore, prefix: str) -> Task | None:
    """Resolve a (short) id prefix to a task; ambiguous prefixes resolve to None."""
    prefix = (prefix or "").strip().lower()
    if not prefix:
        return None
    matches = [t for t in store.tasks if t.id.startswith(prefix)]
    return matches[0] if len(matches) == 1 else None
