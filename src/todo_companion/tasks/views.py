# src/todo_companion/tasks/views.py

"""
Derived views over a task snapshot.

Everything here is a pure function of its inputs: no store access, no caching.
Callers pass `store.tasks` and recompute on every render.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from .task_models import Category, Priority, Task, as_utc, utc_now


@dataclass(slots=True, frozen=True)
class TaskFilter:
    category: Category | None = None
    priority: Priority | None = None
    show_completed: bool = True
    query: str = ""


@dataclass(slots=True, frozen=True)
class CompletionStats:
    total: int
    completed: int
    percentage: float  # fraction in [0, 1]


def _matches_query(task: Task, needle: str) -> bool:
    if needle in task.title.casefold():
        return True
    if needle in task.description.casefold():
        return True
    return any(needle in tag.casefold() for tag in task.tags)


def _sort_key(task: Task) -> tuple[int, int, float, float]:
    # priority desc -> dated before undated -> due asc -> created desc
    due = task.due_date.timestamp() if task.due_date is not None else 0.0
    return (
        -task.priority.rank,
        0 if task.due_date is not None else 1,
        due,
        -task.created_at.timestamp(),
    )


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    return sorted(tasks, key=_sort_key)


def filtered_tasks(tasks: Iterable[Task], task_filter: TaskFilter | None = None) -> list[Task]:
    f = task_filter or TaskFilter()
    out: Iterable[Task] = tasks

    if not f.show_completed:
        out = [t for t in out if not t.completed]
    if f.category is not None:
        out = [t for t in out if t.category == f.category]
    if f.priority is not None:
        out = [t for t in out if t.priority == f.priority]

    needle = f.query.strip().casefold()
    if needle:
        out = [t for t in out if _matches_query(t, needle)]

    return sort_tasks(out)


def overdue_tasks(tasks: Iterable[Task], now: datetime | None = None) -> list[Task]:
    now = as_utc(now) or utc_now()
    return [
        t for t in tasks if not t.completed and t.due_date is not None and t.due_date < now
    ]


def tasks_by_category(tasks: Iterable[Task]) -> dict[Category, int]:
    counts = dict.fromkeys(Category, 0)
    for t in tasks:
        counts[t.category] += 1
    return counts


def tasks_by_priority(tasks: Iterable[Task]) -> dict[Priority, int]:
    counts = dict.fromkeys(Priority, 0)
    for t in tasks:
        counts[t.priority] += 1
    return counts


def completion_stats(tasks: Iterable[Task]) -> CompletionStats:
    items = list(tasks)
    total = len(items)
    completed = sum(1 for t in items if t.completed)
    return CompletionStats(
        total=total,
        completed=completed,
        percentage=completed / total if total else 0.0,
    )


def recent_ai_tasks(tasks: Sequence[Task], limit: int = 5) -> list[Task]:
    """Last `limit` AI-generated tasks, in insertion order."""
    if limit <= 0:
        return []
    ai = [t for t in tasks if t.ai_generated]
    return ai[-limit:]
