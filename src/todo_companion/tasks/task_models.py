# src/todo_companion/tasks/task_models.py

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return uuid.uuid4().hex


class Priority(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def parse(cls, raw: Any) -> Priority:
        """
        Total string -> Priority mapping.

        Case-insensitive; anything unknown (None, non-strings, typos) is MEDIUM.
        """
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            return cls.MEDIUM
        key = raw.strip().lower()
        for p in cls:
            if p.value.lower() == key:
                return p
        return cls.MEDIUM


_PRIORITY_RANK = {
    Priority.LOW: 0,
    Priority.MEDIUM: 1,
    Priority.HIGH: 2,
    Priority.URGENT: 3,
}


class Category(StrEnum):
    PERSONAL = "Personal"
    WORK = "Work"
    HEALTH = "Health"
    LEARNING = "Learning"
    FINANCE = "Finance"
    OTHER = "Other"

    @classmethod
    def parse(cls, raw: Any) -> Category:
        """Total string -> Category mapping; unknown labels become OTHER."""
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            return cls.OTHER
        key = raw.strip().lower()
        for c in cls:
            if c.value.lower() == key:
                return c
        return cls.OTHER


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Strip whitespace, drop empties and duplicates, keep first-seen order."""
    out: list[str] = []
    seen: set[str] = set()
    for t in tags or ():
        s = str(t).strip()
        if not s or s in seen:
            continue
        seen.add(s)
        out.append(s)
    return out


def _ts_to_str(ts: datetime | None) -> str | None:
    return ts.isoformat() if ts is not None else None


def as_utc(ts: datetime | None) -> datetime | None:
    """Naive datetimes are taken to be UTC; aware ones pass through unchanged."""
    if ts is None or ts.tzinfo is not None:
        return ts
    return ts.replace(tzinfo=UTC)


def _str_to_ts(raw: Any) -> datetime | None:
    if not raw or not isinstance(raw, str):
        return None
    try:
        return as_utc(datetime.fromisoformat(raw))
    except ValueError:
        return None


@dataclass(slots=True)
class Task:
    id: str
    title: str
    created_at: datetime

    description: str = ""
    completed: bool = False
    priority: Priority = Priority.MEDIUM
    category: Category = Category.OTHER

    due_date: datetime | None = None
    completed_at: datetime | None = None

    tags: list[str] = field(default_factory=list)
    ai_generated: bool = False
    conversation_id: str | None = None

    def __post_init__(self) -> None:
        self.tags = normalize_tags(self.tags)
        self.created_at = as_utc(self.created_at)
        self.due_date = as_utc(self.due_date)
        self.completed_at = as_utc(self.completed_at)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "priority": self.priority.value,
            "category": self.category.value,
            "created_at": _ts_to_str(self.created_at),
            "due_date": _ts_to_str(self.due_date),
            "completed_at": _ts_to_str(self.completed_at),
            "tags": list(self.tags),
            "ai_generated": self.ai_generated,
            "conversation_id": self.conversation_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        task_id = data.get("id")
        if not task_id:
            raise ValueError("task record without id")

        completed = bool(data.get("completed", False))
        completed_at = _str_to_ts(data.get("completed_at"))
        if completed and completed_at is None:
            completed_at = utc_now()
        if not completed:
            completed_at = None

        tags = data.get("tags")
        return cls(
            id=str(task_id),
            title=str(data.get("title") or ""),
            created_at=_str_to_ts(data.get("created_at")) or utc_now(),
            description=str(data.get("description") or ""),
            completed=completed,
            priority=Priority.parse(data.get("priority")),
            category=Category.parse(data.get("category")),
            due_date=_str_to_ts(data.get("due_date")),
            completed_at=completed_at,
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            ai_generated=bool(data.get("ai_generated", False)),
            conversation_id=data.get("conversation_id") or None,
        )


@dataclass(slots=True, frozen=True)
class ConversationMessage:
    id: str
    content: str
    is_user: bool
    timestamp: datetime

    @property
    def speaker(self) -> str:
        return "User" if self.is_user else "AI"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "is_user": self.is_user,
            "timestamp": _ts_to_str(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationMessage:
        return cls(
            id=str(data.get("id") or new_id()),
            content=str(data.get("content") or ""),
            is_user=bool(data.get("is_user", False)),
            timestamp=_str_to_ts(data.get("timestamp")) or utc_now(),
        )


@dataclass(slots=True)
class Conversation:
    id: str
    created_at: datetime
    messages: list[ConversationMessage] = field(default_factory=list)
    summary: str | None = None
    generated_task_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": _ts_to_str(self.created_at),
            "messages": [m.to_dict() for m in self.messages],
            "summary": self.summary,
            "generated_task_ids": list(self.generated_task_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Conversation:
        conv_id = data.get("id")
        if not conv_id:
            raise ValueError("conversation record without id")

        raw_msgs = data.get("messages")
        messages = [
            ConversationMessage.from_dict(m)
            for m in (raw_msgs if isinstance(raw_msgs, list) else [])
            if isinstance(m, dict)
        ]
        raw_ids = data.get("generated_task_ids")
        summary = data.get("summary")
        return cls(
            id=str(conv_id),
            created_at=_str_to_ts(data.get("created_at")) or utc_now(),
            messages=messages,
            summary=summary if isinstance(summary, str) else None,
            generated_task_ids=[str(i) for i in raw_ids] if isinstance(raw_ids, list) else [],
        )
