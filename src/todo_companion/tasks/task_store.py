# src/todo_companion/tasks/task_store.py

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Literal

from ..core.errors import EmptyTitleError, PersistenceWriteFailed
from ..core.ports import BlobStore, StoreListener
from .task_models import (
    Category,
    Conversation,
    ConversationMessage,
    Priority,
    Task,
    new_id,
    normalize_tags,
    utc_now,
)

logger = logging.getLogger(__name__)

TASKS_KEY = "tasks"
CONVERSATIONS_KEY = "conversations"

ChangeKind = Literal["tasks", "conversations", "all"]


@dataclass(slots=True, frozen=True)
class StoreChange:
    """
    Notification delivered to listeners after every mutation.

    persist_error is set when the write-through to durable storage failed;
    the in-memory state is still authoritative for the session.
    """

    kind: ChangeKind
    action: str
    ids: tuple[str, ...] = ()
    persist_error: PersistenceWriteFailed | None = None


def _copy_task(task: Task) -> Task:
    return replace(task, tags=list(task.tags))


def _copy_conversation(conv: Conversation) -> Conversation:
    return replace(
        conv,
        messages=list(conv.messages),
        generated_task_ids=list(conv.generated_task_ids),
    )


class TaskStore:
    """
    Single source of truth for tasks and conversations.

    - collections live in memory; every mutation is written through to the
      blob store as a full JSON array of the affected collection
    - "not found" on update/toggle/delete/append is a silent no-op
    - persistence failures are logged and recorded, never raised
    - listeners registered via subscribe() are notified after each mutation

    Records handed out are copies; mutate them and pass them back through
    update_task().
    """

    def __init__(self, blob_store: BlobStore, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._blobs = blob_store
        self._clock = clock
        self._lock = threading.RLock()
        self._listeners: list[StoreListener] = []

        self.last_persist_error: PersistenceWriteFailed | None = None

        self._tasks: list[Task] = self._load(TASKS_KEY, Task.from_dict)
        self._conversations: list[Conversation] = self._load(
            CONVERSATIONS_KEY, Conversation.from_dict
        )
        logger.info(
            "TaskStore ready tasks=%d conversations=%d",
            len(self._tasks),
            len(self._conversations),
        )

    # ---- persistence ----

    def _load(self, key: str, factory: Callable[[dict[str, Any]], Any]) -> list[Any]:
        try:
            raw = self._blobs.get(key)
        except Exception:
            logger.exception("Failed to read %r from blob store; starting empty.", key)
            return []
        if not raw:
            return []

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.exception("Stored %r blob is not valid JSON; starting empty.", key)
            return []
        if not isinstance(data, list):
            logger.warning("Stored %r blob is not a JSON array; starting empty.", key)
            return []

        out: list[Any] = []
        for item in data:
            if not isinstance(item, dict):
                continue
            try:
                out.append(factory(item))
            except ValueError as e:
                logger.warning("Skipping bad %s record: %s", key, e)
        return out

    def _persist(self, key: str, items: Iterable[Task | Conversation]) -> PersistenceWriteFailed | None:
        try:
            payload = json.dumps([i.to_dict() for i in items], ensure_ascii=False).encode("utf-8")
            self._blobs.put(key, payload)
        except Exception as e:
            err = PersistenceWriteFailed(key, str(e) or e.__class__.__name__)
            logger.warning("%s (in-memory state kept)", err)
            self.last_persist_error = err
            return err
        self.last_persist_error = None
        return None

    def _save_tasks(self) -> PersistenceWriteFailed | None:
        return self._persist(TASKS_KEY, self._tasks)

    def _save_conversations(self) -> PersistenceWriteFailed | None:
        return self._persist(CONVERSATIONS_KEY, self._conversations)

    # ---- observers ----

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: StoreChange) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(change)
            except Exception:
                logger.exception("Store listener failed for change=%s", change.action)

    # ---- lookups ----

    @property
    def tasks(self) -> list[Task]:
        with self._lock:
            return [_copy_task(t) for t in self._tasks]

    @property
    def conversations(self) -> list[Conversation]:
        with self._lock:
            return [_copy_conversation(c) for c in self._conversations]

    def count_tasks(self) -> int:
        with self._lock:
            return len(self._tasks)

    def get_task(self, task_id: str) -> Task | None:
        with self._lock:
            idx = self._task_index(task_id)
            return _copy_task(self._tasks[idx]) if idx is not None else None

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        with self._lock:
            idx = self._conversation_index(conversation_id)
            return _copy_conversation(self._conversations[idx]) if idx is not None else None

    def _task_index(self, task_id: str) -> int | None:
        for i, t in enumerate(self._tasks):
            if t.id == task_id:
                return i
        return None

    def _conversation_index(self, conversation_id: str) -> int | None:
        for i, c in enumerate(self._conversations):
            if c.id == conversation_id:
                return i
        return None

    # ---- tasks ----

    def add_task(
        self,
        title: str,
        description: str = "",
        priority: Priority = Priority.MEDIUM,
        category: Category = Category.OTHER,
        due_date: datetime | None = None,
        tags: Iterable[str] = (),
        ai_generated: bool = False,
        conversation_id: str | None = None,
    ) -> Task:
        title = (title or "").strip()
        if not title:
            raise EmptyTitleError()

        with self._lock:
            task = Task(
                id=new_id(),
                title=title,
                created_at=self._clock(),
                description=(description or "").strip(),
                priority=priority,
                category=category,
                due_date=due_date,
                tags=normalize_tags(tags),
                ai_generated=ai_generated,
                conversation_id=conversation_id,
            )
            self._tasks.append(task)
            err = self._save_tasks()

        logger.debug(
            "Task added id=%s priority=%s category=%s due=%s ai=%s",
            task.id,
            task.priority,
            task.category,
            task.due_date,
            ai_generated,
        )
        self._notify(StoreChange("tasks", "add", (task.id,), err))
        return _copy_task(task)

    def update_task(self, task: Task) -> None:
        with self._lock:
            idx = self._task_index(task.id)
            if idx is None:
                logger.debug("update_task: no task id=%s (no-op)", task.id)
                return

            current = self._tasks[idx]
            completed_at = task.completed_at
            if task.completed and completed_at is None:
                completed_at = current.completed_at or self._clock()
            if not task.completed:
                completed_at = None

            self._tasks[idx] = replace(
                task,
                created_at=current.created_at,
                completed_at=completed_at,
                tags=normalize_tags(task.tags),
            )
            err = self._save_tasks()

        self._notify(StoreChange("tasks", "update", (task.id,), err))

    def toggle_task(self, task: Task) -> Task | None:
        """Flip completion; returns the updated record or None if unknown."""
        with self._lock:
            idx = self._task_index(task.id)
            if idx is None:
                logger.debug("toggle_task: no task id=%s (no-op)", task.id)
                return None

            current = self._tasks[idx]
            if current.completed:
                current.completed = False
                current.completed_at = None
            else:
                current.completed = True
                current.completed_at = self._clock()
            err = self._save_tasks()
            out = _copy_task(current)

        self._notify(StoreChange("tasks", "toggle", (task.id,), err))
        return out

    def delete_task(self, task_id: str) -> None:
        with self._lock:
            idx = self._task_index(task_id)
            if idx is None:
                logger.debug("delete_task: no task id=%s (no-op)", task_id)
                return
            del self._tasks[idx]
            err = self._save_tasks()

        self._notify(StoreChange("tasks", "delete", (task_id,), err))

    # ---- conversations ----

    def add_conversation(self) -> Conversation:
        with self._lock:
            conv = Conversation(id=new_id(), created_at=self._clock())
            self._conversations.append(conv)
            err = self._save_conversations()

        self._notify(StoreChange("conversations", "add", (conv.id,), err))
        return _copy_conversation(conv)

    def add_message(self, conversation_id: str, content: str, is_user: bool) -> None:
        with self._lock:
            idx = self._conversation_index(conversation_id)
            if idx is None:
                logger.debug("add_message: no conversation id=%s (no-op)", conversation_id)
                return
            msg = ConversationMessage(
                id=new_id(), content=content, is_user=is_user, timestamp=self._clock()
            )
            self._conversations[idx].messages.append(msg)
            err = self._save_conversations()

        self._notify(StoreChange("conversations", "message", (conversation_id,), err))

    def update_conversation_summary(self, conversation_id: str, summary: str) -> None:
        with self._lock:
            idx = self._conversation_index(conversation_id)
            if idx is None:
                logger.debug("update_conversation_summary: no conversation id=%s", conversation_id)
                return
            self._conversations[idx].summary = summary
            err = self._save_conversations()

        self._notify(StoreChange("conversations", "summary", (conversation_id,), err))

    def add_generated_task(self, conversation_id: str, task_id: str) -> None:
        with self._lock:
            idx = self._conversation_index(conversation_id)
            if idx is None:
                logger.debug("add_generated_task: no conversation id=%s", conversation_id)
                return
            self._conversations[idx].generated_task_ids.append(task_id)
            err = self._save_conversations()

        self._notify(StoreChange("conversations", "generated", (conversation_id, task_id), err))

    # ---- bulk ----

    def clear_all(self) -> None:
        """Wipe both collections and remove the durable blobs entirely."""
        err: PersistenceWriteFailed | None = None
        with self._lock:
            self._tasks.clear()
            self._conversations.clear()
            for key in (TASKS_KEY, CONVERSATIONS_KEY):
                try:
                    self._blobs.delete(key)
                except Exception as e:
                    err = PersistenceWriteFailed(key, str(e) or e.__class__.__name__)
                    logger.warning("%s (in-memory state cleared)", err)
            self.last_persist_error = err

        logger.info("TaskStore cleared.")
        self._notify(StoreChange("all", "clear", (), err))

    def export_snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "exported_at": self._clock().isoformat(),
                "tasks": [t.to_dict() for t in self._tasks],
                "conversations": [c.to_dict() for c in self._conversations],
            }
