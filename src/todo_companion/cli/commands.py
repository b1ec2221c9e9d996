# src/todo_companion/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
import shlex
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import cast

from ..core.chat import ensure_conversation
from ..core.errors import TodoError
from ..core.state import AppState
from ..llm.client import friendly_error_message
from ..tasks.task_api import (
    create_task_from_input,
    edit_task,
    find_task_by_prefix,
    format_due_date,
)
from ..tasks.task_models import Category, Priority, Task
from ..tasks.views import (
    TaskFilter,
    completion_stats,
    filtered_tasks,
    overdue_tasks,
    recent_ai_tasks,
    tasks_by_category,
    tasks_by_priority,
)
from .bootstrap import export_store

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

FIELD_ALIASES = {
    "p": "priority",
    "priority": "priority",
    "c": "category",
    "cat": "category",
    "category": "category",
    "d": "description",
    "desc": "description",
    "description": "description",
    "due": "due",
    "tags": "tags",
    "title": "title",
    "q": "query",
    "query": "query",
}


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Handlers may be plain functions or coroutines.
        """
        if not line.startswith("/"):
            return None

        parts = split_args(line[1:])
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            result = cast(CommandHandler3, handler)(state, args, emit)
        else:
            result = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(result):
            result = await result
        return cast(str, result)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("Anything else is sent to the AI assistant as a chat message.")
        return "\n".join(lines)


registry = CommandRegistry()


def split_args(text: str) -> list[str]:
    """shlex-style split (quotes group words); falls back to whitespace on bad quoting."""
    try:
        return shlex.split(text)
    except ValueError:
        return text.split()


def parse_fields(args: list[str]) -> tuple[list[str], dict[str, str]]:
    """Separate `key=value` tokens (known keys only) from free words."""
    words: list[str] = []
    fields: dict[str, str] = {}
    for a in args:
        key, sep, value = a.partition("=")
        canon = FIELD_ALIASES.get(key.lower()) if sep else None
        if canon is None:
            words.append(a)
            continue
        fields[canon] = value
    return words, fields


def format_task(task: Task) -> str:
    mark = "x" if task.completed else " "
    parts = [
        f"[{mark}] {task.id[:8]}",
        f"{task.priority.value:<6}",
        f"{task.category.value:<8}",
        f"due {format_due_date(task.due_date)}",
        task.title,
    ]
    if task.tags:
        parts.append(" ".join(f"#{t}" for t in task.tags))
    if task.ai_generated:
        parts.append("(AI)")
    return "  ".join(parts)


def _format_filter(f: TaskFilter) -> str:
    bits = ["all" if f.show_completed else "open"]
    if f.category is not None:
        bits.append(f"category={f.category.value}")
    if f.priority is not None:
        bits.append(f"priority={f.priority.value}")
    if f.query:
        bits.append(f"q={f.query!r}")
    return ", ".join(bits)


def _resolve_task(state: AppState, args: list[str]) -> Task | None:
    if not args:
        return None
    return find_task_by_prefix(state.store, args[0])


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    s = state.settings
    backend = str(getattr(s, "llm_backend", "?"))
    connected = await state.llm.check_connection()
    pending = "yes" if state.pipeline.is_running else "no"
    return (
        "Status:\n"
        f"  Generation backend: {backend} ({'connected' if connected else 'not connected'})\n"
        f"  Tasks: {state.store.count_tasks()}\n"
        f"  Conversations: {len(state.store.conversations)}\n"
        f"  Task generation running: {pending}\n"
        f"  Filter: {_format_filter(state.task_filter)}"
    )


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add Buy milk                        -> Medium / Other
    /add Pay rent p=high c=finance due=2025-01-01 tags=home,bills d="before noon"
    """
    words, fields = parse_fields(args)
    title = " ".join(words)
    try:
        task = create_task_from_input(
            state.store,
            title,
            description=fields.get("description", ""),
            priority=fields.get("priority"),
            category=fields.get("category"),
            due=fields.get("due"),
            tags=fields.get("tags"),
        )
    except TodoError as e:
        return friendly_error_message(e)

    if task is None:
        return "Usage: /add <title> [p=<priority>] [c=<category>] [due=YYYY-MM-DD] [tags=a,b] [d=<text>]"
    return f"Added: {format_task(task)}"


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list                 -> list with the current filter
    /list open|all        -> hide/show completed tasks
    /list c=work p=high   -> category/priority filter
    /list q=milk          -> free-text search
    /list reset           -> clear filters
    """
    words, fields = parse_fields(args)
    f = state.task_filter

    for w in (w.lower() for w in words):
        if w == "reset":
            f = TaskFilter(show_completed=bool(getattr(state.settings, "show_completed", True)))
        elif w == "open":
            f = replace(f, show_completed=False)
        elif w == "all":
            f = replace(f, show_completed=True)

    if "category" in fields:
        raw = fields["category"].strip()
        f = replace(f, category=Category.parse(raw) if raw and raw.lower() != "any" else None)
    if "priority" in fields:
        raw = fields["priority"].strip()
        f = replace(f, priority=Priority.parse(raw) if raw and raw.lower() != "any" else None)
    if "query" in fields:
        f = replace(f, query=fields["query"])

    state.task_filter = f

    items = filtered_tasks(state.store.tasks, f)
    if not items:
        return f"No tasks ({_format_filter(f)})."
    lines = [f"Tasks ({_format_filter(f)}):"]
    lines.extend(format_task(t) for t in items)
    return "\n".join(lines)


def cmd_done(state: AppState, args: list[str]) -> str:
    task = _resolve_task(state, args)
    if task is None:
        return "Usage: /done <task-id-prefix> (unique prefix from /list)."
    updated = state.store.toggle_task(task)
    if updated is None:
        return "Task not found."
    return f"{'Completed' if updated.completed else 'Reopened'}: {format_task(updated)}"


def cmd_edit(state: AppState, args: list[str]) -> str:
    task = _resolve_task(state, args)
    _, fields = parse_fields(args[1:])
    fields.pop("query", None)
    if task is None or not fields:
        return "Usage: /edit <task-id-prefix> [title=..] [p=..] [c=..] [due=YYYY-MM-DD|none] [tags=a,b] [d=..]"
    updated = edit_task(state.store, task.id, fields)
    if updated is None:
        return "Edit rejected (unknown task or empty title)."
    return f"Updated: {format_task(updated)}"


def cmd_rm(state: AppState, args: list[str]) -> str:
    task = _resolve_task(state, args)
    if task is None:
        return "Usage: /rm <task-id-prefix> (unique prefix from /list)."
    state.store.delete_task(task.id)
    return f"Deleted: {task.title}"


def cmd_overdue(state: AppState, args: list[str]) -> str:
    items = overdue_tasks(state.store.tasks)
    if not items:
        return "No overdue tasks."
    return "\n".join(["Overdue tasks:", *(format_task(t) for t in items)])


def cmd_stats(state: AppState, args: list[str]) -> str:
    tasks = state.store.tasks
    stats = completion_stats(tasks)
    lines = [
        "Analytics:",
        f"  Total: {stats.total}  Completed: {stats.completed}  Progress: {int(stats.percentage * 100)}%",
        f"  Overdue: {len(overdue_tasks(tasks))}",
        "  By category: "
        + ", ".join(f"{c.value} {n}" for c, n in tasks_by_category(tasks).items()),
        "  By priority: "
        + ", ".join(f"{p.value} {n}" for p, n in tasks_by_priority(tasks).items()),
    ]
    ai = recent_ai_tasks(tasks)
    if ai:
        lines.append("  Recent AI generated tasks:")
        lines.extend(f"    {format_task(t)}" for t in ai)
    return "\n".join(lines)


def cmd_chat(state: AppState, args: list[str]) -> str:
    conv = state.store.add_conversation()
    state.current_conversation_id = conv.id
    return f"Started a new conversation ({conv.id[:8]}). Type messages, then /generate."


def cmd_history(state: AppState, args: list[str]) -> str:
    conv_id = state.current_conversation_id
    conv = state.store.get_conversation(conv_id) if conv_id else None
    if conv is None or not conv.messages:
        return "No messages in the current conversation."
    lines = [f"{m.speaker}: {m.content}" for m in conv.messages]
    if conv.summary:
        lines.append(f"Summary: {conv.summary}")
    if conv.generated_task_ids:
        lines.append(f"Generated tasks: {len(conv.generated_task_ids)}")
    return "\n".join(lines)


async def cmd_generate(
    state: AppState,
    args: list[str],
    emit: CommandEmitter | None = None,
) -> str:
    if state.pipeline.is_running:
        return "Task generation is already running."

    conv_id = ensure_conversation(state)
    conv = state.store.get_conversation(conv_id)
    if conv is None or not conv.messages:
        return "Nothing to summarize yet. Chat first, then /generate."

    if emit:
        with contextlib.suppress(Exception):
            emit("Generating tasks...")

    try:
        result = await state.pipeline.run(conv_id)
    except TodoError as e:
        return f"Task generation failed: {friendly_error_message(e)}"

    if not result.tasks:
        return "Summary saved. No actionable tasks found."
    lines = [f"Generated {len(result.tasks)} task(s):"]
    lines.extend(format_task(t) for t in result.tasks)
    return "\n".join(lines)


def cmd_export(state: AppState, args: list[str]) -> str:
    try:
        path = export_store(state, args[0] if args else None)
    except OSError as e:
        logger.exception("Export failed.")
        return f"Export failed: {e}"
    return f"Exported to {path}"


def cmd_clear(state: AppState, args: list[str]) -> str:
    if not args or args[0].lower() != "yes":
        return "This deletes all tasks and conversations. Confirm with: /clear yes"
    state.store.clear_all()
    state.current_conversation_id = None
    return "All data cleared."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show backend connectivity and counts.")
registry.register("add", cmd_add, help_text="Add a task: /add <title> [p=..] [c=..] [due=..] [tags=..] [d=..]")
registry.register("list", cmd_list, help_text="List tasks: /list [open|all|reset] [c=..] [p=..] [q=..]", aliases=["ls"])
registry.register("done", cmd_done, help_text="Toggle completion: /done <id>.", aliases=["toggle"])
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> key=value ...")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id>.", aliases=["delete"])
registry.register("overdue", cmd_overdue, help_text="Show overdue tasks.")
registry.register("stats", cmd_stats, help_text="Completion, per-category and per-priority counts.")
registry.register("chat", cmd_chat, help_text="Start a new AI conversation.")
registry.register("history", cmd_history, help_text="Show the current conversation.")
registry.register("generate", cmd_generate, help_text="Generate tasks from the current conversation.")
registry.register("export", cmd_export, help_text="Export all data as JSON: /export [path].")
registry.register("clear", cmd_clear, help_text="Delete all data: /clear yes.")
