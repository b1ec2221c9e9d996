# tests/test_commands.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from todo_companion.cli.commands import CommandRegistry, parse_fields, registry
from todo_companion.core.state import AppState
from todo_companion.tasks.task_models import Category, Priority


@pytest.mark.asyncio
async def test_command_registry_routes_sync_async_and_emit(state: AppState) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2:" + ",".join(args)

    async def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    notes: list[str] = []
    reg.register("a", h2, "a", aliases=["aa"])
    reg.register("b", h3, "b")

    assert await reg.handle(state, '/a x "y z"') == "h2:x,y z"
    assert await reg.handle(state, "/AA") == "h2:"
    assert await reg.handle(state, "/b", emit=notes.append) == "h3"
    assert called == {"h2": 2, "h3": 1}
    assert notes == ["note"]


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state: AppState) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")


def test_parse_fields_separates_known_keys() -> None:
    words, fields = parse_fields(["Pay", "rent", "p=high", "c=finance", "x=1", "due=2025-01-01"])
    assert words == ["Pay", "rent", "x=1"]
    assert fields == {"priority": "high", "category": "finance", "due": "2025-01-01"}


@pytest.mark.asyncio
async def test_add_list_done_edit_rm_flow(state: AppState) -> None:
    out = await registry.handle(state, '/add Pay rent p=high c=finance due=2025-01-01 tags=home,bills d="before noon"')
    assert out is not None and out.startswith("Added:")

    [task] = state.store.tasks
    assert task.title == "Pay rent"
    assert task.priority is Priority.HIGH
    assert task.category is Category.FINANCE
    assert task.description == "before noon"
    assert task.tags == ["home", "bills"]

    assert "Usage" in (await registry.handle(state, "/add") or "")

    listing = await registry.handle(state, "/list c=finance")
    assert listing is not None and "Pay rent" in listing

    prefix = task.id[:8]
    assert (await registry.handle(state, f"/done {prefix}") or "").startswith("Completed")
    assert state.store.tasks[0].completed is True

    hidden = await registry.handle(state, "/list open")
    assert hidden is not None and "No tasks" in hidden

    edited = await registry.handle(state, f"/edit {prefix} title=Pay\\ rent\\ now p=urgent due=none")
    assert edited is not None and edited.startswith("Updated")
    updated = state.store.tasks[0]
    assert updated.title == "Pay rent now"
    assert updated.priority is Priority.URGENT
    assert updated.due_date is None

    assert (await registry.handle(state, f"/rm {prefix}") or "").startswith("Deleted")
    assert state.store.tasks == []


@pytest.mark.asyncio
async def test_stats_lists_every_category(state: AppState) -> None:
    state.store.add_task("a", category=Category.WORK)
    out = await registry.handle(state, "/stats")
    assert out is not None
    for c in Category:
        assert c.value in out
    assert "Work 1" in out


@pytest.mark.asyncio
async def test_generate_runs_pipeline_on_current_conversation(state: AppState) -> None:
    assert "Nothing to summarize" in (await registry.handle(state, "/generate") or "")

    conv_id = state.current_conversation_id
    assert conv_id is not None
    state.store.add_message(conv_id, "remind me to call the dentist", is_user=True)
    state.llm.replies = [
        "User must call the dentist.",
        json.dumps([{"title": "Call dentist", "priority": "high", "category": "health"}]),
    ]

    out = await registry.handle(state, "/generate")
    assert out is not None and "Generated 1 task" in out
    [task] = state.store.tasks
    assert task.ai_generated is True


@pytest.mark.asyncio
async def test_generate_reports_failure(state: AppState) -> None:
    await registry.handle(state, "/chat")
    state.store.add_message(state.current_conversation_id or "", "hi", is_user=True)
    state.llm.replies = ["summary", "not json"]

    out = await registry.handle(state, "/generate")
    assert out is not None and out.startswith("Task generation failed")


@pytest.mark.asyncio
async def test_export_and_clear(state: AppState, tmp_path: Path) -> None:
    state.store.add_task("exported")
    target = tmp_path / "out.json"

    out = await registry.handle(state, f"/export {target}")
    assert out == f"Exported to {target}"
    data = json.loads(target.read_text("utf-8"))
    assert [t["title"] for t in data["tasks"]] == ["exported"]

    assert "Confirm" in (await registry.handle(state, "/clear") or "")
    assert state.store.count_tasks() == 1
    assert await registry.handle(state, "/clear yes") == "All data cleared."
    assert state.store.count_tasks() == 0
