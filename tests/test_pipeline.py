# tests/test_pipeline.py

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from todo_companion.core.errors import GenerationCallFailed, MalformedGenerationResponse
from todo_companion.ingest.extractor import parse_task_drafts
from todo_companion.ingest.pipeline import IngestionPipeline, PipelineState
from todo_companion.ingest.summarizer import build_transcript
from todo_companion.tasks.task_models import Category, Priority
from todo_companion.tasks.task_store import TaskStore

from .fakes import FakeGenerationClient, SlowGenerationClient

DENTIST_REPLY = json.dumps(
    [
        {
            "title": "Call dentist",
            "description": "",
            "priority": "high",
            "category": "health",
            "dueDate": "2025-01-01",
        }
    ]
)


def _conversation(store: TaskStore) -> str:
    conv = store.add_conversation()
    store.add_message(conv.id, "I really need to book a dentist appointment", is_user=True)
    store.add_message(conv.id, "Would you like a reminder?", is_user=False)
    return conv.id


@pytest.mark.asyncio
async def test_pipeline_materializes_generated_task(store: TaskStore) -> None:
    conv_id = _conversation(store)
    llm = FakeGenerationClient(["Summary: dentist appointment.", DENTIST_REPLY])
    states: list[PipelineState] = []
    pipeline = IngestionPipeline(store, llm, timeout_seconds=5, on_state_change=states.append)

    result = await pipeline.run(conv_id)

    [task] = result.tasks
    assert task.title == "Call dentist"
    assert task.priority is Priority.HIGH
    assert task.category is Category.HEALTH
    assert task.due_date == datetime(2025, 1, 1, tzinfo=UTC)
    assert task.ai_generated is True
    assert task.conversation_id == conv_id

    conv = store.get_conversation(conv_id)
    assert conv is not None
    assert conv.summary == "Summary: dentist appointment."
    assert conv.generated_task_ids == [task.id]
    assert store.count_tasks() == 1

    assert states == [PipelineState.SUMMARIZING, PipelineState.EXTRACTING, PipelineState.IDLE]
    assert pipeline.state is PipelineState.IDLE


@pytest.mark.asyncio
async def test_prompts_carry_transcript_and_summary(store: TaskStore) -> None:
    conv_id = _conversation(store)
    llm = FakeGenerationClient(["the summary", "[]"])
    await IngestionPipeline(store, llm).run(conv_id)

    summarize_prompt, extract_prompt = llm.calls
    assert "User: I really need to book a dentist appointment" in summarize_prompt
    assert "AI: Would you like a reminder?" in summarize_prompt
    assert "Summary: the summary" in extract_prompt
    assert "JSON array" in extract_prompt


@pytest.mark.asyncio
async def test_invalid_json_keeps_summary_and_creates_nothing(store: TaskStore) -> None:
    conv_id = _conversation(store)
    llm = FakeGenerationClient(["a summary", "Sure! Here are your tasks: call the dentist"])
    states: list[PipelineState] = []
    pipeline = IngestionPipeline(store, llm, on_state_change=states.append)

    with pytest.raises(MalformedGenerationResponse):
        await pipeline.run(conv_id)

    conv = store.get_conversation(conv_id)
    assert conv is not None
    assert conv.summary == "a summary"
    assert conv.generated_task_ids == []
    assert store.count_tasks() == 0
    assert states[-2:] == [PipelineState.FAILED, PipelineState.IDLE]
    assert pipeline.state is PipelineState.IDLE


@pytest.mark.asyncio
async def test_summarize_failure_persists_nothing(store: TaskStore) -> None:
    conv_id = _conversation(store)
    llm = FakeGenerationClient([GenerationCallFailed("connection refused")])
    pipeline = IngestionPipeline(store, llm)

    with pytest.raises(GenerationCallFailed):
        await pipeline.run(conv_id)

    conv = store.get_conversation(conv_id)
    assert conv is not None
    assert conv.summary is None
    assert len(llm.calls) == 1  # no extraction attempted
    assert store.count_tasks() == 0


@pytest.mark.asyncio
async def test_extract_call_failure_keeps_summary(store: TaskStore) -> None:
    conv_id = _conversation(store)
    llm = FakeGenerationClient(["kept", GenerationCallFailed("HTTP 500")])

    with pytest.raises(GenerationCallFailed):
        await IngestionPipeline(store, llm).run(conv_id)

    conv = store.get_conversation(conv_id)
    assert conv is not None
    assert conv.summary == "kept"
    assert store.count_tasks() == 0


@pytest.mark.asyncio
async def test_timeout_is_a_generation_failure(store: TaskStore) -> None:
    conv_id = _conversation(store)
    pipeline = IngestionPipeline(store, SlowGenerationClient(delay=1.0), timeout_seconds=0.01)

    with pytest.raises(GenerationCallFailed, match="timed out"):
        await pipeline.run(conv_id)
    assert pipeline.state is PipelineState.IDLE


@pytest.mark.asyncio
async def test_foreign_client_errors_are_wrapped(store: TaskStore) -> None:
    conv_id = _conversation(store)
    llm = FakeGenerationClient([ConnectionResetError("peer reset")])

    with pytest.raises(GenerationCallFailed) as exc_info:
        await IngestionPipeline(store, llm).run(conv_id)
    assert isinstance(exc_info.value.__cause__, ConnectionResetError)


@pytest.mark.asyncio
async def test_blank_summary_is_malformed(store: TaskStore) -> None:
    conv_id = _conversation(store)
    llm = FakeGenerationClient(["   "])

    with pytest.raises(MalformedGenerationResponse):
        await IngestionPipeline(store, llm).run(conv_id)
    conv = store.get_conversation(conv_id)
    assert conv is not None
    assert conv.summary is None


@pytest.mark.asyncio
async def test_unknown_labels_and_bad_dates_fall_back(store: TaskStore) -> None:
    conv_id = _conversation(store)
    reply = json.dumps(
        [
            {"title": "Stretch", "priority": "whenever", "category": "fitness", "dueDate": "next week"},
            {"title": "Budget", "description": "monthly", "priority": "URGENT", "category": "Finance"},
            {"title": "   ", "priority": "high"},
        ]
    )
    llm = FakeGenerationClient(["summary", f"```json\n{reply}\n```"])

    result = await IngestionPipeline(store, llm).run(conv_id)

    stretch, budget = result.tasks
    assert (stretch.priority, stretch.category, stretch.due_date) == (Priority.MEDIUM, Category.OTHER, None)
    assert (budget.priority, budget.category, budget.description) == (Priority.URGENT, Category.FINANCE, "monthly")

    conv = store.get_conversation(conv_id)
    assert conv is not None
    assert conv.generated_task_ids == [stretch.id, budget.id]


@pytest.mark.asyncio
async def test_empty_or_unknown_conversation_is_rejected_before_any_call(store: TaskStore) -> None:
    llm = FakeGenerationClient()
    pipeline = IngestionPipeline(store, llm)

    with pytest.raises(ValueError):
        await pipeline.run("nope")

    empty = store.add_conversation()
    with pytest.raises(ValueError):
        await pipeline.run(empty.id)

    assert llm.calls == []


@pytest.mark.parametrize(
    "raw",
    [
        '{"title": "not an array"}',
        '{"tasks": [{"title": "wrapped in an object"}]}',
        '["just a string"]',
        '[{"description": "no title"}]',
        '[{"title": 42}]',
        "",
    ],
)
def test_parse_task_drafts_rejects_wrong_shapes(raw: str) -> None:
    with pytest.raises(MalformedGenerationResponse):
        parse_task_drafts(raw)


def test_parse_task_drafts_tolerates_surrounding_prose() -> None:
    drafts = parse_task_drafts('Here you go:\n[{"title": "A", "due_date": "2025-02-03"}]\nThanks!')
    assert [(d.title, d.description, d.due_date) for d in drafts] == [("A", "", "2025-02-03")]
    assert parse_task_drafts("[]") == []


def test_build_transcript_labels_speakers(store: TaskStore) -> None:
    conv_id = _conversation(store)
    conv = store.get_conversation(conv_id)
    assert conv is not None
    assert build_transcript(conv.messages).splitlines() == [
        "User: I really need to book a dentist appointment",
        "AI: Would you like a reminder?",
    ]


def test_parse_task_drafts_ignores_bracketed_text_after_the_array() -> None:
    drafts = parse_task_drafts('[{"title": "Call dentist"}]\nNote: dates are estimates [approx].')
    assert [d.title for d in drafts] == ["Call dentist"]
