# src/todo_companion/ingest/pipeline.py

"""
Conversation ingestion pipeline.

    IDLE -> SUMMARIZING -> EXTRACTING -> IDLE        (success)
    IDLE -> SUMMARIZING|EXTRACTING -> FAILED -> IDLE (error, re-raised)

Key invariants:
- a summarize failure persists nothing,
- an extract failure keeps the already persisted summary and creates no tasks,
- no retries: one failed external call is one failed run,
- unknown priority/category labels never reject a draft (Medium/Other).

Concurrent runs for the same conversation are not guarded; front-ends check
`is_running` and disable their trigger.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypeVar

from ..core.errors import GenerationCallFailed, TodoError
from ..core.ports import GenerationClient
from ..tasks.task_api import parse_due_date
from ..tasks.task_models import Category, Priority, Task
from ..tasks.task_store import TaskStore
from .extractor import TaskDraft, extract_task_drafts
from .summarizer import summarize_conversation

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PipelineState(StrEnum):
    IDLE = "idle"
    SUMMARIZING = "summarizing"
    EXTRACTING = "extracting"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class IngestionResult:
    conversation_id: str
    summary: str
    tasks: list[Task] = field(default_factory=list)


class IngestionPipeline:
    def __init__(
        self,
        store: TaskStore,
        llm: GenerationClient,
        *,
        timeout_seconds: float = 60.0,
        on_state_change: Callable[[PipelineState], None] | None = None,
    ) -> None:
        self._store = store
        self._llm = llm
        self._timeout = float(timeout_seconds)
        self._on_state_change = on_state_change
        self._state = PipelineState.IDLE

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state in (PipelineState.SUMMARIZING, PipelineState.EXTRACTING)

    def _set_state(self, new_state: PipelineState) -> None:
        if new_state == self._state:
            return
        logger.debug("Pipeline state %s -> %s", self._state, new_state)
        self._state = new_state
        if self._on_state_change is not None:
            try:
                self._on_state_change(new_state)
            except Exception:
                logger.exception("Pipeline state listener failed.")

    async def _call(self, stage: str, awaitable: Awaitable[T]) -> T:
        """Run one external stage under the timeout; foreign errors become GenerationCallFailed."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except TodoError:
            raise
        except TimeoutError as e:
            raise GenerationCallFailed(f"{stage} timed out after {self._timeout:.0f}s.") from e
        except Exception as e:
            raise GenerationCallFailed(f"{stage} failed: {e.__class__.__name__}.") from e

    async def run(self, conversation_id: str) -> IngestionResult:
        conv = self._store.get_conversation(conversation_id)
        if conv is None:
            raise ValueError(f"Unknown conversation: {conversation_id}")
        if not conv.messages:
            raise ValueError("Conversation has no messages to summarize.")

        stage = "summarize"
        try:
            self._set_state(PipelineState.SUMMARIZING)
            summary = await self._call(stage, summarize_conversation(self._llm, conv.messages))
            self._store.update_conversation_summary(conversation_id, summary)

            stage = "extract"
            self._set_state(PipelineState.EXTRACTING)
            drafts = await self._call(stage, extract_task_drafts(self._llm, summary))

            tasks = self.materialize(conversation_id, drafts)
        except TodoError as e:
            logger.warning("Ingestion failed at %s stage conv=%s: %s", stage, conversation_id, e)
            self._set_state(PipelineState.FAILED)
            self._set_state(PipelineState.IDLE)
            raise
        except asyncio.CancelledError:
            logger.info("Ingestion cancelled at %s stage conv=%s", stage, conversation_id)
            self._set_state(PipelineState.IDLE)
            raise

        self._set_state(PipelineState.IDLE)
        logger.info("Ingestion done conv=%s tasks=%d", conversation_id, len(tasks))
        return IngestionResult(conversation_id=conversation_id, summary=summary, tasks=tasks)

    def materialize(self, conversation_id: str, drafts: list[TaskDraft]) -> list[Task]:
        created: list[Task] = []
        for draft in drafts:
            title = draft.title.strip()
            if not title:
                logger.info("Skipping generated task with blank title conv=%s", conversation_id)
                continue

            task = self._store.add_task(
                title,
                description=draft.description,
                priority=Priority.parse(draft.priority),
                category=Category.parse(draft.category),
                due_date=parse_due_date(draft.due_date),
                ai_generated=True,
                conversation_id=conversation_id,
            )
            self._store.add_generated_task(conversation_id, task.id)
            created.append(task)
        return created
