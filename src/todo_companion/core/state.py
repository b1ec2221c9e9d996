# src/todo_companion/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..ingest.pipeline import IngestionPipeline
from ..tasks.task_store import TaskStore
from ..tasks.views import TaskFilter
from .ports import GenerationClient


@dataclass
class AppState:
    """
    Runtime state shared by front-ends.

    settings is kept as Any so tests can pass a SimpleNamespace.
    """

    settings: Any
    llm: GenerationClient
    store: TaskStore
    pipeline: IngestionPipeline

    current_conversation_id: str | None = None
    task_filter: TaskFilter = field(default_factory=TaskFilter)
