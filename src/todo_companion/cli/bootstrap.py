# src/todo_companion/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (generation client, blob store, task store, pipeline),
- writes JSON exports of the store.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from datetime import datetime
from pathlib import Path

from ..config import get_settings
from ..core.ports import GenerationClient
from ..core.state import AppState
from ..ingest.pipeline import IngestionPipeline
from ..llm.client import OllamaClient, OpenAICompatibleClient
from ..llm.offline import OfflineGenerationClient
from ..tasks.blob_store import SqliteBlobStore
from ..tasks.task_store import TaskStore
from ..tasks.views import TaskFilter

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_generation_client(settings) -> GenerationClient:
    backend = str(getattr(settings, "llm_backend", "ollama"))
    timeout = float(settings.generation_timeout_seconds)
    connect = float(settings.connect_timeout_seconds)

    try:
        if backend == "ollama":
            return OllamaClient(
                base_url=settings.ollama_base_url,
                model=settings.ollama_model,
                timeout_seconds=timeout,
                connect_timeout_seconds=connect,
            )
        if backend == "openai":
            return OpenAICompatibleClient(
                base_url=settings.openai_base_url,
                models=list(settings.llm_models),
                api_key=settings.openai_api_key,
                timeout_seconds=timeout,
                connect_timeout_seconds=connect,
            )
    except RuntimeError:
        # Fallback for demos / local runs without external services.
        logger.warning("Generation backend %r is misconfigured; using offline client.", backend, exc_info=True)

    return OfflineGenerationClient()


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    llm = create_generation_client(settings)
    store = TaskStore(SqliteBlobStore(settings.store_db_path))
    pipeline = IngestionPipeline(store, llm, timeout_seconds=settings.generation_timeout_seconds)

    return AppState(
        settings=settings,
        llm=llm,
        store=store,
        pipeline=pipeline,
        task_filter=TaskFilter(show_completed=bool(settings.show_completed)),
    )


def export_store(state: AppState, path: str | Path | None = None) -> Path:
    """
    Write a JSON snapshot of tasks + conversations and return its path.

    Default location: <export_dir>/todo-export-YYYYmmdd-HHMMSS.json
    """
    if path is None:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        path = Path(state.settings.export_dir) / f"todo-export-{stamp}.json"
    path = Path(path).expanduser()

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(state.store.export_snapshot(), ensure_ascii=False, indent=2), "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(OSError):
        # Conversations may contain personal content, keep the file private on disk.
        os.chmod(path, 0o600)

    logger.info("Exported %d tasks to %s", state.store.count_tasks(), path)
    return path
