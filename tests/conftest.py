# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from todo_companion.core.state import AppState
from todo_companion.ingest.pipeline import IngestionPipeline
from todo_companion.tasks.blob_store import SqliteBlobStore
from todo_companion.tasks.task_store import TaskStore

from .fakes import FakeGenerationClient


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="todo",
        llm_backend="fake",
        generation_timeout_seconds=5.0,
        show_completed=True,
        data_dir=tmp_path,
        store_db_path=tmp_path / "store.sqlite3",
        export_dir=tmp_path / "exports",
    )


@pytest.fixture()
def blob_store(settings: SimpleNamespace) -> SqliteBlobStore:
    return SqliteBlobStore(settings.store_db_path)


@pytest.fixture()
def store(blob_store: SqliteBlobStore) -> TaskStore:
    return TaskStore(blob_store)


@pytest.fixture()
def llm() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, llm: FakeGenerationClient) -> AppState:
    """
    AppState wired with a scripted generation client.

    NOTE: We keep the real SQLite-backed store here because its
    write-through behavior is part of what we want to test.
    """
    return AppState(
        settings=settings,
        llm=llm,
        store=store,
        pipeline=IngestionPipeline(store, llm, timeout_seconds=settings.generation_timeout_seconds),
    )
