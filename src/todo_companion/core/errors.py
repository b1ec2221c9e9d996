# src/todo_companion/core/errors.py

"""
Error taxonomy.

- Store "not found" conditions are silent no-ops and have no exception type.
- EmptyTitleError guards task creation.
- GenerationCallFailed / MalformedGenerationResponse are raised to the caller
  of a pipeline or chat turn (one failure per stage, no retries).
- PersistenceWriteFailed is recorded by the store and never raised past it.
"""

from __future__ import annotations


class TodoError(Exception):
    """Base class for all todo_companion errors."""


class EmptyTitleError(TodoError, ValueError):
    def __init__(self) -> None:
        super().__init__("Task title must not be empty.")


class GenerationCallFailed(TodoError):
    """Network error, timeout or non-success reply from the generation service."""


class MalformedGenerationResponse(TodoError):
    """The generation service replied, but not in the expected shape."""

    def __init__(self, message: str, *, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class PersistenceWriteFailed(TodoError):
    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"Failed to persist {key!r}: {message}")
        self.key = key
