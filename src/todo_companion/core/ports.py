# src/todo_companion/core/ports.py

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the generation service and the durable storage swappable
and makes testing easier.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..tasks.task_store import StoreChange


class GenerationClient(Protocol):
    """Opaque text-completion service: prompt in, text out."""

    async def complete(self, prompt: str) -> str: ...

    async def check_connection(self) -> bool: ...


class BlobStore(Protocol):
    """Flat key-value blob storage. One key per persisted collection."""

    def put(self, key: str, data: bytes) -> None: ...
    def get(self, key: str) -> bytes | None: ...
    def delete(self, key: str) -> None: ...


class StoreListener(Protocol):
    def __call__(self, change: StoreChange) -> None: ...
