# src/todo_companion/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

APP_LOGGER = "todo_companion"
LOG_FILE_NAME = "todo.log"

# Console thresholds for chatty app loggers (longest prefix wins).
# The file handler still receives everything at file_level.
CONSOLE_LEVELS: dict[str, int] = {
    "todo_companion.tasks.blob_store": logging.WARNING,
    "todo_companion.tasks.task_store": logging.WARNING,
    "todo_companion.llm.client": logging.WARNING,
    "todo_companion.ingest.pipeline": logging.INFO,
}

THIRD_PARTY_LEVELS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "openai": logging.WARNING,
}


def _console_threshold(name: str) -> int:
    if name != APP_LOGGER and not name.startswith(APP_LOGGER + "."):
        # py.warnings and third-party libraries
        return logging.ERROR

    best = ""
    for prefix in CONSOLE_LEVELS:
        if (name == prefix or name.startswith(prefix + ".")) and len(prefix) > len(best):
            best = prefix
    return CONSOLE_LEVELS[best] if best else logging.NOTSET


class _ConsoleFilter(logging.Filter):
    """
    Keep the REPL readable while a chat or /generate is in flight:
    the store and LLM client report per-call details that belong in the log file.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= _console_threshold(record.name)


def console_filter() -> logging.Filter:
    return _ConsoleFilter()


def setup_logging(
    *,
    log_dir: str | Path = ".local/todo",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console handler (filtered) on stderr plus a full log file in log_dir.
    Returns the log file path. Call once, before the store is created.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(console_filter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    for name, level in THIRD_PARTY_LEVELS.items():
        logging.getLogger(name).setLevel(level)

    return log_file
