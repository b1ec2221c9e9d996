# src/todo_companion/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

ENV_PREFIX = "TODO"

LLM_BACKENDS = ("ollama", "openai", "offline")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except ImportError:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Views ----
    show_completed: bool

    # ---- Generation service ----
    llm_backend: str
    ollama_base_url: str
    ollama_model: str
    openai_base_url: str
    openai_api_key: Optional[str]
    llm_models: List[str]
    generation_timeout_seconds: float
    connect_timeout_seconds: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    store_db_path: Path
    export_dir: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "todo") or "todo"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        show_completed = _env_bool(_k("SHOW_COMPLETED"), True)

        llm_backend = _env(_k("LLM_BACKEND"), "ollama").strip().lower()
        if llm_backend not in LLM_BACKENDS:
            llm_backend = "ollama"

        ollama_base_url = _env(_k("OLLAMA_BASE_URL"), "http://localhost:11434").rstrip("/")
        ollama_model = _env(_k("OLLAMA_MODEL"), "llama2")

        # OpenAI-compatible endpoint; Ollama serves one under /v1 as well.
        openai_base_url = _env(_k("OPENAI_BASE_URL"), f"{ollama_base_url}/v1")
        openai_api_key = _first_env(_k("OPENAI_API_KEY"), "OPENAI_API_KEY", default=None)
        llm_models = _env_list(_k("LLM_MODELS"), [ollama_model])

        generation_timeout_seconds = _env_float(_k("GENERATION_TIMEOUT_SECONDS"), 60.0)
        connect_timeout_seconds = _env_float(_k("CONNECT_TIMEOUT_SECONDS"), 5.0)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/todo"))
        store_db_path = _env_path(_k("STORE_DB_PATH"), data_dir / "store.sqlite3")
        export_dir = _env_path(_k("EXPORT_DIR"), data_dir / "exports")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            show_completed=show_completed,
            llm_backend=llm_backend,
            ollama_base_url=ollama_base_url,
            ollama_model=ollama_model,
            openai_base_url=openai_base_url,
            openai_api_key=openai_api_key,
            llm_models=llm_models,
            generation_timeout_seconds=max(1.0, generation_timeout_seconds),
            connect_timeout_seconds=max(0.5, connect_timeout_seconds),
            data_dir=data_dir,
            store_db_path=store_db_path,
            export_dir=export_dir,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
