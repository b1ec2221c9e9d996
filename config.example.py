# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "TODO_APP_NAME": "App display name (default: todo).",
    "TODO_LOG_LEVEL": "Console logging level (default: INFO).",
    # Views
    "TODO_SHOW_COMPLETED": "Show completed tasks in /list by default (true/false).",
    # Generation service
    "TODO_LLM_BACKEND": "ollama | openai | offline (default: ollama).",
    "TODO_OLLAMA_BASE_URL": "Ollama base URL (default: http://localhost:11434).",
    "TODO_OLLAMA_MODEL": "Ollama model name (default: llama2).",
    "TODO_OPENAI_BASE_URL": "OpenAI-compatible base URL (default: <ollama_base_url>/v1).",
    "TODO_OPENAI_API_KEY": "API key for the OpenAI-compatible endpoint (local servers ignore it).",
    "TODO_LLM_MODELS": "Comma/space separated list of models to try in order (openai backend).",
    "TODO_GENERATION_TIMEOUT_SECONDS": "Per-call timeout for generation requests (default: 60).",
    "TODO_CONNECT_TIMEOUT_SECONDS": "Connect timeout for generation requests (default: 5).",
    # Paths (gitignored)
    "TODO_DATA_DIR": "Local data directory (default: .local/todo).",
    "TODO_STORE_DB_PATH": "Blob store SQLite path (default: <data_dir>/store.sqlite3).",
    "TODO_EXPORT_DIR": "Where /export writes JSON snapshots (default: <data_dir>/exports).",
}
