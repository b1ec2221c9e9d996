# src/todo_companion/llm/client.py

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from ..core.errors import EmptyTitleError, GenerationCallFailed, MalformedGenerationResponse

logger = logging.getLogger(__name__)


def _make_timeout_obj(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(
        connect=connect_s,
        read=read_s,
        write=10.0,
        pool=connect_s,
    )


def _is_auth_error(exc: Exception) -> bool:
    return exc.__class__.__name__ in {
        "AuthenticationError",
        "PermissionDeniedError",
        "UnauthorizedError",
    }


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"RateLimitError", "TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    return exc.__class__.__name__ in {
        "APIConnectionError",
        "APITimeoutError",
        "Timeout",
        "ConnectTimeout",
        "ReadTimeout",
        "WriteTimeout",
        "ConnectError",
    }


def _is_not_found_error(exc: Exception) -> bool:
    return exc.__class__.__name__ in {"NotFoundError"}


def friendly_error_message(err: Exception) -> str:
    """Map core/LLM errors to a short line for the console."""
    if isinstance(err, EmptyTitleError):
        return "Task title must not be empty."
    if isinstance(err, MalformedGenerationResponse):
        return "The AI reply could not be turned into tasks (unexpected format). Try again."
    if isinstance(err, GenerationCallFailed):
        cause = err.__cause__
        if cause is not None and _is_connection_error(cause):
            return "Generation service is not reachable. Is Ollama running (ollama serve)?"
        return str(err).strip() or "Generation service error."
    return str(err).strip() or err.__class__.__name__


class OllamaClient:
    """
    Client for Ollama's native API.

    - complete():         POST /api/generate {"model", "prompt", "stream": false} -> {"response"}
    - check_connection(): GET /api/tags answers 200

    A short-lived httpx.AsyncClient is opened per call.
    """

    def __init__(
        self,
        *,
        base_url: str = "http://localhost:11434",
        model: str = "llama2",
        timeout_seconds: float = 60.0,
        connect_timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url.strip():
            raise RuntimeError("Ollama base URL is not set. Set TODO_OLLAMA_BASE_URL in your .env.")
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = _make_timeout_obj(connect_s=connect_timeout_seconds, read_s=timeout_seconds)
        self._transport = transport

    @property
    def model(self) -> str:
        return self._model

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def complete(self, prompt: str) -> str:
        payload = {"model": self._model, "prompt": prompt, "stream": False}
        t0 = time.monotonic()
        logger.info("LLM: generate model=%s prompt_chars=%d", self._model, len(prompt))

        try:
            async with self._client() as client:
                resp = await client.post("/api/generate", json=payload)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise GenerationCallFailed(
                f"Generation service answered HTTP {e.response.status_code} (model={self._model})."
            ) from e
        except httpx.HTTPError as e:
            raise GenerationCallFailed(
                f"Generation service request failed: {e.__class__.__name__}."
            ) from e

        try:
            data = resp.json()
        except ValueError as e:
            raise GenerationCallFailed("Generation service returned a non-JSON body.") from e

        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise GenerationCallFailed("Generation service reply has no 'response' text.")

        logger.info("LLM: done model=%s (%.2fs, %d chars)", self._model, time.monotonic() - t0, len(text))
        return text

    async def check_connection(self) -> bool:
        try:
            async with self._client() as client:
                resp = await client.get("/api/tags")
        except httpx.HTTPError as e:
            logger.info("Ollama not reachable at %s: %s", self._base_url, e.__class__.__name__)
            return False
        return resp.status_code == 200


class OpenAICompatibleClient:
    """
    Client for any OpenAI-compatible chat endpoint (Ollama /v1, OpenRouter, ...).

    Behavior:
    - Tries models in the configured order.
    - 404 (model not available) -> remember for an hour, try next.
    - Rate limit / network issues -> try next.
    - Auth issues -> fail fast (no retries across models).
    """

    def __init__(
        self,
        *,
        base_url: str,
        models: list[str],
        api_key: str | None = None,
        timeout_seconds: float = 60.0,
        connect_timeout_seconds: float = 5.0,
        client: Any = None,
    ) -> None:
        if not base_url.strip():
            raise RuntimeError("LLM base URL is not set. Set TODO_OPENAI_BASE_URL in your .env.")
        self._models = [m.strip() for m in models if m and m.strip()]
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set TODO_LLM_MODELS in your .env.")

        # We disable automatic retries; one failed call is one pipeline failure.
        self._client = client or AsyncOpenAI(
            base_url=base_url,
            # Local servers ignore the key, but the SDK requires one.
            api_key=api_key or "ollama",
            timeout=_make_timeout_obj(connect_s=connect_timeout_seconds, read_s=timeout_seconds),
            max_retries=0,
        )
        self._bad_models: dict[str, float] = {}  # model -> retry_at (monotonic)

    async def complete(self, prompt: str) -> str:
        last_error: Exception | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            logger.info("LLM: trying model=%s", model)
            t0 = time.monotonic()
            try:
                resp = await self._client.chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": prompt}],
                )
            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise GenerationCallFailed(
                        "LLM authentication failed. Check TODO_OPENAI_API_KEY."
                    ) from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + 3600.0  # 1 hour
                    logger.info("LLM: model not available (404): %s", model)
                    continue

                if _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                    continue

                if _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                    continue

                logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

            try:
                content = resp.choices[0].message.content
            except (AttributeError, IndexError):
                content = None

            if content:
                logger.info("LLM: completed with model=%s (%.2fs)", model, time.monotonic() - t0)
                return content

            last_error = RuntimeError(f"Model returned no content: {model}")

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise GenerationCallFailed("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise GenerationCallFailed(
                    "LLM network/timeout error. Try again later or change models."
                ) from last_error
            raise GenerationCallFailed("All LLM models failed.") from last_error

        raise GenerationCallFailed("All LLM models failed.")

    async def check_connection(self) -> bool:
        try:
            await self._client.models.list()
        except openai.OpenAIError as e:
            logger.info("LLM endpoint not reachable: %s", e.__class__.__name__)
            return False
        return True
