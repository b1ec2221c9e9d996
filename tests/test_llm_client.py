# tests/test_llm_client.py

from __future__ import annotations

import json
from datetime import UTC, datetime
from types import SimpleNamespace

import httpx
import pytest

from todo_companion.core.errors import GenerationCallFailed, MalformedGenerationResponse
from todo_companion.ingest.summarizer import build_summary_prompt
from todo_companion.llm.client import OllamaClient, OpenAICompatibleClient, friendly_error_message
from todo_companion.llm.offline import OfflineGenerationClient
from todo_companion.tasks.task_models import ConversationMessage


def _ollama(handler) -> OllamaClient:
    return OllamaClient(
        base_url="http://ollama.test",
        model="llama2",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_ollama_generate_request_and_reply() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": "hello", "done": True})

    text = await _ollama(handler).complete("Say hi")

    assert text == "hello"
    assert seen["path"] == "/api/generate"
    assert seen["body"] == {"model": "llama2", "prompt": "Say hi", "stream": False}


@pytest.mark.asyncio
async def test_ollama_http_error_is_generation_failure() -> None:
    client = _ollama(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(GenerationCallFailed, match="HTTP 500"):
        await client.complete("x")


@pytest.mark.asyncio
async def test_ollama_missing_response_field() -> None:
    client = _ollama(lambda request: httpx.Response(200, json={"error": "model not found"}))
    with pytest.raises(GenerationCallFailed):
        await client.complete("x")


@pytest.mark.asyncio
async def test_ollama_connection_error_has_friendly_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _ollama(handler)
    with pytest.raises(GenerationCallFailed) as exc_info:
        await client.complete("x")
    assert "Ollama" in friendly_error_message(exc_info.value)
    assert await client.check_connection() is False


@pytest.mark.asyncio
async def test_ollama_check_connection() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/tags"
        return httpx.Response(200, json={"models": []})

    assert await _ollama(handler).check_connection() is True


class NotFoundError(Exception):
    pass


class AuthenticationError(Exception):
    pass


class _FakeCompletions:
    def __init__(self, outcomes: dict[str, object]) -> None:
        self.outcomes = outcomes
        self.models: list[str] = []

    async def create(self, *, model: str, messages: list[dict[str, str]]):
        self.models.append(model)
        outcome = self.outcomes[model]
        if isinstance(outcome, Exception):
            raise outcome
        message = SimpleNamespace(content=outcome)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _openai(outcomes: dict[str, object]) -> tuple[OpenAICompatibleClient, _FakeCompletions]:
    completions = _FakeCompletions(outcomes)
    fake = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    client = OpenAICompatibleClient(base_url="http://x/v1", models=list(outcomes), client=fake)
    return client, completions


@pytest.mark.asyncio
async def test_openai_client_falls_back_across_models() -> None:
    client, completions = _openai({"missing": NotFoundError("404"), "good": "reply"})

    assert await client.complete("hi") == "reply"
    assert completions.models == ["missing", "good"]

    # 404 models are skipped for a while
    assert await client.complete("hi") == "reply"
    assert completions.models == ["missing", "good", "good"]


@pytest.mark.asyncio
async def test_openai_client_auth_error_fails_fast() -> None:
    client, completions = _openai({"a": AuthenticationError("401"), "b": "never"})

    with pytest.raises(GenerationCallFailed, match="authentication"):
        await client.complete("hi")
    assert completions.models == ["a"]


@pytest.mark.asyncio
async def test_openai_client_all_models_failing() -> None:
    client, _ = _openai({"a": RuntimeError("x"), "b": ""})
    with pytest.raises(GenerationCallFailed, match="All LLM models failed"):
        await client.complete("hi")


def test_openai_client_requires_models() -> None:
    with pytest.raises(RuntimeError):
        OpenAICompatibleClient(base_url="http://x/v1", models=[" "], client=object())


@pytest.mark.asyncio
async def test_offline_client_returns_parseable_extraction() -> None:
    client = OfflineGenerationClient()
    assert await client.complete("Return STRICT JSON only: a JSON array") == "[]"
    assert "You said: buy milk" in await client.complete("...\nUser message: buy milk")
    assert await client.check_connection() is False


def test_friendly_error_message_for_malformed_reply() -> None:
    msg = friendly_error_message(MalformedGenerationResponse("bad", raw="x"))
    assert "unexpected format" in msg


@pytest.mark.asyncio
async def test_offline_client_summary_is_not_mistaken_for_extraction() -> None:
    msg = ConversationMessage(id="m1", content="How do I sort a JSON array?", is_user=True, timestamp=datetime.now(UTC))
    reply = await OfflineGenerationClient().complete(build_summary_prompt([msg]))
    assert reply != "[]"
    assert reply.strip()
