# src/todo_companion/core/chat.py

"""
Chat turns.

Transport-agnostic: a front-end hands over the user's text, the core records
it in the current conversation, asks the generation service for a reply and
records that as well. The user message is kept even if the reply fails.
"""

from __future__ import annotations

import asyncio
import logging

from ..core.errors import GenerationCallFailed, MalformedGenerationResponse, TodoError
from .state import AppState

logger = logging.getLogger(__name__)

CHAT_PROMPT_TEMPLATE = """
You are a helpful AI assistant that helps users organize their tasks and productivity.
Respond naturally to their message and ask follow-up questions to understand their needs better.
Keep responses concise and helpful.

User message: {message}
""".strip()


def build_chat_prompt(message: str) -> str:
    return CHAT_PROMPT_TEMPLATE.format(message=message)


def ensure_conversation(state: AppState) -> str:
    """Return the current conversation id, starting a new conversation if needed."""
    conv_id = state.current_conversation_id
    if conv_id is None or state.store.get_conversation(conv_id) is None:
        conv_id = state.store.add_conversation().id
        state.current_conversation_id = conv_id
        logger.info("Started conversation id=%s", conv_id)
    return conv_id


async def send_message(state: AppState, text: str) -> str | None:
    """
    Record a user message and the assistant reply.

    Returns the reply, or None for blank input. Generation errors propagate
    as GenerationCallFailed / MalformedGenerationResponse.
    """
    message = (text or "").strip()
    if not message:
        return None

    conv_id = ensure_conversation(state)
    state.store.add_message(conv_id, message, is_user=True)

    timeout = float(getattr(state.settings, "generation_timeout_seconds", 60.0))
    try:
        raw = await asyncio.wait_for(state.llm.complete(build_chat_prompt(message)), timeout=timeout)
    except TodoError:
        raise
    except TimeoutError as e:
        raise GenerationCallFailed(f"chat reply timed out after {timeout:.0f}s.") from e

    reply = (raw or "").strip()
    if not reply:
        raise MalformedGenerationResponse("Generation service returned an empty reply.", raw=raw or "")

    state.store.add_message(conv_id, reply, is_user=False)
    return reply
