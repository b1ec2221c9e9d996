# src/todo_companion/ingest/summarizer.py

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..core.errors import MalformedGenerationResponse
from ..core.ports import GenerationClient
from ..tasks.task_models import ConversationMessage

logger = logging.getLogger(__name__)

SUMMARY_PROMPT_TEMPLATE = """
Please summarize the following conversation and extract actionable tasks.
Focus on identifying specific tasks, deadlines, and priorities mentioned.

Conversation:
{transcript}

Summary format:
1. Key topics discussed
2. Actionable tasks identified
3. Suggested priorities and deadlines
""".strip()


def build_transcript(messages: Sequence[ConversationMessage], *, max_msg_chars: int = 2000) -> str:
    """One line per message, labeled "User:" / "AI:"."""
    lines: list[str] = []
    for m in messages:
        content = m.content
        if len(content) > max_msg_chars:
            content = content[:max_msg_chars] + "…"
        lines.append(f"{m.speaker}: {content}")
    return "\n".join(lines)


def build_summary_prompt(messages: Sequence[ConversationMessage]) -> str:
    return SUMMARY_PROMPT_TEMPLATE.format(transcript=build_transcript(messages))


async def summarize_conversation(llm: GenerationClient, messages: Sequence[ConversationMessage]) -> str:
    """
    Compress a conversation into a free-form summary.

    Errors from the client propagate unchanged; a blank reply is
    a MalformedGenerationResponse.
    """
    raw = await llm.complete(build_summary_prompt(messages))
    summary = (raw or "").strip()
    if not summary:
        raise MalformedGenerationResponse("Generation service returned an empty summary.", raw=raw or "")

    logger.debug("Conversation summary produced len=%d", len(summary))
    return summary
