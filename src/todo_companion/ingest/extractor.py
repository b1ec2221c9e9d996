# src/todo_companion/ingest/extractor.py

"""
Stage 2: summary -> task drafts.

The model is asked for a bare JSON array. We tolerate the usual wrapping
(Markdown fences, a sentence before/after the array) but the array itself
must have the expected shape, otherwise the whole reply is rejected.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any

from ..core.errors import MalformedGenerationResponse
from ..core.ports import GenerationClient

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT_TEMPLATE = """
Based on this conversation summary, generate specific actionable tasks in JSON format.
Each task should have: title, description, priority (low/medium/high/urgent),
category (personal/work/health/learning/finance/other), and suggested due date.

Today is {today}. Use the YYYY-MM-DD format for dates; omit dueDate if none was mentioned.

Summary: {summary}

Return STRICT JSON only: a JSON array, no extra text, no Markdown.
[
    {{
        "title": "Task title",
        "description": "Task description",
        "priority": "medium",
        "category": "work",
        "dueDate": "2024-01-15"
    }}
]

If there are no actionable tasks, return: []
""".strip()

_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*|\s*```$")


@dataclass(slots=True, frozen=True)
class TaskDraft:
    """A task as proposed by the model, before label/date normalization."""

    title: str
    description: str = ""
    priority: Any = None
    category: Any = None
    due_date: str | None = None


def build_extraction_prompt(summary: str, *, today: date | None = None) -> str:
    today = today or date.today()
    return EXTRACTION_PROMPT_TEMPLATE.format(summary=summary, today=today.isoformat())


def _load_json_array(raw: str) -> list[Any]:
    """
    Whole reply (minus fences) is parsed first; a valid non-array is rejected.
    Only text that is not JSON as a whole is searched for an embedded array.
    """
    text = _FENCE_RE.sub("", raw.strip())
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        whole_error = e
    else:
        if not isinstance(data, list):
            raise MalformedGenerationResponse("Reply is not a JSON array.", raw=raw)
        return data

    decoder = json.JSONDecoder()
    start = text.find("[")
    while start != -1:
        try:
            data, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, list):
            return data
        start = text.find("[", start + 1)

    raise MalformedGenerationResponse(
        f"Reply is not valid JSON: {whole_error.msg}.", raw=raw
    ) from whole_error


def _draft_from_obj(obj: Any, index: int, raw: str) -> TaskDraft:
    if not isinstance(obj, dict):
        raise MalformedGenerationResponse(f"Task #{index} is not a JSON object.", raw=raw)

    title = obj.get("title")
    if not isinstance(title, str):
        raise MalformedGenerationResponse(f"Task #{index} has no string 'title'.", raw=raw)

    description = obj.get("description")
    due = obj.get("dueDate", obj.get("due_date"))

    return TaskDraft(
        title=title,
        description=description if isinstance(description, str) else "",
        priority=obj.get("priority"),
        category=obj.get("category"),
        due_date=due if isinstance(due, str) else None,
    )


def parse_task_drafts(raw: str) -> list[TaskDraft]:
    """
    Parse a model reply into drafts.

    Raises MalformedGenerationResponse if the reply is not a JSON array of
    objects with a string "title".
    """
    raw = raw or ""
    data = _load_json_array(raw)
    return [_draft_from_obj(obj, i, raw) for i, obj in enumerate(data)]


async def extract_task_drafts(llm: GenerationClient, summary: str) -> list[TaskDraft]:
    raw = await llm.complete(build_extraction_prompt(summary))
    drafts = parse_task_drafts(raw)
    logger.debug("Extracted %d task drafts", len(drafts))
    return drafts
