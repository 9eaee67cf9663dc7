"""Best-effort JSON extraction from completion output.

Models asked for JSON still wrap it in markdown fences or surround it with
prose.  Recovery order:

1. whole content after stripping a code fence
2. largest ``{...}`` span
3. largest ``[...]`` span

There is no schema validation; conformance is the model's responsibility.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import re
from typing import TYPE_CHECKING, Any

from resilient_llm.errors import ParseError
from resilient_llm.types import CompletionRequest, Message, TextPart

if TYPE_CHECKING:
    from .client import AsyncLLMClient

_logger = logging.getLogger(__name__)

JSON_INSTRUCTION = (
    "\n\nRespond with valid JSON only. No markdown, no code blocks, just raw JSON."
)

_OPEN_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*")
_CLOSE_FENCE = re.compile(r"\s*```\s*$")
_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")
_ARRAY_SPAN = re.compile(r"\[[\s\S]*\]")


def with_json_instruction(messages: list[Message]) -> list[Message]:
    """Return a copy of *messages* with the JSON instruction on the last user turn.

    A non-user final message is left alone.  The caller's list and messages
    are never mutated.
    """
    result = list(messages)
    if not result or result[-1].role != "user":
        return result

    last = result[-1]
    if isinstance(last.content, str):
        content: str | list[Any] = last.content + JSON_INSTRUCTION
    else:
        parts = list(last.content)
        if parts and isinstance(parts[-1], TextPart):
            parts[-1] = dataclasses.replace(
                parts[-1], text=parts[-1].text + JSON_INSTRUCTION,
            )
        else:
            parts.append(TextPart(text=JSON_INSTRUCTION))
        content = parts
    result[-1] = dataclasses.replace(last, content=content)
    return result


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang fence and a trailing ``` fence, if present."""
    t = text.strip()
    if t.startswith("```"):
        t = _OPEN_FENCE.sub("", t, count=1)
        t = _CLOSE_FENCE.sub("", t, count=1)
    return t.strip()


def parse_json_loose(content: str) -> Any:
    """Parse *content* as JSON, falling back to the largest object/array span.

    Raises ``ParseError`` carrying the original content when every strategy
    fails.
    """
    cleaned = strip_code_fences(content)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # Objects first: callers usually expect {"items": [...]} wrappers
    for pattern in (_OBJECT_SPAN, _ARRAY_SPAN):
        match = pattern.search(cleaned)
        if match is None:
            continue
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            _logger.debug("Recovered %s span is not valid JSON", pattern.pattern)

    raise ParseError(
        f"Failed to parse JSON response: {content}", content=content,
    )


async def generate_json(client: AsyncLLMClient, request: CompletionRequest) -> Any:
    """Request JSON output with a single one-shot call and parse it loosely."""
    prepared = dataclasses.replace(
        request, messages=with_json_instruction(request.messages),
    )
    result = await client.complete(prepared)
    return parse_json_loose(result.content)
