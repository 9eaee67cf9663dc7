"""Incremental decoder for chat-completion server-sent events.

Text arrives in arbitrary chunks; complete lines are peeled off the front of
the buffer and the unterminated tail waits for the next chunk.

Frame format, one per line::

    data: {"choices": [{"delta": {"content": "Hel"}}]}
    data: {"choices": [{"delta": {"content": "lo"}}]}
    data: [DONE]
"""

from __future__ import annotations

import json
import logging
from typing import Any

_logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "data: [DONE]"


def extract_delta(event: Any) -> str | None:
    """Return ``choices[0].delta.content`` if it is a non-empty string."""
    if not isinstance(event, dict):
        return None
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


def decode_line(line: str) -> str | None:
    """Decode one SSE line into a text delta, or ``None`` to skip it."""
    stripped = line.strip()
    if not stripped or stripped == DONE_SENTINEL:
        return None
    if not stripped.startswith(DATA_PREFIX):
        return None
    try:
        event = json.loads(stripped[len(DATA_PREFIX):])
    except json.JSONDecodeError:
        _logger.debug("Skipping malformed stream frame: %.200s", stripped)
        return None
    return extract_delta(event)


class SSELineDecoder:
    """Buffers partial lines across reads and yields text deltas in order."""

    def __init__(self) -> None:
        self.buffer = ""

    def feed(self, chunk: str) -> list[str]:
        """Feed a decoded text chunk.  Returns the deltas it completed."""
        self.buffer += chunk
        lines = self.buffer.split("\n")
        self.buffer = lines.pop()

        deltas: list[str] = []
        for line in lines:
            delta = decode_line(line)
            if delta is not None:
                deltas.append(delta)
        return deltas

    def finish(self) -> list[str]:
        """Flush a trailing line that arrived without a newline."""
        tail, self.buffer = self.buffer, ""
        delta = decode_line(tail)
        return [delta] if delta is not None else []
