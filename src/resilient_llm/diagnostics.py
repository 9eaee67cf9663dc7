"""Debug channel: request/response summaries for completion calls.

Enabled by ``ClientConfig.debug``.  Summaries go to the ``logging`` tree and,
when a path is given, are also appended to a JSONL file.  Nothing here may
raise into the caller or change what a call returns.

JSONL line: {"_seq": 0, "_ts": "...", "kind": "request", ...}
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Sequence

from resilient_llm.types import Message, Usage

_logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 500


def _preview(message: Message) -> str:
    if isinstance(message.content, str):
        text = message.content
        suffix = "..." if len(text) > _PREVIEW_CHARS else ""
        return text[:_PREVIEW_CHARS] + suffix
    parts = [part.to_dict() for part in message.content]
    return json.dumps(parts, ensure_ascii=False)[:_PREVIEW_CHARS]


class DebugChannel:
    """Emit request/response summaries when *enabled*."""

    def __init__(self, enabled: bool = False, path: Path | str | None = None) -> None:
        self.enabled = enabled
        self.path = Path(path) if path else None
        self._seq = 0

    def _write(self, record: dict[str, Any]) -> None:
        if self.path is None:
            return
        record["_seq"] = self._seq
        record["_ts"] = time.strftime("%Y-%m-%dT%H:%M:%S")
        self._seq += 1
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
        except OSError as e:
            _logger.debug("Debug log write to %s failed: %s", self.path, e)

    def log_request(
        self,
        *,
        model: str,
        url: str,
        temperature: float,
        max_tokens: int | None,
        messages: Sequence[Message],
        stream: bool = False,
    ) -> None:
        """Record the outgoing request summary."""
        if not self.enabled:
            return
        previews = [f"[{i}] {m.role}: {_preview(m)}" for i, m in enumerate(messages)]
        _logger.info(
            "[LLM] request model=%s url=%s temperature=%s max_tokens=%s "
            "messages=%d stream=%s",
            model, url, temperature, max_tokens or "unset", len(messages), stream,
        )
        for line in previews:
            _logger.debug("[LLM]   %s", line)
        self._write({
            "kind": "request",
            "model": model,
            "url": url,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages_count": len(messages),
            "stream": stream,
            "previews": previews,
        })

    def log_response(
        self,
        *,
        latency_ms: float,
        finish_reason: str,
        usage: Usage | None,
        content: str,
    ) -> None:
        """Record the response summary."""
        if not self.enabled:
            return
        if usage is not None:
            usage_text = (
                f"prompt {usage.prompt_tokens} / completion "
                f"{usage.completion_tokens} / total {usage.total_tokens}"
            )
        else:
            usage_text = "not reported"
        _logger.info(
            "[LLM] response in %.0fms finish_reason=%s usage=%s",
            latency_ms, finish_reason, usage_text,
        )
        _logger.debug("[LLM]   content: %s", content[:_PREVIEW_CHARS] or "(empty)")
        self._write({
            "kind": "response",
            "latency_ms": round(latency_ms, 1),
            "finish_reason": finish_reason,
            "usage": vars(usage) if usage is not None else {},
            "response_preview": content[:200],
        })
