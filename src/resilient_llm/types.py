"""Shared data types for resilient-llm."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Any, Union

_ROLES = ("system", "user", "assistant")
_AUDIO_FORMATS = ("mp3", "wav")


# ---------------------------------------------------------------------------
# Message content
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextPart:
    """Plain text segment of a multi-part message."""

    text: str
    cache_control: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": "text", "text": self.text}
        if self.cache_control:
            data["cache_control"] = self.cache_control
        return data


@dataclass(frozen=True)
class ImagePart:
    """Image reference by URL (``https://`` or a ``data:`` URI)."""

    url: str
    detail: str | None = None  # "auto" | "low" | "high"

    def to_dict(self) -> dict[str, Any]:
        image: dict[str, Any] = {"url": self.url}
        if self.detail:
            image["detail"] = self.detail
        return {"type": "image_url", "image_url": image}


@dataclass(frozen=True)
class AudioPart:
    """Inline base64-encoded audio clip."""

    data: str
    format: str

    def __post_init__(self) -> None:
        if self.format not in _AUDIO_FORMATS:
            raise ValueError(f"Unsupported audio format: {self.format!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "input_audio",
            "input_audio": {"data": self.data, "format": self.format},
        }


ContentPart = Union[TextPart, ImagePart, AudioPart]


@dataclass
class Message:
    """A single conversation turn."""

    role: str
    content: str | list[ContentPart]
    reasoning_details: Any = None

    def __post_init__(self) -> None:
        if self.role not in _ROLES:
            raise ValueError(f"Invalid message role: {self.role!r}")

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.content, str):
            content: Any = self.content
        else:
            content = [part.to_dict() for part in self.content]
        data: dict[str, Any] = {"role": self.role, "content": content}
        if self.reasoning_details is not None:
            data["reasoning_details"] = self.reasoning_details
        return data


# ---------------------------------------------------------------------------
# Response shape contracts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextShape:
    def to_dict(self) -> dict[str, Any]:
        return {"type": "text"}


@dataclass(frozen=True)
class JsonObjectShape:
    def to_dict(self) -> dict[str, Any]:
        return {"type": "json_object"}


@dataclass(frozen=True)
class JsonSchemaShape:
    """Named JSON schema.  Advisory: providers may ignore ``strict``."""

    name: str
    schema: Any
    description: str | None = None
    strict: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        spec: dict[str, Any] = {"name": self.name, "schema": self.schema}
        if self.description:
            spec["description"] = self.description
        data: dict[str, Any] = {"type": "json_schema", "json_schema": spec}
        if self.strict is not None:
            data["strict"] = self.strict
        return data


ResponseShape = Union[TextShape, JsonObjectShape, JsonSchemaShape]


# ---------------------------------------------------------------------------
# Request / result
# ---------------------------------------------------------------------------

@dataclass
class CompletionRequest:
    """Everything needed for a single completion call."""

    model: str
    messages: list[Message]
    temperature: float | None = None
    max_output_tokens: int | float | None = None
    reasoning_enabled: bool | None = None
    response_shape: ResponseShape | None = None

    def __post_init__(self) -> None:
        if not self.messages:
            raise ValueError("CompletionRequest.messages must not be empty")


def _count(value: Any) -> int:
    """Coerce a reported token counter to int; unreadable values count as 0."""
    if isinstance(value, bool):
        return 0
    try:
        return int(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0


@dataclass
class Usage:
    """Token accounting reported by the endpoint."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Usage:
        return cls(
            prompt_tokens=_count(raw.get("prompt_tokens")),
            completion_tokens=_count(raw.get("completion_tokens")),
            total_tokens=_count(raw.get("total_tokens")),
        )


@dataclass
class CompletionResult:
    """Normalized one-shot completion."""

    content: str
    finish_reason: str = ""
    reasoning_details: Any = None
    usage: Usage | None = None
    model: str = ""
    raw: dict[str, Any] = field(default_factory=dict)
    latency_ms: float = 0

    @property
    def truncated(self) -> bool:
        """True when generation stopped at the token limit."""
        return self.finish_reason == "length"


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

class EventType(enum.Enum):
    """Side-channel notifications emitted by the client."""

    COMPLETION_REQUEST = "completion.request"
    COMPLETION_RESPONSE = "completion.response"
    COMPLETION_TRUNCATED = "completion.truncated"
    COMPLETION_RETRY = "completion.retry"
    COMPLETION_ERROR = "completion.error"

    STREAM_STARTED = "stream.started"
    STREAM_FINISHED = "stream.finished"


@dataclass
class ClientEvent:
    """Event emitted via the EventBus."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
