"""Resilient async client for OpenAI-compatible chat-completion endpoints."""

from resilient_llm.config import ClientConfig, load_config
from resilient_llm.errors import (
    ConfigurationError,
    LLMClientError,
    NetworkError,
    ParseError,
    ProtocolError,
    RemoteAPIError,
    is_quota_exhausted_message,
)
from resilient_llm.events.bus import EventBus
from resilient_llm.llm.client import AsyncLLMClient
from resilient_llm.llm.structured import generate_json
from resilient_llm.types import (
    AudioPart,
    ClientEvent,
    CompletionRequest,
    CompletionResult,
    EventType,
    ImagePart,
    JsonObjectShape,
    JsonSchemaShape,
    Message,
    TextPart,
    TextShape,
    Usage,
)

__version__ = "0.1.0"

__all__ = [
    "AsyncLLMClient",
    "AudioPart",
    "ClientConfig",
    "ClientEvent",
    "CompletionRequest",
    "CompletionResult",
    "ConfigurationError",
    "EventBus",
    "EventType",
    "ImagePart",
    "JsonObjectShape",
    "JsonSchemaShape",
    "LLMClientError",
    "Message",
    "NetworkError",
    "ParseError",
    "ProtocolError",
    "RemoteAPIError",
    "TextPart",
    "TextShape",
    "Usage",
    "generate_json",
    "is_quota_exhausted_message",
    "load_config",
]
