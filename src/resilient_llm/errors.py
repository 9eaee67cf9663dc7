"""Typed errors raised by the completion client.

Every failure surfaces to the immediate caller as one of these; the client
never degrades silently except when skipping malformed stream lines and when
recovering JSON from loosely formatted model output.
"""

from __future__ import annotations

from typing import Any

_QUOTA_KEYWORDS = (
    "quota",
    "rate limit",
    "insufficient_quota",
    "exceeded",
    "billing",
)


def is_quota_exhausted_message(message: str) -> bool:
    """Check if a remote error message indicates an exhausted quota or budget."""
    lower = message.lower()
    return any(kw in lower for kw in _QUOTA_KEYWORDS)


class LLMClientError(Exception):
    """Base exception for completion client errors."""

    error_type = "client"

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})
        self.context["error_type"] = self.error_type


class ConfigurationError(LLMClientError):
    """Endpoint or credential is missing.  Never retried."""

    error_type = "configuration"


class NetworkError(LLMClientError):
    """Connection could not be established, timed out, or broke mid-read."""

    error_type = "network"


class RemoteAPIError(LLMClientError):
    """The endpoint answered with a non-2xx status after all retries."""

    error_type = "api"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: str = "",
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context=context)
        self.status_code = status_code
        self.body = body
        self.context["status_code"] = status_code

    @property
    def is_quota_exhausted(self) -> bool:
        return is_quota_exhausted_message(self.message)


class ProtocolError(LLMClientError):
    """A 2xx response did not carry the expected assistant message."""

    error_type = "protocol"

    def __init__(
        self,
        message: str,
        *,
        raw_snippet: str = "",
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context=context)
        self.raw_snippet = raw_snippet


class ParseError(LLMClientError):
    """Structured output could not be recovered from the model's content."""

    error_type = "parse"

    def __init__(
        self,
        message: str,
        *,
        content: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context=context)
        self.content = content
