"""Completion client, retry policy, stream decoding and JSON extraction."""

from resilient_llm.llm.client import AsyncLLMClient, build_request_body
from resilient_llm.llm.retry import (
    DEFAULT_RETRY_POLICY,
    RetryPolicy,
    backoff_delay,
    send_with_retry,
)
from resilient_llm.llm.stream import SSELineDecoder
from resilient_llm.llm.structured import (
    generate_json,
    parse_json_loose,
    strip_code_fences,
    with_json_instruction,
)

__all__ = [
    "AsyncLLMClient",
    "DEFAULT_RETRY_POLICY",
    "RetryPolicy",
    "SSELineDecoder",
    "backoff_delay",
    "build_request_body",
    "generate_json",
    "parse_json_loose",
    "send_with_retry",
    "strip_code_fences",
    "with_json_instruction",
]
