"""LLM client abstraction."""

from faqdesk.llm.client import (
    LLMAuthenticationError,
    LLMClient,
    LLMConnectionError,
    LLMContextWindowError,
    LLMError,
    LLMRateLimitError,
    LLMRequestError,
    LLMTimeoutError,
    LLMUnavailableError,
)
from faqdesk.llm.parsing import MalformedOutputError, parse_json_loose

__all__ = [
    "LLMAuthenticationError",
    "LLMClient",
    "LLMConnectionError",
    "LLMContextWindowError",
    "LLMError",
    "LLMRateLimitError",
    "LLMRequestError",
    "LLMTimeoutError",
    "LLMUnavailableError",
    "MalformedOutputError",
    "parse_json_loose",
]
