"""LiteLLM-based text generation client."""

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    BadRequestError,
    ContextWindowExceededError,
    InternalServerError,
    NotFoundError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
)

from faqdesk.constants import DEFAULT_TEMPERATURE, JSON_TEMPERATURE, MAX_TOKENS

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base exception for generator failures."""


class LLMConnectionError(LLMError):
    """The provider could not be reached."""


class LLMAuthenticationError(LLMError):
    """The provider rejected the credentials."""


class LLMRateLimitError(LLMError):
    """The provider is throttling requests."""


class LLMTimeoutError(LLMError):
    """The provider did not answer in time."""


class LLMContextWindowError(LLMError):
    """The prompt is longer than the model accepts."""


class LLMUnavailableError(LLMError):
    """The provider or model is down or unknown."""


class LLMRequestError(LLMError):
    """The provider rejected the request."""


# Checked in order; Timeout must precede APIConnectionError and
# ContextWindowExceededError must precede BadRequestError.
_ERROR_MAP: tuple[tuple[type[Exception], type[LLMError], str], ...] = (
    (AuthenticationError, LLMAuthenticationError, "Authentication failed"),
    (RateLimitError, LLMRateLimitError, "Rate limit exceeded"),
    (Timeout, LLMTimeoutError, "Request timed out"),
    (APIConnectionError, LLMConnectionError, "Connection failed"),
    (ContextWindowExceededError, LLMContextWindowError, "Context window exceeded"),
    (ServiceUnavailableError, LLMUnavailableError, "Service unavailable"),
    (InternalServerError, LLMUnavailableError, "Provider error"),
    (NotFoundError, LLMUnavailableError, "Model not found"),
    (BadRequestError, LLMRequestError, "Bad request"),
    (APIError, LLMError, "LLM API error"),
)

JSON_INSTRUCTION = "Respond with valid JSON only."


def translate_error(e: Exception) -> LLMError:
    """Map a LiteLLM exception onto the LLMError family."""
    for source, target, label in _ERROR_MAP:
        if isinstance(e, source):
            return target(f"{label}: {e}")
    return LLMError(f"LLM API error: {e}")


def _status_of(e: Exception) -> int | None:
    status = getattr(e, "status_code", None)
    if status is None:
        status = getattr(getattr(e, "response", None), "status_code", None)
    return status if isinstance(status, int) else None


class LLMClient:
    """Generator used for answers, clarifying questions, digests and ticket drafts.

    Every call goes through litellm, so any provider it supports can be
    configured by name. When ``log_path`` is set each request is appended to a
    JSONL file together with its response or error.
    """

    def __init__(
        self,
        provider: str,
        model: str,
        api_key: str | None = None,
        endpoint: str | None = None,
        log_path: Path | None = None,
        default_temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = MAX_TOKENS,
        json_temperature: float = JSON_TEMPERATURE,
    ):
        """Initialize the client.

        Args:
            provider: LLM provider (openai, anthropic, google, groq, ollama).
            model: Model name.
            api_key: Optional API key (litellm falls back to env vars).
            endpoint: Optional base URL, used for Ollama.
            log_path: Optional JSONL file for query logging.
            default_temperature: Temperature used when a call does not set one.
            max_tokens: Response cap used when a call does not set one.
            json_temperature: Temperature for structured (JSON) output.
        """
        self.provider = provider
        self.model = model
        self.api_key = api_key
        self.endpoint = endpoint
        self.log_path = log_path
        self.default_temperature = default_temperature
        self.max_tokens = max_tokens
        self.json_temperature = json_temperature

    @property
    def model_string(self) -> str:
        """Model name in litellm's ``provider/model`` form; OpenAI needs no prefix."""
        if self.provider == "openai":
            return self.model
        return f"{self.provider}/{self.model}"

    def _record(
        self,
        request: dict[str, Any],
        started: float,
        response: str | None = None,
        error: Exception | None = None,
    ) -> None:
        if not self.log_path:
            return

        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "provider": self.provider,
            "model": self.model,
            "request": request,
            "response": response,
            "duration_ms": int((time.perf_counter() - started) * 1000),
            "error": str(error) if error else None,
        }
        if error is not None and _status_of(error) is not None:
            entry["status_code"] = _status_of(error)

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            logger.debug(f"Could not write LLM query log: {e}")

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate a completion.

        Raises:
            LLMError: If the provider call fails for any reason.
        """
        request: dict[str, Any] = {
            "system_prompt": system_prompt,
            "prompt": prompt,
            "temperature": self.default_temperature if temperature is None else temperature,
            "max_tokens": self.max_tokens if max_tokens is None else max_tokens,
        }

        messages = [{"role": "user", "content": prompt}]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})

        kwargs: dict[str, Any] = {
            "model": self.model_string,
            "messages": messages,
            "temperature": request["temperature"],
            "max_tokens": request["max_tokens"],
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.endpoint and self.provider == "ollama":
            kwargs["api_base"] = self.endpoint

        started = time.perf_counter()
        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            self._record(request, started, error=e)
            raise translate_error(e) from e

        text = str(response.choices[0].message.content or "")
        self._record(request, started, response=text)
        return text

    async def generate_with_json(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate a completion that should be a JSON object.

        The raw text is returned; it may still be fenced or wrapped in prose,
        see ``faqdesk.llm.parsing.parse_json_loose``.
        """
        system = f"{system_prompt}\n\n{JSON_INSTRUCTION}" if system_prompt else JSON_INSTRUCTION
        return await self.generate(
            prompt,
            system_prompt=system,
            temperature=self.json_temperature,
            max_tokens=max_tokens,
        )
