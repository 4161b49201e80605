"""Built-in LLM adapter using LiteLLM for multi-provider support.

Every failure leaving ``BuiltinLLM.generate`` is an ``LLMError``: LiteLLM
exceptions are translated by ``_translate_failure`` and a completion with
an unexpected shape becomes ``LLMResponseError``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

import litellm
from litellm.exceptions import APIConnectionError as LiteLLMConnectionError
from litellm.exceptions import APIError as LiteLLMAPIError
from litellm.exceptions import AuthenticationError as LiteLLMAuthError
from litellm.exceptions import RateLimitError as LiteLLMRateLimitError

from gapwise.llm.engine import (
    GenerationRequest,
    LLMAuthError,
    LLMConnectionError,
    LLMEngine,
    LLMError,
    LLMRateLimitError,
    LLMResponse,
    LLMResponseError,
)

logger = logging.getLogger(__name__)

litellm.suppress_debug_info = True

_SERVER_ERROR_THRESHOLD = 500
_TRANSIENT_MARKERS = ("timeout", "timed out", "overloaded")


@dataclass
class RetryConfig:
    """Retry behaviour for rate limits, connection drops and 5xx responses."""

    max_retries: int = 3
    """Retries after the first attempt; ``0`` sends the request once."""

    base_delay: float = 1.0
    max_delay: float = 60.0
    backoff_factor: float = 2.0


class _RequestThrottle:
    """Spaces request start times so at most *requests_per_minute* begin per minute."""

    def __init__(self, requests_per_minute: int) -> None:
        self.interval = 60.0 / requests_per_minute if requests_per_minute > 0 else 0.0
        self.next_slot = 0.0

    async def wait(self) -> None:
        now = time.monotonic()
        delay = self.next_slot - now
        self.next_slot = max(now, self.next_slot) + self.interval
        if delay > 0:
            await asyncio.sleep(delay)


def _translate_failure(exc: Exception) -> tuple[LLMError, bool]:
    """Map a LiteLLM failure onto an ``LLMError`` and say whether a retry may help.

    Anything LiteLLM raises outside its ``APIError`` tree (bad requests,
    unknown providers, client-side validation) is final.
    """
    message = str(exc) or type(exc).__name__
    if isinstance(exc, LiteLLMAuthError):
        return LLMAuthError(message), False
    if isinstance(exc, LiteLLMRateLimitError):
        return LLMRateLimitError(message), True
    if isinstance(exc, LiteLLMConnectionError):
        return LLMConnectionError(message), True
    if isinstance(exc, LiteLLMAPIError):
        status = getattr(exc, "status_code", None)
        transient = isinstance(status, int) and status >= _SERVER_ERROR_THRESHOLD
        return LLMError(message), transient or any(m in message.lower() for m in _TRANSIENT_MARKERS)
    return LLMError(f"{type(exc).__name__}: {message}"), False


class BuiltinLLM(LLMEngine):
    """LiteLLM-backed engine for scenario suggestion.

    Any provider LiteLLM routes is selected through the ``model`` string
    (``"gpt-4o"``, ``"anthropic/claude-3-5-sonnet"``, ``"ollama/llama3"``).
    """

    def __init__(  # noqa: PLR0913
        self,
        model: str,
        *,
        provider: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        retry: RetryConfig | None = None,
        requests_per_minute: int = 60,
    ) -> None:
        self._model = model
        self._provider = provider
        self._api_key = api_key
        self._base_url = base_url
        self._retry = retry or RetryConfig()
        self._throttle = _RequestThrottle(requests_per_minute)

    @property
    def model_name(self) -> str:
        return self._model

    async def generate(self, request: GenerationRequest) -> LLMResponse:
        model = request.model or self._model
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._base_url:
            kwargs["api_base"] = self._base_url

        logger.debug(
            "Requesting completion from %s (provider: %s, %d messages)",
            model,
            self._provider or "auto",
            len(request.messages),
        )
        completion = await self._complete(kwargs)
        return self._to_response(completion, model)

    # ── Internal helpers ──────────────────────────────────────────

    async def _complete(self, kwargs: dict[str, Any]) -> Any:
        """Call ``litellm.acompletion``, retrying failures a retry may fix."""
        failures = 0
        while True:
            await self._throttle.wait()
            try:
                return await litellm.acompletion(**kwargs)
            except Exception as exc:
                error, retryable = _translate_failure(exc)
                failures += 1
                if not retryable or failures > self._retry.max_retries:
                    raise error from exc
                delay = self._backoff_delay(failures - 1)
                logger.warning(
                    "%s from %s (attempt %d/%d), retrying in %.1fs",
                    type(error).__name__,
                    kwargs["model"],
                    failures,
                    self._retry.max_retries + 1,
                    delay,
                )
                await asyncio.sleep(delay)

    def _backoff_delay(self, attempt: int) -> float:
        delay = self._retry.base_delay * (self._retry.backoff_factor**attempt)
        return min(delay, self._retry.max_delay)

    @staticmethod
    def _to_response(completion: Any, model: str) -> LLMResponse:
        """Read the first choice's text and token usage off a LiteLLM completion.

        Raises:
            LLMResponseError: If the completion has no choices or no message.
        """
        try:
            message = completion.choices[0].message
            text = message.content or ""
        except (AttributeError, IndexError, TypeError) as exc:
            raise LLMResponseError(f"Completion from {model} has no message: {exc}") from exc

        usage = getattr(completion, "usage", None)
        return LLMResponse(
            text=text,
            model=getattr(completion, "model", None) or model,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )
