"""LLMEngine: abstract interface for the scenario-suggestion model."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from gapwise.errors import GapwiseError


@dataclass
class LLMResponse:
    """Result from an LLM generation call."""

    text: str
    """The generated text content."""

    model: str
    """Model identifier that produced the response."""

    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens


@dataclass
class LLMMessage:
    """A single message in a conversation."""

    role: str
    """One of ``'system'``, ``'user'``, or ``'assistant'``."""

    content: str


@dataclass
class GenerationRequest:
    """Parameters for an LLM generation call."""

    messages: list[LLMMessage]
    """Conversation messages to send to the model."""

    model: str | None = None
    """Override the default model for this request."""

    temperature: float = 0.2
    """Sampling temperature (lower = more deterministic)."""

    max_tokens: int = 4096
    """Maximum tokens to generate."""


class LLMEngine(ABC):
    """Abstract interface for LLM generation.

    The scenario suggester talks to a model only through this interface,
    so tests can substitute a fake engine.
    """

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> LLMResponse:
        """Send a generation request and return the response.

        Raises:
            LLMError: On any LLM-related failure (network, auth, rate limit, etc.).
        """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the default model identifier for this engine."""


class LLMError(GapwiseError):
    """Base exception for LLM-related errors."""


class LLMAuthError(LLMError):
    """Raised when authentication fails (invalid or missing API key)."""


class LLMRateLimitError(LLMError):
    """Raised when the provider rate limit is hit."""


class LLMConnectionError(LLMError):
    """Raised when the provider cannot be reached."""


class LLMResponseError(LLMError):
    """Raised when the provider answers with a completion that carries no message."""
