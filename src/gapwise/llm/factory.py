"""Factory for creating an ``LLMEngine`` from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from gapwise.llm.builtin import BuiltinLLM, RetryConfig
from gapwise.llm.engine import LLMEngine, LLMError

if TYPE_CHECKING:
    from gapwise.config import LLMConfig


def create_engine(config: LLMConfig) -> LLMEngine:
    """Instantiate the ``LLMEngine`` for an ``LLMConfig``.

    Supports modes:
    - ``builtin``: LiteLLM-based engine for API providers
    - ``ollama``: LiteLLM against a local Ollama server

    Raises:
        LLMError: If the model is not configured, or the mode is disabled or unknown.
    """
    if config.mode == "disabled":
        raise LLMError("LLM suggestions are disabled (llm.mode: disabled)")
    if config.mode not in {"builtin", "ollama"}:
        raise LLMError(f"Unsupported LLM mode: {config.mode!r}")
    if not config.model:
        raise LLMError(
            "No LLM model configured. Set 'llm.model' in .gapwise.yml or GAPWISE_LLM_MODEL."
        )

    if config.mode == "ollama":
        model = config.model if config.model.startswith("ollama/") else f"ollama/{config.model}"
        return BuiltinLLM(
            model,
            provider="ollama",
            base_url=config.base_url or None,
            retry=RetryConfig(max_retries=config.max_retries),
            requests_per_minute=config.requests_per_minute,
        )

    return BuiltinLLM(
        config.model,
        provider=config.provider or None,
        api_key=config.api_key or None,
        base_url=config.base_url or None,
        retry=RetryConfig(max_retries=config.max_retries),
        requests_per_minute=config.requests_per_minute,
    )
