"""LLM integration layer for gapwise."""

from gapwise.llm.builtin import BuiltinLLM
from gapwise.llm.engine import LLMEngine, LLMError, LLMResponse
from gapwise.llm.factory import create_engine

__all__ = [
    "BuiltinLLM",
    "LLMEngine",
    "LLMError",
    "LLMResponse",
    "create_engine",
]
