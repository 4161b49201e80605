"""Prompt templates."""

from gapwise.llm.prompts.base import PromptSection, PromptTemplate, RenderedPrompt
from gapwise.llm.prompts.gap_scenarios import GapPromptContext, GapScenarioPrompt

__all__ = [
    "GapPromptContext",
    "GapScenarioPrompt",
    "PromptSection",
    "PromptTemplate",
    "RenderedPrompt",
]
