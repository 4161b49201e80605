"""Base prompt template system rendering labelled sections into LLM messages."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from gapwise.llm.engine import LLMMessage

ContextT = TypeVar("ContextT")


@dataclass
class PromptSection:
    """A labelled block of content within a rendered prompt."""

    label: str
    content: str


@dataclass
class RenderedPrompt:
    """The final output of a prompt template, a list of LLM messages."""

    messages: list[LLMMessage] = field(default_factory=list)

    @property
    def system_message(self) -> str:
        """Return the first system message content, or empty string."""
        for msg in self.messages:
            if msg.role == "system":
                return msg.content
        return ""

    @property
    def user_message(self) -> str:
        """Return the first user message content, or empty string."""
        for msg in self.messages:
            if msg.role == "user":
                return msg.content
        return ""


class PromptTemplate(ABC, Generic[ContextT]):
    """Abstract base class for prompt templates.

    Subclasses implement ``_system_instruction`` and ``_build_sections``;
    the base class joins the sections and renders the messages.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Template identifier (e.g. 'gap_scenarios')."""

    @abstractmethod
    def _system_instruction(self, context: ContextT) -> str:
        """Return the system-level instruction text."""

    @abstractmethod
    def _build_sections(self, context: ContextT) -> list[PromptSection]:
        """Return ordered sections that form the user message body."""

    def render(self, context: ContextT) -> RenderedPrompt:
        """Render the template into a system and a user message."""
        system = self._system_instruction(context)
        user_body = _join_sections(self._build_sections(context))

        return RenderedPrompt(
            messages=[
                LLMMessage(role="system", content=system),
                LLMMessage(role="user", content=user_body),
            ]
        )


def _join_sections(sections: list[PromptSection]) -> str:
    """Join non-empty prompt sections into a single user-message string."""
    blocks = [f"## {s.label}\n\n{s.content}" for s in sections if s.content]
    return "\n\n---\n\n".join(blocks)
