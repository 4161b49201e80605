"""Test scenario model shared by the scenario suggesters and the reporters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ScenarioPriority(Enum):
    """Scenario urgency."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


@dataclass
class TestScenario:
    """A candidate test scenario proposed to close one or more gaps."""

    __test__ = False  # not a pytest test class

    id: str
    """Scenario identifier (e.g. ``TS-GAP-1``)."""

    title: str
    description: str
    priority: str
    """``High``, ``Medium`` or ``Low``; free text when proposed by an LLM."""

    source_requirements: list[str] = field(default_factory=list)
    """Tags naming what the scenario originates from (e.g. ``Coverage Gap``)."""

    steps: list[str] = field(default_factory=list)
    """Ordered steps to execute."""

    expected_results: list[str] = field(default_factory=list)
    """Ordered expected outcomes."""

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "source_requirements": list(self.source_requirements),
            "steps": list(self.steps),
            "expected_results": list(self.expected_results),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TestScenario:
        """Build a scenario from snake_case or camelCase keys."""

        def _strings(*keys: str) -> list[str]:
            for key in keys:
                value = data.get(key)
                if isinstance(value, list):
                    return [str(item) for item in value]
            return []

        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            description=str(data.get("description", "")),
            priority=str(data.get("priority", "")),
            source_requirements=_strings("source_requirements", "sourceRequirements"),
            steps=_strings("steps"),
            expected_results=_strings("expected_results", "expectedResults"),
        )
