"""Data models for gapwise."""

from gapwise.models.scenario import ScenarioPriority, TestScenario

__all__ = [
    "ScenarioPriority",
    "TestScenario",
]
