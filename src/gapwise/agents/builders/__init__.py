"""Scenario builders for gapwise."""

from gapwise.agents.builders.scenarios import (
    DeterministicScenarioBuilder,
    LLMScenarioBuilder,
    ScenarioSuggester,
    SuggestionRequest,
    parse_scenario_response,
    select_suggester,
    synthesize_scenarios,
)

__all__ = [
    "DeterministicScenarioBuilder",
    "LLMScenarioBuilder",
    "ScenarioSuggester",
    "SuggestionRequest",
    "parse_scenario_response",
    "select_suggester",
    "synthesize_scenarios",
]
