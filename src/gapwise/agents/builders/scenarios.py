"""Scenario suggesters: turn classified gaps into candidate test scenarios.

Two implementations share one interface:

* ``DeterministicScenarioBuilder`` derives scenarios from code gaps alone,
  grouping them by class then method;
* ``LLMScenarioBuilder`` asks a language model, through ``LLMEngine``, for
  scenarios covering the top gaps of every kind.

``select_suggester`` picks one by availability; callers never branch on it.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from gapwise.adapters.coverage.base import CoverageMetricKind
from gapwise.errors import CollaboratorError, clip_fragment
from gapwise.llm.engine import GenerationRequest, LLMError
from gapwise.llm.factory import create_engine
from gapwise.llm.prompts.gap_scenarios import GapPromptContext, GapScenarioPrompt
from gapwise.models.scenario import ScenarioPriority, TestScenario

if TYPE_CHECKING:
    from gapwise.agents.analyzers.gaps import CoverageGap, GapSet
    from gapwise.agents.analyzers.openapi import ApiContract
    from gapwise.agents.analyzers.requirements import RuleCatalog
    from gapwise.config import LLMConfig
    from gapwise.llm.engine import LLMEngine

logger = logging.getLogger(__name__)

SCENARIO_ID_PREFIX = "TS-GAP-"
COVERAGE_GAP_SOURCE = "Coverage Gap"

_SCENARIO_ARRAY = re.compile(r"\[\s*\{[\s\S]*\}\s*\]")
_REQUIRED_FIELDS = ("id", "title", "description", "priority")


@dataclass
class SuggestionRequest:
    """Inputs available to a scenario suggester."""

    gaps: GapSet
    contract: ApiContract
    catalog: RuleCatalog


class ScenarioSuggester(ABC):
    """Produces test scenarios for a set of gaps."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Suggester identifier, reported alongside the scenarios."""

    @abstractmethod
    async def suggest(self, request: SuggestionRequest) -> list[TestScenario]:
        """Return scenarios addressing *request*'s gaps.

        Raises:
            CollaboratorError: If an external collaborator fails or returns
                unusable content.
        """


# ── Deterministic synthesis ──────────────────────────────────────


def _group_by_class(
    code_gaps: list[CoverageGap],
) -> dict[str, dict[str, set[CoverageMetricKind]]]:
    groups: dict[str, dict[str, set[CoverageMetricKind]]] = {}
    for gap in code_gaps:
        methods = groups.setdefault(gap.qualified_name, {})
        if gap.method_name:
            methods.setdefault(gap.method_name, set()).add(gap.kind)
    return groups


def _method_scenario(
    scenario_id: str,
    class_name: str,
    method_name: str,
    kinds: set[CoverageMetricKind],
) -> TestScenario:
    steps = [f"Initialize test data for {method_name}"]
    expected: list[str] = []

    if CoverageMetricKind.BRANCH in kinds:
        steps.append(f"Call {method_name} with data to trigger branch A")
        steps.append(f"Call {method_name} with data to trigger branch B")
        expected.append("All branches of the method are executed")
    else:
        steps.append(f"Call {method_name} with standard test data")

    if CoverageMetricKind.LINE in kinds:
        expected.append("All lines of the method are executed")
    expected.append(f"{method_name} returns expected result")

    return TestScenario(
        id=scenario_id,
        title=f"Test {class_name}.{method_name}",
        description=f"Improve coverage for {class_name}.{method_name}",
        priority=ScenarioPriority.HIGH.value,
        source_requirements=[COVERAGE_GAP_SOURCE],
        steps=steps,
        expected_results=expected,
    )


def _class_scenario(scenario_id: str, class_name: str) -> TestScenario:
    return TestScenario(
        id=scenario_id,
        title=f"Test {class_name}",
        description=f"Improve coverage for {class_name}",
        priority=ScenarioPriority.HIGH.value,
        source_requirements=[COVERAGE_GAP_SOURCE],
        steps=[
            f"Initialize instance of {class_name}",
            "Call methods on the instance",
            "Verify class behavior",
        ],
        expected_results=[
            "Class functionality works as expected",
            "Coverage thresholds are met",
        ],
    )


def synthesize_scenarios(code_gaps: list[CoverageGap]) -> list[TestScenario]:
    """Derive one scenario per method with gaps, or per class without method gaps.

    Classes and methods are visited in the order they first appear in
    *code_gaps*; identifiers run ``TS-GAP-1``, ``TS-GAP-2``, ... in that order.
    """
    scenarios: list[TestScenario] = []

    def _next_id() -> str:
        return f"{SCENARIO_ID_PREFIX}{len(scenarios) + 1}"

    for class_name, methods in _group_by_class(code_gaps).items():
        for method_name, kinds in methods.items():
            scenarios.append(_method_scenario(_next_id(), class_name, method_name, kinds))
        if not methods:
            scenarios.append(_class_scenario(_next_id(), class_name))

    return scenarios


class DeterministicScenarioBuilder(ScenarioSuggester):
    """Rule-based scenario synthesis from code gaps; never fails."""

    @property
    def name(self) -> str:
        return "deterministic"

    async def suggest(self, request: SuggestionRequest) -> list[TestScenario]:
        scenarios = synthesize_scenarios(request.gaps.code_gaps)
        logger.info("Synthesized %d scenarios from code gaps", len(scenarios))
        return scenarios


# ── LLM-backed suggestions ───────────────────────────────────────


def parse_scenario_response(text: str) -> list[TestScenario]:
    """Extract scenarios from the first JSON array of objects in *text*.

    Every element must carry a non-empty id, title, description and
    priority; a single invalid element rejects the whole response.

    Raises:
        CollaboratorError: If no array is found, it is not valid JSON, or an
            element is incomplete.
    """
    match = _SCENARIO_ARRAY.search(text)
    if match is None:
        raise CollaboratorError(f"No JSON scenario array in response: {clip_fragment(text)!r}")

    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise CollaboratorError(f"Scenario array is not valid JSON: {exc.msg}") from exc

    scenarios: list[TestScenario] = []
    for item in payload:
        if not isinstance(item, dict) or not all(item.get(key) for key in _REQUIRED_FIELDS):
            raise CollaboratorError(
                f"Invalid scenario structure: {clip_fragment(json.dumps(item))}"
            )
        scenarios.append(TestScenario.from_dict(item))
    return scenarios


class LLMScenarioBuilder(ScenarioSuggester):
    """Asks a language model for scenarios covering the top gaps."""

    def __init__(
        self,
        engine: LLMEngine,
        *,
        max_gaps: int = 5,
        temperature: float = 0.2,
        max_tokens: int = 4096,
    ) -> None:
        self._engine = engine
        self._max_gaps = max_gaps
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._prompt = GapScenarioPrompt()

    @property
    def name(self) -> str:
        return f"llm:{self._engine.model_name}"

    async def suggest(self, request: SuggestionRequest) -> list[TestScenario]:
        rendered = self._prompt.render(
            GapPromptContext(
                gaps=request.gaps,
                contract=request.contract,
                catalog=request.catalog,
                max_gaps=self._max_gaps,
            )
        )
        logger.info("Requesting scenario suggestions from %s", self._engine.model_name)
        try:
            response = await self._engine.generate(
                GenerationRequest(
                    messages=rendered.messages,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                )
            )
        except LLMError as exc:
            raise CollaboratorError(f"Scenario suggestion call failed: {exc}") from exc
        except Exception as exc:
            logger.exception("Unexpected error from %s", self._engine.model_name)
            raise CollaboratorError(
                f"Scenario suggestion call failed: {type(exc).__name__}: {exc}"
            ) from exc

        scenarios = parse_scenario_response(response.text)
        logger.info("Parsed %d scenarios from model response", len(scenarios))
        return scenarios


def select_suggester(
    config: LLMConfig,
    *,
    max_gaps: int = 5,
    engine: LLMEngine | None = None,
) -> ScenarioSuggester:
    """Return the LLM suggester when a model is usable, else the deterministic one.

    Args:
        config: LLM configuration.
        max_gaps: Gaps of each kind included in the prompt.
        engine: Pre-built engine; skips engine creation when given.
    """
    if engine is None:
        if not config.is_configured:
            logger.info("No LLM configured; using deterministic scenario synthesis")
            return DeterministicScenarioBuilder()
        try:
            engine = create_engine(config)
        except LLMError as exc:
            logger.warning("LLM unavailable (%s); using deterministic scenario synthesis", exc)
            return DeterministicScenarioBuilder()

    return LLMScenarioBuilder(
        engine,
        max_gaps=max_gaps,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )
