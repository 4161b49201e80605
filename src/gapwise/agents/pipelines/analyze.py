"""Analyze pipeline: reconcile coverage sources, classify gaps, suggest scenarios.

Steps:
1. Check that all four inputs exist (missing input aborts before any parsing)
2. Parse the coverage report, the execution report and the contract +
   requirements concurrently
3. Map business rules to contract endpoints
4. Reconcile trace-derived endpoint coverage with the contract
5. Run the three gap passes
6. Ask the scenario suggester, falling back to deterministic synthesis
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from gapwise.adapters.coverage.base import CoverageMetricKind, summarize_tree
from gapwise.adapters.coverage.jacoco import JaCoCoAdapter
from gapwise.adapters.execution.base import ExecutionTrace, reconcile_endpoint_coverage
from gapwise.adapters.execution.karate import KarateAdapter
from gapwise.agents.analyzers.gaps import (
    CoverageThresholds,
    GapClassifier,
    summarize_gap_suggestions,
)
from gapwise.agents.analyzers.openapi import ApiContract, analyze_openapi_spec
from gapwise.agents.analyzers.requirements import (
    RuleCatalog,
    map_rules_to_endpoints,
    parse_requirements_file,
)
from gapwise.agents.base import BaseAgent, TaskInput, TaskOutput, TaskStatus
from gapwise.agents.builders.scenarios import (
    DeterministicScenarioBuilder,
    ScenarioSuggester,
    SuggestionRequest,
)
from gapwise.errors import (
    CollaboratorError,
    DiagnosticKind,
    DiagnosticLog,
    GapwiseError,
    MalformedDocumentError,
    MissingInputError,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from gapwise.adapters.coverage.base import CoverageAdapter, CoverageSummary, CoverageTree
    from gapwise.adapters.execution.base import (
        ApiCoverageStats,
        EndpointCoverageMap,
        ExecutionAdapter,
    )
    from gapwise.agents.analyzers.gaps import ApiGap, BusinessRuleGap, CoverageGap
    from gapwise.config import GapwiseConfig
    from gapwise.errors import Diagnostic
    from gapwise.models.scenario import TestScenario

logger = logging.getLogger(__name__)

SUGGESTION_SOURCE = "suggestions"

T = TypeVar("T")


# ── Configuration & inputs ───────────────────────────────────────


@dataclass
class AnalysisInputs:
    """Paths of the four documents one analysis consumes."""

    coverage: Path
    """JaCoCo XML report."""

    execution: Path
    """Karate / Cucumber JSON report."""

    contract: Path
    """OpenAPI contract (JSON or YAML)."""

    requirements: Path
    """Free-text requirements document."""

    def check(self) -> None:
        """Raise ``MissingInputError`` for the first input that does not exist."""
        for path in (self.coverage, self.execution, self.contract, self.requirements):
            if not Path(path).is_file():
                raise MissingInputError(str(path))


@dataclass
class AnalysisPipelineConfig:
    """Configuration for analyze pipeline execution."""

    thresholds: CoverageThresholds = field(default_factory=CoverageThresholds)

    allow_partial_sources: bool = False
    """Treat a malformed execution report, contract or requirements as empty."""

    fallback_to_deterministic: bool = True
    """Synthesize scenarios when the suggester fails; otherwise return none."""

    suggestion_timeout: float | None = 120.0
    """Seconds allowed for the suggester; ``None`` waits indefinitely."""

    @classmethod
    def from_config(cls, config: GapwiseConfig) -> AnalysisPipelineConfig:
        return cls(
            thresholds=config.thresholds.to_thresholds(),
            allow_partial_sources=config.analysis.allow_partial_sources,
            fallback_to_deterministic=config.analysis.fallback_to_deterministic,
            suggestion_timeout=config.llm.timeout,
        )


# ── Result ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class GapAnalysisResult:
    """Everything one analysis run produced. Built once, never updated."""

    code_gaps: list[CoverageGap]
    api_gaps: list[ApiGap]
    business_rule_gaps: list[BusinessRuleGap]
    suggested_scenarios: list[TestScenario]

    coverage_summary: CoverageSummary
    """Per-metric totals over the whole coverage tree."""

    api_coverage: ApiCoverageStats
    endpoint_coverage: EndpointCoverageMap
    """Reconciled ``METHOD:path`` coverage records."""

    execution_totals: dict[str, int]
    thresholds: CoverageThresholds
    contract_title: str = ""
    requirements_title: str = ""

    suggestion_source: str = ""
    """Name of the suggester whose scenarios were kept."""

    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def line_coverage(self) -> int:
        return self.coverage_summary.line_coverage

    @property
    def branch_coverage(self) -> int:
        return self.coverage_summary.branch_coverage

    @property
    def method_coverage(self) -> int:
        return self.coverage_summary.method_coverage

    @property
    def total_gaps(self) -> int:
        return len(self.code_gaps) + len(self.api_gaps) + len(self.business_rule_gaps)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation."""
        return {
            "summary": {
                "line_coverage": self.coverage_summary.line_coverage,
                "branch_coverage": self.coverage_summary.branch_coverage,
                "method_coverage": self.coverage_summary.method_coverage,
                "instruction_coverage": self.coverage_summary.instruction_coverage,
                "class_coverage": self.coverage_summary.class_coverage,
                "api_coverage": self.api_coverage.to_dict(),
                "execution": dict(self.execution_totals),
                "gap_counts": {
                    "code": len(self.code_gaps),
                    "api": len(self.api_gaps),
                    "business_rule": len(self.business_rule_gaps),
                },
            },
            "contract_title": self.contract_title,
            "requirements_title": self.requirements_title,
            "thresholds": self.thresholds.to_dict(),
            "code_gaps": [gap.to_dict() for gap in self.code_gaps],
            "api_gaps": [gap.to_dict() for gap in self.api_gaps],
            "business_rule_gaps": [gap.to_dict() for gap in self.business_rule_gaps],
            "class_suggestions": summarize_gap_suggestions(self.code_gaps),
            "suggested_scenarios": [s.to_dict() for s in self.suggested_scenarios],
            "suggestion_source": self.suggestion_source,
            "endpoint_coverage": [
                record.to_dict() for record in self.endpoint_coverage.values()
            ],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


# ── Pipeline ─────────────────────────────────────────────────────


class AnalysisPipeline(BaseAgent):
    """Orchestrates parse → reconcile → classify → suggest for one run.

    Collaborators are injected; every call to :meth:`analyze` starts from a
    fresh diagnostics log and builds a fresh result.
    """

    def __init__(
        self,
        config: AnalysisPipelineConfig | None = None,
        *,
        suggester: ScenarioSuggester | None = None,
        coverage_adapter: CoverageAdapter | None = None,
        execution_adapter: ExecutionAdapter | None = None,
    ) -> None:
        self.config = config or AnalysisPipelineConfig()
        self._suggester = suggester or DeterministicScenarioBuilder()
        self._coverage_adapter = coverage_adapter or JaCoCoAdapter()
        self._execution_adapter = execution_adapter or KarateAdapter()
        self._classifier = GapClassifier(self.config.thresholds)

    @property
    def name(self) -> str:
        return "AnalysisPipeline"

    @property
    def description(self) -> str:
        return "Reconciles coverage evidence and derives prioritized test gaps"

    # ── Agent entry point ────────────────────────────────────────

    async def run(self, task: TaskInput) -> TaskOutput:
        """Run an analysis for ``task.context`` paths resolved against ``task.target``.

        ``task.context`` must name ``coverage``, ``execution``, ``contract``
        and ``requirements``.
        """
        root = Path(task.target)
        try:
            inputs = AnalysisInputs(
                **{
                    key: root / str(task.context[key])
                    for key in ("coverage", "execution", "contract", "requirements")
                }
            )
        except KeyError as exc:
            return TaskOutput(status=TaskStatus.FAILED, errors=[f"Missing input path: {exc}"])

        try:
            result = await self.analyze(inputs)
        except GapwiseError as exc:
            return TaskOutput(status=TaskStatus.FAILED, errors=[str(exc)])

        return TaskOutput(status=TaskStatus.COMPLETED, result={"analysis": result})

    # ── Analysis ─────────────────────────────────────────────────

    async def analyze(self, inputs: AnalysisInputs) -> GapAnalysisResult:
        """Run the full analysis.

        Raises:
            MissingInputError: If any input document is absent.
            MalformedDocumentError: If a document cannot be parsed and partial
                sources are not allowed (the coverage report is always required).
        """
        logger.info("Starting coverage gap analysis")
        diagnostics = DiagnosticLog()

        try:
            inputs.check()
            tree, trace, (contract, catalog) = await asyncio.gather(
                asyncio.to_thread(self._parse_coverage, inputs.coverage, diagnostics),
                asyncio.to_thread(self._parse_execution, inputs.execution, diagnostics),
                asyncio.to_thread(
                    self._parse_specification, inputs.contract, inputs.requirements, diagnostics
                ),
            )
        except GapwiseError as exc:
            logger.error("Gap analysis aborted: %s", exc)
            raise

        map_rules_to_endpoints(catalog.rules, contract.endpoints)
        endpoint_coverage, api_stats = reconcile_endpoint_coverage(
            trace.endpoint_coverage, contract.endpoints
        )

        gaps = self._classifier.classify(tree, contract.endpoints, catalog.rules, endpoint_coverage)
        scenarios, source = await self._suggest(
            SuggestionRequest(gaps=gaps, contract=contract, catalog=catalog), diagnostics
        )

        summary = summarize_tree(tree)
        logger.info(
            "Coverage gap analysis completed: %d gaps, %d scenarios (line %d%%, branch %d%%)",
            gaps.total,
            len(scenarios),
            summary.percentage(CoverageMetricKind.LINE),
            summary.percentage(CoverageMetricKind.BRANCH),
        )

        return GapAnalysisResult(
            code_gaps=gaps.code_gaps,
            api_gaps=gaps.api_gaps,
            business_rule_gaps=gaps.business_rule_gaps,
            suggested_scenarios=scenarios,
            coverage_summary=summary,
            api_coverage=api_stats,
            endpoint_coverage=endpoint_coverage,
            execution_totals=trace.totals(),
            thresholds=self.config.thresholds,
            contract_title=contract.title,
            requirements_title=catalog.title,
            suggestion_source=source,
            diagnostics=list(diagnostics.entries),
        )

    # ── Parse steps (run in worker threads) ──────────────────────

    def _parse_coverage(self, path: Path, diagnostics: DiagnosticLog) -> CoverageTree:
        return self._coverage_adapter.parse_coverage_file(path, diagnostics)

    def _parse_execution(self, path: Path, diagnostics: DiagnosticLog) -> ExecutionTrace:
        return self._tolerate(
            "execution",
            lambda: self._execution_adapter.parse_execution_file(path, diagnostics),
            ExecutionTrace,
            diagnostics,
        )

    def _parse_specification(
        self,
        contract_path: Path,
        requirements_path: Path,
        diagnostics: DiagnosticLog,
    ) -> tuple[ApiContract, RuleCatalog]:
        contract = self._tolerate(
            "contract",
            lambda: analyze_openapi_spec(contract_path, diagnostics),
            ApiContract,
            diagnostics,
        )
        catalog = self._tolerate(
            "requirements",
            lambda: parse_requirements_file(requirements_path),
            RuleCatalog,
            diagnostics,
        )
        return contract, catalog

    def _tolerate(
        self,
        source: str,
        parse: Callable[[], T],
        empty: Callable[[], T],
        diagnostics: DiagnosticLog,
    ) -> T:
        """Run *parse*; with partial sources allowed, a malformed document becomes *empty*."""
        try:
            return parse()
        except MalformedDocumentError as exc:
            if not self.config.allow_partial_sources:
                raise
            diagnostics.record(source, DiagnosticKind.SKIPPED_SOURCE, str(exc), exc.fragment)
            return empty()

    # ── Suggestions ──────────────────────────────────────────────

    async def _suggest(
        self,
        request: SuggestionRequest,
        diagnostics: DiagnosticLog,
    ) -> tuple[list[TestScenario], str]:
        try:
            scenarios = await asyncio.wait_for(
                self._suggester.suggest(request), timeout=self.config.suggestion_timeout
            )
        except (CollaboratorError, TimeoutError) as exc:
            message = str(exc) or f"{self._suggester.name} timed out"
            diagnostics.record(SUGGESTION_SOURCE, DiagnosticKind.COLLABORATOR_FAILURE, message)
        except Exception as exc:
            logger.exception("Unexpected error from suggester %s", self._suggester.name)
            diagnostics.record(
                SUGGESTION_SOURCE,
                DiagnosticKind.COLLABORATOR_FAILURE,
                f"{self._suggester.name} failed: {type(exc).__name__}: {exc}",
            )
        else:
            return scenarios, self._suggester.name

        if not self.config.fallback_to_deterministic or isinstance(
            self._suggester, DeterministicScenarioBuilder
        ):
            return [], ""

        fallback = DeterministicScenarioBuilder()
        return await fallback.suggest(request), fallback.name
