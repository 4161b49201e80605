"""Execution trace data model and API endpoint coverage reconciliation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from gapwise.agents.analyzers.openapi import Endpoint
    from gapwise.errors import DiagnosticLog
    from gapwise.parsing.normalizer import ReportNode

logger = logging.getLogger(__name__)


def endpoint_key(method: str, path: str) -> str:
    """Return the canonical ``METHOD:path`` identity of an endpoint."""
    return f"{method.upper()}:{path}"


class ScenarioStatus(Enum):
    """Outcome of a step or a scenario."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @classmethod
    def parse(cls, value: str) -> ScenarioStatus:
        """Map a raw status string; anything unknown counts as skipped."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.SKIPPED


# ── Trace model ──────────────────────────────────────────────────


@dataclass
class HttpRequest:
    """HTTP request issued by a test step."""

    method: str
    url: str = ""
    path: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass
class HttpResponse:
    """HTTP response observed by a test step."""

    status: int = 0
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass
class TraceStep:
    """A single executed step."""

    name: str
    keyword: str = ""
    line: int = 0
    status: ScenarioStatus = ScenarioStatus.SKIPPED
    request: HttpRequest | None = None
    response: HttpResponse | None = None


@dataclass
class TraceScenario:
    """A scenario and its steps."""

    name: str
    steps: list[TraceStep] = field(default_factory=list)
    description: str = ""
    tags: list[str] = field(default_factory=list)
    line: int | None = None
    duration_ms: float | None = None

    @property
    def status(self) -> ScenarioStatus:
        """Failed if any step failed, else skipped if every step was skipped, else passed."""
        if any(step.status is ScenarioStatus.FAILED for step in self.steps):
            return ScenarioStatus.FAILED
        if all(step.status is ScenarioStatus.SKIPPED for step in self.steps):
            return ScenarioStatus.SKIPPED
        return ScenarioStatus.PASSED


def _count(scenarios: Iterable[TraceScenario], status: ScenarioStatus) -> int:
    return sum(1 for scenario in scenarios if scenario.status is status)


@dataclass
class TraceFeature:
    """A feature file and its scenarios."""

    name: str
    scenarios: list[TraceScenario] = field(default_factory=list)
    description: str = ""
    path: str = ""
    tags: list[str] = field(default_factory=list)
    duration_ms: float | None = None

    @property
    def scenario_count(self) -> int:
        return len(self.scenarios)

    @property
    def passed_scenarios(self) -> int:
        return _count(self.scenarios, ScenarioStatus.PASSED)

    @property
    def failed_scenarios(self) -> int:
        return _count(self.scenarios, ScenarioStatus.FAILED)

    @property
    def skipped_scenarios(self) -> int:
        return _count(self.scenarios, ScenarioStatus.SKIPPED)


@dataclass
class EndpointCoverageRecord:
    """Coverage verdict for one ``METHOD:path`` endpoint."""

    path: str
    method: str
    covered: bool = False
    scenarios: list[str] = field(default_factory=list)
    """Distinct names of the scenarios that hit the endpoint, first-seen order."""

    @property
    def key(self) -> str:
        return endpoint_key(self.method, self.path)

    @property
    def scenario_count(self) -> int:
        return len(self.scenarios)

    def add_scenario(self, scenario_name: str) -> None:
        """Count *scenario_name* once, however many of its steps hit the endpoint."""
        self.covered = True
        if scenario_name not in self.scenarios:
            self.scenarios.append(scenario_name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "method": self.method,
            "covered": self.covered,
            "scenario_count": self.scenario_count,
            "scenarios": list(self.scenarios),
        }


EndpointCoverageMap = dict[str, EndpointCoverageRecord]
"""Endpoint coverage records keyed by ``METHOD:path``."""


@dataclass
class ExecutionTrace:
    """Parsed execution report: features plus the endpoint coverage they imply."""

    features: list[TraceFeature] = field(default_factory=list)
    endpoint_coverage: EndpointCoverageMap = field(default_factory=dict)

    @property
    def total_scenarios(self) -> int:
        return sum(feature.scenario_count for feature in self.features)

    @property
    def passed_scenarios(self) -> int:
        return sum(feature.passed_scenarios for feature in self.features)

    @property
    def failed_scenarios(self) -> int:
        return sum(feature.failed_scenarios for feature in self.features)

    @property
    def skipped_scenarios(self) -> int:
        return sum(feature.skipped_scenarios for feature in self.features)

    def totals(self) -> dict[str, int]:
        return {
            "features": len(self.features),
            "scenarios": self.total_scenarios,
            "passed": self.passed_scenarios,
            "failed": self.failed_scenarios,
            "skipped": self.skipped_scenarios,
        }


# ── Reconciliation ───────────────────────────────────────────────


@dataclass(frozen=True)
class ApiCoverageStats:
    """How many reconciled endpoints have at least one covering scenario."""

    covered: int
    total: int

    @property
    def percentage(self) -> float:
        return (self.covered / self.total) * 100 if self.total > 0 else 0.0

    def to_dict(self) -> dict[str, float | int]:
        return {
            "covered": self.covered,
            "total": self.total,
            "percentage": round(self.percentage, 2),
        }


def reconcile_endpoint_coverage(
    trace_coverage: EndpointCoverageMap,
    endpoints: Iterable[Endpoint],
) -> tuple[EndpointCoverageMap, ApiCoverageStats]:
    """Union trace-derived coverage with the contract's endpoint list.

    Every contract endpoint missing from *trace_coverage* is added with
    ``covered=False``; endpoints seen only in the trace are kept. The input
    map is not modified.

    Returns:
        The reconciled map and its coverage statistics.
    """
    reconciled: EndpointCoverageMap = dict(trace_coverage)
    for endpoint in endpoints:
        if endpoint.key not in reconciled:
            reconciled[endpoint.key] = EndpointCoverageRecord(
                path=endpoint.path,
                method=endpoint.method.upper(),
                covered=False,
            )

    stats = ApiCoverageStats(
        covered=sum(1 for record in reconciled.values() if record.covered),
        total=len(reconciled),
    )
    logger.info(
        "API endpoint coverage: %d/%d (%.2f%%)", stats.covered, stats.total, stats.percentage
    )
    return reconciled, stats


# ── Adapter interface ────────────────────────────────────────────


class ExecutionAdapter(ABC):
    """Abstract base class for test-execution report adapters."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Report format identifier (e.g. 'karate')."""

    @abstractmethod
    def build_trace(
        self, report: ReportNode, diagnostics: DiagnosticLog | None = None
    ) -> ExecutionTrace:
        """Build an execution trace from a normalized report."""

    @abstractmethod
    def parse_execution_file(
        self, report_file: Path, diagnostics: DiagnosticLog | None = None
    ) -> ExecutionTrace:
        """Read, normalize and build the execution trace for a report file."""
