"""Gap classifier: threshold and absence checks over the reconciled models.

Three independent passes produce three sorted gap lists:

* code gaps: coverage-tree nodes whose metric percentage is below threshold,
  sorted ascending by line coverage;
* API gaps: contract endpoints with no covering scenario, sorted by HTTP
  method priority;
* business-rule gaps: rules none of whose related endpoints are covered,
  sorted by rule priority.

All sorts are stable, so ties keep their input order.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from gapwise.adapters.coverage.base import (
    CoverageMetricKind,
    qualified_class_name,
    short_class_name,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from gapwise.adapters.coverage.base import CoverageNode, CoverageTree
    from gapwise.adapters.execution.base import EndpointCoverageMap
    from gapwise.agents.analyzers.openapi import Endpoint
    from gapwise.agents.analyzers.requirements import BusinessRule

logger = logging.getLogger(__name__)

METHOD_PRIORITY: dict[str, int] = {
    "POST": 0,
    "PUT": 1,
    "DELETE": 2,
    "GET": 3,
    "PATCH": 4,
    "HEAD": 5,
    "OPTIONS": 6,
}
"""Sort order of API gaps; any other verb sorts last."""

RULE_PRIORITY: dict[str, int] = {"High": 0, "Medium": 1, "Low": 2}
"""Sort order of business-rule gaps; any other priority sorts last."""

UNKNOWN_PRIORITY = 99

RULE_DESCRIPTION_LIMIT = 100

_CODE_GAP_CLAUSES: dict[CoverageMetricKind, str] = {
    CoverageMetricKind.BRANCH: "Ensure all conditional branches are tested.",
    CoverageMetricKind.LINE: "Ensure all code paths are exercised.",
    CoverageMetricKind.METHOD: "Ensure method is called with various inputs.",
}

_API_GAP_CLAUSES: dict[str, str] = {
    "GET": "Test different query parameters and response codes.",
    "POST": "Test with valid and invalid request payloads.",
    "PUT": "Test update functionality with different payloads.",
    "DELETE": "Test successful deletion and error cases.",
}


# ── Thresholds ───────────────────────────────────────────────────


@dataclass(frozen=True)
class CoverageThresholds:
    """Minimum acceptable percentage per metric kind."""

    line: int = 80
    branch: int = 70
    method: int = 80
    instruction: int = 70
    class_: int = 90

    full_table: bool = False
    """Enforce all five metrics instead of line/branch/method only."""

    def enforced(self) -> dict[CoverageMetricKind, int]:
        """Return the thresholds that apply, in evaluation order."""
        table = {
            CoverageMetricKind.LINE: self.line,
            CoverageMetricKind.BRANCH: self.branch,
            CoverageMetricKind.METHOD: self.method,
        }
        if self.full_table:
            table[CoverageMetricKind.INSTRUCTION] = self.instruction
            table[CoverageMetricKind.CLASS] = self.class_
        return table

    def for_kind(self, kind: CoverageMetricKind) -> int:
        """Return the configured threshold for *kind*, enforced or not."""
        return {
            CoverageMetricKind.LINE: self.line,
            CoverageMetricKind.BRANCH: self.branch,
            CoverageMetricKind.METHOD: self.method,
            CoverageMetricKind.INSTRUCTION: self.instruction,
            CoverageMetricKind.CLASS: self.class_,
        }[kind]

    def to_dict(self) -> dict[str, int]:
        return {kind.value: threshold for kind, threshold in self.enforced().items()}


# ── Gap models ───────────────────────────────────────────────────


@dataclass(frozen=True)
class CoverageGap:
    """A class or method whose coverage for one metric is below threshold."""

    package_name: str
    class_name: str
    kind: CoverageMetricKind
    coverage: int
    """Measured percentage for ``kind``."""

    threshold: int
    line_coverage: int = 0
    """Node's LINE percentage, 0 when not reported."""

    branch_coverage: int = 0
    """Node's BRANCH percentage, 0 when not reported."""

    method_name: str | None = None
    line: int | None = None
    suggestion: str = ""

    @property
    def qualified_name(self) -> str:
        return qualified_class_name(self.package_name, self.class_name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "package_name": self.package_name,
            "class_name": self.class_name,
            "method_name": self.method_name,
            "line": self.line,
            "kind": self.kind.value,
            "coverage": self.coverage,
            "threshold": self.threshold,
            "line_coverage": self.line_coverage,
            "branch_coverage": self.branch_coverage,
            "suggestion": self.suggestion,
        }


@dataclass(frozen=True)
class ApiGap:
    """A contract endpoint no executed scenario reached."""

    path: str
    method: str
    operation_id: str = ""
    summary: str = ""
    covered: bool = False
    suggestion: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "method": self.method,
            "operation_id": self.operation_id,
            "summary": self.summary,
            "covered": self.covered,
            "suggestion": self.suggestion,
        }


@dataclass(frozen=True)
class BusinessRuleGap:
    """A business rule with no covered related endpoint."""

    rule_id: str
    description: str
    category: str
    priority: str
    related_endpoints: tuple[str, ...] = ()
    covered: bool = False
    suggestion: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "related_endpoints": list(self.related_endpoints),
            "covered": self.covered,
            "suggestion": self.suggestion,
        }


@dataclass
class GapSet:
    """The three gap lists of one classification run."""

    code_gaps: list[CoverageGap] = field(default_factory=list)
    api_gaps: list[ApiGap] = field(default_factory=list)
    business_rule_gaps: list[BusinessRuleGap] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.code_gaps) + len(self.api_gaps) + len(self.business_rule_gaps)


# ── Suggestions ──────────────────────────────────────────────────


def code_gap_suggestion(node: CoverageNode, kind: CoverageMetricKind, percentage: int) -> str:
    target = node.short_class_name
    if node.method_name:
        target += f".{node.method_name}"
    suggestion = (
        f"Test {target} for improved {kind.value} coverage (currently {percentage}%)"
    )
    clause = _CODE_GAP_CLAUSES.get(kind)
    if clause:
        suggestion += f". {clause}"
    return suggestion


def api_gap_suggestion(endpoint: Endpoint) -> str:
    suggestion = f"Test {endpoint.method} {endpoint.path}"
    if endpoint.operation_id:
        suggestion += f" ({endpoint.operation_id})"
    if endpoint.summary:
        suggestion += f": {endpoint.summary}"
    clause = _API_GAP_CLAUSES.get(endpoint.method.upper())
    if clause:
        suggestion += f". {clause}"
    return suggestion


def business_rule_gap_suggestion(rule: BusinessRule) -> str:
    suggestion = f"Test business rule: {rule.description[:RULE_DESCRIPTION_LIMIT]}"
    if len(rule.description) > RULE_DESCRIPTION_LIMIT:
        suggestion += "..."
    suggestion += f" ({rule.category.value}, {rule.priority.value} priority)"
    if rule.related_endpoints:
        suggestion += ". Test using endpoints: " + ", ".join(rule.related_endpoints)
    return suggestion


def summarize_gap_suggestions(code_gaps: Iterable[CoverageGap]) -> dict[str, list[str]]:
    """Condense code gaps into per-class suggestion lists.

    Each method with gaps gets one suggestion naming what its tests should
    reach; a class whose gaps are all class-level gets a single
    whole-class suggestion. Keys are fully-qualified class names in
    first-seen order.
    """
    by_class: dict[str, dict[str, set[CoverageMetricKind]]] = {}
    for gap in code_gaps:
        methods = by_class.setdefault(gap.qualified_name, {})
        if gap.method_name:
            methods.setdefault(gap.method_name, set()).add(gap.kind)

    suggestions: dict[str, list[str]] = {}
    for class_name, methods in by_class.items():
        class_suggestions: list[str] = []
        for method_name, kinds in methods.items():
            if CoverageMetricKind.BRANCH in kinds:
                goal = "all conditional branches"
                if CoverageMetricKind.LINE in kinds:
                    goal += " and complete line coverage"
            elif CoverageMetricKind.LINE in kinds:
                goal = "complete line coverage"
            else:
                goal = "full execution path"
            class_suggestions.append(f"Test {class_name}.{method_name} for {goal}")
        if not class_suggestions:
            class_suggestions.append(f"Test {class_name} for complete coverage")
        suggestions[class_name] = class_suggestions
    return suggestions


# ── Classifier ───────────────────────────────────────────────────


class GapClassifier:
    """Classifies code, API and business-rule gaps against a threshold table."""

    def __init__(self, thresholds: CoverageThresholds | None = None) -> None:
        self._thresholds = thresholds or CoverageThresholds()

    @property
    def thresholds(self) -> CoverageThresholds:
        return self._thresholds

    def with_thresholds(self, **overrides: Any) -> GapClassifier:
        """Return a classifier using these thresholds with *overrides* applied."""
        return GapClassifier(dataclasses.replace(self._thresholds, **overrides))

    def _node_gaps(self, node: CoverageNode) -> list[CoverageGap]:
        gaps: list[CoverageGap] = []
        for kind, threshold in self._thresholds.enforced().items():
            percentage = node.percentage(kind)
            if percentage is None or percentage >= threshold:
                continue
            gaps.append(
                CoverageGap(
                    package_name=node.package_name,
                    class_name=node.class_name,
                    method_name=node.method_name,
                    line=node.line,
                    kind=kind,
                    coverage=percentage,
                    threshold=threshold,
                    line_coverage=node.percentage(CoverageMetricKind.LINE) or 0,
                    branch_coverage=node.percentage(CoverageMetricKind.BRANCH) or 0,
                    suggestion=code_gap_suggestion(node, kind, percentage),
                )
            )
        return gaps

    def find_code_gaps(self, tree: CoverageTree) -> list[CoverageGap]:
        """Return one gap per (node, metric) strictly below threshold."""
        gaps: list[CoverageGap] = []
        for class_node in tree.values():
            for node in class_node.walk():
                gaps.extend(self._node_gaps(node))
        gaps.sort(key=lambda gap: gap.line_coverage)
        logger.info("Found %d code coverage gaps", len(gaps))
        return gaps

    def find_api_gaps(
        self,
        endpoints: Iterable[Endpoint],
        coverage: EndpointCoverageMap,
    ) -> list[ApiGap]:
        """Return a gap for every contract endpoint without covered coverage."""
        gaps: list[ApiGap] = []
        for endpoint in endpoints:
            record = coverage.get(endpoint.key)
            if record is not None and record.covered:
                continue
            gaps.append(
                ApiGap(
                    path=endpoint.path,
                    method=endpoint.method.upper(),
                    operation_id=endpoint.operation_id,
                    summary=endpoint.summary,
                    suggestion=api_gap_suggestion(endpoint),
                )
            )
        gaps.sort(key=lambda gap: METHOD_PRIORITY.get(gap.method, UNKNOWN_PRIORITY))
        logger.info("Found %d API coverage gaps", len(gaps))
        return gaps

    def find_business_rule_gaps(
        self,
        rules: Iterable[BusinessRule],
        coverage: EndpointCoverageMap,
    ) -> list[BusinessRuleGap]:
        """Return a gap for every rule with no covered related endpoint."""
        gaps: list[BusinessRuleGap] = []
        for rule in rules:
            covered = any(
                coverage[key].covered for key in rule.related_endpoint_keys if key in coverage
            )
            if covered:
                continue
            gaps.append(
                BusinessRuleGap(
                    rule_id=rule.id,
                    description=rule.description,
                    category=rule.category.value,
                    priority=rule.priority.value,
                    related_endpoints=tuple(rule.related_endpoints),
                    suggestion=business_rule_gap_suggestion(rule),
                )
            )
        gaps.sort(key=lambda gap: RULE_PRIORITY.get(gap.priority, UNKNOWN_PRIORITY))
        logger.info("Found %d business rule coverage gaps", len(gaps))
        return gaps

    def classify(
        self,
        tree: CoverageTree,
        endpoints: Iterable[Endpoint],
        rules: Iterable[BusinessRule],
        coverage: EndpointCoverageMap,
    ) -> GapSet:
        """Run all three passes."""
        endpoint_list = list(endpoints)
        return GapSet(
            code_gaps=self.find_code_gaps(tree),
            api_gaps=self.find_api_gaps(endpoint_list, coverage),
            business_rule_gaps=self.find_business_rule_gaps(rules, coverage),
        )
