"""Coverage tree data model and summary aggregation.

A coverage tree maps a fully-qualified class name to a class-level
``CoverageNode``; method-level nodes hang off their class as children. Every
node carries one ``MetricCount`` per metric kind present in the source report.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from gapwise.errors import DiagnosticLog
    from gapwise.parsing.normalizer import ReportNode


class CoverageMetricKind(Enum):
    """Coverage metric kinds, valued by their lower-case display name."""

    LINE = "line"
    BRANCH = "branch"
    METHOD = "method"
    INSTRUCTION = "instruction"
    CLASS = "class"


def percentage_of(covered: int, total: int) -> int:
    """Return covered/total as a whole percentage, halves rounded up; 0 for an empty total."""
    if total <= 0:
        return 0
    return (covered * 200 + total) // (2 * total)


def qualified_class_name(package_name: str, class_name: str) -> str:
    """Return the dotted fully-qualified name of a class.

    JaCoCo writes VM names (``com/acme/Billing``) that already include the
    package; those are converted to dotted form. Bare class names are
    prefixed with their package.
    """
    if "/" in class_name:
        return class_name.replace("/", ".")
    if package_name:
        return f"{package_name.replace('/', '.')}.{class_name}"
    return class_name


def short_class_name(class_name: str) -> str:
    """Return the class name without its package path."""
    return class_name.replace("/", ".").rsplit(".", 1)[-1]


@dataclass(frozen=True)
class MetricCount:
    """Covered/missed counts for one metric kind.

    ``total`` and ``percentage`` are always derived, never stored.
    """

    kind: CoverageMetricKind
    covered: int = 0
    missed: int = 0

    def __post_init__(self) -> None:
        if self.covered < 0 or self.missed < 0:
            raise ValueError(
                f"Coverage counts must be non-negative (covered={self.covered}, "
                f"missed={self.missed})"
            )

    @property
    def total(self) -> int:
        return self.covered + self.missed

    @property
    def percentage(self) -> int:
        """Rounded coverage percentage in [0, 100]."""
        return percentage_of(self.covered, self.total)

    def to_dict(self) -> dict[str, int | str]:
        return {
            "kind": self.kind.value,
            "covered": self.covered,
            "missed": self.missed,
            "total": self.total,
            "percentage": self.percentage,
        }


@dataclass
class CoverageNode:
    """A class, or a method within a class, with its per-metric counts."""

    package_name: str
    class_name: str
    method_name: str | None = None
    line: int | None = None
    coverage_data: dict[CoverageMetricKind, MetricCount] = field(default_factory=dict)
    children: list[CoverageNode] = field(default_factory=list)

    @property
    def qualified_name(self) -> str:
        """Fully-qualified class name under which a class node is stored."""
        return qualified_class_name(self.package_name, self.class_name)

    @property
    def short_class_name(self) -> str:
        return short_class_name(self.class_name)

    @property
    def is_method(self) -> bool:
        return self.method_name is not None

    def percentage(self, kind: CoverageMetricKind) -> int | None:
        """Return the measured percentage for *kind*, or ``None`` if absent."""
        data = self.coverage_data.get(kind)
        return data.percentage if data is not None else None

    def walk(self) -> list[CoverageNode]:
        """Return this node followed by all of its method children."""
        return [self, *self.children]


CoverageTree = dict[str, CoverageNode]
"""Coverage tree keyed by fully-qualified class name."""


@dataclass
class CoverageSummary:
    """Flat per-metric totals for a whole coverage tree."""

    metrics: dict[CoverageMetricKind, MetricCount] = field(default_factory=dict)

    def percentage(self, kind: CoverageMetricKind) -> int:
        data = self.metrics.get(kind)
        return data.percentage if data is not None else 0

    @property
    def line_coverage(self) -> int:
        return self.percentage(CoverageMetricKind.LINE)

    @property
    def branch_coverage(self) -> int:
        return self.percentage(CoverageMetricKind.BRANCH)

    @property
    def method_coverage(self) -> int:
        return self.percentage(CoverageMetricKind.METHOD)

    @property
    def instruction_coverage(self) -> int:
        return self.percentage(CoverageMetricKind.INSTRUCTION)

    @property
    def class_coverage(self) -> int:
        return self.percentage(CoverageMetricKind.CLASS)


def summarize_tree(tree: CoverageTree) -> CoverageSummary:
    """Sum covered/missed per metric across every class and method node.

    Percentages are derived from the summed counts, so traversal order does
    not affect the result. Every metric kind appears in the summary, with
    zero counts when no node reports it.
    """
    covered = dict.fromkeys(CoverageMetricKind, 0)
    missed = dict.fromkeys(CoverageMetricKind, 0)

    for class_node in tree.values():
        for node in class_node.walk():
            for kind, data in node.coverage_data.items():
                covered[kind] += data.covered
                missed[kind] += data.missed

    return CoverageSummary(
        metrics={
            kind: MetricCount(kind=kind, covered=covered[kind], missed=missed[kind])
            for kind in CoverageMetricKind
        }
    )


class CoverageAdapter(ABC):
    """Abstract base class for code-coverage report adapters.

    An adapter turns one coverage tool's normalized report into the unified
    coverage tree.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Coverage tool identifier (e.g. 'jacoco')."""

    @abstractmethod
    def build_tree(
        self, report: ReportNode, diagnostics: DiagnosticLog | None = None
    ) -> CoverageTree:
        """Build the coverage tree from a normalized report.

        Args:
            report: Root of the normalized report.
            diagnostics: Collector for skipped items.

        Returns:
            Coverage tree keyed by fully-qualified class name.
        """

    @abstractmethod
    def parse_coverage_file(
        self, coverage_file: Path, diagnostics: DiagnosticLog | None = None
    ) -> CoverageTree:
        """Read, normalize and build the coverage tree for a report file."""
