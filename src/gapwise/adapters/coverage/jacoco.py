"""JaCoCo coverage adapter.

JaCoCo is the standard coverage tool for JVM projects. Its XML report is a
``report → package* → class* → (counter*, method* → counter*)`` hierarchy in
which counters carry string-encoded ``missed``/``covered`` values.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gapwise.adapters.coverage.base import (
    CoverageAdapter,
    CoverageMetricKind,
    CoverageNode,
    CoverageTree,
    MetricCount,
)
from gapwise.errors import DiagnosticLog
from gapwise.parsing.normalizer import load_document

if TYPE_CHECKING:
    from pathlib import Path

    from gapwise.parsing.normalizer import ReportNode

logger = logging.getLogger(__name__)

SOURCE = "jacoco"

_COUNTER_KINDS: dict[str, CoverageMetricKind] = {
    "INSTRUCTION": CoverageMetricKind.INSTRUCTION,
    "BRANCH": CoverageMetricKind.BRANCH,
    "LINE": CoverageMetricKind.LINE,
    "METHOD": CoverageMetricKind.METHOD,
    "CLASS": CoverageMetricKind.CLASS,
}


def _read_counters(
    element: ReportNode,
    diagnostics: DiagnosticLog,
    owner: str,
) -> dict[CoverageMetricKind, MetricCount]:
    coverage_data: dict[CoverageMetricKind, MetricCount] = {}
    for counter in element.all("counter"):
        counter_type = counter.get("type")
        kind = _COUNTER_KINDS.get(counter_type)
        if kind is None:
            diagnostics.skip(SOURCE, "Unknown counter type skipped", f"{owner}: {counter_type!r}")
            continue
        coverage_data[kind] = MetricCount(
            kind=kind,
            covered=max(counter.get_int("covered"), 0),
            missed=max(counter.get_int("missed"), 0),
        )
    return coverage_data


def _method_node(
    method: ReportNode,
    package_name: str,
    class_name: str,
    diagnostics: DiagnosticLog,
) -> CoverageNode:
    method_name = method.get("name")
    line = method.get_int("line", default=-1)
    return CoverageNode(
        package_name=package_name,
        class_name=class_name,
        method_name=method_name,
        line=line if line >= 0 else None,
        coverage_data=_read_counters(method, diagnostics, f"{class_name}.{method_name}"),
    )


def build_coverage_tree(
    report: ReportNode,
    diagnostics: DiagnosticLog | None = None,
) -> CoverageTree:
    """Build a ``package.Class → CoverageNode`` tree from a normalized JaCoCo report.

    Unknown counter types are skipped and recorded, never fatal. Missing
    ``covered``/``missed`` values count as zero.
    """
    log = diagnostics if diagnostics is not None else DiagnosticLog()
    tree: CoverageTree = {}

    if report.name != "report":
        log.skip(SOURCE, "Root element is not <report>", report.name)

    for package in report.all("package"):
        package_name = package.get("name")
        for class_elem in package.all("class"):
            class_name = class_elem.get("name")
            class_node = CoverageNode(
                package_name=package_name,
                class_name=class_name,
                coverage_data=_read_counters(class_elem, log, class_name),
            )
            class_node.children.extend(
                _method_node(method, package_name, class_name, log)
                for method in class_elem.all("method")
            )
            tree[class_node.qualified_name] = class_node

    logger.debug("Built coverage tree with %d classes", len(tree))
    return tree


class JaCoCoAdapter(CoverageAdapter):
    """Coverage adapter for JaCoCo XML reports (Gradle or Maven)."""

    @property
    def name(self) -> str:
        return SOURCE

    def build_tree(
        self, report: ReportNode, diagnostics: DiagnosticLog | None = None
    ) -> CoverageTree:
        return build_coverage_tree(report, diagnostics)

    def parse_coverage_file(
        self, coverage_file: Path, diagnostics: DiagnosticLog | None = None
    ) -> CoverageTree:
        """Parse a JaCoCo XML report file into a coverage tree."""
        logger.info("Parsing JaCoCo report from %s", coverage_file)
        report = load_document(coverage_file)
        tree = self.build_tree(report, diagnostics)
        logger.info("Parsed JaCoCo report with %d coverage items", len(tree))
        return tree
