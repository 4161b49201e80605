"""JSON reporter: generates structured JSON gap analysis reports.

Produces machine-readable JSON output for downstream tooling from
gapwise's pipeline results.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from gapwise.adapters.coverage.base import CoverageMetricKind

if TYPE_CHECKING:
    from pathlib import Path

    from gapwise.adapters.coverage.base import CoverageSummary
    from gapwise.agents.analyzers.gaps import CoverageGap, CoverageThresholds
    from gapwise.agents.pipelines.analyze import GapAnalysisResult

logger = logging.getLogger(__name__)


class JSONReporter:
    """Generate structured JSON reports from pipeline results.

    Serializes a full gap analysis (coverage summary, gaps, suggested
    scenarios, diagnostics) or a coverage-only summary into one document.
    """

    def generate(
        self,
        output_path: Path,
        *,
        result: GapAnalysisResult | None = None,
        extra: dict[str, Any] | None = None,
    ) -> Path:
        """Write a JSON report file.

        Args:
            output_path: Path to write the JSON file.
            result: Gap analysis result.
            extra: Additional data merged into the top level.

        Returns:
            The path to the generated JSON file.
        """
        return _write(output_path, _build_report(result=result, extra=extra))

    def generate_string(
        self,
        *,
        result: GapAnalysisResult | None = None,
        extra: dict[str, Any] | None = None,
    ) -> str:
        """Return JSON report as a string."""
        return _dumps(_build_report(result=result, extra=extra))

    def generate_coverage_summary(
        self,
        output_path: Path,
        summary: CoverageSummary,
        thresholds: CoverageThresholds,
        gaps: list[CoverageGap],
    ) -> Path:
        """Write a coverage summary report: per-metric totals checked against thresholds."""
        return _write(output_path, build_coverage_summary_report(summary, thresholds, gaps))


def _dumps(report: dict[str, Any]) -> str:
    return json.dumps(report, indent=2, ensure_ascii=False, default=str)


def _write(output_path: Path, report: dict[str, Any]) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(_dumps(report), encoding="utf-8")
    logger.info("JSON report written to %s", output_path)
    return output_path


def _build_report(
    *,
    result: GapAnalysisResult | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the JSON report structure."""
    report: dict[str, Any] = {
        "tool": "gapwise",
        "timestamp": datetime.now(tz=UTC).isoformat(),
    }

    if result is not None:
        report.update(result.to_dict())

    if extra:
        report.update(extra)

    return report


def build_coverage_summary_report(
    summary: CoverageSummary,
    thresholds: CoverageThresholds,
    gaps: list[CoverageGap],
) -> dict[str, Any]:
    """Build the coverage summary document.

    Metrics without an enforced threshold are compared against 0 and
    therefore always pass.
    """
    enforced = thresholds.enforced()

    metrics: dict[str, Any] = {}
    for kind in CoverageMetricKind:
        data = summary.metrics.get(kind)
        if data is None:
            continue
        threshold = enforced.get(kind, 0)
        metrics[kind.value] = {
            **data.to_dict(),
            "threshold": threshold,
            "passed": data.percentage >= threshold,
        }

    return {
        "timestamp": datetime.now(tz=UTC).isoformat(),
        "summary": metrics,
        "thresholds": thresholds.to_dict(),
        "gaps": [
            {
                "package_name": gap.package_name,
                "class_name": gap.class_name,
                "method_name": gap.method_name,
                "line": gap.line,
                "kind": gap.kind.value,
                "coverage": gap.coverage,
                "threshold": gap.threshold,
            }
            for gap in gaps
        ],
    }
