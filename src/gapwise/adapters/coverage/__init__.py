"""Coverage adapters producing the unified coverage tree."""

from gapwise.adapters.coverage.base import (
    CoverageAdapter,
    CoverageMetricKind,
    CoverageNode,
    CoverageSummary,
    CoverageTree,
    MetricCount,
    summarize_tree,
)
from gapwise.adapters.coverage.jacoco import JaCoCoAdapter, build_coverage_tree

__all__ = [
    "CoverageAdapter",
    "CoverageMetricKind",
    "CoverageNode",
    "CoverageSummary",
    "CoverageTree",
    "JaCoCoAdapter",
    "MetricCount",
    "build_coverage_tree",
    "summarize_tree",
]
