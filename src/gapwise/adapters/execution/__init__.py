"""Execution-trace adapters producing endpoint coverage."""

from gapwise.adapters.execution.base import (
    ApiCoverageStats,
    EndpointCoverageMap,
    EndpointCoverageRecord,
    ExecutionAdapter,
    ExecutionTrace,
    HttpRequest,
    HttpResponse,
    ScenarioStatus,
    TraceFeature,
    TraceScenario,
    TraceStep,
    endpoint_key,
    reconcile_endpoint_coverage,
)
from gapwise.adapters.execution.karate import (
    KarateAdapter,
    build_endpoint_coverage,
    extract_path_from_url,
    parse_execution_report,
)

__all__ = [
    "ApiCoverageStats",
    "EndpointCoverageMap",
    "EndpointCoverageRecord",
    "ExecutionAdapter",
    "ExecutionTrace",
    "HttpRequest",
    "HttpResponse",
    "KarateAdapter",
    "ScenarioStatus",
    "TraceFeature",
    "TraceScenario",
    "TraceStep",
    "build_endpoint_coverage",
    "endpoint_key",
    "extract_path_from_url",
    "parse_execution_report",
    "reconcile_endpoint_coverage",
]
