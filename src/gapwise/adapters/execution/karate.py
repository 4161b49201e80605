"""Karate / Cucumber JSON execution report adapter.

Karate writes Cucumber-compatible JSON: a ``features`` (or ``feature``)
collection, or a bare array of features, each holding ``elements`` (or
``scenarios``) whose ``steps`` may record the HTTP exchange they performed.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from gapwise.adapters.execution.base import (
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
)
from gapwise.errors import DiagnosticLog
from gapwise.parsing.normalizer import LIST_ITEM, FieldAliases, load_document

if TYPE_CHECKING:
    from pathlib import Path

    from gapwise.parsing.normalizer import ReportNode

logger = logging.getLogger(__name__)

SOURCE = "karate"

_URL_PATH_PATTERN = re.compile(r"https?://[^/]+(/[^?#]*)")

# Field aliases, resolved once per field
_FEATURES = FieldAliases.of("features", "feature", LIST_ITEM)
_ELEMENTS = FieldAliases.of("elements", "scenarios")
_FEATURE_NAME = FieldAliases.of("name", "keyword")
_FEATURE_PATH = FieldAliases.of("relativePath", "uri")
_DURATION = FieldAliases.of("durationMillis", "duration")
_STEP_NAME = FieldAliases.of("name", "text")


def extract_path_from_url(url: str) -> str:
    """Return the path component of an absolute *url*, or ``""``."""
    if not url:
        return ""
    try:
        parts = urlsplit(url)
    except ValueError:
        parts = None
    if parts is not None and parts.scheme and parts.netloc:
        return parts.path or "/"
    match = _URL_PATH_PATTERN.search(url)
    return match.group(1) if match else ""


def _duration(node: ReportNode) -> float | None:
    value = _DURATION.attr(node)
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _raw_field(node: ReportNode, key: str) -> Any:
    if isinstance(node.raw, dict):
        return node.raw.get(key)
    return None


def _headers(node: ReportNode) -> dict[str, str]:
    headers = node.first("headers")
    return dict(headers.attributes) if headers is not None else {}


# ── Step / scenario / feature extraction ─────────────────────────


def _request_node(step: ReportNode) -> ReportNode | None:
    request = step.first("request")
    if request is not None:
        return request
    match = step.first("match")
    if match is None:
        return None
    for argument in match.all("arguments"):
        nested = argument.first("request")
        if nested is not None:
            return nested
    return None


def _response_node(step: ReportNode) -> ReportNode | None:
    response = step.first("response")
    if response is not None:
        return response
    result = step.first("result")
    return result.first("response") if result is not None else None


def _build_step(step: ReportNode) -> TraceStep:
    result = step.first("result")
    status = ScenarioStatus.parse(result.get("status", "skipped")) if result else ScenarioStatus.SKIPPED

    request = None
    request_node = _request_node(step)
    if request_node is not None:
        request = HttpRequest(
            method=request_node.get("method"),
            url=request_node.get("url"),
            path=request_node.get("path"),
            headers=_headers(request_node),
            body=_raw_field(request_node, "body"),
        )

    response = None
    response_node = _response_node(step)
    if response_node is not None:
        response = HttpResponse(
            status=response_node.get_int("status"),
            headers=_headers(response_node),
            body=_raw_field(response_node, "body"),
        )

    return TraceStep(
        name=_STEP_NAME.attr(step),
        keyword=step.get("keyword"),
        line=step.get_int("line"),
        status=status,
        request=request,
        response=response,
    )


def _is_scenario(element: ReportNode) -> bool:
    return element.get("type") == "scenario" or element.get("keyword") == "Scenario"


def _build_scenario(element: ReportNode) -> TraceScenario:
    line = element.get_int("line", default=-1)
    return TraceScenario(
        name=element.get("name") or element.get("keyword") or "Unknown Scenario",
        steps=[_build_step(step) for step in element.all("steps")],
        description=element.get("description"),
        tags=element.texts("tags"),
        line=line if line >= 0 else None,
        duration_ms=_duration(element),
    )


def _build_feature(node: ReportNode) -> TraceFeature:
    scenarios: list[TraceScenario] = []
    for element in _ELEMENTS.children(node):
        if not _is_scenario(element):
            logger.debug(
                "Skipping non-scenario element %r (%s)", element.get("name"), element.get("type")
            )
            continue
        scenarios.append(_build_scenario(element))

    return TraceFeature(
        name=_FEATURE_NAME.attr(node, default="Unknown Feature"),
        scenarios=scenarios,
        description=node.get("description"),
        path=_FEATURE_PATH.attr(node),
        tags=node.texts("tags"),
        duration_ms=_duration(node),
    )


def build_endpoint_coverage(
    features: list[TraceFeature],
    diagnostics: DiagnosticLog | None = None,
) -> EndpointCoverageMap:
    """Roll every step's HTTP request up into a ``METHOD:path`` coverage map.

    A scenario counts at most once per endpoint. Requests with no method, or
    with neither a path nor a URL a path can be derived from, are skipped and
    recorded as diagnostics.
    """
    log = diagnostics if diagnostics is not None else DiagnosticLog()
    coverage: EndpointCoverageMap = {}

    for feature in features:
        for scenario in feature.scenarios:
            for step in scenario.steps:
                request = step.request
                if request is None:
                    continue
                request_path = request.path or extract_path_from_url(request.url)
                if not request.method or not request_path:
                    log.skip(
                        SOURCE,
                        "HTTP request without method or path skipped",
                        f"{scenario.name}: {request.method or '?'} {request.url or '?'}",
                    )
                    continue
                key = endpoint_key(request.method, request_path)
                record = coverage.get(key)
                if record is None:
                    record = EndpointCoverageRecord(
                        path=request_path, method=request.method.upper(), covered=True
                    )
                    coverage[key] = record
                record.add_scenario(scenario.name)

    return coverage


def parse_execution_report(
    report: ReportNode,
    diagnostics: DiagnosticLog | None = None,
) -> ExecutionTrace:
    """Build an ``ExecutionTrace`` from a normalized Karate/Cucumber report."""
    log = diagnostics if diagnostics is not None else DiagnosticLog()
    feature_nodes = _FEATURES.children(report)
    if not feature_nodes and _ELEMENTS.children(report):
        # A single feature object at the top level
        feature_nodes = [report]
    if not feature_nodes:
        log.skip(SOURCE, "No features found in execution report", report.name)

    features = [_build_feature(node) for node in feature_nodes]
    trace = ExecutionTrace(
        features=features,
        endpoint_coverage=build_endpoint_coverage(features, log),
    )
    logger.info(
        "Parsed Karate report with %d features and %d scenarios",
        len(trace.features),
        trace.total_scenarios,
    )
    return trace


class KarateAdapter(ExecutionAdapter):
    """Execution adapter for Karate (Cucumber JSON) reports."""

    @property
    def name(self) -> str:
        return SOURCE

    def build_trace(
        self, report: ReportNode, diagnostics: DiagnosticLog | None = None
    ) -> ExecutionTrace:
        return parse_execution_report(report, diagnostics)

    def parse_execution_file(
        self, report_file: Path, diagnostics: DiagnosticLog | None = None
    ) -> ExecutionTrace:
        """Parse a Karate JSON report file into an execution trace."""
        logger.info("Parsing Karate report from %s", report_file)
        return self.build_trace(load_document(report_file), diagnostics)
