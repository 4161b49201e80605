"""OpenAPI contract analyzer: parses an API contract into its canonical endpoint list.

This analyzer:
1. Detects OpenAPI (3.x) and Swagger (2.0) contract files in a project
2. Loads JSON or YAML contracts through the report normalizer
3. Emits one ``Endpoint`` per (path, HTTP verb) pair, restricted to the
   seven standard verbs, capturing operation metadata verbatim
4. Keeps the contract's title/version/description and schema definitions
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from gapwise.adapters.execution.base import endpoint_key
from gapwise.errors import DiagnosticLog, MalformedDocumentError
from gapwise.parsing.normalizer import load_document

if TYPE_CHECKING:
    from pathlib import Path

    from gapwise.parsing.normalizer import ReportNode

logger = logging.getLogger(__name__)

SOURCE = "contract"

# ── Constants ────────────────────────────────────────────────────

CONTRACT_FILE_NAMES = (
    "openapi.json",
    "openapi.yaml",
    "openapi.yml",
    "swagger.json",
    "swagger.yaml",
    "swagger.yml",
)
"""File names recognized as OpenAPI/Swagger contract files."""

CONTRACT_SUBDIRECTORIES = ("docs", "api", "spec")
"""Common subdirectories where contract files may reside."""

DEFAULT_TITLE = "API Specification"
DEFAULT_VERSION = "1.0.0"

_HTTP_METHODS = ("get", "post", "put", "delete", "patch", "options", "head")


# ── Data models ──────────────────────────────────────────────────


@dataclass
class Endpoint:
    """A single API endpoint extracted from the contract."""

    path: str
    """URL path (e.g. '/orders/{id}')."""

    method: str
    """HTTP method in uppercase (e.g. 'GET', 'POST')."""

    operation_id: str = ""
    """Operation identifier, or empty string if not specified."""

    summary: str = ""
    description: str = ""

    tags: list[str] = field(default_factory=list)
    """Operation tags, in contract order."""

    parameters: list[Any] = field(default_factory=list)
    """Parameter definitions, verbatim."""

    request_body: Any = None
    """Request body definition, verbatim."""

    responses: dict[str, Any] = field(default_factory=dict)
    """Response definitions keyed by status code, verbatim."""

    @property
    def key(self) -> str:
        """Canonical ``METHOD:path`` identity."""
        return endpoint_key(self.method, self.path)

    @property
    def display_name(self) -> str:
        """``METHOD path`` form used in rule mappings and suggestions."""
        return f"{self.method} {self.path}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "method": self.method,
            "operation_id": self.operation_id,
            "summary": self.summary,
            "description": self.description,
            "tags": list(self.tags),
        }


@dataclass
class ApiContract:
    """Parsed API contract."""

    title: str = DEFAULT_TITLE
    version: str = DEFAULT_VERSION
    description: str = ""
    endpoints: list[Endpoint] = field(default_factory=list)
    schemas: dict[str, Any] = field(default_factory=dict)
    """Schema definitions (``components.schemas`` or Swagger ``definitions``)."""

    @property
    def total_endpoints(self) -> int:
        return len(self.endpoints)

    def find(self, key: str) -> Endpoint | None:
        """Return the endpoint with identity *key*, if any."""
        for endpoint in self.endpoints:
            if endpoint.key == key:
                return endpoint
        return None


# ── Public API ───────────────────────────────────────────────────


def detect_contract_files(project_root: Path) -> list[Path]:
    """Find OpenAPI/Swagger contract files under *project_root*.

    The root is searched first, then ``docs/``, ``api/`` and ``spec/``; within a
    directory, candidates follow ``CONTRACT_FILE_NAMES`` order.
    """
    directories = [project_root, *(project_root / sub for sub in CONTRACT_SUBDIRECTORIES)]
    return [
        directory / name
        for directory in directories
        if directory.is_dir()
        for name in CONTRACT_FILE_NAMES
        if (directory / name).is_file()
    ]


def _raw(node: ReportNode, key: str) -> Any:
    if isinstance(node.raw, dict):
        return node.raw.get(key)
    return None


def _parse_operation(path: str, method: str, operation: ReportNode) -> Endpoint:
    parameters = _raw(operation, "parameters")
    responses = _raw(operation, "responses")
    return Endpoint(
        path=path,
        method=method.upper(),
        operation_id=operation.get("operationId"),
        summary=operation.get("summary"),
        description=operation.get("description"),
        tags=operation.texts("tags"),
        parameters=parameters if isinstance(parameters, list) else [],
        request_body=_raw(operation, "requestBody"),
        responses=responses if isinstance(responses, dict) else {},
    )


def _schemas(report: ReportNode) -> dict[str, Any]:
    components = report.first("components")
    schemas = _raw(components, "schemas") if components is not None else None
    if schemas is None:
        schemas = _raw(report, "definitions")
    return dict(schemas) if isinstance(schemas, dict) else {}


def parse_api_contract(
    report: ReportNode,
    diagnostics: DiagnosticLog | None = None,
) -> ApiContract:
    """Build an ``ApiContract`` from a normalized OpenAPI/Swagger document.

    Only the seven standard HTTP verbs are read from each path item; other
    keys (``parameters``, ``servers``, vendor extensions) are ignored.
    """
    log = diagnostics if diagnostics is not None else DiagnosticLog()
    info = report.first("info")

    contract = ApiContract(
        title=(info.get("title") if info else "") or DEFAULT_TITLE,
        version=(info.get("version") if info else "") or DEFAULT_VERSION,
        description=info.get("description") if info else "",
        schemas=_schemas(report),
    )

    paths = report.first("paths")
    if paths is None:
        log.skip(SOURCE, "Contract has no 'paths' section")
        return contract

    for path, path_items in paths.children.items():
        path_item = path_items[0]
        for method, operations in path_item.children.items():
            if method.lower() not in _HTTP_METHODS:
                continue
            contract.endpoints.append(_parse_operation(path, method, operations[0]))

    logger.info("Parsed OpenAPI contract with %d endpoints", contract.total_endpoints)
    return contract


def analyze_openapi_spec(
    spec_path: Path,
    diagnostics: DiagnosticLog | None = None,
) -> ApiContract:
    """Parse an OpenAPI or Swagger contract file.

    Raises:
        MissingInputError: If the contract file does not exist.
        MalformedDocumentError: If the file cannot be parsed or is not a mapping.
    """
    logger.info("Parsing OpenAPI contract from %s", spec_path)
    report = load_document(spec_path)
    if not isinstance(report.raw, dict):
        raise MalformedDocumentError(str(spec_path), "Contract does not contain a mapping")
    return parse_api_contract(report, diagnostics)
