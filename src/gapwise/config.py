"""Configuration parsing from ``.gapwise.yml``."""

from __future__ import annotations

import logging
import math
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from gapwise.agents.analyzers.gaps import CoverageThresholds
from gapwise.errors import MalformedDocumentError
from gapwise.parsing.normalizer import read_document_text

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".gapwise.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_LLM_MODES = ("builtin", "ollama", "disabled")
_REPORT_FORMATS = ("terminal", "json")
_MAX_PERCENTAGE = 100
_MAX_TEMPERATURE = 2.0


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {})
    return value if isinstance(value, dict) else {}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


# ── Sections ─────────────────────────────────────────────────────


@dataclass
class ThresholdsConfig:
    """Minimum coverage percentages per metric."""

    line: int = 80
    branch: int = 70
    method: int = 80
    instruction: int = 70
    class_: int = 90

    full_table: bool = False
    """Enforce instruction and class thresholds too."""

    def to_thresholds(self) -> CoverageThresholds:
        return CoverageThresholds(
            line=self.line,
            branch=self.branch,
            method=self.method,
            instruction=self.instruction,
            class_=self.class_,
            full_table=self.full_table,
        )


@dataclass
class LLMConfig:
    """Scenario-suggestion model configuration."""

    provider: str = "openai"
    """LLM provider name (openai, anthropic, ollama, etc.)."""

    model: str = ""
    """Model identifier (e.g. gpt-4o, ollama/llama3)."""

    api_key: str = ""
    """API key for the provider (supports ${ENV_VAR} expansion)."""

    base_url: str = ""
    """Custom base URL (useful for Ollama or proxied endpoints)."""

    mode: str = "builtin"
    """``builtin`` (LiteLLM), ``ollama``, or ``disabled``."""

    temperature: float = 0.2
    max_tokens: int = 4096
    requests_per_minute: int = 60
    max_retries: int = 3

    timeout: float = 120.0
    """Seconds allowed for the whole suggestion call."""

    @property
    def is_configured(self) -> bool:
        """Return True when enough info is present for generation."""
        if self.mode == "disabled":
            return False
        if self.mode == "ollama":
            return bool(self.model)
        return bool(self.model and self.api_key)


@dataclass
class AnalysisConfig:
    """Pipeline behaviour."""

    allow_partial_sources: bool = False
    """Continue when the execution report, contract or requirements are malformed."""

    max_gaps_in_prompt: int = 5
    """Gaps of each kind included in the suggestion prompt."""

    fallback_to_deterministic: bool = True
    """Synthesize scenarios from gap data when the model is unavailable or fails."""


@dataclass
class ReportConfig:
    """Output configuration."""

    format: str = "terminal"
    """Default output format: terminal or json."""

    output_path: str = ".gapwise/gap-analysis.json"
    """Where the JSON report is written, relative to the project root."""


@dataclass
class InputsConfig:
    """Default report locations used when CLI flags are omitted."""

    coverage: str = ""
    execution: str = ""
    contract: str = ""
    requirements: str = ""


@dataclass
class GapwiseConfig:
    """Complete gapwise configuration from ``.gapwise.yml``."""

    root: str
    """Project root directory."""

    thresholds: ThresholdsConfig = field(default_factory=ThresholdsConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    inputs: InputsConfig = field(default_factory=InputsConfig)

    raw: dict[str, Any] = field(default_factory=dict)
    """Raw parsed YAML for extension/debugging."""

    def resolve(self, path: str) -> Path:
        """Resolve *path* against the project root."""
        candidate = Path(path)
        return candidate if candidate.is_absolute() else Path(self.root) / candidate


# ── Loading ──────────────────────────────────────────────────────


def _number(section: dict[str, Any], name: str, key: str, default: float) -> float:
    """Return ``section[key]`` as a float.

    Raises:
        MalformedDocumentError: If the value is not numeric, naming ``name.key``.
    """
    value = section.get(key, default)
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedDocumentError(
            CONFIG_FILE_NAME, f"{name}.{key} must be a number, got {value!r}"
        ) from exc
    if not math.isfinite(number):
        raise MalformedDocumentError(CONFIG_FILE_NAME, f"{name}.{key} must be finite, got {value!r}")
    return number


def _parse_thresholds(raw: dict[str, Any]) -> ThresholdsConfig:
    section = _section(raw, "thresholds")
    return ThresholdsConfig(
        line=int(_number(section, "thresholds", "line", 80)),
        branch=int(_number(section, "thresholds", "branch", 70)),
        method=int(_number(section, "thresholds", "method", 80)),
        instruction=int(_number(section, "thresholds", "instruction", 70)),
        class_=int(_number(section, "thresholds", "class", 90)),
        full_table=_as_bool(section.get("full_table", False)),
    )


def _parse_llm(raw: dict[str, Any]) -> LLMConfig:
    section = _section(raw, "llm")
    return LLMConfig(
        provider=str(section.get("provider", os.environ.get("GAPWISE_LLM_PROVIDER", "openai"))),
        model=str(section.get("model", os.environ.get("GAPWISE_LLM_MODEL", ""))),
        api_key=str(section.get("api_key", os.environ.get("GAPWISE_LLM_API_KEY", ""))),
        base_url=str(section.get("base_url", os.environ.get("GAPWISE_LLM_BASE_URL", ""))),
        mode=str(section.get("mode", "builtin")),
        temperature=_number(section, "llm", "temperature", 0.2),
        max_tokens=int(_number(section, "llm", "max_tokens", 4096)),
        requests_per_minute=int(_number(section, "llm", "requests_per_minute", 60)),
        max_retries=int(_number(section, "llm", "max_retries", 3)),
        timeout=_number(section, "llm", "timeout", 120.0),
    )


def _parse_analysis(raw: dict[str, Any]) -> AnalysisConfig:
    section = _section(raw, "analysis")
    return AnalysisConfig(
        allow_partial_sources=_as_bool(section.get("allow_partial_sources", False)),
        max_gaps_in_prompt=int(_number(section, "analysis", "max_gaps_in_prompt", 5)),
        fallback_to_deterministic=_as_bool(section.get("fallback_to_deterministic", True)),
    )


def load_config(root: str | Path) -> GapwiseConfig:
    """Load and parse the complete ``.gapwise.yml`` configuration.

    Falls back to defaults and environment variables when the YAML file is
    missing or incomplete.

    Raises:
        MalformedDocumentError: If the file exists but is not valid UTF-8 YAML,
            or a numeric setting is not a number.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILE_NAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        text = read_document_text(config_file)
        try:
            parsed = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise MalformedDocumentError(str(config_file), f"Invalid YAML: {exc}") from exc
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)

    report_raw = _section(raw, "report")
    inputs_raw = _section(raw, "inputs")

    return GapwiseConfig(
        root=str(raw.get("root", root_path)),
        thresholds=_parse_thresholds(raw),
        llm=_parse_llm(raw),
        analysis=_parse_analysis(raw),
        report=ReportConfig(
            format=str(report_raw.get("format", "terminal")),
            output_path=str(report_raw.get("output_path", ".gapwise/gap-analysis.json")),
        ),
        inputs=InputsConfig(
            coverage=str(inputs_raw.get("coverage", "")),
            execution=str(inputs_raw.get("execution", "")),
            contract=str(inputs_raw.get("contract", "")),
            requirements=str(inputs_raw.get("requirements", "")),
        ),
        raw=raw,
    )


# ── Validation ───────────────────────────────────────────────────


def _validate_thresholds(thresholds: ThresholdsConfig) -> list[str]:
    errors: list[str] = []
    for name, value in (
        ("line", thresholds.line),
        ("branch", thresholds.branch),
        ("method", thresholds.method),
        ("instruction", thresholds.instruction),
        ("class", thresholds.class_),
    ):
        if not 0 <= value <= _MAX_PERCENTAGE:
            errors.append(f"thresholds.{name} must be between 0 and 100 (got: {value})")
    return errors


def _validate_llm_config(llm: LLMConfig) -> list[str]:
    errors: list[str] = []

    if llm.mode not in _LLM_MODES:
        errors.append(f"llm.mode must be one of: {', '.join(_LLM_MODES)} (got: {llm.mode})")

    if llm.temperature < 0 or llm.temperature > _MAX_TEMPERATURE:
        errors.append(
            f"llm.temperature should be between 0 and {_MAX_TEMPERATURE} "
            f"(got: {llm.temperature})"
        )

    if llm.max_tokens < 1:
        errors.append(f"llm.max_tokens must be positive (got: {llm.max_tokens})")

    if llm.timeout <= 0:
        errors.append(f"llm.timeout must be positive (got: {llm.timeout})")

    return errors


def validate_config(config: GapwiseConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    if not config.root:
        errors.append("root is required")

    errors.extend(_validate_thresholds(config.thresholds))
    errors.extend(_validate_llm_config(config.llm))

    if config.analysis.max_gaps_in_prompt < 1:
        errors.append(
            f"analysis.max_gaps_in_prompt must be at least 1 "
            f"(got: {config.analysis.max_gaps_in_prompt})"
        )

    if config.report.format not in _REPORT_FORMATS:
        errors.append(
            f"report.format must be one of: {', '.join(_REPORT_FORMATS)} "
            f"(got: {config.report.format})"
        )

    return errors
