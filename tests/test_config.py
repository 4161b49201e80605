"""Tests for config.py: .gapwise.yml parsing and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml

from gapwise.config import (
    CONFIG_FILE_NAME,
    GapwiseConfig,
    LLMConfig,
    ThresholdsConfig,
    _resolve_dict,
    _resolve_env_vars,
    load_config,
    validate_config,
)
from gapwise.errors import MalformedDocumentError


def _write_config(root: Path, data: dict[str, Any]) -> None:
    (root / CONFIG_FILE_NAME).write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def _clear_llm_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in (
        "GAPWISE_LLM_MODEL",
        "GAPWISE_LLM_API_KEY",
        "GAPWISE_LLM_PROVIDER",
        "GAPWISE_LLM_BASE_URL",
    ):
        monkeypatch.delenv(var, raising=False)


# ── _resolve_env_vars / _resolve_dict ────────────────────────────


class TestResolveEnvVars:
    def test_resolves_existing_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_VAR", "hello")
        assert _resolve_env_vars("${MY_VAR}") == "hello"

    def test_missing_var_returns_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MISSING_VAR", raising=False)
        assert _resolve_env_vars("${MISSING_VAR}") == ""

    def test_resolves_nested_dicts_and_lists(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INNER", "x")
        result = _resolve_dict({"outer": {"inner": "${INNER}"}, "items": ["${INNER}", 3]})
        assert result == {"outer": {"inner": "x"}, "items": ["x", 3]}


# ── load_config ──────────────────────────────────────────────────


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config.root == str(tmp_path.resolve())
        assert config.thresholds == ThresholdsConfig()
        assert config.llm.model == ""
        assert config.analysis.allow_partial_sources is False
        assert config.analysis.fallback_to_deterministic is True
        assert config.report.format == "terminal"

    def test_sections_parsed(self, tmp_path: Path) -> None:
        _write_config(
            tmp_path,
            {
                "thresholds": {"line": 85, "branch": "60", "class": 95, "full_table": True},
                "llm": {"model": "gpt-4o", "api_key": "sk-test", "temperature": 0.5},
                "analysis": {"allow_partial_sources": "yes", "max_gaps_in_prompt": 8},
                "report": {"format": "json", "output_path": "out/report.json"},
                "inputs": {"coverage": "build/jacoco.xml"},
            },
        )
        config = load_config(tmp_path)

        assert config.thresholds.line == 85
        assert config.thresholds.branch == 60
        assert config.thresholds.class_ == 95
        assert config.thresholds.full_table is True
        assert config.llm.model == "gpt-4o"
        assert config.llm.temperature == 0.5
        assert config.llm.is_configured
        assert config.analysis.allow_partial_sources is True
        assert config.analysis.max_gaps_in_prompt == 8
        assert config.report.output_path == "out/report.json"
        assert config.inputs.coverage == "build/jacoco.xml"

    def test_env_placeholders(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_KEY", "sk-from-env")
        _write_config(tmp_path, {"llm": {"model": "gpt-4o", "api_key": "${OPENAI_KEY}"}})
        assert load_config(tmp_path).llm.api_key == "sk-from-env"

    def test_env_fallbacks(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GAPWISE_LLM_MODEL", "claude-sonnet")
        monkeypatch.setenv("GAPWISE_LLM_API_KEY", "key")
        config = load_config(tmp_path)
        assert config.llm.model == "claude-sonnet"
        assert config.llm.api_key == "key"

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_text("llm: [unclosed", encoding="utf-8")
        with pytest.raises(MalformedDocumentError, match="Invalid YAML"):
            load_config(tmp_path)

    @pytest.mark.parametrize(
        ("data", "key"),
        [
            ({"thresholds": {"line": "abc"}}, "thresholds.line"),
            ({"llm": {"timeout": [1, 2]}}, "llm.timeout"),
            ({"analysis": {"max_gaps_in_prompt": ".nan"}}, "analysis.max_gaps_in_prompt"),
        ],
    )
    def test_non_numeric_value_names_key(
        self, tmp_path: Path, data: dict[str, Any], key: str
    ) -> None:
        _write_config(tmp_path, data)
        with pytest.raises(MalformedDocumentError, match=key):
            load_config(tmp_path)

    def test_unset_env_number(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GAPWISE_TEST_RPM", raising=False)
        _write_config(tmp_path, {"llm": {"requests_per_minute": "${GAPWISE_TEST_RPM}"}})
        with pytest.raises(MalformedDocumentError, match="llm.requests_per_minute"):
            load_config(tmp_path)

    def test_invalid_utf8(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_bytes(b"llm:\n  model: caf\xe9\n")
        with pytest.raises(MalformedDocumentError, match="Invalid encoding"):
            load_config(tmp_path)

    def test_non_mapping_yaml_ignored(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_text("- a\n- b\n", encoding="utf-8")
        assert load_config(tmp_path).thresholds.line == 80

    def test_thresholds_convert(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"thresholds": {"line": 50}})
        thresholds = load_config(tmp_path).thresholds.to_thresholds()
        assert thresholds.line == 50
        assert thresholds.branch == 70


class TestResolve:
    def test_relative_and_absolute(self, tmp_path: Path) -> None:
        config = GapwiseConfig(root=str(tmp_path))
        assert config.resolve("a/b.xml") == tmp_path / "a" / "b.xml"
        assert config.resolve(str(tmp_path / "c.xml")) == tmp_path / "c.xml"


# ── LLMConfig ────────────────────────────────────────────────────


class TestLLMConfigured:
    def test_builtin_needs_key(self) -> None:
        assert not LLMConfig(model="gpt-4o").is_configured
        assert LLMConfig(model="gpt-4o", api_key="k").is_configured

    def test_ollama_needs_model_only(self) -> None:
        assert LLMConfig(model="llama3", mode="ollama").is_configured

    def test_disabled(self) -> None:
        assert not LLMConfig(model="gpt-4o", api_key="k", mode="disabled").is_configured


# ── validate_config ──────────────────────────────────────────────


class TestValidateConfig:
    def test_defaults_valid(self, tmp_path: Path) -> None:
        assert validate_config(GapwiseConfig(root=str(tmp_path))) == []

    def test_threshold_range(self, tmp_path: Path) -> None:
        config = GapwiseConfig(root=str(tmp_path), thresholds=ThresholdsConfig(line=120))
        errors = validate_config(config)
        assert len(errors) == 1
        assert "thresholds.line" in errors[0]

    def test_llm_values(self, tmp_path: Path) -> None:
        config = GapwiseConfig(
            root=str(tmp_path),
            llm=LLMConfig(mode="cloud", temperature=3.0, max_tokens=0, timeout=0),
        )
        errors = validate_config(config)
        assert len(errors) == 4
        assert any("llm.mode" in e for e in errors)
        assert any("llm.temperature" in e for e in errors)
        assert any("llm.max_tokens" in e for e in errors)
        assert any("llm.timeout" in e for e in errors)

    def test_analysis_and_report(self, tmp_path: Path) -> None:
        config = GapwiseConfig(root=str(tmp_path))
        config.analysis.max_gaps_in_prompt = 0
        config.report.format = "html"
        errors = validate_config(config)
        assert any("analysis.max_gaps_in_prompt" in e for e in errors)
        assert any("report.format" in e for e in errors)

    def test_root_required(self) -> None:
        assert "root is required" in validate_config(GapwiseConfig(root=""))
