"""Tests for the gapwise CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest
import yaml
from click.testing import CliRunner

from gapwise.cli import _config_to_dict, _mask_sensitive_values, cli
from gapwise.config import load_config

if TYPE_CHECKING:
    from pathlib import Path

_COVERAGE_XML = """\
<report name="billing">
  <package name="com/acme">
    <class name="com/acme/Billing">
      <method name="charge" line="12">
        <counter type="LINE" missed="2" covered="3"/>
      </method>
      <counter type="LINE" missed="2" covered="8"/>
    </class>
  </package>
</report>
"""

_EXECUTION: dict[str, Any] = {
    "features": [
        {
            "name": "Orders",
            "elements": [
                {
                    "type": "scenario",
                    "name": "list orders",
                    "steps": [
                        {
                            "name": "method get",
                            "result": {"status": "passed"},
                            "request": {"method": "GET", "path": "/orders"},
                        }
                    ],
                }
            ],
        }
    ]
}

_CONTRACT = """\
openapi: 3.0.0
info:
  title: Orders API
  version: "1.0"
paths:
  /orders:
    get:
      summary: List orders
    post:
      summary: Create order
"""

_REQUIREMENTS = "# Checkout\n\nRefunds must be approved by a manager.\n"


@pytest.fixture(autouse=True)
def _no_llm_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GAPWISE_LLM_MODEL", raising=False)
    monkeypatch.delenv("GAPWISE_LLM_API_KEY", raising=False)


def _write_inputs(root: Path) -> list[str]:
    (root / "jacoco.xml").write_text(_COVERAGE_XML, encoding="utf-8")
    (root / "karate.json").write_text(json.dumps(_EXECUTION), encoding="utf-8")
    (root / "openapi.yaml").write_text(_CONTRACT, encoding="utf-8")
    (root / "requirements.md").write_text(_REQUIREMENTS, encoding="utf-8")
    return [
        "--path",
        str(root),
        "--coverage",
        "jacoco.xml",
        "--execution",
        "karate.json",
        "--contract",
        "openapi.yaml",
        "--requirements",
        "requirements.md",
    ]


def test_version() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_help() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("analyze", "summary", "config"):
        assert command in result.output


# ── analyze ──────────────────────────────────────────────────────


class TestAnalyzeCommand:
    def test_terminal_output(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["analyze", *_write_inputs(tmp_path), "--no-llm"])
        assert result.exit_code == 0, result.output
        assert "Coverage Summary" in result.output
        assert "TS-GAP-1" in result.output

    def test_json_output_file(self, tmp_path: Path) -> None:
        output = tmp_path / "out" / "gaps.json"
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["analyze", *_write_inputs(tmp_path), "--no-llm", "--json-output", str(output)],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["tool"] == "gapwise"
        assert data["contract_title"] == "Orders API"
        assert [g["method"] for g in data["api_gaps"]] == ["POST"]
        assert data["business_rule_gaps"][0]["rule_id"] == "R-1"
        assert data["suggestion_source"] == "deterministic"

    def test_report_format_from_config(self, tmp_path: Path) -> None:
        (tmp_path / ".gapwise.yml").write_text(
            "report:\n  format: json\n  output_path: reports/gaps.json\n", encoding="utf-8"
        )
        runner = CliRunner()
        result = runner.invoke(cli, ["analyze", *_write_inputs(tmp_path)])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "reports" / "gaps.json").is_file()

    def test_inputs_from_config(self, tmp_path: Path) -> None:
        _write_inputs(tmp_path)
        (tmp_path / ".gapwise.yml").write_text(
            yaml.dump(
                {
                    "inputs": {
                        "coverage": "jacoco.xml",
                        "execution": "karate.json",
                        "contract": "openapi.yaml",
                        "requirements": "requirements.md",
                    }
                }
            ),
            encoding="utf-8",
        )
        output = tmp_path / "gaps.json"
        runner = CliRunner()
        result = runner.invoke(
            cli, ["analyze", "--path", str(tmp_path), "--json-output", str(output)]
        )
        assert result.exit_code == 0, result.output
        assert output.is_file()

    def test_contract_detected_in_project(self, tmp_path: Path) -> None:
        args = _write_inputs(tmp_path)
        contract_at = args.index("--contract")
        del args[contract_at : contract_at + 2]
        output = tmp_path / "gaps.json"
        runner = CliRunner()
        result = runner.invoke(cli, ["analyze", *args, "--no-llm", "--json-output", str(output)])
        assert result.exit_code == 0, result.output
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["contract_title"] == "Orders API"

    def test_no_input_given(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["analyze", "--path", str(tmp_path)])
        assert result.exit_code == 1
        assert "No coverage report given" in result.output

    def test_missing_file(self, tmp_path: Path) -> None:
        args = _write_inputs(tmp_path)
        (tmp_path / "karate.json").unlink()
        runner = CliRunner()
        result = runner.invoke(cli, ["analyze", *args, "--no-llm"])
        assert result.exit_code == 1
        assert "Required input not found" in result.output

    def test_malformed_execution(self, tmp_path: Path) -> None:
        args = _write_inputs(tmp_path)
        (tmp_path / "karate.json").write_text("{broken", encoding="utf-8")
        runner = CliRunner()

        result = runner.invoke(cli, ["analyze", *args, "--no-llm"])
        assert result.exit_code == 1

        result = runner.invoke(cli, ["analyze", *args, "--no-llm", "--allow-partial"])
        assert result.exit_code == 0, result.output
        assert "Diagnostics" in result.output


# ── summary ──────────────────────────────────────────────────────


class TestSummaryCommand:
    def test_json(self, tmp_path: Path) -> None:
        _write_inputs(tmp_path)
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["summary", "--path", str(tmp_path), "--coverage", "jacoco.xml", "--json-output"],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["summary"]["line"]["covered"] == 11
        assert data["summary"]["line"]["passed"] is False
        assert [g["method_name"] for g in data["gaps"]] == ["charge"]

    def test_table(self, tmp_path: Path) -> None:
        _write_inputs(tmp_path)
        runner = CliRunner()
        result = runner.invoke(
            cli, ["summary", "--path", str(tmp_path), "--coverage", "jacoco.xml"]
        )
        assert result.exit_code == 0, result.output
        assert "Coverage Summary" in result.output
        assert "Code Coverage Gaps (1)" in result.output

    def test_malformed_coverage(self, tmp_path: Path) -> None:
        (tmp_path / "jacoco.xml").write_text("<report>", encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(
            cli, ["summary", "--path", str(tmp_path), "--coverage", "jacoco.xml"]
        )
        assert result.exit_code == 1


# ── config ───────────────────────────────────────────────────────


class TestConfigCommands:
    def test_show_masks_sensitive_values(self, tmp_path: Path) -> None:
        (tmp_path / ".gapwise.yml").write_text(
            "llm:\n  model: gpt-4o\n  api_key: sk-test-1234567890abcdef\n", encoding="utf-8"
        )
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "show", "--path", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert "sk-test-1234567890abcdef" not in result.output
        assert "sk-t...cdef" in result.output
        assert "model: gpt-4o" in result.output

    def test_show_no_mask(self, tmp_path: Path) -> None:
        (tmp_path / ".gapwise.yml").write_text("llm:\n  api_key: sk-test-secret\n", encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "show", "--path", str(tmp_path), "--no-mask"])
        assert result.exit_code == 0, result.output
        assert "sk-test-secret" in result.output

    def test_show_json(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            cli, ["config", "show", "--path", str(tmp_path), "--json-output"]
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["thresholds"]["line"] == 80
        assert "raw" not in data

    def test_show_invalid_yaml(self, tmp_path: Path) -> None:
        (tmp_path / ".gapwise.yml").write_text("llm: [oops", encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "show", "--path", str(tmp_path)])
        assert result.exit_code == 1
        assert "Failed to load configuration" in result.output

    def test_show_non_numeric_threshold(self, tmp_path: Path) -> None:
        (tmp_path / ".gapwise.yml").write_text("thresholds:\n  line: abc\n", encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "show", "--path", str(tmp_path)])
        assert result.exit_code == 1
        assert "thresholds.line" in result.output

    def test_validate_ok(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", "--path", str(tmp_path)])
        assert result.exit_code == 0
        assert "Configuration is valid!" in result.output

    def test_validate_errors(self, tmp_path: Path) -> None:
        (tmp_path / ".gapwise.yml").write_text(
            "thresholds:\n  line: 150\nreport:\n  format: pdf\n", encoding="utf-8"
        )
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", "--path", str(tmp_path)])
        assert result.exit_code == 1
        assert "2 configuration error(s)" in result.output
        assert "thresholds.line" in result.output


class TestConfigHelpers:
    def test_config_to_dict_drops_raw(self, tmp_path: Path) -> None:
        data = _config_to_dict(load_config(tmp_path))
        assert "raw" not in data
        assert data["llm"]["mode"] == "builtin"

    def test_mask_short_and_long_values(self) -> None:
        masked = _mask_sensitive_values(
            {"llm": {"api_key": "abcdefghijkl", "model": "m"}, "token": "short"}
        )
        assert masked == {"llm": {"api_key": "abcd...ijkl", "model": "m"}, "token": "***"}
