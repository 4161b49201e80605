"""gapwise CLI: top-level command group."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console

from gapwise import __version__
from gapwise.adapters.coverage.base import summarize_tree
from gapwise.adapters.coverage.jacoco import JaCoCoAdapter
from gapwise.agents.analyzers.gaps import GapClassifier
from gapwise.agents.analyzers.openapi import detect_contract_files
from gapwise.agents.builders.scenarios import DeterministicScenarioBuilder, select_suggester
from gapwise.agents.pipelines import AnalysisInputs, AnalysisPipeline, AnalysisPipelineConfig
from gapwise.agents.reporters.json_reporter import JSONReporter, build_coverage_summary_report
from gapwise.agents.reporters.terminal import reporter
from gapwise.config import CONFIG_FILE_NAME, load_config, validate_config
from gapwise.errors import DiagnosticLog, GapwiseError

logger = logging.getLogger(__name__)
console = Console()

_LOG_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)

# Masking thresholds
_MIN_MASKED_VALUE_LENGTH = 8

_SENSITIVE_KEYS = {"api_key", "password", "token"}


def _config_to_dict(config: Any) -> dict[str, Any]:
    """Convert GapwiseConfig to dictionary for display."""
    result = dataclasses.asdict(config)
    # Remove the raw field as it's redundant
    result.pop("raw", None)
    return result


def _mask_sensitive_values(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Recursively mask sensitive values in a configuration dict."""

    def _mask(data: dict[str, Any]) -> dict[str, Any]:
        masked: dict[str, Any] = {}
        for key, value in data.items():
            if key in _SENSITIVE_KEYS and isinstance(value, str) and value:
                # Show first 4 chars, mask the rest
                if len(value) > _MIN_MASKED_VALUE_LENGTH:
                    masked[key] = f"{value[:4]}...{value[-4:]}"
                else:
                    masked[key] = "***"
            elif isinstance(value, dict):
                masked[key] = _mask(value)
            else:
                masked[key] = value
        return masked

    return _mask(config_dict)


def _load_config_or_abort(path: str) -> Any:
    try:
        return load_config(path)
    except GapwiseError as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e


def _pick_input(config: Any, name: str, value: str | None) -> Path:
    """Return the CLI path for *name*, falling back to ``inputs.<name>`` in config.

    A contract named nowhere is looked up among the project's OpenAPI files.
    """
    chosen = value or getattr(config.inputs, name)
    if not chosen and name == "contract":
        detected = detect_contract_files(Path(config.root))
        if detected:
            logger.info("Using detected contract %s", detected[0])
            return detected[0]
    if not chosen:
        reporter.print_error(
            f"No {name} report given. Pass --{name} or set inputs.{name} in {CONFIG_FILE_NAME}."
        )
        raise click.Abort
    return config.resolve(chosen)


# ── Command group ────────────────────────────────────────────────


@click.group()
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase log verbosity (-v for INFO, -vv for DEBUG).",
)
@click.version_option(version=__version__, prog_name="gapwise")
@click.pass_context
def cli(ctx: click.Context, verbose: int) -> None:
    """gapwise: reconcile test coverage evidence and find what is untested."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=_LOG_LEVELS[min(verbose, len(_LOG_LEVELS) - 1)],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ── analyze ──────────────────────────────────────────────────────


@cli.command("analyze")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option("--coverage", default=None, help="JaCoCo XML coverage report.")
@click.option("--execution", default=None, help="Karate/Cucumber JSON execution report.")
@click.option("--contract", default=None, help="OpenAPI contract (JSON or YAML).")
@click.option("--requirements", default=None, help="Requirements document (text/markdown).")
@click.option(
    "--json-output",
    "json_output",
    default=None,
    type=click.Path(dir_okay=False),
    help="Also write the result as JSON to this file.",
)
@click.option("--no-llm", is_flag=True, help="Use deterministic scenario synthesis only.")
@click.option(
    "--allow-partial",
    is_flag=True,
    help="Treat a malformed execution report, contract or requirements as empty.",
)
def analyze(  # noqa: PLR0913
    path: str,
    coverage: str | None,
    execution: str | None,
    contract: str | None,
    requirements: str | None,
    json_output: str | None,
    *,
    no_llm: bool,
    allow_partial: bool,
) -> None:
    """Reconcile coverage sources and report prioritized test gaps.

    Example:
      gapwise analyze --coverage target/site/jacoco/jacoco.xml \\
        --execution target/karate-reports/report.json \\
        --contract openapi.yaml --requirements docs/requirements.md
    """
    config = _load_config_or_abort(path)
    inputs = AnalysisInputs(
        coverage=_pick_input(config, "coverage", coverage),
        execution=_pick_input(config, "execution", execution),
        contract=_pick_input(config, "contract", contract),
        requirements=_pick_input(config, "requirements", requirements),
    )

    pipeline_config = AnalysisPipelineConfig.from_config(config)
    if allow_partial:
        pipeline_config = dataclasses.replace(pipeline_config, allow_partial_sources=True)

    suggester = (
        DeterministicScenarioBuilder()
        if no_llm
        else select_suggester(config.llm, max_gaps=config.analysis.max_gaps_in_prompt)
    )
    pipeline = AnalysisPipeline(pipeline_config, suggester=suggester)

    reporter.print_pipeline_header("gapwise · coverage gap analysis")
    try:
        with reporter.create_status("Analyzing coverage sources..."):
            result = asyncio.run(pipeline.analyze(inputs))
    except GapwiseError as e:
        reporter.print_error(str(e))
        raise click.Abort from e

    reporter.print_analysis_result(result)

    if json_output:
        written = JSONReporter().generate(Path(json_output), result=result)
        reporter.print_success(f"JSON report written to {written}")
    elif config.report.format == "json":
        written = JSONReporter().generate(config.resolve(config.report.output_path), result=result)
        reporter.print_success(f"JSON report written to {written}")


# ── summary ──────────────────────────────────────────────────────


@cli.command("summary")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option("--coverage", default=None, help="JaCoCo XML coverage report.")
@click.option(
    "--json-output",
    "as_json",
    is_flag=True,
    help="Output the coverage summary report as JSON.",
)
def summary(path: str, coverage: str | None, *, as_json: bool) -> None:
    """Summarize a coverage report against the configured thresholds.

    Example:
      gapwise summary --coverage target/site/jacoco/jacoco.xml
    """
    config = _load_config_or_abort(path)
    coverage_path = _pick_input(config, "coverage", coverage)

    diagnostics = DiagnosticLog()
    try:
        tree = JaCoCoAdapter().parse_coverage_file(coverage_path, diagnostics)
    except GapwiseError as e:
        reporter.print_error(str(e))
        raise click.Abort from e

    thresholds = config.thresholds.to_thresholds()
    coverage_summary = summarize_tree(tree)
    gaps = GapClassifier(thresholds).find_code_gaps(tree)

    if as_json:
        report = build_coverage_summary_report(coverage_summary, thresholds, gaps)
        click.echo(json.dumps(report, indent=2))
        return

    reporter.print_coverage_summary(coverage_summary, thresholds)
    reporter.print_code_gaps(gaps)
    reporter.print_diagnostics(diagnostics.entries)


# ── config ───────────────────────────────────────────────────────


@cli.group("config")
def config_group() -> None:
    """Inspect `.gapwise.yml` configuration."""


@config_group.command("show")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option(
    "--json-output",
    "as_json",
    is_flag=True,
    help="Output as JSON instead of YAML.",
)
@click.option(
    "--no-mask",
    is_flag=True,
    help="Show sensitive values unmasked (use with caution).",
)
def config_show(path: str, *, as_json: bool, no_mask: bool) -> None:
    """Display resolved configuration with masked sensitive values.

    Example:
      gapwise config show
      gapwise config show --json-output
    """
    config = _load_config_or_abort(path)

    config_dict = _config_to_dict(config)
    if not no_mask:
        config_dict = _mask_sensitive_values(config_dict)

    if as_json:
        click.echo(json.dumps(config_dict, indent=2))
    else:
        console.print()
        console.print("[bold cyan]Configuration:[/bold cyan]")
        console.print()
        click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))


@config_group.command("validate")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def config_validate(path: str) -> None:
    """Validate `.gapwise.yml` configuration values.

    Example:
      gapwise config validate
    """
    config = _load_config_or_abort(path)
    errors = validate_config(config)

    if not errors:
        reporter.print_success("Configuration is valid!")
        return

    reporter.print_error(f"Found {len(errors)} configuration error(s):")
    console.print()

    for idx, error in enumerate(errors, start=1):
        console.print(f"  {idx}. [red]{error}[/red]")

    console.print()
    console.print(
        f"[dim]Fix these errors in {CONFIG_FILE_NAME} and run 'gapwise config validate' again.[/dim]"
    )
    raise click.Abort


if __name__ == "__main__":
    cli()
