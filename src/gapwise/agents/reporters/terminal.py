"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gapwise.adapters.coverage.base import CoverageMetricKind

if TYPE_CHECKING:
    from rich.status import Status

    from gapwise.adapters.coverage.base import CoverageSummary
    from gapwise.adapters.execution.base import ApiCoverageStats
    from gapwise.agents.analyzers.gaps import (
        ApiGap,
        BusinessRuleGap,
        CoverageGap,
        CoverageThresholds,
    )
    from gapwise.agents.pipelines.analyze import GapAnalysisResult
    from gapwise.errors import Diagnostic
    from gapwise.models.scenario import TestScenario

console = Console()


_PERFECT_RATE = 100.0
_GOOD_RATE = 80.0

# Display limits for truncation and pagination
_MAX_GAPS_DISPLAY = 20
_MAX_DESCRIPTION_LENGTH = 60
_MAX_SUGGESTION_LENGTH = 70


def _pass_rate_color(rate: float) -> str:
    """Return a Rich color name for a given pass-rate percentage."""
    if rate >= _PERFECT_RATE:
        return "green"
    if rate >= _GOOD_RATE:
        return "yellow"
    return "red"


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


class CLIReporter:
    """Rich terminal output reporter for gap analysis results."""

    def __init__(self) -> None:
        """Initialize the CLI reporter."""
        self.console = console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[dim]{message}[/dim]")

    def print_pipeline_header(self, name: str) -> None:
        """Print a styled banner for a pipeline run."""
        self.console.print()
        self.console.print(
            Panel(
                f"[bold white]{name}[/bold white]",
                border_style="cyan",
                padding=(0, 2),
            )
        )

    def create_status(self, message: str) -> Status:
        """Create a Rich Status spinner for long-running operations."""
        return self.console.status(message)

    # ── Execution ──────────────────────────────────────────────────────

    def print_scenario_summary_bar(self, passed: int, failed: int, skipped: int) -> None:
        """Print a visual bar showing scenario outcome distribution."""
        total = passed + failed + skipped
        if total == 0:
            self.console.print("  [dim]No scenarios executed[/dim]")
            return

        pass_rate = passed / total * 100
        bar = self._build_result_bar(passed, failed, skipped)
        rate_color = _pass_rate_color(pass_rate)

        self.console.print()
        self.console.print(
            f"  [bold]{total}[/bold] scenarios  {bar}  "
            f"[bold {rate_color}]{pass_rate:.0f}%[/bold {rate_color}] pass rate"
        )

        parts: list[str] = []
        if passed:
            parts.append(f"[green]✓ {passed} passed[/green]")
        if failed:
            parts.append(f"[red]✗ {failed} failed[/red]")
        if skipped:
            parts.append(f"[yellow]⊘ {skipped} skipped[/yellow]")

        self.console.print(f"  {'  '.join(parts)}")
        self.console.print()

    def _build_result_bar(self, passed: int, failed: int, skipped: int, width: int = 40) -> str:
        """Build a colored bar string proportional to result counts."""
        total = passed + failed + skipped
        if total == 0:
            return f"[dim]{'░' * width}[/dim]"

        chars: list[tuple[str, str]] = []
        for count, color in ((passed, "green"), (failed, "red"), (skipped, "yellow")):
            chars.extend([("█", color)] * round(count / total * width))

        chars = chars[:width]
        while len(chars) < width:
            chars.append(("░", "dim"))

        # Group consecutive same-color runs for efficient markup
        result = ""
        i = 0
        while i < len(chars):
            char, color = chars[i]
            j = i + 1
            while j < len(chars) and chars[j][1] == color:
                j += 1
            result += f"[{color}]{char * (j - i)}[/{color}]"
            i = j

        return result

    # ── Coverage ───────────────────────────────────────────────────────

    def print_coverage_summary(
        self,
        summary: CoverageSummary,
        thresholds: CoverageThresholds,
    ) -> None:
        """Print per-metric totals against their thresholds."""
        enforced = thresholds.enforced()

        table = Table(title="Coverage Summary", title_style="bold cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Covered", justify="right")
        table.add_column("Missed", justify="right")
        table.add_column("Coverage", justify="right")
        table.add_column("Threshold", justify="right")
        table.add_column("Status", justify="center")

        for kind in CoverageMetricKind:
            data = summary.metrics.get(kind)
            if data is None:
                continue
            pct = data.percentage
            color = self._get_coverage_color(pct)
            threshold = enforced.get(kind)
            if threshold is None:
                threshold_text, status = "-", "[dim]-[/dim]"
            else:
                threshold_text = f"{threshold}%"
                status = "[green]✓[/green]" if pct >= threshold else "[red]✗[/red]"

            table.add_row(
                kind.name.capitalize(),
                str(data.covered),
                str(data.missed),
                f"[{color}]{pct}%[/{color}]",
                threshold_text,
                status,
            )

        self.console.print(table)

    def print_code_gaps(self, gaps: list[CoverageGap], limit: int = _MAX_GAPS_DISPLAY) -> None:
        """Print code coverage gaps, lowest line coverage first."""
        if not gaps:
            self.print_success("No code coverage gaps found")
            return

        table = Table(title=f"Code Coverage Gaps ({len(gaps)})", title_style="bold yellow")
        table.add_column("Class", style="bold")
        table.add_column("Method")
        table.add_column("Metric")
        table.add_column("Coverage", justify="right")
        table.add_column("Threshold", justify="right")

        for gap in gaps[:limit]:
            color = self._get_coverage_color(gap.coverage)
            method = gap.method_name or "[dim]-[/dim]"
            if gap.method_name and gap.line is not None:
                method = f"{gap.method_name} [dim]:{gap.line}[/dim]"
            table.add_row(
                gap.qualified_name,
                method,
                gap.kind.name,
                f"[{color}]{gap.coverage}%[/{color}]",
                f"{gap.threshold}%",
            )

        self.console.print(table)
        if len(gaps) > limit:
            self.print_info(f"  … and {len(gaps) - limit} more")

    # ── API & business rules ───────────────────────────────────────────

    def print_api_coverage(self, stats: ApiCoverageStats) -> None:
        """Print the covered/total endpoint ratio."""
        color = self._get_coverage_color(stats.percentage)
        self.console.print(
            f"  API endpoints covered: [bold]{stats.covered}[/bold]/{stats.total} "
            f"[{color}]({stats.percentage:.2f}%)[/{color}]"
        )

    def print_api_gaps(self, gaps: list[ApiGap], limit: int = _MAX_GAPS_DISPLAY) -> None:
        """Print uncovered contract endpoints."""
        if not gaps:
            self.print_success("Every contract endpoint is covered")
            return

        table = Table(title=f"API Coverage Gaps ({len(gaps)})", title_style="bold yellow")
        table.add_column("Method", style="bold")
        table.add_column("Path")
        table.add_column("Operation")
        table.add_column("Suggestion")

        for gap in gaps[:limit]:
            table.add_row(
                gap.method,
                gap.path,
                gap.operation_id or "[dim]-[/dim]",
                _truncate(gap.suggestion, _MAX_SUGGESTION_LENGTH),
            )

        self.console.print(table)

    def print_business_rule_gaps(
        self,
        gaps: list[BusinessRuleGap],
        limit: int = _MAX_GAPS_DISPLAY,
    ) -> None:
        """Print business rules with no covered endpoint."""
        if not gaps:
            self.print_success("Every business rule is covered")
            return

        table = Table(title=f"Business Rule Gaps ({len(gaps)})", title_style="bold yellow")
        table.add_column("Rule", style="bold")
        table.add_column("Description")
        table.add_column("Category")
        table.add_column("Priority", justify="center")

        for gap in gaps[:limit]:
            priority_color = {"High": "red", "Medium": "yellow", "Low": "dim"}.get(
                gap.priority, "yellow"
            )
            table.add_row(
                gap.rule_id,
                _truncate(gap.description, _MAX_DESCRIPTION_LENGTH),
                gap.category,
                f"[{priority_color}]{gap.priority}[/{priority_color}]",
            )

        self.console.print(table)

    # ── Scenarios & diagnostics ────────────────────────────────────────

    def print_scenarios(self, scenarios: list[TestScenario], source: str = "") -> None:
        """Print suggested test scenarios."""
        if not scenarios:
            self.print_info("No test scenarios suggested")
            return

        title = f"Suggested Scenarios ({len(scenarios)})"
        if source:
            title += f" · {source}"
        table = Table(title=title, title_style="bold cyan")
        table.add_column("ID", style="bold")
        table.add_column("Title")
        table.add_column("Priority", justify="center")
        table.add_column("Steps", justify="right")

        for scenario in scenarios:
            table.add_row(
                scenario.id,
                scenario.title,
                scenario.priority,
                str(len(scenario.steps)),
            )

        self.console.print(table)

    def print_diagnostics(self, diagnostics: list[Diagnostic]) -> None:
        """Print non-fatal issues recorded during the run."""
        if not diagnostics:
            return
        self.print_header(f"Diagnostics ({len(diagnostics)})")
        for diagnostic in diagnostics:
            detail = f" [dim]({diagnostic.detail})[/dim]" if diagnostic.detail else ""
            self.print_warning(f"[{diagnostic.source}] {diagnostic.message}{detail}")

    def print_analysis_result(self, result: GapAnalysisResult) -> None:
        """Print every section of a gap analysis result."""
        self.print_coverage_summary(result.coverage_summary, result.thresholds)
        totals = result.execution_totals
        self.print_scenario_summary_bar(
            totals.get("passed", 0), totals.get("failed", 0), totals.get("skipped", 0)
        )
        self.print_api_coverage(result.api_coverage)
        self.print_code_gaps(result.code_gaps)
        self.print_api_gaps(result.api_gaps)
        self.print_business_rule_gaps(result.business_rule_gaps)
        self.print_scenarios(result.suggested_scenarios, result.suggestion_source)
        self.print_diagnostics(result.diagnostics)

    def _get_coverage_color(self, percentage: float) -> str:
        """Get a color based on coverage percentage."""
        high_threshold = 80.0
        medium_threshold = 50.0

        if percentage >= high_threshold:
            return "green"
        if percentage >= medium_threshold:
            return "yellow"
        return "red"


reporter = CLIReporter()
