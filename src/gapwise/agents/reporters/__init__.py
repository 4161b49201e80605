"""Reporters for outputting gap analysis results."""

from __future__ import annotations

from gapwise.agents.reporters.json_reporter import JSONReporter
from gapwise.agents.reporters.terminal import CLIReporter, reporter

__all__ = [
    "CLIReporter",
    "JSONReporter",
    "reporter",
]
