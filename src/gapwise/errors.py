"""Error taxonomy and non-fatal diagnostics for gap analysis runs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

_MAX_FRAGMENT_LENGTH = 120


class GapwiseError(Exception):
    """Base exception for all gapwise errors."""


class MissingInputError(GapwiseError):
    """Raised when a required report path or document is absent."""

    def __init__(self, path: str, message: str = "") -> None:
        self.path = path
        super().__init__(message or f"Required input not found: {path}")


class ParseError(GapwiseError):
    """Raised when a raw document is not valid XML/JSON.

    Carries a short excerpt of the offending input so the failure can be
    located without re-reading the document.
    """

    def __init__(self, message: str, fragment: str = "") -> None:
        self.fragment = clip_fragment(fragment)
        super().__init__(message)


class MalformedDocumentError(ParseError):
    """A ``ParseError`` bound to the document path it came from."""

    def __init__(self, source: str, message: str, fragment: str = "") -> None:
        self.source = source
        super().__init__(f"{source}: {message}", fragment)


class CollaboratorError(GapwiseError):
    """Raised when the scenario-suggestion collaborator fails or returns junk."""


def clip_fragment(text: str, position: int | None = None) -> str:
    """Return at most ``_MAX_FRAGMENT_LENGTH`` characters of *text*.

    When *position* is given the excerpt is centred on it.
    """
    if len(text) <= _MAX_FRAGMENT_LENGTH:
        return text
    if position is None:
        return text[:_MAX_FRAGMENT_LENGTH]
    half = _MAX_FRAGMENT_LENGTH // 2
    start = max(0, min(position - half, len(text) - _MAX_FRAGMENT_LENGTH))
    return text[start : start + _MAX_FRAGMENT_LENGTH]


# ── Diagnostics ──────────────────────────────────────────────────


class DiagnosticKind(Enum):
    """Kinds of non-fatal issues recorded during a run."""

    UNRECOGNIZED_FIELD_SHAPE = "unrecognized_field_shape"
    SKIPPED_SOURCE = "skipped_source"
    COLLABORATOR_FAILURE = "collaborator_failure"


@dataclass
class Diagnostic:
    """A non-fatal issue: the offending item was skipped, the run continued."""

    source: str
    """Report family or document the issue came from (e.g. 'jacoco')."""

    kind: DiagnosticKind
    """What went wrong."""

    message: str
    """Human-readable description."""

    detail: str = ""
    """Optional offending value or location."""

    def to_dict(self) -> dict[str, str]:
        """Return a JSON-compatible representation."""
        return {
            "source": self.source,
            "kind": self.kind.value,
            "message": self.message,
            "detail": self.detail,
        }


@dataclass
class DiagnosticLog:
    """Collects diagnostics for one analysis run."""

    entries: list[Diagnostic] = field(default_factory=list)

    def record(
        self,
        source: str,
        kind: DiagnosticKind,
        message: str,
        detail: str = "",
    ) -> Diagnostic:
        """Record a diagnostic and log it at WARNING level."""
        diagnostic = Diagnostic(source=source, kind=kind, message=message, detail=detail)
        self.entries.append(diagnostic)
        if detail:
            logger.warning("[%s] %s (%s)", source, message, detail)
        else:
            logger.warning("[%s] %s", source, message)
        return diagnostic

    def skip(self, source: str, message: str, detail: str = "") -> Diagnostic:
        """Shorthand for an unrecognized-field-shape diagnostic."""
        return self.record(source, DiagnosticKind.UNRECOGNIZED_FIELD_SHAPE, message, detail)

    def by_source(self, source: str) -> list[Diagnostic]:
        """Return diagnostics recorded for *source*."""
        return [d for d in self.entries if d.source == source]

    def __len__(self) -> int:
        return len(self.entries)
