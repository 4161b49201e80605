"""Business-rule extraction from free-text requirements, and rule-to-endpoint mapping.

Extraction is heuristic. A structured pass walks the document line by line,
tracking the current heading, and turns keyword-bearing lines (plus their
continuation lines) into rules. When that pass finds nothing, a paragraph
pass keeps any colon-bearing paragraph that mentions a rule-like word.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from gapwise.adapters.execution.base import endpoint_key
from gapwise.parsing.normalizer import read_document_text

if TYPE_CHECKING:
    from collections.abc import Iterable

    from gapwise.agents.analyzers.openapi import Endpoint

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Product Specification"
FALLBACK_SECTION = "General"

_NUMBERED_SECTION = re.compile(r"^\d+\.\d+\s+")
_HEADING_MARKS = re.compile(r"^#+\s*")
_TITLE_HEADING = re.compile(r"^#\s+(.+)$")
_MODAL_TRIGGER = re.compile(r"\b(?:must|should)\s", re.IGNORECASE)
_NOUN_TRIGGERS = ("Validation Rule", "Rule", "Requirement", "Limit")
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_PARAGRAPH_WORDS = ("rule", "requirement", "validation", "must", "should")


class RuleCategory(Enum):
    GENERAL = "General"
    SECURITY = "Security"
    PAYMENT = "Payment"
    USER = "User"


class RulePriority(Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# First matching entry wins
_CATEGORY_KEYWORDS: tuple[tuple[RuleCategory, tuple[str, ...]], ...] = (
    (RuleCategory.SECURITY, ("security", "auth")),
    (RuleCategory.PAYMENT, ("payment", "transaction")),
    (RuleCategory.USER, ("user", "account")),
)

_PRIORITY_KEYWORDS: tuple[tuple[RulePriority, tuple[str, ...]], ...] = (
    (RulePriority.HIGH, ("critical", "must")),
    (RulePriority.MEDIUM, ("should", "recommended")),
    (RulePriority.LOW, ("may", "optional")),
)


# ── Data models ──────────────────────────────────────────────────


@dataclass
class BusinessRule:
    """A discrete rule found in the requirements document."""

    id: str
    """Sequential identifier (``R-1``, ``R-2``, ...)."""

    section: str
    """Title of the heading the rule was found under."""

    description: str
    """Full rule text, continuation lines joined by single spaces."""

    category: RuleCategory = RuleCategory.GENERAL
    priority: RulePriority = RulePriority.MEDIUM

    related_endpoints: list[str] = field(default_factory=list)
    """``METHOD path`` strings of endpoints linked by the mapper."""

    @property
    def related_endpoint_keys(self) -> list[str]:
        """Related endpoints as ``METHOD:path`` identity keys."""
        keys: list[str] = []
        for related in self.related_endpoints:
            method, _, path = related.partition(" ")
            keys.append(endpoint_key(method, path))
        return keys

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "section": self.section,
            "description": self.description,
            "category": self.category.value,
            "priority": self.priority.value,
            "related_endpoints": list(self.related_endpoints),
        }


@dataclass
class RuleCatalog:
    """Business rules extracted from one requirements document."""

    title: str = DEFAULT_TITLE
    description: str = ""
    rules: list[BusinessRule] = field(default_factory=list)


# ── Heuristics ───────────────────────────────────────────────────


def classify_category(text: str) -> RuleCategory:
    """Assign a category from the first keyword group present in *text*."""
    lowered = text.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return RuleCategory.GENERAL


def classify_priority(text: str) -> RulePriority:
    """Assign a priority from the first keyword group present in *text*."""
    lowered = text.lower()
    for priority, keywords in _PRIORITY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return priority
    return RulePriority.MEDIUM


def _is_heading(line: str) -> bool:
    return line.startswith("#") or bool(_NUMBERED_SECTION.match(line))


def _section_title(line: str) -> str:
    return _NUMBERED_SECTION.sub("", _HEADING_MARKS.sub("", line), count=1).strip()


def _starts_rule(line: str) -> bool:
    if any(trigger in line for trigger in _NOUN_TRIGGERS):
        return True
    return bool(_MODAL_TRIGGER.search(line + " "))


# ── Extraction ───────────────────────────────────────────────────


def _structured_pass(lines: list[str]) -> list[BusinessRule]:
    rules: list[BusinessRule] = []
    section = ""
    index = 0

    while index < len(lines):
        line = lines[index].strip()
        index += 1

        if _is_heading(line):
            section = _section_title(line)
            continue
        if not line or not _starts_rule(line):
            continue

        parts = [line]
        while index < len(lines):
            follower = lines[index].strip()
            if not follower or _is_heading(follower):
                break
            parts.append(follower)
            index += 1

        description = " ".join(parts)
        category = classify_category(description)
        if category is RuleCategory.GENERAL and section:
            category = classify_category(section)

        rules.append(
            BusinessRule(
                id=f"R-{len(rules) + 1}",
                section=section,
                description=description,
                category=category,
                priority=classify_priority(description),
            )
        )

    return rules


def _paragraph_pass(content: str) -> list[BusinessRule]:
    rules: list[BusinessRule] = []
    for paragraph in _PARAGRAPH_SPLIT.split(content):
        lowered = paragraph.lower()
        if ":" not in paragraph or not any(word in lowered for word in _PARAGRAPH_WORDS):
            continue
        rules.append(
            BusinessRule(
                id=f"R-{len(rules) + 1}",
                section=FALLBACK_SECTION,
                description=paragraph.strip(),
            )
        )
    return rules


def extract_business_rules(content: str) -> list[BusinessRule]:
    """Extract business rules from requirements text.

    Returns:
        Rules in document order, numbered from ``R-1``. Falls back to the
        paragraph pass when the structured pass finds nothing.
    """
    rules = _structured_pass(content.splitlines())
    if rules:
        return rules

    rules = _paragraph_pass(content)
    if rules:
        logger.debug("Structured extraction found no rules; %d found by paragraph", len(rules))
    return rules


def parse_requirements(content: str) -> RuleCatalog:
    """Build a ``RuleCatalog`` from requirements text.

    The first level-one markdown heading, if any, becomes the catalog title.
    """
    title = DEFAULT_TITLE
    for line in content.splitlines():
        match = _TITLE_HEADING.match(line.strip())
        if match:
            title = match.group(1).strip()
            break
    return RuleCatalog(title=title, rules=extract_business_rules(content))


def parse_requirements_file(path: Path) -> RuleCatalog:
    """Read and parse a requirements document.

    Raises:
        MissingInputError: If the file does not exist or cannot be read.
        MalformedDocumentError: If the file is not valid UTF-8.
    """
    doc_path = Path(path)
    logger.info("Parsing requirements from %s", doc_path)
    content = read_document_text(doc_path)

    catalog = parse_requirements(content)
    logger.info("Parsed requirements with %d business rules", len(catalog.rules))
    return catalog


# ── Mapping ──────────────────────────────────────────────────────


def _path_segments(path: str) -> list[str]:
    return [segment for segment in path.split("/") if segment and not segment.startswith("{")]


def _endpoint_matches(description: str, endpoint: Endpoint) -> bool:
    if endpoint.summary and endpoint.summary.lower() in description:
        return True
    if endpoint.operation_id and endpoint.operation_id.lower() in description:
        return True
    if any(tag.lower() in description for tag in endpoint.tags if tag):
        return True
    return any(segment.lower() in description for segment in _path_segments(endpoint.path))


def map_rules_to_endpoints(
    rules: list[BusinessRule],
    endpoints: Iterable[Endpoint],
) -> list[BusinessRule]:
    """Link each rule to the endpoints its description mentions.

    An endpoint is related when its summary, operation id, a tag, or a
    non-parameter path segment appears (case-insensitively) in the rule
    description. Each endpoint is listed at most once per rule. The rules'
    ``related_endpoints`` are replaced; endpoints are not modified.
    """
    endpoint_list = list(endpoints)
    for rule in rules:
        description = rule.description.lower()
        related: list[str] = []
        for endpoint in endpoint_list:
            name = endpoint.display_name
            if name not in related and _endpoint_matches(description, endpoint):
                related.append(name)
        rule.related_endpoints = related

    logger.debug(
        "Mapped %d rules to endpoints (%d with at least one endpoint)",
        len(rules),
        sum(1 for rule in rules if rule.related_endpoints),
    )
    return rules
