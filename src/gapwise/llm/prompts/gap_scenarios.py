"""Prompt asking the model for test scenarios that close the top coverage gaps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from gapwise.llm.prompts.base import PromptSection, PromptTemplate

if TYPE_CHECKING:
    from gapwise.agents.analyzers.gaps import GapSet
    from gapwise.agents.analyzers.openapi import ApiContract
    from gapwise.agents.analyzers.requirements import RuleCatalog

_RULE_DESCRIPTION_LIMIT = 150

# ── System instruction ───────────────────────────────────────────

_SYSTEM_INSTRUCTION = """\
You are a Test Automation Agent that helps create comprehensive test \
scenarios to address coverage gaps in the system.\
"""

# ── Response instructions ────────────────────────────────────────

_RESPONSE_FORMAT = """\
Based on the above gaps, generate 5-10 detailed test scenarios. For each scenario, provide:
1. A unique ID (TS-XXX format)
2. A clear title
3. A detailed description
4. Priority (High/Medium/Low)
5. Source requirements
6. Steps to execute the test
7. Expected results

Format your response as a valid JSON array of scenarios with the following structure:
[
  {
    "id": "TS-GAP-XXX",
    "title": "Scenario title",
    "description": "Detailed description",
    "priority": "High/Medium/Low",
    "sourceRequirements": ["Coverage Gap", "Business Rule", "API Endpoint"],
    "steps": ["Step 1 description", "Step 2 description"],
    "expectedResults": ["Expected result 1", "Expected result 2"]
  }
]

Focus on creating scenarios that:
- Address the most critical gaps first
- Cover both success and failure cases
- Test boundary conditions and edge cases
- Validate business rules thoroughly\
"""


@dataclass
class GapPromptContext:
    """Everything the scenario prompt is rendered from."""

    gaps: GapSet
    contract: ApiContract
    catalog: RuleCatalog

    max_gaps: int = 5
    """Gaps of each kind included in the prompt, taken from the front of each list."""


class GapScenarioPrompt(PromptTemplate[GapPromptContext]):
    """Renders gap-analysis output into a scenario-generation prompt."""

    @property
    def name(self) -> str:
        return "gap_scenarios"

    def _system_instruction(self, context: GapPromptContext) -> str:
        return _SYSTEM_INSTRUCTION

    def _build_sections(self, context: GapPromptContext) -> list[PromptSection]:
        return [
            PromptSection(
                label="Task",
                content=(
                    "Generate test scenarios to improve coverage based on the "
                    "following gap analysis."
                ),
            ),
            _api_info_section(context.contract),
            _code_gaps_section(context),
            _api_gaps_section(context),
            _rule_gaps_section(context),
            PromptSection(label="Response Format", content=_RESPONSE_FORMAT),
        ]


# ── Sections ─────────────────────────────────────────────────────


def _api_info_section(contract: ApiContract) -> PromptSection:
    lines = [f"- Title: {contract.title}", f"- Version: {contract.version}"]
    if contract.description:
        lines.append(f"- Description: {contract.description}")
    return PromptSection(label="API Information", content="\n".join(lines))


def _code_gaps_section(context: GapPromptContext) -> PromptSection:
    lines: list[str] = []
    for gap in context.gaps.code_gaps[: context.max_gaps]:
        method = f", Method: {gap.method_name}" if gap.method_name else ""
        lines.append(f"- Class: {gap.qualified_name}{method}")
        lines.append(f"  - {gap.kind.name} Coverage: {gap.coverage}%")
        lines.append(f"  - Suggestion: {gap.suggestion}")
    return PromptSection(label="Code Coverage Gaps", content="\n".join(lines))


def _api_gaps_section(context: GapPromptContext) -> PromptSection:
    lines: list[str] = []
    for gap in context.gaps.api_gaps[: context.max_gaps]:
        operation = f" ({gap.operation_id})" if gap.operation_id else ""
        lines.append(f"- {gap.method} {gap.path}{operation}")
        lines.append(f"  - Suggestion: {gap.suggestion}")
    return PromptSection(label="API Coverage Gaps", content="\n".join(lines))


def _rule_gaps_section(context: GapPromptContext) -> PromptSection:
    lines: list[str] = []
    for gap in context.gaps.business_rule_gaps[: context.max_gaps]:
        description = gap.description[:_RULE_DESCRIPTION_LIMIT]
        if len(gap.description) > _RULE_DESCRIPTION_LIMIT:
            description += "..."
        lines.append(f"- {gap.rule_id}: {description}")
        lines.append(f"  - Category: {gap.category}, Priority: {gap.priority}")
        lines.append(f"  - Suggestion: {gap.suggestion}")
    return PromptSection(label="Business Rule Coverage Gaps", content="\n".join(lines))
