"""Analyzer agents for gapwise."""

from gapwise.agents.analyzers.gaps import (
    ApiGap,
    BusinessRuleGap,
    CoverageGap,
    CoverageThresholds,
    GapClassifier,
    GapSet,
    summarize_gap_suggestions,
)
from gapwise.agents.analyzers.openapi import (
    ApiContract,
    Endpoint,
    analyze_openapi_spec,
    detect_contract_files,
    parse_api_contract,
)
from gapwise.agents.analyzers.requirements import (
    BusinessRule,
    RuleCatalog,
    RuleCategory,
    RulePriority,
    extract_business_rules,
    map_rules_to_endpoints,
    parse_requirements,
    parse_requirements_file,
)

__all__ = [
    "ApiContract",
    "ApiGap",
    "BusinessRule",
    "BusinessRuleGap",
    "CoverageGap",
    "CoverageThresholds",
    "Endpoint",
    "GapClassifier",
    "GapSet",
    "RuleCatalog",
    "RuleCategory",
    "RulePriority",
    "analyze_openapi_spec",
    "detect_contract_files",
    "extract_business_rules",
    "map_rules_to_endpoints",
    "parse_api_contract",
    "parse_requirements",
    "parse_requirements_file",
    "summarize_gap_suggestions",
]
