"""Structured-report normalization shared by every report parser."""

from gapwise.parsing.normalizer import (
    LIST_ITEM,
    FieldAliases,
    ReportNode,
    load_document,
    normalize,
    normalize_json,
    normalize_value,
    normalize_xml,
    read_document_text,
)

__all__ = [
    "LIST_ITEM",
    "FieldAliases",
    "ReportNode",
    "load_document",
    "normalize",
    "normalize_json",
    "normalize_value",
    "normalize_xml",
    "read_document_text",
]
