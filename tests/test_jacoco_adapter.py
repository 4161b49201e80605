"""Tests for JaCoCo adapter (adapters/coverage/jacoco.py).

Covers coverage-tree construction from JaCoCo XML, counter handling and
file-level error reporting.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from gapwise.adapters.coverage.base import CoverageMetricKind
from gapwise.adapters.coverage.jacoco import JaCoCoAdapter, build_coverage_tree
from gapwise.errors import DiagnosticKind, DiagnosticLog, MalformedDocumentError, MissingInputError
from gapwise.parsing.normalizer import normalize

if TYPE_CHECKING:
    from pathlib import Path


# ── Sample JaCoCo XML ────────────────────────────────────────────

_JACOCO_XML_SAMPLE = """\
<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<report name="jacoco">
  <package name="com/example">
    <class name="com/example/Calculator" sourcefilename="Calculator.java">
      <method name="add" desc="(II)I" line="10">
        <counter type="INSTRUCTION" missed="0" covered="4"/>
        <counter type="LINE" missed="0" covered="2"/>
        <counter type="METHOD" missed="0" covered="1"/>
      </method>
      <method name="subtract" desc="(II)I" line="14">
        <counter type="INSTRUCTION" missed="2" covered="4"/>
        <counter type="BRANCH" missed="1" covered="1"/>
        <counter type="LINE" missed="1" covered="3"/>
        <counter type="METHOD" missed="0" covered="1"/>
      </method>
      <counter type="INSTRUCTION" missed="2" covered="8"/>
      <counter type="BRANCH" missed="1" covered="1"/>
      <counter type="LINE" missed="1" covered="5"/>
      <counter type="METHOD" missed="0" covered="2"/>
      <counter type="CLASS" missed="0" covered="1"/>
    </class>
    <class name="com/example/Parser" sourcefilename="Parser.java">
      <counter type="LINE" missed="9" covered="1"/>
    </class>
  </package>
</report>
"""

_JACOCO_XML_UNKNOWN_COUNTER = """\
<report name="jacoco">
  <package name="foo">
    <class name="foo/Bar">
      <counter type="COMPLEXITY" missed="1" covered="2"/>
      <counter type="LINE" missed="1" covered="2"/>
    </class>
  </package>
</report>
"""

_JACOCO_XML_MISSING_VALUES = """\
<report name="jacoco">
  <package name="foo">
    <class name="foo/Bar">
      <method name="run">
        <counter type="LINE" covered="3"/>
      </method>
    </class>
  </package>
</report>
"""

_JACOCO_XML_EMPTY = """\
<?xml version="1.0" encoding="UTF-8"?>
<report name="jacoco">
</report>
"""


def _tree(xml: str, diagnostics: DiagnosticLog | None = None) -> dict:
    return build_coverage_tree(normalize(xml), diagnostics)


# ── Identity ─────────────────────────────────────────────────────


class TestJaCoCoAdapterIdentity:
    def test_name(self) -> None:
        assert JaCoCoAdapter().name == "jacoco"


# ── Tree construction ────────────────────────────────────────────


class TestJaCoCoTree:
    def test_classes_keyed_by_dotted_name(self) -> None:
        tree = _tree(_JACOCO_XML_SAMPLE)
        assert list(tree) == ["com.example.Calculator", "com.example.Parser"]

    def test_class_counters(self) -> None:
        node = _tree(_JACOCO_XML_SAMPLE)["com.example.Calculator"]
        assert node.package_name == "com/example"
        assert node.percentage(CoverageMetricKind.LINE) == 83
        assert node.percentage(CoverageMetricKind.BRANCH) == 50
        assert node.percentage(CoverageMetricKind.CLASS) == 100

    def test_method_children(self) -> None:
        node = _tree(_JACOCO_XML_SAMPLE)["com.example.Calculator"]
        assert [m.method_name for m in node.children] == ["add", "subtract"]
        subtract = node.children[1]
        assert subtract.line == 14
        assert subtract.class_name == "com/example/Calculator"
        assert subtract.percentage(CoverageMetricKind.LINE) == 75
        assert subtract.percentage(CoverageMetricKind.BRANCH) == 50

    def test_rebuild_is_deep_equal(self) -> None:
        report = normalize(_JACOCO_XML_SAMPLE)
        first = build_coverage_tree(report)
        assert first == build_coverage_tree(report)
        assert first == build_coverage_tree(normalize(_JACOCO_XML_SAMPLE))

    def test_absent_counter_kind_is_absent(self) -> None:
        add = _tree(_JACOCO_XML_SAMPLE)["com.example.Calculator"].children[0]
        assert add.percentage(CoverageMetricKind.BRANCH) is None

    def test_unknown_counter_is_skipped_with_diagnostic(self) -> None:
        diagnostics = DiagnosticLog()
        node = _tree(_JACOCO_XML_UNKNOWN_COUNTER, diagnostics)["foo.Bar"]
        assert set(node.coverage_data) == {CoverageMetricKind.LINE}
        assert len(diagnostics) == 1
        assert diagnostics.entries[0].kind is DiagnosticKind.UNRECOGNIZED_FIELD_SHAPE
        assert "COMPLEXITY" in diagnostics.entries[0].detail

    def test_missing_counter_values_default_to_zero(self) -> None:
        method = _tree(_JACOCO_XML_MISSING_VALUES)["foo.Bar"].children[0]
        data = method.coverage_data[CoverageMetricKind.LINE]
        assert (data.covered, data.missed) == (3, 0)
        assert method.line is None

    def test_empty_report(self) -> None:
        assert _tree(_JACOCO_XML_EMPTY) == {}

    def test_non_report_root_records_diagnostic(self) -> None:
        diagnostics = DiagnosticLog()
        assert _tree("<coverage/>", diagnostics) == {}
        assert diagnostics.by_source("jacoco")


# ── Parsing files ────────────────────────────────────────────────


class TestJaCoCoParsing:
    def test_parse_file(self, tmp_path: Path) -> None:
        xml_path = tmp_path / "jacoco.xml"
        xml_path.write_text(_JACOCO_XML_SAMPLE, encoding="utf-8")
        tree = JaCoCoAdapter().parse_coverage_file(xml_path)
        assert "com.example.Parser" in tree

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(MissingInputError):
            JaCoCoAdapter().parse_coverage_file(tmp_path / "nope.xml")

    def test_malformed_file(self, tmp_path: Path) -> None:
        xml_path = tmp_path / "jacoco.xml"
        xml_path.write_text("<report><package>", encoding="utf-8")
        with pytest.raises(MalformedDocumentError):
            JaCoCoAdapter().parse_coverage_file(xml_path)
