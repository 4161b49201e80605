"""Generic structured-report normalizer.

Every report format consumed by gapwise (JaCoCo XML, Karate/Cucumber JSON,
OpenAPI JSON/YAML) is first converted into a tree of ``ReportNode`` objects.
A node exposes string attributes and named children, and a named child is
*always* a list: a field that holds a single object and a field that holds an
array of such objects normalize to the same shape. Parsers iterate, they never
check arity.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from defusedxml import DefusedXmlException, ElementTree
from defusedxml.ElementTree import ParseError as DefusedParseError

from gapwise.errors import MalformedDocumentError, MissingInputError, ParseError, clip_fragment

if TYPE_CHECKING:
    from xml.etree.ElementTree import Element as XmlElement

logger = logging.getLogger(__name__)

LIST_ITEM = "item"
"""Child name used for the elements of a top-level or nested JSON array."""

ROOT_NAME = "root"
"""Node name given to the top of a JSON/YAML document."""

_YAML_SUFFIXES = frozenset({".yaml", ".yml"})


# ── Tree model ───────────────────────────────────────────────────


@dataclass
class ReportNode:
    """One element of a normalized report."""

    name: str
    """Element tag (XML) or field name (JSON)."""

    attributes: dict[str, str] = field(default_factory=dict)
    """Scalar fields, string-encoded."""

    children: dict[str, list[ReportNode]] = field(default_factory=dict)
    """Named child collections; each value is a list, even for one child."""

    text: str = ""
    """Element text (XML) or the value of a scalar array item (JSON)."""

    raw: Any = None
    """Original JSON/YAML value, kept for verbatim capture. ``None`` for XML."""

    def all(self, name: str) -> list[ReportNode]:
        """Return every child called *name* (possibly empty)."""
        return self.children.get(name, [])

    def first(self, name: str) -> ReportNode | None:
        """Return the first child called *name*, or ``None``."""
        found = self.children.get(name)
        return found[0] if found else None

    def get(self, key: str, default: str = "") -> str:
        """Return attribute *key*, or *default* when absent."""
        return self.attributes.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        """Return attribute *key* parsed as an integer.

        Missing or non-numeric values yield *default*.
        """
        value = self.attributes.get(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            try:
                return int(float(value))
            except ValueError:
                return default

    def has(self, key: str) -> bool:
        """Return ``True`` if *key* is present as an attribute or a child."""
        return key in self.attributes or key in self.children

    def texts(self, name: str) -> list[str]:
        """Return the text of every child called *name*.

        Object children contribute their ``name`` attribute, which covers
        Cucumber-style ``tags: [{"name": "@smoke"}]`` as well as plain
        ``tags: ["users"]``.
        """
        values: list[str] = []
        for child in self.all(name):
            value = child.text or child.get("name")
            if value:
                values.append(value)
        return values


@dataclass(frozen=True)
class FieldAliases:
    """An ordered list of names under which the same field may appear.

    Resolved once per field: the first alias that is present wins.
    """

    names: tuple[str, ...]

    @classmethod
    def of(cls, *names: str) -> FieldAliases:
        return cls(names=tuple(names))

    def attr(self, node: ReportNode, default: str = "") -> str:
        """Return the first non-empty attribute among the aliases."""
        for name in self.names:
            value = node.attributes.get(name)
            if value:
                return value
        return default

    def int_attr(self, node: ReportNode, default: int = 0) -> int:
        """Integer variant of :meth:`attr`."""
        for name in self.names:
            if node.attributes.get(name):
                return node.get_int(name, default)
        return default

    def child(self, node: ReportNode) -> ReportNode | None:
        """Return the first child found under any alias."""
        for name in self.names:
            found = node.first(name)
            if found is not None:
                return found
        return None

    def children(self, node: ReportNode) -> list[ReportNode]:
        """Return the child collection of the first alias that is present."""
        for name in self.names:
            if name in node.children:
                return node.children[name]
        return []


# ── JSON / mapping normalization ─────────────────────────────────


def _scalar_to_str(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _is_scalar(value: object) -> bool:
    return isinstance(value, (str, int, float, bool))


def normalize_value(value: object, name: str = ROOT_NAME) -> ReportNode:
    """Normalize an already-decoded JSON/YAML value into a ``ReportNode``.

    Mappings become nodes whose scalar fields are attributes and whose
    object/array fields are children. Arrays become a node whose items are
    children called ``item``. Scalars become a node carrying only ``text``.
    """
    if isinstance(value, dict):
        node = ReportNode(name=name, raw=value)
        for key, item in value.items():
            key_str = str(key)
            if item is None:
                continue
            if _is_scalar(item):
                node.attributes[key_str] = _scalar_to_str(item)
            elif isinstance(item, list):
                node.children[key_str] = [normalize_value(entry, key_str) for entry in item]
            else:
                node.children[key_str] = [normalize_value(item, key_str)]
        return node

    if isinstance(value, list):
        return ReportNode(
            name=name,
            children={LIST_ITEM: [normalize_value(entry, LIST_ITEM) for entry in value]},
            raw=value,
        )

    if value is None:
        return ReportNode(name=name)

    return ReportNode(name=name, text=_scalar_to_str(value), raw=value)


def normalize_json(text: str) -> ReportNode:
    """Decode a JSON document and normalize it.

    Raises:
        ParseError: If *text* is not valid JSON.
    """
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(
            f"Invalid JSON at line {exc.lineno} column {exc.colno}: {exc.msg}",
            clip_fragment(text, exc.pos),
        ) from exc
    return normalize_value(value)


def normalize_yaml(text: str) -> ReportNode:
    """Decode a YAML document and normalize it.

    Raises:
        ParseError: If *text* is not valid YAML.
    """
    try:
        value = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        position = None
        mark = getattr(exc, "problem_mark", None)
        if mark is not None:
            position = mark.index
        raise ParseError(f"Invalid YAML: {exc}", clip_fragment(text, position)) from exc
    return normalize_value(value)


# ── XML normalization ────────────────────────────────────────────


def _local_name(tag: str) -> str:
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def _normalize_element(element: XmlElement) -> ReportNode:
    node = ReportNode(
        name=_local_name(element.tag),
        attributes={_local_name(k): v for k, v in element.attrib.items()},
        text=(element.text or "").strip(),
    )
    for child in element:
        child_node = _normalize_element(child)
        node.children.setdefault(child_node.name, []).append(child_node)
    return node


def _xml_offset(text: str, line: int, column: int) -> int:
    lines = text.splitlines(keepends=True)
    return sum(len(part) for part in lines[: max(line - 1, 0)]) + column


def normalize_xml(text: str | bytes) -> ReportNode:
    """Parse an XML document with ``defusedxml`` and normalize it.

    Raises:
        ParseError: If *text* is not well-formed or uses forbidden constructs.
    """
    try:
        root = ElementTree.fromstring(text)
    except DefusedParseError as exc:
        decoded = text.decode("utf-8", errors="replace") if isinstance(text, bytes) else text
        line, column = getattr(exc, "position", (1, 0))
        raise ParseError(
            f"Invalid XML: {exc}",
            clip_fragment(decoded, _xml_offset(decoded, line, column)),
        ) from exc
    except DefusedXmlException as exc:
        decoded = text.decode("utf-8", errors="replace") if isinstance(text, bytes) else text
        raise ParseError(f"Forbidden XML construct: {exc}", clip_fragment(decoded)) from exc
    return _normalize_element(root)


# ── Entry points ─────────────────────────────────────────────────


def normalize(document: str | bytes | dict[str, Any] | list[Any]) -> ReportNode:
    """Normalize a raw XML/JSON document or an already-decoded value.

    Strings are sniffed: a leading ``<`` means XML, anything else is JSON.
    """
    if isinstance(document, (dict, list)):
        return normalize_value(document)
    if isinstance(document, bytes):
        document = document.decode("utf-8-sig", errors="replace")
    stripped = document.lstrip("\ufeff \t\r\n")
    if not stripped:
        raise ParseError("Empty document")
    if stripped.startswith("<"):
        return normalize_xml(stripped)
    return normalize_json(stripped)


def read_document_text(path: str | Path) -> str:
    """Read *path* as UTF-8 text, dropping a leading byte-order mark.

    Raises:
        MissingInputError: If the file does not exist or cannot be read.
        MalformedDocumentError: If the bytes are not valid UTF-8.
    """
    doc_path = Path(path)
    if not doc_path.is_file():
        raise MissingInputError(str(doc_path))
    try:
        return doc_path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        excerpt = exc.object[max(0, exc.start - 40) : exc.end + 40]
        raise MalformedDocumentError(
            str(doc_path),
            f"Invalid encoding: {exc}",
            excerpt.decode("utf-8", errors="replace"),
        ) from exc
    except OSError as exc:
        raise MissingInputError(str(doc_path), f"Could not read {doc_path}: {exc}") from exc


def load_document(path: str | Path) -> ReportNode:
    """Read a report from disk and normalize it.

    ``.yaml``/``.yml`` files are decoded as YAML; everything else is sniffed
    by :func:`normalize`.

    Raises:
        MissingInputError: If the file does not exist or cannot be read.
        MalformedDocumentError: If the content cannot be parsed.
    """
    doc_path = Path(path)
    text = read_document_text(doc_path)

    logger.debug("Normalizing %s (%d bytes)", doc_path, len(text))
    try:
        if doc_path.suffix.lower() in _YAML_SUFFIXES:
            return normalize_yaml(text)
        return normalize(text)
    except ParseError as exc:
        raise MalformedDocumentError(str(doc_path), str(exc), exc.fragment) from exc
