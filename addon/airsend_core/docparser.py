"""
Parser for the indentation-based key/value documents (airsend.yaml,
secrets.yaml).

This is not a YAML processor. It understands the subset those files use:

    block(n)   := entry(n)+              entries share indentation n
    entry(n)   := key ":" scalar
                | key ":" [block(m > n) | list(m >= n)]
    list(n)    := ("- " item)+           item = scalar | inline mapping
    scalar     := quoted | true | false | int | float | bare text

Blank lines and comment lines are ignored, as is a trailing `` #`` comment
outside quotes. An empty value (or ``~`` / ``null``) opens a nested block,
which is an empty mapping when no deeper lines follow.

Lines that do not fit the grammar are skipped with a warning under
``Strictness.LENIENT`` and raise ``DocumentSyntaxError`` under
``Strictness.STRICT``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .core_types import MalformedInput
from .logging_setup import logger

_INT_RE = re.compile(r"^[-+]?\d+$")
_FLOAT_RE = re.compile(r"^[-+]?(\d+\.\d*|\.\d+|\d+(\.\d*)?[eE][-+]?\d+)$")
_NULL_VALUES = {"", "~", "null"}


class Strictness(Enum):
    LENIENT = "lenient"
    STRICT = "strict"


class DocumentSyntaxError(MalformedInput):
    """Raised in strict mode for a line that does not fit the grammar."""

    def __init__(self, message: str, line: int):
        super().__init__(f"line {line}: {message}")
        self.line = line


@dataclass
class ScalarNode:
    value: Any
    line: int = 0

    def to_python(self) -> Any:
        return self.value


@dataclass
class MappingNode:
    entries: dict[str, Node] = field(default_factory=dict)
    line: int = 0

    def to_python(self) -> dict[str, Any]:
        return {k: v.to_python() for k, v in self.entries.items()}


@dataclass
class SequenceNode:
    items: list[Node] = field(default_factory=list)
    line: int = 0

    def to_python(self) -> list[Any]:
        return [item.to_python() for item in self.items]


Node = ScalarNode | MappingNode | SequenceNode


@dataclass
class _Line:
    number: int
    indent: int
    text: str


def _strip_comment(text: str) -> str:
    quote = None
    for i, ch in enumerate(text):
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "#" and (i == 0 or text[i - 1] in " \t"):
            return text[:i].rstrip()
    return text.rstrip()


def _unquote(text: str) -> tuple[str, bool]:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1], True
    return text, False


def parse_scalar(raw: str) -> Any:
    """Convert a scalar literal; quoted text is always a string."""
    text, quoted = _unquote(raw.strip())
    if quoted:
        return text
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _INT_RE.match(text):
        return int(text)
    if _FLOAT_RE.match(text):
        return float(text)
    return text


def _split_key(text: str, require_space: bool) -> tuple[str, str] | None:
    """Split ``key: value``; None when the text is not a key entry."""
    if text[0] in ("'", '"'):
        end = text.find(text[0], 1)
        if end < 0 or not text[end + 1 :].lstrip().startswith(":"):
            return None
        key = text[1:end]
        rest = text[end + 1 :].lstrip()[1:]
    else:
        idx = text.find(":")
        while require_space and idx >= 0 and idx + 1 < len(text) and text[idx + 1] not in " \t":
            idx = text.find(":", idx + 1)
        if idx <= 0:
            return None
        key = text[:idx].strip()
        rest = text[idx + 1 :]
    if require_space and rest and rest[0] not in " \t":
        return None
    return key, rest.strip()


def _is_list_item(text: str) -> bool:
    return text == "-" or text.startswith("- ")


class _Parser:
    def __init__(self, lines: list[_Line], strictness: Strictness):
        self.lines = lines
        self.pos = 0
        self.strictness = strictness
        self.issues: list[str] = []

    def _malformed(self, line: _Line, message: str) -> None:
        if self.strictness is Strictness.STRICT:
            raise DocumentSyntaxError(message, line.number)
        self.issues.append(f"line {line.number}: {message}")
        logger.warning(
            {"event": "document_line_skipped", "line": line.number, "reason": message}
        )

    def parse_document(self) -> Node:
        if not self.lines:
            return MappingNode()
        root = self._parse_block(self.lines[0].indent)
        while self.pos < len(self.lines):
            self._malformed(self.lines[self.pos], "unexpected indentation")
            self.pos += 1
        return root

    def _parse_block(self, indent: int) -> Node:
        if _is_list_item(self.lines[self.pos].text):
            return self._parse_sequence(indent)
        return self._parse_mapping(indent)

    def _parse_child(self, parent_indent: int) -> Node:
        if self.pos < len(self.lines):
            nxt = self.lines[self.pos]
            if nxt.indent > parent_indent:
                return self._parse_block(nxt.indent)
            if nxt.indent == parent_indent and _is_list_item(nxt.text):
                return self._parse_sequence(parent_indent)
        return MappingNode(line=self.lines[self.pos - 1].number)

    def _parse_mapping(self, indent: int) -> MappingNode:
        node = MappingNode(line=self.lines[self.pos].number)
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if line.indent < indent:
                break
            if line.indent > indent:
                self._malformed(line, "unexpected indentation")
                self.pos += 1
                continue
            if _is_list_item(line.text):
                self._malformed(line, "list item inside a mapping")
                self.pos += 1
                continue
            split = _split_key(line.text, require_space=False)
            if split is None:
                self._malformed(line, "expected 'key: value'")
                self.pos += 1
                continue
            key, raw = split
            key = _unquote(key)[0]
            self.pos += 1
            if raw in _NULL_VALUES:
                value: Node = self._parse_child(indent)
            else:
                value = ScalarNode(parse_scalar(raw), line.number)
            if key in node.entries:
                if self.strictness is Strictness.STRICT:
                    raise DocumentSyntaxError(f"duplicate key {key!r}", line.number)
                logger.debug({"event": "document_duplicate_key", "key": key, "line": line.number})
            node.entries[key] = value
        return node

    def _parse_sequence(self, indent: int) -> SequenceNode:
        node = SequenceNode(line=self.lines[self.pos].number)
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if line.indent < indent:
                break
            if line.indent > indent:
                self._malformed(line, "unexpected indentation")
                self.pos += 1
                continue
            if not _is_list_item(line.text):
                break
            rest = line.text[1:].lstrip()
            if not rest:
                self.pos += 1
                node.items.append(self._parse_child(indent))
                continue
            if rest[0] not in ("'", '"') and _split_key(rest, require_space=True):
                # "- key: value" opens a mapping aligned on the key
                item_indent = line.indent + len(line.text) - len(rest)
                self.lines[self.pos] = _Line(line.number, item_indent, rest)
                node.items.append(self._parse_mapping(item_indent))
                continue
            self.pos += 1
            node.items.append(ScalarNode(parse_scalar(rest), line.number))
        return node


def _tokenize(text: str, strictness: Strictness) -> list[_Line]:
    lines: list[_Line] = []
    for number, raw in enumerate(text.splitlines(), start=1):
        body = raw.lstrip(" ")
        if not body.strip() or body.startswith("#"):
            continue
        if body.startswith("\t"):
            if strictness is Strictness.STRICT:
                raise DocumentSyntaxError("tab in indentation", number)
            logger.warning({"event": "document_line_skipped", "line": number, "reason": "tab in indentation"})
            continue
        content = _strip_comment(body)
        if not content:
            continue
        lines.append(_Line(number, len(raw) - len(body), content))
    return lines


def parse_document(text: str, strictness: Strictness = Strictness.LENIENT) -> Node:
    """Parse ``text`` into a typed node tree."""
    parser = _Parser(_tokenize(text, strictness), strictness)
    return parser.parse_document()


def load(text: str, strictness: Strictness = Strictness.LENIENT) -> Any:
    """Parse ``text`` and return plain Python values."""
    return parse_document(text, strictness).to_python()


__all__ = [
    "DocumentSyntaxError",
    "MappingNode",
    "ScalarNode",
    "SequenceNode",
    "Strictness",
    "load",
    "parse_document",
    "parse_scalar",
]
