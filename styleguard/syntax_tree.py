"""Syntax tree node contract and a validating pre-order walker."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

MARKUP = "Markup"
ELEMENT = "Element"
PROP_DECLARATION = "PropDeclaration"
EVENT_DECLARATION = "EventDeclaration"
RUNE_CALL = "RuneCall"
LABELED_STATEMENT = "LabeledStatement"
STORE_ACCESS = "StoreAccess"
IMPORT_DECLARATION = "ImportDeclaration"
EXPORT_DECLARATION = "ExportDeclaration"
IDENTIFIER = "Identifier"
ERROR = "Error"

_RESERVED_KEYS = {"type", "line", "column", "children"}


class TreeFormatError(ValueError):
    """Raised when a syntax tree does not follow the node contract."""


@dataclass(frozen=True, slots=True)
class SyntaxNode:
    """A single visited node, detached from its children."""

    kind: str
    line: int
    column: int
    attrs: Mapping[str, Any]

    def get_str(self, key: str, default: str | None = None) -> str | None:
        value = self.attrs.get(key, default)
        if value is None:
            return None
        if not isinstance(value, str):
            raise TreeFormatError(f"{self.kind}.{key} must be a string (line {self.line})")
        return value

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.attrs.get(key, default)
        if not isinstance(value, bool):
            raise TreeFormatError(f"{self.kind}.{key} must be a boolean (line {self.line})")
        return value


def walk(tree: Any) -> Iterator[SyntaxNode]:
    """Yield every node of ``tree`` in source pre-order.

    Children are visited in list order with an explicit stack, so deep trees
    do not hit the recursion limit. Raises ``TreeFormatError`` on the first
    node that breaks the contract, including parser ``Error`` nodes.
    """
    stack: list[Any] = [tree]
    while stack:
        raw = stack.pop()
        node = _as_node(raw)
        if node.kind == ERROR:
            message = node.attrs.get("message") or "parser reported an error"
            raise TreeFormatError(f"{message} (line {node.line})")
        yield node

        children = raw.get("children")
        if children is None:
            continue
        if not isinstance(children, list):
            raise TreeFormatError(f"{node.kind}.children must be a list (line {node.line})")
        stack.extend(reversed(children))


def _as_node(raw: Any) -> SyntaxNode:
    if not isinstance(raw, Mapping):
        raise TreeFormatError(f"node must be an object, got {type(raw).__name__}")

    kind = raw.get("type")
    if not isinstance(kind, str) or not kind:
        raise TreeFormatError("node is missing a string 'type'")

    line = _position(raw, "line", kind)
    column = _position(raw, "column", kind)
    attrs = {key: value for key, value in raw.items() if key not in _RESERVED_KEYS}
    return SyntaxNode(kind=kind, line=line, column=column, attrs=attrs)


def _position(raw: Mapping[str, Any], key: str, kind: str) -> int:
    value = raw.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise TreeFormatError(f"{kind}.{key} must be a non-negative integer")
    return value
