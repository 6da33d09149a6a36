"""Source extractor: syntax tree to ``SourceFileIR``."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import PurePosixPath
from typing import Any

from styleguard import syntax_tree as st
from styleguard.ir import (
    ElementRef,
    EventDecl,
    ExportDecl,
    FileKind,
    Identifier,
    ImportRef,
    ParseStatus,
    PropDecl,
    ReactiveDecl,
    SourceFileIR,
    StoreUsage,
    fingerprint,
)

STYLE_SUFFIXES = {".css", ".scss", ".sass", ".less", ".pcss", ".postcss"}
DECLARATION_BINDINGS = {"variable", "constant", "function", "parameter", "class"}

_DERIVED_RUNES = ("$derived",)
_EFFECT_RUNES = ("$effect",)


def classify_kind(path: str, *, has_markup: bool = False) -> FileKind:
    """Classify a file by path pattern and top-level shape."""
    pure = PurePosixPath(path)
    name = pure.name
    dirs = {part.lower() for part in pure.parts[:-1]}
    suffix = pure.suffix.lower()

    if suffix in STYLE_SUFFIXES:
        return "style"
    if name.startswith("+") and "routes" in dirs:
        return "route"
    if suffix == ".svelte" or has_markup:
        return "component"
    stem = name.split(".", 1)[0]
    if ".store." in name or stem.endswith("Store") or "stores" in dirs:
        return "store"
    if "apis" in dirs or "api" in dirs:
        return "api"
    return "module"


def extract(path: str, content: str, tree: Any) -> SourceFileIR:
    """Build the IR for one file from its content and parsed tree.

    Never raises for a bad tree: malformed input yields an IR whose status
    is failed and whose fact lists are empty.
    """
    if tree is None:
        kind = classify_kind(path)
        if kind == "style":
            return SourceFileIR(path=path, kind=kind)
        return SourceFileIR(path=path, kind=kind, status=ParseStatus.failed("no syntax tree"))

    collector = _Collector(path, max_line=_line_count(content))
    try:
        for node in st.walk(tree):
            collector.visit(node)
    except st.TreeFormatError as exc:
        return SourceFileIR(
            path=path,
            kind=classify_kind(path),
            status=ParseStatus.failed(str(exc)),
        )
    return collector.build()


class _Collector:
    """Accumulates facts during the single tree pass."""

    def __init__(self, path: str, *, max_line: int) -> None:
        self.path = path
        self.max_line = max_line
        self.has_markup = False
        self.props: list[PropDecl] = []
        self.events: list[EventDecl] = []
        self.reactive: list[ReactiveDecl] = []
        self.stores: list[StoreUsage] = []
        self.imports: list[ImportRef] = []
        self.exports: list[ExportDecl] = []
        self.elements: list[ElementRef] = []
        self.identifiers: list[Identifier] = []

    def visit(self, node: st.SyntaxNode) -> None:
        if node.line > self.max_line:
            raise st.TreeFormatError(
                f"{node.kind} at line {node.line} is past end of file ({self.max_line} lines)"
            )

        kind = node.kind
        if kind == st.MARKUP:
            self.has_markup = True
        elif kind == st.ELEMENT:
            self._element(node)
        elif kind == st.PROP_DECLARATION:
            self._prop(node)
        elif kind == st.EVENT_DECLARATION:
            name = _required_name(node)
            self.events.append(
                EventDecl(
                    name=name,
                    typed=bool(node.get_str("annotation")),
                    line=node.line,
                    column=node.column,
                    fingerprint=self._fp(f"event:{name}", node),
                )
            )
        elif kind == st.RUNE_CALL:
            self._rune(node)
        elif kind == st.LABELED_STATEMENT:
            if node.get_str("label") == "$":
                self.reactive.append(
                    ReactiveDecl(
                        kind="legacy",
                        line=node.line,
                        column=node.column,
                        fingerprint=self._fp(f"reactive:legacy:{node.column}", node),
                    )
                )
        elif kind == st.STORE_ACCESS:
            self._store(node)
        elif kind == st.IMPORT_DECLARATION:
            self._import(node)
        elif kind == st.EXPORT_DECLARATION:
            self._export(node)
        elif kind == st.IDENTIFIER:
            binding = node.get_str("binding", "reference") or "reference"
            if binding in DECLARATION_BINDINGS:
                name = _required_name(node)
                self.identifiers.append(
                    Identifier(
                        name=name,
                        binding=binding,
                        line=node.line,
                        column=node.column,
                        fingerprint=self._fp(f"identifier:{binding}:{name}:{node.column}", node),
                    )
                )

    def build(self) -> SourceFileIR:
        return SourceFileIR(
            path=self.path,
            kind=classify_kind(self.path, has_markup=self.has_markup),
            props=tuple(self.props),
            events=tuple(self.events),
            reactive=tuple(self.reactive),
            stores=tuple(self.stores),
            imports=tuple(self.imports),
            exports=tuple(self.exports),
            elements=tuple(self.elements),
            identifiers=tuple(self.identifiers),
        )

    def _fp(self, node_path: str, node: st.SyntaxNode) -> str:
        return fingerprint(self.path, node_path, node.line)

    def _prop(self, node: st.SyntaxNode) -> None:
        name = _required_name(node)
        self.props.append(
            PropDecl(
                name=name,
                type=node.get_str("annotation"),
                has_default=node.get_bool("default"),
                bindable=node.get_bool("bindable"),
                line=node.line,
                column=node.column,
                fingerprint=self._fp(f"prop:{name}", node),
            )
        )

    def _rune(self, node: st.SyntaxNode) -> None:
        rune = node.get_str("rune") or ""
        if rune.startswith(_DERIVED_RUNES):
            reactive_kind = "derived"
        elif rune.startswith(_EFFECT_RUNES):
            reactive_kind = "effect"
        else:
            return
        self.reactive.append(
            ReactiveDecl(
                kind=reactive_kind,
                line=node.line,
                column=node.column,
                fingerprint=self._fp(f"reactive:{reactive_kind}:{node.column}", node),
            )
        )

    def _store(self, node: st.SyntaxNode) -> None:
        name = _required_name(node)
        mode = node.get_str("mode", "auto")
        if mode not in {"auto", "subscribe"}:
            raise st.TreeFormatError(f"StoreAccess.mode must be auto or subscribe, got {mode!r}")
        self.stores.append(
            StoreUsage(
                name=name,
                mode=mode,
                line=node.line,
                column=node.column,
                fingerprint=self._fp(f"store:{name}:{mode}:{node.column}", node),
            )
        )

    def _import(self, node: st.SyntaxNode) -> None:
        source = node.get_str("source")
        if not source:
            raise st.TreeFormatError(f"ImportDeclaration without source (line {node.line})")
        self.imports.append(
            ImportRef(
                source=source,
                specifiers=_str_tuple(node.attrs.get("specifiers"), "ImportDeclaration.specifiers"),
                type_only=node.get_bool("type_only"),
                line=node.line,
                column=node.column,
                fingerprint=self._fp(f"import:{source}", node),
            )
        )

    def _export(self, node: st.SyntaxNode) -> None:
        name = _required_name(node)
        raw_params = node.attrs.get("params") or []
        if not isinstance(raw_params, list):
            raise st.TreeFormatError(f"ExportDeclaration.params must be a list (line {node.line})")
        untyped: list[str] = []
        for param in raw_params:
            if not isinstance(param, Mapping) or not isinstance(param.get("name"), str):
                raise st.TreeFormatError(
                    f"ExportDeclaration.params entries need a name (line {node.line})"
                )
            if not param.get("annotation"):
                untyped.append(param["name"])
        self.exports.append(
            ExportDecl(
                name=name,
                kind=node.get_str("kind", "const") or "const",
                untyped_params=tuple(untyped),
                has_return_type=bool(node.get_str("return_type")),
                line=node.line,
                column=node.column,
                fingerprint=self._fp(f"export:{name}", node),
            )
        )

    def _element(self, node: st.SyntaxNode) -> None:
        tag = _required_name(node)
        raw = node.attrs.get("attributes")
        if raw is None:
            attributes: tuple[str, ...] = ()
        elif isinstance(raw, Mapping):
            attributes = tuple(str(key) for key in raw)
        else:
            attributes = _str_tuple(raw, "Element.attributes")
        self.elements.append(
            ElementRef(
                tag=tag,
                attributes=attributes,
                line=node.line,
                column=node.column,
                fingerprint=self._fp(f"element:{tag}:{node.column}", node),
            )
        )


def _required_name(node: st.SyntaxNode) -> str:
    name = node.get_str("name")
    if not name:
        raise st.TreeFormatError(f"{node.kind} without name (line {node.line})")
    return name


def _str_tuple(value: Any, field_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise st.TreeFormatError(f"{field_name} must be a list of strings")
    return tuple(value)


def _line_count(content: str) -> int:
    if not content:
        return 0
    return content.count("\n") + (0 if content.endswith("\n") else 1)


def failed_ir(path: str, reason: str) -> SourceFileIR:
    """IR for a file whose tree could not be obtained or decoded."""
    return SourceFileIR(path=path, kind=classify_kind(path), status=ParseStatus.failed(reason))
