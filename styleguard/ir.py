"""Normalized per-file structural facts consumed by rules."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, fields
from typing import Any, Literal

FileKind = Literal["component", "route", "store", "api", "style", "module"]
ReactiveKind = Literal["derived", "effect", "legacy"]

FILE_KINDS: tuple[str, ...] = ("component", "route", "store", "api", "style", "module")

# Bump when extraction output changes shape or meaning; cached IR from older
# schemas is never reused.
IR_SCHEMA_VERSION = 1


def fingerprint(path: str, node_path: str, line: int) -> str:
    """Return a stable location fingerprint for a node in a file."""
    digest = hashlib.sha256(f"{path}\x00{node_path}\x00{line}".encode("utf-8"))
    return digest.hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PropDecl:
    name: str
    type: str | None
    has_default: bool
    bindable: bool
    line: int
    column: int
    fingerprint: str

    @property
    def typed(self) -> bool:
        return bool(self.type)


@dataclass(frozen=True, slots=True)
class EventDecl:
    name: str
    typed: bool
    line: int
    column: int
    fingerprint: str


@dataclass(frozen=True, slots=True)
class ReactiveDecl:
    kind: ReactiveKind
    line: int
    column: int
    fingerprint: str


@dataclass(frozen=True, slots=True)
class StoreUsage:
    name: str
    mode: Literal["auto", "subscribe"]
    line: int
    column: int
    fingerprint: str


@dataclass(frozen=True, slots=True)
class ImportRef:
    source: str
    specifiers: tuple[str, ...]
    type_only: bool
    line: int
    column: int
    fingerprint: str


@dataclass(frozen=True, slots=True)
class ExportDecl:
    name: str
    kind: str
    untyped_params: tuple[str, ...]
    has_return_type: bool
    line: int
    column: int
    fingerprint: str

    @property
    def typed(self) -> bool:
        return not self.untyped_params and self.has_return_type


@dataclass(frozen=True, slots=True)
class ElementRef:
    tag: str
    attributes: tuple[str, ...]
    line: int
    column: int
    fingerprint: str


@dataclass(frozen=True, slots=True)
class Identifier:
    name: str
    binding: str
    line: int
    column: int
    fingerprint: str


@dataclass(frozen=True, slots=True)
class ParseStatus:
    """Outcome of extraction; a failure carries the reason."""

    ok: bool = True
    reason: str | None = None

    @classmethod
    def failed(cls, reason: str) -> ParseStatus:
        return cls(ok=False, reason=reason)


_FACT_FIELDS: dict[str, type] = {
    "props": PropDecl,
    "events": EventDecl,
    "reactive": ReactiveDecl,
    "stores": StoreUsage,
    "imports": ImportRef,
    "exports": ExportDecl,
    "elements": ElementRef,
    "identifiers": Identifier,
}


@dataclass(frozen=True, slots=True)
class SourceFileIR:
    """Self-contained structural view of one source file.

    Instances are never patched; re-extraction builds a new one.
    """

    path: str
    kind: FileKind
    props: tuple[PropDecl, ...] = ()
    events: tuple[EventDecl, ...] = ()
    reactive: tuple[ReactiveDecl, ...] = ()
    stores: tuple[StoreUsage, ...] = ()
    imports: tuple[ImportRef, ...] = ()
    exports: tuple[ExportDecl, ...] = ()
    elements: tuple[ElementRef, ...] = ()
    identifiers: tuple[Identifier, ...] = ()
    status: ParseStatus = field(default_factory=ParseStatus)

    @property
    def parsed(self) -> bool:
        return self.status.ok

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "path": self.path,
            "kind": self.kind,
            "status": {"ok": self.status.ok, "reason": self.status.reason},
        }
        for name in _FACT_FIELDS:
            payload[name] = [_fact_to_dict(item) for item in getattr(self, name)]
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SourceFileIR:
        status = data["status"]
        facts = {
            name: tuple(_fact_from_dict(fact_cls, item) for item in data.get(name, []))
            for name, fact_cls in _FACT_FIELDS.items()
        }
        return cls(
            path=data["path"],
            kind=data["kind"],
            status=ParseStatus(ok=bool(status["ok"]), reason=status.get("reason")),
            **facts,
        )


def _fact_to_dict(item: Any) -> dict[str, Any]:
    output: dict[str, Any] = {}
    for item_field in fields(item):
        value = getattr(item, item_field.name)
        output[item_field.name] = list(value) if isinstance(value, tuple) else value
    return output


def _fact_from_dict(fact_cls: type, data: dict[str, Any]) -> Any:
    values = {
        key: tuple(value) if isinstance(value, list) else value for key, value in data.items()
    }
    return fact_cls(**values)
