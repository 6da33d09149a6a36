"""Typing checks for props, events, and API contracts."""

from __future__ import annotations

from styleguard.ir import SourceFileIR
from styleguard.rules.base import Hit


def untyped_props(ir: SourceFileIR) -> list[Hit]:
    return [
        Hit(
            message=f"Prop '{prop.name}' has no type annotation.",
            line=prop.line,
            column=prop.column,
            fingerprint=prop.fingerprint,
        )
        for prop in ir.props
        if not prop.typed
    ]


def untyped_events(ir: SourceFileIR) -> list[Hit]:
    return [
        Hit(
            message=f"Event '{event.name}' has no payload type.",
            line=event.line,
            column=event.column,
            fingerprint=event.fingerprint,
        )
        for event in ir.events
        if not event.typed
    ]


def bindable_without_default(ir: SourceFileIR) -> list[Hit]:
    return [
        Hit(
            message=f"Bindable prop '{prop.name}' should declare a fallback value.",
            line=prop.line,
            column=prop.column,
            fingerprint=prop.fingerprint,
        )
        for prop in ir.props
        if prop.bindable and not prop.has_default
    ]


def untyped_api_exports(ir: SourceFileIR) -> list[Hit]:
    """Exported API functions need explicit request and response types."""
    hits: list[Hit] = []
    for export in ir.exports:
        if export.kind != "function" or export.typed:
            continue
        missing: list[str] = []
        if export.untyped_params:
            missing.append("parameter(s) " + ", ".join(export.untyped_params))
        if not export.has_return_type:
            missing.append("return type")
        hits.append(
            Hit(
                message=f"API function '{export.name}' is missing {' and '.join(missing)}.",
                line=export.line,
                column=export.column,
                fingerprint=export.fingerprint,
            )
        )
    return hits
