"""Scoping checks: reactivity placement and module boundaries."""

from __future__ import annotations

from styleguard.ir import ImportRef, SourceFileIR
from styleguard.rules.base import Hit

API_SEGMENTS = {"api", "apis"}


def legacy_reactive(ir: SourceFileIR) -> list[Hit]:
    return [
        Hit(
            message="Legacy '$:' reactive statement; use $derived or $effect.",
            line=decl.line,
            column=decl.column,
            fingerprint=decl.fingerprint,
        )
        for decl in ir.reactive
        if decl.kind == "legacy"
    ]


def effect_outside_component(ir: SourceFileIR) -> list[Hit]:
    return [
        Hit(
            message=f"$effect used in a {ir.kind} module; effects belong to components.",
            line=decl.line,
            column=decl.column,
            fingerprint=decl.fingerprint,
        )
        for decl in ir.reactive
        if decl.kind == "effect"
    ]


def component_imports_api(ir: SourceFileIR) -> list[Hit]:
    return [
        Hit(
            message=(
                f"Component imports API module '{ref.source}' directly; "
                "go through a store instead."
            ),
            line=ref.line,
            column=ref.column,
            fingerprint=ref.fingerprint,
        )
        for ref in ir.imports
        if not ref.type_only and _is_api_source(ref)
    ]


def imports_component(ir: SourceFileIR) -> list[Hit]:
    return [
        Hit(
            message=f"{ir.kind} module imports component '{ref.source}'.",
            line=ref.line,
            column=ref.column,
            fingerprint=ref.fingerprint,
        )
        for ref in ir.imports
        if ref.source.endswith(".svelte")
    ]


def manual_subscribe(ir: SourceFileIR) -> list[Hit]:
    return [
        Hit(
            message=f"Manual subscribe on store '{usage.name}'; use the ${usage.name} shorthand.",
            line=usage.line,
            column=usage.column,
            fingerprint=usage.fingerprint,
        )
        for usage in ir.stores
        if usage.mode == "subscribe"
    ]


def _is_api_source(ref: ImportRef) -> bool:
    segments = ref.source.replace("\\", "/").split("/")
    return any(segment in API_SEGMENTS for segment in segments[:-1])
