"""Accessibility proxies over markup elements."""

from __future__ import annotations

from styleguard.ir import ElementRef, SourceFileIR
from styleguard.rules.base import Hit

INTERACTIVE_TAGS = {"a", "button", "input", "select", "textarea", "summary", "details", "option"}
CLICK_ATTRIBUTES = {"onclick", "on:click"}


def img_without_alt(ir: SourceFileIR) -> list[Hit]:
    return [
        Hit(
            message="<img> is missing an alt attribute.",
            line=element.line,
            column=element.column,
            fingerprint=element.fingerprint,
        )
        for element in ir.elements
        if element.tag == "img" and "alt" not in element.attributes
    ]


def click_on_non_interactive(ir: SourceFileIR) -> list[Hit]:
    return [
        Hit(
            message=(
                f"Click handler on non-interactive <{element.tag}>; "
                "use a <button> or add a role."
            ),
            line=element.line,
            column=element.column,
            fingerprint=element.fingerprint,
        )
        for element in ir.elements
        if _needs_role(element)
    ]


def _needs_role(element: ElementRef) -> bool:
    # Capitalized tags are components, which own their own semantics.
    if not element.tag.islower() or element.tag in INTERACTIVE_TAGS:
        return False
    attributes = set(element.attributes)
    return bool(attributes & CLICK_ATTRIBUTES) and "role" not in attributes
