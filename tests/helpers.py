"""Builders for hand-made syntax trees, IR fixtures, and manifests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from styleguard.inputs import FileInput
from styleguard.ir import PropDecl, SourceFileIR, fingerprint
from styleguard.rules import Rule, rule_table


def node(kind: str, line: int = 0, column: int = 0, /, *children: dict, **attrs: Any) -> dict:
    payload: dict[str, Any] = {"type": kind, "line": line, "column": column, **attrs}
    if children:
        payload["children"] = list(children)
    return payload


def program(*children: dict) -> dict:
    return node("Program", 0, 0, *children)


def component_tree(*script: dict, markup: tuple[dict, ...] = ()) -> dict:
    return program(node("Script", 1, 0, *script), node("Markup", 1, 0, *markup))


def source(lines: int) -> str:
    return "\n".join(f"// line {index}" for index in range(1, lines + 1)) + "\n"


def prop(
    path: str,
    name: str,
    *,
    type: str | None = None,
    line: int = 1,
    has_default: bool = False,
    bindable: bool = False,
) -> PropDecl:
    return PropDecl(
        name=name,
        type=type,
        has_default=has_default,
        bindable=bindable,
        line=line,
        column=2,
        fingerprint=fingerprint(path, f"prop:{name}", line),
    )


def component_ir(path: str = "src/lib/components/Button.svelte", **facts: Any) -> SourceFileIR:
    return SourceFileIR(path=path, kind="component", **facts)


def button_input(*, typed: bool = False) -> FileInput:
    """Button.svelte with one prop on line 2."""
    return FileInput(
        path="Button.svelte",
        content=source(4),
        tree=component_tree(
            node("PropDeclaration", 2, 2, name="label", annotation="string" if typed else None),
            markup=(node("Element", 4, 0, name="button", attributes={"type": "button"}),),
        ),
    )


def user_store_input() -> FileInput:
    """userStore.ts with a single typed export."""
    return FileInput(
        path="userStore.ts",
        content=source(3),
        tree=program(
            node(
                "ExportDeclaration",
                1,
                0,
                name="userStore",
                kind="function",
                params=[{"name": "initial", "annotation": "User"}],
                return_type="Writable<User>",
            )
        ),
    )


def broken_input(path: str = "src/lib/components/Broken.svelte") -> FileInput:
    return FileInput(
        path=path,
        content=source(2),
        tree=program(node("Error", 1, 4, message="Unexpected token")),
    )


def mixed_inputs(count: int = 12) -> list[FileInput]:
    """A varied file set touching several rules."""
    inputs: list[FileInput] = []
    for index in range(count):
        if index % 3 == 0:
            inputs.append(
                FileInput(
                    path=f"src/lib/components/Widget{index}.svelte",
                    content=source(6),
                    tree=component_tree(
                        node("PropDeclaration", 2, 2, name="size"),
                        node("LabeledStatement", 3, 0, label="$"),
                        node("Identifier", 4, 6, name="item_count", binding="variable"),
                        markup=(node("Element", 6, 0, name="img", attributes={"src": "x.png"}),),
                    ),
                )
            )
        elif index % 3 == 1:
            inputs.append(
                FileInput(
                    path=f"src/lib/apis/client{index}.ts",
                    content=source(3),
                    tree=program(
                        node(
                            "ExportDeclaration",
                            2,
                            0,
                            name="fetchThing",
                            kind="function",
                            params=[{"name": "id"}],
                        )
                    ),
                )
            )
        else:
            inputs.append(
                FileInput(
                    path=f"src/lib/stores/item{index}Store.ts",
                    content=source(3),
                    tree=program(node("RuneCall", 2, 4, rune="$effect")),
                )
            )
    return inputs


def write_manifest(directory: Path, inputs: list[FileInput]) -> Path:
    entries = [
        {"path": item.path, "content": item.content, "tree": item.tree} for item in inputs
    ]
    manifest = directory / "manifest.json"
    manifest.write_text(json.dumps({"files": entries}), encoding="utf-8")
    return manifest


def rule_by_id(rule_id: str) -> Rule:
    (rule,) = [rule for rule in rule_table() if rule.rule_id == rule_id]
    return rule
