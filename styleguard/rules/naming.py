"""Naming checks: file names and declared identifiers."""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from styleguard.ir import SourceFileIR, fingerprint
from styleguard.rules.base import Hit

PASCAL_CASE_RE = re.compile(r"^[A-Z][A-Za-z0-9]*$")
CAMEL_CASE_RE = re.compile(r"^[a-z][A-Za-z0-9]*$")
UPPER_CASE_RE = re.compile(r"^[A-Z][A-Z0-9_]*$")


def component_file_name(ir: SourceFileIR) -> list[Hit]:
    stem = _stem(ir.path)
    if PASCAL_CASE_RE.match(stem):
        return []
    return [_file_hit(ir, f"Component file name '{stem}' should be PascalCase.")]


def store_file_name(ir: SourceFileIR) -> list[Hit]:
    name = PurePosixPath(ir.path).name
    stem = _stem(ir.path)
    if CAMEL_CASE_RE.match(stem) and (stem.endswith("Store") or ".store." in name):
        return []
    return [
        _file_hit(
            ir,
            f"Store file name '{name}' should be camelCase ending in 'Store' or '.store'.",
        )
    ]


def identifier_case(ir: SourceFileIR) -> list[Hit]:
    hits: list[Hit] = []
    for identifier in ir.identifiers:
        bare = identifier.name.lstrip("_$")
        if "_" not in bare or UPPER_CASE_RE.match(bare):
            continue
        hits.append(
            Hit(
                message=(
                    f"Identifier '{identifier.name}' uses snake_case; "
                    "use camelCase, PascalCase, or UPPER_CASE constants."
                ),
                line=identifier.line,
                column=identifier.column,
                fingerprint=identifier.fingerprint,
            )
        )
    return hits


def _stem(path: str) -> str:
    return PurePosixPath(path).name.split(".", 1)[0]


def _file_hit(ir: SourceFileIR, message: str) -> Hit:
    return Hit(message=message, line=0, column=0, fingerprint=fingerprint(ir.path, "file", 0))
