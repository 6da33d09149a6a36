"""Layout checks: readability of files and directory placement."""

from __future__ import annotations

from styleguard.ir import SourceFileIR, fingerprint
from styleguard.rules.base import Hit

EXPECTED_DIRECTORIES = {
    "component": "lib/components",
    "store": "lib/stores",
    "api": "lib/apis",
}


def unreadable_file(ir: SourceFileIR) -> list[Hit]:
    if ir.status.ok:
        return []
    return [
        Hit(
            message=f"File could not be parsed: {ir.status.reason}",
            line=0,
            column=0,
            fingerprint=fingerprint(ir.path, "file", 0),
        )
    ]


def misplaced_file(ir: SourceFileIR) -> list[Hit]:
    expected = EXPECTED_DIRECTORIES.get(ir.kind)
    if expected is None or f"/{expected}/" in f"/{ir.path}":
        return []
    return [
        Hit(
            message=f"{ir.kind.capitalize()} file should live under {expected}/.",
            line=0,
            column=0,
            fingerprint=fingerprint(ir.path, "file", 0),
        )
    ]
