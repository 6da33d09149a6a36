"""File-set enumeration: manifest loading and path filtering."""

from __future__ import annotations

import fnmatch
import json
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

from styleguard.syntax_tree import TreeFormatError


class InputError(Exception):
    """The file set cannot be enumerated at all."""


@dataclass(frozen=True, slots=True)
class FileInput:
    """One enumerated file: path plus inline or referenced content and tree."""

    path: str
    content: str | None = None
    content_file: Path | None = None
    tree: Any = None
    tree_file: Path | None = None

    def read_content(self) -> str:
        if self.content is not None:
            return self.content
        if self.content_file is None:
            return ""
        return self.content_file.read_text(encoding="utf-8")

    def load_tree(self) -> Any:
        """Return the parsed tree, or ``None`` when the parser produced none."""
        if self.tree_file is None:
            return self.tree
        text = self.tree_file.read_text(encoding="utf-8")
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise TreeFormatError(f"syntax tree file is not valid JSON: {exc}") from exc


def load_manifest_text(text: str, *, base_dir: Path) -> list[FileInput]:
    """Parse a JSON manifest into file inputs; references resolve against ``base_dir``."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InputError(f"Manifest is not valid JSON: {exc}") from exc

    raw_files = payload.get("files") if isinstance(payload, dict) else payload
    if not isinstance(raw_files, list):
        raise InputError("Manifest must be a list of files or an object with a 'files' list")

    inputs: list[FileInput] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_files):
        item = _parse_entry(raw, index=index, base_dir=base_dir)
        if item.path in seen:
            raise InputError(f"Duplicate path in manifest: {item.path}")
        seen.add(item.path)
        inputs.append(item)
    return inputs


def load_manifest(path: Path) -> list[FileInput]:
    """Read a manifest file from disk."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InputError(f"Cannot read manifest {path}: {exc}") from exc
    return load_manifest_text(text, base_dir=path.resolve().parent)


def filter_inputs(
    inputs: list[FileInput], *, includes: list[str], excludes: list[str]
) -> list[FileInput]:
    filtered: list[FileInput] = []
    for item in inputs:
        if includes and not any(fnmatch.fnmatch(item.path, pattern) for pattern in includes):
            continue
        if excludes and any(fnmatch.fnmatch(item.path, pattern) for pattern in excludes):
            continue
        filtered.append(item)
    return filtered


def normalize_path(raw: str) -> str:
    normalized = PurePosixPath(raw.replace("\\", "/")).as_posix()
    return normalized[2:] if normalized.startswith("./") else normalized


def _parse_entry(raw: Any, *, index: int, base_dir: Path) -> FileInput:
    where = f"files[{index}]"
    if not isinstance(raw, dict):
        raise InputError(f"{where} must be an object")

    path = raw.get("path")
    if not isinstance(path, str) or not path:
        raise InputError(f"{where}.path must be a non-empty string")

    content = raw.get("content")
    if content is not None and not isinstance(content, str):
        raise InputError(f"{where}.content must be a string")

    content_file = _optional_ref(raw, "content_file", where=where, base_dir=base_dir)
    if content is None and content_file is None:
        raise InputError(f"{where} needs 'content' or 'content_file'")

    return FileInput(
        path=normalize_path(path),
        content=content,
        content_file=content_file,
        tree=raw.get("tree"),
        tree_file=_optional_ref(raw, "tree_file", where=where, base_dir=base_dir),
    )


def _optional_ref(raw: dict[str, Any], key: str, *, where: str, base_dir: Path) -> Path | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        raise InputError(f"{where}.{key} must be a non-empty string")
    ref = Path(value)
    return ref if ref.is_absolute() else base_dir / ref
