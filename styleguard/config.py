"""Configuration loading for styleguard."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from styleguard.cache import DEFAULT_CACHE_FILENAME
from styleguard.engine import DEFAULT_LOOKAHEAD_DAYS, DEFAULT_WORKERS
from styleguard.waivers import DEFAULT_WAIVER_FILENAME

CONFIG_FILENAMES = (".styleguard.toml", "styleguard.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("styleguard",)
LOG_LEVELS = {"debug", "info", "warning", "error"}


@dataclass(slots=True)
class WaiversConfig:
    """Where waivers live and how far ahead to warn about expiry."""

    path: str = DEFAULT_WAIVER_FILENAME
    lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "lookahead_days": self.lookahead_days}


@dataclass(slots=True)
class CacheConfig:
    """Result cache persistence."""

    enabled: bool = True
    path: str = DEFAULT_CACHE_FILENAME
    max_entries: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "path": self.path, "max_entries": self.max_entries}


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration values resolved from project files."""

    format: str = "human"
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    workers: int = DEFAULT_WORKERS
    timeout_seconds: float | None = None
    log_level: str = "warning"
    rule_enable: list[str] | None = None
    rule_disable: list[str] = field(default_factory=list)
    waivers: WaiversConfig = field(default_factory=WaiversConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "include": list(self.include),
            "exclude": list(self.exclude),
            "workers": self.workers,
            "timeout_seconds": self.timeout_seconds,
            "log_level": self.log_level,
            "rules": {
                "enable": list(self.rule_enable) if self.rule_enable is not None else None,
                "disable": list(self.rule_disable),
            },
            "waivers": self.waivers.to_dict(),
            "cache": self.cache.to_dict(),
            "source": self.source,
        }


def load_app_config(repo: Path, config_path: Path | None = None) -> AppConfig:
    """Load config from explicit path or repository-local files with precedence."""
    repo = repo.resolve()
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (repo / config_path)
        if not resolved.exists():
            raise ValueError(f"Config file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=str(resolved))

    for filename in CONFIG_FILENAMES:
        resolved = repo / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=str(resolved))

    pyproject_path = repo / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=str(pyproject_path))

    return AppConfig()


def default_config_template() -> str:
    """Return a starter config template."""
    return "\n".join(
        [
            'format = "human"',
            'include = ["src/**"]',
            'exclude = ["src/**/*.test.ts"]',
            "workers = 4",
            "# timeout_seconds = 300",
            'log_level = "warning"',
            "",
            "[rules]",
            "# enable = [\"SG-021\", \"SG-071\"]",
            'disable = ["SG-012"]',
            "",
            "[waivers]",
            f'path = "{DEFAULT_WAIVER_FILENAME}"',
            f"lookahead_days = {DEFAULT_LOOKAHEAD_DAYS}",
            "",
            "[cache]",
            "enabled = true",
            f'path = "{DEFAULT_CACHE_FILENAME}"',
            "# max_entries = 50000",
            "",
        ]
    )


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    if source_path.name == PYPROJECT_FILENAME:
        section = _find_pyproject_tool_section(loaded)
        return section if section is not None else {}

    tool_section = _find_pyproject_tool_section(loaded)
    if tool_section is not None:
        return tool_section
    return loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    for key in PYPROJECT_TOOL_KEYS:
        section = tool.get(key)
        if isinstance(section, dict):
            return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> AppConfig:
    rules_mapping = _as_table(mapping.get("rules"), "rules")
    waivers_mapping = _as_table(mapping.get("waivers"), "waivers")
    cache_mapping = _as_table(mapping.get("cache"), "cache")

    raw_format = mapping.get("format", "human")
    format_value = str(raw_format).lower()
    if format_value not in {"human", "json"}:
        format_value = "human"

    workers = _as_int(mapping.get("workers", DEFAULT_WORKERS), "workers")
    if workers <= 0:
        raise ValueError("workers must be > 0")

    raw_timeout = mapping.get("timeout_seconds")
    timeout: float | None = None
    if raw_timeout is not None:
        timeout = _as_float(raw_timeout, "timeout_seconds")
        if timeout <= 0:
            raise ValueError("timeout_seconds must be > 0")

    return AppConfig(
        format=format_value,
        include=_as_str_list(mapping.get("include")),
        exclude=_as_str_list(mapping.get("exclude")),
        workers=workers,
        timeout_seconds=timeout,
        log_level=_as_choice(mapping.get("log_level", "warning"), LOG_LEVELS, "log_level"),
        rule_enable=_as_str_list_or_none(rules_mapping.get("enable")),
        rule_disable=_as_str_list(rules_mapping.get("disable")),
        waivers=_parse_waivers_config(waivers_mapping),
        cache=_parse_cache_config(cache_mapping),
        source=source,
    )


def _parse_waivers_config(value: dict[str, Any]) -> WaiversConfig:
    lookahead = _as_int(
        value.get("lookahead_days", DEFAULT_LOOKAHEAD_DAYS), "waivers.lookahead_days"
    )
    if lookahead < 0:
        raise ValueError("waivers.lookahead_days must be >= 0")
    return WaiversConfig(
        path=_as_str(value.get("path", DEFAULT_WAIVER_FILENAME), "waivers.path"),
        lookahead_days=lookahead,
    )


def _parse_cache_config(value: dict[str, Any]) -> CacheConfig:
    raw_max = value.get("max_entries")
    max_entries: int | None = None
    if raw_max is not None:
        max_entries = _as_int(raw_max, "cache.max_entries")
        if max_entries <= 0:
            raise ValueError("cache.max_entries must be > 0")
    return CacheConfig(
        enabled=_as_bool(value.get("enabled", True), "cache.enabled"),
        path=_as_str(value.get("path", DEFAULT_CACHE_FILENAME), "cache.path"),
        max_entries=max_entries,
    )


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a table/object")
    return value


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("Expected a list of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError("Expected a list of strings")
        items.append(item)
    return items


def _as_str_list_or_none(value: Any) -> list[str] | None:
    if value is None:
        return None
    return _as_str_list(value)


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value


def _as_choice(raw: Any, allowed: set[str], field_name: str) -> str:
    value = str(raw).lower()
    if value not in allowed:
        choices = ", ".join(sorted(allowed))
        raise ValueError(f"{field_name} must be one of: {choices}")
    return value


def _as_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{field_name} must be an integer")
    return raw


def _as_bool(raw: Any, field_name: str) -> bool:
    if not isinstance(raw, bool):
        raise ValueError(f"{field_name} must be a boolean")
    return raw


def _as_float(raw: Any, field_name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"{field_name} must be a number")
    return float(raw)
