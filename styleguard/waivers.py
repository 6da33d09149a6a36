"""Waiver store: accepted, time-bounded exceptions to rules."""

from __future__ import annotations

import fnmatch
import logging
import threading
import tomllib
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Any

from styleguard.rules import Finding

log = logging.getLogger(__name__)

DEFAULT_WAIVER_FILENAME = ".styleguard-waivers.toml"


class WaiverLoadError(ValueError):
    """A waiver record (or the whole waiver source) is malformed."""


@dataclass(frozen=True, slots=True)
class Waiver:
    """One accepted exception, matched by exact fingerprint or path glob."""

    rule_id: str
    justification: str
    fingerprint: str | None = None
    path_glob: str | None = None
    expiry: date | None = None
    created_by: str | None = None

    @property
    def matcher(self) -> str:
        if self.fingerprint is not None:
            return f"fingerprint:{self.fingerprint}"
        return f"path:{self.path_glob}"

    def matches(self, finding: Finding) -> bool:
        if self.fingerprint is not None:
            return finding.identity == (self.rule_id, self.fingerprint)
        return (
            finding.rule_id == self.rule_id
            and self.path_glob is not None
            and fnmatch.fnmatch(finding.file_path, self.path_glob)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "matcher": self.matcher,
            "justification": self.justification,
            "expiry": self.expiry.isoformat() if self.expiry else None,
            "created_by": self.created_by,
        }


def is_active(waiver: Waiver, as_of: date) -> bool:
    """A waiver stays active through the end of its expiry date."""
    return waiver.expiry is None or as_of <= waiver.expiry


@dataclass(slots=True)
class WaiverStore:
    """Read-only snapshot of waivers evaluated against a fixed date."""

    waivers: list[Waiver] = field(default_factory=list)
    as_of: date = field(default_factory=date.today)
    errors: list[WaiverLoadError] = field(default_factory=list)
    source: str | None = None
    _reported_expired: set[int] = field(default_factory=set, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def expired_waivers(self) -> list[Waiver]:
        return [waiver for waiver in self.waivers if not is_active(waiver, self.as_of)]

    def find_suppressing(self, finding: Finding) -> Waiver | None:
        """Return the first active waiver matching ``finding``."""
        for index, waiver in enumerate(self.waivers):
            if not waiver.matches(finding):
                continue
            if is_active(waiver, self.as_of):
                return waiver
            self._log_expired_once(index, waiver)
        return None

    def suppresses(self, finding: Finding) -> bool:
        return self.find_suppressing(finding) is not None

    def expiring_within(self, waiver: Waiver, days: int) -> bool:
        if waiver.expiry is None or not is_active(waiver, self.as_of):
            return False
        return waiver.expiry - self.as_of <= timedelta(days=days)

    def _log_expired_once(self, index: int, waiver: Waiver) -> None:
        with self._lock:
            if index in self._reported_expired:
                return
            self._reported_expired.add(index)
        log.warning(
            "waiver for %s (%s) expired on %s and no longer suppresses findings",
            waiver.rule_id,
            waiver.matcher,
            waiver.expiry,
        )


def load_waivers(path: Path | None, *, as_of: date | None = None) -> WaiverStore:
    """Load waivers from a TOML file, keeping every valid record.

    Malformed records are collected in ``WaiverStore.errors`` and logged;
    they never abort the run. A missing file gives an empty store.
    """
    store = WaiverStore(as_of=as_of or date.today(), source=str(path) if path else None)
    if path is None or not path.exists():
        return store

    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        error = WaiverLoadError(f"cannot read waivers from {path}: {exc}")
        log.error("%s", error)
        store.errors.append(error)
        return store

    waivers, errors = parse_waiver_records(loaded.get("waiver", []))
    for error in errors:
        log.error("%s: %s", path, error)
    store.waivers.extend(waivers)
    store.errors.extend(errors)
    for waiver in store.expired_waivers():
        log.info("waiver for %s (%s) is expired", waiver.rule_id, waiver.matcher)
    return store


def parse_waiver_records(records: Any) -> tuple[list[Waiver], list[WaiverLoadError]]:
    """Parse raw waiver tables into waivers and per-record errors."""
    if not isinstance(records, list):
        return ([], [WaiverLoadError("'waiver' must be an array of tables")])

    waivers: list[Waiver] = []
    errors: list[WaiverLoadError] = []
    for index, record in enumerate(records):
        try:
            waivers.append(_parse_record(record))
        except WaiverLoadError as exc:
            errors.append(WaiverLoadError(f"waiver[{index}]: {exc}"))
    return (waivers, errors)


def _parse_record(record: Any) -> Waiver:
    if not isinstance(record, dict):
        raise WaiverLoadError("must be a table")

    rule_id = _required_str(record, "rule")
    justification = _required_str(record, "justification")
    fingerprint = _optional_str(record, "fingerprint")
    path_glob = _optional_str(record, "path")
    if (fingerprint is None) == (path_glob is None):
        raise WaiverLoadError("exactly one of 'fingerprint' or 'path' is required")

    return Waiver(
        rule_id=rule_id,
        justification=justification,
        fingerprint=fingerprint,
        path_glob=path_glob,
        expiry=_parse_expiry(record.get("expires")),
        created_by=_optional_str(record, "created_by"),
    )


def _parse_expiry(raw: Any) -> date | None:
    if raw is None:
        return None
    if isinstance(raw, date):
        # TOML datetimes are date subclasses too.
        return raw if type(raw) is date else raw.date()  # type: ignore[attr-defined]
    if isinstance(raw, str):
        try:
            return date.fromisoformat(raw)
        except ValueError as exc:
            raise WaiverLoadError(f"'expires' is not an ISO date: {raw!r}") from exc
    raise WaiverLoadError("'expires' must be a date")


def _required_str(record: dict[str, Any], key: str) -> str:
    value = record.get(key)
    if not isinstance(value, str) or not value.strip():
        raise WaiverLoadError(f"'{key}' must be a non-empty string")
    return value


def _optional_str(record: dict[str, Any], key: str) -> str | None:
    value = record.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise WaiverLoadError(f"'{key}' must be a non-empty string")
    return value
