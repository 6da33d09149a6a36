"""Content-addressed memoization of extraction and evaluation results."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
from collections import OrderedDict
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from styleguard.evaluator import FileEvaluation
from styleguard.ir import SourceFileIR

log = logging.getLogger(__name__)

CACHE_FORMAT = 1
DEFAULT_CACHE_FILENAME = ".styleguard-cache.json"


class CacheCorruption(Exception):
    """The persisted cache cannot be decoded; callers treat it as empty."""


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class CacheEntry:
    path: str
    content_hash: str
    generation: str
    ir: SourceFileIR
    evaluation: FileEvaluation

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "content_hash": self.content_hash,
            "generation": self.generation,
            "ir": self.ir.to_dict(),
            "evaluation": self.evaluation.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheEntry:
        return cls(
            path=data["path"],
            content_hash=data["content_hash"],
            generation=data["generation"],
            ir=SourceFileIR.from_dict(data["ir"]),
            evaluation=FileEvaluation.from_dict(data["evaluation"]),
        )


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    stale: int = 0
    evicted: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stale": self.stale,
            "evicted": self.evicted,
        }


class ResultCache:
    """Thread-safe cache keyed by ``(path, content_hash)``.

    Each entry carries the rule model version that produced it. Entries from
    another generation are treated as absent and replaced on the next store.
    When ``max_entries`` is set, least-recently-used entries are dropped.
    """

    def __init__(self, *, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self.max_entries = max_entries
        self.stats = CacheStats()
        self._entries: OrderedDict[tuple[str, str], CacheEntry] = OrderedDict()
        self._inflight: dict[tuple[str, str, str], Future[CacheEntry]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def lookup(self, path: str, digest: str, generation: str) -> CacheEntry | None:
        with self._lock:
            return self._lookup_locked(path, digest, generation)

    def store(self, entry: CacheEntry) -> None:
        with self._lock:
            self._store_locked(entry)

    def get_or_compute(
        self,
        path: str,
        digest: str,
        generation: str,
        compute: Callable[[], tuple[SourceFileIR, FileEvaluation]],
    ) -> tuple[CacheEntry, bool]:
        """Return ``(entry, hit)``, computing at most once per key concurrently."""
        flight_key = (path, digest, generation)
        with self._lock:
            entry = self._lookup_locked(path, digest, generation)
            if entry is not None:
                self.stats.hits += 1
                return (entry, True)
            pending = self._inflight.get(flight_key)
            owner = pending is None
            if pending is None:
                pending = Future()
                self._inflight[flight_key] = pending

        if not owner:
            waited = pending.result()
            with self._lock:
                self.stats.hits += 1
            return (waited, True)

        try:
            ir, evaluation = compute()
        except BaseException as exc:
            with self._lock:
                self._inflight.pop(flight_key, None)
            pending.set_exception(exc)
            raise

        entry = CacheEntry(
            path=path,
            content_hash=digest,
            generation=generation,
            ir=ir,
            evaluation=evaluation,
        )
        with self._lock:
            self.stats.misses += 1
            self._store_locked(entry)
            self._inflight.pop(flight_key, None)
        pending.set_result(entry)
        return (entry, False)

    def prune(self, generation: str) -> int:
        """Physically drop entries from other generations."""
        with self._lock:
            stale = [key for key, entry in self._entries.items() if entry.generation != generation]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def save(self, path: Path, *, generation: str | None = None) -> None:
        """Write the cache atomically; optionally keep only one generation."""
        if generation is not None:
            self.prune(generation)
        with self._lock:
            payload = {
                "format": CACHE_FORMAT,
                "entries": [entry.to_dict() for entry in self._entries.values()],
            }
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=".styleguard-cache-", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(payload, file_obj, sort_keys=True)
            os.replace(temp_name, path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    @classmethod
    def load(cls, path: Path, *, max_entries: int | None = None) -> ResultCache:
        """Load a persisted cache; a corrupt file yields an empty cache."""
        cache = cls(max_entries=max_entries)
        if not path.exists():
            return cache
        try:
            entries = _read_entries(path)
        except CacheCorruption as exc:
            log.warning("ignoring corrupt cache %s: %s", path, exc)
            return cache
        for entry in entries:
            cache.store(entry)
        log.debug("loaded %d cache entries from %s", len(entries), path)
        return cache

    def _lookup_locked(self, path: str, digest: str, generation: str) -> CacheEntry | None:
        key = (path, digest)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.generation != generation:
            self.stats.stale += 1
            return None
        self._entries.move_to_end(key)
        return entry

    def _store_locked(self, entry: CacheEntry) -> None:
        key = (entry.path, entry.content_hash)
        self._entries[key] = entry
        self._entries.move_to_end(key)
        if self.max_entries is None:
            return
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            self.stats.evicted += 1


def _read_entries(path: Path) -> list[CacheEntry]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CacheCorruption(str(exc)) from exc

    if not isinstance(payload, dict) or payload.get("format") != CACHE_FORMAT:
        raise CacheCorruption("unexpected cache format")
    raw_entries = payload.get("entries")
    if not isinstance(raw_entries, list):
        raise CacheCorruption("'entries' must be a list")

    entries: list[CacheEntry] = []
    for raw in raw_entries:
        try:
            entries.append(CacheEntry.from_dict(raw))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise CacheCorruption(f"malformed entry: {exc!r}") from exc
    return entries
