"""Tests for the content-addressed result cache."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from styleguard.cache import ResultCache, content_hash
from styleguard.evaluator import FileEvaluation, evaluate_file
from styleguard.extractor import extract
from styleguard.ir import SourceFileIR
from styleguard.rules import default_rule_model
from tests.helpers import component_tree, node, source

PATH = "src/lib/components/Button.svelte"


def _compute() -> tuple[SourceFileIR, FileEvaluation]:
    ir = extract(PATH, source(2), component_tree(node("PropDeclaration", 2, 2, name="label")))
    return (ir, evaluate_file(default_rule_model(), ir))


def test_get_or_compute_hits_on_second_lookup() -> None:
    cache = ResultCache()
    digest = content_hash(source(2))

    first, first_hit = cache.get_or_compute(PATH, digest, "gen-1", _compute)
    second, second_hit = cache.get_or_compute(PATH, digest, "gen-1", _compute)

    assert (first_hit, second_hit) == (False, True)
    assert second == first
    assert (cache.stats.hits, cache.stats.misses) == (1, 1)


def test_other_generation_is_a_miss_and_replaces_entry() -> None:
    cache = ResultCache()
    digest = content_hash(source(2))
    cache.get_or_compute(PATH, digest, "gen-1", _compute)

    assert cache.lookup(PATH, digest, "gen-2") is None
    _, hit = cache.get_or_compute(PATH, digest, "gen-2", _compute)

    assert not hit
    assert len(cache) == 1
    assert cache.lookup(PATH, digest, "gen-1") is None
    assert cache.stats.stale >= 1


def test_content_change_is_a_miss() -> None:
    cache = ResultCache()
    cache.get_or_compute(PATH, content_hash("a"), "gen-1", _compute)

    _, hit = cache.get_or_compute(PATH, content_hash("b"), "gen-1", _compute)

    assert not hit


def test_lru_bound_evicts_least_recently_used() -> None:
    cache = ResultCache(max_entries=2)
    cache.get_or_compute("a.ts", "1", "g", _compute)
    cache.get_or_compute("b.ts", "1", "g", _compute)
    cache.lookup("a.ts", "1", "g")
    cache.get_or_compute("c.ts", "1", "g", _compute)

    assert cache.lookup("a.ts", "1", "g") is not None
    assert cache.lookup("b.ts", "1", "g") is None
    assert cache.stats.evicted == 1


def test_concurrent_requests_compute_once() -> None:
    cache = ResultCache()
    calls: list[int] = []
    barrier = threading.Barrier(8)
    results: list[bool] = []
    lock = threading.Lock()

    def slow_compute() -> tuple[SourceFileIR, FileEvaluation]:
        calls.append(1)
        time.sleep(0.05)
        return _compute()

    def worker() -> None:
        barrier.wait()
        _, hit = cache.get_or_compute(PATH, "digest", "gen-1", slow_compute)
        with lock:
            results.append(hit)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1
    assert sorted(results) == [False] + [True] * 7


def test_failed_compute_propagates_and_is_not_cached() -> None:
    cache = ResultCache()

    def boom() -> tuple[SourceFileIR, FileEvaluation]:
        raise RuntimeError("extractor crashed")

    with pytest.raises(RuntimeError):
        cache.get_or_compute(PATH, "digest", "gen-1", boom)
    _, hit = cache.get_or_compute(PATH, "digest", "gen-1", _compute)

    assert not hit


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    cache_path = tmp_path / ".styleguard-cache.json"
    cache = ResultCache()
    entry, _ = cache.get_or_compute(PATH, "digest", "gen-1", _compute)
    cache.get_or_compute("src/old.ts", "digest", "gen-0", _compute)

    cache.save(cache_path, generation="gen-1")
    loaded = ResultCache.load(cache_path)

    assert len(loaded) == 1
    assert loaded.lookup(PATH, "digest", "gen-1") == entry


@pytest.mark.parametrize(
    "payload",
    ["{not json", '{"format": 99, "entries": []}', '{"format": 1, "entries": [{"path": 1}]}'],
)
def test_corrupt_cache_loads_empty(tmp_path: Path, payload: str) -> None:
    cache_path = tmp_path / ".styleguard-cache.json"
    cache_path.write_text(payload, encoding="utf-8")

    loaded = ResultCache.load(cache_path)

    assert len(loaded) == 0
