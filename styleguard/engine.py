"""Evaluation orchestration across files, rules, cache, and waivers."""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date

from styleguard.cache import ResultCache, content_hash
from styleguard.evaluator import FileEvaluation, evaluate_file
from styleguard.extractor import extract, failed_ir
from styleguard.inputs import FileInput
from styleguard.ir import SourceFileIR
from styleguard.rules import Finding, RuleModel
from styleguard.syntax_tree import TreeFormatError
from styleguard.waivers import Waiver, WaiverStore

log = logging.getLogger(__name__)

DEFAULT_WORKERS = 4
DEFAULT_LOOKAHEAD_DAYS = 14


class CancellationRequested(Exception):
    """Raised inside workers once the run has been cancelled."""


class CancelToken:
    """Cooperative cancellation flag, optionally armed with a timeout."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._timer: threading.Timer | None = None
        self.reason: str | None = None

    @classmethod
    def with_timeout(cls, seconds: float) -> CancelToken:
        token = cls()
        token._timer = threading.Timer(seconds, token.cancel, kwargs={"reason": "timeout"})
        token._timer.daemon = True
        token._timer.start()
        return token

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationRequested(self.reason or "cancelled")

    def close(self) -> None:
        if self._timer is not None:
            self._timer.cancel()


@dataclass(slots=True)
class FileError:
    """A per-file processing failure that did not stop the run."""

    path: str
    error: str


@dataclass(slots=True)
class SuppressedFinding:
    finding: Finding
    waiver: Waiver


@dataclass(slots=True)
class RunResult:
    """Everything the reporter needs from one run."""

    rule_model_version: str
    as_of: date
    evaluations: list[FileEvaluation] = field(default_factory=list)
    violations: list[Finding] = field(default_factory=list)
    suppressed: list[SuppressedFinding] = field(default_factory=list)
    expiring_waivers: list[Waiver] = field(default_factory=list)
    file_errors: list[FileError] = field(default_factory=list)
    waiver_errors: list[str] = field(default_factory=list)
    unprocessed: list[str] = field(default_factory=list)
    cache_hits: int = 0
    cache_misses: int = 0

    @property
    def incomplete(self) -> bool:
        return bool(self.unprocessed)

    @property
    def files_checked(self) -> int:
        return len(self.evaluations)


@dataclass(slots=True)
class _Outcome:
    evaluation: FileEvaluation
    cache_hit: bool


def run_checks(
    inputs: Sequence[FileInput],
    *,
    rule_model: RuleModel,
    waivers: WaiverStore | None = None,
    cache: ResultCache | None = None,
    workers: int = DEFAULT_WORKERS,
    cancel: CancelToken | None = None,
    lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS,
) -> RunResult:
    """Extract and evaluate every input, then filter findings through waivers.

    Files are processed on a bounded thread pool; a failure in one file is
    recorded and the run continues. Cancelling ``cancel`` stops new work from
    being scheduled and the result lists the files that never ran.
    """
    if workers <= 0:
        raise ValueError("workers must be > 0")
    store = waivers if waivers is not None else WaiverStore()
    token = cancel if cancel is not None else CancelToken()
    generation = rule_model.version()
    result = RunResult(
        rule_model_version=generation,
        as_of=store.as_of,
        waiver_errors=[str(error) for error in store.errors],
    )

    outcomes = _schedule(inputs, rule_model, generation, cache, workers, token, result)
    for outcome in outcomes:
        result.evaluations.append(outcome.evaluation)
        if outcome.cache_hit:
            result.cache_hits += 1
        else:
            result.cache_misses += 1
    result.evaluations.sort(key=lambda item: item.path)
    result.file_errors.sort(key=lambda item: item.path)
    result.unprocessed.sort()

    _apply_waivers(result, store, lookahead_days)
    if result.incomplete:
        log.warning(
            "run %s: %d file(s) not processed",
            token.reason or "cancelled",
            len(result.unprocessed),
        )
    log.debug("cache hits=%d misses=%d", result.cache_hits, result.cache_misses)
    return result


def process_file(
    item: FileInput,
    rule_model: RuleModel,
    *,
    generation: str | None = None,
    cache: ResultCache | None = None,
) -> tuple[FileEvaluation, bool]:
    """Run extraction and evaluation for one file, via the cache when given."""
    content = item.read_content()

    def compute() -> tuple[SourceFileIR, FileEvaluation]:
        try:
            tree = item.load_tree()
        except TreeFormatError as exc:
            ir = failed_ir(item.path, str(exc))
        else:
            ir = extract(item.path, content, tree)
        return (ir, evaluate_file(rule_model, ir))

    if cache is None:
        _, evaluation = compute()
        return (evaluation, False)

    entry, hit = cache.get_or_compute(
        item.path,
        content_hash(content),
        generation or rule_model.version(),
        compute,
    )
    return (entry.evaluation, hit)


def _schedule(
    inputs: Sequence[FileInput],
    rule_model: RuleModel,
    generation: str,
    cache: ResultCache | None,
    workers: int,
    token: CancelToken,
    result: RunResult,
) -> list[_Outcome]:
    outcomes: list[_Outcome] = []
    window = workers * 2
    queue = iter(inputs)

    def work(item: FileInput) -> _Outcome:
        token.raise_if_cancelled()
        evaluation, hit = process_file(item, rule_model, generation=generation, cache=cache)
        return _Outcome(evaluation=evaluation, cache_hit=hit)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="styleguard") as pool:
        pending: dict[Future[_Outcome], FileInput] = {}
        exhausted = False
        while True:
            while not exhausted and len(pending) < window and not token.cancelled:
                item = next(queue, None)
                if item is None:
                    exhausted = True
                    break
                pending[pool.submit(work, item)] = item
            if not pending:
                break

            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                item = pending.pop(future)
                try:
                    outcomes.append(future.result())
                except CancellationRequested:
                    result.unprocessed.append(item.path)
                except Exception as exc:
                    message = f"{exc.__class__.__name__}: {exc}"
                    log.error("failed to check %s: %s", item.path, message)
                    result.file_errors.append(FileError(path=item.path, error=message))

    result.unprocessed.extend(item.path for item in queue)
    return outcomes


def _apply_waivers(result: RunResult, store: WaiverStore, lookahead_days: int) -> None:
    used: dict[int, Waiver] = {}
    for evaluation in result.evaluations:
        for finding in evaluation.findings:
            waiver = store.find_suppressing(finding)
            if waiver is None:
                result.violations.append(finding)
                continue
            result.suppressed.append(SuppressedFinding(finding=finding, waiver=waiver))
            used[id(waiver)] = waiver

    expiring = [
        waiver for waiver in used.values() if store.expiring_within(waiver, lookahead_days)
    ]
    result.expiring_waivers = sorted(
        expiring,
        key=lambda item: (item.rule_id, item.matcher, item.expiry or date.max),
    )
