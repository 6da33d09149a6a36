"""Tests for the evaluation orchestrator."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from styleguard.cache import ResultCache
from styleguard.engine import CancelToken, run_checks
from styleguard.inputs import FileInput
from styleguard.output import render_json
from styleguard.report import build_report
from styleguard.rules import (
    UNREADABLE_RULE_ID,
    Hit,
    Rule,
    RuleCategory,
    RuleModel,
    ScopeSelector,
    Severity,
    build_rule_model,
    default_rule_model,
)
from styleguard.waivers import Waiver, WaiverLoadError, WaiverStore
from tests.helpers import (
    broken_input,
    button_input,
    component_tree,
    mixed_inputs,
    source,
    user_store_input,
)

AS_OF = date(2026, 3, 1)


def _json(inputs: list[FileInput], **kwargs: object) -> str:
    kwargs.setdefault("rule_model", default_rule_model())
    kwargs.setdefault("waivers", WaiverStore(as_of=AS_OF))
    return render_json(build_report(run_checks(inputs, **kwargs)))  # type: ignore[arg-type]


def test_button_and_store_example() -> None:
    model = build_rule_model(enabled_rule_ids=["SG-021", "SG-071"])

    result = run_checks(
        [button_input(), user_store_input()],
        rule_model=model,
        waivers=WaiverStore(as_of=AS_OF),
    )
    report = build_report(result)

    assert report.status == "fail"
    assert [entry.path for entry in report.files] == ["Button.svelte"]
    (violation,) = report.files[0].violations
    assert violation.rule_id == "SG-021"
    assert violation.line == 2
    assert result.files_checked == 2


def test_report_is_identical_across_worker_counts_and_input_order() -> None:
    inputs = mixed_inputs(12)

    baseline = _json(inputs, workers=1)

    assert _json(inputs, workers=8) == baseline
    assert _json(list(reversed(inputs)), workers=3) == baseline


def test_warm_cache_recomputes_nothing_and_matches_cold_report() -> None:
    inputs = mixed_inputs(9)
    cache = ResultCache()
    model = default_rule_model()

    cold = run_checks(inputs, rule_model=model, waivers=WaiverStore(as_of=AS_OF), cache=cache)
    warm = run_checks(inputs, rule_model=model, waivers=WaiverStore(as_of=AS_OF), cache=cache)

    assert cold.cache_misses == 9
    assert (warm.cache_hits, warm.cache_misses) == (9, 0)
    assert render_json(build_report(warm)) == render_json(build_report(cold))


def test_changed_file_is_the_only_recomputation() -> None:
    inputs = mixed_inputs(6)
    cache = ResultCache()
    model = default_rule_model()
    run_checks(inputs, rule_model=model, cache=cache)

    changed = inputs[0]
    inputs[0] = FileInput(
        path=changed.path,
        content=(changed.content or "") + "// edited\n",
        tree=changed.tree,
    )
    result = run_checks(inputs, rule_model=model, cache=cache)

    assert (result.cache_hits, result.cache_misses) == (5, 1)


def test_rule_model_change_invalidates_every_entry() -> None:
    inputs = mixed_inputs(6)
    cache = ResultCache()
    run_checks(inputs, rule_model=default_rule_model(), cache=cache)

    result = run_checks(
        inputs,
        rule_model=build_rule_model(disabled_rule_ids=["SG-012"]),
        cache=cache,
    )

    assert (result.cache_hits, result.cache_misses) == (0, 6)


def test_check_body_change_invalidates_cache_even_with_the_same_name() -> None:
    def quiet(ir):
        return []

    def noisy(ir):
        return [Hit(message="Always flagged.", line=1, column=0, fingerprint="0" * 16)]

    def model_for(predicate) -> RuleModel:
        predicate.__name__ = predicate.__qualname__ = "check_layout"
        scope = ScopeSelector()
        return RuleModel(
            [Rule("SG-900", Severity.MUST, RuleCategory.LAYOUT, scope, "Demo rule.", predicate)]
        )

    cache = ResultCache()
    first = run_checks([button_input()], rule_model=model_for(quiet), cache=cache)
    second = run_checks([button_input()], rule_model=model_for(noisy), cache=cache)

    assert first.violations == []
    assert (second.cache_hits, second.cache_misses) == (0, 1)
    assert [finding.rule_id for finding in second.violations] == ["SG-900"]


def test_parse_failure_is_isolated_to_its_file() -> None:
    store = WaiverStore(as_of=AS_OF)
    model = default_rule_model()
    healthy = build_report(run_checks(mixed_inputs(3), rule_model=model, waivers=store))

    report = build_report(
        run_checks(
            [*mixed_inputs(3), broken_input()],
            rule_model=model,
            waivers=store,
        )
    )

    broken_path = broken_input().path
    broken = next(entry for entry in report.files if entry.path == broken_path)
    assert [violation.rule_id for violation in broken.violations] == [UNREADABLE_RULE_ID]
    assert broken.parse_error is not None
    assert "SG-021" in broken.skipped_rules
    assert report.status == "fail"
    assert [entry for entry in report.files if entry.path != broken_path] == healthy.files


def test_unreadable_file_is_recorded_without_aborting(tmp_path: Path) -> None:
    missing = FileInput(
        path="src/lib/components/Gone.svelte",
        content_file=tmp_path / "missing.svelte",
        tree=component_tree(),
    )
    inputs = [missing, button_input(typed=True)]

    result = run_checks(inputs, rule_model=default_rule_model())

    assert [error.path for error in result.file_errors] == ["src/lib/components/Gone.svelte"]
    assert "FileNotFoundError" in result.file_errors[0].error
    assert [evaluation.path for evaluation in result.evaluations] == ["Button.svelte"]
    report = build_report(result)
    assert any(entry.error for entry in report.files)


def test_cancelled_before_start_processes_nothing() -> None:
    token = CancelToken()
    token.cancel("shutdown")

    result = run_checks(mixed_inputs(5), rule_model=default_rule_model(), cancel=token)

    assert result.incomplete
    assert result.evaluations == []
    assert len(result.unprocessed) == 5
    assert build_report(result).incomplete


def test_cancel_mid_run_yields_partial_report() -> None:
    token = CancelToken()

    class CancellingInput(FileInput):
        def read_content(self) -> str:
            token.cancel("interrupted")
            return FileInput.read_content(self)

    first = button_input(typed=True)
    inputs = [
        CancellingInput(path=first.path, content=first.content, tree=first.tree),
        *mixed_inputs(5),
    ]

    result = run_checks(inputs, rule_model=default_rule_model(), workers=1, cancel=token)

    assert [evaluation.path for evaluation in result.evaluations] == ["Button.svelte"]
    assert result.incomplete
    assert sorted(result.unprocessed) == sorted(item.path for item in mixed_inputs(5))
    assert token.reason == "interrupted"


def test_waiver_suppresses_until_expiry_then_finding_returns() -> None:
    model = build_rule_model(enabled_rule_ids=["SG-021"])
    baseline = run_checks([button_input()], rule_model=model)
    (finding,) = baseline.violations
    waiver = Waiver(
        rule_id="SG-021",
        justification="Typed in the design-system migration.",
        fingerprint=finding.fingerprint,
        expiry=date(2026, 3, 10),
    )

    waived = run_checks(
        [button_input()],
        rule_model=model,
        waivers=WaiverStore(waivers=[waiver], as_of=AS_OF),
    )
    expired = run_checks(
        [button_input()],
        rule_model=model,
        waivers=WaiverStore(waivers=[waiver], as_of=date(2026, 3, 11)),
    )

    assert waived.violations == []
    assert [item.finding for item in waived.suppressed] == [finding]
    assert waived.expiring_waivers == [waiver]
    assert build_report(waived).status == "clean"
    assert expired.violations == [finding]
    assert expired.expiring_waivers == []
    assert build_report(expired).status == "fail"


def test_unused_waiver_is_not_advertised_as_expiring() -> None:
    waiver = Waiver(
        rule_id="SG-050",
        justification="unused",
        path_glob="src/marketing/*",
        expiry=date(2026, 3, 5),
    )

    result = run_checks(
        [button_input(typed=True)],
        rule_model=default_rule_model(),
        waivers=WaiverStore(waivers=[waiver], as_of=AS_OF),
    )

    assert result.expiring_waivers == []


def test_waiver_load_errors_are_carried_into_the_result() -> None:
    store = WaiverStore(as_of=AS_OF, errors=[WaiverLoadError("waiver[0]: must be a table")])

    result = run_checks([button_input(typed=True)], rule_model=default_rule_model(), waivers=store)

    assert result.waiver_errors == ["waiver[0]: must be a table"]


def test_rejects_non_positive_worker_count() -> None:
    with pytest.raises(ValueError):
        run_checks([], rule_model=default_rule_model(), workers=0)


def test_empty_file_set_is_clean() -> None:
    report = build_report(run_checks([], rule_model=default_rule_model()))

    assert report.status == "clean"
    assert report.files == []


def test_style_file_without_tree_is_checked_cleanly() -> None:
    style = FileInput(path="src/app.css", content="body {}\n")
    tree_less = FileInput(path="src/lib/utils/format.ts", content=source(2))

    result = run_checks([style, tree_less], rule_model=default_rule_model())

    by_path = {evaluation.path: evaluation for evaluation in result.evaluations}
    assert by_path["src/app.css"].findings == []
    assert by_path["src/lib/utils/format.ts"].parse_error == "no syntax tree"
