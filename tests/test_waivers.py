"""Tests for waiver loading, matching, and expiry."""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

import pytest

from styleguard.rules import Finding, Severity
from styleguard.waivers import Waiver, WaiverStore, is_active, load_waivers

FINDING = Finding(
    rule_id="SG-021",
    severity=Severity.MUST,
    file_path="src/lib/components/Button.svelte",
    fingerprint="abc123",
    line=2,
    column=2,
    message="Prop 'label' has no type annotation.",
)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / ".styleguard-waivers.toml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_keeps_valid_records_and_collects_errors(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        "\n".join(
            [
                "[[waiver]]",
                'rule = "SG-021"',
                'fingerprint = "abc123"',
                'justification = "Legacy button, typed in the v2 rewrite."',
                "expires = 2026-03-01",
                'created_by = "ui-team"',
                "",
                "[[waiver]]",
                'rule = "SG-060"',
                'justification = "missing matcher"',
                "",
                "[[waiver]]",
                'rule = "SG-030"',
                'path = "src/legacy/**"',
                'justification = "Pending migration."',
                'expires = "not-a-date"',
                "",
                "[[waiver]]",
                'rule = "SG-030"',
                'path = "src/legacy/**"',
                'justification = "Pending migration."',
            ]
        ),
    )

    store = load_waivers(path, as_of=date(2026, 2, 1))

    assert [waiver.rule_id for waiver in store.waivers] == ["SG-021", "SG-030"]
    assert store.waivers[0].expiry == date(2026, 3, 1)
    assert store.waivers[0].created_by == "ui-team"
    assert store.waivers[1].expiry is None
    assert len(store.errors) == 2
    assert "waiver[1]" in str(store.errors[0])
    assert "waiver[2]" in str(store.errors[1])


def test_load_missing_file_gives_empty_store(tmp_path: Path) -> None:
    store = load_waivers(tmp_path / "absent.toml", as_of=date(2026, 1, 1))

    assert store.waivers == []
    assert store.errors == []


def test_load_invalid_toml_is_not_fatal(tmp_path: Path) -> None:
    path = _write(tmp_path, "[[waiver]\nrule = ")

    store = load_waivers(path, as_of=date(2026, 1, 1))

    assert store.waivers == []
    assert len(store.errors) == 1


def test_expiry_is_inclusive() -> None:
    waiver = Waiver(
        rule_id="SG-021",
        justification="temporary",
        fingerprint="abc123",
        expiry=date(2026, 3, 1),
    )

    assert is_active(waiver, date(2026, 3, 1))
    assert not is_active(waiver, date(2026, 3, 2))
    assert is_active(Waiver(rule_id="SG-021", justification="x", path_glob="*"), date.max)


def test_fingerprint_and_path_matchers() -> None:
    by_fingerprint = Waiver(rule_id="SG-021", justification="x", fingerprint="abc123")
    by_path = Waiver(rule_id="SG-021", justification="x", path_glob="src/lib/components/*")
    other_rule = Waiver(rule_id="SG-022", justification="x", fingerprint="abc123")

    assert by_fingerprint.matches(FINDING)
    assert by_path.matches(FINDING)
    assert not other_rule.matches(FINDING)
    assert by_fingerprint.matcher == "fingerprint:abc123"
    assert by_path.matcher == "path:src/lib/components/*"


def test_expired_waiver_stops_suppressing_and_logs_once(
    caplog: pytest.LogCaptureFixture,
) -> None:
    waiver = Waiver(
        rule_id="SG-021",
        justification="temporary",
        fingerprint="abc123",
        expiry=date(2026, 3, 1),
    )
    before = WaiverStore(waivers=[waiver], as_of=date(2026, 2, 20))
    after = WaiverStore(waivers=[waiver], as_of=date(2026, 3, 2))

    assert before.suppresses(FINDING)
    with caplog.at_level(logging.WARNING, logger="styleguard.waivers"):
        assert not after.suppresses(FINDING)
        assert not after.suppresses(FINDING)
    assert after.expired_waivers() == [waiver]
    assert len([record for record in caplog.records if "expired" in record.getMessage()]) == 1


def test_expiring_within_lookahead() -> None:
    soon = Waiver(rule_id="SG-021", justification="x", fingerprint="a", expiry=date(2026, 3, 10))
    later = Waiver(rule_id="SG-021", justification="x", fingerprint="b", expiry=date(2026, 6, 1))
    forever = Waiver(rule_id="SG-021", justification="x", fingerprint="c")
    store = WaiverStore(waivers=[soon, later, forever], as_of=date(2026, 3, 1))

    assert store.expiring_within(soon, 14)
    assert not store.expiring_within(later, 14)
    assert not store.expiring_within(forever, 14)
