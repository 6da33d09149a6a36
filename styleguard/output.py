"""Output rendering."""

from __future__ import annotations

import json
from typing import Any

import click

from styleguard import __version__
from styleguard.report import FileReport, Report, ReportedViolation
from styleguard.waivers import Waiver

_STATUS_STYLE = {
    "fail": ("FAIL", "red"),
    "warn": ("WARN", "yellow"),
    "clean": ("CLEAN", "green"),
}
_SEVERITY_COLOR = {"MUST": "red", "SHOULD": "yellow", "MAY": "cyan"}


def render_human(report: Report) -> str:
    """Render a compact colorized summary."""
    label, color = _STATUS_STYLE[report.status]
    headline = (
        f"Status: {label} - {report.violation_count} violation(s) "
        f"in {report.files_checked} checked file(s)"
    )
    lines: list[str] = [click.style(headline, fg=color, bold=True)]
    if report.incomplete:
        lines.append(
            click.style(
                f"Run incomplete: {len(report.unprocessed)} file(s) were not checked.",
                fg="yellow",
            )
        )

    for entry in report.files:
        lines.append(click.style(entry.path, bold=True))
        if entry.error:
            lines.append(f"  error: {entry.error}")
        if entry.parse_error:
            lines.append(f"  parse error: {entry.parse_error}")
            if entry.skipped_rules:
                lines.append(f"  skipped rules: {', '.join(entry.skipped_rules)}")
        for violation in entry.violations:
            severity = click.style(
                violation.severity.value, fg=_SEVERITY_COLOR[violation.severity.value]
            )
            lines.append(
                f"  {violation.line}:{violation.column} {severity} "
                f"[{violation.rule_id}] {violation.message}"
            )

    if report.expiring_waivers:
        lines.append(click.style("Waivers expiring soon:", bold=True))
        for waiver in report.expiring_waivers:
            lines.append(f"- {waiver.rule_id} {waiver.matcher} expires {waiver.expiry}")

    if report.waiver_errors:
        lines.append(click.style("Waiver errors:", fg="yellow", bold=True))
        lines.extend(f"- {error}" for error in report.waiver_errors)

    counts = ", ".join(f"{key}={value}" for key, value in report.by_severity.items())
    lines.append(f"Summary: {counts}, suppressed={report.suppressed_count}")
    return "\n".join(lines)


def render_json(report: Report) -> str:
    """Render stable JSON output for CI and automation."""
    return json.dumps(build_json_payload(report), sort_keys=True)


def build_json_payload(report: Report) -> dict[str, Any]:
    """Build the machine-readable payload; no timestamps, so runs compare byte for byte."""
    return {
        "status": report.status,
        "incomplete": report.incomplete,
        "files": [_serialize_file(item) for item in report.files],
        "expiringWaivers": [_serialize_waiver(item) for item in report.expiring_waivers],
        "waiverErrors": list(report.waiver_errors),
        "unprocessed": list(report.unprocessed),
        "summary": {
            "filesChecked": report.files_checked,
            "violations": report.violation_count,
            "suppressed": report.suppressed_count,
            "bySeverity": dict(report.by_severity),
        },
        "meta": {
            "version": __version__,
            "ruleModelVersion": report.rule_model_version,
            "asOf": report.as_of.isoformat(),
        },
    }


def _serialize_file(entry: FileReport) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "path": entry.path,
        "violations": [_serialize_violation(item) for item in entry.violations],
    }
    if entry.parse_error is not None:
        payload["parseError"] = entry.parse_error
        payload["skippedRules"] = list(entry.skipped_rules)
    if entry.error is not None:
        payload["error"] = entry.error
    return payload


def _serialize_violation(violation: ReportedViolation) -> dict[str, Any]:
    return {
        "ruleId": violation.rule_id,
        "severity": violation.severity.value,
        "line": violation.line,
        "column": violation.column,
        "fingerprint": violation.fingerprint,
        "message": violation.message,
    }


def _serialize_waiver(waiver: Waiver) -> dict[str, Any]:
    return {
        "ruleId": waiver.rule_id,
        "matcher": waiver.matcher,
        "expiry": waiver.expiry.isoformat() if waiver.expiry else None,
    }
