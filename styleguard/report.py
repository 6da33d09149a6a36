"""Report aggregation: one sorted model behind every rendering."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Literal

from styleguard.engine import RunResult
from styleguard.rules import Finding, Severity
from styleguard.waivers import Waiver

Status = Literal["fail", "warn", "clean"]


@dataclass(frozen=True, slots=True)
class ReportedViolation:
    rule_id: str
    severity: Severity
    line: int
    column: int
    fingerprint: str
    message: str

    @classmethod
    def from_finding(cls, finding: Finding) -> ReportedViolation:
        return cls(
            rule_id=finding.rule_id,
            severity=finding.severity,
            line=finding.line,
            column=finding.column,
            fingerprint=finding.fingerprint,
            message=finding.message,
        )

    def sort_key(self) -> tuple[str, int, int, str, str]:
        return (self.rule_id, self.line, self.column, self.fingerprint, self.message)


@dataclass(slots=True)
class FileReport:
    path: str
    violations: list[ReportedViolation] = field(default_factory=list)
    parse_error: str | None = None
    skipped_rules: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass(slots=True)
class Report:
    """Aggregated, deterministically ordered result of a run."""

    status: Status
    incomplete: bool
    files: list[FileReport]
    expiring_waivers: list[Waiver]
    waiver_errors: list[str]
    unprocessed: list[str]
    files_checked: int
    suppressed_count: int
    by_severity: dict[str, int]
    rule_model_version: str
    as_of: date

    @property
    def violation_count(self) -> int:
        return sum(len(item.violations) for item in self.files)


def compute_status(severities: Iterable[Severity]) -> Status:
    """MUST anywhere fails; SHOULD/MAY only warns; nothing is clean."""
    seen = set(severities)
    if Severity.MUST in seen:
        return "fail"
    if seen:
        return "warn"
    return "clean"


def build_report(result: RunResult) -> Report:
    """Group violations by file and impose the only observable ordering."""
    files: dict[str, FileReport] = {}

    def file_report(path: str) -> FileReport:
        if path not in files:
            files[path] = FileReport(path=path)
        return files[path]

    for finding in result.violations:
        file_report(finding.file_path).violations.append(
            ReportedViolation.from_finding(finding)
        )
    for evaluation in result.evaluations:
        if evaluation.parse_error is None:
            continue
        entry = file_report(evaluation.path)
        entry.parse_error = evaluation.parse_error
        entry.skipped_rules = sorted(evaluation.skipped_rule_ids)
    for file_error in result.file_errors:
        file_report(file_error.path).error = file_error.error

    ordered = [files[path] for path in sorted(files)]
    by_severity: dict[str, int] = defaultdict(int)
    for entry in ordered:
        entry.violations.sort(key=ReportedViolation.sort_key)
        for violation in entry.violations:
            by_severity[violation.severity.value] += 1

    return Report(
        status=compute_status(finding.severity for finding in result.violations),
        incomplete=result.incomplete,
        files=ordered,
        expiring_waivers=list(result.expiring_waivers),
        waiver_errors=sorted(result.waiver_errors),
        unprocessed=sorted(result.unprocessed),
        files_checked=result.files_checked,
        suppressed_count=len(result.suppressed),
        by_severity={severity.value: by_severity[severity.value] for severity in Severity},
        rule_model_version=result.rule_model_version,
        as_of=result.as_of,
    )


def exit_code_for(status: Status) -> int:
    """Conventional process exit status for a CI runner."""
    return 1 if status == "fail" else 0
