"""Rule evaluation over a single file's IR."""

from __future__ import annotations

from dataclasses import dataclass, field

from styleguard.ir import SourceFileIR
from styleguard.rules import UNREADABLE_RULE_ID, Finding, Rule, RuleModel


@dataclass(slots=True)
class FileEvaluation:
    """Findings for one file plus the structural rules skipped for it."""

    path: str
    findings: list[Finding] = field(default_factory=list)
    skipped_rule_ids: list[str] = field(default_factory=list)
    parse_error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "findings": [finding.to_dict() for finding in self.findings],
            "skipped_rule_ids": list(self.skipped_rule_ids),
            "parse_error": self.parse_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> FileEvaluation:
        raw_findings = data.get("findings") or []
        raw_skipped = data.get("skipped_rule_ids") or []
        parse_error = data.get("parse_error")
        return cls(
            path=str(data["path"]),
            findings=[Finding.from_dict(item) for item in raw_findings],  # type: ignore[union-attr]
            skipped_rule_ids=[str(item) for item in raw_skipped],  # type: ignore[union-attr]
            parse_error=str(parse_error) if parse_error is not None else None,
        )


def evaluate_rule(rule: Rule, ir: SourceFileIR) -> list[Finding]:
    """Apply one rule to one IR, returning findings in source order."""
    if not rule.scope.matches(ir):
        return []
    hits = sorted(rule.predicate(ir), key=lambda hit: (hit.line, hit.column, hit.fingerprint))
    return [
        Finding(
            rule_id=rule.rule_id,
            severity=rule.severity,
            file_path=ir.path,
            fingerprint=hit.fingerprint,
            line=hit.line,
            column=hit.column,
            message=hit.message,
        )
        for hit in hits
    ]


def evaluate_file(model: RuleModel, ir: SourceFileIR) -> FileEvaluation:
    """Evaluate every rule in ``model`` against ``ir``.

    A file that failed to parse only gets the unreadable-file finding; the
    structural rules that could not run are listed in ``skipped_rule_ids``.
    """
    result = FileEvaluation(path=ir.path)
    if not ir.status.ok:
        result.parse_error = ir.status.reason or "unknown parse failure"
        for rule in model.all_rules():
            if rule.rule_id == UNREADABLE_RULE_ID:
                result.findings.extend(evaluate_rule(rule, ir))
            elif rule.scope.kinds and ir.kind not in rule.scope.kinds:
                continue
            else:
                result.skipped_rule_ids.append(rule.rule_id)
        return result

    for rule in model.all_rules():
        if rule.rule_id == UNREADABLE_RULE_ID:
            continue
        result.findings.extend(evaluate_rule(rule, ir))
    return result
