"""Rules package: the SG rule table and the process-wide rule model."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from dataclasses import dataclass

from styleguard import __version__
from styleguard.ir import IR_SCHEMA_VERSION
from styleguard.rules import a11y, layout, naming, scoping, typing_rules
from styleguard.rules.base import (
    Finding,
    Hit,
    Predicate,
    Rule,
    RuleCategory,
    ScopeSelector,
    Severity,
)

UNREADABLE_RULE_ID = "SG-000"

__all__ = [
    "UNREADABLE_RULE_ID",
    "DuplicateRuleId",
    "Finding",
    "Hit",
    "Rule",
    "RuleCategory",
    "RuleInfo",
    "RuleLoadError",
    "RuleModel",
    "ScopeSelector",
    "Severity",
    "build_rule_model",
    "default_rule_model",
    "list_rule_info",
    "rule_table",
]


class RuleLoadError(Exception):
    """The rule model cannot be initialized; no evaluation is possible."""


class DuplicateRuleId(RuleLoadError):
    """A rule id was registered twice."""


class RuleModel:
    """Ordered, read-only-after-startup registry of rules."""

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._rules: dict[str, Rule] = {}
        self._version: str | None = None
        for rule in rules:
            self.register(rule)

    def register(self, rule: Rule) -> None:
        if rule.rule_id in self._rules:
            raise DuplicateRuleId(f"Duplicate rule id: {rule.rule_id}")
        self._rules[rule.rule_id] = rule
        self._version = None

    def all_rules(self) -> list[Rule]:
        return list(self._rules.values())

    def version(self) -> str:
        """Fingerprint over the package release, the IR schema, and every rule definition."""
        if self._version is None:
            digest = hashlib.sha256(f"{__version__}:{IR_SCHEMA_VERSION}\n".encode("utf-8"))
            for rule in self._rules.values():
                digest.update(rule.signature().encode("utf-8"))
                digest.update(b"\n")
            self._version = digest.hexdigest()[:16]
        return self._version

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules


@dataclass(frozen=True, slots=True)
class RuleInfo:
    """Rule metadata for listing and selection."""

    rule_id: str
    severity: str
    category: str
    scope: str
    description: str


COMPONENT_KINDS = frozenset({"component", "route"})
SCRIPT_KINDS = frozenset({"component", "route", "store", "api", "module"})


def rule_table() -> list[Rule]:
    """Return the fixed SG rule table in guide order."""
    return [
        _rule(
            UNREADABLE_RULE_ID,
            Severity.MUST,
            RuleCategory.LAYOUT,
            ScopeSelector(),
            "Every checked file must be parseable.",
            layout.unreadable_file,
        ),
        _rule(
            "SG-010",
            Severity.SHOULD,
            RuleCategory.NAMING,
            ScopeSelector(kinds=frozenset({"component"})),
            "Component file names use PascalCase.",
            naming.component_file_name,
        ),
        _rule(
            "SG-011",
            Severity.SHOULD,
            RuleCategory.NAMING,
            ScopeSelector(kinds=frozenset({"store"})),
            "Store file names are camelCase and end in 'Store' or '.store'.",
            naming.store_file_name,
        ),
        _rule(
            "SG-012",
            Severity.MAY,
            RuleCategory.NAMING,
            ScopeSelector(kinds=SCRIPT_KINDS),
            "Declared identifiers avoid snake_case.",
            naming.identifier_case,
        ),
        _rule(
            "SG-021",
            Severity.MUST,
            RuleCategory.TYPING,
            ScopeSelector(kinds=COMPONENT_KINDS),
            "Component props declare explicit types.",
            typing_rules.untyped_props,
        ),
        _rule(
            "SG-022",
            Severity.SHOULD,
            RuleCategory.TYPING,
            ScopeSelector(kinds=frozenset({"component"})),
            "Component events and callback props declare payload types.",
            typing_rules.untyped_events,
        ),
        _rule(
            "SG-023",
            Severity.SHOULD,
            RuleCategory.TYPING,
            ScopeSelector(kinds=frozenset({"component"})),
            "Bindable props declare a fallback value.",
            typing_rules.bindable_without_default,
        ),
        _rule(
            "SG-030",
            Severity.MUST,
            RuleCategory.SCOPING,
            ScopeSelector(kinds=COMPONENT_KINDS),
            "Components use runes instead of legacy '$:' statements.",
            scoping.legacy_reactive,
        ),
        _rule(
            "SG-031",
            Severity.SHOULD,
            RuleCategory.SCOPING,
            ScopeSelector(kinds=frozenset({"store", "api", "module"})),
            "$effect is only used inside components.",
            scoping.effect_outside_component,
        ),
        _rule(
            "SG-040",
            Severity.SHOULD,
            RuleCategory.SCOPING,
            ScopeSelector(kinds=frozenset({"component"})),
            "Components reach APIs through stores, not direct imports.",
            scoping.component_imports_api,
        ),
        _rule(
            "SG-041",
            Severity.MUST,
            RuleCategory.SCOPING,
            ScopeSelector(kinds=frozenset({"api", "store"})),
            "API modules and stores never import components.",
            scoping.imports_component,
        ),
        _rule(
            "SG-050",
            Severity.MUST,
            RuleCategory.A11Y,
            ScopeSelector(kinds=COMPONENT_KINDS),
            "Images carry alt text.",
            a11y.img_without_alt,
        ),
        _rule(
            "SG-051",
            Severity.SHOULD,
            RuleCategory.A11Y,
            ScopeSelector(kinds=COMPONENT_KINDS),
            "Click handlers sit on interactive elements or declare a role.",
            a11y.click_on_non_interactive,
        ),
        _rule(
            "SG-060",
            Severity.SHOULD,
            RuleCategory.LAYOUT,
            ScopeSelector(kinds=frozenset({"component", "store", "api"})),
            "Components, stores, and API modules live in their lib/ directories.",
            layout.misplaced_file,
        ),
        _rule(
            "SG-070",
            Severity.SHOULD,
            RuleCategory.SCOPING,
            ScopeSelector(kinds=COMPONENT_KINDS),
            "Components read stores with the $store shorthand, not .subscribe().",
            scoping.manual_subscribe,
        ),
        _rule(
            "SG-071",
            Severity.MUST,
            RuleCategory.TYPING,
            ScopeSelector(kinds=frozenset({"api"})),
            "Exported API functions declare request and response types.",
            typing_rules.untyped_api_exports,
        ),
    ]


def default_rule_model() -> RuleModel:
    """Return a rule model holding the full rule table."""
    return build_rule_model()


def build_rule_model(
    *,
    enabled_rule_ids: list[str] | None = None,
    disabled_rule_ids: list[str] | None = None,
    rules: list[Rule] | None = None,
) -> RuleModel:
    """Build the rule model applying enable/disable selection.

    The unreadable-file pseudo-rule is always kept so parse failures are
    never silently dropped.
    """
    table = rules if rules is not None else rule_table()
    known_ids = [rule.rule_id for rule in table]
    requested = set(enabled_rule_ids or []) | set(disabled_rule_ids or [])
    unknown = [rule_id for rule_id in requested if rule_id not in known_ids]
    if unknown:
        raise RuleLoadError(f"Unknown rule ids: {', '.join(sorted(unknown))}")

    disabled = set(disabled_rule_ids or [])
    disabled.discard(UNREADABLE_RULE_ID)
    enabled = set(enabled_rule_ids) if enabled_rule_ids is not None else None
    if enabled is not None:
        enabled.add(UNREADABLE_RULE_ID)

    model = RuleModel()
    for rule in table:
        if rule.rule_id in disabled:
            continue
        if enabled is not None and rule.rule_id not in enabled:
            continue
        model.register(rule)
    return model


def list_rule_info(model: RuleModel | None = None) -> list[RuleInfo]:
    """Return metadata for all rules in ``model`` (default: the full table)."""
    rules = model.all_rules() if model is not None else rule_table()
    return [
        RuleInfo(
            rule_id=rule.rule_id,
            severity=rule.severity.value,
            category=rule.category.value,
            scope=rule.scope.describe(),
            description=rule.description,
        )
        for rule in rules
    ]


def _rule(
    rule_id: str,
    severity: Severity,
    category: RuleCategory,
    scope: ScopeSelector,
    description: str,
    predicate: Predicate,
) -> Rule:
    return Rule(
        rule_id=rule_id,
        severity=severity,
        category=category,
        scope=scope,
        description=description,
        predicate=predicate,
    )
