"""Rule model types: severities, scope selectors, findings, and rules."""

from __future__ import annotations

import fnmatch
import hashlib
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from types import CodeType

from styleguard.ir import SourceFileIR


class Severity(str, Enum):
    """Rule severity; MUST blocks, SHOULD warns, MAY informs."""

    MUST = "MUST"
    SHOULD = "SHOULD"
    MAY = "MAY"


class RuleCategory(str, Enum):
    """Closed set of structural check variants."""

    NAMING = "naming"
    TYPING = "typing"
    SCOPING = "scoping"
    A11Y = "a11y"
    LAYOUT = "layout"


@dataclass(frozen=True, slots=True)
class ScopeSelector:
    """Which files a rule applies to: file kinds, optionally narrowed by globs."""

    kinds: frozenset[str] = frozenset()
    globs: tuple[str, ...] = ()
    exclude_globs: tuple[str, ...] = ()

    def matches(self, ir: SourceFileIR) -> bool:
        if self.kinds and ir.kind not in self.kinds:
            return False
        if self.globs and not any(fnmatch.fnmatch(ir.path, pattern) for pattern in self.globs):
            return False
        if any(fnmatch.fnmatch(ir.path, pattern) for pattern in self.exclude_globs):
            return False
        return True

    def describe(self) -> str:
        parts = [",".join(sorted(self.kinds)) or "*"]
        if self.globs:
            parts.append("in " + ",".join(self.globs))
        if self.exclude_globs:
            parts.append("not " + ",".join(self.exclude_globs))
        return " ".join(parts)


@dataclass(frozen=True, slots=True)
class Finding:
    """A raw rule match before waiver filtering."""

    rule_id: str
    severity: Severity
    file_path: str
    fingerprint: str
    line: int
    column: int
    message: str

    @property
    def identity(self) -> tuple[str, str]:
        return (self.rule_id, self.fingerprint)

    def to_dict(self) -> dict[str, object]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "file_path": self.file_path,
            "fingerprint": self.fingerprint,
            "line": self.line,
            "column": self.column,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Finding:
        return cls(
            rule_id=str(data["rule_id"]),
            severity=Severity(data["severity"]),
            file_path=str(data["file_path"]),
            fingerprint=str(data["fingerprint"]),
            line=int(data["line"]),  # type: ignore[arg-type]
            column=int(data["column"]),  # type: ignore[arg-type]
            message=str(data["message"]),
        )


@dataclass(frozen=True, slots=True)
class Hit:
    """Predicate output: a located message, turned into a Finding by the evaluator."""

    message: str
    line: int
    column: int
    fingerprint: str


Predicate = Callable[[SourceFileIR], Sequence[Hit]]


@dataclass(frozen=True, slots=True)
class Rule:
    """An immutable, registered, checkable requirement."""

    rule_id: str
    severity: Severity
    category: RuleCategory
    scope: ScopeSelector
    description: str
    predicate: Predicate
    revision: int = 1

    def signature(self) -> str:
        """Text that changes whenever the rule definition or its check logic changes."""
        predicate_name = getattr(self.predicate, "__qualname__", repr(self.predicate))
        module = getattr(self.predicate, "__module__", "")
        code = getattr(self.predicate, "__code__", None)
        return "|".join(
            [
                self.rule_id,
                self.severity.value,
                self.category.value,
                self.scope.describe(),
                self.description,
                f"{module}.{predicate_name}",
                code_digest(code) if code is not None else "",
                str(self.revision),
            ]
        )


def code_digest(code: CodeType) -> str:
    """Hash a function body: bytecode, referenced names, and constants.

    Nested code objects (comprehensions, lambdas) are hashed recursively so
    their memory addresses never leak into the digest.
    """
    digest = hashlib.sha256(code.co_code)
    digest.update("\x00".join(code.co_names).encode("utf-8"))
    for const in code.co_consts:
        if isinstance(const, CodeType):
            text = code_digest(const)
        elif isinstance(const, frozenset):
            text = repr(sorted(repr(item) for item in const))
        else:
            text = repr(const)
        digest.update(b"\x00" + text.encode("utf-8"))
    return digest.hexdigest()[:16]
