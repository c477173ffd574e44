"""Rule model: immutable rule and matcher-spec dataclasses plus the RuleSet container."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

CATEGORIES: tuple[str, ...] = (
    "naming",
    "memory-safety",
    "concurrency",
    "error-handling",
    "sync-constraint",
    "performance",
    "security",
    "structure",
)
VALID_CATEGORIES: frozenset[str] = frozenset(CATEGORIES)
VALID_SEVERITIES: frozenset[str] = frozenset({"critical", "warning"})
COMPLIANCE_CATEGORIES: frozenset[str] = frozenset({"naming", "structure"})

NAMING_CONTEXTS: frozenset[str] = frozenset({"member", "local", "parameter", "top-level"})
CO_ANNOTATION_DIRECTIONS: frozenset[str] = frozenset({"before", "after", "around"})
METRIC_MEASURES: frozenset[str] = frozenset({"line-length", "file-length", "function-length"})

TEMPLATE_FIELDS: frozenset[str] = frozenset({"snippet", "line", "file", "name"})

LOAD_ERROR_RULE_ID = "source-unreadable"
CLOSURE_DEFAULT_CAPTURE: re.Pattern[str] = re.compile(r"\[\s*(?:weak|unowned)\b")

# ---------------------------------------------------------------------------
# Matcher specs (one frozen dataclass per matcher kind)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PatternSpec:
    """Flag every line whose code matches ``regex``."""

    regex: re.Pattern[str]
    exclude: re.Pattern[str] | None = None
    include_comments: bool = False


@dataclass(frozen=True)
class NamingSpec:
    """Check the identifier captured by ``declaration`` against a required shape.

    ``declaration`` must define a named group ``name``.  The identifier is
    flagged when it does not match ``require`` or when it matches ``forbid``.
    Declaration lines matching ``exclude`` are left to more specific rules.
    ``contexts`` limits the check to declaration sites in those scopes; an
    empty tuple means any scope.
    """

    declaration: re.Pattern[str]
    require: re.Pattern[str] | None = None
    forbid: re.Pattern[str] | None = None
    contexts: tuple[str, ...] = ()
    exclude: re.Pattern[str] | None = None


@dataclass(frozen=True)
class ClosureCaptureSpec:
    """Closure bodies referencing an enclosing binding before any capture list."""

    references: tuple[str, ...] = ("self",)
    capture: re.Pattern[str] = CLOSURE_DEFAULT_CAPTURE
    ignore_callees: tuple[str, ...] = ()
    skip_value_types: bool = True
    value_type_keywords: tuple[str, ...] = ("struct", "enum")


@dataclass(frozen=True)
class EmptyBlockSpec:
    """Control blocks introduced by ``header`` whose body holds no code."""

    header: re.Pattern[str]
    comments_count_as_body: bool = False


@dataclass(frozen=True)
class ScopedPatternSpec:
    """Member lines of type blocks whose header window matches ``scope``."""

    scope: re.Pattern[str]
    regex: re.Pattern[str]
    header_window: int = 2
    members_only: bool = True


@dataclass(frozen=True)
class CoAnnotationSpec:
    """A ``target`` line missing a ``required`` token within ``window`` lines."""

    target: re.Pattern[str]
    required: re.Pattern[str]
    trigger: re.Pattern[str] | None = None
    window: int = 2
    direction: str = "before"


@dataclass(frozen=True)
class MetricSpec:
    """Counting checks with no text-pattern component."""

    measure: str
    max: int


@dataclass(frozen=True)
class LoadErrorSpec:
    """Marker spec of the built-in rule that reports unreadable files.

    It is never applied to a SourceUnit.
    """


MatcherSpec = (
    PatternSpec
    | NamingSpec
    | ClosureCaptureSpec
    | EmptyBlockSpec
    | ScopedPatternSpec
    | CoAnnotationSpec
    | MetricSpec
    | LoadErrorSpec
)

MATCHER_KINDS: dict[str, str] = {
    "pattern": "lexical",
    "naming": "lexical",
    "closure_capture": "structural",
    "empty_block": "structural",
    "scoped_pattern": "structural",
    "co_annotation": "cross-line",
    "metric": "metric",
}

# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Rule:
    """A named compliance/quality check."""

    id: str
    category: str
    severity: str
    kind: str
    matcher: MatcherSpec
    message: str
    fix: str = ""
    description: str = ""
    files: tuple[str, ...] = ()
    priority: int = 0

    @property
    def counts_for_compliance(self) -> bool:
        return self.category in COMPLIANCE_CATEGORIES


LOAD_ERROR_RULE = Rule(
    id=LOAD_ERROR_RULE_ID,
    category="structure",
    severity="warning",
    kind="load_error",
    matcher=LoadErrorSpec(),
    message="File could not be analyzed: {snippet}",
    fix="Make sure the file exists and is valid UTF-8 text",
    description="Built-in: a source file could not be loaded",
)


@dataclass(frozen=True)
class RuleSet:
    """Ordered, read-only collection of rules.

    The built-in load-error rule is always present and always last.
    """

    rules: tuple[Rule, ...] = ()
    _by_id: dict[str, Rule] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        rules = tuple(r for r in self.rules if r.id != LOAD_ERROR_RULE_ID)
        last = max((r.priority for r in rules), default=-1) + 1
        existing = next((r for r in self.rules if r.id == LOAD_ERROR_RULE_ID), None)
        builtin = _with_priority(existing or LOAD_ERROR_RULE, last)
        all_rules = (*rules, builtin)
        object.__setattr__(self, "rules", all_rules)
        object.__setattr__(self, "_by_id", {r.id: r for r in all_rules})

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id

    def get(self, rule_id: str) -> Rule | None:
        return self._by_id.get(rule_id)

    @property
    def load_error_rule(self) -> Rule:
        return self._by_id[LOAD_ERROR_RULE_ID]

    @property
    def matching_rules(self) -> tuple[Rule, ...]:
        """Rules that run against SourceUnits (everything but the built-in)."""
        return tuple(r for r in self.rules if not isinstance(r.matcher, LoadErrorSpec))


def _with_priority(rule: Rule, priority: int) -> Rule:
    return replace(rule, priority=priority)
