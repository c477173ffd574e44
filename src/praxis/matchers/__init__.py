"""Pattern matchers: ``apply(unit, rule)`` dispatches on the rule's matcher spec.

Every matcher is a pure function of a SourceUnit and a Rule and returns a
possibly empty list of Findings.  A matcher that cannot evaluate a unit
returns ``[]`` instead of raising.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from praxis.infrastructure.discovery import matches_any
from praxis.matchers.cross_line import match_co_annotation
from praxis.matchers.lexical import match_naming, match_pattern
from praxis.matchers.metrics import match_metric
from praxis.matchers.structural import (
    match_closure_capture,
    match_empty_block,
    match_scoped_pattern,
)
from praxis.rules.model import (
    ClosureCaptureSpec,
    CoAnnotationSpec,
    EmptyBlockSpec,
    LoadErrorSpec,
    MetricSpec,
    NamingSpec,
    PatternSpec,
    ScopedPatternSpec,
)

if TYPE_CHECKING:
    from praxis.findings import Finding
    from praxis.rules.model import Rule
    from praxis.source.unit import SourceUnit


def rule_applies(rule: Rule, path: str) -> bool:
    """True when *rule* should run on *path* (its ``files`` globs, if any, match)."""
    if isinstance(rule.matcher, LoadErrorSpec):
        return False
    if not rule.files:
        return True
    return matches_any(path, rule.files)


def apply(unit: SourceUnit, rule: Rule) -> list[Finding]:
    """Run *rule* against *unit* and return its findings."""
    spec = rule.matcher
    if isinstance(spec, PatternSpec):
        return match_pattern(unit, rule, spec)
    if isinstance(spec, NamingSpec):
        return match_naming(unit, rule, spec)
    if isinstance(spec, ClosureCaptureSpec):
        return match_closure_capture(unit, rule, spec)
    if isinstance(spec, EmptyBlockSpec):
        return match_empty_block(unit, rule, spec)
    if isinstance(spec, ScopedPatternSpec):
        return match_scoped_pattern(unit, rule, spec)
    if isinstance(spec, CoAnnotationSpec):
        return match_co_annotation(unit, rule, spec)
    if isinstance(spec, MetricSpec):
        return match_metric(unit, rule, spec)
    # LoadErrorSpec and anything else: nothing to match.
    return []


__all__ = [
    "apply",
    "match_closure_capture",
    "match_co_annotation",
    "match_empty_block",
    "match_metric",
    "match_naming",
    "match_pattern",
    "match_scoped_pattern",
    "rule_applies",
]
