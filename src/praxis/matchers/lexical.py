"""Lexical matchers: per-line regex checks and identifier-shape checks at declaration sites."""

from __future__ import annotations

from typing import TYPE_CHECKING

from praxis.findings import Finding, finding_at

if TYPE_CHECKING:
    from praxis.rules.model import NamingSpec, PatternSpec, Rule
    from praxis.source.unit import SourceUnit


def match_pattern(unit: SourceUnit, rule: Rule, spec: PatternSpec) -> list[Finding]:
    """One finding per line whose text matches ``spec.regex``.

    Lines are matched with comments and string contents blanked unless
    ``include_comments`` is set, in which case the raw line is used.
    """
    lines = unit.lines if spec.include_comments else unit.code_lines
    findings: list[Finding] = []
    for number, text in enumerate(lines, start=1):
        if not spec.regex.search(text):
            continue
        if spec.exclude is not None and spec.exclude.search(text):
            continue
        findings.append(finding_at(rule, unit, number))
    return findings


def _name_violates(name: str, spec: NamingSpec) -> bool:
    if spec.require is not None and not spec.require.search(name):
        return True
    return spec.forbid is not None and bool(spec.forbid.search(name))


def match_naming(unit: SourceUnit, rule: Rule, spec: NamingSpec) -> list[Finding]:
    """Flag declared identifiers whose shape breaks the rule.

    The declaration regex runs over code text, so names inside comments or
    strings are never considered.  A line may declare several names
    (``var a: Bool, b: Bool`` style regexes with ``finditer``); each one is
    checked on its own.
    """
    findings: list[Finding] = []
    for number, text in enumerate(unit.code_lines, start=1):
        if spec.exclude is not None and spec.exclude.search(text):
            continue
        for match in spec.declaration.finditer(text):
            name = match.group("name")
            if not name:
                continue
            if spec.contexts:
                context = unit.scope_context(number, match.start("name"))
                if context not in spec.contexts:
                    continue
            if _name_violates(name, spec):
                findings.append(finding_at(rule, unit, number, subject=name))
    return findings
