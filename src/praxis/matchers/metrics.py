"""Metric matchers: counting checks with no text-pattern component."""

from __future__ import annotations

from typing import TYPE_CHECKING

from praxis.findings import Finding, finding_at

if TYPE_CHECKING:
    from praxis.rules.model import MetricSpec, Rule
    from praxis.source.unit import SourceUnit

_NAMED_DEFINITIONS: frozenset[str] = frozenset({"func", "fun", "fn", "def", "function"})


def _line_length(unit: SourceUnit, rule: Rule, limit: int) -> list[Finding]:
    return [
        finding_at(rule, unit, number)
        for number, text in enumerate(unit.lines, start=1)
        if len(text) > limit
    ]


def _file_length(unit: SourceUnit, rule: Rule, limit: int) -> list[Finding]:
    if unit.line_count <= limit:
        return []
    # Reported on the first line past the limit.
    return [finding_at(rule, unit, limit + 1)]


def _function_name(unit: SourceUnit, open_index: int) -> str | None:
    idx = open_index - 1
    while idx > 0 and unit.tokens[idx].text not in ("{", "}", ";"):
        tok = unit.tokens[idx - 1]
        if tok.kind == "keyword" and tok.text in _NAMED_DEFINITIONS:
            return unit.tokens[idx].text if unit.tokens[idx].kind == "identifier" else None
        idx -= 1
    return None


def _function_length(unit: SourceUnit, rule: Rule, limit: int) -> list[Finding]:
    findings: list[Finding] = []
    for block in unit.blocks:
        if block.kind != "function":
            continue
        body_lines = block.close_line - block.open_line - 1
        if body_lines <= limit:
            continue
        name = _function_name(unit, block.open_index)
        findings.append(finding_at(rule, unit, block.open_line, subject=name))
    return findings


_MEASURES = {
    "line-length": _line_length,
    "file-length": _file_length,
    "function-length": _function_length,
}


def match_metric(unit: SourceUnit, rule: Rule, spec: MetricSpec) -> list[Finding]:
    """Dispatch on ``spec.measure``; the threshold is exclusive (``> max`` is flagged)."""
    return _MEASURES[spec.measure](unit, rule, spec.max)
