"""Cross-line matcher: a target line must carry a companion token within a window of lines."""

from __future__ import annotations

from typing import TYPE_CHECKING

from praxis.findings import Finding, finding_at

if TYPE_CHECKING:
    import re

    from praxis.rules.model import CoAnnotationSpec, Rule
    from praxis.source.unit import SourceUnit


def _window(number: int, spec: CoAnnotationSpec, line_count: int) -> range | None:
    """Line numbers to search around target *number*, or ``None`` without enough lookahead."""
    first = number
    last = number
    if spec.direction in ("before", "around"):
        first = max(1, number - spec.window)
    if spec.direction in ("after", "around"):
        last = number + spec.window
        if last > line_count:
            return None
    return range(first, last + 1)


def _window_has(unit: SourceUnit, pattern: re.Pattern[str], lines: range) -> bool:
    return any(pattern.search(unit.code_line(n)) for n in lines)


def match_co_annotation(unit: SourceUnit, rule: Rule, spec: CoAnnotationSpec) -> list[Finding]:
    """Flag target lines whose window lacks ``spec.required``.

    With a ``trigger`` the target is only considered when the trigger also
    appears in the window.  The window always includes the target line
    itself, so ``@MainActor final class Store: ObservableObject`` passes.
    """
    findings: list[Finding] = []
    for number, text in enumerate(unit.code_lines, start=1):
        if not spec.target.search(text):
            continue
        lines = _window(number, spec, unit.line_count)
        if lines is None:
            continue
        if spec.trigger is not None and not _window_has(unit, spec.trigger, lines):
            continue
        if _window_has(unit, spec.required, lines):
            continue
        findings.append(finding_at(rule, unit, number))
    return findings
