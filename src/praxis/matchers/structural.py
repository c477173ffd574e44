"""Structural-heuristic matchers driven by the brace-block spans of a SourceUnit.

None of these understand the grammar of the analysed language.  They look
at block kinds guessed by the lexer, the tokens between a block's braces,
and the brace depth of each line, and accept the occasional false
positive or negative that comes with that.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from praxis.findings import Finding, finding_at

if TYPE_CHECKING:
    from praxis.rules.model import ClosureCaptureSpec, EmptyBlockSpec, Rule, ScopedPatternSpec
    from praxis.source.lexer import Token
    from praxis.source.unit import SourceUnit


# ---------------------------------------------------------------------------
# closure_capture
# ---------------------------------------------------------------------------


def _callee(tokens: tuple[Token, ...], open_index: int) -> str | None:
    """Name of the call a trailing closure is attached to, e.g. ``map`` in ``xs.map {``.

    A parenthesised argument list directly before the brace is skipped
    (``asyncAfter(deadline: .now()) {``).
    """
    idx = open_index - 1
    while idx >= 0 and tokens[idx].kind == "comment":
        idx -= 1
    if idx >= 0 and tokens[idx].text == ")":
        balance = 0
        while idx >= 0:
            text = tokens[idx].text
            if text == ")":
                balance += 1
            elif text == "(":
                balance -= 1
                if balance == 0:
                    idx -= 1
                    break
            idx -= 1
    if idx >= 0 and tokens[idx].kind in ("identifier", "keyword"):
        return tokens[idx].text
    return None


def _nearest_closure(unit: SourceUnit, block_index: int) -> int:
    idx = block_index
    while idx >= 0 and unit.blocks[idx].kind != "closure":
        idx = unit.blocks[idx].parent
    return idx


def _in_value_type(unit: SourceUnit, block_index: int, keywords: tuple[str, ...]) -> bool:
    owner = unit.enclosing_type(block_index)
    return owner is not None and owner.keyword in keywords


def match_closure_capture(unit: SourceUnit, rule: Rule, spec: ClosureCaptureSpec) -> list[Finding]:
    """Closures whose own body references an enclosing binding before any capture list.

    Only references whose nearest enclosing closure is the closure under
    test count, so a nested closure is judged on its own.  The capture check
    runs on the tokens between ``{`` and the first reference.
    """
    findings: list[Finding] = []
    references = set(spec.references)
    ignored = set(spec.ignore_callees)

    for idx, block in enumerate(unit.blocks):
        if block.kind != "closure":
            continue
        if ignored and _callee(unit.tokens, block.open_index) in ignored:
            continue
        if spec.skip_value_types and _in_value_type(unit, idx, spec.value_type_keywords):
            continue

        first_ref = None
        for tok_index in range(block.open_index + 1, block.close_index):
            tok = unit.tokens[tok_index]
            if tok.text in references and tok.kind in ("identifier", "keyword"):
                if _nearest_closure(unit, tok.block) == idx:
                    first_ref = tok_index
                    break
        if first_ref is None:
            continue

        lead = " ".join(
            tok.text
            for tok in unit.tokens[block.open_index + 1 : first_ref]
            if tok.kind != "comment"
        )
        if spec.capture.search(lead):
            continue
        findings.append(finding_at(rule, unit, block.open_line))
    return findings


# ---------------------------------------------------------------------------
# empty_block
# ---------------------------------------------------------------------------


def match_empty_block(unit: SourceUnit, rule: Rule, spec: EmptyBlockSpec) -> list[Finding]:
    """Control blocks introduced by a matching header with nothing inside the braces."""
    findings: list[Finding] = []
    for block in unit.blocks:
        if block.kind != "control" or not spec.header.search(block.header):
            continue
        body = unit.tokens[block.open_index + 1 : block.close_index]
        if spec.comments_count_as_body and body:
            continue
        if any(tok.kind != "comment" for tok in body):
            continue
        findings.append(finding_at(rule, unit, block.open_line))
    return findings


# ---------------------------------------------------------------------------
# scoped_pattern
# ---------------------------------------------------------------------------


def _scope_matches(unit: SourceUnit, open_line: int, spec: ScopedPatternSpec) -> bool:
    first = max(1, open_line - spec.header_window)
    return any(spec.scope.search(unit.code_line(n)) for n in range(first, open_line + 1))


def match_scoped_pattern(unit: SourceUnit, rule: Rule, spec: ScopedPatternSpec) -> list[Finding]:
    """Lines inside matching type blocks that match ``spec.regex``.

    A type block is in scope when ``spec.scope`` matches its opening line
    or one of the ``header_window`` lines before it (attributes such as
    ``@Model`` usually sit on their own line).  With ``members_only`` only
    lines directly inside the type body are checked, not method bodies.
    """
    findings: list[Finding] = []
    for block in unit.blocks:
        if block.kind != "type" or not _scope_matches(unit, block.open_line, spec):
            continue
        for number in range(block.open_line + 1, block.close_line):
            if spec.members_only and unit.line_depth(number) != block.depth + 1:
                continue
            if spec.regex.search(unit.code_line(number)):
                findings.append(finding_at(rule, unit, number))
    return findings
