"""Finding: one concrete rule violation at a file/line, plus template rendering."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from praxis.rules.model import Rule
    from praxis.source.unit import SourceUnit

SNIPPET_LIMIT = 120


@dataclass(frozen=True)
class Finding:
    """A rule violation.

    ``severity`` and ``category`` are copied from the Rule at match time so
    that a Finding stays meaningful after it leaves the matcher.
    ``subject`` is the identifier a naming finding is about, else ``None``.
    """

    rule_id: str
    path: str
    line: int
    snippet: str
    severity: str
    category: str
    message: str
    fix: str = ""
    subject: str | None = None

    @property
    def location(self) -> str:
        return f"{self.path}:{self.line}"

    def sort_key(self) -> tuple[str, int, str]:
        return (self.path, self.line, self.rule_id)


def make_snippet(text: str) -> str:
    """Strip *text* and cut it to :data:`SNIPPET_LIMIT` characters."""
    snippet = text.strip()
    if len(snippet) > SNIPPET_LIMIT:
        return snippet[: SNIPPET_LIMIT - 3] + "..."
    return snippet


def render_template(template: str, *, snippet: str, line: int, path: str, name: str | None) -> str:
    # Placeholders were validated when the rule was loaded.
    return template.format(snippet=snippet, line=line, file=path, name=name or "")


def build_finding(
    rule: Rule,
    *,
    path: str,
    line: int,
    snippet: str,
    subject: str | None = None,
) -> Finding:
    """Render *rule*'s templates for one location and return the Finding."""
    snippet = make_snippet(snippet)
    return Finding(
        rule_id=rule.id,
        path=path,
        line=line,
        snippet=snippet,
        severity=rule.severity,
        category=rule.category,
        message=render_template(rule.message, snippet=snippet, line=line, path=path, name=subject),
        fix=render_template(rule.fix, snippet=snippet, line=line, path=path, name=subject),
        subject=subject,
    )


def finding_at(rule: Rule, unit: SourceUnit, line: int, subject: str | None = None) -> Finding:
    """Finding for *line* of *unit*, using the source line as the snippet."""
    return build_finding(
        rule, path=unit.path, line=line, snippet=unit.line(line), subject=subject
    )
