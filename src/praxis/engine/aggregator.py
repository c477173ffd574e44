"""Finding Aggregator: deterministic merge of matcher batches into an AnalysisReport."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from praxis.rules.loader import UnknownRuleIdError
from praxis.rules.model import CATEGORIES

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from praxis.findings import Finding
    from praxis.rules.model import RuleSet

# Quality label thresholds
GOOD_MAX_WARNINGS = 5

_CATEGORY_NOTES: dict[str, str] = {
    "naming": "Naming conventions are followed consistently",
    "memory-safety": "Closures and delegates avoid retain cycles",
    "concurrency": "Observable state is isolated to the main actor",
    "error-handling": "Errors are handled instead of silently discarded",
    "sync-constraint": "Persistent models satisfy sync constraints",
    "performance": "No common performance pitfalls detected",
    "security": "No sensitive data stored insecurely",
    "structure": "Files and functions stay within size limits",
}

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchBatch:
    """Result of one matcher invocation (one SourceUnit x one Rule).

    Load-error batches carry the built-in rule id and are not evaluations.
    """

    path: str
    rule_id: str
    findings: tuple[Finding, ...] = ()
    evaluation: bool = True


@dataclass(frozen=True)
class SummaryStats:
    critical_count: int = 0
    warning_count: int = 0
    compliance_ratio: float = 1.0
    files_scanned: int = 0
    rules_evaluated: int = 0
    evaluations: int = 0
    quality_label: str = "Excellent"
    by_category: dict[str, int] = field(default_factory=dict)

    @property
    def compliance_percent(self) -> int:
        return round(self.compliance_ratio * 100)


@dataclass(frozen=True)
class AnalysisReport:
    """Terminal artifact of a scan; built once by :func:`aggregate`."""

    critical: tuple[Finding, ...] = ()
    warning: tuple[Finding, ...] = ()
    load_errors: tuple[Finding, ...] = ()
    positive_notes: tuple[str, ...] = ()
    scan_warnings: tuple[str, ...] = ()
    summary: SummaryStats = field(default_factory=SummaryStats)

    @property
    def findings(self) -> tuple[Finding, ...]:
        """All findings, ordered by ``(path, line, rule_id)``."""
        return tuple(sorted((*self.critical, *self.warning), key=lambda f: f.sort_key()))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def quality_label(critical_count: int, warning_count: int) -> str:
    if critical_count:
        return "Poor"
    if warning_count == 0:
        return "Excellent"
    if warning_count <= GOOD_MAX_WARNINGS:
        return "Good"
    return "Fair"


def _ordered_batches(rule_set: RuleSet, batches: Iterable[MatchBatch]) -> list[MatchBatch]:
    """Sort batches by path, then rule priority, so arrival order never matters."""
    checked: list[tuple[tuple[object, ...], MatchBatch]] = []
    for batch in batches:
        rule = rule_set.get(batch.rule_id)
        if rule is None:
            msg = f"Match batch for '{batch.path}' references unknown rule id '{batch.rule_id}'"
            raise UnknownRuleIdError(msg)
        for finding in batch.findings:
            if finding.rule_id not in rule_set:
                msg = (
                    f"Finding at {finding.location} references "
                    f"unknown rule id '{finding.rule_id}'"
                )
                raise UnknownRuleIdError(msg)
        content = tuple((f.line, f.rule_id, f.message, f.snippet) for f in batch.findings)
        checked.append(((batch.path, rule.priority, content), batch))
    checked.sort(key=lambda item: item[0])
    return [batch for _key, batch in checked]


def _merge(rule_set: RuleSet, batches: list[MatchBatch]) -> list[Finding]:
    """Drop exact duplicates and naming findings outranked by a higher-priority rule."""
    priorities = {rule.id: rule.priority for rule in rule_set}
    seen: set[tuple[str, str, int]] = set()
    naming_owner: dict[tuple[str, int, str], int] = {}
    kept: list[Finding] = []

    for batch in batches:
        for finding in batch.findings:
            key = (finding.rule_id, finding.path, finding.line)
            if key in seen:
                continue
            if finding.category == "naming" and finding.subject is not None:
                decl = (finding.path, finding.line, finding.subject)
                priority = priorities[finding.rule_id]
                owner = naming_owner.get(decl)
                if owner is not None and owner != priority:
                    # Batches arrive in priority order per path, so the owner always wins.
                    continue
                naming_owner[decl] = priority
            seen.add(key)
            kept.append(finding)
    return kept


def _positive_notes(
    evaluated: dict[str, int], flagged: Counter[str]
) -> tuple[str, ...]:
    notes: list[str] = []
    for category in CATEGORIES:
        if evaluated.get(category, 0) and not flagged.get(category, 0):
            notes.append(_CATEGORY_NOTES[category])
    return tuple(notes)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def aggregate(
    rule_set: RuleSet,
    batches: Iterable[MatchBatch],
    *,
    files_scanned: int = 0,
    scan_warnings: Sequence[str] = (),
) -> AnalysisReport:
    """Reduce matcher batches into an :class:`AnalysisReport`.

    The result depends only on the set of batches, never on their order.
    Raises :class:`UnknownRuleIdError` when a batch or finding references a
    rule that is not in *rule_set*.
    """
    ordered = _ordered_batches(rule_set, batches)
    findings = sorted(_merge(rule_set, ordered), key=lambda f: f.sort_key())

    critical = tuple(f for f in findings if f.severity == "critical")
    warning = tuple(f for f in findings if f.severity != "critical")
    load_errors = tuple(f for f in findings if f.rule_id == rule_set.load_error_rule.id)

    # Compliance: naming/structure evaluations that produced at least one finding.
    evaluations = 0
    triggered = 0
    evaluated_by_category: Counter[str] = Counter()
    rules_seen: set[str] = set()
    surviving = {(f.rule_id, f.path) for f in findings}
    for batch in ordered:
        if not batch.evaluation:
            continue
        rule = rule_set.get(batch.rule_id)
        if rule is None:
            continue
        rules_seen.add(rule.id)
        evaluated_by_category[rule.category] += 1
        if rule.counts_for_compliance:
            evaluations += 1
            if (rule.id, batch.path) in surviving:
                triggered += 1

    ratio = 1.0 if evaluations == 0 else 1.0 - triggered / evaluations
    by_category = Counter(f.category for f in findings)
    load_error_id = rule_set.load_error_rule.id
    flagged = Counter(f.category for f in findings if f.rule_id != load_error_id)

    summary = SummaryStats(
        critical_count=len(critical),
        warning_count=len(warning),
        compliance_ratio=min(1.0, max(0.0, ratio)),
        files_scanned=files_scanned,
        rules_evaluated=len(rules_seen),
        evaluations=evaluations,
        quality_label=quality_label(len(critical), len(warning)),
        by_category={c: by_category[c] for c in CATEGORIES if by_category[c]},
    )
    return AnalysisReport(
        critical=critical,
        warning=warning,
        load_errors=load_errors,
        positive_notes=_positive_notes(dict(evaluated_by_category), flagged),
        scan_warnings=tuple(scan_warnings),
        summary=summary,
    )
