"""Report Builder: render an AnalysisReport as Rich text, JSON, or porcelain lines.

All formatters are pure functions of the report.  Only :func:`write_report`
touches the file system, and it lets ``OSError`` propagate to the caller.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

    from praxis.engine.aggregator import AnalysisReport
    from praxis.findings import Finding

REPORT_FORMAT_VERSION = 1
RICH_WIDTH = 100

_SEVERITY_STYLES: dict[str, tuple[str, str]] = {
    "critical": ("\u2716", "red bold"),  # ✖
    "warning": ("\u25b2", "yellow"),  # ▲
}

_QUALITY_STYLES: dict[str, str] = {
    "Excellent": "green bold",
    "Good": "green",
    "Fair": "yellow",
    "Poor": "red bold",
}

# ---------------------------------------------------------------------------
# Rich formatting (human-readable output)
# ---------------------------------------------------------------------------


def _finding_lines(index: int, finding: Finding) -> list[Any]:
    from rich.text import Text

    indicator, style = _SEVERITY_STYLES.get(finding.severity, ("?", "white"))
    head = Text("  ")
    head.append(f"{index}. {indicator} ", style=style)
    head.append(finding.location, style="bold")
    head.append("  ")
    head.append(f"[{finding.category}]", style="cyan")
    head.append(f" {finding.rule_id}", style="dim")

    lines: list[Any] = [head, Text(f"     {finding.message}")]
    current = Text("     Current: ", style="dim")
    current.append(finding.snippet, style="default")
    lines.append(current)
    if finding.fix:
        fix = Text("     Fix: ", style="dim")
        fix.append(finding.fix, style="green")
        lines.append(fix)
    return lines


def format_rich(report: AnalysisReport, *, color: bool = False) -> str:
    """Format an AnalysisReport as the sectioned human-readable report.

    Sections, always in this order::

        Critical Issues (N found)
        Warnings (N found)
        Positive Feedback
        Summary

    Files that could not be loaded are additionally listed under an
    ``Unreadable files`` entry inside the Warnings section.  Source
    snippets are printed as plain :class:`~rich.text.Text`, never as
    markup, so brackets in code survive untouched.
    """
    from io import StringIO

    from rich.console import Console
    from rich.text import Text

    buf = StringIO()
    console = Console(
        file=buf,
        force_terminal=color,
        no_color=not color,
        highlight=False,
        width=RICH_WIDTH,
    )

    def emit(renderable: Any = "") -> None:
        console.print(renderable, soft_wrap=True)

    summary = report.summary

    # -- Critical Issues --
    console.rule(f"Critical Issues ({summary.critical_count} found)", style="red")
    if report.critical:
        for idx, finding in enumerate(report.critical, start=1):
            for line in _finding_lines(idx, finding):
                emit(line)
            emit()
    else:
        emit(Text("  None", style="dim"))
        emit()

    # -- Warnings --
    console.rule(f"Warnings ({summary.warning_count} found)", style="yellow")
    if report.warning:
        for idx, finding in enumerate(report.warning, start=1):
            for line in _finding_lines(idx, finding):
                emit(line)
            emit()
    else:
        emit(Text("  None", style="dim"))
        emit()

    if report.load_errors:
        emit(Text(f"  Unreadable files ({len(report.load_errors)}):", style="yellow bold"))
        for finding in report.load_errors:
            entry = Text("    - ")
            entry.append(finding.path, style="bold")
            entry.append(f": {finding.snippet}")
            emit(entry)
        emit()

    # -- Positive Feedback --
    console.rule("Positive Feedback", style="green")
    if report.positive_notes:
        for note in report.positive_notes:
            entry = Text("  \u2713 ", style="green")
            entry.append(note, style="default")
            emit(entry)
    else:
        emit(Text("  No category passed without findings", style="dim"))
    emit()

    # -- Summary --
    console.rule("Summary", style="blue")
    emit(Text(f"  Critical Issues: {summary.critical_count}"))
    emit(Text(f"  Warnings: {summary.warning_count}"))
    quality = Text("  Code Quality: ")
    quality.append(summary.quality_label, style=_QUALITY_STYLES.get(summary.quality_label, ""))
    emit(quality)
    emit(Text(f"  Convention Compliance: {summary.compliance_percent}%"))
    emit(
        Text(
            f"  Files: {summary.files_scanned} scanned, "
            f"{summary.rules_evaluated} rules evaluated",
            style="dim",
        )
    )

    if report.scan_warnings:
        emit()
        for warning in report.scan_warnings:
            emit(Text(f"  ! {warning}", style="yellow"))

    return buf.getvalue()


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def _finding_to_dict(finding: Finding) -> dict[str, object]:
    return {
        "rule_id": finding.rule_id,
        "path": finding.path,
        "line": finding.line,
        "severity": finding.severity,
        "category": finding.category,
        "message": finding.message,
        "snippet": finding.snippet,
        "fix": finding.fix,
        "subject": finding.subject,
    }


def report_to_dict(report: AnalysisReport) -> dict[str, Any]:
    """Serialize an AnalysisReport to a JSON-safe dict."""
    summary = report.summary
    return {
        "version": REPORT_FORMAT_VERSION,
        "critical": [_finding_to_dict(f) for f in report.critical],
        "warning": [_finding_to_dict(f) for f in report.warning],
        "load_errors": [
            {"path": f.path, "detail": f.snippet} for f in report.load_errors
        ],
        "positive_notes": list(report.positive_notes),
        "scan_warnings": list(report.scan_warnings),
        "summary": {
            "critical_count": summary.critical_count,
            "warning_count": summary.warning_count,
            "compliance_ratio": round(summary.compliance_ratio, 4),
            "quality_label": summary.quality_label,
            "files_scanned": summary.files_scanned,
            "rules_evaluated": summary.rules_evaluated,
            "evaluations": summary.evaluations,
            "by_category": dict(summary.by_category),
        },
    }


def format_json(report: AnalysisReport) -> str:
    """Format an AnalysisReport as structured JSON (stable key order, no timestamps)."""
    return json.dumps(report_to_dict(report), indent=2, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Porcelain
# ---------------------------------------------------------------------------


def format_porcelain(report: AnalysisReport) -> str:
    """Format findings one per line: ``severity:rule_id:path:line:category``.

    Critical findings come first.  Returns an empty string when there are
    no findings.
    """
    lines = [
        f"{f.severity}:{f.rule_id}:{f.path}:{f.line}:{f.category}"
        for f in (*report.critical, *report.warning)
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

FORMATTERS = {
    "rich": format_rich,
    "json": format_json,
    "porcelain": format_porcelain,
}


def render(report: AnalysisReport, fmt: str = "rich", *, color: bool = False) -> str:
    """Render *report* with the named formatter."""
    if fmt == "rich":
        return format_rich(report, color=color)
    if fmt not in FORMATTERS:
        msg = f"Unknown report format '{fmt}', must be one of {sorted(FORMATTERS)}"
        raise ValueError(msg)
    return FORMATTERS[fmt](report)


def write_report(text: str, path: Path) -> None:
    """Write rendered output to *path*.  ``OSError`` is not caught here."""
    if text and not text.endswith("\n"):
        text += "\n"
    path.write_text(text, encoding="utf-8")
