"""Praxis CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from praxis import __version__

# Exit codes
EXIT_FINDINGS = 1
EXIT_CONFIG_ERROR = 2
EXIT_OUTPUT_ERROR = 3


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("praxis").setLevel(level)


@click.group()
@click.version_option(version=__version__, prog_name="praxis")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Praxis - convention and quality analysis for source trees."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose=verbose, quiet=quiet)


def _absolute(paths: tuple[Path, ...]) -> list[Path]:
    cwd = Path.cwd()
    return [p if p.is_absolute() else cwd / p for p in paths]


# ---------------------------------------------------------------------------
# scan
# ---------------------------------------------------------------------------


@main.command()
@click.argument("paths", nargs=-1, type=click.Path(path_type=Path))
@click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Project config file (default: <project>/praxis.yml).",
)
@click.option(
    "--rules",
    "rules_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Rules YAML file (default: from praxis.yml or the bundled rules).",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich for a TTY or --output, porcelain if piped).",
)
@click.option(
    "--output",
    "-o",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the report to a file instead of stdout.",
)
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Worker threads.")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Whole-scan timeout in seconds.",
)
@click.option(
    "--fail-on-warning",
    is_flag=True,
    default=False,
    help="Exit 1 when any warning is reported, not only critical issues.",
)
def scan(
    paths: tuple[Path, ...],
    *,
    project: Path | None,
    config_path: Path | None,
    rules_path: Path | None,
    fmt: str | None,
    output_path: Path | None,
    workers: int | None,
    timeout: float | None,
    fail_on_warning: bool,
) -> None:
    """Scan source files against the convention rules.

    Exit codes: 0 = no critical issues, 1 = critical issues found (or any
    warning with --fail-on-warning), 2 = configuration error, 3 = the
    report could not be written.
    """
    from praxis.engine.coordinator import run_scan
    from praxis.engine.report import render, write_report
    from praxis.rules.loader import ConfigError

    project_root = project or Path.cwd()

    # Resolve output format: explicit flag > --output file > TTY detection.
    to_terminal = output_path is None and sys.stdout.isatty()
    if fmt is None:
        fmt = "rich" if to_terminal or output_path is not None else "porcelain"

    try:
        outcome = run_scan(
            project_root,
            _absolute(paths),
            config_path=config_path,
            rules_path=rules_path,
            max_workers=workers,
            timeout_seconds=timeout,
        )
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    report = outcome.report
    text = render(report, fmt, color=to_terminal)

    if output_path is not None:
        try:
            write_report(text, output_path)
        except OSError as exc:
            click.echo(f"Error: cannot write report to {output_path}: {exc}", err=True)
            sys.exit(EXIT_OUTPUT_ERROR)
    elif text:
        click.echo(text.rstrip("\n"))

    # The rich report prints its own scan warnings.
    if fmt != "rich" or output_path is not None:
        for warning in report.scan_warnings:
            click.echo(f"Warning: {warning}", err=True)

    if report.summary.critical_count:
        sys.exit(EXIT_FINDINGS)
    if fail_on_warning and report.summary.warning_count:
        sys.exit(EXIT_FINDINGS)


# ---------------------------------------------------------------------------
# rules
# ---------------------------------------------------------------------------


@main.command("rules")
@click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)
@click.option(
    "--rules",
    "rules_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Rules YAML file (default: from praxis.yml or the bundled rules).",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json"]),
    default="rich",
    help="Output format.",
)
def list_rules(*, project: Path | None, rules_path: Path | None, fmt: str) -> None:
    """List the active rules after project overrides."""
    from praxis.engine.coordinator import build_rule_loader
    from praxis.infrastructure.config import load_project_config
    from praxis.rules.loader import ConfigError

    project_root = project or Path.cwd()
    try:
        config = load_project_config(project_root)
        rule_set = build_rule_loader(
            rules_path or config.rules_path,
            severity_overrides=config.severity_overrides,
            disabled=config.disabled_rules,
        )()
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    if fmt == "json":
        data = [
            {
                "id": rule.id,
                "category": rule.category,
                "severity": rule.severity,
                "kind": rule.kind,
                "description": rule.description,
            }
            for rule in rule_set
        ]
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(title=f"{len(rule_set)} rules", box=None, padding=(0, 1))
    table.add_column("ID", style="cyan")
    table.add_column("Category")
    table.add_column("Severity")
    table.add_column("Matcher", style="dim")
    for rule in rule_set:
        severity_style = "red" if rule.severity == "critical" else "yellow"
        table.add_row(
            rule.id, rule.category, f"[{severity_style}]{rule.severity}[/]", rule.kind
        )
    console.print(table)


# ---------------------------------------------------------------------------
# check-rules
# ---------------------------------------------------------------------------


@main.command("check-rules")
@click.argument("rules_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def check_rules(rules_file: Path) -> None:
    """Validate a rules YAML file without scanning anything."""
    from praxis.rules.loader import ConfigError, load_rules

    try:
        rule_set = load_rules(rules_file)
    except ConfigError as exc:
        click.echo(f"Error [{exc.code}]: {exc}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    user_rules = len(rule_set.matching_rules)
    click.echo(f"✓ {rules_file.name}: {user_rules} rules OK")


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


@main.command()
@click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)
@click.option("--force", is_flag=True, help="Overwrite existing files.")
def init(*, project: Path | None, force: bool) -> None:
    """Write a starter praxis.yml and a copy of the bundled rules."""
    from praxis.infrastructure.config import (
        CONFIG_FILENAME,
        STARTER_CONFIG,
        STARTER_RULES_FILENAME,
    )
    from praxis.rules.loader import default_rules_text

    project_root = project or Path.cwd()
    targets = {
        project_root / CONFIG_FILENAME: STARTER_CONFIG,
        project_root / STARTER_RULES_FILENAME: default_rules_text(),
    }

    existing = [path.name for path in targets if path.exists()]
    if existing and not force:
        click.echo(
            f"Error: {', '.join(existing)} already exist(s); use --force to overwrite.", err=True
        )
        sys.exit(1)

    for path, content in targets.items():
        path.write_text(content, encoding="utf-8")
        click.echo(f"Created {path.name}")
