"""Source file discovery: expand scan paths into a sorted, filtered file list."""

from __future__ import annotations

import fnmatch
import logging
from typing import TYPE_CHECKING

from praxis.source.lexer import SYNTAX_BY_SUFFIX

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)

# Directories never worth descending into.
SKIP_DIRS: frozenset[str] = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".build",
        ".swiftpm",
        "DerivedData",
        "Pods",
        "Carthage",
        "node_modules",
        "__pycache__",
        ".venv",
        "venv",
        "build",
        "dist",
    }
)


def matches_glob(path: str, pattern: str) -> bool:
    """``fnmatch`` a posix-style relative path, letting ``**/`` also match zero directories."""
    if fnmatch.fnmatch(path, pattern):
        return True
    while pattern.startswith("**/"):
        pattern = pattern[3:]
        if fnmatch.fnmatch(path, pattern):
            return True
    return False


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    return any(matches_glob(path, pattern) for pattern in patterns)


def _display_path(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def _is_candidate(rel: str, include: Sequence[str], exclude: Sequence[str]) -> bool:
    if exclude and matches_any(rel, exclude):
        return False
    if include:
        return matches_any(rel, include)
    suffix = rel.rsplit(".", 1)[-1] if "." in rel else ""
    return f".{suffix}".lower() in SYNTAX_BY_SUFFIX


def discover_files(
    root: Path,
    paths: Sequence[Path] = (),
    *,
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
) -> list[tuple[Path, str]]:
    """Return ``(absolute_path, display_path)`` pairs sorted by display path.

    *paths* may mix files and directories; an empty sequence scans *root*.
    Files named explicitly are always kept (even if missing, so the loader
    can report them), directories are walked and filtered by *include* /
    *exclude* globs relative to *root*.  Without *include*, only files with
    a known source suffix are collected.
    """
    targets = list(paths) or [root]
    found: dict[str, Path] = {}

    for target in targets:
        if not target.is_absolute():
            target = root / target
        if target.is_dir():
            for file_path in sorted(target.rglob("*")):
                if not file_path.is_file():
                    continue
                rel_parts = file_path.relative_to(target).parts
                if any(part in SKIP_DIRS for part in rel_parts[:-1]):
                    continue
                rel = _display_path(file_path, root)
                if _is_candidate(rel, include, exclude):
                    found.setdefault(rel, file_path)
        else:
            found.setdefault(_display_path(target, root), target)

    logger.debug("Discovered %d source files under %s", len(found), root)
    return [(found[rel], rel) for rel in sorted(found)]
