"""Source Unit Loader: read a file into line-addressable text plus coarse tokens."""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from pathlib import Path

from praxis.source.lexer import BlockSpan, LexicalSyntax, Token, syntax_for, tokenize

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class LoadError(Exception):
    """A single file could not be loaded; the scan continues without it."""

    reason = "unreadable"

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"{path}: {detail}")
        self.path = path
        self.detail = detail


class SourceEncodingError(LoadError):
    reason = "encoding"


class MissingSourceError(LoadError):
    reason = "missing"


# ---------------------------------------------------------------------------
# SourceUnit
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceUnit:
    """One loaded input file.

    ``lines`` and ``code_lines`` are 0-indexed tuples but every public
    accessor takes 1-based line numbers.  ``code_lines`` hold the same text
    with string contents and comments replaced by spaces, so column offsets
    line up with ``lines``.
    """

    path: str
    lines: tuple[str, ...]
    code_lines: tuple[str, ...]
    tokens: tuple[Token, ...]
    blocks: tuple[BlockSpan, ...]
    syntax: LexicalSyntax
    _positions: tuple[tuple[int, int], ...] = field(default=(), repr=False, compare=False)
    _closers: dict[int, int] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_positions", tuple((t.line, t.col) for t in self.tokens))
        object.__setattr__(
            self, "_closers", {block.close_index: idx for idx, block in enumerate(self.blocks)}
        )

    # -- lines ----------------------------------------------------------------

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def line(self, number: int) -> str:
        return self.lines[number - 1]

    def code_line(self, number: int) -> str:
        return self.code_lines[number - 1]

    def line_depth(self, number: int) -> int:
        """Brace depth of the first code token on *number*, or ``-1`` for blank/comment lines."""
        idx = self.token_index_at(number, 0)
        while idx < len(self.tokens) and self.tokens[idx].line == number:
            tok = self.tokens[idx]
            if tok.kind != "comment":
                return tok.depth
            idx += 1
        return -1

    # -- tokens and blocks ------------------------------------------------------

    def token_index_at(self, line: int, col: int) -> int:
        """Index of the first token at or after ``(line, col)``."""
        return bisect.bisect_left(self._positions, (line, col))

    def block_at(self, line: int, col: int) -> int:
        """Index of the innermost block enclosing ``(line, col)``, ``-1`` at top level."""
        idx = self.token_index_at(line, col)
        if idx >= len(self.tokens):
            return -1
        if idx in self._closers and self._positions[idx] != (line, col):
            # Position sits just before a closing brace, i.e. still inside that block.
            return self._closers[idx]
        return self.tokens[idx].block

    def paren_depth_at(self, line: int, col: int) -> int:
        idx = self.token_index_at(line, col)
        if idx >= len(self.tokens):
            return 0
        return self.tokens[idx].paren

    def enclosing_type(self, block_index: int) -> BlockSpan | None:
        """Nearest ``type`` block containing *block_index* (itself included)."""
        idx = block_index
        while idx >= 0:
            block = self.blocks[idx]
            if block.kind == "type":
                return block
            idx = block.parent
        return None

    def scope_context(self, line: int, col: int) -> str:
        """Classify a declaration site as ``parameter``, ``member``, ``local`` or ``top-level``."""
        block_index = self.block_at(line, col)
        if self.paren_depth_at(line, col) > 0:
            return "parameter"
        if block_index < 0:
            return "top-level"
        if self.blocks[block_index].kind == "type":
            return "member"
        return "local"


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _normalise_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _split_lines(text: str) -> tuple[str, ...]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return tuple(lines)


def build_source_unit(path: str, text: str, syntax: LexicalSyntax | None = None) -> SourceUnit:
    """Build a SourceUnit from already-decoded text."""
    if syntax is None:
        syntax = syntax_for(Path(path).suffix)
    text = _normalise_newlines(text)
    if text.startswith("\ufeff"):
        text = text[1:]
    lexed = tokenize(text, syntax)
    return SourceUnit(
        path=path,
        lines=_split_lines(text),
        code_lines=_split_lines(lexed.masked),
        tokens=lexed.tokens,
        blocks=lexed.blocks,
        syntax=syntax,
    )


def load_source_unit(path: Path, display_path: str | None = None) -> SourceUnit:
    """Read *path* and build a SourceUnit.

    Raises :class:`MissingSourceError` when the file cannot be read and
    :class:`SourceEncodingError` when it is not valid UTF-8.
    """
    shown = display_path or path.as_posix()
    try:
        raw = path.read_bytes()
    except FileNotFoundError as exc:
        raise MissingSourceError(shown, "file not found") from exc
    except OSError as exc:
        raise MissingSourceError(shown, f"cannot read file ({exc.strerror or exc})") from exc

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        detail = f"invalid UTF-8 at byte {exc.start}"
        raise SourceEncodingError(shown, detail) from exc

    return build_source_unit(shown, text)
