"""Lightweight lexer: coarse tokens, comment/string masking, and brace-block spans.

This is deliberately not a parser.  It understands enough of C-family and
keyword-based syntaxes to tell code from strings and comments, to track
brace and paren nesting, and to guess what kind of construct opened each
brace block.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

# ---------------------------------------------------------------------------
# Lexical syntax per language family
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LexicalSyntax:
    """Comment and string delimiters for one language family."""

    name: str
    line_comments: tuple[str, ...] = ("//",)
    block_comments: tuple[tuple[str, str], ...] = (("/*", "*/"),)
    nested_block_comments: bool = False
    # Longest delimiters first so '"""' wins over '"'.
    string_delimiters: tuple[str, ...] = ('"',)
    raw_multiline: tuple[str, ...] = ()


C_FAMILY = LexicalSyntax(name="c-family", string_delimiters=('"', "'"))
SWIFT = LexicalSyntax(
    name="swift",
    nested_block_comments=True,
    string_delimiters=('"""', '"'),
    raw_multiline=('"""',),
)
KOTLIN = LexicalSyntax(
    name="kotlin",
    string_delimiters=('"""', '"', "'"),
    raw_multiline=('"""',),
)
JAVASCRIPT = LexicalSyntax(
    name="javascript",
    string_delimiters=("`", '"', "'"),
    raw_multiline=("`",),
)
GO = LexicalSyntax(name="go", string_delimiters=("`", '"', "'"), raw_multiline=("`",))
RUST = LexicalSyntax(name="rust", nested_block_comments=True, string_delimiters=('"',))
HASH_COMMENT = LexicalSyntax(
    name="hash-comment",
    line_comments=("#",),
    block_comments=(),
    string_delimiters=('"""', "'''", '"', "'"),
    raw_multiline=('"""', "'''"),
)

SYNTAX_BY_SUFFIX: dict[str, LexicalSyntax] = {
    ".swift": SWIFT,
    ".m": C_FAMILY,
    ".mm": C_FAMILY,
    ".h": C_FAMILY,
    ".c": C_FAMILY,
    ".cc": C_FAMILY,
    ".cpp": C_FAMILY,
    ".hpp": C_FAMILY,
    ".cs": C_FAMILY,
    ".java": C_FAMILY,
    ".scala": C_FAMILY,
    ".dart": C_FAMILY,
    ".kt": KOTLIN,
    ".kts": KOTLIN,
    ".js": JAVASCRIPT,
    ".jsx": JAVASCRIPT,
    ".ts": JAVASCRIPT,
    ".tsx": JAVASCRIPT,
    ".go": GO,
    ".rs": RUST,
    ".py": HASH_COMMENT,
    ".rb": HASH_COMMENT,
    ".sh": HASH_COMMENT,
}


def syntax_for(suffix: str) -> LexicalSyntax:
    """Return the lexical syntax for a file suffix (C-family when unknown)."""
    return SYNTAX_BY_SUFFIX.get(suffix.lower(), C_FAMILY)


# ---------------------------------------------------------------------------
# Keyword tables used for token kinds and block classification
# ---------------------------------------------------------------------------

TYPE_KEYWORDS: frozenset[str] = frozenset(
    {
        "class", "struct", "enum", "extension", "protocol", "actor", "interface",
        "object", "union", "namespace", "impl", "trait", "record",
    }
)
FUNCTION_KEYWORDS: frozenset[str] = frozenset(
    {
        "func", "fun", "fn", "def", "function", "init", "deinit", "constructor",
        "subscript", "get", "set", "willSet", "didSet",
    }
)
CONTROL_KEYWORDS: frozenset[str] = frozenset(
    {
        "if", "else", "for", "while", "guard", "switch", "do", "catch", "try",
        "repeat", "defer", "when", "match", "loop", "finally", "except", "unsafe",
    }
)
BINDING_KEYWORDS: frozenset[str] = frozenset({"var", "let", "val", "const"})
MODIFIER_KEYWORDS: frozenset[str] = frozenset(
    {
        "static", "private", "public", "internal", "fileprivate", "open", "final",
        "override", "mutating", "lazy", "protected", "abstract", "synchronized",
        "nonisolated", "required", "convenience", "inline", "virtual", "export",
    }
)
OTHER_KEYWORDS: frozenset[str] = frozenset(
    {
        "return", "in", "self", "Self", "super", "this", "weak", "unowned", "async",
        "await", "throws", "throw", "import", "case", "default", "break", "continue",
        "where", "some", "any", "nil",
        "null", "true", "false", "new", "typealias", "inout", "is", "as",
    }
)
KEYWORDS: frozenset[str] = (
    TYPE_KEYWORDS
    | FUNCTION_KEYWORDS
    | CONTROL_KEYWORDS
    | BINDING_KEYWORDS
    | MODIFIER_KEYWORDS
    | OTHER_KEYWORDS
)

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Token:
    """A coarse lexical token.

    ``depth`` is the brace depth the token sits at (an opening brace carries
    the depth outside it, a closing brace the same), ``paren`` the
    parenthesis depth, and ``block`` the index of the innermost enclosing
    brace block in :attr:`LexResult.blocks` (``-1`` at top level).
    """

    kind: str  # identifier | keyword | annotation | number | string | comment | punct
    text: str
    line: int  # 1-based
    col: int  # 0-based
    depth: int
    paren: int
    block: int


@dataclass(frozen=True)
class BlockSpan:
    """A matched ``{`` ... ``}`` pair with a heuristic classification."""

    kind: str  # type | function | control | closure | block
    keyword: str | None  # keyword that introduced the block, if any
    header: str  # header token texts joined by spaces
    open_index: int  # token index of "{"
    close_index: int  # token index of "}"
    open_line: int
    close_line: int
    depth: int  # brace depth outside the block
    parent: int  # index of the enclosing block, -1 at top level


@dataclass(frozen=True)
class LexResult:
    tokens: tuple[Token, ...]
    masked: str
    blocks: tuple[BlockSpan, ...]


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


def _is_ident_start(ch: str) -> bool:
    return ch.isalpha() or ch in "_$"


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


@dataclass
class _OpenBlock:
    """Mutable bookkeeping for a block while its closing brace is pending."""

    kind: str
    keyword: str | None
    header: str
    open_index: int
    open_line: int
    depth: int
    parent: int
    close_index: int = -1
    close_line: int = -1


class _Scanner:
    """Single-pass character scanner producing tokens and a masked copy of the text."""

    def __init__(self, text: str, syntax: LexicalSyntax) -> None:
        self.text = text
        self.syntax = syntax
        self.masked = list(text)
        self.tokens: list[Token] = []
        self.pos = 0
        self.line = 1
        self.col = 0
        self.depth = 0
        self.paren = 0
        self.slots: list[_OpenBlock] = []
        self.open_stack: list[int] = []  # slot indexes of blocks still open

    # -- low-level helpers --------------------------------------------------

    def _advance(self, count: int, *, mask: bool = False) -> None:
        for _ in range(count):
            if self.pos >= len(self.text):
                return
            ch = self.text[self.pos]
            if mask and ch != "\n":
                self.masked[self.pos] = " "
            if ch == "\n":
                self.line += 1
                self.col = 0
            else:
                self.col += 1
            self.pos += 1

    def _emit(self, kind: str, text: str, line: int, col: int) -> None:
        self.tokens.append(
            Token(
                kind=kind,
                text=text,
                line=line,
                col=col,
                depth=self.depth,
                paren=self.paren,
                block=self.open_stack[-1] if self.open_stack else -1,
            )
        )

    # -- comments and strings ----------------------------------------------

    def _scan_line_comment(self) -> None:
        start, line, col = self.pos, self.line, self.col
        end = self.text.find("\n", self.pos)
        if end == -1:
            end = len(self.text)
        self._advance(end - self.pos, mask=True)
        self._emit("comment", self.text[start:end], line, col)

    def _scan_block_comment(self, opener: str, closer: str) -> None:
        start, line, col = self.pos, self.line, self.col
        self._advance(len(opener), mask=True)
        nesting = 1
        while self.pos < len(self.text) and nesting:
            if self.syntax.nested_block_comments and self.text.startswith(opener, self.pos):
                nesting += 1
                self._advance(len(opener), mask=True)
            elif self.text.startswith(closer, self.pos):
                nesting -= 1
                self._advance(len(closer), mask=True)
            else:
                self._advance(1, mask=True)
        self._emit("comment", self.text[start : self.pos], line, col)

    def _scan_string(self, delimiter: str) -> None:
        """Scan a string literal, keeping its delimiters visible in the masked text."""
        start, line, col = self.pos, self.line, self.col
        multiline = delimiter in self.syntax.raw_multiline
        self._advance(len(delimiter))
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if self.text.startswith(delimiter, self.pos):
                self._advance(len(delimiter))
                break
            if ch == "\n" and not multiline:
                break
            if ch == "\\" and delimiter != "`":
                self._advance(2, mask=True)
                continue
            self._advance(1, mask=True)
        self._emit("string", self.text[start : self.pos], line, col)

    # -- braces ---------------------------------------------------------------

    def _open_brace(self) -> None:
        line, col = self.line, self.col
        self._emit("punct", "{", line, col)
        parent = self.open_stack[-1] if self.open_stack else -1
        parent_kind = self.slots[parent].kind if parent >= 0 else None
        kind, keyword, header = _classify_block(self.tokens, len(self.tokens) - 1, parent_kind)
        self.slots.append(
            _OpenBlock(
                kind=kind,
                keyword=keyword,
                header=header,
                open_index=len(self.tokens) - 1,
                open_line=line,
                depth=self.depth,
                parent=parent,
            )
        )
        self.open_stack.append(len(self.slots) - 1)
        self.depth += 1
        self._advance(1)

    def _close_brace(self) -> None:
        line, col = self.line, self.col
        if self.open_stack:
            slot = self.slots[self.open_stack.pop()]
            self.depth = max(0, self.depth - 1)
            self._emit("punct", "}", line, col)
            slot.close_index = len(self.tokens) - 1
            slot.close_line = line
        else:
            self._emit("punct", "}", line, col)
        self._advance(1)

    # -- main loop ------------------------------------------------------------

    def _scan_word(self, start: int, kind: str | None) -> None:
        line, col = self.line, self.col
        end = start
        while end < len(self.text) and _is_ident_char(self.text[end]):
            end += 1
        word = self.text[self.pos : end]
        if kind is None:
            kind = "keyword" if word in KEYWORDS else "identifier"
        self._emit(kind, word, line, col)
        self._advance(end - self.pos)

    def _scan_number(self) -> None:
        text = self.text
        end = self.pos + 1
        while end < len(text) and (_is_ident_char(text[end]) or text[end] == "."):
            if text[end] == "." and not (end + 1 < len(text) and text[end + 1].isdigit()):
                break
            end += 1
        self._emit("number", text[self.pos : end], self.line, self.col)
        self._advance(end - self.pos)

    def _block_comment_at(self) -> tuple[str, str] | None:
        for opener, closer in self.syntax.block_comments:
            if self.text.startswith(opener, self.pos):
                return opener, closer
        return None

    def _string_delimiter_at(self) -> str | None:
        for delimiter in self.syntax.string_delimiters:
            if self.text.startswith(delimiter, self.pos):
                return delimiter
        return None

    def run(self) -> LexResult:
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            block_comment = self._block_comment_at()
            delimiter = self._string_delimiter_at() if block_comment is None else None

            if ch in " \t\r\n\f\v":
                self._advance(1)
            elif any(text.startswith(marker, self.pos) for marker in self.syntax.line_comments):
                self._scan_line_comment()
            elif block_comment is not None:
                self._scan_block_comment(*block_comment)
            elif delimiter is not None:
                self._scan_string(delimiter)
            elif _is_ident_start(ch):
                self._scan_word(self.pos + 1, None)
            elif ch == "@" and self.pos + 1 < len(text) and _is_ident_start(text[self.pos + 1]):
                self._scan_word(self.pos + 2, "annotation")
            elif ch.isdigit():
                self._scan_number()
            elif ch == "{":
                self._open_brace()
            elif ch == "}":
                self._close_brace()
            elif ch == "(":
                self._emit("punct", ch, self.line, self.col)
                self.paren += 1
                self._advance(1)
            elif ch == ")":
                self.paren = max(0, self.paren - 1)
                self._emit("punct", ch, self.line, self.col)
                self._advance(1)
            else:
                self._emit("punct", ch, self.line, self.col)
                self._advance(1)

        blocks = self._finish_blocks()
        return LexResult(tokens=tuple(self.tokens), masked="".join(self.masked), blocks=blocks)

    def _finish_blocks(self) -> tuple[BlockSpan, ...]:
        """Materialise closed blocks; braces left open at end of file are dropped."""
        remap: dict[int, int] = {}
        for slot_index, slot in enumerate(self.slots):
            if slot.close_index >= 0:
                remap[slot_index] = len(remap)

        def _resolve(slot_index: int) -> int:
            while slot_index >= 0 and slot_index not in remap:
                slot_index = self.slots[slot_index].parent
            return remap.get(slot_index, -1)

        spans = tuple(
            BlockSpan(
                kind=slot.kind,
                keyword=slot.keyword,
                header=slot.header,
                open_index=slot.open_index,
                close_index=slot.close_index,
                open_line=slot.open_line,
                close_line=slot.close_line,
                depth=slot.depth,
                parent=_resolve(slot.parent),
            )
            for slot_index, slot in enumerate(self.slots)
            if slot_index in remap
        )
        if len(remap) != len(self.slots):
            self.tokens = [replace(tok, block=_resolve(tok.block)) for tok in self.tokens]
        return spans


# ---------------------------------------------------------------------------
# Block classification
# ---------------------------------------------------------------------------

_DEFINITION_KEYWORDS: frozenset[str] = frozenset(
    {"func", "fun", "fn", "def", "function", "init", "deinit", "constructor", "subscript"}
)
_ACCESSOR_KEYWORDS: frozenset[str] = frozenset({"get", "set", "willSet", "didSet"})


def _header_tokens(tokens: list[Token], brace_index: int) -> list[Token]:
    """Collect the tokens that introduce the block opened at *brace_index*.

    Walks backwards over the brace's own line, continuing onto earlier lines
    only while inside an unbalanced parenthesised group (multi-line
    parameter lists).  Stops at ``{``, ``}``, ``;`` or an unmatched ``(``/``[``.
    """
    collected: list[Token] = []
    anchor_line = tokens[brace_index].line
    balance = 0
    idx = brace_index - 1
    while idx >= 0:
        tok = tokens[idx]
        idx -= 1
        if tok.kind == "comment":
            continue
        if balance == 0 and tok.line != anchor_line:
            break
        if tok.kind == "punct":
            if balance == 0 and tok.text in ("{", "}", ";"):
                break
            if tok.text in (")", "]"):
                balance += 1
            elif tok.text in ("(", "["):
                if balance == 0:
                    break
                balance -= 1
                if balance == 0:
                    anchor_line = tok.line
        collected.append(tok)
    collected.reverse()
    return collected


def _classify_block(
    tokens: list[Token], brace_index: int, parent_kind: str | None
) -> tuple[str, str | None, str]:
    """Guess the construct that opened a brace block.

    Returns ``(kind, keyword, header_text)``.
    """
    header = _header_tokens(tokens, brace_index)
    header_text = " ".join(tok.text for tok in header)
    if not header:
        return "block", None, header_text

    texts = [tok.text for tok in header]
    for text in texts:
        if text in TYPE_KEYWORDS:
            return "type", text, header_text
    for text in texts:
        if text in _DEFINITION_KEYWORDS:
            return "function", text, header_text

    significant = [
        tok for tok in header if tok.kind != "annotation" and tok.text not in MODIFIER_KEYWORDS
    ]
    if not significant:
        return "block", None, header_text
    first = significant[0]

    if first.text in CONTROL_KEYWORDS:
        return "control", first.text, header_text
    if first.text in _ACCESSOR_KEYWORDS:
        return "function", first.text, header_text

    has_assignment = "=" in texts
    binding = next((text for text in texts if text in BINDING_KEYWORDS), None)
    if binding is not None and not has_assignment:
        # Computed property or accessor body.
        return "function", binding, header_text

    if (
        texts[-1] == ")"
        and first.kind == "identifier"
        and not has_assignment
        and "." not in texts
        and parent_kind in (None, "type")
    ):
        # C-style definition such as ``int main(void) {`` at file or type level.
        return "function", None, header_text

    return "closure", None, header_text


def tokenize(text: str, syntax: LexicalSyntax = C_FAMILY) -> LexResult:
    """Tokenize *text*, mask strings/comments, and collect brace blocks."""
    return _Scanner(text, syntax).run()
