"""Source unit loading - lexer, masked lines, and brace-block spans."""

from praxis.source.lexer import BlockSpan, LexicalSyntax, Token, syntax_for, tokenize
from praxis.source.unit import (
    LoadError,
    MissingSourceError,
    SourceEncodingError,
    SourceUnit,
    build_source_unit,
    load_source_unit,
)

__all__ = [
    "BlockSpan",
    "LexicalSyntax",
    "LoadError",
    "MissingSourceError",
    "SourceEncodingError",
    "SourceUnit",
    "Token",
    "build_source_unit",
    "load_source_unit",
    "syntax_for",
    "tokenize",
]
