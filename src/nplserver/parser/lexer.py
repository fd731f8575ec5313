"""Tokenizer for NPL source text with line/column tracking."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from nplserver.models.errors import CompilerMessage, ErrorCode, SourceInfo


class TokenKind(StrEnum):
    IDENTIFIER = "IDENTIFIER"
    KEYWORD = "KEYWORD"
    NUMBER = "NUMBER"
    STRING = "STRING"
    SYMBOL = "SYMBOL"
    EOF = "EOF"


KEYWORDS = frozenset(
    {
        "package",
        "use",
        "struct",
        "function",
        "returns",
        "return",
        "var",
        "if",
        "else",
        "true",
        "false",
    }
)

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>[ \t\r\n]+)
    |(?P<comment>//[^\n]*|/\*.*?\*/)
    |(?P<number>\d+(?:\.\d+)?)
    |(?P<word>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<string>"(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*')
    |(?P<symbol>->|==|!=|<=|>=|&&|\|\||[{}()\[\]<>,;:.=+\-*/!?%&|])
    """,
    re.VERBOSE | re.DOTALL,
)


@dataclass(frozen=True)
class Token:
    """A lexical token.  ``line`` and ``column`` are 1-based."""

    kind: TokenKind
    text: str
    line: int
    column: int
    offset: int

    @property
    def display(self) -> str:
        """Token text as shown in syntax error messages."""
        return "<EOF>" if self.kind is TokenKind.EOF else self.text

    def is_symbol(self, text: str) -> bool:
        return self.kind is TokenKind.SYMBOL and self.text == text

    def is_keyword(self, text: str) -> bool:
        return self.kind is TokenKind.KEYWORD and self.text == text


def tokenize(text: str, location: Path) -> tuple[list[Token], list[CompilerMessage]]:
    """Split *text* into tokens.

    Returns ``(tokens, errors)``; the token list always ends with an EOF
    token.  Characters that start no token are reported and skipped.
    """
    tokens: list[Token] = []
    errors: list[CompilerMessage] = []
    line = 1
    line_start = 0
    pos = 0

    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            char = text[pos]
            errors.append(
                CompilerMessage(
                    code=ErrorCode.SYNTAX_ERROR,
                    message=f"Syntax error: token recognition error at: '{char}'",
                    source=SourceInfo(
                        location=location, line=line, column=pos - line_start + 1, snippet=char
                    ),
                )
            )
            pos += 1
            continue

        group = match.lastgroup
        value = match.group()
        if group not in ("ws", "comment"):
            if group == "word":
                kind = TokenKind.KEYWORD if value in KEYWORDS else TokenKind.IDENTIFIER
            else:
                kind = TokenKind(group.upper())
            tokens.append(
                Token(kind=kind, text=value, line=line, column=pos - line_start + 1, offset=pos)
            )

        newlines = value.count("\n")
        if newlines:
            line += newlines
            line_start = pos + value.rindex("\n") + 1
        pos = match.end()

    tokens.append(
        Token(kind=TokenKind.EOF, text="", line=line, column=pos - line_start + 1, offset=pos)
    )
    return tokens, errors
