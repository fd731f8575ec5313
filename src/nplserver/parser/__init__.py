"""Lexing and parsing of NPL source text with line fidelity."""

from nplserver.parser.lexer import Token, TokenKind, tokenize
from nplserver.parser.parser import Parser, parse_source

__all__ = [
    "Parser",
    "Token",
    "TokenKind",
    "parse_source",
    "tokenize",
]
