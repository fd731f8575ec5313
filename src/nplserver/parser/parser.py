"""Recursive-descent parser for the NPL declaration grammar.

Grammar (bodies are kept as raw token runs)::

    file      := 'package' qname ';'? (use | struct | function)* EOF
    use       := 'use' qname ';'?
    struct    := 'struct' ID '{' (field (',' field)* ','?)? '}' ';'?
    field     := ID ':' type
    function  := 'function' ID '(' (param (',' param)*)? ')' ('returns' type)?
                 '->' ('{' tokens '}' | tokens ';') ';'?
    type      := ID ('<' type (',' type)* '>')?

Syntax errors are collected rather than raised, using the same recovery
vocabulary as ANTLR-generated parsers (extraneous / mismatched / missing).
"""

from __future__ import annotations

from pathlib import Path

from nplserver.ast.nodes import (
    Declaration,
    FieldDecl,
    FileUnit,
    FunctionDecl,
    Param,
    QualifiedName,
    StructDecl,
    TypeRef,
    UseDecl,
)
from nplserver.models.errors import CompilerMessage, ErrorCode, SourceInfo
from nplserver.parser.lexer import Token, TokenKind, tokenize

_DECLARATION_KEYWORDS = ("struct", "function", "use")
_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = frozenset(_OPENERS.values())


class Parser:
    """Parses one source file into a :class:`FileUnit`."""

    def __init__(self, text: str, location: Path, *, library: bool = False) -> None:
        self._text = text
        self._location = location
        self._library = library
        self._tokens, self._errors = tokenize(text, location)
        self._pos = 0

    # -- public API ----------------------------------------------------------

    def parse(self) -> tuple[FileUnit, list[CompilerMessage]]:
        """Parse the whole file.  Returns ``(unit, syntax_errors)``."""
        package = self._package()
        uses: list[UseDecl] = []
        declarations: list[Declaration] = []

        while self._cur.kind is not TokenKind.EOF:
            tok = self._cur
            if tok.is_keyword("use"):
                use = self._use()
                if use is not None:
                    uses.append(use)
            elif tok.is_keyword("struct"):
                struct = self._struct()
                if struct is not None:
                    declarations.append(struct)
            elif tok.is_keyword("function"):
                function = self._function()
                if function is not None:
                    declarations.append(function)
            else:
                self._error(
                    tok,
                    f"Syntax error: extraneous input '{tok.display}' "
                    "expecting {'function', 'struct', 'use', <EOF>}",
                )
                self._advance()
                self._synchronize()

        unit = FileUnit(
            location=self._location,
            text=self._text,
            package=package,
            uses=tuple(uses),
            declarations=tuple(declarations),
            library=self._library,
        )
        return unit, list(self._errors)

    # -- token helpers -------------------------------------------------------

    @property
    def _cur(self) -> Token:
        return self._tokens[self._pos]

    def _peek(self, offset: int = 1) -> Token:
        index = min(self._pos + offset, len(self._tokens) - 1)
        return self._tokens[index]

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        if tok.kind is not TokenKind.EOF:
            self._pos += 1
        return tok

    @property
    def _previous(self) -> Token:
        return self._tokens[max(self._pos - 1, 0)]

    def _at_declaration(self) -> bool:
        tok = self._cur
        return tok.kind is TokenKind.EOF or any(tok.is_keyword(k) for k in _DECLARATION_KEYWORDS)

    def _synchronize(self) -> None:
        """Skip tokens up to the next top-level declaration keyword."""
        while not self._at_declaration():
            self._advance()

    def _skip_optional(self, symbol: str) -> Token | None:
        if self._cur.is_symbol(symbol):
            return self._advance()
        return None

    def _error(self, tok: Token, message: str) -> None:
        self._errors.append(
            CompilerMessage(
                code=ErrorCode.SYNTAX_ERROR,
                message=message,
                source=SourceInfo(
                    location=self._location,
                    line=tok.line,
                    column=tok.column,
                    snippet=tok.text,
                ),
            )
        )

    def _expect_identifier(self) -> Token | None:
        tok = self._cur
        if tok.kind is TokenKind.IDENTIFIER:
            return self._advance()
        if tok.kind is not TokenKind.EOF and self._peek().kind is TokenKind.IDENTIFIER:
            self._error(tok, f"Syntax error: extraneous input '{tok.display}' expecting IDENTIFIER")
            self._advance()
            return self._advance()
        self._error(tok, f"Syntax error: mismatched input '{tok.display}' expecting IDENTIFIER")
        return None

    def _expect_symbol(self, symbol: str) -> Token | None:
        tok = self._cur
        if tok.is_symbol(symbol):
            return self._advance()
        if tok.kind is not TokenKind.EOF and self._peek().is_symbol(symbol):
            self._error(tok, f"Syntax error: extraneous input '{tok.display}' expecting '{symbol}'")
            self._advance()
            return self._advance()
        self._error(tok, f"Syntax error: missing '{symbol}' at '{tok.display}'")
        return None

    # -- grammar rules -------------------------------------------------------

    def _package(self) -> QualifiedName | None:
        tok = self._cur
        if not tok.is_keyword("package"):
            self._error(tok, f"Syntax error: missing 'package' at '{tok.display}'")
            return None
        self._advance()
        name = self._qualified_name()
        self._skip_optional(";")
        return name

    def _qualified_name(self) -> QualifiedName | None:
        first = self._expect_identifier()
        if first is None:
            return None
        parts = [first.text]
        while self._cur.is_symbol("."):
            self._advance()
            ident = self._expect_identifier()
            if ident is None:
                break
            parts.append(ident.text)
        return QualifiedName(parts=tuple(parts), start=first)

    def _use(self) -> UseDecl | None:
        keyword = self._advance()
        name = self._qualified_name()
        if name is None:
            self._synchronize()
            return None
        end = self._previous
        self._skip_optional(";")
        return UseDecl(name=name, keyword=keyword, end=end)

    def _type_ref(self) -> TypeRef | None:
        tok = self._expect_identifier()
        if tok is None:
            return None
        arguments: list[TypeRef] = []
        end = tok
        if self._cur.is_symbol("<"):
            self._advance()
            while True:
                argument = self._type_ref()
                if argument is not None:
                    arguments.append(argument)
                if self._cur.is_symbol(","):
                    self._advance()
                    continue
                break
            end = self._expect_symbol(">") or self._previous
        return TypeRef(name=tok.text, token=tok, arguments=tuple(arguments), end=end)

    def _struct(self) -> StructDecl | None:
        keyword = self._advance()
        name_tok = self._expect_identifier()
        if name_tok is None or self._expect_symbol("{") is None:
            self._synchronize()
            return None

        fields: list[FieldDecl] = []
        while not self._cur.is_symbol("}") and not self._at_declaration():
            field_tok = self._expect_identifier()
            if field_tok is not None:
                type_ref = self._type_ref() if self._expect_symbol(":") is not None else None
                fields.append(FieldDecl(name=field_tok.text, token=field_tok, type_ref=type_ref))
            if self._cur.is_symbol(","):
                self._advance()
                continue
            if self._cur.is_symbol("}") or self._at_declaration():
                break
            tok = self._cur
            if field_tok is not None:
                self._error(
                    tok, f"Syntax error: mismatched input '{tok.display}' expecting {{',', '}}'}}"
                )
            while not (
                self._cur.is_symbol(",") or self._cur.is_symbol("}") or self._at_declaration()
            ):
                self._advance()
            self._skip_optional(",")

        self._expect_symbol("}")
        self._skip_optional(";")
        return StructDecl(
            name=name_tok.text, keyword=keyword, name_token=name_tok, fields=tuple(fields)
        )

    def _params(self) -> list[Param]:
        params: list[Param] = []
        if self._cur.is_symbol(")"):
            return params
        while True:
            tok = self._expect_identifier()
            if tok is None:
                break
            type_ref = self._type_ref() if self._expect_symbol(":") is not None else None
            params.append(Param(name=tok.text, token=tok, type_ref=type_ref))
            if not self._cur.is_symbol(","):
                break
            self._advance()
        return params

    def _function(self) -> FunctionDecl | None:
        keyword = self._advance()
        name_tok = self._expect_identifier()
        if name_tok is None or self._expect_symbol("(") is None:
            self._synchronize()
            return None
        params = self._params()
        if self._expect_symbol(")") is None:
            self._synchronize()
            return None
        return_type = None
        if self._cur.is_keyword("returns"):
            self._advance()
            return_type = self._type_ref()
        if self._expect_symbol("->") is None:
            self._synchronize()
            return None

        if self._cur.is_symbol("{"):
            body, end = self._block_body()
            block = True
            self._skip_optional(";")
        else:
            body, end = self._expression_body()
            block = False
        if end is None:
            return None

        return FunctionDecl(
            name=name_tok.text,
            keyword=keyword,
            name_token=name_tok,
            params=tuple(params),
            return_type=return_type,
            block=block,
            body=tuple(body),
            end=end,
        )

    def _block_body(self) -> tuple[list[Token], Token | None]:
        self._advance()  # '{'
        body: list[Token] = []
        depth = 0
        while True:
            tok = self._cur
            if tok.kind is TokenKind.EOF:
                self._error(tok, "Syntax error: missing '}' at '<EOF>'")
                return body, None
            if tok.is_symbol("}") and depth == 0:
                return body, self._advance()
            if tok.kind is TokenKind.SYMBOL and tok.text in _OPENERS:
                depth += 1
            elif tok.kind is TokenKind.SYMBOL and tok.text in _CLOSERS:
                depth = max(depth - 1, 0)
            body.append(self._advance())

    def _expression_body(self) -> tuple[list[Token], Token | None]:
        body: list[Token] = []
        depth = 0
        while True:
            tok = self._cur
            if depth == 0 and (tok.is_symbol(";") or self._at_declaration()):
                break
            if tok.kind is TokenKind.SYMBOL and tok.text in _OPENERS:
                depth += 1
            elif tok.kind is TokenKind.SYMBOL and tok.text in _CLOSERS:
                depth = max(depth - 1, 0)
            body.append(self._advance())

        if not body:
            tok = self._cur
            self._error(tok, f"Syntax error: mismatched input '{tok.display}' expecting an expression")
            self._skip_optional(";")
            return body, None
        if self._cur.is_symbol(";"):
            return body, self._advance()
        self._error(self._cur, f"Syntax error: missing ';' at '{self._cur.display}'")
        return body, body[-1]


def parse_source(
    text: str, location: Path, *, library: bool = False
) -> tuple[FileUnit, list[CompilerMessage]]:
    """Convenience wrapper: parse *text* located at *location*."""
    return Parser(text, location, library=library).parse()
