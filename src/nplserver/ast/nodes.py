"""Immutable declaration-level AST for NPL source files."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nplserver.parser.lexer import Token


@dataclass(frozen=True)
class QualifiedName:
    """Dotted name such as ``bar.Bar`` with the tokens it was parsed from."""

    parts: tuple[str, ...]
    start: Token

    @property
    def text(self) -> str:
        return ".".join(self.parts)

    @property
    def package(self) -> str:
        return ".".join(self.parts[:-1])

    @property
    def simple_name(self) -> str:
        return self.parts[-1]


@dataclass(frozen=True)
class TypeRef:
    """Reference to a type, optionally generic: ``List<Number>``."""

    name: str
    token: Token
    arguments: tuple[TypeRef, ...] = ()
    end: Token | None = None  # last token of the reference (closing '>' for generics)

    @property
    def text(self) -> str:
        if not self.arguments:
            return self.name
        return f"{self.name}<{', '.join(a.text for a in self.arguments)}>"


@dataclass(frozen=True)
class UseDecl:
    """``use bar.Bar``"""

    name: QualifiedName
    keyword: Token
    end: Token


@dataclass(frozen=True)
class FieldDecl:
    name: str
    token: Token
    type_ref: TypeRef | None


@dataclass(frozen=True)
class StructDecl:
    name: str
    keyword: Token
    name_token: Token
    fields: tuple[FieldDecl, ...] = ()


@dataclass(frozen=True)
class Param:
    name: str
    token: Token
    type_ref: TypeRef | None


@dataclass(frozen=True)
class FunctionDecl:
    """A top-level function.

    ``body`` holds the raw body tokens (without the enclosing braces for
    block bodies, without the terminating ``;`` for expression bodies).
    ``end`` is the last token of the declaration.
    """

    name: str
    keyword: Token
    name_token: Token
    params: tuple[Param, ...]
    return_type: TypeRef | None
    block: bool
    body: tuple[Token, ...]
    end: Token


Declaration = StructDecl | FunctionDecl


@dataclass(frozen=True)
class FileUnit:
    """One parsed source file."""

    location: Path
    text: str
    package: QualifiedName | None
    uses: tuple[UseDecl, ...] = ()
    declarations: tuple[Declaration, ...] = ()
    library: bool = False

    @property
    def package_name(self) -> str:
        return self.package.text if self.package is not None else ""

    @property
    def structs(self) -> list[StructDecl]:
        return [d for d in self.declarations if isinstance(d, StructDecl)]

    @property
    def functions(self) -> list[FunctionDecl]:
        return [d for d in self.declarations if isinstance(d, FunctionDecl)]


@dataclass
class PackageScope:
    """All declarations contributed to one package across files."""

    name: str
    structs: dict[str, StructDecl] = field(default_factory=dict)
    functions: dict[str, FunctionDecl] = field(default_factory=dict)

    def declares(self, name: str) -> bool:
        return name in self.structs or name in self.functions
