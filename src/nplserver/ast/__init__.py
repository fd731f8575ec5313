"""Declaration AST for NPL source files."""

from nplserver.ast.nodes import (
    Declaration,
    FieldDecl,
    FileUnit,
    FunctionDecl,
    PackageScope,
    Param,
    QualifiedName,
    StructDecl,
    TypeRef,
    UseDecl,
)

__all__ = [
    "Declaration",
    "FieldDecl",
    "FileUnit",
    "FunctionDecl",
    "PackageScope",
    "Param",
    "QualifiedName",
    "StructDecl",
    "TypeRef",
    "UseDecl",
]
