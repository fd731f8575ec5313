"""Semantic checks: imports, type references, calls, returns, unused variables."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from nplserver.ast.nodes import FileUnit, FunctionDecl, PackageScope, TypeRef
from nplserver.models.errors import CompilerMessage, ErrorCode, Severity, SourceInfo
from nplserver.parser.lexer import Token, TokenKind

BUILTIN_TYPES = frozenset(
    {
        "Blob",
        "Boolean",
        "DateTime",
        "Duration",
        "List",
        "LocalDate",
        "Map",
        "Number",
        "Optional",
        "Pair",
        "Party",
        "Period",
        "Set",
        "Text",
        "Unit",
    }
)

BUILTIN_FUNCTIONS = frozenset(
    {"listOf", "setOf", "mapOf", "optionalOf", "now", "millis", "seconds", "days", "months"}
)


def build_packages(units: Iterable[FileUnit]) -> dict[str, PackageScope]:
    """Merge the declarations of all units into per-package scopes.

    The first declaration of a name wins; duplicates are reported by
    :class:`SemanticChecker`.
    """
    packages: dict[str, PackageScope] = {}
    for unit in units:
        scope = packages.setdefault(unit.package_name, PackageScope(name=unit.package_name))
        for struct in unit.structs:
            if not scope.declares(struct.name):
                scope.structs[struct.name] = struct
        for function in unit.functions:
            if not scope.declares(function.name):
                scope.functions[function.name] = function
    return packages


def span_snippet(unit: FileUnit, start: Token, end: Token) -> str:
    """Source text from the start of *start* to the end of *end*."""
    return unit.text[start.offset : end.offset + len(end.text)]


@dataclass
class _Visible:
    """Names a single file can refer to."""

    types: set[str] = field(default_factory=set)
    functions: set[str] = field(default_factory=set)

    def knows_type(self, name: str) -> bool:
        return name in BUILTIN_TYPES or name in self.types


class SemanticChecker:
    """Validates parsed units against the merged package scopes.

    Only units listed as checkable produce messages; all units contribute
    declarations (library sources and files with syntax errors included).
    """

    def check(
        self,
        units: list[FileUnit],
        skip: set[Path] | None = None,
    ) -> tuple[list[CompilerMessage], list[CompilerMessage]]:
        """Return ``(errors, warnings)`` for every non-library unit not in *skip*."""
        skip = skip or set()
        packages = build_packages(units)
        errors: list[CompilerMessage] = []
        warnings: list[CompilerMessage] = []

        for unit in units:
            if unit.library or unit.location in skip:
                continue
            errors.extend(self._check_duplicates(unit, packages))
            visible, import_errors = self._visible_names(unit, packages)
            errors.extend(import_errors)
            errors.extend(self._check_type_refs(unit, visible))
            for function in unit.functions:
                errors.extend(self._check_calls(unit, function, visible))
                errors.extend(self._check_return(unit, function))
                warnings.extend(self._check_unused_variables(unit, function))
        return errors, warnings

    # -- helpers -------------------------------------------------------------

    @staticmethod
    def _message(
        unit: FileUnit,
        code: ErrorCode,
        message: str,
        start: Token,
        end: Token | None = None,
        severity: Severity = Severity.ERROR,
    ) -> CompilerMessage:
        return CompilerMessage(
            code=code,
            message=message,
            severity=severity,
            source=SourceInfo(
                location=unit.location,
                line=start.line,
                column=start.column,
                snippet=span_snippet(unit, start, end or start),
            ),
        )

    # -- checks --------------------------------------------------------------

    def _check_duplicates(
        self, unit: FileUnit, packages: dict[str, PackageScope]
    ) -> list[CompilerMessage]:
        """Report declarations shadowed by an earlier one in the same package."""
        errors: list[CompilerMessage] = []
        scope = packages[unit.package_name]
        for struct in unit.structs:
            if scope.structs.get(struct.name) is not struct and scope.declares(struct.name):
                errors.append(
                    self._message(
                        unit,
                        ErrorCode.DUPLICATE_DECLARATION,
                        f"Duplicate declaration of '{struct.name}' in package '{scope.name}'",
                        struct.name_token,
                    )
                )
        for function in unit.functions:
            if scope.functions.get(function.name) is not function and scope.declares(function.name):
                errors.append(
                    self._message(
                        unit,
                        ErrorCode.DUPLICATE_DECLARATION,
                        f"Duplicate declaration of '{function.name}' in package '{scope.name}'",
                        function.name_token,
                    )
                )
        return errors

    def _visible_names(
        self, unit: FileUnit, packages: dict[str, PackageScope]
    ) -> tuple[_Visible, list[CompilerMessage]]:
        """Collect own-package and imported names, reporting unresolved imports.

        An unresolved import still binds its simple name so that every use of
        it is not reported a second time.
        """
        errors: list[CompilerMessage] = []
        own = packages[unit.package_name]
        visible = _Visible(types=set(own.structs), functions=set(own.functions))

        for use in unit.uses:
            target = packages.get(use.name.package)
            simple = use.name.simple_name
            if target is None or not target.declares(simple):
                errors.append(
                    self._message(
                        unit,
                        ErrorCode.UNRESOLVED_IMPORT,
                        f"Unresolved import '{use.name.text}'",
                        use.keyword,
                        use.end,
                    )
                )
                visible.types.add(simple)
                visible.functions.add(simple)
            elif simple in target.structs:
                visible.types.add(simple)
            else:
                visible.functions.add(simple)
        return visible, errors

    def _check_type_refs(self, unit: FileUnit, visible: _Visible) -> list[CompilerMessage]:
        refs: list[TypeRef] = []
        for struct in unit.structs:
            refs.extend(f.type_ref for f in struct.fields if f.type_ref is not None)
        for function in unit.functions:
            refs.extend(p.type_ref for p in function.params if p.type_ref is not None)
            if function.return_type is not None:
                refs.append(function.return_type)

        errors: list[CompilerMessage] = []
        pending = list(refs)
        while pending:
            ref = pending.pop(0)
            if not visible.knows_type(ref.name):
                errors.append(
                    self._message(
                        unit, ErrorCode.UNKNOWN_NAME, f"Unknown '{ref.name}'", ref.token, ref.end
                    )
                )
            pending.extend(ref.arguments)
        return errors

    def _check_calls(
        self, unit: FileUnit, function: FunctionDecl, visible: _Visible
    ) -> list[CompilerMessage]:
        """Every free call ``name(...)`` in a body must resolve."""
        local = {p.name for p in function.params}
        local.update(_declared_variables(function.body))
        errors: list[CompilerMessage] = []
        body = function.body
        for i, tok in enumerate(body):
            if tok.kind is not TokenKind.IDENTIFIER:
                continue
            if i + 1 >= len(body) or not body[i + 1].is_symbol("("):
                continue
            if i > 0 and body[i - 1].is_symbol("."):
                continue  # member call
            name = tok.text
            if name in local or name in visible.functions or name in BUILTIN_FUNCTIONS:
                continue
            if visible.knows_type(name):
                continue  # constructor
            errors.append(self._message(unit, ErrorCode.UNKNOWN_NAME, f"Unknown '{name}'", tok))
        return errors

    def _check_return(self, unit: FileUnit, function: FunctionDecl) -> list[CompilerMessage]:
        if not function.block or function.return_type is None:
            return []
        if function.return_type.name == "Unit":
            return []
        if any(tok.is_keyword("return") for tok in function.body):
            return []
        return [
            self._message(
                unit,
                ErrorCode.MISSING_RETURN,
                "Missing return statement",
                function.keyword,
                function.end,
            )
        ]

    def _check_unused_variables(
        self, unit: FileUnit, function: FunctionDecl
    ) -> list[CompilerMessage]:
        warnings: list[CompilerMessage] = []
        body = function.body
        for i, tok in enumerate(body):
            if not tok.is_keyword("var") or i + 1 >= len(body):
                continue
            name_tok = body[i + 1]
            if name_tok.kind is not TokenKind.IDENTIFIER:
                continue
            used = any(
                other.kind is TokenKind.IDENTIFIER
                and other.text == name_tok.text
                and j != i + 1
                and not (j > 0 and body[j - 1].is_symbol("."))
                for j, other in enumerate(body)
            )
            if used:
                continue
            warnings.append(
                self._message(
                    unit,
                    ErrorCode.UNUSED_VARIABLE,
                    f"Declared variable `{name_tok.text}` unused",
                    tok,
                    _statement_end(body, i),
                    severity=Severity.WARNING,
                )
            )
        return warnings


def _declared_variables(body: tuple[Token, ...]) -> set[str]:
    names: set[str] = set()
    for i, tok in enumerate(body[:-1]):
        if tok.is_keyword("var") and body[i + 1].kind is TokenKind.IDENTIFIER:
            names.add(body[i + 1].text)
        # lambda parameters: ``function(p: T)``
        if tok.is_keyword("function") and body[i + 1].is_symbol("("):
            j = i + 2
            while j + 1 < len(body) and not body[j].is_symbol(")"):
                if body[j].kind is TokenKind.IDENTIFIER and body[j + 1].is_symbol(":"):
                    names.add(body[j].text)
                j += 1
    return names


def _statement_end(body: tuple[Token, ...], start: int) -> Token:
    """The ``;`` closing the statement that starts at *start* (or the last token)."""
    depth = 0
    for tok in body[start:]:
        if tok.kind is TokenKind.SYMBOL and tok.text in ("(", "[", "{"):
            depth += 1
        elif tok.kind is TokenKind.SYMBOL and tok.text in (")", "]", "}"):
            depth -= 1
        elif tok.is_symbol(";") and depth <= 0:
            return tok
    return body[-1]
