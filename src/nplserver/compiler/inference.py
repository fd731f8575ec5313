"""Return-type inference for untyped expression-bodied functions.

Functions declared without ``returns`` take the type of their body.  When
the body is a plain call to another untyped function the types depend on each
other; this module builds that dependency graph with networkx and gives up on
cycles by raising :class:`InternalCompilerError`.
"""

from __future__ import annotations

from dataclasses import dataclass

import networkx as nx

from nplserver.ast.nodes import FileUnit, FunctionDecl
from nplserver.compiler.checker import span_snippet
from nplserver.models.errors import CompilerMessage, ErrorCode, InternalCompilerError, SourceInfo
from nplserver.parser.lexer import TokenKind


@dataclass(frozen=True)
class _Node:
    package: str
    name: str

    @property
    def path(self) -> str:
        parts = [p for p in self.package.split(".") if p]
        return "/" + "/".join([*parts, self.name])


def _delegate(function: FunctionDecl) -> str | None:
    """Name of the function an expression body consists of a single call to."""
    body = function.body
    if function.block or len(body) < 3:
        return None
    head, paren = body[0], body[1]
    if head.kind is not TokenKind.IDENTIFIER or not paren.is_symbol("("):
        return None
    depth = 0
    for i, tok in enumerate(body[1:], start=1):
        if tok.is_symbol("("):
            depth += 1
        elif tok.is_symbol(")"):
            depth -= 1
            if depth == 0:
                return head.text if i == len(body) - 1 else None
    return None


class ReturnTypeInference:
    """Detects untyped functions whose types can only be inferred from each other."""

    def check(self, units: list[FileUnit]) -> None:
        """Raise :class:`InternalCompilerError` on the first inference cycle."""
        graph: nx.DiGraph[_Node] = nx.DiGraph()
        owners: dict[_Node, tuple[FileUnit, FunctionDecl]] = {}

        for unit in units:
            for function in unit.functions:
                if function.return_type is None and not function.block:
                    node = _Node(unit.package_name, function.name)
                    owners.setdefault(node, (unit, function))
                    graph.add_node(node)

        for node, (_unit, function) in owners.items():
            target = _delegate(function)
            if target is None:
                continue
            callee = _Node(node.package, target)
            if callee in owners:
                graph.add_edge(node, callee)

        try:
            cycle = nx.find_cycle(graph)
        except nx.NetworkXNoCycle:
            return

        members = {edge[0] for edge in cycle}
        first = min(
            members,
            key=lambda n: (
                str(owners[n][0].location),
                owners[n][1].keyword.line,
                owners[n][1].keyword.column,
            ),
        )
        unit, function = owners[first]
        raise InternalCompilerError(
            CompilerMessage(
                code=ErrorCode.CANNOT_INFER_TYPE,
                message=(
                    "The compiler cannot (currently) automatically resolve the type "
                    f"for '{first.path}'. Please add explicit types."
                ),
                source=SourceInfo(
                    location=unit.location,
                    line=function.keyword.line,
                    column=function.keyword.column,
                    snippet=span_snippet(unit, function.keyword, function.end),
                ),
            )
        )
