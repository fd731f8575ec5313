"""Orchestrates the reference compiler: Parse → Infer → Check → typed result."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from nplserver.ast.nodes import FileUnit
from nplserver.compiler.checker import SemanticChecker
from nplserver.compiler.inference import ReturnTypeInference
from nplserver.models.errors import CompilerMessage, InternalCompilerError
from nplserver.models.result import CompileFailure, CompileFault, CompileOutcome, CompileSuccess
from nplserver.models.source import Source
from nplserver.parser.parser import parse_source

logger = logging.getLogger("nplserver.compiler")


class CompilationPipeline:
    """Compiles a set of sources as one program.

    Ordinary problems come back as :class:`CompileFailure` /
    :class:`CompileSuccess`; an :class:`InternalCompilerError` raised by any
    phase becomes a :class:`CompileFault`.
    """

    def __init__(self) -> None:
        self._inference = ReturnTypeInference()
        self._checker = SemanticChecker()

    def compile(self, sources: Sequence[Source]) -> CompileOutcome:
        # Phase 1: Parsing
        units: list[FileUnit] = []
        syntax_errors: list[CompilerMessage] = []
        broken: set[Path] = set()
        for source in sources:
            unit, errors = parse_source(source.content, source.location, library=source.library)
            units.append(unit)
            if errors:
                broken.add(source.location)
                syntax_errors.extend(errors)

        parsed = [u for u in units if u.location not in broken]
        try:
            # Phase 2: Return-type inference
            self._inference.check(parsed)
        except InternalCompilerError as exc:
            logger.debug("Compiler fault: %s", exc)
            return CompileFault(error=exc.compiler_message)

        # Phase 3: Semantic checks
        errors, warnings = self._checker.check(units, skip=broken)
        errors = syntax_errors + errors

        logger.debug(
            "Compiled %d sources: %d errors, %d warnings", len(units), len(errors), len(warnings)
        )
        if errors:
            return CompileFailure(errors=errors, warnings=warnings)
        return CompileSuccess(warnings=warnings)
