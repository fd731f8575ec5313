"""Typed compiler boundary: success, failure, or unexpected fault."""

from __future__ import annotations

from pydantic import BaseModel

from nplserver.models.errors import CompilerMessage


class CompileSuccess(BaseModel):
    """Compilation produced no errors; warnings may still be present."""

    warnings: list[CompilerMessage] = []

    @property
    def messages(self) -> list[CompilerMessage]:
        return list(self.warnings)


class CompileFailure(BaseModel):
    """Compilation produced at least one error."""

    errors: list[CompilerMessage]
    warnings: list[CompilerMessage] = []

    @property
    def messages(self) -> list[CompilerMessage]:
        return [*self.warnings, *self.errors]


class CompileFault(BaseModel):
    """The compiler gave up on its input instead of producing a result.

    Never stored as the last known result.
    """

    error: CompilerMessage


CompileResult = CompileSuccess | CompileFailure
CompileOutcome = CompileSuccess | CompileFailure | CompileFault
