"""Structured compiler messages with source position tracking."""

from __future__ import annotations

from enum import IntEnum, StrEnum
from pathlib import Path

from pydantic import BaseModel


class ErrorCode(IntEnum):
    """Stable numeric codes reported with every diagnostic."""

    SYNTAX_ERROR = 1
    UNKNOWN_NAME = 2
    DUPLICATE_DECLARATION = 4
    MISSING_RETURN = 15
    UNUSED_VARIABLE = 16
    UNRESOLVED_IMPORT = 62
    CANNOT_INFER_TYPE = 89


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class SourceInfo(BaseModel):
    """Points to the exact source text a message is about.

    ``line`` and ``column`` are 1-based; ``snippet`` is the covered text and
    may span several lines.
    """

    location: Path
    line: int
    column: int
    snippet: str = ""

    model_config = {"frozen": True}


class CompilerMessage(BaseModel):
    """A single compiler error or warning."""

    code: ErrorCode
    message: str
    severity: Severity = Severity.ERROR
    source: SourceInfo

    model_config = {"frozen": True}

    @property
    def is_warning(self) -> bool:
        return self.severity == Severity.WARNING


class InternalCompilerError(Exception):
    """Raised inside the compiler when it cannot process otherwise valid input.

    Distinct from ordinary diagnostics: it aborts the compilation run.  The
    pipeline converts it into a :class:`~nplserver.models.result.CompileFault`.
    """

    def __init__(self, message: CompilerMessage) -> None:
        self.compiler_message = message
        super().__init__(message.message)
