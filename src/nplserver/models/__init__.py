"""Pydantic domain models for the NPL language server."""

from nplserver.models.errors import (
    CompilerMessage,
    ErrorCode,
    InternalCompilerError,
    Severity,
    SourceInfo,
)
from nplserver.models.result import (
    CompileFailure,
    CompileFault,
    CompileOutcome,
    CompileResult,
    CompileSuccess,
)
from nplserver.models.source import Source

__all__ = [
    "CompileFailure",
    "CompileFault",
    "CompileOutcome",
    "CompileResult",
    "CompileSuccess",
    "CompilerMessage",
    "ErrorCode",
    "InternalCompilerError",
    "Severity",
    "Source",
    "SourceInfo",
]
