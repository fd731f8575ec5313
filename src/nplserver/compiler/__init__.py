"""Reference compiler for the NPL declaration subset."""

from nplserver.compiler.pipeline import CompilationPipeline

__all__ = [
    "CompilationPipeline",
]
