"""Incremental compilation engine: registry, scope, scheduling, publishing."""

from nplserver.service.compiler_service import Compiler, CompilerService
from nplserver.service.library import LibraryLoader
from nplserver.service.publisher import DiagnosticPublisher
from nplserver.service.registry import SourceRegistry
from nplserver.service.scheduler import DebounceScheduler, SchedulerShutdownError
from nplserver.service.session import LanguageClient, LanguageSession, TracingClient
from nplserver.service.workspace import WorkspaceScope, discover_sources

__all__ = [
    "Compiler",
    "CompilerService",
    "DebounceScheduler",
    "DiagnosticPublisher",
    "LanguageClient",
    "LanguageSession",
    "LibraryLoader",
    "SchedulerShutdownError",
    "SourceRegistry",
    "TracingClient",
    "WorkspaceScope",
    "discover_sources",
]
