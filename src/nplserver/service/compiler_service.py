"""Compilation orchestrator: decides when and what to compile.

Editor events mutate the :class:`SourceRegistry`; :meth:`CompilerService.maybe_compile`
compiles the in-scope documents plus library sources and hands the outcome
to the :class:`DiagnosticPublisher`.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from nplserver.compiler.pipeline import CompilationPipeline
from nplserver.models.result import CompileFault, CompileOutcome, CompileResult
from nplserver.models.source import Source
from nplserver.service.library import LibraryLoader
from nplserver.service.publisher import DiagnosticPublisher
from nplserver.service.registry import SourceRegistry
from nplserver.service.session import LanguageSession
from nplserver.service.workspace import (
    WorkspaceScope,
    discover_sources,
    has_source_extension,
    uri_to_path,
)

logger = logging.getLogger("nplserver.service")


class Compiler(Protocol):
    def compile(self, sources: Sequence[Source]) -> CompileOutcome: ...


class CompilerService:
    """Workspace-scoped incremental compilation for one session.

    Compilations are serialized by an internal lock, so handlers and the
    debounce thread may call :meth:`maybe_compile` concurrently.  Changes that
    drop documents from the workspace take the same lock, so a compile in
    flight publishes before the retraction and never after it.
    """

    def __init__(
        self,
        session: LanguageSession,
        compiler: Compiler | None = None,
        publisher: DiagnosticPublisher | None = None,
        library_loader: LibraryLoader | None = None,
    ) -> None:
        self._compiler = compiler or CompilationPipeline()
        self._publisher = publisher or DiagnosticPublisher(session)
        self._library_loader = library_loader or LibraryLoader()
        self._registry = SourceRegistry()
        self._scope = WorkspaceScope()
        self._library_sources: list[Source] = []
        self._last_result: CompileResult | None = None
        self._compile_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def maybe_compile(self) -> CompileOutcome | None:
        """Compile if anything changed since the last structured result.

        Returns the outcome, or ``None`` when nothing was compiled.
        """
        with self._compile_lock:
            dirty = self._registry.dirty_snapshot()
            if not dirty and self._last_result is not None:
                return None

            candidates = [s for s in self._registry.sources() if self._scope.contains(s.location)]
            if not candidates:
                logger.debug("No sources in scope, skipping compilation")
                return None

            locations = {s.location for s in candidates}
            libraries = [s for s in self._library_sources if s.location not in locations]
            logger.debug(
                "Compiling %d sources (%d dirty) with %d library sources",
                len(candidates),
                len(dirty),
                len(libraries),
            )
            try:
                outcome = self._compiler.compile([*candidates, *libraries])
            except Exception:
                logger.exception("Compiler failed unexpectedly, keeping %d dirty sources", len(dirty))
                return None

            if isinstance(outcome, CompileFault):
                self._handle_fault(outcome)
                return outcome

            self._last_result = outcome
            self._registry.discard_dirty(dirty)
            self._publisher.publish_result(outcome, candidates)
            return outcome

    def _handle_fault(self, fault: CompileFault) -> None:
        location = fault.error.source.location
        if not self._scope.contains(location):
            logger.debug("Dropping compiler fault outside the workspace: %s", fault.error.message)
            return
        logger.warning("Compiler fault in %s: %s", location, fault.error.message)
        self._publisher.publish_fault(fault)

    # ------------------------------------------------------------------
    # Document events
    # ------------------------------------------------------------------

    def update_source(self, uri: str, content: str, compile_now: bool = True) -> bool:
        """Record new full content for *uri*.

        Returns ``True`` when the registry was updated.  A known document that
        is no longer in scope is dropped and its diagnostics retracted.
        """
        try:
            path = uri_to_path(uri)
        except ValueError:
            logger.debug("Ignoring non-file document %s", uri)
            return False
        if not has_source_extension(path):
            return False

        if not self._scope.contains(path):
            if uri in self._registry:
                logger.info("Document %s is outside the workspace, dropping it", uri)
                with self._compile_lock:
                    self._registry.remove(uri)
                    self._publisher.retract(uri)
                self.maybe_compile()
            return False

        self._registry.update(uri, content)
        if compile_now:
            self.maybe_compile()
        return True

    def remove_source(self, uri: str) -> None:
        """Forget *uri*, recompile dependants and clear its diagnostics."""
        self._registry.remove(uri)
        self.maybe_compile()
        self._publisher.retract(uri)

    def close_source(self, uri: str) -> bool:
        """Handle a closed editor tab.

        Only a document whose file is gone from disk is removed; otherwise its
        diagnostics stay visible.  Returns ``True`` when it was removed.
        """
        try:
            exists = uri_to_path(uri).exists()
        except ValueError:
            return False
        if exists:
            return False
        self.remove_source(uri)
        return True

    # ------------------------------------------------------------------
    # Workspace events
    # ------------------------------------------------------------------

    def set_workspace_roots(self, root_uris: Sequence[str]) -> None:
        """Replace the workspace roots and drop documents now out of scope."""
        roots = _root_paths(root_uris)
        with self._compile_lock:
            self._scope.replace(roots)
            for source in self._registry.sources():
                if not self._scope.contains(source.location):
                    logger.debug("Document %s left the workspace", source.uri)
                    self._registry.remove(source.uri)
                    self._publisher.retract(source.uri)
        self.maybe_compile()

    def preload_sources(self, root_uris: Sequence[str], library_refs: Sequence[str] = ()) -> None:
        """Rebuild the registry from the files below *root_uris*.

        The roots also become the workspace scope.  Documents known before but
        not found again get their diagnostics retracted.
        """
        roots = _root_paths(root_uris)
        discovered = discover_sources(roots)
        libraries = self._library_loader.load(library_refs, roots)
        with self._compile_lock:
            self._scope.replace(roots)
            removed = self._registry.replace_all(discovered)
            self._library_sources = libraries
            for uri in sorted(removed):
                self._publisher.retract(uri)
        self.maybe_compile()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def last_result(self) -> CompileResult | None:
        return self._last_result

    @property
    def dirty(self) -> frozenset[str]:
        return self._registry.dirty

    @property
    def sources(self) -> list[Source]:
        return self._registry.sources()

    @property
    def library_sources(self) -> list[Source]:
        return list(self._library_sources)

    @property
    def workspace_roots(self) -> list[Path]:
        return self._scope.roots

    @property
    def publisher(self) -> DiagnosticPublisher:
        return self._publisher

    def __contains__(self, uri: object) -> bool:
        return uri in self._registry


def _root_paths(root_uris: Sequence[str]) -> list[Path]:
    roots: list[Path] = []
    for uri in root_uris:
        try:
            roots.append(uri_to_path(uri))
        except ValueError:
            logger.warning("Ignoring non-file workspace root %s", uri)
    return roots
