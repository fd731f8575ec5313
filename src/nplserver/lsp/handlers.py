"""Editor event handlers, independent of the transport.

:class:`LanguageService` receives lsprotocol parameter objects and drives the
:class:`~nplserver.service.compiler_service.CompilerService`.  The pygls
wiring in :mod:`nplserver.lsp.server` only forwards to it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from lsprotocol.types import (
    DidChangeTextDocumentParams,
    DidChangeWatchedFilesParams,
    DidChangeWorkspaceFoldersParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DidSaveTextDocumentParams,
    FileChangeType,
    InitializeParams,
    SetTraceParams,
    TraceValue,
)

from nplserver.lsp.log_handler import sync_logger_level
from nplserver.lsp.workspace_folders import extract_workspace_folder_uris
from nplserver.service.compiler_service import CompilerService
from nplserver.service.scheduler import DebounceScheduler, SchedulerShutdownError
from nplserver.service.session import LanguageSession

logger = logging.getLogger("nplserver.lsp")

WORKSPACE_KEY = "workspace"


class LanguageService:
    """One editor session's worth of protocol handling.

    ``debounce`` is the quiet period (seconds) before a ``didChange``
    triggers compilation; ``0`` compiles on every change.
    """

    def __init__(
        self,
        session: LanguageSession,
        compiler_service: CompilerService | None = None,
        scheduler: DebounceScheduler | None = None,
        *,
        debounce: float = 0.3,
        library_refs: Sequence[str] = (),
    ) -> None:
        self.session = session
        self.compiler_service = compiler_service or CompilerService(session)
        self.scheduler = scheduler or DebounceScheduler(delay=debounce)
        self._debounce = debounce
        self._library_refs = list(library_refs)
        self._root_uris: list[str] = []

    @property
    def root_uris(self) -> list[str]:
        return list(self._root_uris)

    # -- lifecycle -----------------------------------------------------------

    def initialize(self, params: InitializeParams) -> None:
        if params.trace is not None:
            self._apply_trace(params.trace)

        standard = [folder.uri for folder in params.workspace_folders or []]
        root_uris = extract_workspace_folder_uris(params.initialization_options, standard)
        if not root_uris:
            logger.warning("No workspace folders found to preload.")
            return
        logger.info("Preloading sources for workspace folders: %s", root_uris)
        self._root_uris = root_uris
        self.compiler_service.preload_sources(root_uris, self._library_refs)

    def set_trace(self, params: SetTraceParams) -> None:
        logger.info("Setting trace value to: %s", params.value)
        self._apply_trace(params.value)

    def shutdown(self) -> None:
        logger.info("Language server shutting down")
        self.scheduler.shutdown()

    def _apply_trace(self, value: TraceValue) -> None:
        self.session.set_trace(value)
        sync_logger_level(self.session.trace)

    # -- text documents ------------------------------------------------------

    def did_open(self, params: DidOpenTextDocumentParams) -> None:
        document = params.text_document
        self.compiler_service.update_source(document.uri, document.text)

    def did_change(self, params: DidChangeTextDocumentParams) -> None:
        """Store the new text now; compile once the edits settle."""
        if not params.content_changes:
            return
        # Full sync: every change carries the whole document.
        text = params.content_changes[-1].text
        uri = params.text_document.uri
        if not self.compiler_service.update_source(uri, text, compile_now=False):
            return
        if self._debounce <= 0:
            self.compiler_service.maybe_compile()
            return
        try:
            self.scheduler.schedule(WORKSPACE_KEY, self.compiler_service.maybe_compile)
        except SchedulerShutdownError:
            logger.debug("Change to %s after shutdown, not compiling", uri)

    def did_close(self, params: DidCloseTextDocumentParams) -> None:
        uri = params.text_document.uri
        if self.compiler_service.close_source(uri):
            logger.debug("Closed document %s no longer exists, removed", uri)

    def did_save(self, params: DidSaveTextDocumentParams) -> None:
        pass  # compilation happens on change

    # -- workspace -----------------------------------------------------------

    def did_change_watched_files(self, params: DidChangeWatchedFilesParams) -> None:
        for change in params.changes:
            if change.type == FileChangeType.Deleted:
                logger.debug("File deleted: %s", change.uri)
                self.compiler_service.remove_source(change.uri)

    def did_change_workspace_folders(self, params: DidChangeWorkspaceFoldersParams) -> None:
        removed = {folder.uri for folder in params.event.removed}
        root_uris = [uri for uri in self._root_uris if uri not in removed]
        for folder in params.event.added:
            if folder.uri not in root_uris:
                root_uris.append(folder.uri)
        logger.info("Workspace folders changed: %s", root_uris)
        self._root_uris = root_uris
        if not root_uris:
            # nothing to discover; keep the open documents and compile them unscoped
            self.compiler_service.set_workspace_roots([])
            return
        self.compiler_service.preload_sources(root_uris, self._library_refs)
