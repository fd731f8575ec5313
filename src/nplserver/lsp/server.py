"""pygls wiring and command-line entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Callable, Sequence
from typing import Any

from lsprotocol.types import (
    INITIALIZE,
    LOG_TRACE,
    SET_TRACE,
    SHUTDOWN,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    WORKSPACE_DID_CHANGE_WATCHED_FILES,
    WORKSPACE_DID_CHANGE_WORKSPACE_FOLDERS,
    Diagnostic,
    DidChangeTextDocumentParams,
    DidChangeWatchedFilesParams,
    DidChangeWorkspaceFoldersParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DidSaveTextDocumentParams,
    InitializeParams,
    LogMessageParams,
    LogTraceParams,
    MessageType,
    PublishDiagnosticsParams,
    SetTraceParams,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer

from nplserver import __version__
from nplserver.lsp.handlers import LanguageService
from nplserver.lsp.log_handler import install
from nplserver.service.compiler_service import CompilerService
from nplserver.service.scheduler import DebounceScheduler
from nplserver.service.session import LanguageSession
from nplserver.settings import Settings

logger = logging.getLogger("nplserver.lsp")

SERVER_NAME = "npl-language-server"


class PyglsClient:
    """Adapts a pygls server to the session's client protocols.

    Calls made off the event loop thread (the debounce thread) are handed to
    the loop once it is bound.
    """

    def __init__(self, server: LanguageServer) -> None:
        self._server = server
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind_loop(self) -> None:
        """Remember the running loop; call from a handler."""
        self._loop = asyncio.get_running_loop()

    def publish_diagnostics(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        params = PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
        self._call(self._server.text_document_publish_diagnostics, params)

    def log_message(self, type: MessageType, message: str) -> None:
        self._call(self._server.window_log_message, LogMessageParams(type=type, message=message))

    def log_trace(self, message: str) -> None:
        self._call(self._server.protocol.notify, LOG_TRACE, LogTraceParams(message=message))

    def _call(self, fn: Callable[..., Any], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed() or _is_running_loop(loop):
            fn(*args)
        else:
            loop.call_soon_threadsafe(fn, *args)


def _is_running_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


# ---------------------------------------------------------------------------
# Server factory
# ---------------------------------------------------------------------------


def create_server(settings: Settings | None = None) -> LanguageServer:
    """Build a pygls server whose handlers forward to a :class:`LanguageService`."""
    if settings is None:
        settings = Settings()

    server = LanguageServer(
        SERVER_NAME, __version__, text_document_sync_kind=TextDocumentSyncKind.Full
    )
    client = PyglsClient(server)
    session = LanguageSession(client)
    install(session)
    service = LanguageService(
        session,
        CompilerService(session),
        DebounceScheduler(delay=settings.debounce_seconds),
        debounce=settings.debounce_seconds,
        library_refs=settings.contrib_libs,
    )

    # Builtin pygls handlers run first; these are called afterwards.

    @server.feature(INITIALIZE)
    def initialize(ls: LanguageServer, params: InitializeParams) -> None:
        client.bind_loop()
        service.initialize(params)

    @server.feature(SET_TRACE)
    def set_trace(ls: LanguageServer, params: SetTraceParams) -> None:
        service.set_trace(params)

    @server.feature(SHUTDOWN)
    def shutdown(ls: LanguageServer, params: Any = None) -> None:
        service.shutdown()

    @server.feature(TEXT_DOCUMENT_DID_OPEN)
    def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
        service.did_open(params)

    @server.feature(TEXT_DOCUMENT_DID_CHANGE)
    def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
        service.did_change(params)

    @server.feature(TEXT_DOCUMENT_DID_CLOSE)
    def did_close(ls: LanguageServer, params: DidCloseTextDocumentParams) -> None:
        service.did_close(params)

    @server.feature(TEXT_DOCUMENT_DID_SAVE)
    def did_save(ls: LanguageServer, params: DidSaveTextDocumentParams) -> None:
        service.did_save(params)

    @server.feature(WORKSPACE_DID_CHANGE_WATCHED_FILES)
    def did_change_watched_files(ls: LanguageServer, params: DidChangeWatchedFilesParams) -> None:
        service.did_change_watched_files(params)

    @server.feature(WORKSPACE_DID_CHANGE_WORKSPACE_FOLDERS)
    def did_change_workspace_folders(
        ls: LanguageServer, params: DidChangeWorkspaceFoldersParams
    ) -> None:
        service.did_change_workspace_folders(params)

    return server


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog=SERVER_NAME, description="NPL language server")
    parser.add_argument("--stdio", action="store_true", help="Communicate over stdin/stdout")
    parser.add_argument("--port", type=int, help="TCP port to listen on")
    parser.add_argument("--host", help="TCP host to bind")
    parser.add_argument("--log-level", help="Server log level (e.g. DEBUG, INFO)")
    return parser.parse_args(argv)


def apply_args(settings: Settings, args: argparse.Namespace) -> Settings:
    """Command-line flags override environment / .env settings."""
    overrides: dict[str, Any] = {}
    if args.stdio:
        overrides["server_mode"] = "stdio"
    if args.port is not None:
        overrides["tcp_port"] = args.port
    if args.host:
        overrides["tcp_host"] = args.host
    if args.log_level:
        overrides["log_level"] = args.log_level
    return settings.model_copy(update=overrides)


def main(argv: Sequence[str] | None = None) -> None:
    """Run the language server using settings from environment / .env file."""
    settings = apply_args(Settings(), parse_args(argv))

    # stdout carries protocol frames in stdio mode
    logging.basicConfig(level=settings.log_level.upper(), stream=sys.stderr)
    logger.info(
        "NPL Language Server v%s starting (mode=%s)", __version__, settings.server_mode
    )

    server = create_server(settings)
    if settings.server_mode == "stdio":
        server.start_io()
    else:
        logger.info("Listening on %s:%d", settings.tcp_host, settings.tcp_port)
        server.start_tcp(settings.tcp_host, settings.tcp_port)


if __name__ == "__main__":
    main()
