"""Turns compiler messages into LSP diagnostics and keeps the client in sync.

This is the only module that sends ``textDocument/publishDiagnostics``.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Sequence

from lsprotocol.types import Diagnostic, DiagnosticSeverity, Position, Range

from nplserver.models.errors import CompilerMessage
from nplserver.models.result import CompileFault, CompileResult
from nplserver.models.source import Source
from nplserver.service.session import LanguageSession
from nplserver.service.workspace import canonical_uri, path_to_uri

logger = logging.getLogger("nplserver.publisher")

DIAGNOSTIC_SOURCE = "NPL compiler"


def message_range(message: CompilerMessage) -> Range:
    """Zero-based range covering the message snippet.

    A multi-line snippet moves the end line down by its extra lines and ends
    at the length of its last line.
    """
    info = message.source
    start = Position(line=max(info.line - 1, 0), character=max(info.column - 1, 0))
    lines = info.snippet.split("\n")
    if len(lines) == 1:
        end = Position(line=start.line, character=start.character + len(info.snippet))
    else:
        end = Position(line=start.line + len(lines) - 1, character=len(lines[-1]))
    return Range(start=start, end=end)


def to_diagnostic(message: CompilerMessage) -> Diagnostic:
    severity = DiagnosticSeverity.Warning if message.is_warning else DiagnosticSeverity.Error
    return Diagnostic(
        range=message_range(message),
        message=message.message,
        severity=severity,
        code=int(message.code),
        source=DIAGNOSTIC_SOURCE,
    )


class DiagnosticPublisher:
    """Reconciles compile results with what the client currently shows.

    Remembers the diagnostics last published per URI so that documents
    dropping out of the candidate set get an explicit empty publish.
    """

    def __init__(self, session: LanguageSession) -> None:
        self._session = session
        self._lock = threading.Lock()
        self._published: dict[str, list[Diagnostic]] = {}

    # -- public API ----------------------------------------------------------

    def publish_result(self, result: CompileResult, candidates: Sequence[Source]) -> None:
        """Publish for every candidate and clear every previously shown non-candidate."""
        grouped: dict[str, list[Diagnostic]] = defaultdict(list)
        for message in result.messages:
            grouped[path_to_uri(message.source.location)].append(to_diagnostic(message))

        current: dict[str, list[Diagnostic]] = {}
        for source in candidates:
            uri = canonical_uri(source.uri)
            current[uri] = grouped.get(uri, [])
        with self._lock:
            stale = [uri for uri in self._published if uri not in current]
            self._published = dict(current)

        for uri, diagnostics in current.items():
            self._send(uri, diagnostics)
        for uri in stale:
            self._send(uri, [])
        logger.debug(
            "Published diagnostics for %d documents, retracted %d", len(current), len(stale)
        )

    def publish_fault(self, fault: CompileFault) -> None:
        uri = path_to_uri(fault.error.source.location)
        diagnostics = [to_diagnostic(fault.error)]
        with self._lock:
            self._published[uri] = diagnostics
        self._send(uri, diagnostics)

    def retract(self, uri: str) -> None:
        """Clear all diagnostics for *uri*, whether or not any were published."""
        uri = canonical_uri(uri)
        with self._lock:
            self._published.pop(uri, None)
        self._send(uri, [])

    @property
    def published(self) -> dict[str, list[Diagnostic]]:
        """Snapshot of the diagnostics last published per URI."""
        with self._lock:
            return {uri: list(diagnostics) for uri, diagnostics in self._published.items()}

    # -- internal ------------------------------------------------------------

    def _send(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        client = self._session.client
        if client is None:
            logger.debug("No client connected, not publishing diagnostics for %s", uri)
            return
        client.publish_diagnostics(uri, diagnostics)
