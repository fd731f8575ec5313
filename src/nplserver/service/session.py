"""Per-connection session state: the connected client and its trace level."""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from lsprotocol.types import Diagnostic, MessageType, TraceValue

_TRACE_ORDER = {TraceValue.Off: 0, TraceValue.Messages: 1, TraceValue.Verbose: 2}


class LanguageClient(Protocol):
    """What the core needs from the editor on the other end of the connection."""

    def publish_diagnostics(self, uri: str, diagnostics: list[Diagnostic]) -> None: ...

    def log_message(self, type: MessageType, message: str) -> None: ...


@runtime_checkable
class TracingClient(Protocol):
    """Optional capability: clients that accept ``$/logTrace`` notifications."""

    def log_trace(self, message: str) -> None: ...


class LanguageSession:
    """Explicit session object handed to every component at construction.

    ``client`` is ``None`` until a client connects (and in most tests);
    everything that talks to the client must tolerate that.
    """

    def __init__(self, client: LanguageClient | None = None) -> None:
        self._lock = threading.Lock()
        self.client = client
        self._trace = TraceValue.Off

    # -- tracing -------------------------------------------------------------

    @property
    def trace(self) -> TraceValue:
        with self._lock:
            return self._trace

    def set_trace(self, value: TraceValue | str) -> None:
        with self._lock:
            self._trace = TraceValue(value)

    def is_tracing_enabled(self, level: TraceValue | str) -> bool:
        """True when the current trace value is at or above *level* (``off`` never is)."""
        level = TraceValue(level)
        if level == TraceValue.Off:
            return False
        return _TRACE_ORDER[self.trace] >= _TRACE_ORDER[level]

    def log_trace(self, message: str, level: TraceValue = TraceValue.Messages) -> None:
        """Send *message* as a trace notification if enabled and supported."""
        client = self.client
        if client is None or not self.is_tracing_enabled(level):
            return
        if isinstance(client, TracingClient):
            client.log_trace(message)
