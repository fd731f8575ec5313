"""Mirror server log records to the connected editor."""

from __future__ import annotations

import logging

from lsprotocol.types import MessageType, TraceValue

from nplserver.service.session import LanguageSession

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

MESSAGE_PREFIX = "NPL Language Server"


def _message_type(levelno: int) -> MessageType:
    if levelno >= logging.ERROR:
        return MessageType.Error
    if levelno >= logging.WARNING:
        return MessageType.Warning
    return MessageType.Info


class ClientLogHandler(logging.Handler):
    """Forwards records to the client of *session*.

    INFO and above become ``window/logMessage``; DEBUG and TRACE become
    ``$/logTrace`` when the session's trace value allows it.
    """

    def __init__(self, session: LanguageSession, level: int = TRACE) -> None:
        super().__init__(level)
        self._session = session

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
            if record.levelno >= logging.INFO:
                client = self._session.client
                if client is None:
                    return
                if record.exc_info and record.exc_info[1] is not None:
                    exc = record.exc_info[1]
                    message = f"{message} - {type(exc).__name__}: {exc}"
                client.log_message(_message_type(record.levelno), f"{MESSAGE_PREFIX}: {message}")
            elif record.levelno >= logging.DEBUG:
                self._session.log_trace(f"{record.name}: {message}", TraceValue.Messages)
            else:
                self._session.log_trace(f"{record.name}: {message}", TraceValue.Verbose)
        except Exception:
            self.handleError(record)


def install(session: LanguageSession, logger_name: str = "nplserver") -> ClientLogHandler:
    """Attach a :class:`ClientLogHandler` for *session* to the package logger."""
    handler = ClientLogHandler(session)
    logging.getLogger(logger_name).addHandler(handler)
    return handler


_TRACE_LEVELS = {
    TraceValue.Off: logging.NOTSET,
    TraceValue.Messages: logging.DEBUG,
    TraceValue.Verbose: TRACE,
}


def sync_logger_level(trace: TraceValue, logger_name: str = "nplserver") -> None:
    """Let DEBUG/TRACE records through while the client asks for traces.

    With tracing off the package logger inherits the configured level again.
    """
    logging.getLogger(logger_name).setLevel(_TRACE_LEVELS[TraceValue(trace)])
