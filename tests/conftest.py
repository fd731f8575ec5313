"""Shared test fixtures for the NPL language server."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from pathlib import Path

import pytest
from lsprotocol.types import Diagnostic, MessageType

from nplserver.service.compiler_service import CompilerService
from nplserver.service.publisher import DiagnosticPublisher
from nplserver.service.session import LanguageSession
from nplserver.service.workspace import path_to_uri


class RecordingClient:
    """In-memory stand-in for the editor: records everything sent to it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.published: list[tuple[str, list[Diagnostic]]] = []
        self.messages: list[tuple[MessageType, str]] = []
        self.traces: list[str] = []

    def publish_diagnostics(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        with self._lock:
            self.published.append((uri, list(diagnostics)))

    def log_message(self, type: MessageType, message: str) -> None:
        with self._lock:
            self.messages.append((type, message))

    def log_trace(self, message: str) -> None:
        with self._lock:
            self.traces.append(message)

    def publications(self, uri: str) -> list[list[Diagnostic]]:
        """Every diagnostic list published for *uri*, oldest first."""
        with self._lock:
            return [diagnostics for u, diagnostics in self.published if u == uri]

    def latest(self, uri: str) -> list[Diagnostic] | None:
        history = self.publications(uri)
        return history[-1] if history else None

    def clear(self) -> None:
        with self._lock:
            self.published.clear()
            self.messages.clear()
            self.traces.clear()


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll *predicate* until it holds or *timeout* seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def write_source(directory: Path, name: str, content: str) -> Path:
    """Write *content* to ``directory/name`` (creating parents) and return the path."""
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def uri_of(path: Path) -> str:
    return path_to_uri(path)


@pytest.fixture
def client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def session(client: RecordingClient) -> LanguageSession:
    return LanguageSession(client)


@pytest.fixture
def publisher(session: LanguageSession) -> DiagnosticPublisher:
    return DiagnosticPublisher(session)


@pytest.fixture
def compiler_service(session: LanguageSession) -> CompilerService:
    return CompilerService(session)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """An empty workspace root directory."""
    root = tmp_path / "workspace"
    root.mkdir()
    return root


VALID_CODE = """\
package demo

struct Invoice {
    number: Text,
    amount: Number
}

function total(a: Number, b: Number) returns Number -> a + b;
"""

INVALID_PACKAGE_CODE = "package 123test"

BAR_CODE = """\
package bar

struct Bar {
    id: Number
}
"""

BAR_RENAMED_CODE = """\
package bar

struct BarX {
    id: Number
}
"""

USES_BAR_CODE = """\
package foo

use bar.Bar

struct Baz {
    bar: Bar
}
"""

UNKNOWN_TYPE_CODE = """\
package demo

struct Broken {
    field: NonExistentType
}
"""

UNUSED_VARIABLE_CODE = """\
package demo

function compute() returns Number -> {
    var unused = 1;
    return 2;
}
"""

MISSING_RETURN_CODE = """\
package demo

function compute() returns Number -> {
    var x = 1;
    x + 1;
}
"""

INFERENCE_CYCLE_CODE = """\
package demo

function first() -> second();
function second() -> first();
"""

LIBRARY_CODE = """\
package mynpl

struct MyFoo2 {
    id: Number
}
"""

VALID_ONLY_WITH_LIBRARY_CODE = """\
package test
use mynpl.MyFoo2;

struct MyStruct {
    goodField: MyFoo2
}
"""
