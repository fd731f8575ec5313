"""End-to-end editor scenarios: handlers → compiler → published diagnostics."""

from __future__ import annotations

import zipfile
from collections.abc import Iterator
from pathlib import Path

import pytest
from lsprotocol.types import (
    ClientCapabilities,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DiagnosticSeverity,
    InitializeParams,
    Position,
    Range,
    TextDocumentContentChangeWholeDocument,
    TextDocumentIdentifier,
    TextDocumentItem,
    VersionedTextDocumentIdentifier,
    WorkspaceFolder,
)

from nplserver.lsp.handlers import LanguageService
from nplserver.service.session import LanguageSession
from tests.conftest import (
    BAR_CODE,
    BAR_RENAMED_CODE,
    INFERENCE_CYCLE_CODE,
    INVALID_PACKAGE_CODE,
    LIBRARY_CODE,
    UNUSED_VARIABLE_CODE,
    USES_BAR_CODE,
    VALID_CODE,
    VALID_ONLY_WITH_LIBRARY_CODE,
    RecordingClient,
    uri_of,
    wait_until,
    write_source,
)


class Editor:
    """Drives a LanguageService the way an editor would."""

    def __init__(self, service: LanguageService) -> None:
        self.service = service
        self._versions: dict[str, int] = {}

    def initialize(self, *roots: Path) -> None:
        folders = [WorkspaceFolder(uri=uri_of(r), name=r.name) for r in roots] or None
        self.service.initialize(
            InitializeParams(capabilities=ClientCapabilities(), workspace_folders=folders)
        )

    def open(self, uri: str, text: str) -> None:
        self._versions[uri] = 1
        self.service.did_open(
            DidOpenTextDocumentParams(
                text_document=TextDocumentItem(uri=uri, language_id="npl", version=1, text=text)
            )
        )

    def change(self, uri: str, text: str) -> None:
        self._versions[uri] = self._versions.get(uri, 0) + 1
        self.service.did_change(
            DidChangeTextDocumentParams(
                text_document=VersionedTextDocumentIdentifier(uri=uri, version=self._versions[uri]),
                content_changes=[TextDocumentContentChangeWholeDocument(text=text)],
            )
        )

    def close(self, uri: str) -> None:
        self.service.did_close(
            DidCloseTextDocumentParams(text_document=TextDocumentIdentifier(uri=uri))
        )


@pytest.fixture
def editor(session: LanguageSession) -> Iterator[Editor]:
    service = LanguageService(session, debounce=0)
    yield Editor(service)
    service.shutdown()


@pytest.fixture
def debounced_editor(session: LanguageSession) -> Iterator[Editor]:
    service = LanguageService(session, debounce=0.05)
    yield Editor(service)
    service.shutdown()


class TestScenarioA:
    def test_invalid_package_name(self, editor: Editor, client: RecordingClient) -> None:
        uri = "file:///ws/scenario_a.npl"
        editor.open(uri, INVALID_PACKAGE_CODE)
        diagnostics = client.latest(uri)
        assert len(diagnostics) == 1
        diagnostic = diagnostics[0]
        assert diagnostic.code == 1
        assert diagnostic.message == "Syntax error: extraneous input '123' expecting IDENTIFIER"
        assert diagnostic.severity == DiagnosticSeverity.Error
        assert diagnostic.source == "NPL compiler"
        assert diagnostic.range == Range(
            start=Position(line=0, character=8), end=Position(line=0, character=11)
        )


class TestScenarioB:
    def test_valid_then_invalid(self, editor: Editor, client: RecordingClient) -> None:
        uri = "file:///ws/scenario_b.npl"
        editor.open(uri, VALID_CODE)
        editor.change(uri, INVALID_PACKAGE_CODE)
        history = client.publications(uri)
        assert history[0] == []
        assert [d.code for d in history[-1]] == [1]

    def test_invalid_then_fixed(self, editor: Editor, client: RecordingClient) -> None:
        uri = "file:///ws/scenario_b.npl"
        editor.open(uri, INVALID_PACKAGE_CODE)
        editor.change(uri, VALID_CODE)
        assert client.latest(uri) == []

    def test_debounced_transition(self, debounced_editor: Editor, client: RecordingClient) -> None:
        uri = "file:///ws/scenario_b.npl"
        debounced_editor.open(uri, VALID_CODE)
        for _ in range(5):
            debounced_editor.change(uri, INVALID_PACKAGE_CODE)
        assert wait_until(lambda: len(client.publications(uri)) == 2)
        assert [d.code for d in client.latest(uri)] == [1]


class TestScenarioC:
    def test_renamed_struct_breaks_import(
        self, editor: Editor, client: RecordingClient, workspace: Path
    ) -> None:
        a = write_source(workspace, "a.npl", BAR_CODE)
        b = write_source(workspace, "b.npl", USES_BAR_CODE)
        editor.initialize(workspace)
        assert client.latest(uri_of(b)) == []

        editor.change(uri_of(a), BAR_RENAMED_CODE)
        diagnostics = client.latest(uri_of(b))
        assert [d.code for d in diagnostics] == [62]
        assert diagnostics[0].message == "Unresolved import 'bar.Bar'"
        assert diagnostics[0].range == Range(
            start=Position(line=2, character=0), end=Position(line=2, character=11)
        )
        assert client.latest(uri_of(a)) == []


class TestScenarioD:
    def test_close_keeps_or_retracts(
        self, editor: Editor, client: RecordingClient, workspace: Path
    ) -> None:
        kept = write_source(workspace, "kept.npl", INVALID_PACKAGE_CODE)
        deleted = write_source(workspace, "deleted.npl", INVALID_PACKAGE_CODE)
        editor.initialize(workspace)
        before = client.latest(uri_of(kept))
        assert len(before) == 1

        editor.close(uri_of(kept))
        assert client.latest(uri_of(kept)) == before

        deleted.unlink()
        editor.close(uri_of(deleted))
        assert client.latest(uri_of(deleted)) == []


class TestScenarioE:
    def test_preload_skips_build_output(
        self, editor: Editor, client: RecordingClient, workspace: Path
    ) -> None:
        first = write_source(workspace, "src/main/npl/a.npl", VALID_CODE)
        second = write_source(workspace, "src/other/deep/b.npl", BAR_CODE)
        write_source(workspace, "target/generated/c.npl", INVALID_PACKAGE_CODE)
        editor.initialize(workspace)
        loaded = sorted(s.location for s in editor.service.compiler_service.sources)
        assert loaded == sorted([first, second])
        published = {uri for uri, _ in client.published}
        assert published == {uri_of(first), uri_of(second)}


class TestWorkspaceScoping:
    def test_document_outside_workspace_is_ignored(
        self, editor: Editor, client: RecordingClient, workspace: Path, tmp_path: Path
    ) -> None:
        write_source(workspace, "a.npl", VALID_CODE)
        outside = write_source(tmp_path / "elsewhere", "x.npl", INVALID_PACKAGE_CODE)
        editor.initialize(workspace)
        editor.open(uri_of(outside), INVALID_PACKAGE_CODE)
        assert client.publications(uri_of(outside)) == []

    def test_no_workspace_accepts_any_document(
        self, editor: Editor, client: RecordingClient, tmp_path: Path
    ) -> None:
        path = write_source(tmp_path / "anywhere", "x.npl", INVALID_PACKAGE_CODE)
        editor.initialize()
        editor.open(uri_of(path), INVALID_PACKAGE_CODE)
        assert len(client.latest(uri_of(path))) == 1


class TestFaultsAndWarnings:
    def test_inference_fault_is_shown_and_retried(
        self, editor: Editor, client: RecordingClient
    ) -> None:
        uri = "file:///ws/cycle.npl"
        editor.open(uri, INFERENCE_CYCLE_CODE)
        assert [d.code for d in client.latest(uri)] == [89]
        assert editor.service.compiler_service.dirty == {uri}

        editor.change(uri, VALID_CODE)
        assert client.latest(uri) == []
        assert editor.service.compiler_service.dirty == frozenset()

    def test_warning_severity(self, editor: Editor, client: RecordingClient) -> None:
        uri = "file:///ws/warn.npl"
        editor.open(uri, UNUSED_VARIABLE_CODE)
        diagnostics = client.latest(uri)
        assert [(d.code, d.severity) for d in diagnostics] == [(16, DiagnosticSeverity.Warning)]


class TestLibraries:
    def test_contrib_archive_resolves_imports(
        self, session: LanguageSession, client: RecordingClient, workspace: Path
    ) -> None:
        archive = workspace / "libs" / "contrib.zip"
        archive.parent.mkdir()
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("mynpl/foo.npl", LIBRARY_CODE)
        path = write_source(workspace, "src/test.npl", VALID_ONLY_WITH_LIBRARY_CODE)

        service = LanguageService(session, debounce=0, library_refs=["libs/contrib.zip"])
        try:
            Editor(service).initialize(workspace)
        finally:
            service.shutdown()
        assert client.latest(uri_of(path)) == []
        assert len(service.compiler_service.library_sources) == 1

    def test_without_contrib_archive_import_fails(
        self, editor: Editor, client: RecordingClient, workspace: Path
    ) -> None:
        path = write_source(workspace, "src/test.npl", VALID_ONLY_WITH_LIBRARY_CODE)
        editor.initialize(workspace)
        assert [d.code for d in client.latest(uri_of(path))] == [62]
