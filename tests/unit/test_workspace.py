"""Tests for workspace membership, URI helpers and source discovery."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from nplserver.service.workspace import (
    WorkspaceScope,
    canonical_uri,
    discover_sources,
    is_build_output,
    path_to_uri,
    uri_to_path,
)
from tests.conftest import VALID_CODE, write_source


class TestUriHelpers:
    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "dir with space" / "a.npl"
        assert uri_to_path(path_to_uri(path)) == path

    def test_plain_path_passes_through(self) -> None:
        assert uri_to_path("/ws/a.npl") == Path("/ws/a.npl")

    def test_non_file_scheme_rejected(self) -> None:
        with pytest.raises(ValueError, match="Not a file URI"):
            uri_to_path("untitled:Untitled-1")

    def test_canonical_uri(self) -> None:
        assert canonical_uri("file:/ws/a%20b.npl") == "file:///ws/a%20b.npl"
        assert canonical_uri("file:///ws/a b.npl") == "file:///ws/a%20b.npl"
        assert canonical_uri("zip:file:///lib.zip!/a.npl") == "zip:file:///lib.zip!/a.npl"

    def test_build_output_relative_to_root(self) -> None:
        root = Path("/home/target/ws")
        assert not is_build_output(root / "src" / "a.npl", root)
        assert is_build_output(root / "target" / "a.npl", root)
        assert is_build_output(root / "sub" / "target" / "gen" / "a.npl", root)

    def test_file_named_target_is_not_build_output(self) -> None:
        root = Path("/ws")
        assert not is_build_output(root / "target", root)


class TestWorkspaceScope:
    def test_no_roots_accepts_everything(self) -> None:
        scope = WorkspaceScope()
        assert scope.contains(Path("/definitely/not/there.npl"))

    def test_inside_and_outside(self, tmp_path: Path) -> None:
        root = tmp_path / "ws"
        inside = write_source(root, "src/a.npl", "package a")
        outside = write_source(tmp_path / "other", "b.npl", "package b")
        scope = WorkspaceScope([root])
        assert scope.contains(inside)
        assert not scope.contains(outside)

    def test_sibling_prefix_is_outside(self, tmp_path: Path) -> None:
        root = tmp_path / "ws"
        root.mkdir()
        sibling = write_source(tmp_path / "ws2", "a.npl", "package a")
        assert not WorkspaceScope([root]).contains(sibling)

    def test_missing_file_is_outside(self, tmp_path: Path) -> None:
        root = tmp_path / "ws"
        root.mkdir()
        assert not WorkspaceScope([root]).contains(root / "gone.npl")

    def test_missing_root_is_ignored(self, tmp_path: Path) -> None:
        root = tmp_path / "ws"
        inside = write_source(root, "a.npl", "package a")
        scope = WorkspaceScope([tmp_path / "missing", root])
        assert scope.contains(inside)

    def test_symlink_into_workspace(self, tmp_path: Path) -> None:
        root = tmp_path / "ws"
        target = write_source(root, "a.npl", "package a")
        link = tmp_path / "link.npl"
        link.symlink_to(target)
        assert WorkspaceScope([root]).contains(link)

    def test_membership_is_not_cached(self, tmp_path: Path) -> None:
        root = tmp_path / "ws"
        path = write_source(root, "a.npl", "package a")
        scope = WorkspaceScope([root])
        assert scope.contains(path)
        path.unlink()
        assert not scope.contains(path)

    def test_replace_roots(self, tmp_path: Path) -> None:
        first = tmp_path / "one"
        second = tmp_path / "two"
        path = write_source(first, "a.npl", "package a")
        second.mkdir()
        scope = WorkspaceScope([first])
        scope.replace([second])
        assert scope.roots == [second]
        assert not scope.contains(path)


class TestDiscoverSources:
    def test_nested_sources_excluding_build_output(self, workspace: Path) -> None:
        write_source(workspace, "main/a.npl", VALID_CODE)
        write_source(workspace, "main/deep/nested/b.npl", VALID_CODE)
        write_source(workspace, "target/generated/c.npl", VALID_CODE)
        write_source(workspace, "notes.txt", "not a source")
        sources = discover_sources([workspace])
        names = sorted(s.location.name for s in sources)
        assert names == ["a.npl", "b.npl"]
        assert all(s.uri == path_to_uri(s.location) for s in sources)
        assert all(not s.library for s in sources)

    def test_multiple_roots(self, tmp_path: Path) -> None:
        write_source(tmp_path / "one", "a.npl", "package a")
        write_source(tmp_path / "two", "b.npl", "package b")
        sources = discover_sources([tmp_path / "one", tmp_path / "two"])
        assert len(sources) == 2

    def test_broken_symlink_is_skipped(self, workspace: Path) -> None:
        write_source(workspace, "a.npl", "package a")
        (workspace / "dangling.npl").symlink_to(workspace / "nowhere.npl")
        sources = discover_sources([workspace])
        assert [s.location.name for s in sources] == ["a.npl"]

    @pytest.mark.skipif(
        not hasattr(os, "geteuid") or os.geteuid() == 0, reason="root can read anything"
    )
    def test_unreadable_file_is_skipped(self, workspace: Path) -> None:
        write_source(workspace, "a.npl", "package a")
        locked = write_source(workspace, "b.npl", "package b")
        locked.chmod(0)
        try:
            sources = discover_sources([workspace])
        finally:
            locked.chmod(0o644)
        assert [s.location.name for s in sources] == ["a.npl"]

    def test_missing_root(self, tmp_path: Path) -> None:
        assert discover_sources([tmp_path / "missing"]) == []
