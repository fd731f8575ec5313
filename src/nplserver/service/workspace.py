"""Workspace membership, URI helpers and source discovery."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import unquote, urlparse

from nplserver.models.source import Source

logger = logging.getLogger("nplserver.workspace")

SOURCE_EXTENSION = ".npl"
BUILD_OUTPUT_DIR = "target"


# ---------------------------------------------------------------------------
# URI helpers
# ---------------------------------------------------------------------------


def uri_to_path(uri: str) -> Path:
    """Filesystem path of a ``file:`` URI (plain paths are passed through)."""
    parsed = urlparse(uri)
    if parsed.scheme not in ("", "file"):
        raise ValueError(f"Not a file URI: '{uri}'")
    if not parsed.scheme:
        return Path(uri)
    path = unquote(parsed.path)
    if parsed.netloc and parsed.netloc != "localhost":
        path = f"//{parsed.netloc}{path}"
    return Path(path)


def path_to_uri(path: Path) -> str:
    return path.absolute().as_uri()


def canonical_uri(uri: str) -> str:
    """Normalize spellings of the same ``file:`` URI (``file:/x``, ``file:///x``, escapes)."""
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        return uri
    return path_to_uri(uri_to_path(uri))


def has_source_extension(path: Path) -> bool:
    return path.suffix == SOURCE_EXTENSION


def is_build_output(path: Path, root: Path) -> bool:
    """True when *path* lies under a build-output directory below *root*."""
    try:
        relative = path.relative_to(root)
    except ValueError:
        relative = path
    return BUILD_OUTPUT_DIR in relative.parts[:-1]


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


class WorkspaceScope:
    """Decides whether a path belongs to the configured workspace roots.

    With no roots every path is in scope.  Membership is evaluated on every
    query against real paths, so symlinks and files that disappeared are
    handled as of the time of the call.
    """

    def __init__(self, roots: Iterable[Path] = ()) -> None:
        self._roots: list[Path] = list(roots)

    @property
    def roots(self) -> list[Path]:
        return list(self._roots)

    def replace(self, roots: Iterable[Path]) -> None:
        self._roots = list(roots)

    def contains(self, path: Path) -> bool:
        if not self._roots:
            return True
        try:
            real = path.resolve(strict=True)
        except (OSError, RuntimeError):
            return False
        for root in self._roots:
            try:
                if real.is_relative_to(root.resolve(strict=True)):
                    return True
            except (OSError, RuntimeError):
                continue
        return False


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_sources(roots: Iterable[Path]) -> list[Source]:
    """Load every source file below *roots*, skipping build output.

    Unreadable files are logged and skipped; the remaining files are still
    returned.
    """
    roots = list(roots)
    sources: list[Source] = []
    for root in roots:
        if not root.is_dir():
            logger.warning("Workspace root %s is not a directory, skipping", root)
            continue
        for path in sorted(root.rglob(f"*{SOURCE_EXTENSION}")):
            if is_build_output(path, root):
                continue
            try:
                if not path.is_file():
                    if path.is_symlink():
                        logger.warning("Skipping broken symlink %s", path)
                    continue
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Could not read %s: %s", path, exc)
                continue
            sources.append(Source(uri=path_to_uri(path), location=path, content=content))
    logger.info("Discovered %d sources in %d workspace roots", len(sources), len(roots))
    return sources
