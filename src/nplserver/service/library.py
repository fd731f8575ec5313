"""Read-only auxiliary library sources layered over the workspace.

References are resolved against the filesystem first (absolute paths or
``file:`` URIs) and otherwise against an in-memory zip snapshot of the
workspace roots, so relative references such as ``lib/contrib.zip`` work for
any root.
"""

from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from nplserver.models.source import Source
from nplserver.service.workspace import SOURCE_EXTENSION, path_to_uri, uri_to_path

logger = logging.getLogger("nplserver.library")

ARCHIVE_SUFFIX = ".zip"


@dataclass
class WorkspaceSnapshot:
    """Zip image of the workspace roots plus the on-disk origin of each entry."""

    data: bytes
    origins: dict[str, Path] = field(default_factory=dict)

    @classmethod
    def build(cls, roots: Iterable[Path]) -> WorkspaceSnapshot:
        buffer = io.BytesIO()
        origins: dict[str, Path] = {}
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for root in roots:
                if not root.is_dir():
                    continue
                for path in sorted(root.rglob("*")):
                    if not path.is_file():
                        continue
                    entry = path.relative_to(root).as_posix()
                    if entry in origins:
                        continue  # first root wins
                    try:
                        archive.writestr(entry, path.read_bytes())
                    except OSError as exc:
                        logger.warning("Could not archive %s: %s", path, exc)
                        continue
                    origins[entry] = path
        return cls(data=buffer.getvalue(), origins=origins)

    def open(self) -> zipfile.ZipFile:
        return zipfile.ZipFile(io.BytesIO(self.data))


def archive_uri(archive: str, entry: str) -> str:
    return f"zip:{archive}!/{entry}"


class LibraryLoader:
    """Resolves library references into ``Source(library=True)`` objects.

    A reference names either a ``.zip`` archive or a directory.  References
    that cannot be resolved, or archives that cannot be read, are logged and
    skipped.
    """

    def load(self, refs: Sequence[str], roots: Iterable[Path]) -> list[Source]:
        if not refs:
            return []
        snapshot = WorkspaceSnapshot.build(roots)
        sources: list[Source] = []
        with snapshot.open() as workspace:
            for ref in refs:
                try:
                    loaded = self._resolve(ref, snapshot, workspace)
                except (OSError, zipfile.BadZipFile, UnicodeDecodeError) as exc:
                    logger.warning("Could not load library '%s': %s", ref, exc)
                    continue
                if loaded is None:
                    logger.warning("Library '%s' not found", ref)
                    continue
                logger.info("Loaded %d library sources from '%s'", len(loaded), ref)
                sources.extend(loaded)
        return sources

    # -- resolution ----------------------------------------------------------

    def _resolve(
        self, ref: str, snapshot: WorkspaceSnapshot, workspace: zipfile.ZipFile
    ) -> list[Source] | None:
        path = _as_absolute_path(ref)
        if path is not None:
            if path.is_dir():
                return self._from_directory(path)
            if path.is_file() and path.suffix == ARCHIVE_SUFFIX:
                return self._from_archive(path.read_bytes(), path_to_uri(path), path)
            return None

        entry = PurePosixPath(ref.replace("\\", "/")).as_posix().strip("/")
        if entry in snapshot.origins and entry.endswith(ARCHIVE_SUFFIX):
            origin = snapshot.origins[entry]
            return self._from_archive(workspace.read(entry), path_to_uri(origin), origin)

        prefix = f"{entry}/"
        members = sorted(
            name
            for name in snapshot.origins
            if name.startswith(prefix) and name.endswith(SOURCE_EXTENSION)
        )
        if not members:
            return None
        return [
            Source(
                uri=path_to_uri(snapshot.origins[name]),
                location=snapshot.origins[name],
                content=workspace.read(name).decode("utf-8"),
                library=True,
            )
            for name in members
        ]

    @staticmethod
    def _from_directory(directory: Path) -> list[Source]:
        return [
            Source(
                uri=path_to_uri(path),
                location=path,
                content=path.read_text(encoding="utf-8"),
                library=True,
            )
            for path in sorted(directory.rglob(f"*{SOURCE_EXTENSION}"))
            if path.is_file()
        ]

    @staticmethod
    def _from_archive(data: bytes, uri: str, origin: Path) -> list[Source]:
        sources: list[Source] = []
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            for name in sorted(archive.namelist()):
                if name.endswith("/") or not name.endswith(SOURCE_EXTENSION):
                    continue
                sources.append(
                    Source(
                        uri=archive_uri(uri, name),
                        location=origin / name,
                        content=archive.read(name).decode("utf-8"),
                        library=True,
                    )
                )
        return sources


def _as_absolute_path(ref: str) -> Path | None:
    """Filesystem path for absolute paths and ``file:`` URIs, else ``None``."""
    if ref.startswith("file:"):
        return uri_to_path(ref)
    path = Path(ref)
    return path if path.is_absolute() else None
