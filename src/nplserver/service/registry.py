"""In-memory source registry with dirty tracking.  Thread-safe via ``threading.Lock``."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping

from nplserver.models.source import Source
from nplserver.service.workspace import (
    canonical_uri,
    has_source_extension,
    path_to_uri,
    uri_to_path,
)


class SourceRegistry:
    """Authoritative map of known documents (canonical URI → :class:`Source`).

    Every mutation marks the affected URI dirty and stamps it with a fresh
    generation number; the dirty set is only cleared by :meth:`discard_dirty`
    once a compilation has covered it.  Nothing here compiles or publishes.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sources: dict[str, Source] = {}
        self._dirty: dict[str, int] = {}
        self._generation = 0

    def _mark_dirty(self, uri: str) -> None:
        # caller holds self._lock
        self._generation += 1
        self._dirty[uri] = self._generation

    # -- mutation ------------------------------------------------------------

    def update(self, uri: str, content: str) -> bool:
        """Insert or replace a document.

        Returns ``False`` (and changes nothing) when the URI does not name a
        source file.
        """
        try:
            path = uri_to_path(uri)
        except ValueError:
            return False
        if not has_source_extension(path):
            return False
        uri = path_to_uri(path)
        with self._lock:
            self._sources[uri] = Source(uri=uri, location=path, content=content)
            self._mark_dirty(uri)
        return True

    def remove(self, uri: str) -> Source | None:
        """Delete a document if present; the URI is marked dirty either way."""
        uri = canonical_uri(uri)
        with self._lock:
            removed = self._sources.pop(uri, None)
            self._mark_dirty(uri)
        return removed

    def replace_all(self, sources: Iterable[Source]) -> set[str]:
        """Swap the whole registry for *sources*.

        Returns the previously known URIs that are absent from the new set.
        """
        with self._lock:
            previous = set(self._sources)
            self._sources.clear()
            self._dirty.clear()
            for source in sources:
                uri = canonical_uri(source.uri)
                self._sources[uri] = source.model_copy(update={"uri": uri})
                self._mark_dirty(uri)
            return previous - set(self._sources)

    def discard_dirty(self, uris: Mapping[str, int] | Iterable[str]) -> None:
        """Mark *uris* as compiled.

        Given a :meth:`dirty_snapshot`, an entry is only cleared when the URI
        has not been touched again since the snapshot was taken.
        """
        with self._lock:
            if isinstance(uris, Mapping):
                for uri, generation in uris.items():
                    if self._dirty.get(uri) == generation:
                        del self._dirty[uri]
            else:
                for uri in uris:
                    self._dirty.pop(uri, None)

    # -- queries -------------------------------------------------------------

    @property
    def dirty(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._dirty)

    def dirty_snapshot(self) -> dict[str, int]:
        """Dirty URIs with the generation of their latest mutation."""
        with self._lock:
            return dict(self._dirty)

    def sources(self) -> list[Source]:
        with self._lock:
            return list(self._sources.values())

    def get(self, uri: str) -> Source | None:
        with self._lock:
            return self._sources.get(canonical_uri(uri))

    def __contains__(self, uri: object) -> bool:
        if not isinstance(uri, str):
            return False
        with self._lock:
            return canonical_uri(uri) in self._sources

    def __len__(self) -> int:
        with self._lock:
            return len(self._sources)
