"""Source documents known to the server."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel


class Source(BaseModel):
    """An editor-visible (or library) unit of source text.

    Content is always the full document text; edits replace it wholesale.
    """

    uri: str
    location: Path
    content: str
    library: bool = False

    model_config = {"frozen": True}
