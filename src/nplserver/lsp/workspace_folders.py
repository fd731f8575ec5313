"""Workspace folder extraction from ``initialize`` parameters.

Clients may send ``initializationOptions.effectiveWorkspaceFolders``; when it
holds at least one usable URI it overrides the standard ``workspaceFolders``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger("nplserver.lsp")


class EffectiveWorkspaceFolder(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uri: str
    name: str = ""


class InitializationOptions(BaseModel):
    """The part of ``initializationOptions`` the server understands."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    effective_workspace_folders: list[EffectiveWorkspaceFolder] | None = Field(
        default=None, alias="effectiveWorkspaceFolders"
    )


def _effective_uris(initialization_options: Any) -> list[str]:
    if initialization_options is None:
        return []
    try:
        options = InitializationOptions.model_validate(initialization_options)
    except ValidationError as exc:
        logger.warning("Error parsing effectiveWorkspaceFolders: %s", exc)
        return []
    folders = options.effective_workspace_folders or []
    return [folder.uri for folder in folders if folder.uri.strip()]


def extract_workspace_folder_uris(
    initialization_options: Any, standard_uris: Sequence[str] | None
) -> list[str]:
    """Workspace root URIs to use for this session (possibly empty)."""
    effective = _effective_uris(initialization_options)
    if effective:
        logger.info("Using %d URIs from effectiveWorkspaceFolders", len(effective))
        return effective

    uris = list(standard_uris or [])
    if uris:
        logger.info("Found %d standard workspace folders", len(uris))
    else:
        logger.warning(
            "No workspace folders found in either effectiveWorkspaceFolders "
            "or standard workspaceFolders"
        )
    return uris
