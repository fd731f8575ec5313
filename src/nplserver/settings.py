"""Shared settings loaded from environment / .env file."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for the NPL language server.

    Values are read from ``NPL_``-prefixed environment variables and from a
    ``.env`` file in the working directory.  Command-line flags override them.
    """

    model_config = SettingsConfigDict(
        env_prefix="NPL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Transport
    server_mode: Literal["tcp", "stdio"] = "tcp"
    tcp_host: str = "127.0.0.1"
    tcp_port: int = 5007

    # Compilation
    debounce_ms: int = 300  # quiet period before recompiling after didChange; 0 compiles inline
    contrib_libs: list[str] = []  # library archives/directories layered over workspace sources

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000
