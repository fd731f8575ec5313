"""Language Server Protocol adapter (pygls)."""

from nplserver.lsp.handlers import LanguageService
from nplserver.lsp.server import PyglsClient, create_server, main

__all__ = [
    "LanguageService",
    "PyglsClient",
    "create_server",
    "main",
]
