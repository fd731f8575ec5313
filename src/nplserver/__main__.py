"""``python -m nplserver`` entry point."""

from nplserver.lsp.server import main

main()
