"""NPL language server: workspace-scoped incremental compilation and diagnostics."""

__version__ = "0.1.0"
