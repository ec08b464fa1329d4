"""Cross-cutting runtime concerns shared by the tools, API, and CLI."""
