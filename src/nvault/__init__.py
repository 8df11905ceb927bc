"""Neural Vault - local-first encrypted notes with semantic search."""

__version__ = "0.1.0"
