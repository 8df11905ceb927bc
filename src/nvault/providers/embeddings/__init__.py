"""Embedding provider - Gemini REST API."""

from nvault.providers.embeddings.gemini import GeminiEmbeddingClient

__all__ = [
    "GeminiEmbeddingClient",
]
