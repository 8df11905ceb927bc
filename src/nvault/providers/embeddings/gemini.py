"""Gemini embedding client over the REST API."""

import logging
from typing import Any

import httpx

from nvault.core.config import (
    EMBEDDING_BASE_URL,
    EMBEDDING_MODEL,
    EMBEDDING_TIMEOUT_SECONDS,
    GEMINI_API_KEY,
)
from nvault.core.errors import EmbeddingServiceError

logger = logging.getLogger(__name__)


class GeminiEmbeddingClient:
    """Calls ``embedContent`` and ``batchEmbedContents``.

    Failures surface as :class:`EmbeddingServiceError`; rate limiting, 5xx
    and transport errors are marked retryable so a ``RetryPolicy`` can back
    off. The client itself never retries.
    """

    def __init__(
        self,
        api_key: str | None = GEMINI_API_KEY,
        model: str = EMBEDDING_MODEL,
        base_url: str = EMBEDDING_BASE_URL,
        timeout_seconds: float = EMBEDDING_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize embedding client.

        Args:
            api_key: Gemini API key
            model: Embedding model id
            base_url: API root (without trailing slash)
            timeout_seconds: Per-request timeout
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _url(self, method: str) -> str:
        return f"{self.base_url}/models/{self.model}:{method}"

    def _content(self, text: str) -> dict[str, Any]:
        return {"parts": [{"text": text}]}

    async def _post(self, method: str, body: dict[str, Any]) -> dict[str, Any]:
        if not self.is_configured:
            raise EmbeddingServiceError("Embedding service not configured", retryable=False)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self.transport
            ) as client:
                response = await client.post(
                    self._url(method),
                    json=body,
                    headers={"x-goog-api-key": self.api_key},
                )
        except httpx.HTTPError as exc:
            raise EmbeddingServiceError(f"Embedding request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.debug("Embedding API %s returned %d", method, response.status_code)
            raise EmbeddingServiceError(
                f"Embedding API error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise EmbeddingServiceError(
                "Embedding API returned invalid JSON", retryable=False
            ) from exc
        if not isinstance(data, dict):
            raise EmbeddingServiceError("Embedding API returned no object", retryable=False)
        return data

    @staticmethod
    def _values(item: Any) -> list[float]:
        """Pull a float vector out of one ``ContentEmbedding`` object."""
        values = item.get("values") if isinstance(item, dict) else None
        if not isinstance(values, list) or not values:
            raise EmbeddingServiceError("Embedding response had no values", retryable=False)
        try:
            return [float(v) for v in values]
        except (TypeError, ValueError) as exc:
            raise EmbeddingServiceError(
                f"Embedding response had a non-numeric value: {exc}", retryable=False
            ) from exc

    async def embed(self, text: str) -> list[float]:
        """Embed one text."""
        data = await self._post("embedContent", {"content": self._content(text)})
        return self._values(data.get("embedding"))

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts in one request, preserving order."""
        if not texts:
            return []
        requests = [
            {"model": f"models/{self.model}", "content": self._content(text)}
            for text in texts
        ]
        data = await self._post("batchEmbedContents", {"requests": requests})
        embeddings = data.get("embeddings")
        if not isinstance(embeddings, list) or len(embeddings) != len(texts):
            raise EmbeddingServiceError(
                "Batch embedding response does not match request", retryable=False
            )
        return [self._values(item) for item in embeddings]
