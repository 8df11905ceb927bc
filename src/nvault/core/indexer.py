"""Embedding of notes and queries through an external service."""

import asyncio
import logging

from nvault.core.config import EMBEDDING_CONCURRENCY
from nvault.core.ranking import embedding_text
from nvault.core.retry import RetryPolicy
from nvault.core.types import EmbeddingService, IndexReport, Note

logger = logging.getLogger(__name__)


class NoteIndexer:
    """Fills in note vectors, tolerating per-note failures."""

    def __init__(
        self,
        embedder: EmbeddingService,
        retry_policy: RetryPolicy | None = None,
        concurrency: int = EMBEDDING_CONCURRENCY,
    ):
        """
        Initialize indexer.

        Args:
            embedder: Embedding service client
            retry_policy: Backoff schedule shared by every call
            concurrency: Maximum parallel single-note requests
        """
        self.embedder = embedder
        self.retry_policy = retry_policy or RetryPolicy()
        self.concurrency = max(1, concurrency)

    async def embed_query(self, text: str) -> list[float]:
        """Embed a search query."""
        return await self.retry_policy.run(lambda: self.embedder.embed(text))

    async def _embed_batch(self, texts: list[str]) -> list[list[float]] | None:
        try:
            vectors = await self.retry_policy.run(
                lambda: self.embedder.embed_batch(texts)
            )
        except Exception as exc:
            logger.warning("Batch embedding failed, falling back to single calls: %s", exc)
            return None
        if len(vectors) != len(texts):
            logger.warning(
                "Batch embedding returned %d vectors for %d texts", len(vectors), len(texts)
            )
            return None
        return vectors

    async def _embed_each(self, texts: list[str]) -> list[list[float] | Exception]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _one(text: str) -> list[float]:
            async with semaphore:
                return await self.retry_policy.run(lambda: self.embedder.embed(text))

        return await asyncio.gather(*(_one(t) for t in texts), return_exceptions=True)

    async def index(self, notes: list[Note], force: bool = False) -> IndexReport:
        """
        Embed notes that have no vector yet (all of them with ``force``).

        A whole-batch request is tried first; if it fails, every note is
        embedded on its own so one bad item cannot sink its siblings. Failed
        notes keep their previous vector (None for new notes) and are listed
        in ``IndexReport.failed``.
        """
        pending = [
            (idx, note)
            for idx, note in enumerate(notes)
            if (force or not note.vector) and embedding_text(note).strip()
        ]
        skipped = [
            note.id
            for note in notes
            if not embedding_text(note).strip() and (force or not note.vector)
        ]
        if not pending:
            return IndexReport(notes=list(notes), skipped=skipped)

        texts = [embedding_text(note) for _, note in pending]
        results: list[list[float] | Exception] | None = await self._embed_batch(texts)
        if results is None:
            results = await self._embed_each(texts)

        updated = list(notes)
        embedded: list[str] = []
        failed: dict[str, str] = {}
        for (idx, note), result in zip(pending, results):
            if isinstance(result, BaseException):
                logger.warning("Embedding failed for note %s: %s", note.id, result)
                failed[note.id] = str(result)
                continue
            updated[idx] = note.model_copy(update={"vector": list(result)})
            embedded.append(note.id)

        logger.info("Indexed %d notes, %d failed", len(embedded), len(failed))
        return IndexReport(notes=updated, embedded=embedded, failed=failed, skipped=skipped)
