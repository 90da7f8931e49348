"""Embedding generation stage."""
from __future__ import annotations

import asyncio
import logging
import math
from datetime import UTC, datetime

from huzzology.errors import DataError, ProviderError
from huzzology.schemas.classification import ContentItem, Embedding
from huzzology.services.classification_settings import EmbeddingSettings
from huzzology.services.providers import EmbeddingProvider

logger = logging.getLogger(__name__)


def _batched(items: list, size: int) -> list[list]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class EmbeddingGenerator:
    """Turns content into fixed-dimension vectors through an EmbeddingProvider.

    Every vector returned must have ``dimensions`` components. When ``dimensions`` is
    None the first vector seen fixes it for the lifetime of the generator.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        settings: EmbeddingSettings | None = None,
        dimensions: int | None = None,
    ) -> None:
        self._provider = provider
        self._settings = settings or EmbeddingSettings()
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int | None:
        return self._dimensions

    def _validate(self, vectors: list[list[float]], expected: int) -> None:
        if len(vectors) != expected:
            raise DataError(f"Embedding provider returned {len(vectors)} vectors for {expected} inputs")
        for vec in vectors:
            if not vec:
                raise DataError("Embedding provider returned a zero-length vector")
            if self._dimensions is None:
                self._dimensions = len(vec)
            if len(vec) != self._dimensions:
                raise DataError(
                    f"Embedding dimension mismatch: got {len(vec)}, expected {self._dimensions}"
                )
            if not all(isinstance(x, (int, float)) and math.isfinite(x) for x in vec):
                raise DataError("Embedding provider returned a non-numeric or non-finite component")

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed raw strings in one provider call, order preserved."""
        if not texts:
            return []
        vectors = await self._provider.embed(texts)
        self._validate(vectors, len(texts))
        return [[float(x) for x in vec] for vec in vectors]

    async def embed_text(self, text: str) -> list[float]:
        """Embed a single ad-hoc string."""
        return (await self.embed_texts([text]))[0]

    async def embed(self, items: list[ContentItem]) -> list[Embedding]:
        """Embed content items in independent batches.

        A failed provider call fails the whole batch, and with it this call; batches
        still pending or in flight are cancelled before the error is raised.
        """
        if not items:
            return []
        batches = _batched(items, self._settings.batch_size)
        semaphore = asyncio.Semaphore(self._settings.max_concurrent_batches)
        model_name = self._provider.model_name
        logger.info(
            "Generating embeddings for %d items in %d batch(es) model=%s",
            len(items), len(batches), model_name,
        )

        async def run_batch(index: int, batch: list[ContentItem]) -> list[Embedding]:
            async with semaphore:
                try:
                    vectors = await self.embed_texts([item.prepared_text() for item in batch])
                except ProviderError as exc:
                    logger.error("Embedding batch %d/%d failed: %s", index + 1, len(batches), exc)
                    raise
            generated_at = datetime.now(UTC)
            return [
                Embedding(content_id=item.id, vector=vec, model_name=model_name, generated_at=generated_at)
                for item, vec in zip(batch, vectors)
            ]

        tasks = [asyncio.create_task(run_batch(i, b)) for i, b in enumerate(batches)]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        embeddings = [emb for batch in results for emb in batch]
        logger.info("Generated %d embeddings", len(embeddings))
        return embeddings
