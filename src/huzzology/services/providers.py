"""Embedding and text-generation provider contracts and their OpenAI-compatible implementations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from huzzology.errors import DataError
from huzzology.services.llm_client import EMBEDDING_SLOT, GENERATION_SLOT, LLMClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionOptions:
    temperature: float | None = None
    max_tokens: int | None = None
    json_mode: bool = False


@runtime_checkable
class EmbeddingProvider(Protocol):
    model_name: str

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, preserving order and count."""
        ...


@runtime_checkable
class TextGenerationProvider(Protocol):
    async def complete(self, prompt: str, opts: CompletionOptions | None = None) -> str:
        ...


class OpenAIEmbeddingProvider:
    """Embeddings through the client's ``embedding`` slot."""

    def __init__(self, client: LLMClient, slot: str = EMBEDDING_SLOT) -> None:
        self._client = client
        self._slot = slot

    @property
    def model_name(self) -> str:
        config = self._client.get_slot(self._slot)
        return f"{config.provider_name}:{config.model_id}"

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        vectors = await self._client.generate_embeddings(self._slot, texts)
        if len(vectors) != len(texts):
            raise DataError(
                f"Embedding provider returned {len(vectors)} vectors for {len(texts)} texts"
            )
        return vectors


class OpenAITextGenerationProvider:
    """Single-prompt completions through the client's ``generation`` slot."""

    def __init__(
        self,
        client: LLMClient,
        slot: str = GENERATION_SLOT,
        system_prompt: str | None = None,
    ) -> None:
        self._client = client
        self._slot = slot
        self._system_prompt = system_prompt

    async def complete(self, prompt: str, opts: CompletionOptions | None = None) -> str:
        opts = opts or CompletionOptions()
        messages: list[dict[str, str]] = []
        if self._system_prompt:
            messages.append({"role": "system", "content": self._system_prompt})
        messages.append({"role": "user", "content": prompt})
        return await self._client.generate(
            self._slot,
            messages,
            temperature=opts.temperature,
            max_tokens=opts.max_tokens,
            response_format={"type": "json_object"} if opts.json_mode else None,
        )
