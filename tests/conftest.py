"""Shared fixtures and fake providers."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from huzzology.classification.classifier import ContentClassifier
from huzzology.classification.clustering import Clusterer, FixedSeed
from huzzology.classification.embedding import EmbeddingGenerator
from huzzology.classification.identifier import ArchetypeIdentifier
from huzzology.classification.influence import InfluenceScorer
from huzzology.classification.orchestrator import ClassificationOrchestrator
from huzzology.classification.store import InMemoryContentStore
from huzzology.schemas.classification import (
    Archetype,
    ContentItem,
    Creator,
    Embedding,
    EngagementMetrics,
)
from huzzology.services.classification_settings import ClassificationSettings
from huzzology.services.providers import CompletionOptions

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FakeEmbeddingProvider:
    """Embeds with ``embed_fn``; records every batch it is asked for."""

    model_name = "fake:test-embedding"

    def __init__(self, embed_fn: Callable[[str], list[float]]) -> None:
        self._embed_fn = embed_fn
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._embed_fn(text) for text in texts]


class FailingEmbeddingProvider:
    model_name = "fake:failing"

    def __init__(self, exc: Exception) -> None:
        self._exc = exc

    async def embed(self, texts: list[str]) -> list[list[float]]:
        raise self._exc


class FakeTextProvider:
    """Replays ``responses`` in order; an Exception entry is raised instead of returned."""

    def __init__(self, responses: list | None = None) -> None:
        self._responses = list(responses or [])
        self.prompts: list[str] = []
        self.options: list[CompletionOptions | None] = []

    async def complete(self, prompt: str, opts: CompletionOptions | None = None) -> str:
        self.prompts.append(prompt)
        self.options.append(opts)
        if not self._responses:
            raise AssertionError(f"unexpected completion request: {prompt[:80]!r}")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def label_response(label: str = "Coastal Grandmother", keywords: list[str] | None = None) -> str:
    return json.dumps({
        "label": label,
        "description": "Linen, hydrangeas and seaside calm.",
        "keywords": keywords or ["linen", "coastal", "grandmother", "hydrangea", "calm"],
    })


def make_item(
    item_id: str,
    text: str = "",
    hashtags: list[str] | None = None,
    *,
    platform: str = "tiktok",
    creator: str | None = None,
    likes: int = 0,
    shares: int = 0,
    comments: int = 0,
    timestamp: datetime = NOW,
) -> ContentItem:
    return ContentItem(
        id=item_id,
        platform=platform,
        text=text,
        hashtags=hashtags or [],
        timestamp=timestamp,
        creator=Creator(username=creator) if creator else None,
        engagement=EngagementMetrics(likes=likes, shares=shares, comments=comments),
    )


def make_embedding(content_id: str, vector: list[float]) -> Embedding:
    return Embedding(content_id=content_id, vector=vector, model_name="fake:test-embedding", generated_at=NOW)


def near_identical_vector(i: int) -> list[float]:
    return [1.0, 0.01 * (i % 4), 0.005 * (i % 3)]


def build_orchestrator(
    store: InMemoryContentStore,
    embed_fn: Callable[[str], list[float]],
    responses: list | None = None,
    settings: ClassificationSettings | None = None,
    seed: int = 7,
) -> tuple[ClassificationOrchestrator, FakeEmbeddingProvider, FakeTextProvider]:
    cs = settings or ClassificationSettings()
    embedding_provider = FakeEmbeddingProvider(embed_fn)
    text_provider = FakeTextProvider(responses)
    generator = EmbeddingGenerator(embedding_provider, cs.embedding)
    orchestrator = ClassificationOrchestrator(
        store=store,
        embedding_generator=generator,
        clusterer=Clusterer(cs.clustering, FixedSeed(seed)),
        identifier=ArchetypeIdentifier(text_provider, cs.identifier),
        classifier=ContentClassifier(generator, cs.classifier),
        scorer=InfluenceScorer(store, cs.influence),
    )
    return orchestrator, embedding_provider, text_provider


@pytest.fixture
def clean_girl() -> Archetype:
    return Archetype(
        id="arch-clean-girl",
        label="Clean Girl",
        description="Effortless polish: slick buns, dewy skin, gold hoops.",
        keywords=["clean girl", "minimal makeup"],
    )


@pytest.fixture
def clean_girl_item() -> ContentItem:
    return make_item(
        "post-1",
        "slicked back bun and glowy skin for brunch",
        ["#cleangirl", "#minimalmakeup"],
        creator="ava",
        likes=420,
    )
