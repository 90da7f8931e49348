"""Tests for the classification orchestrator."""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import build_orchestrator, label_response, make_item, near_identical_vector
from huzzology.classification.clustering import Clusterer
from huzzology.classification.orchestrator import BatchPhase, build_orchestrator as build_live_orchestrator
from huzzology.classification.sql_store import SqlContentStore
from huzzology.classification.store import InMemoryContentStore
from huzzology.config import Settings
from huzzology.errors import ConfigurationError, DataError, ProviderError
from huzzology.schemas.classification import Archetype


def _coastal_batch(n: int = 12) -> list:
    return [make_item(f"c{i}", f"coastal linen look {i}", ["#coastalgrandmother"]) for i in range(n)]


def _coastal_vectors(text: str) -> list[float]:
    digits = "".join(ch for ch in text if ch.isdigit()) or "0"
    return near_identical_vector(int(digits))


@pytest.mark.asyncio
async def test_process_content_without_archetypes_returns_emerging_proposals():
    store = InMemoryContentStore()
    orchestrator, _, text = build_orchestrator(store, _coastal_vectors, [label_response()])
    items = _coastal_batch()

    result = await orchestrator.process_content(items)

    assert result.results == []
    assert result.unclassified == [item.id for item in items]
    assert [e.suggested_label for e in result.emerging_archetypes] == ["Coastal Grandmother"]
    assert store.emerging == result.emerging_archetypes
    assert set(store.embeddings) == {item.id for item in items}
    assert len(text.prompts) == 1


@pytest.mark.asyncio
async def test_identify_emerging_archetypes_with_nothing_cohesive_returns_empty():
    store = InMemoryContentStore()
    orchestrator, _, text = build_orchestrator(store, _coastal_vectors, [])

    emerging = await orchestrator.identify_emerging_archetypes(_coastal_batch(3))

    assert emerging == []
    assert text.prompts == []
    assert store.emerging == []


@pytest.mark.asyncio
async def test_process_content_classifies_against_existing_archetypes(clean_girl, clean_girl_item):
    store = InMemoryContentStore([clean_girl])

    def embed(text: str) -> list[float]:
        return [1.0, 0.0, 0.0] if "clean" in text.lower() else [0.0, 0.0, 1.0]

    orchestrator, _, _ = build_orchestrator(store, embed)
    other = make_item("post-2", "quarterly tax tips")

    result = await orchestrator.process_content([clean_girl_item, other])

    assert [r.archetype_id for r in result.classified] == [clean_girl.id]
    assert result.unclassified == ["post-2"]
    assert store.classifications[clean_girl_item.id].archetype_id == clean_girl.id
    assert set(store.content) == {clean_girl_item.id, "post-2"}
    assert set(store.embeddings) == {clean_girl_item.id, "post-2"}


@pytest.mark.asyncio
async def test_candidate_proposals_are_saved(clean_girl):
    store = InMemoryContentStore([clean_girl])

    def embed(text: str) -> list[float]:
        return [1.0, 0.0, 0.0] if "Clean Girl" in text else [0.6, 0.8, 0.0]

    orchestrator, _, _ = build_orchestrator(store, embed)

    result = await orchestrator.process_content([make_item("p1", "burgundy", ["#mobwife"])])

    assert [p.label for p in result.new_archetypes] == ["Mobwife"]
    assert [p.label for p in store.proposals] == ["Mobwife"]


@pytest.mark.asyncio
async def test_provider_failure_fails_the_batch(clean_girl, clean_girl_item):
    store = InMemoryContentStore([clean_girl])

    def embed(text: str) -> list[float]:
        raise ProviderError("embedding service down", status_code=503)

    orchestrator, _, _ = build_orchestrator(store, embed)

    with pytest.raises(ProviderError):
        await orchestrator.process_content([clean_girl_item])
    assert store.classifications == {}


@pytest.mark.asyncio
async def test_wrong_vector_length_raises_before_clustering():
    store = InMemoryContentStore()
    lengths = iter([3, 3, 2])
    orchestrator, _, _ = build_orchestrator(store, lambda text: [1.0] * next(lengths))
    clusterer = MagicMock(spec=Clusterer)
    orchestrator._clusterer = clusterer

    with pytest.raises(DataError):
        await orchestrator.identify_emerging_archetypes(_coastal_batch(3))
    clusterer.cluster.assert_not_called()


@pytest.mark.asyncio
async def test_update_influence_scores_writes_every_archetype():
    archetypes = [Archetype(id="a", label="A"), Archetype(id="b", label="B")]
    store = InMemoryContentStore(archetypes, relationships=[("a", "b")])
    orchestrator, _, _ = build_orchestrator(store, lambda text: [1.0])

    scores = await orchestrator.update_influence_scores()

    assert scores == pytest.approx({"a": 0.02, "b": 0.02})
    assert store.archetypes["a"].influence_score == pytest.approx(0.02)


def test_batch_phase_values():
    assert [p.value for p in BatchPhase] == [
        "received", "embedded", "clustered", "identified", "classified", "reported",
    ]


@pytest.mark.asyncio
async def test_store_failure_is_logged_with_phase_and_reraised(clean_girl, clean_girl_item, caplog):
    class BrokenStore(InMemoryContentStore):
        async def save_classifications(self, results):
            raise RuntimeError("connection reset")

    store = BrokenStore([clean_girl])
    orchestrator, _, _ = build_orchestrator(store, lambda text: [1.0, 0.0, 0.0])

    with caplog.at_level(logging.ERROR, logger="huzzology.classification.orchestrator"):
        with pytest.raises(RuntimeError):
            await orchestrator.process_content([clean_girl_item])

    assert "failed after phase classified" in caplog.text
    assert "connection reset" in caplog.text


def test_database_store_rejects_mismatched_embedding_size():
    settings = Settings(OPENAI_API_KEY="sk-test", EMBEDDING_DIMENSIONS=768)

    with pytest.raises(ConfigurationError, match="768"):
        build_live_orchestrator(SqlContentStore(AsyncMock()), settings=settings)


@pytest.mark.asyncio
async def test_matching_embedding_size_builds_for_database_store():
    settings = Settings(OPENAI_API_KEY="sk-test", EMBEDDING_DIMENSIONS=1536)

    orchestrator = build_live_orchestrator(SqlContentStore(AsyncMock()), settings=settings)
    await orchestrator.close()


@pytest.mark.asyncio
async def test_in_memory_store_accepts_any_embedding_size():
    settings = Settings(OPENAI_API_KEY="sk-test", EMBEDDING_DIMENSIONS=768)

    orchestrator = build_live_orchestrator(InMemoryContentStore(), settings=settings)
    await orchestrator.close()
