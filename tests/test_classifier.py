"""Tests for content classification."""

import re

import pytest

from conftest import FakeEmbeddingProvider, make_embedding, make_item
from huzzology.classification.classifier import (
    PROPOSAL_DESCRIPTION,
    ContentClassifier,
    hashtag_overlap,
    keyword_overlap,
    pastel_color,
    suggest_archetype_name,
)
from huzzology.classification.embedding import EmbeddingGenerator
from huzzology.schemas.classification import Archetype


def _archetype_axis(text: str) -> list[float]:
    # Archetype texts embed onto the x axis, everything else onto z.
    return [1.0, 0.0, 0.0] if "Clean Girl" in text else [0.0, 0.0, 1.0]


def _classifier() -> tuple[ContentClassifier, FakeEmbeddingProvider]:
    provider = FakeEmbeddingProvider(_archetype_axis)
    return ContentClassifier(EmbeddingGenerator(provider)), provider


def test_hashtag_overlap_matches_across_spacing_and_hash():
    assert hashtag_overlap(["#cleangirl", "#minimalmakeup"], ["clean girl", "minimal makeup"]) == 1.0
    assert hashtag_overlap(["#cleangirl", "#ootd"], ["clean girl"]) == 0.5
    assert hashtag_overlap([], ["clean girl"]) == 0.0
    assert hashtag_overlap(["#cleangirl"], []) == 0.0


def test_keyword_overlap_is_fraction_of_keywords():
    assert keyword_overlap("my clean girl routine", ["clean girl", "minimal makeup"]) == 0.5
    assert keyword_overlap("#cleangirl #minimalmakeup", ["clean girl", "minimal makeup"]) == 1.0
    assert keyword_overlap("anything", []) == 0.0


def test_suggest_archetype_name():
    assert suggest_archetype_name(make_item("a", "x", ["#ootd", "#that_girl-aesthetic"])) == "That Girl Aesthetic"
    assert suggest_archetype_name(make_item("a", "mob wife energy all winter")) == "Mob Wife Energy"
    assert suggest_archetype_name(make_item("a", "")) == "Untitled Trend"


def test_pastel_color_is_deterministic_hsl():
    color = pastel_color("Mob Wife")
    assert re.fullmatch(r"hsl\(\d{1,3}, 70%, 80%\)", color)
    assert pastel_color("Mob Wife") == color


@pytest.mark.asyncio
async def test_clean_girl_hashtags_classify_to_clean_girl(clean_girl, clean_girl_item):
    classifier, _ = _classifier()
    embeddings = [make_embedding(clean_girl_item.id, [1.0, 0.0, 0.0])]

    batch = await classifier.classify([clean_girl_item], [clean_girl], embeddings)

    assert len(batch.classified) == 1
    result = batch.classified[0]
    assert result.archetype_id == clean_girl.id
    assert result.confidence.hashtag_match > 0
    assert result.confidence.score > 0.6
    assert batch.unclassified == []


@pytest.mark.asyncio
async def test_mid_score_becomes_new_archetype_candidate(clean_girl):
    classifier, _ = _classifier()
    item = make_item("post-2", "burgundy everything", ["#cherrycola"], platform="instagram")
    # cosine 0.6 with the archetype, no keyword or hashtag overlap -> 0.36
    embeddings = [make_embedding(item.id, [0.6, 0.8, 0.0])]

    batch = await classifier.classify([item], [clean_girl], embeddings)

    assert len(batch.candidates) == 1
    candidate = batch.candidates[0]
    assert candidate.archetype_id is None
    assert candidate.suggested_archetype_name == "Cherrycola"
    assert candidate.confidence.score == pytest.approx(0.46)
    assert len(batch.new_archetypes) == 1
    proposal = batch.new_archetypes[0]
    assert proposal.label == "Cherrycola"
    assert proposal.description == PROPOSAL_DESCRIPTION
    assert proposal.keywords == ["cherrycola"]
    assert proposal.platforms == ["instagram"]
    assert proposal.influence_score == 0.5


@pytest.mark.asyncio
async def test_low_score_is_unclassified(clean_girl):
    classifier, _ = _classifier()
    item = make_item("post-3", "tax season tips")

    batch = await classifier.classify([item], [clean_girl], [make_embedding(item.id, [0.0, 0.0, 1.0])])

    assert batch.results == []
    assert batch.unclassified == ["post-3"]


@pytest.mark.asyncio
async def test_candidate_proposals_are_deduplicated_by_name(clean_girl):
    classifier, _ = _classifier()
    items = [make_item(f"p{i}", "burgundy", ["#cherrycola"]) for i in range(3)]
    embeddings = [make_embedding(item.id, [0.6, 0.8, 0.0]) for item in items]

    batch = await classifier.classify(items, [clean_girl], embeddings)

    assert len(batch.candidates) == 3
    assert len(batch.new_archetypes) == 1


@pytest.mark.asyncio
async def test_fallback_keywords_when_item_has_no_hashtags(clean_girl):
    classifier, _ = _classifier()
    item = make_item("p1", "burgundy lips and fur coats")

    batch = await classifier.classify([item], [clean_girl], [make_embedding(item.id, [0.6, 0.8, 0.0])])

    assert batch.new_archetypes[0].keywords == ["trend", "style", "fashion"]


@pytest.mark.asyncio
async def test_every_item_lands_in_exactly_one_tier(clean_girl, clean_girl_item):
    classifier, _ = _classifier()
    items = [
        clean_girl_item,
        make_item("mid", "burgundy", ["#cherrycola"]),
        make_item("low", "tax tips"),
        make_item("negative", "opposite day"),
    ]
    embeddings = [
        make_embedding("post-1", [1.0, 0.0, 0.0]),
        make_embedding("mid", [0.6, 0.8, 0.0]),
        make_embedding("low", [0.0, 0.0, 1.0]),
        make_embedding("negative", [-1.0, 0.0, 0.0]),
    ]

    batch = await classifier.classify(items, [clean_girl], embeddings)

    classified = [r.content_id for r in batch.classified]
    candidates = [r.content_id for r in batch.candidates]
    placed = classified + candidates + batch.unclassified
    assert sorted(placed) == sorted(item.id for item in items)
    assert len(placed) == len(set(placed))
    assert all(0.0 <= r.confidence.score <= 1.0 for r in batch.results)


@pytest.mark.asyncio
async def test_best_archetype_wins(clean_girl):
    other = Archetype(id="arch-mob", label="Mob Wife", keywords=["fur coat"])
    classifier, _ = _classifier()
    item = make_item("p1", "slick bun", ["#cleangirl"])

    batch = await classifier.classify([item], [other, clean_girl], [make_embedding("p1", [1.0, 0.0, 0.0])])

    assert batch.classified[0].archetype_id == clean_girl.id


@pytest.mark.asyncio
async def test_missing_embeddings_are_generated(clean_girl):
    classifier, provider = _classifier()
    item = make_item("p1", "Clean Girl morning", ["#cleangirl"])

    batch = await classifier.classify([item], [clean_girl])

    assert batch.classified[0].archetype_id == clean_girl.id
    # one call for archetype texts, one for the item
    assert len(provider.calls) == 2


@pytest.mark.asyncio
async def test_no_archetypes_leaves_everything_unclassified(clean_girl_item):
    classifier, provider = _classifier()

    batch = await classifier.classify([clean_girl_item], [])

    assert batch.unclassified == [clean_girl_item.id]
    assert provider.calls == []


@pytest.mark.asyncio
async def test_classify_single(clean_girl, clean_girl_item):
    classifier, _ = _classifier()

    result = await classifier.classify_single(
        clean_girl_item, [clean_girl], make_embedding(clean_girl_item.id, [1.0, 0.0, 0.0])
    )
    assert result.archetype_id == clean_girl.id

    unmatched = make_item("p9", "tax tips")
    result = await classifier.classify_single(unmatched, [clean_girl], make_embedding("p9", [0.0, 0.0, 1.0]))
    assert result.archetype_id is None
    assert result.is_new_archetype is False
