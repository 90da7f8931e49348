"""Content classification stage - match content to existing archetypes."""
from __future__ import annotations

import hashlib
import logging
import re

from huzzology.classification import vector_math
from huzzology.classification.embedding import EmbeddingGenerator
from huzzology.schemas.classification import (
    Archetype,
    ArchetypeProposal,
    BatchClassificationResult,
    ClassificationConfidence,
    ClassificationResult,
    ContentItem,
    Embedding,
)
from huzzology.services.classification_settings import ClassifierSettings

logger = logging.getLogger(__name__)

PROPOSAL_DESCRIPTION = "Emerging archetype based on recent content trends."

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def _compact(value: str) -> str:
    """Lowercase with everything but letters and digits removed."""
    return _NON_ALNUM.sub("", value.lower())


def keyword_overlap(text: str, keywords: list[str]) -> float:
    """Fraction of ``keywords`` found in ``text``, matched as phrases or with spaces removed."""
    if not keywords:
        return 0.0
    lowered = text.lower()
    compact = _compact(text)
    matches = 0
    for keyword in keywords:
        kw = keyword.lower().strip()
        if kw and (kw in lowered or (_compact(kw) and _compact(kw) in compact)):
            matches += 1
    return matches / len(keywords)


def hashtag_overlap(hashtags: list[str], keywords: list[str]) -> float:
    """Fraction of ``hashtags`` that match an archetype keyword.

    ``#cleangirl`` matches ``clean girl``: both sides are compared with spaces and
    punctuation removed, and containment in either direction counts.
    """
    tags = [t for t in (_compact(h) for h in hashtags) if t]
    terms = [k for k in (_compact(kw) for kw in keywords) if k]
    if not tags or not terms:
        return 0.0
    matches = sum(1 for tag in tags if any(tag in term or term in tag for term in terms))
    return matches / len(tags)


def suggest_archetype_name(item: ContentItem) -> str:
    """Title-case the item's longest hashtag, falling back to its opening words."""
    tags = [h.strip().lstrip("#") for h in item.hashtags if h.strip().lstrip("#")]
    if tags:
        longest = max(tags, key=len)
        return " ".join(w.capitalize() for w in re.split(r"[_\-]+", longest) if w)
    words = item.text.split()[:3]
    if words:
        return " ".join(w.capitalize() for w in words)
    return "Untitled Trend"


def pastel_color(label: str) -> str:
    hue = int(hashlib.sha256(label.encode()).hexdigest()[:8], 16) % 360
    return f"hsl({hue}, 70%, 80%)"


def _build_proposal(item: ContentItem, name: str, settings: ClassifierSettings) -> ArchetypeProposal:
    keywords = [h.strip().lstrip("#") for h in item.hashtags if h.strip().lstrip("#")]
    return ArchetypeProposal(
        label=name,
        description=PROPOSAL_DESCRIPTION,
        keywords=keywords or list(settings.fallback_keywords),
        color=pastel_color(name),
        influence_score=0.5,
        platforms=[item.platform],
    )


class ContentClassifier:
    """Scores content against every archetype and sorts it into three tiers.

    score > classify_threshold classifies, candidate_threshold < score <= classify_threshold
    flags a new-archetype candidate, anything lower is unclassified.
    """

    def __init__(
        self,
        embedding_generator: EmbeddingGenerator,
        settings: ClassifierSettings | None = None,
    ) -> None:
        self._embeddings = embedding_generator
        self._settings = settings or ClassifierSettings()

    def score(
        self,
        item: ContentItem,
        vector: list[float],
        archetype: Archetype,
        archetype_vector: list[float],
    ) -> ClassificationConfidence:
        s = self._settings
        similarity = max(0.0, vector_math.cosine_similarity(vector, archetype_vector))
        textual = keyword_overlap(item.prepared_text(), archetype.keywords)
        hashtags = hashtag_overlap(item.hashtags, archetype.keywords)
        combined = s.similarity_weight * similarity + s.keyword_weight * textual + s.hashtag_weight * hashtags
        return ClassificationConfidence(
            score=combined,
            textual_match=textual,
            hashtag_match=hashtags,
            contextual_relevance=similarity,
        )

    async def _archetype_vectors(self, archetypes: list[Archetype]) -> list[list[float]]:
        return await self._embeddings.embed_texts([a.embedding_text() for a in archetypes])

    async def _item_vectors(
        self, items: list[ContentItem], embeddings: list[Embedding] | None
    ) -> dict[str, list[float]]:
        known = {e.content_id: e.vector for e in embeddings or []}
        missing = [item for item in items if item.id not in known]
        if missing:
            for emb in await self._embeddings.embed(missing):
                known[emb.content_id] = emb.vector
        return known

    async def classify(
        self,
        items: list[ContentItem],
        archetypes: list[Archetype],
        embeddings: list[Embedding] | None = None,
    ) -> BatchClassificationResult:
        """Classify a batch. Precomputed ``embeddings`` are used where present."""
        batch = BatchClassificationResult()
        if not items:
            return batch
        if not archetypes:
            logger.info("No archetypes to classify against; %d items unclassified", len(items))
            batch.unclassified = [item.id for item in items]
            return batch

        s = self._settings
        archetype_vectors = await self._archetype_vectors(archetypes)
        vectors = await self._item_vectors(items, embeddings)
        proposed: set[str] = set()

        for item in items:
            best: tuple[Archetype, ClassificationConfidence] | None = None
            for archetype, archetype_vector in zip(archetypes, archetype_vectors):
                confidence = self.score(item, vectors[item.id], archetype, archetype_vector)
                if best is None or confidence.score > best[1].score:
                    best = (archetype, confidence)

            archetype, confidence = best
            if confidence.score > s.classify_threshold:
                batch.results.append(ClassificationResult(
                    content_id=item.id,
                    archetype_id=archetype.id,
                    confidence=confidence,
                ))
            elif confidence.score > s.candidate_threshold:
                name = suggest_archetype_name(item)
                boosted = confidence.model_copy(
                    update={"score": min(1.0, confidence.score + s.new_archetype_boost)}
                )
                batch.results.append(ClassificationResult(
                    content_id=item.id,
                    confidence=boosted,
                    is_new_archetype=True,
                    suggested_archetype_name=name,
                ))
                if name.lower() not in proposed:
                    proposed.add(name.lower())
                    batch.new_archetypes.append(_build_proposal(item, name, s))
            else:
                batch.unclassified.append(item.id)

        logger.info(
            "Classified %d items: %d matched, %d candidates, %d unclassified",
            len(items), len(batch.classified), len(batch.candidates), len(batch.unclassified),
        )
        return batch

    async def classify_single(
        self,
        item: ContentItem,
        archetypes: list[Archetype],
        embedding: Embedding | None = None,
    ) -> ClassificationResult:
        """Classify one item; an unclassified item comes back with no archetype and zero confidence."""
        batch = await self.classify([item], archetypes, [embedding] if embedding else None)
        if batch.results:
            return batch.results[0]
        return ClassificationResult(content_id=item.id)
