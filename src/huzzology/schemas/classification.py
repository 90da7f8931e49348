"""Pydantic schemas for content, embeddings, clusters and classification output."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _now() -> datetime:
    return datetime.now(UTC)


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def dedupe_keywords(values: list[str]) -> list[str]:
    """Strip, drop empties and case-insensitive duplicates, keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for raw in values:
        word = str(raw).strip()
        key = word.lower()
        if not word or key in seen:
            continue
        seen.add(key)
        out.append(word)
    return out


class Creator(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    follower_count: int | None = None


class EngagementMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    likes: int = 0
    shares: int = 0
    comments: int = 0

    @property
    def weighted_total(self) -> int:
        """Shares count triple and comments double."""
        return self.likes + 3 * self.shares + 2 * self.comments


class ContentItem(BaseModel):
    """A piece of short-form content. Never mutated by the pipeline."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    platform: str
    text: str = ""
    caption: str | None = None
    hashtags: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_now)
    creator: Creator | None = None
    engagement: EngagementMetrics | None = Field(default=None, alias="engagement_metrics")
    metadata: dict = Field(default_factory=dict)

    @property
    def total_engagement(self) -> int:
        return self.engagement.weighted_total if self.engagement else 0

    def prepared_text(self) -> str:
        """Raw text, caption and space-joined hashtags, empties dropped."""
        parts = [self.text or "", self.caption or "", " ".join(self.hashtags)]
        return " ".join(p.strip() for p in parts if p and p.strip()).strip()


class Embedding(BaseModel):
    content_id: str
    vector: list[float]
    model_name: str
    generated_at: datetime = Field(default_factory=_now)

    @property
    def dimensions(self) -> int:
        return len(self.vector)


class Cluster(BaseModel):
    """A transient group of similar content produced by one clustering run."""

    id: str
    member_ids: list[str] = Field(min_length=1)
    centroid: list[float]
    cohesion: float = Field(ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=_now)

    @property
    def size(self) -> int:
        return len(self.member_ids)


class ClusterAssignment(BaseModel):
    cluster_id: str
    similarity: float


class Archetype(BaseModel):
    """A persisted archetype as read from the content store."""

    id: str
    label: str = Field(min_length=1)
    description: str = ""
    keywords: list[str] = Field(default_factory=list)
    color: str = "#888888"
    influence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    platforms_seen: list[str] = Field(default_factory=list)

    @field_validator("keywords")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return dedupe_keywords(value)

    def embedding_text(self) -> str:
        """Label, description and keywords joined for embedding."""
        parts = [self.label, self.description, " ".join(self.keywords)]
        return " ".join(p.strip() for p in parts if p and p.strip()).strip()


class ArchetypeProposal(BaseModel):
    """A not-yet-persisted archetype suggested by the classifier."""

    label: str = Field(min_length=1)
    description: str
    keywords: list[str] = Field(min_length=1)
    color: str
    influence_score: float = 0.5
    platforms: list[str] = Field(default_factory=list)

    @field_validator("keywords")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        deduped = dedupe_keywords(value)
        if not deduped:
            raise ValueError("an archetype proposal needs at least one keyword")
        return deduped


class ClassificationConfidence(BaseModel):
    score: float = 0.0
    textual_match: float = 0.0
    hashtag_match: float = 0.0
    contextual_relevance: float = 0.0

    @field_validator("score", "textual_match", "hashtag_match", "contextual_relevance")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return _clamp_unit(value)


class ClassificationResult(BaseModel):
    content_id: str
    archetype_id: str | None = None
    confidence: ClassificationConfidence = Field(default_factory=ClassificationConfidence)
    is_new_archetype: bool = False
    suggested_archetype_name: str | None = None
    timestamp: datetime = Field(default_factory=_now)


class EmergingArchetype(BaseModel):
    """A proposed archetype derived from a cohesive content cluster."""

    id: str
    suggested_label: str = Field(min_length=1)
    suggested_description: str
    keyword_candidates: list[str] = Field(min_length=1)
    example_content_ids: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    first_detected: datetime = Field(default_factory=_now)
    last_updated: datetime = Field(default_factory=_now)

    @field_validator("keyword_candidates")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        deduped = dedupe_keywords(value)
        if not deduped:
            raise ValueError("an emerging archetype needs at least one keyword")
        return deduped


class BatchClassificationResult(BaseModel):
    """Outcome of classifying one batch.

    ``results`` holds confident matches and new-archetype candidates;
    ``unclassified`` holds the ids of everything else.
    """

    results: list[ClassificationResult] = Field(default_factory=list)
    unclassified: list[str] = Field(default_factory=list)
    new_archetypes: list[ArchetypeProposal] = Field(default_factory=list)
    emerging_archetypes: list[EmergingArchetype] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_now)

    @property
    def classified(self) -> list[ClassificationResult]:
        return [r for r in self.results if not r.is_new_archetype]

    @property
    def candidates(self) -> list[ClassificationResult]:
        return [r for r in self.results if r.is_new_archetype]
