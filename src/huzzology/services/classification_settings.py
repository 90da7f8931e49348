"""Classification settings -- typed Pydantic models backed by the classification_settings table."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from huzzology.models.classification_setting import ClassificationSetting

logger = logging.getLogger(__name__)

InfluenceMethod = Literal["engagement", "spread", "growth", "hybrid"]


class EmbeddingSettings(BaseModel):
    batch_size: int = Field(default=100, ge=1)
    max_concurrent_batches: int = Field(default=1, ge=1)


class ClusteringSettings(BaseModel):
    method: Literal["kmeans"] = "kmeans"
    min_cluster_size: int = Field(default=5, ge=1)
    max_clusters: int = Field(default=20, ge=1)
    iterations: int = Field(default=100, ge=1)
    # Centroid cosine similarity at or above which two clusters are merged; None disables.
    merge_threshold: float | None = Field(default=0.95, ge=0.0, le=1.0)


class IdentifierSettings(BaseModel):
    cluster_size_threshold: int = Field(default=10, ge=1)
    cohesion_threshold: float = 0.7
    similarity_threshold: float = 0.85
    sample_size: int = Field(default=5, ge=1)
    neutral_similarity: float = 0.5
    label_temperature: float = 0.7
    similarity_temperature: float = 0.2


class ClassifierSettings(BaseModel):
    similarity_weight: float = 0.6
    keyword_weight: float = 0.2
    hashtag_weight: float = 0.2
    classify_threshold: float = 0.6
    candidate_threshold: float = 0.3
    new_archetype_boost: float = 0.1
    fallback_keywords: list[str] = Field(default=["trend", "style", "fashion"])


class InfluenceSettings(BaseModel):
    method: InfluenceMethod = "hybrid"
    time_window_days: int = Field(default=90, ge=1)
    engagement_weight: float = 0.4
    spread_weight: float = 0.3
    growth_weight: float = 0.3
    engagement_saturation: float = 1000.0
    neutral_archetype_score: float = 0.5


class ClassificationSettings(BaseModel):
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    clustering: ClusteringSettings = Field(default_factory=ClusteringSettings)
    identifier: IdentifierSettings = Field(default_factory=IdentifierSettings)
    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)
    influence: InfluenceSettings = Field(default_factory=InfluenceSettings)


def merge_classification_overrides(overrides: Mapping[str, Any]) -> ClassificationSettings:
    """Merge ``{"group.field": value}`` overrides over the defaults.

    Unknown groups are ignored; values are validated by the group model.
    """
    nested: dict[str, dict[str, Any]] = {}
    for key, value in overrides.items():
        parts = str(key).split(".")
        if len(parts) != 2:
            logger.warning("Ignoring malformed classification setting key %r", key)
            continue
        group, field = parts
        nested.setdefault(group, {})[field] = value

    merged = ClassificationSettings().model_dump()
    for group, fields in nested.items():
        if group in merged:
            merged[group].update(fields)
        else:
            logger.warning("Ignoring unknown classification settings group %r", group)
    return ClassificationSettings(**merged)


async def load_classification_settings(session: AsyncSession) -> ClassificationSettings:
    """Load settings from the classification_settings table, merged with defaults.

    Rows store ``{"value": <json>}`` under dotted keys like ``clustering.min_cluster_size``.
    """
    result = await session.execute(select(ClassificationSetting))
    overrides: dict[str, Any] = {}
    for row in result.scalars().all():
        value = row.value
        if isinstance(value, dict) and "value" in value:
            value = value["value"]
        overrides[row.key] = value
    return merge_classification_overrides(overrides)


def classification_settings_schema() -> dict[str, Any]:
    """Return the full JSON Schema for ClassificationSettings with defaults."""
    return ClassificationSettings.model_json_schema()
