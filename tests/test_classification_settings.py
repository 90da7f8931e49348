"""Tests for classification settings and DB overrides."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from huzzology.models import ClassificationSetting
from huzzology.services.classification_settings import (
    ClassificationSettings,
    ClusteringSettings,
    classification_settings_schema,
    load_classification_settings,
    merge_classification_overrides,
)


def test_defaults_match_documented_tuning_constants():
    s = ClassificationSettings()
    assert s.embedding.batch_size == 100
    assert s.clustering.min_cluster_size == 5
    assert s.clustering.max_clusters == 20
    assert s.clustering.iterations == 100
    assert s.identifier.cluster_size_threshold == 10
    assert s.identifier.cohesion_threshold == 0.7
    assert s.identifier.similarity_threshold == 0.85
    assert (s.classifier.similarity_weight, s.classifier.keyword_weight, s.classifier.hashtag_weight) == (0.6, 0.2, 0.2)
    assert (s.classifier.candidate_threshold, s.classifier.classify_threshold) == (0.3, 0.6)
    assert s.influence.method == "hybrid"
    assert s.influence.time_window_days == 90
    assert (s.influence.engagement_weight, s.influence.spread_weight, s.influence.growth_weight) == (0.4, 0.3, 0.3)


def test_only_kmeans_is_accepted():
    with pytest.raises(ValidationError):
        ClusteringSettings(method="dbscan")


def test_merge_overrides_applies_known_keys_and_ignores_junk():
    s = merge_classification_overrides({
        "clustering.min_cluster_size": 3,
        "classifier.classify_threshold": 0.7,
        "nonsense": 1,
        "unknown_group.value": 2,
    })
    assert s.clustering.min_cluster_size == 3
    assert s.classifier.classify_threshold == 0.7
    assert s.identifier.cluster_size_threshold == 10


def test_merge_overrides_validates_values():
    with pytest.raises(ValidationError):
        merge_classification_overrides({"embedding.batch_size": 0})


@pytest.mark.asyncio
async def test_load_classification_settings_from_rows():
    rows = [
        ClassificationSetting(key="influence.time_window_days", value={"value": 30}),
        ClassificationSetting(key="clustering.merge_threshold", value={"value": None}),
    ]
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    session = AsyncMock()
    session.execute.return_value = result

    s = await load_classification_settings(session)

    assert s.influence.time_window_days == 30
    assert s.clustering.merge_threshold is None


def test_schema_lists_groups():
    schema = classification_settings_schema()
    assert set(schema["properties"]) == {"embedding", "clustering", "identifier", "classifier", "influence"}
