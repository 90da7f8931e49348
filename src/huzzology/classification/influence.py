"""Influence scoring for content and archetypes."""
from __future__ import annotations

import logging
from collections import Counter
from datetime import UTC, datetime, timedelta

from huzzology.classification.store import ContentStore
from huzzology.schemas.classification import Archetype, ContentItem
from huzzology.services.classification_settings import InfluenceSettings

logger = logging.getLogger(__name__)

# Spread score for content with no known creator.
ANONYMOUS_SPREAD = 0.1


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _saturate(value: float, ceiling: float) -> float:
    if ceiling <= 0:
        return 0.0
    return _clamp(value / ceiling)


def engagement_scores(items: list[ContentItem]) -> dict[str, float]:
    """Weighted engagement divided by the batch maximum."""
    highest = max((item.total_engagement for item in items), default=0)
    if highest <= 0:
        return {item.id: 0.0 for item in items}
    return {item.id: item.total_engagement / highest for item in items}


def spread_scores(items: list[ContentItem], saturation: float = 1000.0) -> dict[str, float]:
    """Favor creators who post less often within the batch, weighted by engagement."""
    posts = Counter(item.creator.username for item in items if item.creator)
    scores: dict[str, float] = {}
    for item in items:
        if item.creator is None:
            scores[item.id] = ANONYMOUS_SPREAD
            continue
        diversity = 1.0 / posts[item.creator.username]
        scores[item.id] = _clamp(0.5 * diversity + 0.5 * _saturate(item.total_engagement, saturation))
    return scores


def growth_scores(
    items: list[ContentItem],
    time_window_days: int,
    saturation: float = 1000.0,
    now: datetime | None = None,
) -> dict[str, float]:
    """Recency within the window blended with engagement; anything older than the window is 0."""
    now = now or datetime.now(UTC)
    window = timedelta(days=time_window_days)
    start = now - window
    scores: dict[str, float] = {}
    for item in items:
        ts = item.timestamp if item.timestamp.tzinfo else item.timestamp.replace(tzinfo=UTC)
        if ts < start:
            scores[item.id] = 0.0
            continue
        recency = _clamp((ts - start) / window)
        scores[item.id] = _clamp(0.6 * recency + 0.4 * _saturate(item.total_engagement, saturation))
    return scores


class InfluenceScorer:
    def __init__(
        self,
        store: ContentStore | None = None,
        settings: InfluenceSettings | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or InfluenceSettings()

    def score_content(
        self,
        archetype_id: str,
        items: list[ContentItem],
        settings: InfluenceSettings | None = None,
        now: datetime | None = None,
    ) -> dict[str, float]:
        """Per-content influence in [0, 1] for ``items`` of one archetype."""
        s = settings or self._settings
        if not items:
            return {}

        if s.method == "engagement":
            scores = engagement_scores(items)
        elif s.method == "spread":
            scores = spread_scores(items, s.engagement_saturation)
        elif s.method == "growth":
            scores = growth_scores(items, s.time_window_days, s.engagement_saturation, now)
        else:
            engagement = engagement_scores(items)
            spread = spread_scores(items, s.engagement_saturation)
            growth = growth_scores(items, s.time_window_days, s.engagement_saturation, now)
            scores = {
                item.id: _clamp(
                    s.engagement_weight * engagement[item.id]
                    + s.spread_weight * spread[item.id]
                    + s.growth_weight * growth[item.id]
                )
                for item in items
            }

        logger.debug("Scored %d items for archetype %s method=%s", len(scores), archetype_id, s.method)
        return scores

    async def score_archetype(
        self,
        archetype: Archetype,
        related_archetypes: list[Archetype] | None = None,
    ) -> float:
        """Saturating blend of content volume, average engagement and relationship count.

        Returns the neutral score when the store cannot be read.
        """
        s = self._settings
        if self._store is None:
            logger.warning("No content store; archetype %s gets neutral score", archetype.id)
            return s.neutral_archetype_score
        try:
            count = await self._store.count_content(archetype.id)
            avg_engagement = await self._store.average_engagement(archetype.id)
            related_ids = await self._store.list_relationships(archetype.id)
        except Exception as exc:
            logger.warning(
                "Influence data unavailable for archetype %s, using neutral %.2f: %s",
                archetype.id, s.neutral_archetype_score, exc,
            )
            return s.neutral_archetype_score

        if related_archetypes is not None:
            allowed = {a.id for a in related_archetypes}
            related_ids = [rid for rid in related_ids if rid in allowed]

        score = (
            0.4 * min(count / 100, 1.0)
            + 0.4 * _saturate(avg_engagement, s.engagement_saturation)
            + 0.2 * min(len(related_ids) / 10, 1.0)
        )
        return _clamp(score)
