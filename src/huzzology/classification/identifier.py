"""Archetype identification stage - decide which clusters are new archetypes and name them."""
from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from huzzology.classification.prompts import build_label_prompt, build_similarity_prompt
from huzzology.errors import ProviderResult, capture_provider_call
from huzzology.schemas.classification import (
    Archetype,
    Cluster,
    ContentItem,
    EmergingArchetype,
    dedupe_keywords,
)
from huzzology.services.classification_settings import IdentifierSettings
from huzzology.services.llm_client import complete_with_validation, strip_json_fencing
from huzzology.services.providers import CompletionOptions, TextGenerationProvider

logger = logging.getLogger(__name__)

PLACEHOLDER_DESCRIPTION = "A potential new cultural archetype or aesthetic trend"
PLACEHOLDER_KEYWORDS = ["trend", "aesthetic", "emerging"]


@dataclass(frozen=True)
class ParsedLabel:
    label: str
    description: str
    keywords: list[str] = field(default_factory=list)


def placeholder_label(cluster: Cluster) -> ParsedLabel:
    suffix = cluster.id.removeprefix("cluster-")
    return ParsedLabel(
        label=f"Emerging Trend {suffix}",
        description=PLACEHOLDER_DESCRIPTION,
        keywords=list(PLACEHOLDER_KEYWORDS),
    )


def parse_similarity(text: str) -> float:
    """Parse a bare decimal in [0, 1]; anything else is a ValueError."""
    score = float(strip_json_fencing(text).strip())
    if math.isnan(score) or score < 0.0 or score > 1.0:
        raise ValueError(f"similarity score out of range: {text!r}")
    return score


def _validate_label(data: Any) -> None:
    if not isinstance(data, dict):
        raise ValueError("Expected JSON object")
    label = data.get("label")
    if not isinstance(label, str) or not label.strip():
        raise ValueError("Field 'label' must be a non-empty string")
    if not isinstance(data.get("description", ""), str):
        raise ValueError("Field 'description' must be a string")
    keywords = data.get("keywords")
    if not isinstance(keywords, list) or not dedupe_keywords([str(k) for k in keywords]):
        raise ValueError("Field 'keywords' must be a non-empty array")


class ArchetypeIdentifier:
    """Turns cohesive, novel clusters into EmergingArchetype proposals.

    Text generation failures never discard a cluster: similarity degrades to a neutral
    score and labels degrade to a placeholder.
    """

    def __init__(
        self,
        provider: TextGenerationProvider,
        settings: IdentifierSettings | None = None,
    ) -> None:
        self._provider = provider
        self._settings = settings or IdentifierSettings()

    def sample_content(self, cluster: Cluster, content_by_id: Mapping[str, ContentItem]) -> list[ContentItem]:
        """The first ``sample_size`` members that have content."""
        samples = [content_by_id[cid] for cid in cluster.member_ids if cid in content_by_id]
        return samples[: self._settings.sample_size]

    async def check_similarity(self, samples: list[ContentItem], archetype: Archetype) -> ProviderResult[float]:
        prompt = build_similarity_prompt(samples, archetype)
        opts = CompletionOptions(temperature=self._settings.similarity_temperature)

        async def score() -> float:
            return parse_similarity(await self._provider.complete(prompt, opts))

        return await capture_provider_call(score())

    async def should_form_new_archetype(
        self,
        cluster: Cluster,
        content_by_id: Mapping[str, ContentItem],
        existing_archetypes: list[Archetype],
    ) -> bool:
        if not existing_archetypes:
            return True
        if cluster.cohesion <= self._settings.cohesion_threshold:
            return False

        samples = self.sample_content(cluster, content_by_id)
        for archetype in existing_archetypes:
            result = await self.check_similarity(samples, archetype)
            if not result.ok:
                logger.warning(
                    "Similarity check against archetype %s failed, using neutral %.2f: %s",
                    archetype.id, self._settings.neutral_similarity, result.error,
                )
            similarity = result.unwrap_or(self._settings.neutral_similarity)
            if similarity >= self._settings.similarity_threshold:
                logger.info(
                    "Cluster %s matches existing archetype %s (similarity=%.2f)",
                    cluster.id, archetype.id, similarity,
                )
                return False
        return True

    async def generate_label(self, cluster: Cluster, content_by_id: Mapping[str, ContentItem]) -> ParsedLabel:
        samples = self.sample_content(cluster, content_by_id)
        prompt = build_label_prompt(samples)
        opts = CompletionOptions(temperature=self._settings.label_temperature, json_mode=True)

        async def complete(p: str) -> str:
            return await self._provider.complete(p, opts)

        result = await capture_provider_call(complete_with_validation(complete, prompt, _validate_label))
        if not result.ok:
            logger.warning("Label generation failed for cluster %s, using placeholder: %s", cluster.id, result.error)
            return placeholder_label(cluster)

        data = result.value
        return ParsedLabel(
            label=data["label"].strip(),
            description=str(data.get("description", "")).strip() or PLACEHOLDER_DESCRIPTION,
            keywords=dedupe_keywords([str(k) for k in data["keywords"]]),
        )

    async def identify(
        self,
        clusters: list[Cluster],
        content_by_id: Mapping[str, ContentItem],
        existing_archetypes: list[Archetype] | None = None,
    ) -> list[EmergingArchetype]:
        existing = existing_archetypes or []
        logger.info("Analyzing %d clusters against %d existing archetypes", len(clusters), len(existing))
        emerging: list[EmergingArchetype] = []
        for cluster in clusters:
            if cluster.size < self._settings.cluster_size_threshold:
                logger.debug(
                    "Skipping cluster %s - too small (%d < %d)",
                    cluster.id, cluster.size, self._settings.cluster_size_threshold,
                )
                continue
            if not await self.should_form_new_archetype(cluster, content_by_id, existing):
                continue

            parsed = await self.generate_label(cluster, content_by_id)
            now = datetime.now(UTC)
            emerging.append(EmergingArchetype(
                id=f"emerging-{uuid.uuid4().hex[:8]}",
                suggested_label=parsed.label,
                suggested_description=parsed.description,
                keyword_candidates=parsed.keywords,
                example_content_ids=cluster.member_ids[: self._settings.sample_size],
                confidence=cluster.cohesion,
                first_detected=now,
                last_updated=now,
            ))
            logger.info("Cluster %s identified as emerging archetype %r", cluster.id, parsed.label)

        logger.info("Identified %d emerging archetypes", len(emerging))
        return emerging
