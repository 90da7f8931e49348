"""ContentStore over the archetypes / content_examples tables."""
from __future__ import annotations

import logging
import re
import uuid

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from huzzology.models import ArchetypeRecord, ArchetypeRelationship, ContentExample
from huzzology.schemas.classification import (
    Archetype,
    ArchetypeProposal,
    ClassificationResult,
    ContentItem,
    Embedding,
    EmergingArchetype,
    EngagementMetrics,
)

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "archetype"


def _to_schema(row: ArchetypeRecord) -> Archetype:
    metadata = row.metadata_ or {}
    return Archetype(
        id=str(row.id),
        label=row.name,
        description=row.description or "",
        keywords=list(row.keywords or []),
        color=row.color or "#888888",
        influence_score=row.influence_score,
        platforms_seen=list(metadata.get("platforms", [])),
    )


class SqlContentStore:
    """Reads and writes through one AsyncSession; the caller owns commit and rollback."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_archetypes(self) -> list[Archetype]:
        result = await self._session.execute(
            select(ArchetypeRecord)
            .where(ArchetypeRecord.status == "active")
            .order_by(ArchetypeRecord.name)
        )
        return [_to_schema(row) for row in result.scalars().all()]

    async def list_relationships(self, archetype_id: str) -> list[str]:
        uid = uuid.UUID(archetype_id)
        result = await self._session.execute(
            select(ArchetypeRelationship).where(
                or_(ArchetypeRelationship.source_id == uid, ArchetypeRelationship.target_id == uid)
            )
        )
        related = {
            str(rel.target_id if rel.source_id == uid else rel.source_id)
            for rel in result.scalars().all()
        }
        return sorted(related)

    async def count_content(self, archetype_id: str) -> int:
        result = await self._session.execute(
            select(func.count(ContentExample.id)).where(
                ContentExample.archetype_id == uuid.UUID(archetype_id),
                ContentExample.is_new_archetype == False,
            )
        )
        return int(result.scalar() or 0)

    async def average_engagement(self, archetype_id: str) -> float:
        result = await self._session.execute(
            select(ContentExample.engagement_metrics).where(
                ContentExample.archetype_id == uuid.UUID(archetype_id),
                ContentExample.is_new_archetype == False,
            )
        )
        totals = [EngagementMetrics(**(m or {})).weighted_total for m in result.scalars().all()]
        if not totals:
            return 0.0
        return sum(totals) / len(totals)

    async def save_content(self, items: list[ContentItem]) -> None:
        for item in items:
            row = await self._session.get(ContentExample, item.id)
            if row is None:
                row = ContentExample(id=item.id)
                self._session.add(row)
            row.platform = item.platform
            row.content_text = item.text
            row.caption = item.caption
            row.hashtags = list(item.hashtags)
            row.engagement_metrics = item.engagement.model_dump() if item.engagement else {}
            row.creator_data = item.creator.model_dump() if item.creator else {}
            row.content_created_at = item.timestamp
        await self._session.flush()

    async def save_embeddings(self, embeddings: list[Embedding]) -> None:
        for emb in embeddings:
            row = await self._session.get(ContentExample, emb.content_id)
            if row is None:
                logger.warning("No content row for embedding %s, skipping", emb.content_id)
                continue
            row.embedding = emb.vector
            row.embedding_model = emb.model_name

    async def save_classifications(self, results: list[ClassificationResult]) -> None:
        for result in results:
            row = await self._session.get(ContentExample, result.content_id)
            if row is None:
                logger.warning("No content row for classification %s, skipping", result.content_id)
                continue
            row.archetype_id = uuid.UUID(result.archetype_id) if result.archetype_id else None
            row.classification_results = result.model_dump(mode="json")
            row.confidence_score = result.confidence.score
            row.is_new_archetype = result.is_new_archetype
            row.suggested_archetype_name = result.suggested_archetype_name

    async def _slug_taken(self, slug: str) -> bool:
        result = await self._session.execute(
            select(ArchetypeRecord.id).where(ArchetypeRecord.slug == slug)
        )
        return result.scalar() is not None

    async def save_archetype_proposals(self, proposals: list[ArchetypeProposal]) -> None:
        seen: set[str] = set()
        for proposal in proposals:
            slug = slugify(proposal.label)
            if slug in seen or await self._slug_taken(slug):
                logger.info("Archetype %r already exists, skipping proposal", proposal.label)
                continue
            seen.add(slug)
            self._session.add(ArchetypeRecord(
                name=proposal.label,
                slug=slug,
                description=proposal.description,
                keywords=list(proposal.keywords),
                color=proposal.color,
                metadata_={"source": "classifier", "platforms": list(proposal.platforms)},
                influence_score=proposal.influence_score,
                status="pending",
                moderation_status="pending",
            ))

    async def save_emerging_archetypes(self, proposals: list[EmergingArchetype]) -> None:
        seen: set[str] = set()
        for proposal in proposals:
            slug = slugify(proposal.suggested_label)
            if slug in seen or await self._slug_taken(slug):
                logger.info("Archetype %r already exists, skipping emerging proposal", proposal.suggested_label)
                continue
            seen.add(slug)
            self._session.add(ArchetypeRecord(
                name=proposal.suggested_label,
                slug=slug,
                description=proposal.suggested_description,
                keywords=list(proposal.keyword_candidates),
                metadata_={
                    "source": "clustering",
                    "emerging_id": proposal.id,
                    "example_content_ids": list(proposal.example_content_ids),
                    "confidence": proposal.confidence,
                    "first_detected": proposal.first_detected.isoformat(),
                },
                status="pending",
                moderation_status="pending",
            ))

    async def update_influence_score(self, archetype_id: str, score: float) -> None:
        await self._session.execute(
            update(ArchetypeRecord)
            .where(ArchetypeRecord.id == uuid.UUID(archetype_id))
            .values(influence_score=score, updated_at=func.now())
        )
