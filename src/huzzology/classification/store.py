"""ContentStore contract and the dict-backed implementation."""
from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from huzzology.schemas.classification import (
    Archetype,
    ArchetypeProposal,
    ClassificationResult,
    ContentItem,
    Embedding,
    EmergingArchetype,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class ContentStore(Protocol):
    """Persistence seen by the pipeline: archetypes in, classification output out."""

    async def list_archetypes(self) -> list[Archetype]: ...

    async def list_relationships(self, archetype_id: str) -> list[str]:
        """Ids of archetypes related to ``archetype_id`` in either direction."""
        ...

    async def count_content(self, archetype_id: str) -> int: ...

    async def average_engagement(self, archetype_id: str) -> float: ...

    async def save_content(self, items: list[ContentItem]) -> None: ...

    async def save_embeddings(self, embeddings: list[Embedding]) -> None: ...

    async def save_classifications(self, results: list[ClassificationResult]) -> None: ...

    async def save_archetype_proposals(self, proposals: list[ArchetypeProposal]) -> None: ...

    async def save_emerging_archetypes(self, proposals: list[EmergingArchetype]) -> None: ...

    async def update_influence_score(self, archetype_id: str, score: float) -> None: ...


class InMemoryContentStore:
    """Keeps everything in dicts. Used for dry runs and tests."""

    def __init__(
        self,
        archetypes: list[Archetype] | None = None,
        relationships: list[tuple[str, str]] | None = None,
    ) -> None:
        self.archetypes: dict[str, Archetype] = {a.id: a for a in archetypes or []}
        self.relationships: dict[str, set[str]] = {}
        for source, target in relationships or []:
            self.add_relationship(source, target)
        self.content: dict[str, ContentItem] = {}
        self.embeddings: dict[str, Embedding] = {}
        self.classifications: dict[str, ClassificationResult] = {}
        self.proposals: list[ArchetypeProposal] = []
        self.emerging: list[EmergingArchetype] = []

    def add_relationship(self, source: str, target: str) -> None:
        if source == target:
            raise ValueError("An archetype cannot be related to itself")
        self.relationships.setdefault(source, set()).add(target)
        self.relationships.setdefault(target, set()).add(source)

    def _classified_items(self, archetype_id: str) -> list[ContentItem]:
        return [
            self.content[r.content_id]
            for r in self.classifications.values()
            if r.archetype_id == archetype_id and not r.is_new_archetype and r.content_id in self.content
        ]

    async def list_archetypes(self) -> list[Archetype]:
        return list(self.archetypes.values())

    async def list_relationships(self, archetype_id: str) -> list[str]:
        return sorted(self.relationships.get(archetype_id, set()))

    async def count_content(self, archetype_id: str) -> int:
        return len(self._classified_items(archetype_id))

    async def average_engagement(self, archetype_id: str) -> float:
        items = self._classified_items(archetype_id)
        if not items:
            return 0.0
        return sum(item.total_engagement for item in items) / len(items)

    async def save_content(self, items: list[ContentItem]) -> None:
        for item in items:
            self.content[item.id] = item

    async def save_embeddings(self, embeddings: list[Embedding]) -> None:
        for emb in embeddings:
            self.embeddings[emb.content_id] = emb

    async def save_classifications(self, results: list[ClassificationResult]) -> None:
        for result in results:
            self.classifications[result.content_id] = result

    async def save_archetype_proposals(self, proposals: list[ArchetypeProposal]) -> None:
        known = {p.label.lower() for p in self.proposals}
        for proposal in proposals:
            if proposal.label.lower() in known:
                logger.debug("Skipping duplicate proposal %r", proposal.label)
                continue
            known.add(proposal.label.lower())
            self.proposals.append(proposal)

    async def save_emerging_archetypes(self, proposals: list[EmergingArchetype]) -> None:
        self.emerging.extend(proposals)

    async def update_influence_score(self, archetype_id: str, score: float) -> None:
        archetype = self.archetypes.get(archetype_id)
        if archetype is None:
            raise KeyError(f"Unknown archetype {archetype_id}")
        self.archetypes[archetype_id] = archetype.model_copy(update={"influence_score": score})
