"""Classification orchestrator - runs a content batch through the pipeline stages."""

from __future__ import annotations

import enum
import logging
import uuid

from huzzology.classification.classifier import ContentClassifier
from huzzology.classification.clustering import Clusterer, RandomSource
from huzzology.classification.embedding import EmbeddingGenerator
from huzzology.classification.identifier import ArchetypeIdentifier
from huzzology.classification.influence import InfluenceScorer
from huzzology.classification.prompts import SYSTEM_PROMPT
from huzzology.classification.sql_store import SqlContentStore
from huzzology.classification.store import ContentStore
from huzzology.config import Settings, get_settings
from huzzology.errors import ConfigurationError
from huzzology.models.content_example import EMBEDDING_DIMENSIONS
from huzzology.schemas.classification import (
    BatchClassificationResult,
    ContentItem,
    EmergingArchetype,
)
from huzzology.services.classification_settings import ClassificationSettings
from huzzology.services.llm_client import LLMClient, build_llm_client
from huzzology.services.providers import OpenAIEmbeddingProvider, OpenAITextGenerationProvider

logger = logging.getLogger(__name__)


class BatchPhase(str, enum.Enum):
    RECEIVED = "received"
    EMBEDDED = "embedded"
    CLUSTERED = "clustered"
    IDENTIFIED = "identified"
    CLASSIFIED = "classified"
    REPORTED = "reported"


class _BatchRun:
    """Tracks the phase of one batch for logging."""

    def __init__(self, kind: str, size: int) -> None:
        self.id = uuid.uuid4().hex[:8]
        self.kind = kind
        self.size = size
        self.phase = BatchPhase.RECEIVED
        logger.info("Batch %s (%s): %s %d items", self.id, kind, self.phase.value, size)

    def advance(self, phase: BatchPhase, detail: str = "") -> None:
        self.phase = phase
        logger.info("Batch %s (%s): %s %s", self.id, self.kind, phase.value, detail)

    def fail(self, exc: Exception) -> None:
        logger.error(
            "Batch %s (%s) failed after phase %s: %s", self.id, self.kind, self.phase.value, exc
        )


class ClassificationOrchestrator:
    """Entry points for classifying content, finding emerging archetypes and rescoring influence.

    Every call recomputes from its input; nothing is carried between batches except what is
    written to the store.
    """

    def __init__(
        self,
        store: ContentStore,
        embedding_generator: EmbeddingGenerator,
        clusterer: Clusterer,
        identifier: ArchetypeIdentifier,
        classifier: ContentClassifier,
        scorer: InfluenceScorer,
        llm_client: LLMClient | None = None,
    ) -> None:
        self._store = store
        self._embeddings = embedding_generator
        self._clusterer = clusterer
        self._identifier = identifier
        self._classifier = classifier
        self._scorer = scorer
        self._llm_client = llm_client

    async def process_content(self, items: list[ContentItem]) -> BatchClassificationResult:
        """Classify ``items`` against the stored archetypes.

        With no archetypes yet, every item is unclassified and the batch is mined for
        emerging archetypes instead.
        """
        run = _BatchRun("classify", len(items))
        try:
            await self._store.save_content(items)
            archetypes = await self._store.list_archetypes()
            if not archetypes:
                logger.info("No existing archetypes; identifying emerging archetypes instead")
                emerging = await self._identify(items, run)
                result = BatchClassificationResult(
                    unclassified=[item.id for item in items],
                    emerging_archetypes=emerging,
                )
                run.advance(BatchPhase.REPORTED, f"{len(emerging)} emerging archetypes")
                return result

            embeddings = await self._embeddings.embed(items)
            await self._store.save_embeddings(embeddings)
            run.advance(BatchPhase.EMBEDDED, f"{len(embeddings)} embeddings")

            result = await self._classifier.classify(items, archetypes, embeddings)
            run.advance(
                BatchPhase.CLASSIFIED,
                f"{len(result.classified)} matched, {len(result.candidates)} candidates, "
                f"{len(result.unclassified)} unclassified",
            )

            await self._store.save_classifications(result.results)
            if result.new_archetypes:
                await self._store.save_archetype_proposals(result.new_archetypes)
        except Exception as exc:
            run.fail(exc)
            raise

        run.advance(BatchPhase.REPORTED, f"{len(result.new_archetypes)} proposals")
        return result

    async def identify_emerging_archetypes(self, items: list[ContentItem]) -> list[EmergingArchetype]:
        run = _BatchRun("emerging", len(items))
        try:
            await self._store.save_content(items)
            emerging = await self._identify(items, run)
        except Exception as exc:
            run.fail(exc)
            raise
        run.advance(BatchPhase.REPORTED, f"{len(emerging)} emerging archetypes")
        return emerging

    async def _identify(self, items: list[ContentItem], run: _BatchRun) -> list[EmergingArchetype]:
        embeddings = await self._embeddings.embed(items)
        await self._store.save_embeddings(embeddings)
        run.advance(BatchPhase.EMBEDDED, f"{len(embeddings)} embeddings")

        clusters = self._clusterer.cluster(embeddings)
        run.advance(BatchPhase.CLUSTERED, f"{len(clusters)} clusters")
        if not clusters:
            return []

        existing = await self._store.list_archetypes()
        content_by_id = {item.id: item for item in items}
        emerging = await self._identifier.identify(clusters, content_by_id, existing)
        run.advance(BatchPhase.IDENTIFIED, f"{len(emerging)} emerging archetypes")
        if emerging:
            await self._store.save_emerging_archetypes(emerging)
        return emerging

    async def update_influence_scores(self) -> dict[str, float]:
        """Rescore every archetype against the others and write the scores back."""
        archetypes = await self._store.list_archetypes()
        scores: dict[str, float] = {}
        for archetype in archetypes:
            related = [a for a in archetypes if a.id != archetype.id]
            score = await self._scorer.score_archetype(archetype, related)
            await self._store.update_influence_score(archetype.id, score)
            scores[archetype.id] = score
        logger.info("Updated influence scores for %d archetypes", len(scores))
        return scores

    async def close(self) -> None:
        if self._llm_client is not None:
            await self._llm_client.close()


def build_orchestrator(
    store: ContentStore,
    classification: ClassificationSettings | None = None,
    *,
    settings: Settings | None = None,
    random_source: RandomSource | None = None,
    llm_client: LLMClient | None = None,
) -> ClassificationOrchestrator:
    """Wire the pipeline against OpenAI-compatible providers.

    Raises ConfigurationError when no API key is configured, or when a database-backed
    store is paired with an embedding size the content_examples column cannot hold.
    """
    settings = settings or get_settings()
    if isinstance(store, SqlContentStore) and settings.embedding_dimensions != EMBEDDING_DIMENSIONS:
        raise ConfigurationError(
            f"EMBEDDING_DIMENSIONS={settings.embedding_dimensions} does not match the "
            f"content_examples.embedding column size {EMBEDDING_DIMENSIONS}"
        )
    cs = classification or ClassificationSettings()
    client = llm_client or build_llm_client(settings)
    embedding_generator = EmbeddingGenerator(
        OpenAIEmbeddingProvider(client),
        cs.embedding,
        dimensions=settings.embedding_dimensions,
    )
    return ClassificationOrchestrator(
        store=store,
        embedding_generator=embedding_generator,
        clusterer=Clusterer(cs.clustering, random_source),
        identifier=ArchetypeIdentifier(
            OpenAITextGenerationProvider(client, system_prompt=SYSTEM_PROMPT), cs.identifier
        ),
        classifier=ContentClassifier(embedding_generator, cs.classifier),
        scorer=InfluenceScorer(store, cs.influence),
        llm_client=client,
    )
