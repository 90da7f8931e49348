"""K-means clustering of content embeddings."""
from __future__ import annotations

import hashlib
import logging
import math
import random
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from huzzology.classification import vector_math
from huzzology.errors import DataError
from huzzology.schemas.classification import Cluster, ClusterAssignment, Embedding
from huzzology.services.classification_settings import ClusteringSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixedSeed:
    """Reproducible randomness: every clustering run starts from the same seed."""

    seed: int

    def rng(self) -> random.Random:
        return random.Random(self.seed)


@dataclass(frozen=True)
class SystemEntropy:
    """Fresh OS entropy for every clustering run."""

    def rng(self) -> random.Random:
        return random.Random()


RandomSource = FixedSeed | SystemEntropy


def determine_cluster_count(n: int, settings: ClusteringSettings) -> int:
    """ceil(sqrt(n/2)) clamped to [2, n // min_cluster_size], never above max_clusters or n."""
    if n <= 0:
        return 0
    suggested = math.ceil(math.sqrt(n / 2))
    upper = min(settings.max_clusters, n // settings.min_cluster_size)
    k = max(2, min(suggested, upper))
    return min(k, settings.max_clusters, n)


def _cluster_id(member_ids: Sequence[str]) -> str:
    digest = hashlib.sha256(",".join(member_ids).encode()).hexdigest()
    return f"cluster-{digest[:8]}"


def _nearest_centroid(vector: Sequence[float], centroids: list[list[float]]) -> int:
    # Strict comparison: ties go to the lowest index.
    best_index, best_distance = 0, math.inf
    for i, c in enumerate(centroids):
        d = vector_math.squared_euclidean_distance(vector, c)
        if d < best_distance:
            best_index, best_distance = i, d
    return best_index


def _seed_centroids(vectors: list[list[float]], k: int, rng: random.Random) -> list[list[float]]:
    """K-means++ seeding: later seeds are drawn proportionally to squared distance."""
    n = len(vectors)
    centroids = [list(vectors[rng.randrange(n)])]
    while len(centroids) < k:
        distances = [
            min(vector_math.squared_euclidean_distance(v, c) for c in centroids) for v in vectors
        ]
        total = sum(distances)
        if total <= 0:
            centroids.append(list(vectors[rng.randrange(n)]))
            continue
        target = rng.random() * total
        cum = 0.0
        chosen = n - 1
        for j, d in enumerate(distances):
            cum += d
            if cum > target:
                chosen = j
                break
        centroids.append(list(vectors[chosen]))
    return centroids


def _recompute_centroids(
    vectors: list[list[float]], assignments: list[int], k: int, rng: random.Random
) -> list[list[float]]:
    dim = len(vectors[0])
    sums = [[0.0] * dim for _ in range(k)]
    counts = [0] * k
    for vec, idx in zip(vectors, assignments):
        counts[idx] += 1
        row = sums[idx]
        for d, x in enumerate(vec):
            row[d] += x
    centroids: list[list[float]] = []
    for idx in range(k):
        if counts[idx] == 0:
            # Empty centroid: reseed on a uniformly random point.
            centroids.append(list(vectors[rng.randrange(len(vectors))]))
        else:
            centroids.append([s / counts[idx] for s in sums[idx]])
    return centroids


def _merge_similar_groups(
    groups: list[list[int]], vectors: list[list[float]], threshold: float
) -> list[list[int]]:
    """Merge the most similar pair of groups until no centroid pair reaches ``threshold``."""
    groups = [sorted(g) for g in groups]
    while len(groups) > 1:
        means = [vector_math.centroid([vectors[i] for i in g]) for g in groups]
        best: tuple[int, int] | None = None
        best_sim = threshold
        for a in range(len(groups)):
            for b in range(a + 1, len(groups)):
                sim = vector_math.cosine_similarity(means[a], means[b])
                if sim >= best_sim and (best is None or sim > best_sim):
                    best, best_sim = (a, b), sim
        if best is None:
            break
        a, b = best
        logger.debug("Merging clusters of %d and %d members (sim=%.3f)", len(groups[a]), len(groups[b]), best_sim)
        groups[a] = sorted(groups[a] + groups[b])
        del groups[b]
    return groups


class Clusterer:
    """Partitions embeddings into clusters with K-means and K-means++ seeding."""

    def __init__(
        self,
        settings: ClusteringSettings | None = None,
        random_source: RandomSource | None = None,
    ) -> None:
        self._settings = settings or ClusteringSettings()
        self._random_source: RandomSource = random_source or SystemEntropy()

    @staticmethod
    def _validated_vectors(embeddings: list[Embedding]) -> list[list[float]]:
        dim = len(embeddings[0].vector)
        if dim == 0:
            raise DataError(f"Zero-length embedding for content {embeddings[0].content_id}")
        seen: set[str] = set()
        for emb in embeddings:
            if len(emb.vector) != dim:
                raise DataError(
                    f"Embedding dimension mismatch for content {emb.content_id}: {len(emb.vector)} != {dim}"
                )
            if emb.content_id in seen:
                raise DataError(f"Duplicate embedding for content {emb.content_id}")
            seen.add(emb.content_id)
        return [list(emb.vector) for emb in embeddings]

    def _build_cluster(self, member_idx: list[int], embeddings: list[Embedding], vectors: list[list[float]], created_at: datetime) -> Cluster:
        member_ids = [embeddings[i].content_id for i in member_idx]
        members = [vectors[i] for i in member_idx]
        return Cluster(
            id=_cluster_id(member_ids),
            member_ids=member_ids,
            centroid=vector_math.centroid(members),
            cohesion=vector_math.mean_pairwise_cosine(members),
            created_at=created_at,
        )

    def cluster(
        self,
        embeddings: list[Embedding],
        settings: ClusteringSettings | None = None,
    ) -> list[Cluster]:
        s = settings or self._settings
        if not embeddings:
            logger.info("No embeddings provided for clustering")
            return []

        vectors = self._validated_vectors(embeddings)
        n = len(vectors)
        created_at = datetime.now(UTC)
        k = determine_cluster_count(n, s)
        if k <= 1:
            logger.info("Not enough data for K-means (n=%d), returning a single cluster", n)
            single = self._build_cluster(list(range(n)), embeddings, vectors, created_at)
            return [single.model_copy(update={"cohesion": 1.0})]

        logger.info("Running K-means on %d embeddings with k=%d, max %d iterations", n, k, s.iterations)
        rng = self._random_source.rng()
        centroids = _seed_centroids(vectors, k, rng)
        assignments: list[int] | None = None
        for iteration in range(s.iterations):
            new_assignments = [_nearest_centroid(v, centroids) for v in vectors]
            if assignments is not None and new_assignments == assignments:
                logger.info("K-means converged after %d iterations", iteration)
                break
            assignments = new_assignments
            centroids = _recompute_centroids(vectors, assignments, k, rng)

        groups: dict[int, list[int]] = {}
        for point, idx in enumerate(assignments or []):
            groups.setdefault(idx, []).append(point)
        member_groups = [groups[idx] for idx in sorted(groups)]

        if s.merge_threshold is not None:
            member_groups = _merge_similar_groups(member_groups, vectors, s.merge_threshold)

        kept = [g for g in member_groups if len(g) >= s.min_cluster_size]
        dropped = sum(len(g) for g in member_groups) - sum(len(g) for g in kept)
        if dropped:
            logger.info("Dropped %d point(s) in clusters below min size %d", dropped, s.min_cluster_size)

        clusters = [self._build_cluster(g, embeddings, vectors, created_at) for g in kept]
        logger.info("Created %d clusters from k=%d", len(clusters), k)
        return clusters

    def assign_to_cluster(self, embedding: Embedding, clusters: list[Cluster]) -> ClusterAssignment | None:
        """Nearest cluster by centroid cosine similarity, or None when there are no clusters."""
        best: ClusterAssignment | None = None
        for cluster in clusters:
            sim = vector_math.cosine_similarity(embedding.vector, cluster.centroid)
            if best is None or sim > best.similarity:
                best = ClusterAssignment(cluster_id=cluster.id, similarity=sim)
        return best

    @staticmethod
    def cohesion(member_ids: Sequence[str], embeddings: list[Embedding]) -> float:
        """Mean pairwise cosine similarity of the members' vectors; 1.0 for one member."""
        wanted = set(member_ids)
        vectors = [emb.vector for emb in embeddings if emb.content_id in wanted]
        return vector_math.mean_pairwise_cosine(vectors)
