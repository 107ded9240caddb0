"""Embedding-similarity clustering of discovered entities.

Clusters corroborate that a type label describes a cohesive group. The
algorithm is greedy and single-pass: each unassigned entity seeds a new
cluster and every later unassigned entity whose similarity to the SEED is at
least the threshold joins it. Membership is similarity-to-seed only, so the
result is not a transitive closure and depends on input order.

O(n^2) per type group.
"""

from collections.abc import Iterable, Sequence
from typing import Any

import numpy as np
from entity_kb_common import get_logger, instrument_function
from entity_kb_contracts import Cluster, ClusterInfo, ClusterMember, DiscoveredEntity
from entity_kb_storage import EntityStore

logger = get_logger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.85


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors, computed in float64.

    Returns 0.0 when either vector is empty, the lengths differ, or either
    norm is zero.
    """
    if len(a) == 0 or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))


def to_cluster_members(entities: Iterable[DiscoveredEntity]) -> list[ClusterMember]:
    """Project entities that carry a usable embedding.

    Entities with a missing, empty or non-finite embedding are skipped.
    """
    members = []
    skipped = 0
    for entity in entities:
        if not entity.has_embedding:
            skipped += 1
            continue
        members.append(
            ClusterMember(
                id=entity.id,
                type_name=entity.type_category,
                name=entity.name,
                embedding=entity.embedding,
            )
        )

    if skipped:
        logger.debug("entities_without_embedding_skipped", count=skipped)
    return members


def group_by_similarity(
    members: Sequence[ClusterMember],
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> list[Cluster]:
    """Greedy seed-based clustering.

    The cluster's type_name is the seed's type.
    """
    clusters = []
    assigned = [False] * len(members)

    for i, seed in enumerate(members):
        if assigned[i]:
            continue
        assigned[i] = True
        cluster_members = [seed]

        for j in range(i + 1, len(members)):
            if assigned[j]:
                continue
            if cosine_similarity(seed.embedding, members[j].embedding) >= threshold:
                cluster_members.append(members[j])
                assigned[j] = True

        clusters.append(Cluster(type_name=seed.type_name, members=cluster_members))

    return clusters


def _group_by_type(members: Iterable[ClusterMember]) -> dict[str, list[ClusterMember]]:
    groups: dict[str, list[ClusterMember]] = {}
    for member in members:
        groups.setdefault(member.type_name, []).append(member)
    return groups


def cluster_by_type(
    members: Iterable[ClusterMember],
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> list[Cluster]:
    """Cluster within each type label; types in order of first appearance."""
    clusters = []
    for group in _group_by_type(members).values():
        clusters.extend(group_by_similarity(group, threshold))
    return clusters


def identify_clusters(
    members: Iterable[ClusterMember],
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> list[ClusterInfo]:
    """Cluster summary per type label: total members and cluster count."""
    summaries = []
    for type_name, group in _group_by_type(members).items():
        clusters = group_by_similarity(group, threshold)
        size = sum(c.size for c in clusters)
        if size > 0:
            summaries.append(
                ClusterInfo(type_name=type_name, size=size, cluster_count=len(clusters))
            )
    return summaries


def extract_type_candidates(clusters: Iterable[Cluster], min_size: int) -> list[str]:
    """Type labels of clusters with at least min_size members, de-duplicated."""
    candidates: list[str] = []
    for cluster in clusters:
        if cluster.size >= min_size and cluster.type_name not in candidates:
            candidates.append(cluster.type_name)
    return candidates


@instrument_function("cluster_entities")
async def cluster_entities(
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    entity_source: Any = EntityStore,
) -> list[Cluster]:
    """Cluster every stored entity that carries an embedding, per type.

    Args:
        threshold: Minimum cosine similarity to the cluster seed
        entity_source: Object with async list_with_embeddings()
    """
    entities = await entity_source.list_with_embeddings()
    members = to_cluster_members(entities)
    clusters = cluster_by_type(members, threshold)

    logger.info(
        "entities_clustered",
        entities=len(members),
        clusters=len(clusters),
        threshold=threshold,
    )
    return clusters
