"""Pattern detection over discovered entities.

Aggregates entities by their type label (exact match, no fuzzy matching) and
computes, per label:
- frequency: number of entities
- total_relationships: relationship endpoints touching an entity of the type
- avg_density: total_relationships / frequency
- property_consistency: share of the type's entities carrying each property

Everything here is read-only.
"""

from collections import Counter
from collections.abc import Iterable
from typing import Any

from entity_kb_common import get_logger, instrument_function
from entity_kb_contracts import (
    DISCOVERED_ENTITY_KIND,
    DiscoveredEntity,
    PatternStats,
    Relationship,
)
from entity_kb_storage import EntityStore, RelationshipStore

logger = get_logger(__name__)


def calculate_frequency(type_names: Iterable[str]) -> dict[str, int]:
    """Count occurrences of each type label, in order of first appearance."""
    return dict(Counter(type_names))


def group_by_type_category(entities: Iterable[DiscoveredEntity]) -> dict[str, int]:
    """Entity count per type label."""
    return calculate_frequency(e.type_category for e in entities)


def calculate_relationship_density(
    entities_with_counts: Iterable[tuple[str, int]],
) -> dict[str, float]:
    """Mean relationship count per entity, for each type label.

    Args:
        entities_with_counts: (type label, relationship count) per entity

    Returns:
        type label -> sum(counts) / number of entities
    """
    totals: dict[str, int] = {}
    sizes: dict[str, int] = {}
    for type_name, count in entities_with_counts:
        totals[type_name] = totals.get(type_name, 0) + count
        sizes[type_name] = sizes.get(type_name, 0) + 1

    return {type_name: totals[type_name] / sizes[type_name] for type_name in totals}


def calculate_property_consistency(
    entities: Iterable[DiscoveredEntity],
) -> dict[str, dict[str, float]]:
    """Presence ratio of every property, per type label.

    A value is presence_count / type_count, so always within [0, 1].
    """
    type_counts: Counter[str] = Counter()
    presence: dict[str, Counter[str]] = {}

    for entity in entities:
        type_counts[entity.type_category] += 1
        presence.setdefault(entity.type_category, Counter()).update(entity.properties.keys())

    return {
        type_name: {prop: count / type_counts[type_name] for prop, count in props.items()}
        for type_name, props in presence.items()
    }


def count_relationship_endpoints(
    entities: Iterable[DiscoveredEntity],
    relationships: Iterable[Relationship],
) -> dict[int, int]:
    """Endpoint count per discovered entity id.

    Only endpoints tagged as discovered entities are counted. An edge from an
    entity to itself counts twice.
    """
    counts = {entity.id: 0 for entity in entities}

    for rel in relationships:
        if rel.from_type == DISCOVERED_ENTITY_KIND and rel.from_id in counts:
            counts[rel.from_id] += 1
        if rel.to_type == DISCOVERED_ENTITY_KIND and rel.to_id in counts:
            counts[rel.to_id] += 1

    return counts


def build_pattern_stats(
    entities: list[DiscoveredEntity],
    relationships: list[Relationship],
) -> dict[str, PatternStats]:
    """Aggregate per-type statistics, keyed by type label.

    Types appear in the order their first entity appears.
    """
    endpoint_counts = count_relationship_endpoints(entities, relationships)
    frequencies = group_by_type_category(entities)
    consistency = calculate_property_consistency(entities)

    property_counts: dict[str, Counter[str]] = {}
    total_relationships: dict[str, int] = {}
    for entity in entities:
        property_counts.setdefault(entity.type_category, Counter()).update(
            entity.properties.keys()
        )
        total_relationships[entity.type_category] = (
            total_relationships.get(entity.type_category, 0) + endpoint_counts[entity.id]
        )

    stats = {}
    for type_name, frequency in frequencies.items():
        total = total_relationships[type_name]
        stats[type_name] = PatternStats(
            type_name=type_name,
            frequency=frequency,
            total_relationships=total,
            avg_density=total / frequency,
            property_counts=dict(property_counts[type_name]),
            property_consistency=consistency.get(type_name, {}),
        )

    return stats


@instrument_function("detect_patterns")
async def detect_patterns(
    entity_source: Any = EntityStore,
    relationship_source: Any = RelationshipStore,
) -> dict[str, PatternStats]:
    """Read every entity and relationship and aggregate per-type statistics.

    Args:
        entity_source: Object with async list_all() -> list[DiscoveredEntity]
        relationship_source: Object with async list_all() -> list[Relationship]
    """
    entities = await entity_source.list_all()
    relationships = await relationship_source.list_all()

    stats = build_pattern_stats(entities, relationships)

    logger.info(
        "patterns_detected",
        entities=len(entities),
        relationships=len(relationships),
        types=len(stats),
    )
    return stats
