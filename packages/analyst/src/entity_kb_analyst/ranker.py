"""Candidate ranking for type promotion.

score = 0.4 * frequency + 0.3 * avg_density + 0.3 * avg_consistency

A candidate survives the gate only if frequency >= min_occurrences and
avg_consistency >= min_consistency.
"""

from collections.abc import Iterable
from typing import Any

from entity_kb_common import get_logger
from entity_kb_contracts import PatternStats, TypeCandidate
from entity_kb_storage import EntityStore, RelationshipStore

from entity_kb_analyst.detector import detect_patterns

logger = get_logger(__name__)

FREQUENCY_WEIGHT = 0.4
DENSITY_WEIGHT = 0.3
CONSISTENCY_WEIGHT = 0.3

DEFAULT_MIN_OCCURRENCES = 5
DEFAULT_MIN_CONSISTENCY = 0.4
DEFAULT_TOP_N = 10


def calculate_score(frequency: float, density: float, consistency: float) -> float:
    return FREQUENCY_WEIGHT * frequency + DENSITY_WEIGHT * density + CONSISTENCY_WEIGHT * consistency


def candidates_from_stats(stats: Iterable[PatternStats]) -> list[TypeCandidate]:
    """Build scored candidates from detector output, preserving order."""
    candidates = []
    for s in stats:
        consistency = s.avg_consistency
        candidates.append(
            TypeCandidate(
                type_name=s.type_name,
                frequency=s.frequency,
                density=s.avg_density,
                consistency=consistency,
                score=calculate_score(float(s.frequency), s.avg_density, consistency),
            )
        )
    return candidates


def apply_thresholds(
    candidates: Iterable[TypeCandidate],
    min_occurrences: int,
    min_consistency: float,
) -> list[TypeCandidate]:
    return [
        c
        for c in candidates
        if c.frequency >= min_occurrences and c.consistency >= min_consistency
    ]


def sort_by_score(candidates: Iterable[TypeCandidate]) -> list[TypeCandidate]:
    """Descending by score; ties keep their input order."""
    return sorted(candidates, key=lambda c: c.score, reverse=True)


def rank_candidates(candidates: Iterable[TypeCandidate], top_n: int) -> list[TypeCandidate]:
    """The top_n best candidates (none when top_n is not positive)."""
    if top_n <= 0:
        return []
    return sort_by_score(candidates)[:top_n]


async def analyze_and_rank(
    min_occurrences: int = DEFAULT_MIN_OCCURRENCES,
    min_consistency: float = DEFAULT_MIN_CONSISTENCY,
    top_n: int = DEFAULT_TOP_N,
    entity_source: Any = EntityStore,
    relationship_source: Any = RelationshipStore,
) -> list[TypeCandidate]:
    """Detect patterns, gate and rank the resulting candidates."""
    stats = await detect_patterns(entity_source, relationship_source)

    candidates = candidates_from_stats(stats.values())
    filtered = apply_thresholds(candidates, min_occurrences, min_consistency)
    ranked = rank_candidates(filtered, top_n)

    logger.info(
        "candidates_ranked",
        types=len(candidates),
        passed_thresholds=len(filtered),
        returned=len(ranked),
        min_occurrences=min_occurrences,
        min_consistency=min_consistency,
    )
    return ranked
