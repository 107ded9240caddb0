"""Entity KB Analyst - type discovery over loosely typed entities.

This package provides:
- Pattern detection (frequency, relationship density, property consistency)
- Embedding-similarity clustering (greedy, seed-based)
- Candidate ranking (0.4 f + 0.3 d + 0.3 c)
- Schema inference (required / optional properties, types, validation rules)
"""

from entity_kb_analyst.clustering import (
    DEFAULT_SIMILARITY_THRESHOLD,
    cluster_by_type,
    cluster_entities,
    cosine_similarity,
    extract_type_candidates,
    group_by_similarity,
    identify_clusters,
    to_cluster_members,
)
from entity_kb_analyst.detector import (
    build_pattern_stats,
    calculate_frequency,
    calculate_property_consistency,
    calculate_relationship_density,
    count_relationship_endpoints,
    detect_patterns,
    group_by_type_category,
)
from entity_kb_analyst.ranker import (
    analyze_and_rank,
    apply_thresholds,
    calculate_score,
    candidates_from_stats,
    rank_candidates,
    sort_by_score,
)
from entity_kb_analyst.schema_inference import (
    OPTIONAL_MAX,
    OPTIONAL_MIN,
    REQUIRED_THRESHOLD,
    SAMPLE_LIMIT,
    generate_schema,
    generate_schema_for_type,
    generate_validation_rules,
    infer_data_type,
    infer_optional_properties,
    infer_required_properties,
)

__version__ = "0.1.0"

__all__ = [
    # Detector
    "build_pattern_stats",
    "calculate_frequency",
    "calculate_property_consistency",
    "calculate_relationship_density",
    "count_relationship_endpoints",
    "detect_patterns",
    "group_by_type_category",
    # Clustering
    "DEFAULT_SIMILARITY_THRESHOLD",
    "cluster_by_type",
    "cluster_entities",
    "cosine_similarity",
    "extract_type_candidates",
    "group_by_similarity",
    "identify_clusters",
    "to_cluster_members",
    # Ranker
    "analyze_and_rank",
    "apply_thresholds",
    "calculate_score",
    "candidates_from_stats",
    "rank_candidates",
    "sort_by_score",
    # Schema inference
    "OPTIONAL_MAX",
    "OPTIONAL_MIN",
    "REQUIRED_THRESHOLD",
    "SAMPLE_LIMIT",
    "generate_schema",
    "generate_schema_for_type",
    "generate_validation_rules",
    "infer_data_type",
    "infer_optional_properties",
    "infer_required_properties",
]
