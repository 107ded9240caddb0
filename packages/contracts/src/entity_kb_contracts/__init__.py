"""Entity KB Contracts - Pure Pydantic schemas.

This package contains ONLY Pydantic schemas with no business logic.
Dependencies: pydantic only (no OpenTelemetry, no logging, no DB drivers).
"""

from entity_kb_contracts.models import (
    DISCOVERED_ENTITY_KIND,
    # Stored records
    DiscoveredEntity,
    PropertyMap,
    PropertyValue,
    Relationship,
    SchemaPromotion,
    ValueKind,
    classify_value,
    # Analysis
    Cluster,
    ClusterInfo,
    ClusterMember,
    PatternStats,
    TypeCandidate,
    # Schema definition
    DataType,
    PropertyDefinition,
    SchemaDefinition,
    ValidationRule,
    ValidationRuleKind,
    # Promotion
    PromotionCriteria,
    PromotionResult,
    PromotionStage,
)

__version__ = "0.1.0"

__all__ = [
    "DISCOVERED_ENTITY_KIND",
    # Stored records
    "DiscoveredEntity",
    "PropertyMap",
    "PropertyValue",
    "Relationship",
    "SchemaPromotion",
    "ValueKind",
    "classify_value",
    # Analysis
    "Cluster",
    "ClusterInfo",
    "ClusterMember",
    "PatternStats",
    "TypeCandidate",
    # Schema definition
    "DataType",
    "PropertyDefinition",
    "SchemaDefinition",
    "ValidationRule",
    "ValidationRuleKind",
    # Promotion
    "PromotionCriteria",
    "PromotionResult",
    "PromotionStage",
]
