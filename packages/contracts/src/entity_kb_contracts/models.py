"""Pydantic models for the entity-kb system.

These schemas define the contract between all packages. The stored records
match the PostgreSQL tables in packages/storage/schema.sql.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Endpoint kind tag for relationship endpoints that point at discovered_entities
DISCOVERED_ENTITY_KIND = "discovered_entity"

# Values found in a discovered entity's open property map (JSONB)
PropertyValue = Union[str, int, float, bool, list, dict, None]
PropertyMap = dict[str, Any]


class ValueKind(str, Enum):
    """Runtime kind of a single property value."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    NUMBER = "number"
    STRING = "string"
    STRUCTURED = "structured"
    NULL = "null"


def classify_value(value: Any) -> ValueKind:
    """Classify a property value.

    bool is checked before int because bool is an int subclass.
    """
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    return ValueKind.STRUCTURED


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------


class DiscoveredEntity(BaseModel):
    """Loosely typed entity produced by the extraction pipeline.

    Matches PostgreSQL table: discovered_entities
    """

    id: int
    unique_id: str = Field(..., min_length=1, description="Globally unique identifier")
    type_category: str = Field(..., min_length=1)
    name: str
    properties: PropertyMap = Field(default_factory=dict)
    embedding: Optional[list[float]] = None
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    created_at: datetime

    @property
    def has_embedding(self) -> bool:
        """True when the embedding is a non-empty vector of finite numbers."""
        if not self.embedding:
            return False
        return all(math.isfinite(v) for v in self.embedding)


class Relationship(BaseModel):
    """Typed edge between two entities.

    Matches PostgreSQL table: relationships
    Endpoints are (kind tag, numeric id) pairs.
    """

    id: int
    type: str = Field(..., min_length=1)
    from_type: str
    from_id: int
    to_type: str
    to_id: int
    timestamp: datetime
    confidence_score: float = Field(default=1.0, ge=0.0, le=1.0)
    properties: PropertyMap = Field(default_factory=dict)
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Analysis results (ephemeral)
# ---------------------------------------------------------------------------


class PatternStats(BaseModel):
    """Per-type aggregation produced by the pattern detector."""

    type_name: str
    frequency: int = 0
    total_relationships: int = 0
    avg_density: float = 0.0
    property_counts: dict[str, int] = Field(default_factory=dict)
    property_consistency: dict[str, float] = Field(default_factory=dict)

    @property
    def avg_consistency(self) -> float:
        """Unweighted mean of the property consistency values."""
        if not self.property_consistency:
            return 0.0
        return sum(self.property_consistency.values()) / len(self.property_consistency)


class TypeCandidate(BaseModel):
    """A type label scored for promotion."""

    type_name: str
    frequency: int
    density: float
    consistency: float
    score: float = 0.0


class ClusterMember(BaseModel):
    """Entity projection used by the similarity clusterer."""

    id: int
    type_name: str
    name: str
    embedding: list[float]


class Cluster(BaseModel):
    """Entities folded into a cluster seeded by the first member."""

    type_name: str
    members: list[ClusterMember] = Field(default_factory=list)

    @property
    def seed_id(self) -> Optional[int]:
        return self.members[0].id if self.members else None

    @property
    def size(self) -> int:
        return len(self.members)


class ClusterInfo(BaseModel):
    """Cluster summary for one type label."""

    type_name: str
    size: int
    cluster_count: int = 0


# ---------------------------------------------------------------------------
# Schema definition
# ---------------------------------------------------------------------------


class DataType(str, Enum):
    """Scalar types the schema inferrer can assign to a property."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"


class ValidationRuleKind(str, Enum):
    """Validation constraint kinds."""

    FORMAT = "format"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"
    MINIMUM = "minimum"


class ValidationRule(BaseModel):
    """A single validation constraint.

    Serialized as {"type": "minLength", "value": 1}.
    """

    model_config = ConfigDict(populate_by_name=True)

    kind: ValidationRuleKind = Field(..., alias="type")
    value: Union[int, float, str]


class PropertyDefinition(BaseModel):
    """Inferred definition of one property."""

    model_config = ConfigDict(populate_by_name=True)

    data_type: DataType = Field(..., alias="type")
    required: bool = False
    validation_rules: list[ValidationRule] = Field(default_factory=list)


class SchemaDefinition(BaseModel):
    """Inferred schema for one discovered type."""

    model_config = ConfigDict(populate_by_name=True)

    type_name: str = Field(..., alias="type", min_length=1)
    properties: dict[str, PropertyDefinition] = Field(default_factory=dict)

    def required_properties(self) -> list[str]:
        """Names of the required properties, in definition order."""
        return [name for name, prop in self.properties.items() if prop.required]

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible dict (aliased keys) for JSONB columns."""
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, payload: str) -> "SchemaDefinition":
        return cls.model_validate_json(payload)


# ---------------------------------------------------------------------------
# Promotion
# ---------------------------------------------------------------------------


class PromotionStage(str, Enum):
    """Promotion workflow state machine stages (strictly sequential)."""

    IDLE = "idle"
    SCHEMA_INFERRED = "schema_inferred"
    SCHEMA_GENERATED = "schema_generated"
    BINDINGS_REBUILT = "bindings_rebuilt"
    STORAGE_MIGRATED = "storage_migrated"
    VALIDATED = "validated"
    DATA_COPIED = "data_copied"
    AUDITED = "audited"


class PromotionCriteria(BaseModel):
    """Statistics and thresholds recorded with a promotion attempt."""

    frequency: int = Field(default=0, ge=0)
    avg_density: float = 0.0
    avg_consistency: float = 0.0
    score: float = 0.0
    required_threshold: float = 0.90
    optional_threshold: float = 0.30
    sample_size: int = Field(default=0, ge=0)
    sample_limit: int = 1000


class PromotionResult(BaseModel):
    """Outcome of one promotion attempt, returned to the caller."""

    type_name: str
    success: bool = False
    stage: PromotionStage = PromotionStage.IDLE
    schema_file_path: Optional[str] = None
    table_name: Optional[str] = None
    entities_migrated: int = Field(default=0, ge=0)
    validation_errors: int = Field(default=0, ge=0)
    manual_migration_pending: bool = False
    error: Optional[str] = None


class SchemaPromotion(BaseModel):
    """Immutable audit record of one promotion attempt.

    Matches PostgreSQL table: schema_promotions
    """

    id: int
    type_name: str = Field(..., min_length=1)
    promoted_at: datetime
    promotion_criteria: dict[str, Any] = Field(default_factory=dict)
    entities_affected: int = Field(default=0, ge=0)
    validation_failures: int = Field(default=0, ge=0)
    schema_definition: dict[str, Any] = Field(default_factory=dict)
    succeeded: bool = False
    error_message: Optional[str] = None

    @field_validator("type_name")
    @classmethod
    def validate_type_name(cls, v: str) -> str:
        """Ensure type_name is non-blank."""
        if not v.strip():
            raise ValueError("type_name must be non-empty")
        return v
