"""Entity KB Promoter - promotion of discovered types into typed tables.

This package provides:
- Schema artifact generation (SQLAlchemy declarative model modules)
- The external schema tooling adapter (alembic subprocesses)
- The promotion orchestrator with its audit guarantee
"""

from entity_kb_promoter.codegen import (
    EMAIL_PATTERN,
    CheckRule,
    artifact_filename,
    attribute_name_for,
    class_name_for,
    convert_validation_rules,
    map_field_type,
    render_model_source,
    rule_violations,
    table_name_for,
    validate_source,
    write_model_file,
)
from entity_kb_promoter.orchestrator import (
    PromotionRequest,
    Promoter,
    build_row,
    coerce_value,
    row_problems,
)
from entity_kb_promoter.tooling import AlembicTooling, SchemaTooling

__version__ = "0.1.0"

__all__ = [
    # Codegen
    "EMAIL_PATTERN",
    "CheckRule",
    "artifact_filename",
    "attribute_name_for",
    "class_name_for",
    "convert_validation_rules",
    "map_field_type",
    "render_model_source",
    "rule_violations",
    "table_name_for",
    "validate_source",
    "write_model_file",
    # Tooling
    "AlembicTooling",
    "SchemaTooling",
    # Orchestrator
    "PromotionRequest",
    "Promoter",
    "build_row",
    "coerce_value",
    "row_problems",
]
