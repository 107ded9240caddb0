"""Promotion orchestrator.

Drives one promotion attempt through a strictly sequential state machine:

    idle -> [schema_inferred] -> schema_generated -> bindings_rebuilt
         -> storage_migrated -> validated -> data_copied -> audited

schema_inferred is only visited when the request carries no schema. Any
PromotionError aborts the attempt with success=False. Whatever happens, the
audit write in the finally block records exactly one SchemaPromotion row for
the attempt; it is shielded so a caller timeout cannot interrupt it.

Promotion is copy-only: discovered entity rows are never deleted or updated
and relationships are never rewired.
"""

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from entity_kb_analyst import build_pattern_stats, calculate_score
from entity_kb_analyst.schema_inference import (
    OPTIONAL_MIN,
    REQUIRED_THRESHOLD,
    SAMPLE_LIMIT,
    generate_schema_for_type,
)
from entity_kb_common import (
    DataCopyError,
    GenerationError,
    PromotionError,
    get_logger,
    get_tracer,
)
from entity_kb_contracts import (
    DataType,
    PromotionCriteria,
    PromotionResult,
    PromotionStage,
    SchemaDefinition,
    SchemaPromotion,
)
from entity_kb_storage import EntityStore, PromotionStore, RelationshipStore

from entity_kb_promoter.codegen import rule_violations, table_name_for, write_model_file
from entity_kb_promoter.tooling import SchemaTooling

logger = get_logger(__name__)


@dataclass
class PromotionRequest:
    """What to promote and where the artifact goes.

    Attributes:
        type_name: Discovered type label to promote
        output_dir: Directory receiving the generated model module
        schema_definition: Schema to promote (inferred when omitted)
        criteria: Criteria recorded in the audit (computed when omitted)
    """

    type_name: str
    output_dir: Union[str, Path]
    schema_definition: Optional[SchemaDefinition] = None
    criteria: Optional[PromotionCriteria] = None


def coerce_value(value: Any, data_type: DataType) -> Any:
    """Convert a discovered property value to the column's Python type.

    Raises:
        DataCopyError: If the value cannot be represented in the column
    """
    if value is None:
        return None

    if data_type == DataType.STRING:
        if isinstance(value, str):
            return value
        return json.dumps(value)

    if data_type == DataType.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"

    elif data_type == DataType.INTEGER:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass

    elif data_type == DataType.NUMBER:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                pass

    raise DataCopyError(f"Cannot store {value!r} in a {data_type.value} column")


def build_row(properties: dict[str, Any], schema: SchemaDefinition) -> dict[str, Any]:
    """Columns present in both the schema and the property map, coerced."""
    return {
        column: coerce_value(properties[column], prop.data_type)
        for column, prop in schema.properties.items()
        if column in properties
    }


def row_problems(properties: dict[str, Any], schema: SchemaDefinition) -> list[str]:
    """Reasons an entity's properties cannot be stored in the promoted table.

    Covers the NOT NULL columns of required properties, values that cannot
    be coerced to the column type and the CHECK constraints rendered from
    the validation rules. An empty list means the row will insert.
    """
    problems = []
    for column, prop in schema.properties.items():
        value = properties.get(column)
        if value is None:
            if prop.required:
                problems.append(f"{column}: required value missing")
            continue

        try:
            coerced = coerce_value(value, prop.data_type)
        except DataCopyError as e:
            problems.append(f"{column}: {e}")
            continue

        for kind in rule_violations(coerced, prop.validation_rules, prop.data_type):
            problems.append(f"{column}: violates {kind.value}")

    return problems


class Promoter:
    """Runs promotions of discovered types into typed tables.

    Args:
        tooling: External schema tooling (bindings regeneration, migration)
        writer: Raw-write capability with async insert_rows(table, rows).
            Without one, data copy only reports how many entities are
            ready for manual migration.
        entity_source: Entity reads (list_by_type, list_all)
        audit_store: Audit writes (create)
        relationship_source: Relationship reads for criteria statistics

    Promotions of different type labels may run concurrently. Promotions of
    the same label must be serialized by the caller.
    """

    def __init__(
        self,
        tooling: SchemaTooling,
        writer: Any = None,
        entity_source: Any = EntityStore,
        audit_store: Any = PromotionStore,
        relationship_source: Any = RelationshipStore,
    ):
        self.tooling = tooling
        self.writer = writer
        self.entity_source = entity_source
        self.audit_store = audit_store
        self.relationship_source = relationship_source

    async def build_criteria(self, type_name: str) -> PromotionCriteria:
        """Detector statistics for the type plus the inference thresholds."""
        entities = await self.entity_source.list_all()
        relationships = await self.relationship_source.list_all()
        stats = build_pattern_stats(entities, relationships).get(type_name)

        if stats is None:
            return PromotionCriteria()

        return PromotionCriteria(
            frequency=stats.frequency,
            avg_density=stats.avg_density,
            avg_consistency=stats.avg_consistency,
            score=calculate_score(float(stats.frequency), stats.avg_density, stats.avg_consistency),
            required_threshold=REQUIRED_THRESHOLD,
            optional_threshold=OPTIONAL_MIN,
            sample_size=min(stats.frequency, SAMPLE_LIMIT),
            sample_limit=SAMPLE_LIMIT,
        )

    def generate_artifact(
        self, request: PromotionRequest, schema: Optional[SchemaDefinition] = None
    ) -> Path:
        """Write the model module for the request's schema.

        Raises:
            GenerationError: If rendering, validation or writing fails, or
                the tooling loads models from a different directory
        """
        schema = schema or request.schema_definition
        if schema is None:
            raise GenerationError(f"No schema available for {request.type_name}")

        tooling_dir = getattr(self.tooling, "artifact_dir", None)
        if tooling_dir is not None and Path(tooling_dir).resolve() != Path(request.output_dir).resolve():
            raise GenerationError(
                f"Artifact directory {request.output_dir} is not the directory "
                f"the schema tooling loads models from ({tooling_dir})"
            )

        return write_model_file(schema, request.output_dir)

    async def validate_entities(self, type_name: str, schema: SchemaDefinition) -> int:
        """Count entities whose properties the promoted table would reject.

        An entity fails when a required value is missing, a value cannot be
        coerced to its column type or a value breaks a CHECK constraint.
        Failures never abort a promotion; copy_entities skips those rows.
        """
        entities = await self.entity_source.list_by_type(type_name)

        failures = sum(1 for e in entities if row_problems(e.properties, schema))

        logger.info(
            "entities_validated",
            type_name=type_name,
            entities=len(entities),
            validation_failures=failures,
        )
        return failures

    async def copy_entities(self, type_name: str, schema: SchemaDefinition) -> int:
        """Copy the type's conforming entities into the promoted table.

        Entities that would violate a column constraint are logged and left
        out; they are already counted by validate_entities.

        Returns:
            Rows inserted, or the full entity count when no writer is set

        Raises:
            DataCopyError: If the insert transaction fails; nothing is
                committed in that case
        """
        entities = await self.entity_source.list_by_type(type_name)
        if not entities:
            return 0

        table = table_name_for(type_name)

        if self.writer is None:
            logger.info(
                "ready_for_manual_migration",
                type_name=type_name,
                table=table,
                entities=len(entities),
            )
            return len(entities)

        rows = []
        skipped = 0
        nonconforming = []
        for entity in entities:
            problems = row_problems(entity.properties, schema)
            if problems:
                nonconforming.append((entity.unique_id, problems))
                continue

            row = build_row(entity.properties, schema)
            if row:
                rows.append(row)
            else:
                skipped += 1

        if nonconforming:
            logger.warning(
                "nonconforming_entities_skipped",
                type_name=type_name,
                count=len(nonconforming),
                sample=[
                    {"unique_id": unique_id, "problems": problems}
                    for unique_id, problems in nonconforming[:5]
                ],
            )

        if skipped:
            logger.info("entities_without_columns_skipped", type_name=type_name, count=skipped)

        return await self.writer.insert_rows(table, rows)

    async def record_audit(
        self,
        result: PromotionResult,
        schema: Optional[SchemaDefinition],
        criteria: Optional[PromotionCriteria],
    ) -> SchemaPromotion:
        """Insert the single audit record for an attempt.

        Raises:
            AuditError: If the record cannot be written
        """
        return await self.audit_store.create(
            type_name=result.type_name,
            promotion_criteria=criteria.model_dump(mode="json") if criteria else {},
            entities_affected=result.entities_migrated,
            validation_failures=result.validation_errors,
            schema_definition=schema.to_dict() if schema else {},
            succeeded=result.success,
            error_message=result.error,
        )

    async def promote(self, request: PromotionRequest) -> PromotionResult:
        """Run one promotion attempt end to end.

        Returns:
            PromotionResult; success=False with error set when a step aborted

        Raises:
            AuditError: If the audit record could not be written
        """
        type_name = request.type_name
        result = PromotionResult(type_name=type_name)
        schema = request.schema_definition
        criteria = request.criteria
        step = "schema inference"
        tracer = get_tracer(__name__)

        logger.info("promotion_started", type_name=type_name, output_dir=str(request.output_dir))

        try:
            with tracer.start_as_current_span("promote") as span:
                span.set_attribute("entity_kb.type_name", type_name)

                if schema is None:
                    schema = await generate_schema_for_type(
                        type_name, entity_source=self.entity_source
                    )
                    result.stage = PromotionStage.SCHEMA_INFERRED

                if criteria is None:
                    criteria = await self.build_criteria(type_name)

                step = "schema generation"
                path = self.generate_artifact(request, schema)
                result.schema_file_path = str(path)
                result.table_name = table_name_for(type_name)
                result.stage = PromotionStage.SCHEMA_GENERATED

                step = "code generation"
                with tracer.start_as_current_span("regenerate_bindings"):
                    await self.tooling.regenerate_bindings(type_name)
                result.stage = PromotionStage.BINDINGS_REBUILT

                step = "migration"
                with tracer.start_as_current_span("migrate_structure"):
                    await self.tooling.migrate_structure(type_name)
                result.stage = PromotionStage.STORAGE_MIGRATED

                step = "validation"
                result.validation_errors = await self.validate_entities(type_name, schema)
                result.stage = PromotionStage.VALIDATED

                step = "data copy"
                with tracer.start_as_current_span("copy_entities"):
                    result.entities_migrated = await self.copy_entities(type_name, schema)
                result.manual_migration_pending = self.writer is None
                result.stage = PromotionStage.DATA_COPIED

                result.success = True

        except PromotionError as e:
            result.error = f"{step} failed: {e}"
            logger.error(
                "promotion_failed",
                type_name=type_name,
                stage=result.stage.value,
                error=result.error,
            )
        except asyncio.CancelledError:
            result.error = f"{step} cancelled"
            logger.warning("promotion_cancelled", type_name=type_name, stage=result.stage.value)
            raise
        except Exception as e:
            result.error = f"{step} failed unexpectedly: {e}"
            logger.error(
                "promotion_crashed",
                type_name=type_name,
                stage=result.stage.value,
                error=str(e),
            )
            raise
        finally:
            await asyncio.shield(self.record_audit(result, schema, criteria))

        if result.success:
            result.stage = PromotionStage.AUDITED

        logger.info(
            "promotion_finished",
            type_name=type_name,
            success=result.success,
            stage=result.stage.value,
            entities_migrated=result.entities_migrated,
            validation_errors=result.validation_errors,
        )
        return result

    async def promote_type(
        self, type_name: str, output_dir: Union[str, Path]
    ) -> PromotionResult:
        """Infer the schema for a type and promote it."""
        return await self.promote(PromotionRequest(type_name=type_name, output_dir=output_dir))
