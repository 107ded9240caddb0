"""PromotionStore - append-only audit trail in schema_promotions.

Every promotion attempt writes exactly one row. There is no
update or delete operation here; the table is the permanent history of
schema evolution decisions.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import asyncpg
from entity_kb_common import AuditError, StorageError, get_logger
from entity_kb_contracts import SchemaPromotion

from entity_kb_storage.connection import get_connection_pool

logger = get_logger(__name__)


class PromotionStore:
    """Storage operations for SchemaPromotion audit records."""

    @staticmethod
    async def create(
        type_name: str,
        promotion_criteria: dict[str, Any],
        entities_affected: int,
        validation_failures: int,
        schema_definition: dict[str, Any],
        succeeded: bool,
        error_message: Optional[str] = None,
        promoted_at: Optional[datetime] = None,
    ) -> SchemaPromotion:
        """Insert one audit record.

        Raises:
            AuditError: If the insert fails. The caller must treat this as
                fatal: a promotion without its audit record is not allowed
                to look successful.
        """
        pool = await get_connection_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO schema_promotions (
                        type_name, promoted_at, promotion_criteria,
                        entities_affected, validation_failures,
                        schema_definition, succeeded, error_message
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    RETURNING *
                    """,
                    type_name,
                    promoted_at or datetime.now(timezone.utc),
                    promotion_criteria,
                    entities_affected,
                    validation_failures,
                    schema_definition,
                    succeeded,
                    error_message,
                )

                logger.info(
                    "promotion_audited",
                    audit_id=row["id"],
                    type_name=type_name,
                    succeeded=succeeded,
                    entities_affected=entities_affected,
                    validation_failures=validation_failures,
                )

                return _row_to_promotion(row)

        except Exception as e:
            logger.error("promotion_audit_failed", type_name=type_name, error=str(e))
            raise AuditError(f"Failed to record promotion audit for {type_name}: {e}") from e

    @staticmethod
    async def list_for_type(type_name: str) -> list[SchemaPromotion]:
        """All audit records for one type label, oldest first."""
        pool = await get_connection_pool()

        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT * FROM schema_promotions
                    WHERE type_name = $1
                    ORDER BY promoted_at ASC, id ASC
                    """,
                    type_name,
                )
                return [_row_to_promotion(row) for row in rows]

        except Exception as e:
            logger.error("promotion_list_failed", type_name=type_name, error=str(e))
            raise StorageError(f"Failed to list promotions for {type_name}: {e}") from e

    @staticmethod
    async def list_recent(limit: int = 20) -> list[SchemaPromotion]:
        """Most recent audit records across all types, newest first."""
        pool = await get_connection_pool()

        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT * FROM schema_promotions
                    ORDER BY promoted_at DESC, id DESC
                    LIMIT $1
                    """,
                    limit,
                )
                return [_row_to_promotion(row) for row in rows]

        except Exception as e:
            logger.error("promotion_list_recent_failed", error=str(e))
            raise StorageError(f"Failed to list recent promotions: {e}") from e

    @staticmethod
    async def count_for_type(type_name: str) -> int:
        pool = await get_connection_pool()

        try:
            async with pool.acquire() as conn:
                result = await conn.fetchval(
                    "SELECT COUNT(*) FROM schema_promotions WHERE type_name = $1",
                    type_name,
                )
                return result or 0

        except Exception as e:
            logger.error("promotion_count_failed", type_name=type_name, error=str(e))
            raise StorageError(f"Failed to count promotions for {type_name}: {e}") from e


def _row_to_promotion(row: asyncpg.Record) -> SchemaPromotion:
    """Convert database row to SchemaPromotion model."""
    return SchemaPromotion(
        id=row["id"],
        type_name=row["type_name"],
        promoted_at=row["promoted_at"],
        promotion_criteria=row["promotion_criteria"] or {},
        entities_affected=row["entities_affected"],
        validation_failures=row["validation_failures"],
        schema_definition=row["schema_definition"] or {},
        succeeded=row["succeeded"],
        error_message=row["error_message"],
    )
