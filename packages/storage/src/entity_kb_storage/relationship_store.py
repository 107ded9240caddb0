"""RelationshipStore - access to the relationships table.

Relationships are read only for density statistics. Creation exists for
seeding and tests.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import asyncpg
from entity_kb_common import StorageError, get_logger
from entity_kb_contracts import Relationship

from entity_kb_storage.connection import get_connection_pool

logger = get_logger(__name__)


class RelationshipStore:
    """Storage operations for Relationship edges."""

    @staticmethod
    async def create(
        relationship_type: str,
        from_type: str,
        from_id: int,
        to_type: str,
        to_id: int,
        timestamp: Optional[datetime] = None,
        confidence_score: float = 1.0,
        properties: Optional[dict[str, Any]] = None,
    ) -> Relationship:
        """Create a new relationship edge.

        Args:
            relationship_type: Relationship label (e.g. COMMUNICATES_WITH)
            from_type: Endpoint kind tag of the source
            from_id: Numeric id of the source
            to_type: Endpoint kind tag of the target
            to_id: Numeric id of the target
            timestamp: When the relationship was observed (default: now)
            confidence_score: Extraction confidence 0.0-1.0
            properties: Open property map

        Raises:
            StorageError: If creation fails
        """
        pool = await get_connection_pool()
        now = datetime.now(timezone.utc)

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO relationships (
                        type, from_type, from_id, to_type, to_id,
                        timestamp, confidence_score, properties, created_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    RETURNING *
                    """,
                    relationship_type,
                    from_type,
                    from_id,
                    to_type,
                    to_id,
                    timestamp or now,
                    confidence_score,
                    properties or {},
                    now,
                )

                logger.info(
                    "relationship_created",
                    relationship_id=row["id"],
                    type=relationship_type,
                    source=f"{from_type}:{from_id}",
                    target=f"{to_type}:{to_id}",
                )

                return _row_to_relationship(row)

        except Exception as e:
            logger.error("relationship_creation_failed", error=str(e))
            raise StorageError(f"Failed to create relationship: {e}") from e

    @staticmethod
    async def list_all() -> list[Relationship]:
        """List every relationship in insertion order."""
        pool = await get_connection_pool()

        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch("SELECT * FROM relationships ORDER BY id")
                return [_row_to_relationship(row) for row in rows]

        except Exception as e:
            logger.error("relationship_list_failed", error=str(e))
            raise StorageError(f"Failed to list relationships: {e}") from e

    @staticmethod
    async def count() -> int:
        """Count all relationships."""
        pool = await get_connection_pool()

        try:
            async with pool.acquire() as conn:
                result = await conn.fetchval("SELECT COUNT(*) FROM relationships")
                return result or 0

        except Exception as e:
            logger.error("relationship_count_failed", error=str(e))
            raise StorageError(f"Failed to count relationships: {e}") from e


def _row_to_relationship(row: asyncpg.Record) -> Relationship:
    """Convert database row to Relationship model."""
    return Relationship(
        id=row["id"],
        type=row["type"],
        from_type=row["from_type"],
        from_id=row["from_id"],
        to_type=row["to_type"],
        to_id=row["to_id"],
        timestamp=row["timestamp"],
        confidence_score=row["confidence_score"],
        properties=row["properties"] or {},
        created_at=row["created_at"],
    )
