"""EntityStore - access to the discovered_entities table.

Provides:
- Create entity records (single and batch) for seeding and tests
- Retrieve by unique identifier
- List all entities, entities of one type, entities carrying embeddings
- Counts overall and per type

The schema-evolution pipeline only reads through this store; promotion
copies rows out and never deletes or updates them.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import asyncpg
from entity_kb_common import StorageError, get_logger
from entity_kb_contracts import DiscoveredEntity

from entity_kb_storage.connection import get_connection_pool

logger = get_logger(__name__)


class EntityStore:
    """Storage operations for DiscoveredEntity records.

    All operations use the global connection pool.
    """

    @staticmethod
    async def create(
        unique_id: str,
        type_category: str,
        name: str,
        properties: Optional[dict[str, Any]] = None,
        embedding: Optional[list[float]] = None,
        confidence_score: float = 0.0,
    ) -> DiscoveredEntity:
        """Create a new discovered entity.

        Raises:
            StorageError: If creation fails (e.g., duplicate unique_id)
        """
        pool = await get_connection_pool()
        now = datetime.now(timezone.utc)

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO discovered_entities (
                        unique_id, type_category, name, properties,
                        embedding, confidence_score, created_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                    RETURNING *
                    """,
                    unique_id,
                    type_category,
                    name,
                    properties or {},
                    embedding,
                    confidence_score,
                    now,
                )

                logger.info(
                    "entity_created",
                    entity_id=row["id"],
                    unique_id=unique_id,
                    type_category=type_category,
                )

                return _row_to_entity(row)

        except asyncpg.UniqueViolationError as e:
            logger.error(
                "entity_creation_failed_duplicate", unique_id=unique_id, error=str(e)
            )
            raise StorageError(
                f"Entity with unique_id '{unique_id}' already exists"
            ) from e
        except Exception as e:
            logger.error("entity_creation_failed", error=str(e))
            raise StorageError(f"Failed to create entity: {e}") from e

    @staticmethod
    async def batch_create(entities_data: list[dict]) -> list[DiscoveredEntity]:
        """Create many entities in one transaction.

        Args:
            entities_data: Dicts with unique_id, type_category, name and
                optional properties, embedding, confidence_score
        """
        if not entities_data:
            return []

        pool = await get_connection_pool()
        now = datetime.now(timezone.utc)
        created = []

        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    for data in entities_data:
                        row = await conn.fetchrow(
                            """
                            INSERT INTO discovered_entities (
                                unique_id, type_category, name, properties,
                                embedding, confidence_score, created_at
                            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                            RETURNING *
                            """,
                            data["unique_id"],
                            data["type_category"],
                            data["name"],
                            data.get("properties") or {},
                            data.get("embedding"),
                            data.get("confidence_score", 0.0),
                            now,
                        )
                        created.append(_row_to_entity(row))

            logger.info("entities_batch_created", count=len(created))
            return created

        except Exception as e:
            logger.error("entity_batch_create_failed", error=str(e))
            raise StorageError(f"Failed to batch create entities: {e}") from e

    @staticmethod
    async def get_by_unique_id(unique_id: str) -> Optional[DiscoveredEntity]:
        """Retrieve an entity by its unique identifier."""
        pool = await get_connection_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT * FROM discovered_entities WHERE unique_id = $1",
                    unique_id,
                )
                return _row_to_entity(row) if row else None

        except Exception as e:
            logger.error("entity_get_failed", unique_id=unique_id, error=str(e))
            raise StorageError(f"Failed to retrieve entity: {e}") from e

    @staticmethod
    async def list_all() -> list[DiscoveredEntity]:
        """List every discovered entity in insertion order."""
        pool = await get_connection_pool()

        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch("SELECT * FROM discovered_entities ORDER BY id")
                return [_row_to_entity(row) for row in rows]

        except Exception as e:
            logger.error("entity_list_all_failed", error=str(e))
            raise StorageError(f"Failed to list entities: {e}") from e

    @staticmethod
    async def list_by_type(
        type_category: str, limit: Optional[int] = None
    ) -> list[DiscoveredEntity]:
        """List entities of one type label (exact match).

        Args:
            type_category: Type label as stored
            limit: Optional cap on rows returned (used for sampling)
        """
        pool = await get_connection_pool()

        try:
            async with pool.acquire() as conn:
                if limit is not None:
                    rows = await conn.fetch(
                        """
                        SELECT * FROM discovered_entities
                        WHERE type_category = $1
                        ORDER BY id
                        LIMIT $2
                        """,
                        type_category,
                        limit,
                    )
                else:
                    rows = await conn.fetch(
                        """
                        SELECT * FROM discovered_entities
                        WHERE type_category = $1
                        ORDER BY id
                        """,
                        type_category,
                    )

                return [_row_to_entity(row) for row in rows]

        except Exception as e:
            logger.error(
                "entity_list_by_type_failed", type_category=type_category, error=str(e)
            )
            raise StorageError(f"Failed to list entities of type {type_category}: {e}") from e

    @staticmethod
    async def list_with_embeddings() -> list[DiscoveredEntity]:
        """List entities whose embedding column is populated."""
        pool = await get_connection_pool()

        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT * FROM discovered_entities
                    WHERE embedding IS NOT NULL
                    ORDER BY id
                    """
                )
                return [_row_to_entity(row) for row in rows]

        except Exception as e:
            logger.error("entity_list_with_embeddings_failed", error=str(e))
            raise StorageError(f"Failed to list entities with embeddings: {e}") from e

    @staticmethod
    async def count() -> int:
        """Count all discovered entities."""
        pool = await get_connection_pool()

        try:
            async with pool.acquire() as conn:
                result = await conn.fetchval("SELECT COUNT(*) FROM discovered_entities")
                return result or 0

        except Exception as e:
            logger.error("entity_count_failed", error=str(e))
            raise StorageError(f"Failed to count entities: {e}") from e

    @staticmethod
    async def count_by_type() -> dict[str, int]:
        """Entity counts keyed by type label, largest first."""
        pool = await get_connection_pool()

        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT type_category, COUNT(*) AS count
                    FROM discovered_entities
                    GROUP BY type_category
                    ORDER BY count DESC, type_category ASC
                    """
                )
                return {row["type_category"]: row["count"] for row in rows}

        except Exception as e:
            logger.error("entity_count_by_type_failed", error=str(e))
            raise StorageError(f"Failed to count entities by type: {e}") from e


def _row_to_entity(row: asyncpg.Record) -> DiscoveredEntity:
    """Convert database row to DiscoveredEntity model."""
    embedding = row["embedding"]
    return DiscoveredEntity(
        id=row["id"],
        unique_id=row["unique_id"],
        type_category=row["type_category"],
        name=row["name"],
        properties=row["properties"] or {},
        embedding=[float(v) for v in embedding] if embedding is not None else None,
        confidence_score=row["confidence_score"],
        created_at=row["created_at"],
    )
