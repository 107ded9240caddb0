"""PromotedTableWriter - raw inserts into newly promoted typed tables.

The promoted tables are created by alembic after the generated model is
loaded, so the in-process models never see them. Rows are inserted with
plain SQL instead, one transaction per promotion.
"""

from typing import Any

from entity_kb_common import DataCopyError, get_logger

from entity_kb_storage.connection import get_connection_pool

logger = get_logger(__name__)


def quote_identifier(name: str) -> str:
    """Quote a PostgreSQL identifier ("a""b" for a"b)."""
    return '"' + name.replace('"', '""') + '"'


def build_insert(table: str, columns: list[str]) -> str:
    """INSERT statement with positional parameters for the given columns."""
    column_sql = ", ".join(quote_identifier(c) for c in columns)
    params = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    return f"INSERT INTO {quote_identifier(table)} ({column_sql}) VALUES ({params})"


class PromotedTableWriter:
    """Inserts copied entity rows into a promoted table.

    All rows for one call are written inside a single transaction: either
    every row commits or none does. A cancelled caller exits the
    transaction block with the cancellation, which rolls it back.
    """

    async def insert_rows(self, table: str, rows: list[dict[str, Any]]) -> int:
        """Insert rows (column -> value mappings) into table.

        Returns:
            Number of rows inserted

        Raises:
            DataCopyError: If any insert fails; nothing is committed
        """
        if not rows:
            return 0

        pool = await get_connection_pool()

        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    for row in rows:
                        columns = list(row.keys())
                        await conn.execute(
                            build_insert(table, columns),
                            *(row[c] for c in columns),
                        )

            logger.info("promoted_rows_inserted", table=table, count=len(rows))
            return len(rows)

        except Exception as e:
            logger.error("data_copy_rolled_back", table=table, rows=len(rows), error=str(e))
            raise DataCopyError(f"Failed to copy rows into {table}: {e}") from e
