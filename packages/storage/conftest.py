"""Shared test fixtures for storage package.

Provides database connection pool management for integration tests.

IMPORTANT: Tests use the `entity_kb_test` database to protect production data.
The TRUNCATE operations will REFUSE to run against `entity_kb`.
"""

import os
from pathlib import Path

import pytest_asyncio
from entity_kb_storage import (
    DatabaseConfig,
    close_connection_pool,
    get_connection_pool,
)

# Test database name - NEVER use production database for tests
TEST_DATABASE_NAME = os.environ.get("TEST_DATABASE_NAME", "entity_kb_test")
PRODUCTION_DATABASE_NAME = "entity_kb"

SCHEMA_FILE = Path(__file__).parent / "schema.sql"


class ProductionDatabaseError(Exception):
    """Raised when test attempts to modify production database."""

    pass


def _verify_not_production(database_name: str) -> None:
    """Safety check: refuse to run destructive operations on production DB."""
    if database_name == PRODUCTION_DATABASE_NAME:
        raise ProductionDatabaseError(
            f"REFUSING to run test fixture against production database '{PRODUCTION_DATABASE_NAME}'!\n"
            f"Tests must use '{TEST_DATABASE_NAME}' or another test database.\n"
            f"Set TEST_DATABASE_NAME environment variable to override."
        )


@pytest_asyncio.fixture(scope="function")
async def db_pool():
    """Create database connection pool for each test function.

    This fixture:
    - Creates a fresh connection pool for each test
    - Applies schema.sql and empties the base tables
    - Closes the pool after the test completes
    - REFUSES to connect to production database
    """
    _verify_not_production(TEST_DATABASE_NAME)

    await close_connection_pool()

    config = DatabaseConfig(
        host=os.environ.get("TEST_DATABASE_HOST", "localhost"),
        port=int(os.environ.get("TEST_DATABASE_PORT", "5432")),
        database=TEST_DATABASE_NAME,
        user="postgres",
        password="postgres",
    )
    pool = await get_connection_pool(config)

    async with pool.acquire() as conn:
        current_db = await conn.fetchval("SELECT current_database()")
        _verify_not_production(current_db)

        await conn.execute(SCHEMA_FILE.read_text())
        await conn.execute(
            "TRUNCATE TABLE discovered_entities, relationships, schema_promotions RESTART IDENTITY"
        )

    yield pool

    await close_connection_pool()


@pytest_asyncio.fixture(scope="function")
async def test_db(db_pool):
    """Alias for db_pool to match test expectations."""
    return db_pool
