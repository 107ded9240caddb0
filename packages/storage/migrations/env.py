"""Alembic environment for promoted-type tables.

target_metadata is PromotedBase.metadata after the generated models in
Settings.artifact_dir are loaded. Only tables that belong to a promoted
model are compared, so autogenerate never proposes dropping the base
tables created by schema.sql.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from entity_kb_common import get_settings
from entity_kb_storage.promoted import PromotedBase, include_promoted_object, load_bindings
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

settings = get_settings()
load_bindings(settings.artifact_dir)
target_metadata = PromotedBase.metadata


def async_database_url(url: str) -> str:
    """Rewrite a postgresql:// URL to use the asyncpg driver."""
    for prefix in ("postgresql+asyncpg://", "postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


config.set_main_option("sqlalchemy.url", async_database_url(settings.database_url))


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a database connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        include_object=include_promoted_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        include_object=include_promoted_object,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
