"""Entity KB Storage - PostgreSQL storage layer.

This package provides:
- Database connection management (asyncpg pooling, pgvector codecs)
- EntityStore (read access to discovered_entities, plus seeding)
- RelationshipStore (read access to relationships, plus seeding)
- PromotionStore (append-only schema_promotions audit trail)
- PromotedTableWriter (transactional inserts into promoted tables)
- PromotedBase / load_bindings (generated SQLAlchemy models)

Exclusive DB ownership - no shared database access from other packages.
"""

from entity_kb_storage.connection import (
    DatabaseConfig,
    check_connection_health,
    close_connection_pool,
    get_connection_pool,
)
from entity_kb_storage.entity_store import EntityStore
from entity_kb_storage.promoted import (
    PromotedBase,
    include_promoted_object,
    load_bindings,
    promoted_table_names,
)
from entity_kb_storage.promoted_writer import PromotedTableWriter, build_insert, quote_identifier
from entity_kb_storage.promotion_store import PromotionStore
from entity_kb_storage.relationship_store import RelationshipStore

__version__ = "0.1.0"

__all__ = [
    "DatabaseConfig",
    "EntityStore",
    "PromotedBase",
    "PromotedTableWriter",
    "PromotionStore",
    "RelationshipStore",
    "build_insert",
    "check_connection_health",
    "close_connection_pool",
    "get_connection_pool",
    "include_promoted_object",
    "load_bindings",
    "promoted_table_names",
    "quote_identifier",
]
