"""Create the base tables from schema.sql.

Revision ID: 0001_base_schema
Revises:
Create Date: 2026-10-16

Creates:
- discovered_entities (pgvector embedding)
- relationships
- schema_promotions audit trail

Promoted-type tables are added by later autogenerated revisions.
"""

from pathlib import Path

from alembic import op


# revision identifiers
revision = "0001_base_schema"
down_revision = None
branch_labels = None
depends_on = None

SCHEMA_FILE = Path(__file__).resolve().parents[2] / "schema.sql"


def _statements(sql: str) -> list[str]:
    statements = []
    for chunk in sql.split(";"):
        lines = [line for line in chunk.splitlines() if not line.strip().startswith("--")]
        statement = "\n".join(lines).strip()
        if statement:
            statements.append(statement)
    return statements


def upgrade() -> None:
    for statement in _statements(SCHEMA_FILE.read_text()):
        op.execute(statement)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS schema_promotions")
    op.execute("DROP TABLE IF EXISTS relationships")
    op.execute("DROP TABLE IF EXISTS discovered_entities")
