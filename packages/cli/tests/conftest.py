"""Fixtures for CLI testing."""

from datetime import datetime, timezone

import pytest
from typer.testing import CliRunner

from entity_kb_contracts import (
    ClusterInfo,
    PromotionResult,
    PromotionStage,
    SchemaPromotion,
    TypeCandidate,
)


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def ranked_candidates():
    """Two ranked candidates, best first."""
    return [
        TypeCandidate(type_name="person", frequency=120, density=2.5, consistency=0.9, score=48.02),
        TypeCandidate(type_name="company", frequency=40, density=1.0, consistency=0.6, score=16.48),
    ]


@pytest.fixture
def cluster_summaries():
    return [ClusterInfo(type_name="person", size=100, cluster_count=3)]


@pytest.fixture
def successful_result():
    return PromotionResult(
        type_name="person",
        success=True,
        stage=PromotionStage.AUDITED,
        schema_file_path="generated/models/person.py",
        table_name="persons",
        entities_migrated=3,
    )


@pytest.fixture
def failed_result():
    return PromotionResult(
        type_name="person",
        success=False,
        stage=PromotionStage.VALIDATED,
        schema_file_path="generated/models/person.py",
        table_name="persons",
        error="data copy failed: Failed to copy rows into persons: check constraint violated",
    )


@pytest.fixture
def audit_records():
    return [
        SchemaPromotion(
            id=2,
            type_name="person",
            promoted_at=datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc),
            entities_affected=0,
            validation_failures=1,
            succeeded=False,
            error_message="migration failed: alembic exited with code 1",
        ),
        SchemaPromotion(
            id=1,
            type_name="person",
            promoted_at=datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc),
            entities_affected=3,
            validation_failures=0,
            succeeded=True,
        ),
    ]
