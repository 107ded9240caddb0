"""Shared test configuration for the entity-kb repository.

Provides:
- --run-postgres option gating tests that need a live PostgreSQL server
- Sample discovered entities used across package tests
"""

from datetime import datetime, timezone
from typing import Optional

import pytest

from entity_kb_contracts import DiscoveredEntity


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-postgres",
        action="store_true",
        default=False,
        help="Run tests that require a PostgreSQL server with pgvector",
    )


def make_entity(
    entity_id: int,
    type_category: str,
    properties: Optional[dict] = None,
    embedding: Optional[list[float]] = None,
    name: Optional[str] = None,
) -> DiscoveredEntity:
    """Build a DiscoveredEntity with sensible defaults."""
    return DiscoveredEntity(
        id=entity_id,
        unique_id=f"{type_category}-{entity_id}",
        type_category=type_category,
        name=name or f"{type_category} {entity_id}",
        properties=properties or {},
        embedding=embedding,
        confidence_score=0.9,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def entity_factory():
    """Factory fixture for DiscoveredEntity records.

    Usage:
        def test_something(entity_factory):
            person = entity_factory(1, "person", {"email": "a@b.com"})
    """
    return make_entity


@pytest.fixture
def person_entities(entity_factory) -> list[DiscoveredEntity]:
    """Three people: all have email and name, one of three has a title."""
    return [
        entity_factory(
            1,
            "person",
            {"email": "jeff.skilling@enron.com", "name": "Jeff Skilling", "title": "CEO"},
        ),
        entity_factory(
            2, "person", {"email": "ken.lay@enron.com", "name": "Kenneth Lay"}
        ),
        entity_factory(
            3, "person", {"email": "andy.fastow@enron.com", "name": "Andrew Fastow"}
        ),
    ]
