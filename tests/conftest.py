"""Shared fixtures: an in-memory SQLite database bound to every record type."""

import pytest

from cascade_models import create_schema
from db_cascade.database import Database
from db_cascade.records import Record


@pytest.fixture
def db():
    """Fresh in-memory database with the test schema, bound to ``Record``."""
    database = Database.from_url("sqlite://")
    create_schema(database)
    Record.bind(database)
    yield database
    Record.bind(None)
    database.close()


@pytest.fixture
def count(db):
    """Count rows of a table, optionally filtered."""

    def _count(table: str, **filters) -> int:
        return len(db.client.select(table, "*", filters or None))

    return _count
