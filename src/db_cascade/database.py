"""The pair of collaborators every record type is bound to.

Usage:
    from db_cascade.database import Database
    from db_cascade.records import Record

    db = Database.from_url("sqlite:///app.db")
    Record.bind(db)
"""

from dataclasses import dataclass
from typing import Any

from db_cascade.adapters.base import DatabaseClient
from db_cascade.adapters.sql import SqlAdapter
from db_cascade.schema.introspector import SchemaIntrospector
from db_cascade.schema.provider import SchemaProvider


@dataclass
class Database:
    """Storage client plus the schema metadata provider for the same database."""

    client: DatabaseClient
    schema: SchemaProvider

    @classmethod
    def from_url(cls, database_url: str, **engine_kwargs: Any) -> "Database":
        """Build a ``SqlAdapter`` and a ``SchemaIntrospector`` over it."""
        adapter = SqlAdapter(database_url, **engine_kwargs)
        return cls(client=adapter, schema=SchemaIntrospector(adapter))

    def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute raw SQL and drop cached schema metadata."""
        self.client.execute(sql, params)
        refresh = getattr(self.schema, "refresh", None)
        if refresh is not None:
            refresh()

    def close(self) -> None:
        self.client.close()
