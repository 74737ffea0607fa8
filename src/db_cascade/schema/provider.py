"""Schema provider protocol and a static in-memory implementation.

The relation resolver and the junction reconciler never query the database
for metadata themselves; they ask a ``SchemaProvider``.
"""

from typing import Protocol

from db_cascade.schema.models import TableSchema, same_table


class SchemaProvider(Protocol):
    """Supplies table metadata by name."""

    def get_table(self, name: str) -> TableSchema | None:
        """Return the table schema, or ``None`` if the table does not exist."""
        ...


class StaticSchemaProvider:
    """``SchemaProvider`` over a fixed set of ``TableSchema`` objects.

    Example:
        >>> provider = StaticSchemaProvider([TableSchema(name="tags")])
        >>> provider.get_table("TAGS").name
        'tags'
    """

    def __init__(self, tables: list[TableSchema] | dict[str, TableSchema]):
        if isinstance(tables, dict):
            tables = list(tables.values())
        self._tables = {table.name: table for table in tables}

    def get_table(self, name: str) -> TableSchema | None:
        if name in self._tables:
            return self._tables[name]
        for table_name, table in self._tables.items():
            if same_table(table_name, name):
                return table
        return None
