"""Database schema introspection via SQLAlchemy's inspector.

Extracts, per table:
- Columns, data types, nullability, defaults
- Primary key constraint
- Foreign key constraints (with referenced table and columns)

Works with any backend SQLAlchemy can reflect (PostgreSQL, SQLite, ...).
Results are cached per table; call ``refresh()`` after DDL.
"""

import logging

from db_cascade.adapters.sql import SqlAdapter
from db_cascade.schema.models import (
    FOREIGN_KEY,
    PRIMARY_KEY,
    ColumnSchema,
    ConstraintSchema,
    DatabaseSchema,
    TableSchema,
)

logger = logging.getLogger(__name__)


class SchemaIntrospector:
    """Introspects database schema through an adapter's connection.

    Usage:
        introspector = SchemaIntrospector(adapter)

        # Single table (None if it does not exist)
        posts = introspector.get_table("posts")

        # Every table
        schema = introspector.introspect()
    """

    # Tables to exclude from full introspection (system tables)
    EXCLUDED_TABLES = {
        "schema_migrations",
        "alembic_version",
        "spatial_ref_sys",
    }

    def __init__(self, adapter: SqlAdapter, schema_name: str | None = None):
        """Initialize with the adapter whose connection is inspected.

        Args:
            adapter: SqlAdapter to inspect through.
            schema_name: Optional database schema (e.g. ``"public"``).
        """
        self._adapter = adapter
        self._schema_name = schema_name
        self._cache: dict[str, TableSchema | None] = {}

    def refresh(self) -> None:
        """Drop cached table metadata."""
        self._cache.clear()

    def get_table(self, name: str) -> TableSchema | None:
        """Return the schema of one table, or ``None`` if it does not exist."""
        if name not in self._cache:
            self._cache[name] = self._load_table(name)
        return self._cache[name]

    def introspect(self) -> DatabaseSchema:
        """Introspect every table in the schema."""
        with self._adapter.inspector() as inspector:
            table_names = inspector.get_table_names(schema=self._schema_name)

        db_schema = DatabaseSchema()
        for table_name in table_names:
            if table_name in self.EXCLUDED_TABLES:
                continue
            table = self.get_table(table_name)
            if table is not None:
                db_schema.tables[table_name] = table
        return db_schema

    def _load_table(self, name: str) -> TableSchema | None:
        with self._adapter.inspector() as inspector:
            if not inspector.has_table(name, schema=self._schema_name):
                return None

            table = TableSchema(name=name)

            # Get columns
            for column in inspector.get_columns(name, schema=self._schema_name):
                default = column.get("default")
                table.columns[column["name"]] = ColumnSchema(
                    name=column["name"],
                    data_type=str(column["type"]).lower(),
                    is_nullable=bool(column.get("nullable", True)),
                    default=None if default is None else str(default),
                )

            # Get primary key
            pk = inspector.get_pk_constraint(name, schema=self._schema_name)
            pk_columns = list(pk.get("constrained_columns") or [])
            if pk_columns:
                pk_name = pk.get("name") or f"{name}_pkey"
                table.constraints[pk_name] = ConstraintSchema(
                    name=pk_name,
                    constraint_type=PRIMARY_KEY,
                    columns=pk_columns,
                )

            # Get foreign keys (SQLite leaves them unnamed)
            for fk in inspector.get_foreign_keys(name, schema=self._schema_name):
                columns = list(fk["constrained_columns"])
                fk_name = fk.get("name") or f"{name}_{'_'.join(columns)}_fkey"
                table.constraints[fk_name] = ConstraintSchema(
                    name=fk_name,
                    constraint_type=FOREIGN_KEY,
                    columns=columns,
                    references_table=fk["referred_table"],
                    references_columns=list(fk["referred_columns"]),
                )

        logger.debug(
            "schema.table.loaded",
            extra={
                "table": name,
                "column_count": len(table.columns),
                "primary_key": table.primary_key,
            },
        )
        return table
