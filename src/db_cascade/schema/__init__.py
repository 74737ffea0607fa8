"""Schema metadata: models, providers, and live introspection.

Usage:
    from db_cascade.schema import SchemaIntrospector, StaticSchemaProvider
    from db_cascade.schema import TableSchema, ColumnSchema, ConstraintSchema
"""

from db_cascade.schema.introspector import SchemaIntrospector
from db_cascade.schema.models import (
    ColumnSchema,
    ConstraintSchema,
    DatabaseSchema,
    TableSchema,
    same_table,
)
from db_cascade.schema.provider import SchemaProvider, StaticSchemaProvider

__all__ = [
    "SchemaIntrospector",
    "SchemaProvider",
    "StaticSchemaProvider",
    "ColumnSchema",
    "ConstraintSchema",
    "DatabaseSchema",
    "TableSchema",
    "same_table",
]
