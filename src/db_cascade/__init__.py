"""db-cascade: save and validate graphs of related database records together.

A root record and the related records named in a relation tree
(BELONGS_TO, HAS_ONE, HAS_MANY, MANY_MANY) are validated as one unit and
written in one transaction, including many-to-many junction rows.

Usage:
    from db_cascade import Database, Record, belongs_to, has_many, many_many
    from db_cascade import get_database, load_db_config
    from db_cascade import CascadeError, ConfigurationError, StorageError, UsageError
"""

__version__ = "0.1.0"

# Adapters
from db_cascade.adapters.base import DatabaseClient
from db_cascade.adapters.sql import SqlAdapter

# Config
from db_cascade.config.loader import load_db_config
from db_cascade.config.models import DatabaseConfig, DatabaseProfile

# Database and records
from db_cascade.database import Database
from db_cascade.records import Record

# Exceptions
from db_cascade.exceptions import (
    CascadeError,
    ConfigurationError,
    StorageError,
    UsageError,
)

# Factory
from db_cascade.factory import ProfileNotFoundError, get_database, resolve_url

# Relations
from db_cascade.relations import (
    Relation,
    RelationKind,
    WithRelated,
    belongs_to,
    has_many,
    has_one,
    many_many,
)

# Schema
from db_cascade.schema import SchemaIntrospector, StaticSchemaProvider, TableSchema

__all__ = [
    # Adapters
    "DatabaseClient",
    "SqlAdapter",
    # Config
    "load_db_config",
    "DatabaseProfile",
    "DatabaseConfig",
    # Database and records
    "Database",
    "Record",
    # Exceptions
    "CascadeError",
    "ConfigurationError",
    "StorageError",
    "UsageError",
    # Factory
    "get_database",
    "ProfileNotFoundError",
    "resolve_url",
    # Relations
    "Relation",
    "RelationKind",
    "WithRelated",
    "belongs_to",
    "has_one",
    "has_many",
    "many_many",
    # Schema
    "SchemaIntrospector",
    "StaticSchemaProvider",
    "TableSchema",
]
