"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and the SQLAlchemy-based
``SqlAdapter`` that implements it for PostgreSQL (via psycopg) and SQLite.

Usage:
    from db_cascade.adapters import DatabaseClient, SqlAdapter
"""

from db_cascade.adapters.base import DatabaseClient
from db_cascade.adapters.sql import SqlAdapter, create_engine_pooled

__all__ = [
    "DatabaseClient",
    "SqlAdapter",
    "create_engine_pooled",
]
