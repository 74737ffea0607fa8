"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that all adapters must implement.
All methods are blocking: the cascade engine recurses in call-stack order
and never suspends except on I/O.

Usage:
    from db_cascade.adapters.base import DatabaseClient

    def do_work(client: DatabaseClient) -> None:
        client.begin()
        try:
            row = client.insert("posts", {"title": "Hello"})
            client.update("posts", {"title": "Hi"}, {"id": row["id"]})
            client.commit()
        except Exception:
            client.rollback()
            raise
"""

from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement.

    Every storage failure surfaces as ``db_cascade.exceptions.StorageError``.
    """

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: ``"*"`` or comma-separated column names (e.g. ``"id, title"``).
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional comma-separated column names to sort by.

        Returns:
            List of dicts, one per row.  Empty list if no matches.
        """
        ...

    def insert(self, table: str, data: dict) -> dict:
        """Insert row into table and return the created row.

        Args:
            table: Table name.
            data: Dict of field=value pairs to insert.

        Returns:
            Dict representing the created row, including generated keys
            and server defaults.

        Raises:
            StorageError: If duplicate key or constraint violation.
        """
        ...

    def update(self, table: str, data: dict, filters: dict[str, Any]) -> dict:
        """Update rows in table and return the first updated row.

        Raises:
            StorageError: If no rows match filters.
        """
        ...

    def delete(self, table: str, filters: dict[str, Any]) -> int:
        """Delete rows matching all filters and return the number deleted."""
        ...

    def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement (DDL or other non-query operations)."""
        ...

    def begin(self) -> None:
        """Open a transaction that subsequent statements join."""
        ...

    def commit(self) -> None:
        """Commit the transaction opened by ``begin()``."""
        ...

    def rollback(self) -> None:
        """Roll back the transaction opened by ``begin()``."""
        ...

    def in_transaction(self) -> bool:
        """Return whether a transaction opened by ``begin()`` is active."""
        ...

    def close(self) -> None:
        """Close database connection and clean up resources."""
        ...
