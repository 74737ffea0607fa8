"""Exceptions raised by db-cascade.

Validation failures are not exceptions: they are collected into an error
tree and reported through ``WithRelated.validate()`` / ``save()`` return
values.  Everything here is a systemic fault that aborts the current
operation.
"""


class CascadeError(Exception):
    """Base exception for db-cascade errors.

    - message: human-friendly message
    - relation: optional relation name the error is about
    - table: optional table name the error is about
    """

    def __init__(
        self,
        message: str,
        *,
        relation: str | None = None,
        table: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.relation = relation
        self.table = table

    def __str__(self) -> str:
        parts = []
        if self.relation:
            parts.append(f"relation: {self.relation}")
        if self.table:
            parts.append(f"table: {self.table}")
        if parts:
            return f"{self.message} ({'; '.join(parts)})"
        return self.message


class ConfigurationError(CascadeError):
    """Relation or junction specification cannot be resolved against the schema."""


class StorageError(CascadeError):
    """The storage collaborator failed during a query or write."""


class UsageError(CascadeError):
    """The public API was called with arguments that make no sense for the record."""


__all__ = [
    "CascadeError",
    "ConfigurationError",
    "StorageError",
    "UsageError",
]
