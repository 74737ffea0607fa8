"""Pydantic models for schema introspection.

These models are the shape every ``SchemaProvider`` hands to the relation
resolver and the junction reconciler:
- ColumnSchema, ConstraintSchema, TableSchema, DatabaseSchema
"""

from pydantic import BaseModel, Field

PRIMARY_KEY = "PRIMARY KEY"
FOREIGN_KEY = "FOREIGN KEY"


def same_table(a: str, b: str) -> bool:
    """Compare two table names ignoring case and identifier quoting.

    Example:
        >>> same_table('"Posts"', "posts")
        True
    """
    return a.strip().strip('"`[]').lower() == b.strip().strip('"`[]').lower()


# ============================================================================
# Schema Introspection Models
# ============================================================================


class ColumnSchema(BaseModel):
    """Schema for a database column.

    Example:
        >>> col = ColumnSchema(name="id", data_type="integer")
        >>> col.is_nullable
        True
    """

    name: str
    data_type: str = ""
    is_nullable: bool = True
    default: str | None = None


class ConstraintSchema(BaseModel):
    """Schema for a database constraint."""

    name: str
    constraint_type: str  # PRIMARY KEY, FOREIGN KEY, UNIQUE
    columns: list[str] = Field(default_factory=list)
    references_table: str | None = None
    references_columns: list[str] | None = None


class TableSchema(BaseModel):
    """Schema for a database table.

    Example:
        >>> table = TableSchema(
        ...     name="comments",
        ...     columns={"id": ColumnSchema(name="id"), "post_id": ColumnSchema(name="post_id")},
        ...     constraints={
        ...         "pk": ConstraintSchema(name="pk", constraint_type="PRIMARY KEY", columns=["id"]),
        ...         "fk": ConstraintSchema(
        ...             name="fk",
        ...             constraint_type="FOREIGN KEY",
        ...             columns=["post_id"],
        ...             references_table="posts",
        ...             references_columns=["id"],
        ...         ),
        ...     },
        ... )
        >>> table.primary_key
        ['id']
        >>> table.foreign_keys
        {'post_id': ('posts', 'id')}
    """

    name: str
    columns: dict[str, ColumnSchema] = Field(default_factory=dict)
    constraints: dict[str, ConstraintSchema] = Field(default_factory=dict)

    @property
    def column_names(self) -> list[str]:
        """Column names in declaration order."""
        return list(self.columns)

    @property
    def primary_key(self) -> list[str]:
        """Primary key columns in key order (empty when the table has none)."""
        for constraint in self.constraints.values():
            if constraint.constraint_type == PRIMARY_KEY:
                return list(constraint.columns)
        return []

    @property
    def foreign_keys(self) -> dict[str, tuple[str, str]]:
        """Map each FK column to ``(referenced_table, referenced_column)``."""
        result: dict[str, tuple[str, str]] = {}
        for constraint in self.constraints.values():
            if constraint.constraint_type != FOREIGN_KEY or not constraint.references_table:
                continue
            referenced = constraint.references_columns or []
            for column, ref_column in zip(constraint.columns, referenced):
                result[column] = (constraint.references_table, ref_column)
        return result


class DatabaseSchema(BaseModel):
    """Complete database schema."""

    tables: dict[str, TableSchema] = Field(default_factory=dict)
