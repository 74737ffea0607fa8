"""Schema builders for tests that don't need a database."""

from db_cascade.schema.models import ColumnSchema, ConstraintSchema, TableSchema


def make_table(
    name: str,
    columns: list[str],
    primary_key: list[str] | None = None,
    foreign_keys: dict[str, tuple[str, str]] | None = None,
) -> TableSchema:
    """Build a TableSchema from plain lists."""
    table = TableSchema(
        name=name, columns={c: ColumnSchema(name=c) for c in columns}
    )
    if primary_key:
        table.constraints[f"{name}_pkey"] = ConstraintSchema(
            name=f"{name}_pkey", constraint_type="PRIMARY KEY", columns=primary_key
        )
    for column, (ref_table, ref_column) in (foreign_keys or {}).items():
        table.constraints[f"{name}_{column}_fkey"] = ConstraintSchema(
            name=f"{name}_{column}_fkey",
            constraint_type="FOREIGN KEY",
            columns=[column],
            references_table=ref_table,
            references_columns=[ref_column],
        )
    return table
