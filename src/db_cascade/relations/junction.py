"""Many-to-many junction tables: definition parsing, column classification, reconciliation.

A MANY_MANY relation names its junction table and columns as
``"join_table(col1, col2, ...)"``.  Each column is classified as pointing at
the owner's primary key or at the related record's primary key, using
declared FK constraints when they classify every column unambiguously and
column position otherwise.

Reconciliation fully replaces the junction rows of one owner: every row
for the owner's key is deleted, then one row per current related record is
inserted.  Both steps run in the caller's transaction.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from db_cascade.adapters.base import DatabaseClient
from db_cascade.exceptions import ConfigurationError
from db_cascade.schema.models import TableSchema, same_table
from db_cascade.schema.provider import SchemaProvider

logger = logging.getLogger(__name__)

JUNCTION_PATTERN = re.compile(r"^\s*(.*?)\((.*)\)\s*$", re.DOTALL)


@dataclass(frozen=True)
class JunctionSpec:
    table: str
    columns: tuple[str, ...]


@dataclass(frozen=True)
class JunctionMap:
    """Resolved junction columns.

    ``owner_map`` and ``related_map`` map a primary-key column of the owner
    (resp. related) table to the junction column that stores it.
    """

    table: str
    owner_map: dict[str, str]
    related_map: dict[str, str]

    @property
    def key_columns(self) -> list[str]:
        return [*self.owner_map.values(), *self.related_map.values()]

    def owner_values(self, owner: Any) -> dict[str, Any]:
        """Junction column values identifying ``owner``."""
        return {col: owner.get_attribute(pk) for pk, col in self.owner_map.items()}

    def related_values(self, related: Any) -> dict[str, Any]:
        """Junction column values identifying ``related``."""
        return {col: related.get_attribute(pk) for pk, col in self.related_map.items()}


def parse_junction(foreign_key: Any, *, relation: str | None = None) -> JunctionSpec:
    """Parse ``"join_table(col1, col2, ...)"``.

    Examples:
        >>> parse_junction(" post_tags( post_id , tag_id ) ")
        JunctionSpec(table='post_tags', columns=('post_id', 'tag_id'))

    Raises:
        ConfigurationError: If the definition does not have that shape.
    """
    match = JUNCTION_PATTERN.match(foreign_key) if isinstance(foreign_key, str) else None
    table = match.group(1).strip() if match else ""
    columns = (
        tuple(c for c in re.split(r"\s*,\s*", match.group(2).strip()) if c)
        if match
        else ()
    )
    if not table or not columns:
        raise ConfigurationError(
            f"Invalid foreign key {foreign_key!r}. The format of the foreign key "
            'must be "joinTable(fk1,fk2,...)".',
            relation=relation,
        )
    return JunctionSpec(table=table, columns=columns)


def _classify_declared(
    columns: tuple[str, ...],
    join_table: TableSchema,
    owner_schema: TableSchema,
    related_schema: TableSchema,
) -> tuple[dict[str, str], dict[str, str]] | None:
    """Classify every column by its FK constraint, or return None if any column can't be."""
    declared = join_table.foreign_keys
    owner_map: dict[str, str] = {}
    related_map: dict[str, str] = {}

    for column in columns:
        reference = declared.get(column)
        if reference is None:
            return None
        ref_table, ref_column = reference
        if ref_column not in owner_map and same_table(owner_schema.name, ref_table):
            owner_map[ref_column] = column
        elif ref_column not in related_map and same_table(related_schema.name, ref_table):
            related_map[ref_column] = column
        else:
            return None

    return owner_map, related_map


def _classify_positional(
    columns: tuple[str, ...],
    owner_schema: TableSchema,
    related_schema: TableSchema,
    relation: str | None,
) -> tuple[dict[str, str], dict[str, str]]:
    """First columns map to the owner primary key, the rest to the related one."""
    owner_pk = owner_schema.primary_key
    related_pk = related_schema.primary_key
    owner_map: dict[str, str] = {}
    related_map: dict[str, str] = {}

    for index, column in enumerate(columns):
        if index < len(owner_pk):
            owner_map[owner_pk[index]] = column
            continue
        related_index = index - len(owner_pk)
        if related_index >= len(related_pk):
            raise ConfigurationError(
                f"Junction column '{column}' has no primary key column of table "
                f"'{related_schema.name}' to map to",
                relation=relation,
            )
        related_map[related_pk[related_index]] = column

    return owner_map, related_map


def resolve_junction(
    foreign_key: Any,
    owner_schema: TableSchema,
    related_schema: TableSchema,
    schema: SchemaProvider,
    *,
    relation: str | None = None,
) -> JunctionMap:
    """Resolve a MANY_MANY junction definition against the schema.

    Raises:
        ConfigurationError: If the definition is malformed, the join table or a
            listed column does not exist, or the columns do not reference
            both tables.
    """
    parsed = parse_junction(foreign_key, relation=relation)

    join_table = schema.get_table(parsed.table)
    if join_table is None:
        raise ConfigurationError(
            f'The join table "{parsed.table}" given in the foreign key cannot be '
            "found in the database.",
            relation=relation,
            table=parsed.table,
        )

    for column in parsed.columns:
        if column not in join_table.columns:
            raise ConfigurationError(
                f'Invalid foreign key "{column}". There is no such column in the '
                f'table "{join_table.name}".',
                relation=relation,
                table=join_table.name,
            )

    maps = _classify_declared(parsed.columns, join_table, owner_schema, related_schema)
    if maps is None:
        maps = _classify_positional(parsed.columns, owner_schema, related_schema, relation)
    owner_map, related_map = maps

    if not owner_map or not related_map:
        raise ConfigurationError(
            "Incomplete foreign key. The foreign key must consist of columns "
            "referencing both joining tables.",
            relation=relation,
            table=join_table.name,
        )

    return JunctionMap(table=join_table.name, owner_map=owner_map, related_map=related_map)


def reconcile(
    client: DatabaseClient,
    junction: JunctionMap,
    owner: Any,
    related: list[Any],
    overlay: Callable[[Any], dict[str, Any]] | None = None,
) -> int:
    """Replace the owner's junction rows with one row per related record.

    Args:
        client: Storage client (inside the caller's transaction).
        junction: Resolved junction columns.
        owner: Persisted owner record.
        related: Persisted related records, in insert order.
        overlay: Returns the extra junction attributes for a related record.
            Key columns always win over overlay values.

    Returns:
        Number of junction rows inserted.
    """
    owner_values = junction.owner_values(owner)
    deleted = client.delete(junction.table, owner_values)

    for record in related:
        row = dict(overlay(record)) if overlay is not None else {}
        row.update(owner_values)
        row.update(junction.related_values(record))
        client.insert(junction.table, row)

    logger.info(
        "cascade.junction.reconciled",
        extra={"table": junction.table, "deleted": deleted, "inserted": len(related)},
    )
    return len(related)
