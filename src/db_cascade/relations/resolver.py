"""Foreign-key resolution for BELONGS_TO, HAS_ONE and HAS_MANY relations.

One algorithm serves every non-junction relation kind; the caller decides
which table is the *owner* (the side whose key is referenced) and which is
the *dependent* (the side holding the foreign-key columns):

- BELONGS_TO: owner = related table, dependent = the record's own table
- HAS_ONE / HAS_MANY: owner = the record's own table, dependent = related table
"""

import re

from db_cascade.exceptions import ConfigurationError
from db_cascade.relations.descriptors import ForeignKeySpec
from db_cascade.schema.models import TableSchema, same_table

EXPLICIT_SEPARATOR = "->"


def split_foreign_key(
    foreign_key: ForeignKeySpec,
    *,
    relation: str | None = None,
) -> list[tuple[str, str | None]]:
    """Split a foreign-key definition into ``(column, referenced_column | None)`` pairs.

    Examples:
        >>> split_foreign_key("author_id")
        [('author_id', None)]
        >>> split_foreign_key("org_id, user_code -> code")
        [('org_id', None), ('user_code', 'code')]
        >>> split_foreign_key({"author_id": "id"})
        [('author_id', 'id')]
    """
    if isinstance(foreign_key, dict):
        pairs = [(str(fk).strip(), str(pk).strip()) for fk, pk in foreign_key.items()]
        if not pairs or any(not fk or not pk for fk, pk in pairs):
            raise ConfigurationError(
                f"Invalid foreign key mapping {foreign_key!r}", relation=relation
            )
        return pairs

    if isinstance(foreign_key, str):
        entries = [e for e in re.split(r"\s*,\s*", foreign_key.strip()) if e]
    else:
        entries = list(foreign_key)

    pairs: list[tuple[str, str | None]] = []
    for entry in entries:
        if not isinstance(entry, str):
            raise ConfigurationError(
                f"Foreign key entries must be strings, got {entry!r}", relation=relation
            )
        fk, separator, pk = entry.partition(EXPLICIT_SEPARATOR)
        fk, pk = fk.strip(), pk.strip()
        if not fk or (separator and not pk):
            raise ConfigurationError(
                f"Invalid foreign key entry '{entry}'", relation=relation
            )
        pairs.append((fk, pk if separator else None))

    if not pairs:
        raise ConfigurationError("Foreign key specification is empty", relation=relation)
    return pairs


def resolve_key_map(
    foreign_key: ForeignKeySpec,
    owner_schema: TableSchema,
    dependent_schema: TableSchema,
    *,
    relation: str | None = None,
) -> dict[str, str]:
    """Resolve a foreign-key definition into ``{dependent_column: owner_column}``.

    Explicit ``fk -> pk`` entries are used as given.  A positional entry at
    index *i* uses the dependent table's declared FK constraint on that
    column when the constraint references the owner table; otherwise it
    falls back to the *i*-th column of the owner's primary key.

    Raises:
        ConfigurationError: If the definition is malformed or a positional entry
            has no matching owner primary-key column.
    """
    declared = dependent_schema.foreign_keys
    owner_pk = owner_schema.primary_key
    key_map: dict[str, str] = {}

    for index, (fk, pk) in enumerate(split_foreign_key(foreign_key, relation=relation)):
        if pk is None:
            reference = declared.get(fk)
            if reference is not None and same_table(owner_schema.name, reference[0]):
                pk = reference[1]
            elif index < len(owner_pk):
                pk = owner_pk[index]
            else:
                raise ConfigurationError(
                    f"Foreign key column '{fk}' has no declared constraint and "
                    f"table '{owner_schema.name}' has no primary key column at "
                    f"position {index} to map it to",
                    relation=relation,
                    table=dependent_schema.name,
                )
        key_map[fk] = pk

    return key_map
