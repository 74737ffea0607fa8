"""Extra junction-row attributes for MANY_MANY relations.

The overlay for one ``(relation, related record)`` pair holds the junction
columns that are not keys, e.g. ``position`` or ``added_at`` in
``post_tags(post_id, tag_id)``.  It is seeded on first access from the
existing junction row, or with ``None`` for every non-key column when no
row exists yet, and is merged into the row written on the next save.
Overlays of records that left the collection are discarded once the
relation is saved.
"""

from typing import Any

from db_cascade.exceptions import UsageError
from db_cascade.relations.descriptors import RelationKind


class JunctionOverlayStore:
    """Overlays of one owner record, keyed by relation name and related-record identity."""

    def __init__(self, owner: Any):
        self._owner = owner
        # relation -> id(related) -> (related, attributes); keeps related pinned
        self._overlays: dict[str, dict[int, tuple[Any, dict[str, Any]]]] = {}

    def get(self, relation: str, related: Any) -> dict[str, Any]:
        """Return a copy of the overlay, initializing it on first access.

        Raises:
            UsageError: If ``relation`` is not MANY_MANY or ``related`` is not
                in the owner's loaded collection for it.
        """
        return dict(self._entry(relation, related))

    def set(self, relation: str, related: Any, attributes: dict[str, Any]) -> None:
        """Merge ``attributes`` onto the overlay."""
        self._entry(relation, related).update(attributes)

    def peek(self, relation: str, related: Any) -> dict[str, Any]:
        """Return the overlay if one was ever accessed, else an empty dict."""
        entry = self._overlays.get(relation, {}).get(id(related))
        return dict(entry[1]) if entry is not None else {}

    def retain(self, relation: str, related: list) -> None:
        """Drop overlays of records that are no longer in ``related``."""
        keep = {id(model) for model in related}
        entries = self._overlays.get(relation, {})
        for key in [key for key in entries if key not in keep]:
            del entries[key]

    def _entry(self, relation: str, related: Any) -> dict[str, Any]:
        entry = self._overlays.get(relation, {}).get(id(related))
        if entry is None:
            entry = (related, self._initial_attributes(relation, related))
            self._overlays.setdefault(relation, {})[id(related)] = entry
        return entry[1]

    def _initial_attributes(self, relation_name: str, related: Any) -> dict[str, Any]:
        owner = self._owner
        owner_type = type(owner)

        relation = owner_type.relation(relation_name)
        if relation.kind is not RelationKind.MANY_MANY:
            raise UsageError(
                f"The {relation_name} isn't MANY_MANY relation", relation=relation_name
            )

        loaded = owner.get_related(relation_name) if owner.has_related(relation_name) else []
        if not any(item is related for item in loaded):
            raise UsageError(
                f"The {relation_name} isn't related to {type(related).__name__} "
                f"record {related.primary_key!r}",
                relation=relation_name,
            )

        junction = owner_type.junction_map(relation_name)
        database = owner_type.db()

        attributes: dict[str, Any] | None = None
        if any(value is not None for value in owner.primary_key_values().values()):
            filters = {**junction.owner_values(owner), **junction.related_values(related)}
            rows = database.client.select(junction.table, "*", filters)
            if rows:
                attributes = dict(rows[0])

        if attributes is None:
            join_table = database.schema.get_table(junction.table)
            attributes = dict.fromkeys(join_table.column_names if join_table else [])

        for column in junction.key_columns:
            attributes.pop(column, None)
        return attributes
