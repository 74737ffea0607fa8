"""Cascading validation and persistence of a record and its related records.

``WithRelated`` is attached to one owner record (``record.with_related``)
and saves it together with the relations named in a processed relation
tree, inside one transaction:

1. BELONGS_TO records are saved first and their keys copied onto the owner.
2. The owner is inserted or updated.
3. HAS_ONE / HAS_MANY records get the owner's key and are saved; HAS_MANY
   records that disappeared from the collection are deleted.
4. MANY_MANY records are saved and the junction rows are replaced.

Usage:
    post.set_related("comments", [Comment(body="First!")])
    post.with_related.add_processed_relation("comments")
    if not post.with_related.save():
        print(post.with_related.get_errors())
"""

import logging
from typing import Any, Protocol, runtime_checkable

from db_cascade.exceptions import ConfigurationError, UsageError
from db_cascade.relations.descriptors import Relation, RelationKind
from db_cascade.relations.junction import reconcile
from db_cascade.relations.overlay import JunctionOverlayStore
from db_cascade.relations.session import SaveSession
from db_cascade.relations.tree import RelationTree, merge_trees, normalize_tree, partition_tree
from db_cascade.relations.validator import (
    ValidationErrorTree,
    clear_errors_tree,
    validate_tree,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class DefaultRelationTreeProvider(Protocol):
    """Anything that declares a default processed relation tree for itself."""

    def get_processed_relations(self) -> RelationTree:
        ...


class WithRelated:
    """Validate and save ``owner`` together with its related records."""

    def __init__(self, owner: Any):
        self.owner = owner
        self._processed_relations: RelationTree = normalize_tree(
            getattr(type(owner), "processed_relations", None)
        )
        self._errors: ValidationErrorTree = {}
        self._overlays = JunctionOverlayStore(owner)
        self._handlers = {
            RelationKind.HAS_ONE: self._save_has_one,
            RelationKind.HAS_MANY: self._save_has_many,
            RelationKind.MANY_MANY: self._save_many_many,
        }

    # ------------------------------------------------------------------
    # Processed relations
    # ------------------------------------------------------------------

    def get_processed_relations(self) -> RelationTree:
        return merge_trees(self._processed_relations)

    def add_processed_relation(self, definition: Any) -> "WithRelated":
        """Add relation(s) to the default tree merged into every call."""
        self._processed_relations = merge_trees(
            self._processed_relations, normalize_tree(definition)
        )
        return self

    def remove_processed_relation(self, name: str) -> "WithRelated":
        self._processed_relations.pop(name, None)
        return self

    def _tree(self, data: Any) -> RelationTree:
        return merge_trees(self._processed_relations, normalize_tree(data))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, data: Any = None, clear_errors: bool = True) -> bool:
        """Validate the owner and every related record the tree reaches.

        Args:
            data: Per-call relation tree merged onto the default one.
            clear_errors: Whether to clear previous errors across the tree first.

        Returns:
            Whether validation succeeded without any error.
        """
        tree = self._tree(data)
        if clear_errors:
            clear_errors_tree(tree, self.owner)
        self._errors = validate_tree(tree, self.owner)
        return not self._errors

    def get_errors(self) -> ValidationErrorTree:
        return self._errors

    # ------------------------------------------------------------------
    # Junction attributes
    # ------------------------------------------------------------------

    def set_many_many_attributes(
        self, relation: str, related: Any, attributes: dict[str, Any]
    ) -> None:
        self._overlays.set(relation, related, attributes)

    def get_many_many_attributes(self, relation: str, related: Any) -> dict[str, Any]:
        return self._overlays.get(relation, related)

    def get_many_many_attribute(self, relation: str, related: Any, name: str) -> Any:
        attributes = self._overlays.get(relation, related)
        if name not in attributes:
            raise UsageError(
                f"Junction attribute '{name}' does not exist", relation=relation
            )
        return attributes[name]

    def overlays(self) -> JunctionOverlayStore:
        return self._overlays

    # ------------------------------------------------------------------
    # Link / unlink
    # ------------------------------------------------------------------

    def link(self, name: str, keys: Any) -> None:
        type(self.owner).relation(name)
        # TODO: junction insert for MANY_MANY, FK assignment + save for the other kinds
        raise NotImplementedError(
            "link() is not implemented; set the related records and call save()"
        )

    def unlink(self, name: str, keys: Any = None) -> None:
        type(self.owner).relation(name)
        raise NotImplementedError(
            "unlink() is not implemented; remove the related records and call save()"
        )

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save(self, run_validation: bool = True, data: Any = None) -> bool:
        """Save the owner and every related record the tree reaches.

        Args:
            run_validation: Whether to validate the whole tree first.
            data: Per-call relation tree merged onto the default one.

        Returns:
            ``False`` if validation failed (nothing is written), else ``True``.

        Raises:
            StorageError: If any write fails.  The transaction is rolled back
                when this call opened it.
            ConfigurationError: If a relation cannot be resolved.
        """
        owner_name = type(self.owner).__name__

        if run_validation and not self.validate(data):
            logger.info(
                "cascade.save.invalid",
                extra={"record": owner_name, "error_keys": sorted(map(str, self._errors))},
            )
            return False

        tree = self._tree(data)
        session = SaveSession()
        client = type(self.owner).db().client

        owns_transaction = not client.in_transaction()
        if owns_transaction:
            client.begin()

        logger.debug(
            "cascade.save.start",
            extra={"record": owner_name, "relations": list(tree)},
        )

        try:
            self._save_record(self.owner, tree, session, inner=False)
            if owns_transaction:
                client.commit()
        except Exception:
            if owns_transaction:
                logger.warning("cascade.save.rollback", extra={"record": owner_name})
                client.rollback()
            raise

        logger.info(
            "cascade.save.success",
            extra={"record": owner_name, "saved_count": len(session)},
        )
        return True

    def _save_record(
        self,
        record: Any,
        tree: RelationTree,
        session: SaveSession,
        *,
        inner: bool = True,
        key_columns: list[str] | None = None,
    ) -> None:
        if inner and isinstance(record, DefaultRelationTreeProvider):
            tree = merge_trees(record.get_processed_relations(), tree)

        if session.is_saved(record):
            return

        attributes, relations = partition_tree(tree, record, record.attribute_names())
        assigned = list(key_columns or [])
        queue: list[tuple[str, Relation, RelationTree]] = []

        for name, subtree in relations.items():
            relation = type(record).relation(name)
            if relation.kind is RelationKind.BELONGS_TO:
                assigned.extend(self._save_belongs_to(record, name, subtree, session))
            else:
                queue.append((name, relation, subtree))

        if not session.is_saved(record):
            if attributes is not None:
                attributes = attributes + [c for c in assigned if c not in attributes]
            if record.is_new:
                record.insert(attributes)
            else:
                record.update(attributes)
            session.mark_saved(record)
            logger.debug(
                "cascade.record.saved",
                extra={"record": type(record).__name__, "key": record.primary_key},
            )

        for name, relation, subtree in queue:
            related = record.get_related(name)
            if related is None:
                continue
            self._handlers[relation.kind](record, name, related, subtree, session)

    def _save_belongs_to(
        self, record: Any, name: str, subtree: RelationTree, session: SaveSession
    ) -> list[str]:
        """Save the referenced record and copy its key onto ``record``."""
        related = record.get_related(name)
        key_map = type(record).key_map(name)

        if related is not None:
            self._save_record(related, subtree, session)

        for fk, pk in key_map.items():
            record.set_attribute(fk, related.get_attribute(pk) if related is not None else None)
        return list(key_map)

    def _save_has_one(
        self, record: Any, name: str, related: Any, subtree: RelationTree, session: SaveSession
    ) -> None:
        key_map = type(record).key_map(name)
        for fk, pk in key_map.items():
            related.set_attribute(fk, record.get_attribute(pk))
        self._save_record(related, subtree, session, key_columns=list(key_map))

    def _save_has_many(
        self, record: Any, name: str, related: list, subtree: RelationTree, session: SaveSession
    ) -> None:
        key_map = type(record).key_map(name)
        target = type(record).relation(name).target_class()
        if not target.table_schema().primary_key:
            raise ConfigurationError(
                f"Removed {target.__name__} records cannot be told apart because "
                f'"{target.table_name}" has no primary key',
                relation=name,
                table=target.table_name,
            )

        kept = {model.primary_key_tuple() for model in related if not model.is_new}
        for previous in record.fetch_related(name):
            if previous.primary_key_tuple() not in kept:
                previous.delete()
                logger.debug(
                    "cascade.has_many.deleted",
                    extra={"relation": name, "key": previous.primary_key},
                )

        for model in related:
            for fk, pk in key_map.items():
                model.set_attribute(fk, record.get_attribute(pk))
            self._save_record(model, subtree, session, key_columns=list(key_map))

    def _save_many_many(
        self, record: Any, name: str, related: list, subtree: RelationTree, session: SaveSession
    ) -> None:
        for model in related:
            self._save_record(model, subtree, session)

        overlays = self._overlay_store(record)
        reconcile(
            type(record).db().client,
            type(record).junction_map(name),
            record,
            related,
            overlay=(lambda model: overlays.peek(name, model)) if overlays is not None else None,
        )
        if overlays is not None:
            overlays.retain(name, related)

    def _overlay_store(self, record: Any) -> JunctionOverlayStore | None:
        if record is self.owner:
            return self._overlays
        behavior = record.get_with_related(create=False)
        return behavior.overlays() if behavior is not None else None
