"""Relation descriptors declared on record types.

Usage:
    class Post(Record):
        table_name = "posts"
        relations = {
            "author": belongs_to("User", "author_id"),
            "comments": has_many("Comment", "post_id"),
            "tags": many_many("Tag", "post_tags(post_id, tag_id)"),
        }
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from db_cascade.exceptions import ConfigurationError

ForeignKeySpec = str | list[str] | tuple[str, ...] | dict[str, str]

# Record types by class name, so relations can name targets before they exist
_RECORD_TYPES: dict[str, type] = {}


def register_record_type(cls: type) -> None:
    _RECORD_TYPES[cls.__name__] = cls


class RelationKind(StrEnum):
    BELONGS_TO = "belongs_to"
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    MANY_MANY = "many_many"

    @property
    def is_collection(self) -> bool:
        return self in (RelationKind.HAS_MANY, RelationKind.MANY_MANY)


@dataclass(frozen=True)
class Relation:
    """One declared relation: its kind, target record type, and foreign key.

    ``foreign_key`` is a column list (``"a_id"``, ``"a_id, b_id"``,
    ``["a_id", "b_id->code"]`` or ``{"a_id": "id"}``) for every kind except
    ``MANY_MANY``, which takes a junction definition ``"join_table(col1, col2)"``.
    """

    kind: RelationKind
    target: Any
    foreign_key: ForeignKeySpec

    def target_class(self) -> type:
        """Return the target record type, resolving a class name if needed."""
        if isinstance(self.target, str):
            try:
                return _RECORD_TYPES[self.target]
            except KeyError:
                raise ConfigurationError(
                    f"Unknown record type '{self.target}' in relation target"
                ) from None
        return self.target


def belongs_to(target: Any, foreign_key: ForeignKeySpec) -> Relation:
    return Relation(RelationKind.BELONGS_TO, target, foreign_key)


def has_one(target: Any, foreign_key: ForeignKeySpec) -> Relation:
    return Relation(RelationKind.HAS_ONE, target, foreign_key)


def has_many(target: Any, foreign_key: ForeignKeySpec) -> Relation:
    return Relation(RelationKind.HAS_MANY, target, foreign_key)


def many_many(target: Any, junction: str) -> Relation:
    return Relation(RelationKind.MANY_MANY, target, junction)
