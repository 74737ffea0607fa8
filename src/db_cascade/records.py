"""Record base class: one row of one table plus its loaded relations.

Record types declare their table, their relations, and optionally a pydantic
model holding field validation rules::

    class CommentRules(BaseModel):
        body: str = Field(min_length=1)

    class Comment(Record):
        table_name = "comments"
        rules = CommentRules
        relations = {"post": belongs_to("Post", "post_id")}

    Record.bind(Database.from_url("sqlite:///app.db"))

    comment = Comment(body="Nice post")
    comment.set_related("post", Post.find(id=1))
    comment.with_related.save(data=["post"])

Attributes are plain keyword arguments and instance attributes; relations
are only ever loaded explicitly (``set_related`` / ``load_related``).
"""

import logging
import re
from typing import Any, ClassVar

from pydantic import BaseModel, ValidationError

from db_cascade.database import Database
from db_cascade.exceptions import ConfigurationError, UsageError
from db_cascade.relations.descriptors import Relation, RelationKind, register_record_type
from db_cascade.relations.engine import WithRelated
from db_cascade.relations.junction import JunctionMap, resolve_junction
from db_cascade.relations.resolver import resolve_key_map
from db_cascade.relations.tree import RelationTree, normalize_tree
from db_cascade.schema.models import TableSchema

logger = logging.getLogger(__name__)


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


class Record:
    """Base class for record types.

    Class attributes:
        table_name: Table holding the rows (defaults to the snake_case class name).
        relations: Relation name -> ``Relation`` descriptor.
        rules: Optional pydantic model validating attribute values.
        processed_relations: Default relation tree saved/validated with the record.
        database: ``Database`` the type is bound to (see ``bind``).
    """

    table_name: ClassVar[str | None] = None
    relations: ClassVar[dict[str, Relation]] = {}
    rules: ClassVar[type[BaseModel] | None] = None
    processed_relations: ClassVar[Any] = None
    database: ClassVar[Database | None] = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if cls.table_name is None:
            cls.table_name = _snake_case(cls.__name__)
        register_record_type(cls)

    def __init__(self, **attributes: Any):
        object.__setattr__(self, "_attributes", {})
        object.__setattr__(self, "_related", {})
        object.__setattr__(self, "_errors", {})
        object.__setattr__(self, "_is_new", True)
        object.__setattr__(self, "_old_key", None)
        object.__setattr__(self, "_with_related", None)
        for name, value in attributes.items():
            setattr(self, name, value)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        attributes = self.__dict__.get("_attributes", {})
        if name in attributes:
            return attributes[name]
        related = self.__dict__.get("_related", {})
        if name in related:
            return related[name]
        raise AttributeError(
            f"'{type(self).__name__}' record has no attribute or loaded relation '{name}'"
        )

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or hasattr(type(self), name):
            object.__setattr__(self, name, value)
        elif name in type(self).relations:
            self.set_related(name, value)
        else:
            self._attributes[name] = value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._attributes!r})"

    # ------------------------------------------------------------------
    # Binding and schema
    # ------------------------------------------------------------------

    @classmethod
    def bind(cls, database: Database | None) -> None:
        """Bind this record type (and subclasses that don't override it) to a database."""
        cls.database = database

    @classmethod
    def db(cls) -> Database:
        if cls.database is None:
            raise UsageError(
                f"Record type '{cls.__name__}' is not bound to a database; call bind() first",
                table=cls.table_name,
            )
        return cls.database

    @classmethod
    def table_schema(cls) -> TableSchema:
        table = cls.db().schema.get_table(cls.table_name)
        if table is None:
            raise ConfigurationError(
                f"The table for record type '{cls.__name__}' cannot be found in the database",
                table=cls.table_name,
            )
        return table

    @classmethod
    def attribute_names(cls) -> list[str]:
        return cls.table_schema().column_names

    @classmethod
    def validation_attribute_names(cls) -> list[str]:
        """Column names plus the fields of the ``rules`` model."""
        names = cls.attribute_names()
        if cls.rules is not None:
            names += [field for field in cls.rules.model_fields if field not in names]
        return names

    @classmethod
    def relation(cls, name: str) -> Relation:
        try:
            return cls.relations[name]
        except KeyError:
            raise UsageError(
                f"Record type '{cls.__name__}' has no relation named '{name}'",
                relation=name,
            ) from None

    @classmethod
    def key_map(cls, name: str) -> dict[str, str]:
        """Resolve a non-junction relation to ``{dependent_column: owner_column}``.

        For BELONGS_TO the dependent side is this record type; for HAS_ONE
        and HAS_MANY it is the related type.
        """
        relation = cls.relation(name)
        target = relation.target_class()
        if relation.kind is RelationKind.MANY_MANY:
            raise UsageError(
                "MANY_MANY relations resolve to a junction map, not a key map",
                relation=name,
            )
        if relation.kind is RelationKind.BELONGS_TO:
            return resolve_key_map(
                relation.foreign_key, target.table_schema(), cls.table_schema(), relation=name
            )
        return resolve_key_map(
            relation.foreign_key, cls.table_schema(), target.table_schema(), relation=name
        )

    @classmethod
    def junction_map(cls, name: str) -> JunctionMap:
        relation = cls.relation(name)
        if relation.kind is not RelationKind.MANY_MANY:
            raise UsageError(f"The {name} isn't MANY_MANY relation", relation=name)
        return resolve_junction(
            relation.foreign_key,
            cls.table_schema(),
            relation.target_class().table_schema(),
            cls.db().schema,
            relation=name,
        )

    # ------------------------------------------------------------------
    # Finders
    # ------------------------------------------------------------------

    @classmethod
    def instantiate(cls, row: dict[str, Any]) -> "Record":
        """Build a persisted record from a database row."""
        record = cls()
        record._attributes.update(row)
        record._mark_persisted()
        return record

    @classmethod
    def find(cls, **filters: Any) -> "Record | None":
        rows = cls.db().client.select(cls.table_name, "*", filters)
        return cls.instantiate(rows[0]) if rows else None

    @classmethod
    def find_all(cls, **filters: Any) -> list["Record"]:
        order_by = ", ".join(cls.table_schema().primary_key) or None
        rows = cls.db().client.select(cls.table_name, "*", filters or None, order_by)
        return [cls.instantiate(row) for row in rows]

    # ------------------------------------------------------------------
    # Attributes and keys
    # ------------------------------------------------------------------

    @property
    def is_new(self) -> bool:
        return self._is_new

    def primary_key_values(self) -> dict[str, Any]:
        return {
            column: self._attributes.get(column)
            for column in self.table_schema().primary_key
        }

    def primary_key_tuple(self) -> tuple:
        return tuple(self.primary_key_values().values())

    @property
    def primary_key(self) -> Any:
        """Scalar key, tuple for composite keys, ``None`` when the table has none."""
        values = self.primary_key_tuple()
        if not values:
            return None
        return values[0] if len(values) == 1 else values

    def get_attribute(self, name: str, default: Any = None) -> Any:
        return self._attributes.get(name, default)

    def set_attribute(self, name: str, value: Any) -> None:
        self._attributes[name] = value

    def get_attributes(self, names: list[str] | None = None) -> dict[str, Any]:
        """Values of ``names``, or of every column that has been set."""
        if names is None:
            return {
                name: self._attributes[name]
                for name in self.attribute_names()
                if name in self._attributes
            }
        return {name: self._attributes.get(name) for name in names}

    def _mark_persisted(self) -> None:
        self._is_new = False
        self._old_key = self.primary_key_values()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def insert(self, names: list[str] | None = None) -> None:
        """Insert the record's row and refresh attributes from the stored row."""
        if not self._is_new:
            raise UsageError(
                "The record cannot be inserted because it is not new", table=self.table_name
            )
        data = self.get_attributes(names)
        for column in self.table_schema().primary_key:
            if column in data and data[column] is None:
                del data[column]
        row = self.db().client.insert(self.table_name, data)
        self._attributes.update(row)
        self._mark_persisted()

    def update(self, names: list[str] | None = None) -> None:
        """Update the record's row, located by the key it was loaded or saved with."""
        if self._is_new:
            raise UsageError(
                "The record cannot be updated because it is new", table=self.table_name
            )
        filters = self._old_key or self.primary_key_values()
        if not filters:
            raise UsageError(
                "The record cannot be updated because its table has no primary key",
                table=self.table_name,
            )
        row = self.db().client.update(self.table_name, self.get_attributes(names), filters)
        self._attributes.update(row)
        self._mark_persisted()

    def delete(self) -> int:
        if self._is_new:
            raise UsageError(
                "The record cannot be deleted because it is new", table=self.table_name
            )
        filters = self._old_key or self.primary_key_values()
        if not filters:
            raise UsageError(
                "The record cannot be deleted because its table has no primary key",
                table=self.table_name,
            )
        deleted = self.db().client.delete(self.table_name, filters)
        self._is_new = True
        self._old_key = None
        return deleted

    # ------------------------------------------------------------------
    # Relations
    # ------------------------------------------------------------------

    def has_related(self, name: str) -> bool:
        return name in self._related

    def get_related(self, name: str) -> Any:
        self.relation(name)
        if name not in self._related:
            raise UsageError(
                f"Relation '{name}' is not loaded; call set_related() or load_related()",
                relation=name,
            )
        return self._related[name]

    def set_related(self, name: str, value: Any) -> None:
        """Set the in-memory value of a relation.

        Collection relations take a list of target records; the others take
        one target record or ``None``.
        """
        relation = self.relation(name)
        target = relation.target_class()

        if relation.kind.is_collection:
            if not isinstance(value, (list, tuple)):
                raise UsageError(
                    f"Relation '{name}' holds a list of {target.__name__} records, "
                    f"got {type(value).__name__}",
                    relation=name,
                )
            items = list(value)
            for item in items:
                if not isinstance(item, target):
                    raise UsageError(
                        f"Relation '{name}' holds {target.__name__} records, "
                        f"got {type(item).__name__}",
                        relation=name,
                    )
            self._related[name] = items
        else:
            if value is not None and not isinstance(value, target):
                raise UsageError(
                    f"Relation '{name}' holds a {target.__name__} record or None, "
                    f"got {type(value).__name__}",
                    relation=name,
                )
            self._related[name] = value

    def load_related(self, name: str) -> Any:
        """Read the related record(s) from the database and keep them loaded."""
        value = self.fetch_related(name)
        self._related[name] = value
        logger.debug(
            "record.relation.loaded",
            extra={"record": type(self).__name__, "relation": name},
        )
        return value

    def fetch_related(self, name: str) -> Any:
        """Read the related record(s) from the database without storing them."""
        relation = self.relation(name)
        target = relation.target_class()

        if relation.kind is RelationKind.BELONGS_TO:
            filters = {pk: self.get_attribute(fk) for fk, pk in self.key_map(name).items()}
            if any(value is None for value in filters.values()):
                return None
            return target.find(**filters)

        if relation.kind is RelationKind.MANY_MANY:
            junction = self.junction_map(name)
            owner_values = junction.owner_values(self)
            if any(value is None for value in owner_values.values()):
                return []
            rows = self.db().client.select(junction.table, "*", owner_values)
            related = []
            for row in rows:
                record = target.find(
                    **{pk: row[column] for pk, column in junction.related_map.items()}
                )
                if record is not None:
                    related.append(record)
            return related

        filters = {fk: self.get_attribute(pk) for fk, pk in self.key_map(name).items()}
        if any(value is None for value in filters.values()):
            return [] if relation.kind.is_collection else None
        if relation.kind is RelationKind.HAS_MANY:
            return target.find_all(**filters)
        return target.find(**filters)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @property
    def errors(self) -> dict[str, list[str]]:
        return self._errors

    def add_error(self, attribute: str, message: str) -> None:
        self._errors.setdefault(attribute, []).append(message)

    def clear_errors(self, attribute: str | None = None) -> None:
        if attribute is None:
            self._errors.clear()
        else:
            self._errors.pop(attribute, None)

    def has_errors(self, attribute: str | None = None) -> bool:
        if attribute is None:
            return bool(self._errors)
        return bool(self._errors.get(attribute))

    def validate(self, attribute_names: list[str] | None = None, clear_errors: bool = True) -> bool:
        """Validate attributes against ``rules`` and ``check()``.

        Args:
            attribute_names: Only report errors for these attributes.
            clear_errors: Whether to clear existing errors first.

        Returns:
            Whether the record has no errors afterwards.
        """
        if clear_errors:
            self.clear_errors()

        if self.rules is not None:
            try:
                self.rules.model_validate(self._attributes)
            except ValidationError as e:
                for error in e.errors():
                    field = str(error["loc"][0]) if error["loc"] else "__root__"
                    if attribute_names is not None and field not in attribute_names:
                        continue
                    self.add_error(field, error["msg"])

        self.check(attribute_names)
        return not self.has_errors()

    def check(self, attribute_names: list[str] | None) -> None:
        """Hook for checks the ``rules`` model cannot express; report via ``add_error``."""

    # ------------------------------------------------------------------
    # Cascade
    # ------------------------------------------------------------------

    def get_with_related(self, create: bool = True) -> WithRelated | None:
        if self._with_related is None and create:
            self._with_related = WithRelated(self)
        return self._with_related

    @property
    def with_related(self) -> WithRelated:
        return self.get_with_related()

    def get_processed_relations(self) -> RelationTree:
        behavior = self.get_with_related(create=False)
        if behavior is not None:
            return behavior.get_processed_relations()
        return normalize_tree(self.processed_relations)
