"""Processed relation trees.

A processed relation tree says which relations take part in a validate or
save call, and which of their own attributes and sub-relations go with
them.  Every tree is normalized to nested dicts whose leaves are empty
dicts::

    normalize_tree(["title", {"comments": ["body", "author"]}])
    # {"title": {}, "comments": {"body": {}, "author": {}}}

An entry is an *attribute* when its name is one of the record's attribute
names and its sub-tree is empty; otherwise it is a *relation*.
"""

import logging
from typing import Any

from db_cascade.exceptions import UsageError

logger = logging.getLogger(__name__)

RelationTree = dict[str, dict]


def normalize_tree(definition: Any) -> RelationTree:
    """Normalize a string, list, or dict definition into a relation tree.

    Raises:
        UsageError: If the definition holds anything but strings, lists,
            dicts, or ``None``.

    Examples:
        >>> normalize_tree("comments")
        {'comments': {}}
        >>> normalize_tree({"comments": "author", "tags": None})
        {'comments': {'author': {}}, 'tags': {}}
    """
    if definition is None:
        return {}
    if isinstance(definition, str):
        return {definition: {}}
    if isinstance(definition, (list, tuple)):
        normalized: RelationTree = {}
        for item in definition:
            if isinstance(item, str):
                normalized.setdefault(item, {})
            elif isinstance(item, dict):
                normalized = merge_trees(normalized, normalize_tree(item))
            else:
                raise UsageError(
                    "Values in the relations tree must be strings, lists or dicts, "
                    f"got {type(item).__name__}"
                )
        return normalized
    if isinstance(definition, dict):
        normalized = {}
        for key, value in definition.items():
            if not isinstance(key, str):
                raise UsageError(f"Relation tree keys must be strings, got {key!r}")
            normalized[key] = normalize_tree(value)
        return normalized
    raise UsageError(
        "Values in the relations tree must be strings, lists or dicts, "
        f"got {type(definition).__name__}"
    )


def merge_trees(*trees: RelationTree) -> RelationTree:
    """Recursively merge trees left to right without mutating any of them.

    Example:
        >>> merge_trees({"comments": {"author": {}}}, {"comments": {"body": {}}, "tags": {}})
        {'comments': {'author': {}, 'body': {}}, 'tags': {}}
    """
    merged: RelationTree = {}
    for tree in trees:
        for name, subtree in tree.items():
            if name in merged:
                merged[name] = merge_trees(merged[name], subtree)
            else:
                merged[name] = merge_trees(subtree)
    return merged


def partition_tree(
    tree: RelationTree | None,
    record: Any,
    attribute_names: list[str],
) -> tuple[list[str] | None, RelationTree]:
    """Split a tree into the record's own attributes and its loaded relations.

    Returns:
        ``(attributes, relations)`` where ``attributes`` is ``None`` when the
        tree names no attributes (meaning "all of them"), and ``relations``
        keeps tree order.  Names that are neither attributes nor declared
        relations, and relations that are not loaded, are skipped.
    """
    if not tree:
        return None, {}

    known = set(attribute_names)
    declared = type(record).relations
    attributes: list[str] = []
    relations: RelationTree = {}

    for name, subtree in tree.items():
        if name in known and not subtree:
            attributes.append(name)
        elif name not in declared:
            logger.debug(
                "cascade.tree.unknown_entry",
                extra={"record": type(record).__name__, "entry": name},
            )
        elif not record.has_related(name):
            logger.debug(
                "cascade.tree.relation_not_loaded",
                extra={"record": type(record).__name__, "relation": name},
            )
        else:
            relations[name] = subtree

    return attributes or None, relations
