"""Recursive validation over a processed relation tree.

Error trees mirror the relation tree::

    {
        "title": ["Field required"],
        "author": {"email": ["value is not a valid email address"]},
        "comments": {1: {"body": ["String should have at least 1 character"]}},
    }

Single related records nest under the relation name; collections nest
under the relation name and then the element's index.  Relations whose
value is ``None`` are skipped.
"""

from typing import Any

from db_cascade.relations.tree import RelationTree, partition_tree

ValidationErrorTree = dict[Any, Any]


def validate_tree(tree: RelationTree | None, record: Any) -> ValidationErrorTree:
    """Validate ``record`` and the relations named in ``tree``; return all errors."""
    attributes, relations = partition_tree(
        tree, record, record.validation_attribute_names()
    )

    record.validate(attributes, clear_errors=False)
    errors: ValidationErrorTree = {
        name: list(messages) for name, messages in record.errors.items()
    }

    for name, subtree in relations.items():
        related = record.get_related(name)
        if related is None:
            continue
        if isinstance(related, list):
            for index, model in enumerate(related):
                relation_errors = validate_tree(subtree, model)
                if relation_errors:
                    errors.setdefault(name, {})[index] = relation_errors
        else:
            relation_errors = validate_tree(subtree, related)
            if relation_errors:
                errors[name] = relation_errors

    return errors


def clear_errors_tree(tree: RelationTree | None, record: Any) -> None:
    """Clear errors on ``record`` and on every related record ``tree`` reaches."""
    _, relations = partition_tree(tree, record, record.validation_attribute_names())

    record.clear_errors()

    for name, subtree in relations.items():
        related = record.get_related(name)
        if related is None:
            continue
        if isinstance(related, list):
            for model in related:
                clear_errors_tree(subtree, model)
        else:
            clear_errors_tree(subtree, related)
