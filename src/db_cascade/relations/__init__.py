"""Relation descriptors and the cascading save/validate engine.

Usage:
    from db_cascade.relations import belongs_to, has_many, many_many, WithRelated
"""

from db_cascade.relations.descriptors import (
    Relation,
    RelationKind,
    belongs_to,
    has_many,
    has_one,
    many_many,
)
from db_cascade.relations.engine import DefaultRelationTreeProvider, WithRelated
from db_cascade.relations.junction import JunctionMap, JunctionSpec, parse_junction, resolve_junction
from db_cascade.relations.overlay import JunctionOverlayStore
from db_cascade.relations.resolver import resolve_key_map
from db_cascade.relations.session import SaveSession
from db_cascade.relations.tree import merge_trees, normalize_tree
from db_cascade.relations.validator import clear_errors_tree, validate_tree

__all__ = [
    # Descriptors
    "Relation",
    "RelationKind",
    "belongs_to",
    "has_one",
    "has_many",
    "many_many",
    # Engine
    "WithRelated",
    "DefaultRelationTreeProvider",
    "SaveSession",
    # Resolution
    "resolve_key_map",
    "parse_junction",
    "resolve_junction",
    "JunctionSpec",
    "JunctionMap",
    "JunctionOverlayStore",
    # Trees
    "normalize_tree",
    "merge_trees",
    "validate_tree",
    "clear_errors_tree",
]
