"""Typed key/value store with metadata, TTL, field patches and merge."""
from .errors import (
    FieldPatchError,
    InvalidArgumentError,
    KeyExpiredError,
    KeyNotFoundError,
    MergeCollisionError,
    PropertyNotFoundError,
    StoreError,
    TypeMismatchError,
)
from .kvstore import MergeStrategy, Store
from .metadata import Metadata, new_metadata
from .schema import schema_matches, type_to_schema

__all__ = [
    "FieldPatchError",
    "InvalidArgumentError",
    "KeyExpiredError",
    "KeyNotFoundError",
    "MergeCollisionError",
    "MergeStrategy",
    "Metadata",
    "PropertyNotFoundError",
    "Store",
    "StoreError",
    "TypeMismatchError",
    "new_metadata",
    "schema_matches",
    "type_to_schema",
]
