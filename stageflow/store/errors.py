"""Exceptions raised by the typed key/value store."""
from __future__ import annotations

from typing import List, Optional


class StoreError(Exception):
    """Base class for all store errors."""


class InvalidArgumentError(StoreError, ValueError):
    """Raised for an empty key, an empty field path, or an unencodable value."""


class KeyNotFoundError(StoreError, KeyError):
    """Raised when a key has no entry in the store."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(key)

    def __str__(self) -> str:
        return f"key not found: {self.key}"


class KeyExpiredError(StoreError):
    """Raised when a key's entry outlived its TTL.

    The entry is deleted as a side effect of the read that detected it.
    """

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"key has expired: {key}")


class TypeMismatchError(StoreError, TypeError):
    """Raised when a read names a type different from the stored one."""

    def __init__(self, key: str, wanted: str, got: str):
        self.key = key
        self.wanted = wanted
        self.got = got
        super().__init__(f"type mismatch on get '{key}': wanted {wanted}, got {got}")


class PropertyNotFoundError(StoreError):
    """Raised when an entry exists but its metadata lacks a property."""

    def __init__(self, key: str, property_key: str):
        self.key = key
        self.property_key = property_key
        super().__init__(f"property '{property_key}' not found on '{key}'")


class FieldPatchError(StoreError):
    """Raised when a field update cannot be applied to a stored value."""

    def __init__(self, key: str, field_path: str, reason: str):
        self.key = key
        self.field_path = field_path
        self.reason = reason
        super().__init__(f"failed to update field '{field_path}' of '{key}': {reason}")


class MergeCollisionError(StoreError):
    """Raised by an ERROR-strategy merge when both stores hold a key."""

    def __init__(self, collisions: List[str], message: Optional[str] = None):
        self.collisions = list(collisions)
        super().__init__(
            message or f"key collision on merge: {', '.join(sorted(self.collisions))}"
        )
