"""Thread-safe, type-aware key/value store.

Values are kept as JSON blobs tagged with the concrete type they were written
with. Each entry may carry an expiry and a ``Metadata`` record. Expired
entries are invisible to every read path and are deleted lazily by the read
that finds them (or in bulk by ``purge_expired``).
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from threading import RLock
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from . import codec
from .errors import (
    FieldPatchError,
    InvalidArgumentError,
    KeyExpiredError,
    KeyNotFoundError,
    MergeCollisionError,
    PropertyNotFoundError,
    TypeMismatchError,
)
from .metadata import Metadata
from .patch import PathError, set_path
from .schema import schema_matches, type_to_schema

logger = logging.getLogger(__name__)

TTL = Union[float, int, timedelta, None]

_MISSING = object()


class MergeStrategy(Enum):
    """How ``Store.merge`` treats keys present on both sides."""

    SKIP = "skip"
    OVERWRITE = "overwrite"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _expiry(ttl: TTL) -> Optional[datetime]:
    """Convert a TTL (seconds or timedelta) to an absolute expiry.

    A missing, zero or negative TTL means the entry never expires.
    """
    if ttl is None:
        return None
    if not isinstance(ttl, timedelta):
        ttl = timedelta(seconds=ttl)
    if ttl <= timedelta(0):
        return None
    return _utcnow() + ttl


@dataclass
class _Entry:
    typ: Any
    blob: bytes
    expires_at: Optional[datetime] = None
    metadata: Optional[Metadata] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or _utcnow()) > self.expires_at

    def copy(self) -> "_Entry":
        return replace(self, metadata=self.metadata.copy() if self.metadata else None)


def _check_key(key: str) -> None:
    if not key:
        raise InvalidArgumentError("key cannot be empty")


class Store:
    """Typed key/value store with metadata, TTL, field patches and merge.

    Thread Safety:
        Every public method holds the store's single reentrant lock for the
        duration of its access to the entry map. Readers therefore serialise
        with each other as well as with writers; no read overlaps another
        operation, and every caller observes whole entries. Field updates
        decode, patch and re-encode under the same lock.

    Example:
        store = Store()
        store.put("config:retries", 3)
        store.get("config:retries", int)  # -> 3
        store.get("config:retries", str)  # raises TypeMismatchError
    """

    def __init__(self):
        self._data: Dict[str, _Entry] = {}
        self._lock = RLock()

    def __repr__(self) -> str:
        return f"Store(entries={self.count()})"

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.exists(key)

    # ------------------------------------------------------------------ writes

    def put(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any prior value.

        Metadata already attached to the key is kept and its update
        timestamp bumped.

        Raises:
            InvalidArgumentError: If the key is empty or the value cannot be encoded
        """
        self.put_with_ttl_and_metadata(key, value, None, None)

    def put_with_ttl(self, key: str, value: Any, ttl: TTL) -> None:
        """Store a value that expires after ``ttl`` (seconds or timedelta)."""
        self.put_with_ttl_and_metadata(key, value, ttl, None)

    def put_with_metadata(self, key: str, value: Any, metadata: Optional[Metadata]) -> None:
        """Store a value and replace its metadata."""
        self.put_with_ttl_and_metadata(key, value, None, metadata)

    def put_with_ttl_and_metadata(
        self, key: str, value: Any, ttl: TTL, metadata: Optional[Metadata]
    ) -> None:
        """Store a value with both an expiry and metadata.

        Args:
            key: Non-empty key
            value: Any value pydantic can serialise
            ttl: Seconds or timedelta; ``None``, zero or negative means no expiry
            metadata: Metadata to attach; ``None`` keeps the key's existing metadata

        Raises:
            InvalidArgumentError: If the key is empty or the value cannot be encoded
        """
        _check_key(key)
        typ, blob = codec.encode(value)
        expires_at = _expiry(ttl)

        with self._lock:
            meta = metadata
            existing = self._data.get(key)
            if meta is None and existing is not None and existing.metadata is not None:
                if not existing.is_expired():
                    meta = existing.metadata
                    meta.touch()
            self._data[key] = _Entry(typ=typ, blob=blob, expires_at=expires_at, metadata=meta)

    # ------------------------------------------------------------------- reads

    def _live_entry(self, key: str) -> _Entry:
        """Fetch a live entry, deleting it if it has expired.

        Must be called with the lock held.
        """
        entry = self._data.get(key)
        if entry is None:
            raise KeyNotFoundError(key)
        if entry.is_expired():
            del self._data[key]
            logger.debug(f"Dropped expired key {key}")
            raise KeyExpiredError(key)
        return entry

    def get(self, key: str, expected_type: Any) -> Any:
        """Read the value under ``key`` as ``expected_type``.

        Args:
            key: Key to read
            expected_type: Type the value was stored with; a parameterised
                generic such as ``list[str]`` matches a stored ``list``

        Returns:
            The decoded value

        Raises:
            InvalidArgumentError: If the key is empty
            KeyNotFoundError: If nothing is stored under the key
            KeyExpiredError: If the entry expired (it is deleted)
            TypeMismatchError: If the stored type differs from ``expected_type``
        """
        _check_key(key)
        with self._lock:
            entry = self._live_entry(key)

        if codec.base_type(expected_type) is not entry.typ:
            raise TypeMismatchError(key, codec.type_name(expected_type), codec.type_name(entry.typ))
        try:
            return codec.decode(entry.blob, expected_type)
        except ValidationError as e:
            # Same container, different parameters: list[str] read as list[int]
            raise TypeMismatchError(key, codec.describe_type(expected_type), codec.type_name(entry.typ)) from e

    def get_or_default(self, key: str, expected_type: Any, default: Any) -> Any:
        """Read a value, falling back to ``default`` if missing or expired.

        Other errors, type mismatches included, propagate.
        """
        try:
            return self.get(key, expected_type)
        except (KeyNotFoundError, KeyExpiredError):
            return default

    def exists(self, key: str) -> bool:
        """Check for a live entry without deleting expired ones."""
        with self._lock:
            entry = self._data.get(key)
            return entry is not None and not entry.is_expired()

    def type_of(self, key: str) -> Any:
        """Return the type tag stored under ``key``."""
        _check_key(key)
        with self._lock:
            return self._live_entry(key).typ

    def delete(self, key: str) -> bool:
        """Remove a key.

        Returns:
            True if an entry existed
        """
        if not key:
            return False
        with self._lock:
            return self._data.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._data.clear()

    def purge_expired(self) -> int:
        """Delete all expired entries.

        Returns:
            Number of entries removed
        """
        now = _utcnow()
        with self._lock:
            expired = [key for key, entry in self._data.items() if entry.is_expired(now)]
            for key in expired:
                del self._data[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired entries")
        return len(expired)

    def _live_items(self) -> List[tuple]:
        now = _utcnow()
        with self._lock:
            return [(k, e) for k, e in self._data.items() if not e.is_expired(now)]

    def list_keys(self) -> List[str]:
        """Return all keys with live entries."""
        return [key for key, _ in self._live_items()]

    def count(self) -> int:
        """Return the number of live entries."""
        return len(self._live_items())

    def list_types(self) -> List[str]:
        """Return the distinct names of the types currently stored."""
        seen: List[Any] = []
        for _, entry in self._live_items():
            if entry.typ not in seen:
                seen.append(entry.typ)
        return [codec.type_name(tp) for tp in seen]

    def keys_by_type(self, expected_type: Any) -> List[str]:
        """Return the keys whose stored type is ``expected_type``."""
        wanted = codec.base_type(expected_type)
        return [key for key, entry in self._live_items() if entry.typ is wanted]

    # ---------------------------------------------------------------- metadata

    def get_metadata(self, key: str) -> Metadata:
        """Return the live metadata record of a key.

        An entry without metadata gets an empty record attached, so callers
        can always tag or annotate an existing key.

        Raises:
            KeyNotFoundError: If nothing is stored under the key
            KeyExpiredError: If the entry expired
        """
        _check_key(key)
        with self._lock:
            entry = self._live_entry(key)
            if entry.metadata is None:
                entry.metadata = Metadata()
            return entry.metadata

    def set_metadata(self, key: str, metadata: Metadata) -> None:
        """Attach or replace a key's metadata."""
        _check_key(key)
        if metadata is None:
            raise InvalidArgumentError("metadata cannot be None")
        with self._lock:
            self._live_entry(key).metadata = metadata

    def add_tag(self, key: str, tag: str) -> None:
        with self._lock:
            self.get_metadata(key).add_tag(tag)

    def remove_tag(self, key: str, tag: str) -> bool:
        with self._lock:
            return self.get_metadata(key).remove_tag(tag)

    def has_tag(self, key: str, tag: str) -> bool:
        with self._lock:
            return self.get_metadata(key).has_tag(tag)

    def set_property(self, key: str, property_key: str, value: Any) -> None:
        with self._lock:
            self.get_metadata(key).set_property(property_key, value)

    def get_property(self, key: str, property_key: str) -> Any:
        """Read a metadata property.

        Raises:
            KeyNotFoundError: If nothing is stored under the key
            KeyExpiredError: If the entry expired
            PropertyNotFoundError: If the entry lacks the property
        """
        with self._lock:
            meta = self.get_metadata(key)
            value = meta.get_property(property_key, _MISSING)
        if value is _MISSING:
            raise PropertyNotFoundError(key, property_key)
        return value

    def _keys_where(self, predicate) -> List[str]:
        with self._lock:
            return [
                key
                for key, entry in self._live_items()
                if entry.metadata is not None and predicate(entry.metadata)
            ]

    def find_keys_by_tag(self, tag: str) -> List[str]:
        return self._keys_where(lambda meta: meta.has_tag(tag))

    def find_keys_by_all_tags(self, tags: Iterable[str]) -> List[str]:
        tags = list(tags)
        return self._keys_where(lambda meta: meta.has_all_tags(tags))

    def find_keys_by_any_tag(self, tags: Iterable[str]) -> List[str]:
        tags = list(tags)
        return self._keys_where(lambda meta: meta.has_any_tag(tags))

    def find_keys_by_property(self, property_key: str, value: Any) -> List[str]:
        """Return keys whose metadata property equals ``value``."""
        return self._keys_where(
            lambda meta: meta.has_property(property_key)
            and meta.get_property(property_key) == value
        )

    # ---------------------------------------------------------- field patches

    def update_field(self, key: str, field_path: str, value: Any) -> None:
        """Patch one field of a stored object in place.

        Args:
            key: Key of the stored object
            field_path: Dotted path such as ``inner.label`` or ``items.0``
            value: New value for the field

        Raises:
            InvalidArgumentError: If the key or path is empty
            KeyNotFoundError: If nothing is stored under the key
            KeyExpiredError: If the entry expired
            FieldPatchError: If the path is missing or the result no longer
                fits the stored type; the entry is left unchanged
        """
        if not field_path:
            raise InvalidArgumentError("field path cannot be empty")
        self.update_fields(key, {field_path: value})

    def update_fields(self, key: str, fields: Mapping[str, Any]) -> None:
        """Patch several fields at once; nothing is committed unless all apply."""
        _check_key(key)
        if not fields:
            return
        if any(not path for path in fields):
            raise InvalidArgumentError("field path cannot be empty")

        with self._lock:
            entry = self._live_entry(key)
            document = json.loads(entry.blob)

            for field_path, value in fields.items():
                try:
                    set_path(document, field_path, value)
                except PathError as e:
                    raise FieldPatchError(key, field_path, str(e)) from e
                except PydanticSerializationError as e:
                    raise FieldPatchError(key, field_path, f"unserialisable value: {e}") from e

            try:
                instance = codec.revalidate(document, entry.typ)
            except ValueError as e:
                raise FieldPatchError(key, ", ".join(fields), str(e)) from e

            new_blob = codec.adapter_for(entry.typ).dump_json(instance)
            self._data[key] = replace(entry, blob=new_blob)

    # ------------------------------------------------------------------ schema

    def get_type_schema(self, key: str) -> Dict[str, Any]:
        """Return the JSON schema of the type stored under ``key``."""
        _check_key(key)
        with self._lock:
            typ = self._live_entry(key).typ
        return type_to_schema(typ)

    def find_keys_by_schema(self, pattern: Mapping[str, Any], strict: bool = False) -> List[str]:
        """Return keys whose stored type's schema contains ``pattern``.

        Args:
            pattern: Partial JSON schema
            strict: Also require matching leaf types on present properties

        Returns:
            Matching keys; types without a JSON schema never match
        """
        matches = []
        for key, entry in self._live_items():
            try:
                target = type_to_schema(entry.typ)
            except InvalidArgumentError:
                continue
            if schema_matches(target, pattern, strict=strict):
                matches.append(key)
        return matches

    # ------------------------------------------------------------------- merge

    def _snapshot(self) -> Dict[str, _Entry]:
        """Copies of all live entries."""
        return {key: entry.copy() for key, entry in self._live_items()}

    def find_key_collisions(self, other: "Store") -> List[str]:
        """Return keys live in both this store and ``other``."""
        theirs = other._snapshot()
        return [key for key, _ in self._live_items() if key in theirs]

    def merge(self, other: "Store", strategy: MergeStrategy = MergeStrategy.OVERWRITE) -> List[str]:
        """Copy ``other``'s live entries into this store.

        Args:
            other: Store to read from; it is never modified
            strategy: SKIP keeps this side at collisions, OVERWRITE adopts the
                incoming entry (value, type, expiry; when both sides carry
                metadata the tags are unioned and incoming properties win),
                ERROR refuses the whole merge

        Returns:
            Keys live on both sides

        Raises:
            MergeCollisionError: For ERROR strategy with any collision; nothing
                is written
        """
        incoming = other._snapshot()
        now = _utcnow()

        with self._lock:
            collisions = [
                key
                for key in incoming
                if key in self._data and not self._data[key].is_expired(now)
            ]
            if strategy is MergeStrategy.ERROR and collisions:
                raise MergeCollisionError(collisions)

            for key, theirs in incoming.items():
                ours = self._data.get(key)
                live = ours is not None and not ours.is_expired(now)
                if live and strategy is MergeStrategy.SKIP:
                    continue
                if live and ours.metadata is not None and theirs.metadata is not None:
                    ours.metadata.merge_from(theirs.metadata)
                    theirs.metadata = ours.metadata
                self._data[key] = theirs

        return collisions
