"""Per-entry metadata: tags, properties, description and timestamps."""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Metadata:
    """Mutable metadata attached to a store entry.

    Tags are kept in insertion order and are unique. Adding a tag or setting
    a property bumps ``updated_at``.

    Attributes:
        tags: Unique string tags
        properties: Arbitrary values keyed by property name
        description: Free-form description
        created_at: Creation time (UTC)
        updated_at: Time of the last tag or property change (UTC)
    """

    tags: List[str] = field(default_factory=list)
    properties: Dict[str, Any] = field(default_factory=dict)
    description: str = ""
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        # Collapse duplicates handed to the constructor
        unique: List[str] = []
        for tag in self.tags:
            if tag not in unique:
                unique.append(tag)
        self.tags = unique

    def touch(self) -> None:
        """Bump the update timestamp."""
        self.updated_at = _utcnow()

    def add_tag(self, tag: str) -> None:
        """Add a tag if not already present."""
        if tag not in self.tags:
            self.tags.append(tag)
        self.touch()

    def remove_tag(self, tag: str) -> bool:
        """Remove a tag.

        Returns:
            True if the tag was present
        """
        if tag in self.tags:
            self.tags.remove(tag)
            self.touch()
            return True
        return False

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def has_all_tags(self, tags: Iterable[str]) -> bool:
        return all(tag in self.tags for tag in tags)

    def has_any_tag(self, tags: Iterable[str]) -> bool:
        return any(tag in self.tags for tag in tags)

    def set_property(self, key: str, value: Any) -> None:
        self.properties[key] = value
        self.touch()

    def get_property(self, key: str, default: Any = None) -> Any:
        return self.properties.get(key, default)

    def has_property(self, key: str) -> bool:
        return key in self.properties

    def remove_property(self, key: str) -> bool:
        if key in self.properties:
            del self.properties[key]
            self.touch()
            return True
        return False

    def merge_from(self, other: "Metadata") -> None:
        """Union ``other``'s tags into this one and let its properties win."""
        for tag in other.tags:
            if tag not in self.tags:
                self.tags.append(tag)
        self.properties.update(copy.deepcopy(other.properties))
        self.touch()

    def copy(self) -> "Metadata":
        """Return a deep copy, timestamps included."""
        return Metadata(
            tags=list(self.tags),
            properties=copy.deepcopy(self.properties),
            description=self.description,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def new_metadata(
    tags: Optional[Iterable[str]] = None,
    description: str = "",
    properties: Optional[Dict[str, Any]] = None,
) -> Metadata:
    """Build metadata in one call."""
    return Metadata(
        tags=list(tags or []),
        properties=dict(properties or {}),
        description=description,
    )
