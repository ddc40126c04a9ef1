"""Dotted-path patching of JSON documents."""
from __future__ import annotations

from typing import Any, List

from pydantic_core import to_jsonable_python


class PathError(LookupError):
    """Raised when a dotted path does not resolve inside a document."""


def split_path(field_path: str) -> List[str]:
    parts = field_path.split(".")
    if any(part == "" for part in parts):
        raise PathError(f"malformed field path '{field_path}'")
    return parts


def _step(node: Any, part: str, field_path: str) -> Any:
    if isinstance(node, dict):
        if part not in node:
            raise PathError(f"field '{part}' not found in path '{field_path}'")
        return node[part]
    if isinstance(node, list):
        return node[_index(node, part, field_path)]
    raise PathError(f"cannot descend into '{part}' of path '{field_path}'")


def _index(node: List[Any], part: str, field_path: str) -> int:
    try:
        index = int(part)
    except ValueError:
        raise PathError(f"'{part}' is not an index in path '{field_path}'") from None
    if not -len(node) <= index < len(node):
        raise PathError(f"index {index} out of range in path '{field_path}'")
    return index


def set_path(document: Any, field_path: str, value: Any) -> None:
    """Replace the value at ``field_path`` inside ``document`` in place.

    Object keys and list indexes are separated by dots (``inner.items.0``).
    Every segment, including the last, must already exist.

    Args:
        document: JSON-shaped structure (dicts, lists, scalars)
        field_path: Dotted path to the field
        value: New value; converted to its JSON-compatible form

    Raises:
        PathError: If the path does not resolve
    """
    parts = split_path(field_path)
    node = document
    for part in parts[:-1]:
        node = _step(node, part, field_path)

    last = parts[-1]
    new_value = to_jsonable_python(value)
    if isinstance(node, dict):
        if last not in node:
            raise PathError(f"field '{last}' not found in path '{field_path}'")
        node[last] = new_value
    elif isinstance(node, list):
        node[_index(node, last, field_path)] = new_value
    else:
        raise PathError(f"cannot set '{last}' of path '{field_path}'")
