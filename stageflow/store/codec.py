"""JSON encoding of store values keyed by their concrete type.

Every value is serialised through a pydantic ``TypeAdapter`` built for the
value's concrete type, so builtins, containers, dataclasses, pydantic models,
enums and datetimes all round-trip with their type restored on read.
"""
from __future__ import annotations

import functools
import json
import typing
from typing import Any, Tuple

from pydantic import PydanticSchemaGenerationError, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from .errors import InvalidArgumentError


@functools.lru_cache(maxsize=512)
def adapter_for(tp: Any) -> TypeAdapter:
    """Return a cached ``TypeAdapter`` for a type or parameterised generic."""
    return TypeAdapter(tp)


def base_type(tp: Any) -> Any:
    """Strip generic parameters: ``list[str]`` -> ``list``."""
    return typing.get_origin(tp) or tp


def type_name(tp: Any) -> str:
    """Human-readable qualified name of a type tag."""
    tp = base_type(tp)
    module = getattr(tp, "__module__", "")
    qualname = getattr(tp, "__qualname__", None) or repr(tp)
    if module in ("builtins", ""):
        return qualname
    return f"{module}.{qualname}"


def describe_type(tp: Any) -> str:
    """Like ``type_name`` but keeps generic parameters: ``list[int]``."""
    if typing.get_origin(tp) is not None:
        return repr(tp)
    return type_name(tp)


def encode(value: Any) -> Tuple[type, bytes]:
    """Serialise ``value`` and capture its concrete type.

    Args:
        value: Any value pydantic can serialise

    Returns:
        Tuple of (type tag, JSON blob)

    Raises:
        InvalidArgumentError: If the value's type cannot be serialised
    """
    tp = type(value)
    try:
        blob = adapter_for(tp).dump_json(value)
    except (PydanticSchemaGenerationError, PydanticSerializationError) as e:
        raise InvalidArgumentError(f"cannot encode value of type {type_name(tp)}: {e}") from e
    return tp, blob


def decode(blob: bytes, expected_type: Any) -> Any:
    """Rebuild a value of ``expected_type`` from its JSON blob."""
    return adapter_for(expected_type).validate_json(blob)


def revalidate(document: Any, tp: Any) -> Any:
    """Validate a JSON-shaped document against ``tp`` in strict mode.

    Strict JSON validation rejects coercions such as ``"5"`` for an ``int``
    field while still accepting the JSON forms of datetimes, enums and tuples.

    Raises:
        ValueError: With pydantic's explanation when the document does not fit
    """
    try:
        return adapter_for(tp).validate_json(json.dumps(document), strict=True)
    except ValidationError as e:
        raise ValueError(str(e)) from e
