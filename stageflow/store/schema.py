"""JSON-schema description of stored types and structural schema matching."""
from __future__ import annotations

import copy
import functools
from typing import Any, Dict, Mapping, Set

from pydantic import PydanticSchemaGenerationError
from pydantic.errors import PydanticInvalidForJsonSchema

from .codec import adapter_for, type_name
from .errors import InvalidArgumentError

_DEFS_PREFIX = "#/$defs/"


def _inline_refs(node: Any, defs: Mapping[str, Any], seen: Set[str]) -> Any:
    """Replace ``$ref`` pointers with the referenced definitions.

    A recursive reference is left in place once its definition is already
    being expanded on the current path.
    """
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith(_DEFS_PREFIX):
            name = ref[len(_DEFS_PREFIX):]
            if name in seen or name not in defs:
                return {k: v for k, v in node.items() if k != "$defs"}
            resolved = _inline_refs(defs[name], defs, seen | {name})
            for key, value in node.items():
                if key not in ("$ref", "$defs"):
                    resolved[key] = _inline_refs(value, defs, seen)
            return resolved
        return {k: _inline_refs(v, defs, seen) for k, v in node.items() if k != "$defs"}
    if isinstance(node, list):
        return [_inline_refs(item, defs, seen) for item in node]
    return node


@functools.lru_cache(maxsize=512)
def _cached_schema(tp: Any) -> Dict[str, Any]:
    try:
        raw = adapter_for(tp).json_schema()
    except (PydanticSchemaGenerationError, PydanticInvalidForJsonSchema) as e:
        raise InvalidArgumentError(f"no JSON schema for type {type_name(tp)}: {e}") from e
    return _inline_refs(raw, raw.get("$defs", {}), set())


def type_to_schema(tp: Any) -> Dict[str, Any]:
    """Return the JSON schema of a type with nested definitions inlined.

    Args:
        tp: The stored type tag

    Returns:
        A fresh schema dictionary the caller may mutate

    Raises:
        InvalidArgumentError: If pydantic cannot describe the type
    """
    return copy.deepcopy(_cached_schema(tp))


def schema_matches(target: Any, pattern: Any, strict: bool = False) -> bool:
    """Check whether ``target`` structurally contains ``pattern``.

    Object patterns match when every property name they list exists in the
    target, recursing into nested object patterns. Leaf patterns match on
    equal ``type``. A pattern with neither properties nor type matches any
    target. Unless ``strict`` is set, the sub-schema of a present property is
    not compared with the target's.

    Args:
        target: Schema of a stored type
        pattern: Partial schema to look for
        strict: Also require equal leaf ``type`` on present properties

    Returns:
        True if the pattern is contained in the target
    """
    if not isinstance(target, Mapping) or not isinstance(pattern, Mapping):
        return False

    pattern_props = pattern.get("properties")
    if isinstance(pattern_props, Mapping):
        target_props = target.get("properties")
        if not isinstance(target_props, Mapping):
            return False

        for name, prop_pattern in pattern_props.items():
            if name not in target_props:
                return False
            prop_target = target_props[name]

            if isinstance(prop_pattern, Mapping):
                if not isinstance(prop_target, Mapping):
                    return False
                if "properties" in prop_pattern:
                    if not schema_matches(prop_target, prop_pattern, strict):
                        return False
                elif strict and "type" in prop_pattern:
                    if prop_target.get("type") != prop_pattern["type"]:
                        return False
        return True

    if "type" in pattern:
        return "type" in target and target["type"] == pattern["type"]

    return True
