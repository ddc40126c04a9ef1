"""Tests for type schemas and schema-based key lookup."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import pytest

from stageflow.store import KeyNotFoundError, schema_matches, type_to_schema


@dataclass
class Simple:
    id: str
    data: int


@dataclass
class Complex:
    id: str
    label: str
    inner: Simple


@dataclass
class Node:
    id: str
    child: Optional["Node"] = None


@pytest.fixture
def schema_store(store):
    store.put("s1", Simple("s", 1))
    store.put("c1", Complex("c", "label", Simple("i", 2)))
    store.put("text", "plain string")
    return store


class TestTypeSchema:
    def test_object_schema(self, schema_store):
        schema = schema_store.get_type_schema("s1")
        assert schema["type"] == "object"
        assert schema["properties"]["id"]["type"] == "string"
        assert schema["properties"]["data"]["type"] == "integer"

    def test_nested_definitions_are_inlined(self, schema_store):
        schema = schema_store.get_type_schema("c1")
        assert "$defs" not in schema
        inner = schema["properties"]["inner"]
        assert inner["type"] == "object"
        assert set(inner["properties"]) == {"id", "data"}

    def test_scalar_schema(self, schema_store):
        assert schema_store.get_type_schema("text") == {"type": "string"}

    def test_missing_key(self, store):
        with pytest.raises(KeyNotFoundError):
            store.get_type_schema("nope")

    def test_returned_schema_is_a_copy(self, schema_store):
        schema_store.get_type_schema("s1")["properties"].clear()
        assert "id" in schema_store.get_type_schema("s1")["properties"]

    def test_recursive_type(self):
        schema = type_to_schema(Node)
        assert "child" in schema["properties"]


class TestFindKeysBySchema:
    def test_single_property_matches_both_objects(self, schema_store):
        pattern = {"type": "object", "properties": {"id": {"type": "string"}}}
        assert sorted(schema_store.find_keys_by_schema(pattern)) == ["c1", "s1"]

    def test_two_properties_match_one(self, schema_store):
        pattern = {
            "type": "object",
            "properties": {"id": {"type": "string"}, "data": {"type": "integer"}},
        }
        assert schema_store.find_keys_by_schema(pattern) == ["s1"]

    def test_nested_pattern(self, schema_store):
        pattern = {"properties": {"inner": {"properties": {"data": {}}}}}
        assert schema_store.find_keys_by_schema(pattern) == ["c1"]

    def test_property_types_are_not_compared_by_default(self, schema_store):
        pattern = {"properties": {"id": {"type": "integer"}}}
        assert sorted(schema_store.find_keys_by_schema(pattern)) == ["c1", "s1"]

    def test_strict_compares_property_types(self, schema_store):
        wrong = {"properties": {"id": {"type": "integer"}}}
        right = {"properties": {"data": {"type": "integer"}}}
        assert schema_store.find_keys_by_schema(wrong, strict=True) == []
        assert schema_store.find_keys_by_schema(right, strict=True) == ["s1"]

    def test_leaf_pattern_matches_on_type(self, schema_store):
        assert schema_store.find_keys_by_schema({"type": "string"}) == ["text"]


class TestSchemaMatches:
    def test_empty_pattern_matches_objects(self):
        assert schema_matches({"type": "object", "properties": {}}, {})

    def test_non_mapping_never_matches(self):
        assert not schema_matches("object", {})
        assert not schema_matches({}, None)

    def test_pattern_properties_need_target_properties(self):
        assert not schema_matches({"type": "string"}, {"properties": {"a": {}}})

    def test_leaf_type_mismatch(self):
        assert not schema_matches({"type": "string"}, {"type": "integer"})
