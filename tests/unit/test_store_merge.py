"""Tests for Store.merge and collision detection."""
from __future__ import annotations

import pytest

from stageflow.store import MergeCollisionError, MergeStrategy, Store, new_metadata


@pytest.fixture
def pair():
    a, b = Store(), Store()
    a.put("shared", "from-a")
    a.put("only-a", 1)
    b.put("shared", "from-b")
    b.put("only-b", 2)
    return a, b


class TestMergeStrategies:
    def test_disjoint_merge_copies_everything(self):
        a, b = Store(), Store()
        a.put("x", 1)
        b.put("y", 2)
        b.put("z", "three")
        for strategy in MergeStrategy:
            target = Store()
            target.merge(a, strategy)
            assert target.merge(b, strategy) == []
            assert sorted(target.list_keys()) == ["x", "y", "z"]

    def test_skip_keeps_this_side(self, pair):
        a, b = pair
        collisions = a.merge(b, MergeStrategy.SKIP)
        assert collisions == ["shared"]
        assert a.get("shared", str) == "from-a"
        assert a.get("only-b", int) == 2

    def test_overwrite_adopts_other_side(self, pair):
        a, b = pair
        collisions = a.merge(b, MergeStrategy.OVERWRITE)
        assert collisions == ["shared"]
        assert a.get("shared", str) == "from-b"
        assert a.get("only-a", int) == 1

    def test_overwrite_is_the_default(self, pair):
        a, b = pair
        a.merge(b)
        assert a.get("shared", str) == "from-b"

    def test_overwrite_adopts_other_type(self):
        a, b = Store(), Store()
        a.put("k", "text")
        b.put("k", 5)
        a.merge(b, MergeStrategy.OVERWRITE)
        assert a.get("k", int) == 5

    def test_error_strategy_mutates_nothing(self, pair):
        a, b = pair
        with pytest.raises(MergeCollisionError) as exc_info:
            a.merge(b, MergeStrategy.ERROR)
        assert exc_info.value.collisions == ["shared"]
        assert a.get("shared", str) == "from-a"
        assert not a.exists("only-b")

    def test_other_store_is_untouched(self, pair):
        a, b = pair
        a.merge(b, MergeStrategy.OVERWRITE)
        assert sorted(b.list_keys()) == ["only-b", "shared"]
        assert b.get("shared", str) == "from-b"


class TestMergeExpiry:
    def test_expired_entries_on_this_side_do_not_collide(self, clock):
        a, b = Store(), Store()
        a.put_with_ttl("k", "old", 1)
        clock.advance(2)
        b.put("k", "new")
        assert a.merge(b, MergeStrategy.ERROR) == []
        assert a.get("k", str) == "new"

    def test_expired_entries_on_other_side_are_ignored(self, clock):
        a, b = Store(), Store()
        b.put_with_ttl("k", "stale", 1)
        clock.advance(2)
        a.merge(b)
        assert not a.exists("k")

    def test_overwrite_adopts_expiry(self, clock):
        a, b = Store(), Store()
        a.put("k", "forever")
        b.put_with_ttl("k", "brief", 5)
        a.merge(b)
        clock.advance(6)
        assert not a.exists("k")


class TestMergeMetadata:
    def test_overwrite_unions_metadata(self):
        a, b = Store(), Store()
        a.put_with_metadata("k", 1, new_metadata(tags=["a"], properties={"x": 1, "keep": "yes"}))
        b.put_with_metadata("k", 2, new_metadata(tags=["b"], properties={"x": 2}))
        a.merge(b)
        meta = a.get_metadata("k")
        assert meta.tags == ["a", "b"]
        assert meta.properties == {"x": 2, "keep": "yes"}

    def test_overwrite_adopts_other_metadata_when_this_side_has_none(self):
        a, b = Store(), Store()
        a.put("k", 1)
        b.put_with_metadata("k", 2, new_metadata(tags=["b"]))
        a.merge(b)
        assert a.get_metadata("k").tags == ["b"]

    def test_merged_metadata_is_not_shared(self):
        a, b = Store(), Store()
        b.put_with_metadata("k", 1, new_metadata(tags=["b"]))
        a.merge(b)
        b.add_tag("k", "later")
        assert not a.has_tag("k", "later")

    def test_skip_keeps_this_side_metadata(self):
        a, b = Store(), Store()
        a.put_with_metadata("k", 1, new_metadata(tags=["a"]))
        b.put_with_metadata("k", 2, new_metadata(tags=["b"]))
        a.merge(b, MergeStrategy.SKIP)
        assert a.get_metadata("k").tags == ["a"]


class TestFindKeyCollisions:
    def test_reports_shared_live_keys(self, pair):
        a, b = pair
        assert a.find_key_collisions(b) == ["shared"]

    def test_ignores_expired(self, clock):
        a, b = Store(), Store()
        a.put_with_ttl("k", 1, 1)
        b.put("k", 2)
        clock.advance(2)
        assert a.find_key_collisions(b) == []

    def test_merge_with_itself(self):
        a = Store()
        a.put("k", 1)
        assert a.merge(a) == ["k"]
        assert a.get("k", int) == 1
