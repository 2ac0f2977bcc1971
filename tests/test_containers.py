# tests/test_containers.py
"""Tests for Item, Map and IndexedMap containers."""

import pytest

from nftreg.containers import IndexedMap, Item, Map, MultiIndex
from nftreg.errors import DataCorruptionError, NotFoundError
from nftreg.keys import joined_key, nested_prefix, part_to_bytes, split_parts
from nftreg.storage import MemoryStorage, Order


class RecordingStorage(MemoryStorage):
    """MemoryStorage that records which keys were written."""

    def __init__(self):
        super().__init__()
        self.writes = []

    def set(self, key, value):
        self.writes.append(key)
        super().set(key, value)

    def remove(self, key):
        self.writes.append(key)
        super().remove(key)


@pytest.fixture
def storage():
    return MemoryStorage()


def by_color(pk: str, value: dict) -> str:
    return value["color"]


@pytest.fixture
def things():
    return IndexedMap("things", {"color": MultiIndex(by_color, "things__color")})


class TestItem:
    """Test the scalar cell."""

    def test_load_missing(self, storage):
        item = Item("config")
        assert item.may_load(storage) is None
        assert not item.exists(storage)
        with pytest.raises(NotFoundError):
            item.load(storage)

    def test_save_and_load(self, storage):
        item = Item("config")
        item.save(storage, {"a": 1})
        assert item.load(storage) == {"a": 1}
        assert item.exists(storage)
        item.remove(storage)
        assert item.may_load(storage) is None

    def test_update(self, storage):
        item = Item("counter")
        assert item.update(storage, lambda v: (v or 0) + 5) == 5
        assert item.update(storage, lambda v: (v or 0) + 5) == 10

    def test_corrupt_value(self, storage):
        storage.set(b"config", b"\xff\xfe")
        with pytest.raises(DataCorruptionError):
            Item("config").load(storage)

    def test_loader_rejection_is_corruption(self, storage):
        def load_int(data):
            if not isinstance(data, int):
                raise ValueError("not an int")
            return data

        storage.set(b"count", b'"seven"')
        with pytest.raises(DataCorruptionError):
            Item("count", load_int).may_load(storage)


class TestMap:
    """Test namespaced maps."""

    def test_crud(self, storage):
        m = Map("people")
        m.save(storage, "alice", {"age": 30})
        assert m.has(storage, "alice")
        assert m.load(storage, "alice") == {"age": 30}
        m.remove(storage, "alice")
        assert m.may_load(storage, "alice") is None
        with pytest.raises(NotFoundError):
            m.load(storage, "alice")

    def test_namespaces_do_not_collide(self, storage):
        Map("a").save(storage, "key", 1)
        Map("ab").save(storage, "key", 2)
        assert list(Map("a").range(storage)) == [("key", 1)]
        assert list(Map("ab").range(storage)) == [("key", 2)]

    def test_range_start_after_and_order(self, storage):
        m = Map("letters")
        for letter in "dbca":
            m.save(storage, letter, letter.upper())
        assert list(m.keys(storage)) == ["a", "b", "c", "d"]
        assert list(m.keys(storage, start_after="b")) == ["c", "d"]
        assert list(m.keys(storage, start_after="c", order=Order.DESCENDING)) == ["b", "a"]

    def test_composite_keys(self, storage):
        m = Map("pairs", arity=2)
        m.save(storage, ("alice", "op1"), 1)
        m.save(storage, ("alice", "op2"), 2)
        m.save(storage, ("alicex", "op0"), 3)
        m.save(storage, ("bob", "op1"), 4)

        assert list(m.prefix_range(storage, ("alice",))) == [("op1", 1), ("op2", 2)]
        assert list(m.prefix_range(storage, ("alice",), start_after="op1")) == [("op2", 2)]
        # Leading components are length-prefixed, so shorter ones sort first
        assert list(m.keys(storage)) == [
            ("bob", "op1"), ("alice", "op1"), ("alice", "op2"), ("alicex", "op0"),
        ]

    def test_wrong_arity(self, storage):
        m = Map("pairs", arity=2)
        with pytest.raises(ValueError):
            m.save(storage, "alice", 1)
        with pytest.raises(ValueError):
            list(m.prefix_range(storage, ("a", "b")))


class TestIndexedMap:
    """Test index maintenance."""

    def test_save_writes_index(self, storage, things):
        things.save(storage, "t1", {"color": "red"})
        things.save(storage, "t2", {"color": "blue"})
        things.save(storage, "t3", {"color": "red"})

        index = things.idx("color")
        assert list(index.keys(storage, "red")) == ["t1", "t3"]
        assert list(index.prefix_range(storage, "blue")) == [("t2", {"color": "blue"})]

    def test_change_moves_index_entry(self, storage, things):
        things.save(storage, "t1", {"color": "red"})
        things.save(storage, "t1", {"color": "green"})

        index = things.idx("color")
        assert list(index.keys(storage, "red")) == []
        assert list(index.keys(storage, "green")) == ["t1"]
        assert list(index.entries(storage)) == [("green", "t1")]

    def test_unrelated_change_leaves_index(self, things):
        storage = RecordingStorage()
        things.save(storage, "t1", {"color": "red", "size": 1})
        storage.writes.clear()

        things.save(storage, "t1", {"color": "red", "size": 2})
        assert storage.writes == [things._primary.key("t1")]

    def test_remove(self, storage, things):
        things.save(storage, "t1", {"color": "red"})
        assert things.remove(storage, "t1") == {"color": "red"}
        assert things.remove(storage, "t1") is None
        assert list(things.idx("color").entries(storage)) == []

    def test_dangling_index_entry(self, storage, things):
        things.save(storage, "t1", {"color": "red"})
        storage.remove(things._primary.key("t1"))
        with pytest.raises(DataCorruptionError):
            list(things.idx("color").prefix_range(storage, "red"))


class TestKeys:
    """Test composite key encoding."""

    def test_split_round_trip(self):
        key = joined_key(b"ops", [b"alice", b"bob"])
        assert key == b"\x00\x03ops\x00\x05alicebob"
        remainder = key[len(nested_prefix([b"ops"])):]
        assert split_parts(remainder, 2) == [b"alice", b"bob"]

    def test_truncated_key(self):
        with pytest.raises(ValueError):
            split_parts(b"\x00\x09abc", 2)

    def test_unsupported_part(self):
        assert part_to_bytes(1) == b"\x00" * 7 + b"\x01"
        with pytest.raises(TypeError):
            part_to_bytes(1.5)
        with pytest.raises(ValueError):
            part_to_bytes(-1)
