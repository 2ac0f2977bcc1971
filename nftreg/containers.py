# nftreg/containers.py
"""
Typed containers over the flat key space.

- Item: a single value under a fixed key (scalar cell)
- Map: values under namespaced, possibly composite keys
- MultiIndex: derived (index value, primary key) entries
- IndexedMap: a Map whose every mutation keeps its indexes in step

Containers hold no state of their own; every call takes the Storage to
operate on, so the same container works against a backend or against a
transaction journal.
"""

import logging
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Union

from . import codec
from .errors import DataCorruptionError, NotFoundError
from .keys import (
    KeyPart,
    joined_key,
    length_prefixed,
    nested_prefix,
    normalize_key,
    part_to_bytes,
    split_parts,
)
from .storage import Order, Storage

logger = logging.getLogger(__name__)

MapKey = Union[KeyPart, Tuple[KeyPart, ...]]


def _display_key(key: MapKey) -> str:
    if isinstance(key, tuple):
        return "/".join(str(k) for k in key)
    return str(key)


class Item:
    """A single value stored under a fixed key."""

    def __init__(self, namespace: str, loader: Optional[codec.Loader] = None):
        self.namespace = namespace
        self.loader = loader
        self._key = namespace.encode("utf-8")

    def save(self, storage: Storage, value: Any) -> None:
        storage.set(self._key, codec.encode(value))

    def may_load(self, storage: Storage) -> Optional[Any]:
        data = storage.get(self._key)
        if data is None:
            return None
        return codec.decode(data, self.namespace, self.namespace, self.loader)

    def load(self, storage: Storage) -> Any:
        value = self.may_load(storage)
        if value is None:
            raise NotFoundError(self.namespace, self.namespace)
        return value

    def exists(self, storage: Storage) -> bool:
        return storage.get(self._key) is not None

    def remove(self, storage: Storage) -> None:
        storage.remove(self._key)

    def update(self, storage: Storage, fn: Callable[[Optional[Any]], Any]) -> Any:
        """Load (or None), apply fn, save and return the result."""
        value = fn(self.may_load(storage))
        self.save(storage, value)
        return value


class Map:
    """
    Values keyed by a string or a tuple of ``arity`` components.

    Keys come back from range scans as strings (arity 1) or tuples of
    strings.
    """

    def __init__(self, namespace: str, loader: Optional[codec.Loader] = None, arity: int = 1):
        if arity < 1:
            raise ValueError("Map arity must be at least 1")
        self.namespace = namespace
        self.loader = loader
        self.arity = arity
        self._ns = namespace.encode("utf-8")
        self._prefix = length_prefixed(self._ns)

    def key(self, key: MapKey) -> bytes:
        parts = normalize_key(key)
        if len(parts) != self.arity:
            raise ValueError(
                f"{self.namespace}: expected {self.arity}-part key, got {len(parts)}"
            )
        return joined_key(self._ns, parts)

    def _decode(self, key: MapKey, data: bytes) -> Any:
        return codec.decode(data, self.namespace, _display_key(key), self.loader)

    def save(self, storage: Storage, key: MapKey, value: Any) -> None:
        storage.set(self.key(key), codec.encode(value))

    def may_load(self, storage: Storage, key: MapKey) -> Optional[Any]:
        data = storage.get(self.key(key))
        if data is None:
            return None
        return self._decode(key, data)

    def load(self, storage: Storage, key: MapKey) -> Any:
        value = self.may_load(storage, key)
        if value is None:
            raise NotFoundError(self.namespace, _display_key(key))
        return value

    def has(self, storage: Storage, key: MapKey) -> bool:
        return storage.get(self.key(key)) is not None

    def remove(self, storage: Storage, key: MapKey) -> None:
        storage.remove(self.key(key))

    def update(self, storage: Storage, key: MapKey, fn: Callable[[Optional[Any]], Any]) -> Any:
        value = fn(self.may_load(storage, key))
        self.save(storage, key, value)
        return value

    def _unpack(self, raw: bytes, count: int) -> MapKey:
        try:
            parts = [p.decode("utf-8") for p in split_parts(raw, count)]
        except (UnicodeDecodeError, ValueError) as e:
            raise DataCorruptionError(self.namespace, raw.hex(), f"bad key: {e}") from e
        return parts[0] if count == 1 else tuple(parts)

    def range(
        self,
        storage: Storage,
        start_after: Optional[MapKey] = None,
        order: Order = Order.ASCENDING,
    ) -> Iterator[Tuple[MapKey, Any]]:
        """Iterate every entry in key order, strictly after start_after."""
        after = self.key(start_after) if start_after is not None else None
        for raw, data in storage.prefix_range(self._prefix, after, order):
            key = self._unpack(raw[len(self._prefix):], self.arity)
            yield key, self._decode(key, data)

    def prefix_range(
        self,
        storage: Storage,
        prefix: Tuple[KeyPart, ...],
        start_after: Optional[KeyPart] = None,
        order: Order = Order.ASCENDING,
    ) -> Iterator[Tuple[MapKey, Any]]:
        """
        Iterate entries whose leading key components equal ``prefix``.

        Yields the remaining key components and the value.
        """
        if not 0 < len(prefix) < self.arity:
            raise ValueError(f"{self.namespace}: prefix must have 1..{self.arity - 1} parts")
        base = nested_prefix([self._ns, *(part_to_bytes(p) for p in prefix)])
        remaining = self.arity - len(prefix)
        after = None
        if start_after is not None:
            after_parts = normalize_key(start_after)
            if len(after_parts) != remaining:
                raise ValueError(f"{self.namespace}: start_after must have {remaining} parts")
            after = base + nested_prefix(after_parts[:-1]) + after_parts[-1]
        for raw, data in storage.prefix_range(base, after, order):
            sub_key = self._unpack(raw[len(base):], remaining)
            full_key = tuple(prefix) + (sub_key if isinstance(sub_key, tuple) else (sub_key,))
            yield sub_key, self._decode(full_key, data)

    def keys(
        self,
        storage: Storage,
        start_after: Optional[MapKey] = None,
        order: Order = Order.ASCENDING,
    ) -> Iterator[MapKey]:
        for key, _ in self.range(storage, start_after, order):
            yield key


class MultiIndex:
    """
    Secondary index mapping a derived value to many primary keys.

    Entries are stored as (index value, primary key) -> presence marker and
    never hold a copy of the record; lookups load from the primary map.
    """

    PRESENT = 1

    def __init__(self, index_fn: Callable[[str, Any], str], namespace: str):
        self.index_fn = index_fn
        self.namespace = namespace
        self._entries = Map(namespace, loader=codec.load_count, arity=2)
        self._primary: Optional[Map] = None

    def attach(self, primary: Map) -> None:
        self._primary = primary

    def index_key(self, pk: str, value: Any) -> str:
        return self.index_fn(pk, value)

    def update(self, storage: Storage, pk: str, old: Optional[Any], new: Optional[Any]) -> None:
        """Move pk's entry from old's index value to new's; untouched if equal."""
        old_key = self.index_key(pk, old) if old is not None else None
        new_key = self.index_key(pk, new) if new is not None else None
        if old_key == new_key:
            return
        if old_key is not None:
            self._entries.remove(storage, (old_key, pk))
        if new_key is not None:
            self._entries.save(storage, (new_key, pk), self.PRESENT)

    def keys(
        self,
        storage: Storage,
        value: str,
        start_after: Optional[str] = None,
        order: Order = Order.ASCENDING,
    ) -> Iterator[str]:
        """Primary keys indexed under value, in primary key order."""
        for pk, _ in self._entries.prefix_range(storage, (value,), start_after, order):
            yield pk

    def prefix_range(
        self,
        storage: Storage,
        value: str,
        start_after: Optional[str] = None,
        order: Order = Order.ASCENDING,
    ) -> Iterator[Tuple[str, Any]]:
        """(primary key, record) pairs indexed under value."""
        if self._primary is None:
            raise RuntimeError(f"Index {self.namespace} is not attached to a primary map")
        for pk in self.keys(storage, value, start_after, order):
            record = self._primary.may_load(storage, pk)
            if record is None:
                logger.error(f"Index {self.namespace} entry ({value}, {pk}) has no record")
                raise DataCorruptionError(
                    self.namespace, f"{value}/{pk}", "index entry without primary record"
                )
            yield pk, record

    def entries(self, storage: Storage) -> Iterator[Tuple[str, str]]:
        """Every (index value, primary key) pair."""
        for (value, pk), _ in self._entries.range(storage):
            yield value, pk


class IndexedMap:
    """
    A Map kept in step with its secondary indexes.

    All record mutations go through save/replace/remove, which update every
    index before writing the record itself. There is no way to write the
    primary map or an index separately.
    """

    def __init__(
        self,
        namespace: str,
        indexes: Dict[str, MultiIndex],
        loader: Optional[codec.Loader] = None,
    ):
        self.namespace = namespace
        self._primary = Map(namespace, loader=loader)
        self.indexes = dict(indexes)
        for index in self.indexes.values():
            index.attach(self._primary)

    def idx(self, name: str) -> MultiIndex:
        return self.indexes[name]

    def load(self, storage: Storage, pk: str) -> Any:
        return self._primary.load(storage, pk)

    def may_load(self, storage: Storage, pk: str) -> Optional[Any]:
        return self._primary.may_load(storage, pk)

    def has(self, storage: Storage, pk: str) -> bool:
        return self._primary.has(storage, pk)

    def range(
        self,
        storage: Storage,
        start_after: Optional[str] = None,
        order: Order = Order.ASCENDING,
    ) -> Iterator[Tuple[str, Any]]:
        return self._primary.range(storage, start_after, order)

    def keys(
        self,
        storage: Storage,
        start_after: Optional[str] = None,
        order: Order = Order.ASCENDING,
    ) -> Iterator[str]:
        return self._primary.keys(storage, start_after, order)

    def save(self, storage: Storage, pk: str, value: Any) -> None:
        old = self._primary.may_load(storage, pk)
        self.replace(storage, pk, value, old)

    def replace(self, storage: Storage, pk: str, new: Optional[Any], old: Optional[Any]) -> None:
        """Write new (None deletes) given the currently stored old value."""
        for index in self.indexes.values():
            index.update(storage, pk, old, new)
        if new is None:
            self._primary.remove(storage, pk)
        else:
            self._primary.save(storage, pk, new)

    def remove(self, storage: Storage, pk: str) -> Optional[Any]:
        """Delete pk and its index entries. Returns the old value, if any."""
        old = self._primary.may_load(storage, pk)
        if old is not None:
            self.replace(storage, pk, None, old)
        return old
