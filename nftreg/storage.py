# nftreg/storage.py
"""
Flat, byte-oriented key/value storage.

The registry only ever needs get/set/remove and ordered range scans.
Backends:
- MemoryStorage: sorted in-process key space (tests, scratch work)
- FileStorage: MemoryStorage persisted to a single JSON file

Multi-key updates run inside ``storage.transaction()``. Writes made
through the yielded journal are buffered and applied to the parent only
when the block exits cleanly, so a failure part-way leaves committed
state untouched.
"""

import bisect
import json
import logging
import os
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import StorageFailureError

logger = logging.getLogger(__name__)

KV = Tuple[bytes, bytes]


class Order(Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


def prefix_end(prefix: bytes) -> Optional[bytes]:
    """
    Smallest key greater than every key starting with ``prefix``.

    Returns None when no such key exists (empty or all-0xff prefix).
    """
    stripped = prefix.rstrip(b"\xff")
    if not stripped:
        return None
    return stripped[:-1] + bytes([stripped[-1] + 1])


def _in_range(key: bytes, start: Optional[bytes], end: Optional[bytes]) -> bool:
    if start is not None and key < start:
        return False
    if end is not None and key >= end:
        return False
    return True


class Storage(ABC):
    """
    Storage primitive consumed by the registry.

    Implementations are synchronous and assume a single writer.
    """

    @abstractmethod
    def get(self, key: bytes) -> Optional[bytes]:
        """Return the value stored at key, or None."""
        pass

    @abstractmethod
    def set(self, key: bytes, value: bytes) -> None:
        pass

    @abstractmethod
    def remove(self, key: bytes) -> None:
        """Delete key. Deleting an absent key is not an error."""
        pass

    @abstractmethod
    def range(
        self,
        start: Optional[bytes] = None,
        end: Optional[bytes] = None,
        order: Order = Order.ASCENDING,
    ) -> Iterator[KV]:
        """Iterate (key, value) pairs with start <= key < end."""
        pass

    def prefix_range(
        self,
        prefix: bytes,
        start_after: Optional[bytes] = None,
        order: Order = Order.ASCENDING,
    ) -> Iterator[KV]:
        """
        Iterate pairs whose key starts with prefix.

        Args:
            prefix: Key prefix
            start_after: Full key to resume after (exclusive), in the
                direction of ``order``
            order: Iteration order
        """
        start = prefix
        end = prefix_end(prefix)
        if start_after is not None:
            if order == Order.ASCENDING:
                start = max(start, start_after + b"\x00")
            else:
                end = start_after if end is None else min(end, start_after)
        return self.range(start, end, order)

    def apply_batch(self, writes: Dict[bytes, Optional[bytes]]) -> None:
        """
        Apply buffered writes (None means delete).

        Backends with cheaper bulk commits override this.
        """
        for key, value in writes.items():
            if value is None:
                self.remove(key)
            else:
                self.set(key, value)

    @contextmanager
    def transaction(self) -> Iterator["Journal"]:
        """
        Buffer writes and apply them together on clean exit.

        Transactions nest: an inner journal commits into the outer one.
        """
        journal = Journal(self)
        yield journal
        if journal.pending:
            logger.debug(f"Committing {len(journal.pending)} buffered writes")
            self.apply_batch(journal.pending)


class Journal(Storage):
    """Write overlay on top of another Storage."""

    def __init__(self, base: Storage):
        self.base = base
        self.pending: Dict[bytes, Optional[bytes]] = {}

    def get(self, key: bytes) -> Optional[bytes]:
        if key in self.pending:
            return self.pending[key]
        return self.base.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        self.pending[key] = bytes(value)

    def remove(self, key: bytes) -> None:
        self.pending[key] = None

    def range(
        self,
        start: Optional[bytes] = None,
        end: Optional[bytes] = None,
        order: Order = Order.ASCENDING,
    ) -> Iterator[KV]:
        reverse = order == Order.DESCENDING
        overlay = sorted(
            (k for k in self.pending if _in_range(k, start, end)),
            reverse=reverse,
        )

        def before(a: bytes, b: bytes) -> bool:
            return a > b if reverse else a < b

        i = 0
        for key, value in self.base.range(start, end, order):
            while i < len(overlay) and before(overlay[i], key):
                pending = self.pending[overlay[i]]
                if pending is not None:
                    yield overlay[i], pending
                i += 1
            if i < len(overlay) and overlay[i] == key:
                i += 1
                pending = self.pending[key]
                if pending is not None:
                    yield key, pending
                continue
            yield key, value
        for key in overlay[i:]:
            pending = self.pending[key]
            if pending is not None:
                yield key, pending


class MemoryStorage(Storage):
    """Sorted in-memory key space."""

    def __init__(self):
        self._data: Dict[bytes, bytes] = {}
        self._keys: List[bytes] = []

    def get(self, key: bytes) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        if key not in self._data:
            bisect.insort(self._keys, key)
        self._data[key] = bytes(value)

    def remove(self, key: bytes) -> None:
        if key in self._data:
            del self._data[key]
            del self._keys[bisect.bisect_left(self._keys, key)]

    def range(
        self,
        start: Optional[bytes] = None,
        end: Optional[bytes] = None,
        order: Order = Order.ASCENDING,
    ) -> Iterator[KV]:
        lo = 0 if start is None else bisect.bisect_left(self._keys, start)
        hi = len(self._keys) if end is None else bisect.bisect_left(self._keys, end)
        # Snapshot the key slice so callers may write while iterating
        keys = self._keys[lo:hi]
        if order == Order.DESCENDING:
            keys.reverse()
        for key in keys:
            value = self._data.get(key)
            if value is not None:
                yield key, value

    def __len__(self) -> int:
        return len(self._keys)


class FileStorage(MemoryStorage):
    """
    Key space persisted to a JSON file.

    Structure:
        data.json    {"version": "1.0", "entries": {<hex key>: <hex value>}}

    Every write outside a transaction rewrites the file; a committed
    transaction rewrites it once. A failed rewrite leaves the in-memory
    key space as it was before the write. Files are replaced atomically via a
    temporary sibling, so a crash never leaves a half-written file.
    """

    def __init__(self, path: Path | str):
        super().__init__()
        self.path = Path(path)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageFailureError("open", str(e)) from e
        self._load()

    def _load(self):
        """Load key space from disk."""
        if not self.path.exists():
            return
        try:
            with open(self.path) as f:
                data = json.load(f)
            entries = {
                bytes.fromhex(k): bytes.fromhex(v)
                for k, v in data.get("entries", {}).items()
            }
        except OSError as e:
            raise StorageFailureError("load", str(e)) from e
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
            logger.error(f"Unreadable storage file {self.path}: {e}")
            raise StorageFailureError("load", f"{self.path}: {e}") from e
        self._data = entries
        self._keys = sorted(entries)

    def _save(self):
        """Save key space to disk."""
        data = {
            "version": "1.0",
            "entries": {k.hex(): self._data[k].hex() for k in self._keys},
        }
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            with open(tmp_path, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to write storage file {self.path}: {e}")
            raise StorageFailureError("save", str(e)) from e

    def set(self, key: bytes, value: bytes) -> None:
        self.apply_batch({key: bytes(value)})

    def remove(self, key: bytes) -> None:
        if key in self._data:
            self.apply_batch({key: None})

    def apply_batch(self, writes: Dict[bytes, Optional[bytes]]) -> None:
        snapshot = (dict(self._data), list(self._keys))
        for key, value in writes.items():
            if value is None:
                MemoryStorage.remove(self, key)
            else:
                MemoryStorage.set(self, key, value)
        try:
            self._save()
        except StorageFailureError:
            self._data, self._keys = snapshot
            raise
