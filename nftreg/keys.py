# nftreg/keys.py
"""
Namespaced key encoding.

Every component owns a namespace. Composite keys length-prefix every
component except the last, so the keys of one owner (or granter) form a
contiguous range that no other owner's keys can fall into:

    len(ns) | ns | len(k1) | k1 | ... | k_last
"""

import struct
from typing import List, Sequence, Tuple, Union

KeyPart = Union[str, bytes, int]

_MAX_PART = 0xFFFF


def part_to_bytes(part: KeyPart) -> bytes:
    """Encode a single key component."""
    if isinstance(part, bytes):
        return part
    if isinstance(part, str):
        return part.encode("utf-8")
    if isinstance(part, int) and not isinstance(part, bool):
        if part < 0:
            raise ValueError(f"Negative integer key component: {part}")
        return struct.pack(">Q", part)
    raise TypeError(f"Unsupported key component type: {type(part).__name__}")


def length_prefixed(part: bytes) -> bytes:
    if len(part) > _MAX_PART:
        raise ValueError(f"Key component too long: {len(part)} bytes")
    return struct.pack(">H", len(part)) + part


def nested_prefix(parts: Sequence[bytes]) -> bytes:
    """Length-prefix and concatenate every component."""
    return b"".join(length_prefixed(p) for p in parts)


def joined_key(namespace: bytes, parts: Sequence[bytes]) -> bytes:
    """Full storage key for a (possibly composite) map key."""
    if not parts:
        raise ValueError("Empty key")
    return nested_prefix([namespace, *parts[:-1]]) + parts[-1]


def split_parts(raw: bytes, count: int) -> List[bytes]:
    """
    Split the namespace-less remainder of a key into ``count`` components.

    Inverse of the non-namespace part of :func:`joined_key`.
    """
    parts = []
    offset = 0
    for _ in range(count - 1):
        if offset + 2 > len(raw):
            raise ValueError("Truncated composite key")
        (size,) = struct.unpack(">H", raw[offset:offset + 2])
        offset += 2
        if offset + size > len(raw):
            raise ValueError("Truncated composite key")
        parts.append(raw[offset:offset + size])
        offset += size
    parts.append(raw[offset:])
    return parts


def normalize_key(key: Union[KeyPart, Tuple[KeyPart, ...]]) -> Tuple[bytes, ...]:
    if isinstance(key, tuple):
        return tuple(part_to_bytes(p) for p in key)
    return (part_to_bytes(key),)
