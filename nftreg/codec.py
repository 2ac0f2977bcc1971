# nftreg/codec.py
"""
Value codec.

Values are stored as compact, key-sorted JSON. Objects with a ``to_dict``
method are serialized through it; loading goes through a caller-supplied
loader (usually a ``from_dict`` classmethod). Anything that fails to load
is reported as DataCorruptionError.
"""

import json
import logging
from typing import Any, Callable, Optional

from .errors import DataCorruptionError

logger = logging.getLogger(__name__)

Loader = Callable[[Any], Any]


def to_plain(value: Any) -> Any:
    """
    Convert a value into JSON-compatible data.

    Only values that load back unchanged are accepted: tuples and
    non-string dict keys raise TypeError instead of being coerced.
    """
    if hasattr(value, "to_dict"):
        return to_plain(value.to_dict())
    if isinstance(value, tuple):
        raise TypeError("tuples do not survive a round trip, use a list")
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    if isinstance(value, dict):
        for k in value:
            if not isinstance(k, str):
                raise TypeError(f"dict keys must be strings, got {k!r}")
        return {k: to_plain(v) for k, v in value.items()}
    return value


def encode(value: Any) -> bytes:
    try:
        text = json.dumps(to_plain(value), sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise TypeError(f"Value is not serializable: {e}") from e
    return text.encode("utf-8")


def decode(data: bytes, namespace: str, key: str, loader: Optional[Loader] = None) -> Any:
    """
    Decode stored bytes.

    Args:
        data: Stored bytes
        namespace: Namespace the value was read from (for error reports)
        key: Human-readable key (for error reports)
        loader: Converts plain JSON data into the stored type

    Raises:
        DataCorruptionError: If the bytes are not valid JSON or the loader
            rejects their shape
    """
    try:
        plain = json.loads(data.decode("utf-8"))
        return loader(plain) if loader else plain
    except (UnicodeDecodeError, json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
        logger.error(f"Corrupt value in {namespace} at {key}: {e}")
        raise DataCorruptionError(namespace, key, str(e)) from e


def load_count(data: Any) -> int:
    """Loader for non-negative integer counters."""
    if isinstance(data, bool) or not isinstance(data, int) or data < 0:
        raise ValueError(f"Expected non-negative integer, got {data!r}")
    return data


def load_str(data: Any) -> str:
    if not isinstance(data, str):
        raise ValueError(f"Expected string, got {data!r}")
    return data
