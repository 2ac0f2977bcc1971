# nftreg/expiration.py
"""
Expiration conditions for delegated rights.

An Expiration is evaluated against the current block (height and time).
AtHeight/AtTime bounds are expired once the current value reaches the
bound; Never never expires.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

AT_HEIGHT = "at_height"
AT_TIME = "at_time"
NEVER = "never"


@dataclass(frozen=True)
class BlockInfo:
    """
    The block the current state transition executes in.

    Attributes:
        height: Block height
        time: Block timestamp in seconds
        chain_id: Chain identifier (informational)
    """
    height: int
    time: int
    chain_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"height": self.height, "time": self.time, "chain_id": self.chain_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlockInfo":
        return cls(
            height=int(data["height"]),
            time=int(data["time"]),
            chain_id=data.get("chain_id", ""),
        )


@dataclass(frozen=True)
class Expiration:
    """
    When a delegated right lapses.

    Build with the constructors rather than directly:
        Expiration.at_height(100)
        Expiration.at_time(1_700_000_000)
        Expiration.never()
    """
    kind: str
    value: Optional[int] = None

    def __post_init__(self):
        if self.kind not in (AT_HEIGHT, AT_TIME, NEVER):
            raise ValueError(f"Unknown expiration kind: {self.kind}")
        if self.kind == NEVER:
            if self.value is not None:
                raise ValueError("Expiration 'never' takes no value")
        elif isinstance(self.value, bool) or not isinstance(self.value, int) or self.value < 0:
            raise ValueError(f"Expiration '{self.kind}' needs a non-negative int, got {self.value!r}")

    @classmethod
    def at_height(cls, height: int) -> "Expiration":
        return cls(AT_HEIGHT, height)

    @classmethod
    def at_time(cls, timestamp: int) -> "Expiration":
        return cls(AT_TIME, timestamp)

    @classmethod
    def never(cls) -> "Expiration":
        return cls(NEVER)

    @classmethod
    def default(cls) -> "Expiration":
        return cls.never()

    def is_expired(self, block: BlockInfo) -> bool:
        if self.kind == AT_HEIGHT:
            return block.height >= self.value
        if self.kind == AT_TIME:
            return block.time >= self.value
        return False

    def _check_comparable(self, other: "Expiration"):
        if not isinstance(other, Expiration):
            return NotImplemented
        if self.kind != other.kind:
            raise ValueError(f"Cannot compare {self.kind} with {other.kind}")
        return None

    def __lt__(self, other: "Expiration") -> bool:
        if self._check_comparable(other) is NotImplemented:
            return NotImplemented
        return self.kind != NEVER and self.value < other.value

    def __le__(self, other: "Expiration") -> bool:
        return self == other or self < other

    def __gt__(self, other: "Expiration") -> bool:
        if self._check_comparable(other) is NotImplemented:
            return NotImplemented
        return self.kind != NEVER and self.value > other.value

    def __ge__(self, other: "Expiration") -> bool:
        return self == other or self > other

    def __str__(self) -> str:
        if self.kind == AT_HEIGHT:
            return f"expiration height: {self.value}"
        if self.kind == AT_TIME:
            return f"expiration time: {self.value}"
        return "expiration: never"

    def to_dict(self) -> Dict[str, Any]:
        if self.kind == NEVER:
            return {NEVER: {}}
        return {self.kind: self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Expiration":
        if not isinstance(data, dict) or len(data) != 1:
            raise ValueError(f"Expected a single-key expiration object, got {data!r}")
        kind, value = next(iter(data.items()))
        if kind == NEVER:
            return cls.never()
        return cls(kind, value)


@dataclass(frozen=True)
class Duration:
    """A span of blocks or seconds, turned into an Expiration relative to a block."""
    kind: str
    value: int

    def __post_init__(self):
        if self.kind not in ("height", "time"):
            raise ValueError(f"Unknown duration kind: {self.kind}")
        if isinstance(self.value, bool) or not isinstance(self.value, int) or self.value < 0:
            raise ValueError(f"Duration needs a non-negative int, got {self.value!r}")

    @classmethod
    def height(cls, blocks: int) -> "Duration":
        return cls("height", blocks)

    @classmethod
    def time(cls, seconds: int) -> "Duration":
        return cls("time", seconds)

    def after(self, block: BlockInfo) -> Expiration:
        if self.kind == "height":
            return Expiration.at_height(block.height + self.value)
        return Expiration.at_time(block.time + self.value)
