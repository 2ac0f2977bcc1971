# nftreg - Persistent, owner-indexed NFT ownership registry
#
# A registry of token ownership records over a flat key/value store that
# offers nothing but get/set/remove/range. Indexing and consistency are
# maintained by the registry itself.
#
# Core concepts:
# - TokenInfo: A token's owner, per-token approvals, URI and extension
# - Owner index: Derived (owner, token id) entries for listing by owner
# - Operators: Blanket, expiring rights over all of an owner's tokens
# - Storage: Byte-oriented backend with buffered transactions

from .errors import (
    RegistryError,
    NotFoundError,
    AlreadyExistsError,
    UnderflowError,
    DataCorruptionError,
    StorageFailureError,
)
from .expiration import BlockInfo, Expiration, Duration
from .storage import Storage, MemoryStorage, FileStorage, Order
from .containers import Item, Map, IndexedMap, MultiIndex
from .config import RegistryConfig
from .state import Approval, TokenInfo, ContractInfo, TokenRegistry

__all__ = [
    # Errors
    "RegistryError",
    "NotFoundError",
    "AlreadyExistsError",
    "UnderflowError",
    "DataCorruptionError",
    "StorageFailureError",
    # Expiration
    "BlockInfo",
    "Expiration",
    "Duration",
    # Storage
    "Storage",
    "MemoryStorage",
    "FileStorage",
    "Order",
    "Item",
    "Map",
    "IndexedMap",
    "MultiIndex",
    # Registry
    "RegistryConfig",
    "Approval",
    "TokenInfo",
    "ContractInfo",
    "TokenRegistry",
]

__version__ = "0.1.0"
