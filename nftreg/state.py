# nftreg/state.py
"""
NFT ownership registry.

Components, all namespaced in one flat key space:
- contract_info / minter: scalar cells with contract metadata
- token_count: live token counter
- operators: (granter, operator) -> Expiration, blanket delegated rights
- tokens: token id -> TokenInfo, with an owner index (tokens__owner)

Every mutation that touches more than one key runs inside a storage
transaction, so the token record, its owner index entry and the counter
move together or not at all. Authorization (who may mint, transfer or
approve) is decided by the caller.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from itertools import islice
from typing import Any, Dict, Iterator, List, Optional, Tuple

from . import codec
from .config import RegistryConfig
from .containers import IndexedMap, Item, Map, MultiIndex
from .errors import AlreadyExistsError, NotFoundError, UnderflowError
from .expiration import BlockInfo, Expiration
from .storage import Storage

logger = logging.getLogger(__name__)


@dataclass
class Approval:
    """
    A per-token transfer right.

    Attributes:
        spender: Account that may transfer/send the token
        expires: When the approval lapses
    """
    spender: str
    expires: Expiration = field(default_factory=Expiration.never)

    def is_expired(self, block: BlockInfo) -> bool:
        return self.expires.is_expired(block)

    def to_dict(self) -> Dict[str, Any]:
        return {"spender": self.spender, "expires": self.expires.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Approval":
        return cls(
            spender=codec.load_str(data["spender"]),
            expires=Expiration.from_dict(data["expires"]),
        )


@dataclass
class TokenInfo:
    """
    A token record.

    Approvals live on the record itself: they are cleared on every transfer
    and so never accumulate.

    Attributes:
        owner: Current owner
        approvals: Per-spender approvals, at most one per spender
        token_uri: Optional metadata URI
        extension: Caller-defined JSON payload, never inspected here
    """
    owner: str
    approvals: List[Approval] = field(default_factory=list)
    token_uri: Optional[str] = None
    extension: Any = None

    def approve(self, spender: str, expires: Expiration = None) -> None:
        """Grant spender an approval, replacing any existing one."""
        self.revoke(spender)
        self.approvals.append(Approval(spender, expires or Expiration.never()))

    def revoke(self, spender: str) -> None:
        self.approvals = [a for a in self.approvals if a.spender != spender]

    def clear_approvals(self) -> None:
        self.approvals = []

    def is_approved(self, spender: str, block: BlockInfo) -> bool:
        return any(
            a.spender == spender and not a.is_expired(block)
            for a in self.approvals
        )

    def active_approvals(self, block: BlockInfo) -> List[Approval]:
        return [a for a in self.approvals if not a.is_expired(block)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "approvals": [a.to_dict() for a in self.approvals],
            "token_uri": self.token_uri,
            "extension": self.extension,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenInfo":
        token_uri = data.get("token_uri")
        if token_uri is not None:
            token_uri = codec.load_str(token_uri)
        return cls(
            owner=codec.load_str(data["owner"]),
            approvals=[Approval.from_dict(a) for a in data["approvals"]],
            token_uri=token_uri,
            extension=data.get("extension"),
        )


@dataclass
class ContractInfo:
    """Collection-level metadata."""
    name: str
    symbol: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "symbol": self.symbol}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContractInfo":
        return cls(name=codec.load_str(data["name"]), symbol=codec.load_str(data["symbol"]))


def token_owner_idx(token_id: str, info: TokenInfo) -> str:
    """Owner index derivation: a token is indexed solely by its owner."""
    return info.owner


class TokenRegistry:
    """
    Persistent, owner-indexed NFT registry bound to one Storage.

    Usage:
        registry = TokenRegistry(MemoryStorage())
        registry.mint("1", "alice", token_uri="ipfs://...")
        registry.transfer("1", "bob")
        registry.tokens_by_owner("bob")   # [("1", TokenInfo(...))]
        registry.burn("1")

    Callers composing their own state transition can group calls:
        with registry.transaction():
            registry.insert_token("2", TokenInfo(owner="carol"))
            registry.increment_tokens()
    """

    def __init__(self, storage: Storage, config: RegistryConfig = None):
        self.storage = storage
        self.config = config or RegistryConfig()
        ns = self.config.namespaces

        self.contract_info = Item(ns["contract_info"], ContractInfo.from_dict)
        self.minter = Item(ns["minter"], codec.load_str)
        self.token_count_cell = Item(ns["token_count"], codec.load_count)
        self.operators = Map(ns["operators"], Expiration.from_dict, arity=2)
        self.tokens = IndexedMap(
            ns["tokens"],
            {"owner": MultiIndex(token_owner_idx, ns["tokens_owner"])},
            TokenInfo.from_dict,
        )

    @classmethod
    def from_config(cls, config: RegistryConfig) -> "TokenRegistry":
        return cls(config.open_storage(), config)

    @contextmanager
    def transaction(self) -> Iterator["TokenRegistry"]:
        """
        Group registry calls into one all-or-nothing state transition.

        Writes are buffered and applied when the block exits without an
        exception. Nested transactions commit into the enclosing one.
        """
        base = self.storage
        with base.transaction() as journal:
            self.storage = journal
            try:
                yield self
            finally:
                self.storage = base

    def _page(self, items: Iterator, limit: Optional[int]) -> List:
        return list(islice(items, self.config.page_limit(limit)))

    # ----- contract metadata -----

    def instantiate(self, name: str, symbol: str, minter: str) -> ContractInfo:
        info = ContractInfo(name=name, symbol=symbol)
        with self.transaction():
            self.contract_info.save(self.storage, info)
            self.minter.save(self.storage, minter)
        logger.info(f"Instantiated collection {name} ({symbol}), minter {minter}")
        return info

    def get_contract_info(self) -> ContractInfo:
        return self.contract_info.load(self.storage)

    def get_minter(self) -> Optional[str]:
        return self.minter.may_load(self.storage)

    # ----- token counter -----

    def token_count(self) -> int:
        """Number of live tokens; 0 when never initialized."""
        return self.token_count_cell.may_load(self.storage) or 0

    def increment_tokens(self) -> int:
        value = self.token_count() + 1
        self.token_count_cell.save(self.storage, value)
        return value

    def decrement_tokens(self) -> int:
        current = self.token_count()
        if current == 0:
            logger.warning(f"Refusing to decrement {self.token_count_cell.namespace} below zero")
            raise UnderflowError(self.token_count_cell.namespace)
        value = current - 1
        self.token_count_cell.save(self.storage, value)
        return value

    # ----- token store + owner index -----

    def has_token(self, token_id: str) -> bool:
        return self.tokens.has(self.storage, token_id)

    def load_token(self, token_id: str) -> TokenInfo:
        return self.tokens.load(self.storage, token_id)

    def may_load_token(self, token_id: str) -> Optional[TokenInfo]:
        return self.tokens.may_load(self.storage, token_id)

    def insert_token(self, token_id: str, info: TokenInfo) -> None:
        """Store a new token. Raises AlreadyExistsError for a known id."""
        if self.tokens.has(self.storage, token_id):
            logger.warning(f"Token {token_id} already exists")
            raise AlreadyExistsError(self.tokens.namespace, token_id)
        with self.transaction():
            self.tokens.replace(self.storage, token_id, info, None)
        logger.debug(f"Inserted token {token_id} for {info.owner}")

    def save_token(self, token_id: str, info: TokenInfo) -> None:
        """Rewrite an existing token. The owner index moves only if the owner changed."""
        old = self.tokens.load(self.storage, token_id)
        with self.transaction():
            self.tokens.replace(self.storage, token_id, info, old)

    def update_owner(self, token_id: str, new_owner: str) -> TokenInfo:
        """
        Hand a token to new_owner.

        Approvals do not survive a change of owner and are cleared. The
        owner index entry moves in the same transaction as the record.
        """
        old = self.tokens.load(self.storage, token_id)
        new = TokenInfo(
            owner=new_owner,
            approvals=[],
            token_uri=old.token_uri,
            extension=old.extension,
        )
        with self.transaction():
            self.tokens.replace(self.storage, token_id, new, old)
        logger.debug(f"Token {token_id} owner {old.owner} -> {new_owner}")
        return new

    def remove_token(self, token_id: str) -> TokenInfo:
        """Delete a token and its owner index entry. Returns the removed record."""
        with self.transaction():
            old = self.tokens.remove(self.storage, token_id)
        if old is None:
            logger.warning(f"Cannot remove unknown token {token_id}")
            raise NotFoundError(self.tokens.namespace, token_id)
        logger.debug(f"Removed token {token_id} owned by {old.owner}")
        return old

    def tokens_by_owner(
        self,
        owner: str,
        start_after: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, TokenInfo]]:
        """
        One page of owner's tokens in ascending token id order.

        Pass the last id of a page as start_after to fetch the next one.
        """
        index = self.tokens.idx("owner")
        return self._page(index.prefix_range(self.storage, owner, start_after), limit)

    def token_ids_by_owner(
        self,
        owner: str,
        start_after: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[str]:
        index = self.tokens.idx("owner")
        return self._page(index.keys(self.storage, owner, start_after), limit)

    def all_tokens(
        self,
        start_after: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, TokenInfo]]:
        return self._page(self.tokens.range(self.storage, start_after), limit)

    # ----- per-token approvals -----

    def approve(self, token_id: str, spender: str, expires: Expiration = None) -> TokenInfo:
        info = self.tokens.load(self.storage, token_id)
        info.approve(spender, expires)
        self.save_token(token_id, info)
        logger.debug(f"Approved {spender} on token {token_id} ({info.approvals[-1].expires})")
        return info

    def revoke(self, token_id: str, spender: str) -> TokenInfo:
        info = self.tokens.load(self.storage, token_id)
        info.revoke(spender)
        self.save_token(token_id, info)
        logger.debug(f"Revoked {spender} on token {token_id}")
        return info

    def is_approved(self, token_id: str, spender: str, block: BlockInfo) -> bool:
        return self.tokens.load(self.storage, token_id).is_approved(spender, block)

    # ----- operators -----

    def grant_operator(self, granter: str, operator: str, expires: Expiration = None) -> None:
        """Give operator rights over all of granter's tokens. Last write wins."""
        expires = expires or Expiration.never()
        self.operators.save(self.storage, (granter, operator), expires)
        logger.debug(f"Operator {operator} granted by {granter} ({expires})")

    def revoke_operator(self, granter: str, operator: str) -> None:
        self.operators.remove(self.storage, (granter, operator))
        logger.debug(f"Operator {operator} revoked by {granter}")

    def is_operator(self, granter: str, operator: str, block: BlockInfo) -> bool:
        expires = self.operators.may_load(self.storage, (granter, operator))
        return expires is not None and not expires.is_expired(block)

    def operators_for(
        self,
        granter: str,
        block: Optional[BlockInfo] = None,
        include_expired: bool = False,
        start_after: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Expiration]]:
        """
        Operators granted by granter, in ascending operator order.

        Expired grants are skipped when a block is given, unless
        include_expired is set.
        """
        entries = self.operators.prefix_range(self.storage, (granter,), start_after)
        if block is not None and not include_expired:
            entries = (
                (operator, expires) for operator, expires in entries
                if not expires.is_expired(block)
            )
        return self._page(entries, limit)

    # ----- lifecycle -----

    def mint(
        self,
        token_id: str,
        owner: str,
        token_uri: Optional[str] = None,
        extension: Any = None,
    ) -> TokenInfo:
        """Create a token and count it, as one state transition."""
        info = TokenInfo(owner=owner, token_uri=token_uri, extension=extension)
        with self.transaction():
            self.insert_token(token_id, info)
            self.increment_tokens()
        logger.info(f"Minted token {token_id} to {owner}")
        return info

    def transfer(self, token_id: str, recipient: str) -> TokenInfo:
        info = self.update_owner(token_id, recipient)
        logger.info(f"Transferred token {token_id} to {recipient}")
        return info

    def burn(self, token_id: str) -> TokenInfo:
        """Remove a token and uncount it, as one state transition."""
        with self.transaction():
            old = self.remove_token(token_id)
            self.decrement_tokens()
        logger.info(f"Burned token {token_id}")
        return old

    # ----- consistency -----

    def verify(self) -> List[str]:
        """
        Cross-check records, owner index and counter.

        Returns a list of problems (empty if consistent).
        """
        problems = []
        expected = {}
        for token_id, info in self.tokens.range(self.storage):
            expected[(info.owner, token_id)] = True
            spenders = [a.spender for a in info.approvals]
            if len(spenders) != len(set(spenders)):
                problems.append(f"Token {token_id} has duplicate approvals")

        indexed = set(self.tokens.idx("owner").entries(self.storage))
        for owner, token_id in sorted(indexed - set(expected)):
            problems.append(f"Index entry ({owner}, {token_id}) has no matching record")
        for owner, token_id in sorted(set(expected) - indexed):
            problems.append(f"Token {token_id} owned by {owner} is missing from the index")

        count = self.token_count()
        if count != len(expected):
            problems.append(f"Token count is {count} but {len(expected)} tokens are stored")

        for problem in problems:
            logger.error(problem)
        return problems
