#!/usr/bin/env python3
"""
nftreg CLI

Command-line front end over a file-backed registry:
  nftreg init <name> <symbol> <minter>
  nftreg mint <token_id> <owner> [--uri <uri>] [--extension <json>]
  nftreg transfer <token_id> <recipient>
  nftreg burn <token_id>
  nftreg info <token_id>
  nftreg tokens <owner> [--start-after <id>] [--limit <n>]
  nftreg all-tokens [--start-after <id>] [--limit <n>]
  nftreg count
  nftreg approve <token_id> <spender> [--expires-height <h> | --expires-time <t>]
  nftreg revoke <token_id> <spender>
  nftreg grant-operator <granter> <operator> [--expires-height <h> | --expires-time <t>]
  nftreg revoke-operator <granter> <operator>
  nftreg operators <granter> [--include-expired]
  nftreg is-operator <granter> <operator>
  nftreg check

Results are printed as JSON. Exit status is 1 for rejected operations
(unknown or duplicate token, counter underflow) and 2 for corrupt data or
storage faults.
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from .config import RegistryConfig
from .errors import (
    AlreadyExistsError,
    DataCorruptionError,
    NotFoundError,
    StorageFailureError,
    UnderflowError,
)
from .expiration import BlockInfo, Expiration
from .state import TokenRegistry

logger = logging.getLogger(__name__)

DEFAULT_DATA_PATH = "nft_registry.json"


def load_config(args) -> RegistryConfig:
    """Build the config from --config/--data (data path wins)."""
    if args.config:
        config = RegistryConfig.from_file(args.config)
    else:
        config = RegistryConfig.from_dict({"backend": "file", "data_path": DEFAULT_DATA_PATH})
    if args.data:
        config.backend = "file"
        config.data_path = Path(args.data)
    config.validate()
    return config


def current_block(args, config: RegistryConfig) -> BlockInfo:
    block_time = args.time if args.time is not None else int(time.time())
    return BlockInfo(height=args.height, time=block_time, chain_id=config.chain_id)


def parse_expiration(args) -> Expiration:
    if args.expires_height is not None:
        return Expiration.at_height(args.expires_height)
    if args.expires_time is not None:
        return Expiration.at_time(args.expires_time)
    return Expiration.never()


def emit(data) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def _token_page(page) -> List[dict]:
    return [{"token_id": token_id, **info.to_dict()} for token_id, info in page]


def cmd_init(registry: TokenRegistry, args, block: BlockInfo):
    info = registry.instantiate(args.name, args.symbol, args.minter)
    emit({**info.to_dict(), "minter": args.minter})


def cmd_mint(registry: TokenRegistry, args, block: BlockInfo):
    extension = json.loads(args.extension) if args.extension else None
    info = registry.mint(args.token_id, args.owner, token_uri=args.uri, extension=extension)
    emit({"token_id": args.token_id, **info.to_dict(), "count": registry.token_count()})


def cmd_transfer(registry: TokenRegistry, args, block: BlockInfo):
    info = registry.transfer(args.token_id, args.recipient)
    emit({"token_id": args.token_id, **info.to_dict()})


def cmd_burn(registry: TokenRegistry, args, block: BlockInfo):
    registry.burn(args.token_id)
    emit({"token_id": args.token_id, "burned": True, "count": registry.token_count()})


def cmd_info(registry: TokenRegistry, args, block: BlockInfo):
    info = registry.load_token(args.token_id)
    data = {"token_id": args.token_id, **info.to_dict()}
    data["active_approvals"] = [a.to_dict() for a in info.active_approvals(block)]
    emit(data)


def cmd_tokens(registry: TokenRegistry, args, block: BlockInfo):
    page = registry.tokens_by_owner(args.owner, args.start_after, args.limit)
    emit({"owner": args.owner, "tokens": _token_page(page)})


def cmd_all_tokens(registry: TokenRegistry, args, block: BlockInfo):
    emit({"tokens": _token_page(registry.all_tokens(args.start_after, args.limit))})


def cmd_count(registry: TokenRegistry, args, block: BlockInfo):
    emit({"count": registry.token_count()})


def cmd_approve(registry: TokenRegistry, args, block: BlockInfo):
    info = registry.approve(args.token_id, args.spender, parse_expiration(args))
    emit({"token_id": args.token_id, **info.to_dict()})


def cmd_revoke(registry: TokenRegistry, args, block: BlockInfo):
    info = registry.revoke(args.token_id, args.spender)
    emit({"token_id": args.token_id, **info.to_dict()})


def cmd_grant_operator(registry: TokenRegistry, args, block: BlockInfo):
    expires = parse_expiration(args)
    registry.grant_operator(args.granter, args.operator, expires)
    emit({"granter": args.granter, "operator": args.operator, "expires": expires.to_dict()})


def cmd_revoke_operator(registry: TokenRegistry, args, block: BlockInfo):
    registry.revoke_operator(args.granter, args.operator)
    emit({"granter": args.granter, "operator": args.operator, "revoked": True})


def cmd_operators(registry: TokenRegistry, args, block: BlockInfo):
    entries = registry.operators_for(
        args.granter,
        block=block,
        include_expired=args.include_expired,
        start_after=args.start_after,
        limit=args.limit,
    )
    emit({
        "granter": args.granter,
        "operators": [
            {"operator": operator, "expires": expires.to_dict()}
            for operator, expires in entries
        ],
    })


def cmd_is_operator(registry: TokenRegistry, args, block: BlockInfo):
    valid = registry.is_operator(args.granter, args.operator, block)
    emit({"granter": args.granter, "operator": args.operator, "valid": valid})


def cmd_check(registry: TokenRegistry, args, block: BlockInfo):
    problems = registry.verify()
    emit({"consistent": not problems, "problems": problems})
    if problems:
        return 1


COMMANDS = {
    "init": cmd_init,
    "mint": cmd_mint,
    "transfer": cmd_transfer,
    "burn": cmd_burn,
    "info": cmd_info,
    "tokens": cmd_tokens,
    "all-tokens": cmd_all_tokens,
    "count": cmd_count,
    "approve": cmd_approve,
    "revoke": cmd_revoke,
    "grant-operator": cmd_grant_operator,
    "revoke-operator": cmd_revoke_operator,
    "operators": cmd_operators,
    "is-operator": cmd_is_operator,
    "check": cmd_check,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nftreg",
        description="nftreg - NFT ownership registry",
    )
    parser.add_argument("--config", help="Registry config YAML file")
    parser.add_argument("--data", help=f"Data file (default: {DEFAULT_DATA_PATH})")
    parser.add_argument("--height", type=int, default=0, help="Current block height")
    parser.add_argument("--time", type=int, help="Current block time (default: now)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    init_parser = subparsers.add_parser("init", help="Store collection metadata")
    init_parser.add_argument("name")
    init_parser.add_argument("symbol")
    init_parser.add_argument("minter")

    mint_parser = subparsers.add_parser("mint", help="Mint a new token")
    mint_parser.add_argument("token_id")
    mint_parser.add_argument("owner")
    mint_parser.add_argument("--uri", help="Token metadata URI")
    mint_parser.add_argument("--extension", help="Extension payload (JSON)")

    transfer_parser = subparsers.add_parser("transfer", help="Transfer a token")
    transfer_parser.add_argument("token_id")
    transfer_parser.add_argument("recipient")

    burn_parser = subparsers.add_parser("burn", help="Burn a token")
    burn_parser.add_argument("token_id")

    info_parser = subparsers.add_parser("info", help="Show a token")
    info_parser.add_argument("token_id")

    tokens_parser = subparsers.add_parser("tokens", help="List tokens of an owner")
    tokens_parser.add_argument("owner")
    all_parser = subparsers.add_parser("all-tokens", help="List all tokens")
    for page_parser in (tokens_parser, all_parser):
        page_parser.add_argument("--start-after", help="Resume after this token id")
        page_parser.add_argument("--limit", type=int, help="Page size")

    subparsers.add_parser("count", help="Show the token count")

    approve_parser = subparsers.add_parser("approve", help="Approve a spender on a token")
    approve_parser.add_argument("token_id")
    approve_parser.add_argument("spender")

    revoke_parser = subparsers.add_parser("revoke", help="Revoke a spender on a token")
    revoke_parser.add_argument("token_id")
    revoke_parser.add_argument("spender")

    grant_parser = subparsers.add_parser("grant-operator", help="Grant an operator")
    grant_parser.add_argument("granter")
    grant_parser.add_argument("operator")

    for expiring_parser in (approve_parser, grant_parser):
        group = expiring_parser.add_mutually_exclusive_group()
        group.add_argument("--expires-height", type=int, help="Expire at block height")
        group.add_argument("--expires-time", type=int, help="Expire at block time")

    revoke_op_parser = subparsers.add_parser("revoke-operator", help="Revoke an operator")
    revoke_op_parser.add_argument("granter")
    revoke_op_parser.add_argument("operator")

    operators_parser = subparsers.add_parser("operators", help="List operators of a granter")
    operators_parser.add_argument("granter")
    operators_parser.add_argument("--include-expired", action="store_true",
                                  help="Include expired grants")
    operators_parser.add_argument("--start-after", help="Resume after this operator")
    operators_parser.add_argument("--limit", type=int, help="Page size")

    is_op_parser = subparsers.add_parser("is-operator", help="Check an operator grant")
    is_op_parser.add_argument("granter")
    is_op_parser.add_argument("operator")

    subparsers.add_parser("check", help="Verify index and counter consistency")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 1

    try:
        config = load_config(args)
        registry = TokenRegistry.from_config(config)
        block = current_block(args, config)
        return command(registry, args, block) or 0
    except (NotFoundError, AlreadyExistsError, UnderflowError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (DataCorruptionError, StorageFailureError) as e:
        logger.error(f"Aborted: {e}")
        print(f"Fatal: {e}", file=sys.stderr)
        return 2
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
