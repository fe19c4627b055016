#!/usr/bin/env python3
"""
daowiz command-line interface

    daowiz new --eth-rpc-uri URL --contracts-dir DIR a_bg.wasm a.js ...
    daowiz list --eth-rpc-uri URL --contracts-dir DIR

The deploying account's key is read from DEPLOYMENT_PRIVATE_KEY.
"""

import os
import sys
import asyncio
import logging
import argparse
from contextlib import ExitStack
from typing import List, Optional

from dotenv import load_dotenv

from . import __version__
from .artifact import load_artifact
from .chain import DEFAULT_RPC_TIMEOUT, connect, load_account
from .config import PRIVATE_KEY_VAR, ListContext, NewContext, list_context, new_context
from .content_store import IpfsClient
from .daemon import local_ipfs_daemon
from .deployer import DEFAULT_DESCRIPTION, DEFAULT_NAME, DeploymentResult, deploy_contract
from .errors import DaoWizError
from .payload import publish_metadata
from .scanner import DEFAULT_MAX_CONCURRENCY, MATCH_EXACT, MATCH_PREFIX, ProvenanceScanner

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


async def run_new(ctx: NewContext, ipfs_uri: str) -> DeploymentResult:
    """Publishes the DAO metadata, then deploys the DAO pointing at it"""
    artifact = load_artifact(ctx.contracts_dir)
    # Fail before uploading anything if the artifact cannot be deployed
    artifact.creation_code()

    store = IpfsClient(ipfs_uri, timeout=ctx.rpc_timeout)
    w3 = connect(ctx.eth_uri, ctx.rpc_timeout)
    try:
        logger.debug("Deploying metadata to IPFS")
        metadata_root = await publish_metadata(store, DEFAULT_NAME, DEFAULT_DESCRIPTION, ctx.modules)

        return await deploy_contract(
            w3,
            artifact,
            metadata_root,
            ctx.private_key,
            chain_id=ctx.chain_id,
            confirmations=ctx.confirmations,
        )
    finally:
        await w3.provider.disconnect()


async def run_list(ctx: ListContext) -> List[str]:
    """Addresses of the DAOs deployed by the configured account"""
    artifact = load_artifact(ctx.contracts_dir)
    bytecode = artifact.creation_bytes()

    w3 = connect(ctx.eth_uri, ctx.rpc_timeout)
    try:
        sender = load_account(w3, ctx.private_key).address
        scanner = ProvenanceScanner(
            w3,
            sender,
            bytecode,
            start_block=ctx.start_block,
            match=ctx.match,
            max_concurrency=ctx.max_concurrency,
        )
        return await scanner.scan()
    finally:
        await w3.provider.disconnect()


def cmd_new(args: argparse.Namespace) -> int:
    ctx = new_context(args)
    if not ctx.modules:
        logger.warning("No modules specified, deploying a DAO without payloads")

    with ExitStack() as stack:
        ipfs_uri = ctx.ipfs_uri or stack.enter_context(local_ipfs_daemon())
        result = asyncio.run(run_new(ctx, ipfs_uri))

    print(result.address)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    ctx = list_context(args)
    addresses = asyncio.run(run_list(ctx))

    # One address per line, nothing at all when none were found
    for address in addresses:
        print(address)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='daowiz',
        description="Deploys Vision Beacon DAOs and lists the ones already deployed.",
        epilog=f"The {PRIVATE_KEY_VAR} environment variable (required) holds the ethereum "
               "private key used for deploying the DAO.",
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('-v', '--verbose', action='store_true', help="log debug output to stderr")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--eth-rpc-uri', help="http url of an EVM-compatible node (env ETH_RPC_URI)")
    common.add_argument('--contracts-dir',
                        help="directory containing the built Beacon DAO contracts (env CONTRACTS_DIR)")
    common.add_argument('--rpc-timeout', type=float, default=DEFAULT_RPC_TIMEOUT,
                        help="seconds to wait for each RPC request")

    sub = parser.add_subparsers(dest='command', metavar='{new,list}')
    sub.required = True

    new = sub.add_parser('new', parents=[common], help="create a new Beacon DAO with the specified modules")
    new.add_argument('--eth-chain-id', help="chain id to sign for (env ETH_CHAIN_ID), read from the node if omitted")
    new.add_argument('--ipfs-rpc-uri',
                     help="http url of an IPFS node for the DAO metadata (env IPFS_RPC_URI), "
                          "a local ipfs daemon is started if omitted")
    new.add_argument('--confirmations', help="blocks to wait for after deployment (env DAOWIZ_CONFIRMATIONS)")
    new.add_argument('modules', nargs='*', metavar='FILE', help="module files: a_bg.wasm a.js b_bg.wasm b.js ...")
    new.set_defaults(func=cmd_new)

    ls = sub.add_parser('list', parents=[common], help="list the Beacon DAOs deployed by the account")
    ls.add_argument('--from-block', type=int, default=0, help="lowest block to scan")
    ls.add_argument('--match-prefix', dest='match', action='store_const', const=MATCH_PREFIX, default=MATCH_EXACT,
                    help="accept creation inputs that start with the contract bytecode")
    ls.add_argument('--max-concurrency', type=int, default=DEFAULT_MAX_CONCURRENCY,
                    help="receipts fetched at once within a block")
    ls.set_defaults(func=cmd_list)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    level_name = os.getenv('DAOWIZ_LOG_LEVEL', 'WARNING').upper()
    # getLevelName maps registered names to their number
    level = logging.DEBUG if args.verbose else logging.getLevelName(level_name)
    unknown_level = not isinstance(level, int)
    if unknown_level:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[logging.StreamHandler()])
    if unknown_level:
        logger.warning(f"Unknown log level {level_name!r} in DAOWIZ_LOG_LEVEL, using WARNING")

    try:
        return args.func(args)
    except DaoWizError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
