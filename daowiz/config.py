"""
Command configuration.

Values come from command-line flags first, then from the environment (a .env
file in the working directory is loaded by the CLI). The private key is only
read from the environment so it never shows up in process arguments.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .chain import DEFAULT_RPC_TIMEOUT
from .deployer import DEFAULT_CONFIRMATIONS
from .errors import ConfigurationError
from .payload import ModulePayload
from .scanner import DEFAULT_MAX_CONCURRENCY, MATCH_EXACT

logger = logging.getLogger(__name__)

PRIVATE_KEY_VAR = "DEPLOYMENT_PRIVATE_KEY"


@dataclass
class NewContext:
    """Configuration of the `new` command"""
    private_key: str
    eth_uri: str
    contracts_dir: str
    chain_id: Optional[int] = None
    ipfs_uri: Optional[str] = None
    confirmations: int = DEFAULT_CONFIRMATIONS
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT
    modules: List[ModulePayload] = field(default_factory=list)


@dataclass
class ListContext:
    """Configuration of the `list` command"""
    private_key: str
    eth_uri: str
    contracts_dir: str
    start_block: int = 0
    match: str = MATCH_EXACT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT


def _module_stem(path: str) -> str:
    stem = path
    for suffix in ('.wasm', '.js', '_bg'):
        if stem.endswith(suffix):
            stem = stem[:-len(suffix)]
    return stem


def collect_modules(paths: Sequence[str]) -> List[ModulePayload]:
    """
    Pairs module files into payloads.

    `foo_bg.wasm` (or `foo.wasm`) and `foo.js` form one module. Files that are
    neither .wasm nor .js are ignored, and incomplete pairs are skipped.
    """
    slots: Dict[str, Dict[str, str]] = {}
    for path in paths:
        if path.endswith('.wasm'):
            slots.setdefault(_module_stem(path), {})['module'] = path
        elif path.endswith('.js'):
            slots.setdefault(_module_stem(path), {})['loader'] = path
        else:
            logger.warning(f"Ignoring {path}: not a .wasm module or .js loader")

    modules = []
    for stem, slot in slots.items():
        if 'loader' not in slot or 'module' not in slot:
            logger.warning(f"Skipping module {stem}: needs both a .js loader and a .wasm module")
            continue
        modules.append(ModulePayload(loader=slot['loader'], module=slot['module'], name=os.path.basename(stem)))
    return modules


def _required(value: Optional[str], flag: str, env_var: str) -> str:
    value = value or os.getenv(env_var)
    if not value:
        raise ConfigurationError(f"command requires {flag} or the {env_var} environment variable")
    return value


def _int_setting(value, flag: str, env_var: str, default: Optional[int]) -> Optional[int]:
    if value is None:
        value = os.getenv(env_var)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{flag} must be an integer", e) from e


def private_key_from_env() -> str:
    private_key = os.getenv(PRIVATE_KEY_VAR)
    if not private_key:
        raise ConfigurationError(f"no {PRIVATE_KEY_VAR} environment variable provided")
    return private_key


def new_context(args) -> NewContext:
    """Builds the `new` command configuration from parsed arguments"""
    confirmations = _int_setting(args.confirmations, '--confirmations', 'DAOWIZ_CONFIRMATIONS', DEFAULT_CONFIRMATIONS)
    if confirmations < 0:
        raise ConfigurationError("--confirmations must not be negative")

    return NewContext(
        private_key=private_key_from_env(),
        eth_uri=_required(args.eth_rpc_uri, '--eth-rpc-uri', 'ETH_RPC_URI'),
        contracts_dir=_required(args.contracts_dir, '--contracts-dir', 'CONTRACTS_DIR'),
        chain_id=_int_setting(args.eth_chain_id, '--eth-chain-id', 'ETH_CHAIN_ID', None),
        ipfs_uri=args.ipfs_rpc_uri or os.getenv('IPFS_RPC_URI') or None,
        confirmations=confirmations,
        rpc_timeout=args.rpc_timeout,
        modules=collect_modules(args.modules),
    )


def list_context(args) -> ListContext:
    """Builds the `list` command configuration from parsed arguments"""
    if args.from_block < 0:
        raise ConfigurationError("--from-block must not be negative")
    if args.max_concurrency < 1:
        raise ConfigurationError("--max-concurrency must be at least 1")

    return ListContext(
        private_key=private_key_from_env(),
        eth_uri=_required(args.eth_rpc_uri, '--eth-rpc-uri', 'ETH_RPC_URI'),
        contracts_dir=_required(args.contracts_dir, '--contracts-dir', 'CONTRACTS_DIR'),
        start_block=args.from_block,
        match=args.match,
        max_concurrency=args.max_concurrency,
        rpc_timeout=args.rpc_timeout,
    )
