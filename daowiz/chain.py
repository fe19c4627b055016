import asyncio
import logging
from typing import Any, Awaitable, TypeVar

import aiohttp
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from .errors import NetworkError, SigningError

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_RPC_TIMEOUT = 30

# Failures of an RPC round trip, whether transport or node side
RPC_ERRORS = (Web3Exception, aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError)


def connect(eth_uri: str, timeout: float = DEFAULT_RPC_TIMEOUT) -> AsyncWeb3:
    """Creates an async web3 client for the node at eth_uri"""
    provider = AsyncWeb3.AsyncHTTPProvider(
        eth_uri,
        request_kwargs={'timeout': aiohttp.ClientTimeout(total=timeout)},
    )
    logger.debug(f"Using web3 API at {eth_uri}")
    return AsyncWeb3(provider)


async def rpc(call: Awaitable[T], what: str) -> T:
    """Awaits an RPC call, converting its failure into a NetworkError."""
    try:
        return await call
    except RPC_ERRORS as e:
        raise NetworkError(f"{what} failed", e) from e


def load_account(w3: AsyncWeb3, private_key: str) -> Any:
    """Returns the local signing account for private_key"""
    try:
        return w3.eth.account.from_key(private_key)
    except (ValueError, TypeError):
        # The key itself is not echoed back
        raise SigningError("the private key is invalid") from None
