"""
Deploys an instance of the Beacon DAO (the Idea contract).

The creation transaction is signed locally and sent with fixed gas settings,
then followed until it is buried under the requested number of blocks.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted, Web3Exception

from .artifact import DeployableArtifact
from .chain import RPC_ERRORS, load_account, rpc
from .errors import ConfirmationTimeoutError, ContractError, InvalidInputError, NetworkError, SigningError
from .payload import ContentRef

logger = logging.getLogger(__name__)

# Details of the Beacon DAO
DEFAULT_NAME = "Vision DAO"
DEFAULT_DESCRIPTION = "The Vision DAO is a DAO that governs the Beacon DAO layer of the Vision ecosystem."
DEFAULT_SYMBOL = "VIS"
DEFAULT_SUPPLY = 1_000_000 * 10**18

DEFAULT_GAS = 4_000_000
DEFAULT_GAS_PRICE = 2_000_000_000
DEFAULT_CONFIRMATIONS = 2
DEFAULT_TIMEOUT = 300
POLL_INTERVAL = 1.0


@dataclass(frozen=True)
class DeploymentResult:
    address: str
    transaction_hash: str
    block_number: int
    metadata_root: str


def constructor_args(metadata_root: ContentRef):
    """Positional arguments of the Idea constructor"""
    return (DEFAULT_NAME, DEFAULT_SYMBOL, DEFAULT_SUPPLY, str(metadata_root))


async def wait_for_confirmations(
    w3: AsyncWeb3,
    block_number: int,
    confirmations: int,
    timeout: float = DEFAULT_TIMEOUT,
    poll_interval: float = POLL_INTERVAL,
) -> int:
    """
    Waits until `confirmations` blocks are mined on top of block_number.

    Returns the chain head observed when the threshold was reached.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    while True:
        head = await rpc(w3.eth.block_number, "reading block number")
        if head - block_number >= confirmations:
            return head
        if loop.time() >= deadline:
            raise ConfirmationTimeoutError(
                f"block {block_number} reached {head - block_number} of {confirmations} confirmations in {timeout}s"
            )
        await asyncio.sleep(poll_interval)


async def deploy_contract(
    w3: AsyncWeb3,
    artifact: DeployableArtifact,
    metadata_root: ContentRef,
    private_key: str,
    chain_id: Optional[int] = None,
    confirmations: int = DEFAULT_CONFIRMATIONS,
    gas: int = DEFAULT_GAS,
    gas_price: int = DEFAULT_GAS_PRICE,
    timeout: float = DEFAULT_TIMEOUT,
    poll_interval: float = POLL_INTERVAL,
) -> DeploymentResult:
    """
    Deploys the Idea contract with metadata_root as its metadata CID.

    Args:
        w3: Client connected to the target chain
        artifact: Compiled Idea contract
        metadata_root: CID of the DAO metadata document
        private_key: Key of the deploying account
        chain_id: Chain to sign for, read from the node when omitted
        confirmations: Blocks to wait for on top of the deployment block
        timeout: Seconds to wait for the receipt, and again for confirmations

    Returns:
        The address of the deployed contract along with its transaction
    """
    # Validated first so that a malformed artifact never reaches the chain
    bytecode = artifact.creation_code()
    if confirmations < 0:
        raise InvalidInputError("confirmations must not be negative")

    account = load_account(w3, private_key)

    try:
        contract = w3.eth.contract(abi=artifact.abi, bytecode=bytecode)
        constructor = contract.constructor(*constructor_args(metadata_root))
    except (Web3Exception, TypeError, ValueError) as e:
        raise ContractError("could not encode the Idea constructor", e) from e

    if chain_id is None:
        chain_id = await rpc(w3.eth.chain_id, "reading chain id")
    nonce = await rpc(w3.eth.get_transaction_count(account.address, 'pending'), "reading nonce")

    try:
        tx = await constructor.build_transaction({
            'from': account.address,
            'nonce': nonce,
            'gas': gas,
            'gasPrice': gas_price,
            'chainId': chain_id,
        })
    except (Web3Exception, TypeError, ValueError) as e:
        raise ContractError("could not build the deployment transaction", e) from e

    try:
        signed_tx = account.sign_transaction(tx)
    except (ValueError, TypeError) as e:
        raise SigningError("could not sign the deployment transaction", e) from e

    tx_hash = await rpc(w3.eth.send_raw_transaction(signed_tx.raw_transaction), "sending deployment transaction")
    tx_hex = AsyncWeb3.to_hex(tx_hash)
    logger.info(f"Deployment transaction sent: {tx_hex}")

    try:
        receipt = await w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout, poll_latency=poll_interval)
    except TimeExhausted as e:
        raise ConfirmationTimeoutError(f"transaction {tx_hex} was not mined in {timeout}s", e) from e
    except RPC_ERRORS as e:
        raise NetworkError("waiting for deployment receipt failed", e) from e

    if receipt['status'] != 1:
        raise ContractError(f"deployment transaction {tx_hex} reverted")
    address = receipt.get('contractAddress')
    if not address:
        raise ContractError(f"deployment transaction {tx_hex} created no contract")

    logger.debug(f"Deployment mined in block {receipt['blockNumber']}, waiting for {confirmations} confirmations")
    await wait_for_confirmations(w3, receipt['blockNumber'], confirmations, timeout, poll_interval)

    logger.info(f"Deployed Beacon DAO at {address}")
    return DeploymentResult(
        address=address,
        transaction_hash=tx_hex,
        block_number=receipt['blockNumber'],
        metadata_root=str(metadata_root),
    )
