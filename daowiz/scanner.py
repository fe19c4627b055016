"""
Recovers the Beacon DAO instances deployed by an account.

No index of deployments is kept. Instead every block from the chain head down
to the start block is replayed, and each contract creation sent by the
account whose input is the Idea creation bytecode is collected.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from web3 import AsyncWeb3
from web3.exceptions import BlockNotFound

from .aio import join_all
from .chain import RPC_ERRORS, rpc
from .errors import EncodingError, NetworkError

logger = logging.getLogger(__name__)

MATCH_EXACT = 'exact'
MATCH_PREFIX = 'prefix'
MATCH_MODES = (MATCH_EXACT, MATCH_PREFIX)

DEFAULT_MAX_CONCURRENCY = 16


@dataclass(frozen=True)
class ScanRecord:
    """A matching contract creation"""
    block_number: int
    transaction_index: int
    transaction_hash: str
    address: str


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return bytes.fromhex(value[2:] if value.startswith('0x') else value)
        except ValueError as e:
            raise EncodingError("transaction input is not valid hex", e) from e
    return b''


def _same_address(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


class ProvenanceScanner:
    """
    Finds contracts created by `sender` with `expected_bytecode`.

    Args:
        w3: Client connected to the chain to scan
        sender: Address of the deploying account
        expected_bytecode: Creation bytecode of the contract
        start_block: Lowest block to visit
        match: 'exact' compares the transaction input byte for byte,
            'prefix' accepts inputs that start with the bytecode
        max_concurrency: Receipts fetched at once within one block
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        sender: str,
        expected_bytecode: bytes,
        start_block: int = 0,
        match: str = MATCH_EXACT,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ):
        if match not in MATCH_MODES:
            raise ValueError(f"unknown match mode {match!r}")
        if start_block < 0:
            raise ValueError("start_block must not be negative")
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self.w3 = w3
        self.sender = sender
        self.expected_bytecode = bytes(expected_bytecode)
        self.start_block = start_block
        self.match = match
        self.max_concurrency = max_concurrency

        # Statistics
        self.blocks_scanned = 0
        self.transactions_checked = 0

    def input_matches(self, data: bytes) -> bool:
        if self.match == MATCH_PREFIX:
            return data.startswith(self.expected_bytecode)
        return data == self.expected_bytecode

    def is_match(self, tx: Any, receipt: Any) -> bool:
        """A creation transaction sent by sender with the expected input"""
        if not receipt.get('contractAddress'):
            return False
        if not _same_address(receipt.get('from'), self.sender):
            return False
        return self.input_matches(_as_bytes(tx.get('input')))

    async def _get_block(self, number: int) -> Any:
        try:
            return await self.w3.eth.get_block(number, full_transactions=True)
        except BlockNotFound as e:
            raise NetworkError(f"block {number} is not available", e) from e
        except RPC_ERRORS as e:
            raise NetworkError(f"fetching block {number} failed", e) from e

    async def _get_receipt(self, semaphore: asyncio.Semaphore, tx: Any) -> Any:
        async with semaphore:
            return await rpc(
                self.w3.eth.get_transaction_receipt(tx['hash']),
                f"fetching receipt of {AsyncWeb3.to_hex(tx['hash'])}",
            )

    async def scan_block(self, number: int) -> List[ScanRecord]:
        """Returns the matches in one block"""
        block = await self._get_block(number)

        # Hash-only transaction lists carry no input to compare
        txs = [tx for tx in block.get('transactions', []) if not isinstance(tx, (bytes, str))]
        if not txs:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)
        receipts = await join_all([self._get_receipt(semaphore, tx) for tx in txs])
        self.transactions_checked += len(txs)

        records = []
        for position, (tx, receipt) in enumerate(zip(txs, receipts)):
            if receipt is None or not self.is_match(tx, receipt):
                continue
            index = tx.get('transactionIndex')
            records.append(ScanRecord(
                block_number=number,
                transaction_index=position if index is None else index,
                transaction_hash=AsyncWeb3.to_hex(tx['hash']),
                address=receipt['contractAddress'],
            ))
        return records

    async def scan_records(self) -> List[ScanRecord]:
        """Visits every block in [start_block, head] once, head first."""
        head = await rpc(self.w3.eth.block_number, "reading block number")
        logger.info(f"Scanning blocks {head} down to {self.start_block} for deployments by {self.sender}")

        found: List[ScanRecord] = []
        for number in range(head, self.start_block - 1, -1):
            records = await self.scan_block(number)
            self.blocks_scanned += 1
            if records:
                logger.debug(f"Block {number}: {len(records)} deployments found")
            found.extend(records)

        found.sort(key=lambda r: (r.block_number, r.transaction_index))
        logger.info(f"Scanned {self.blocks_scanned} blocks and {self.transactions_checked} transactions, "
                    f"found {len(found)} deployments")
        return found

    async def scan(self) -> List[str]:
        """Addresses of the matching contracts, oldest first"""
        return [record.address for record in await self.scan_records()]
