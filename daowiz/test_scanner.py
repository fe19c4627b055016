#!/usr/bin/env python3
"""
Tests for the provenance scanner
Replays an in-memory chain whose receipt lookups complete in random order.
"""

import asyncio
import random
from types import SimpleNamespace

import pytest
from web3.exceptions import BlockNotFound

from daowiz.errors import NetworkError
from daowiz.scanner import MATCH_PREFIX, ProvenanceScanner

SENDER = "0x1111111111111111111111111111111111111111"
OTHER = "0x2222222222222222222222222222222222222222"
BYTECODE = bytes.fromhex('aabb')


def address(n):
    return "0x" + f"{n:040x}"


async def _value(v):
    return v


class FakeChain:
    """Blocks 0..head, each a list of (transaction, receipt) pairs"""

    def __init__(self, head, seed=None, missing=(), failing_blocks=(), failing_receipts=()):
        self.head = head
        self.blocks = {n: [] for n in range(head + 1)}
        self.receipts = {}
        self.random = random.Random(seed)
        self.missing = set(missing)
        self.failing_blocks = set(failing_blocks)
        self.failing_receipts = set(failing_receipts)
        self.visited = []
        self.in_flight = 0
        self.max_in_flight = 0

    def add_tx(self, number, sender, data, created=None):
        index = len(self.blocks[number])
        tx_hash = bytes([number, index]) + b'\x00' * 30
        self.blocks[number].append({
            'hash': tx_hash,
            'from': sender,
            'input': data,
            'transactionIndex': index,
            'blockNumber': number,
        })
        self.receipts[tx_hash] = {
            'transactionHash': tx_hash,
            'from': sender,
            'contractAddress': created,
            'blockNumber': number,
        }
        return tx_hash

    @property
    def block_number(self):
        return _value(self.head)

    async def get_block(self, number, full_transactions=False):
        assert full_transactions
        self.visited.append(number)
        if number in self.failing_blocks:
            raise ConnectionError("node unreachable")
        if number in self.missing:
            raise BlockNotFound(f"Block with id: {number} not found.")
        return {'number': number, 'transactions': list(self.blocks[number])}

    async def get_transaction_receipt(self, tx_hash):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.random.random() / 1000)
            if tx_hash in self.failing_receipts:
                raise ConnectionError("receipt lookup failed")
            return self.receipts[tx_hash]
        finally:
            self.in_flight -= 1


def scan(chain, sender=SENDER, bytecode=BYTECODE, **kwargs):
    scanner = ProvenanceScanner(SimpleNamespace(eth=chain), sender, bytecode, **kwargs)
    return asyncio.run(scanner.scan()), scanner


def reference_chain(seed=None):
    """Creations at heights 1, 3 and 7; only 1 and 7 are ours"""
    chain = FakeChain(head=9, seed=seed)
    chain.add_tx(0, OTHER, b'')
    chain.add_tx(1, SENDER, bytes.fromhex('aabb'), created=address(1))
    chain.add_tx(2, SENDER, bytes.fromhex('aabb'))
    chain.add_tx(3, OTHER, bytes.fromhex('ccdd'), created=address(3))
    chain.add_tx(7, OTHER, b'\x01')
    chain.add_tx(7, SENDER, bytes.fromhex('aabb'), created=address(7))
    return chain


class TestProvenanceScanner:
    """Test class for ProvenanceScanner"""

    def test_reference_scenario(self):
        """Only creations from the sender with the exact bytecode match"""
        result, scanner = scan(reference_chain())

        assert result == [address(1), address(7)]
        assert scanner.blocks_scanned == 10

    def test_single_match(self):
        chain = FakeChain(head=4)
        chain.add_tx(2, SENDER, BYTECODE, created=address(42))

        result, _ = scan(chain)

        assert result == [address(42)]

    def test_no_matches(self):
        chain = FakeChain(head=4)
        chain.add_tx(1, OTHER, BYTECODE, created=address(5))
        chain.add_tx(3, SENDER, bytes.fromhex('ccdd'), created=address(6))

        result, _ = scan(chain)

        assert result == []

    def test_empty_chain(self):
        result, scanner = scan(FakeChain(head=0))
        assert result == []
        assert scanner.blocks_scanned == 1

    def test_deterministic_across_runs(self):
        """Receipt completion order does not change the result"""
        results = [scan(reference_chain(seed=seed))[0] for seed in range(5)]
        assert all(r == [address(1), address(7)] for r in results)

    def test_visits_every_block_once(self):
        chain = FakeChain(head=12)

        scan(chain)

        assert chain.visited == list(range(12, -1, -1))

    def test_from_block(self):
        chain = reference_chain()

        result, _ = scan(chain, start_block=2)

        assert result == [address(7)]
        assert sorted(chain.visited) == list(range(2, 10))

    def test_sender_compared_case_insensitively(self):
        chain = FakeChain(head=1)
        checksummed = "0xAbCdEf0000000000000000000000000000000001"
        chain.add_tx(1, checksummed, BYTECODE, created=address(9))

        result, _ = scan(chain, sender=checksummed.lower())

        assert result == [address(9)]

    def test_exact_match_rejects_constructor_arguments(self):
        chain = FakeChain(head=1)
        chain.add_tx(1, SENDER, BYTECODE + b'\x00' * 32, created=address(3))

        assert scan(chain)[0] == []
        assert scan(chain, match=MATCH_PREFIX)[0] == [address(3)]

    def test_hex_string_input(self):
        chain = FakeChain(head=1)
        chain.add_tx(1, SENDER, '0xaabb', created=address(4))

        assert scan(chain)[0] == [address(4)]

    def test_same_block_ordered_by_index(self):
        chain = FakeChain(head=1, seed=3)
        for n in range(6):
            chain.add_tx(1, SENDER, BYTECODE, created=address(100 + n))

        result, _ = scan(chain)

        assert result == [address(100 + n) for n in range(6)]

    def test_bounded_receipt_fetches(self):
        chain = FakeChain(head=1, seed=1)
        for _ in range(10):
            chain.add_tx(1, OTHER, b'')

        scan(chain, max_concurrency=2)

        assert 1 <= chain.max_in_flight <= 2

    def test_block_failure_aborts(self):
        chain = reference_chain()
        chain.failing_blocks.add(4)

        with pytest.raises(NetworkError):
            scan(chain)

    def test_receipt_failure_aborts(self):
        chain = FakeChain(head=3)
        chain.add_tx(2, SENDER, BYTECODE, created=address(1))
        failing = chain.add_tx(2, OTHER, b'')
        chain.failing_receipts.add(failing)

        with pytest.raises(NetworkError):
            scan(chain)

    def test_missing_block_aborts(self):
        """A block the node does not know fails the scan instead of shortening it"""
        chain = reference_chain()
        chain.missing.add(5)

        with pytest.raises(NetworkError, match="block 5 is not available"):
            scan(chain)

    def test_invalid_arguments(self):
        chain = SimpleNamespace(eth=FakeChain(head=0))
        with pytest.raises(ValueError):
            ProvenanceScanner(chain, SENDER, BYTECODE, match='fuzzy')
        with pytest.raises(ValueError):
            ProvenanceScanner(chain, SENDER, BYTECODE, max_concurrency=0)
