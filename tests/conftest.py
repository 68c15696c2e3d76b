"""Shared test fixtures.

The network is replaced by FakeChainClient, an in-memory implementation of
the ChainClient contract that records every call. Broadcasts confirm
immediately unless ``auto_confirm`` is off, in which case the test decides
when (and which) attempt gets mined.
"""
from __future__ import annotations

import asyncio
from typing import Any

import pytest

from txmanager.config import TxManagerConfig
from txmanager.errors import TransactionRevertedError
from txmanager.manager import TxManager

SENDER = "0x1111111111111111111111111111111111111111"
RECIPIENT = "0x2222222222222222222222222222222222222222"
GOLD_TOKEN_ADDRESS = "0x4711471147114711471147114711471147114711"


class FakeSentTransaction:
    def __init__(self, tx_hash: str, params: dict[str, Any]):
        self.hash = tx_hash
        self.params = params
        self._receipt: asyncio.Future = asyncio.get_running_loop().create_future()

    def confirm(self, **fields: Any) -> dict[str, Any]:
        receipt = {"transactionHash": self.hash, "status": 1, "blockNumber": 100, **fields}
        self._receipt.set_result(receipt)
        return receipt

    def revert(self) -> dict[str, Any]:
        receipt = {"transactionHash": self.hash, "status": 0, "blockNumber": 100}
        self._receipt.set_exception(TransactionRevertedError(self.hash, receipt))
        return receipt

    def fail(self, exc: Exception) -> None:
        self._receipt.set_exception(exc)

    async def wait_receipt(self) -> dict[str, Any]:
        return await self._receipt


class FakeChainClient:
    def __init__(
        self,
        *,
        nonce: int = 7,
        chain_id: int = 42220,
        block_gas_limit: int = 20_000_000,
        estimate: int = 50_000,
        gas_price_minimum: int = 5_000_000_000,
        auto_confirm: bool = True,
    ):
        self.address = SENDER
        self.nonce = nonce
        self.chain_id = chain_id
        self.block_gas_limit = block_gas_limit
        self.estimate = estimate
        self.gas_price_minimum = gas_price_minimum
        self.auto_confirm = auto_confirm
        self.hashes: list[str] = []
        self.calls: list[tuple[str, Any]] = []
        self.sent: list[FakeSentTransaction] = []
        self.estimate_error: Exception | None = None
        self.broadcast_error: Exception | None = None
        # When set, estimate_gas blocks until the event is set
        self.estimate_started = asyncio.Event()
        self.estimate_release: asyncio.Event | None = None
        # Same for sign_and_send
        self.broadcast_started = asyncio.Event()
        self.broadcast_release: asyncio.Event | None = None
        self.closed = False

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def sent_params(self) -> list[dict[str, Any]]:
        return [s.params for s in self.sent]

    async def estimate_gas(self, params):
        self.calls.append(("estimate_gas", dict(params)))
        self.estimate_started.set()
        if self.estimate_release is not None:
            await self.estimate_release.wait()
        if self.estimate_error is not None:
            raise self.estimate_error
        return self.estimate

    async def get_block(self, block_identifier="latest"):
        self.calls.append(("get_block", block_identifier))
        return {"number": 99, "gasLimit": self.block_gas_limit}

    async def get_chain_id(self):
        self.calls.append(("get_chain_id", None))
        return self.chain_id

    async def get_transaction_count(self, address):
        self.calls.append(("get_transaction_count", address))
        return self.nonce

    async def address_for(self, contract_name):
        self.calls.append(("address_for", contract_name))
        return GOLD_TOKEN_ADDRESS

    async def get_gas_price_minimum(self, token_address):
        self.calls.append(("get_gas_price_minimum", token_address))
        return self.gas_price_minimum

    async def sign_and_send(self, params):
        self.calls.append(("sign_and_send", dict(params)))
        self.broadcast_started.set()
        if self.broadcast_release is not None:
            await self.broadcast_release.wait()
        if self.broadcast_error is not None:
            raise self.broadcast_error
        tx_hash = self.hashes.pop(0) if self.hashes else f"0x{len(self.sent) + 1:064x}"
        sent = FakeSentTransaction(tx_hash, dict(params))
        self.sent.append(sent)
        if self.auto_confirm:
            sent.confirm()
        return sent

    async def close(self):
        self.closed = True


async def wait_for_broadcasts(chain: FakeChainClient, count: int) -> None:
    """Let the loop run until ``count`` transactions were broadcast."""
    for _ in range(1000):
        if len(chain.sent) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} broadcasts, saw {len(chain.sent)}")


@pytest.fixture
def chain() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture
def config() -> TxManagerConfig:
    return TxManagerConfig(
        gas_limit_multiplier=1.2,
        max_gas_price=1000,
        min_gwei_bump=1,
        gas_bump_percentage=10,
    )


@pytest.fixture
def manager(chain, config) -> TxManager:
    return TxManager(chain, config)
