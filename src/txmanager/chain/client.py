"""Web3 implementation of the ChainClient contract.

Signs locally with the configured account and submits raw transactions.
Gas price minimums come from the Celo GasPriceMinimum contract, located
through the core contract Registry.
"""
from __future__ import annotations

import logging
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TimeExhausted
from web3.types import TxParams, TxReceipt

from txmanager.chain.abi import GAS_PRICE_MINIMUM_ABI, REGISTRY_ABI
from txmanager.chain.base import GAS_PRICE_MINIMUM
from txmanager.errors import (
    BroadcastError,
    ConfirmationError,
    EstimationError,
    TransactionRevertedError,
)

logger = logging.getLogger(__name__)

REGISTRY_ADDRESS = "0x000000000000000000000000000000000000ce10"


class Web3SentTransaction:
    """A broadcast transaction; wait_receipt() blocks until it is mined."""

    def __init__(self, w3: AsyncWeb3, tx_hash: str, poll_interval: float):
        self._w3 = w3
        self.hash = tx_hash
        self._poll_interval = poll_interval

    async def wait_receipt(self) -> TxReceipt:
        # Unbounded; callers bump or cancel stuck transactions
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                self.hash, timeout=None, poll_latency=self._poll_interval
            )
        except TimeExhausted as e:
            raise ConfirmationError(f"Timed out waiting for {self.hash}") from e
        except Exception as e:
            raise ConfirmationError(f"Receipt lookup for {self.hash} failed: {e}") from e

        if receipt["status"] != 1:
            raise TransactionRevertedError(self.hash, receipt)
        return receipt


class Web3ChainClient:
    def __init__(self, w3: AsyncWeb3, account: LocalAccount, poll_interval: float = 1.0):
        self._w3 = w3
        self._account = account
        self._poll_interval = poll_interval
        self._registry = w3.eth.contract(
            address=Web3.to_checksum_address(REGISTRY_ADDRESS), abi=REGISTRY_ABI
        )
        self._addresses: dict[str, str] = {}

    @classmethod
    def from_url(
        cls, rpc_url: str, private_key: str, poll_interval: float = 1.0
    ) -> Web3ChainClient:
        client = cls(
            AsyncWeb3(AsyncHTTPProvider(rpc_url)),
            Account.from_key(private_key),
            poll_interval=poll_interval,
        )
        logger.info(
            "Web3ChainClient initialized",
            extra={"rpc_url": rpc_url, "address": client.address},
        )
        return client

    @property
    def address(self) -> str:
        return self._account.address

    async def close(self) -> None:
        """Close the provider's HTTP session."""
        disconnect = getattr(self._w3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()

    # ── Reads ──

    async def estimate_gas(self, params: TxParams) -> int:
        try:
            return await self._w3.eth.estimate_gas(params)
        except Exception as e:
            raise EstimationError(f"Gas estimation failed: {e}") from e

    async def get_block(self, block_identifier: str = "latest") -> Any:
        try:
            return await self._w3.eth.get_block(block_identifier)
        except Exception as e:
            raise EstimationError(f"Fetching block {block_identifier} failed: {e}") from e

    async def get_chain_id(self) -> int:
        try:
            return await self._w3.eth.chain_id
        except Exception as e:
            raise EstimationError(f"Fetching chain id failed: {e}") from e

    async def get_transaction_count(self, address: str) -> int:
        # "latest" excludes transactions still sitting in the pool
        try:
            return await self._w3.eth.get_transaction_count(
                Web3.to_checksum_address(address), "latest"
            )
        except Exception as e:
            raise EstimationError(f"Fetching nonce for {address} failed: {e}") from e

    async def address_for(self, contract_name: str) -> str:
        """Resolve a core contract address through the Registry (cached)."""
        if contract_name not in self._addresses:
            try:
                address = await self._registry.functions.getAddressForString(
                    contract_name
                ).call()
            except Exception as e:
                raise EstimationError(f"Registry lookup for {contract_name} failed: {e}") from e
            self._addresses[contract_name] = Web3.to_checksum_address(address)
        return self._addresses[contract_name]

    async def get_gas_price_minimum(self, token_address: str) -> int:
        contract = self._w3.eth.contract(
            address=await self.address_for(GAS_PRICE_MINIMUM), abi=GAS_PRICE_MINIMUM_ABI
        )
        try:
            return await contract.functions.getGasPriceMinimum(
                Web3.to_checksum_address(token_address)
            ).call()
        except Exception as e:
            raise EstimationError(f"Gas price minimum lookup failed: {e}") from e

    # ── Writes ──

    async def sign_and_send(self, params: TxParams) -> Web3SentTransaction:
        unsigned = {k: v for k, v in params.items() if k != "from"}
        try:
            signed = self._account.sign_transaction(unsigned)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise BroadcastError(f"Broadcast failed (nonce {params.get('nonce')}): {e}") from e
        return Web3SentTransaction(self._w3, Web3.to_hex(tx_hash), self._poll_interval)
