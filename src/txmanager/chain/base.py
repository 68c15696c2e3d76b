"""What the transaction manager needs from the network.

``Web3ChainClient`` is the production implementation; tests use an
in-memory fake.
"""
from __future__ import annotations

from typing import Any, Protocol

from web3.types import TxParams, TxReceipt

# Core contract names resolved through the Registry
GOLD_TOKEN = "GoldToken"
GAS_PRICE_MINIMUM = "GasPriceMinimum"


class SentTransaction(Protocol):
    hash: str

    async def wait_receipt(self) -> TxReceipt:
        """Suspend until the transaction is mined. No timeout."""
        ...


class ChainClient(Protocol):
    @property
    def address(self) -> str: ...

    async def estimate_gas(self, params: TxParams) -> int: ...

    async def get_block(self, block_identifier: str = "latest") -> Any: ...

    async def get_chain_id(self) -> int: ...

    async def get_transaction_count(self, address: str) -> int:
        """Mined transaction count for ``address``, ignoring pending ones."""
        ...

    async def address_for(self, contract_name: str) -> str: ...

    async def get_gas_price_minimum(self, token_address: str) -> int: ...

    async def sign_and_send(self, params: TxParams) -> SentTransaction: ...

    async def close(self) -> None: ...
