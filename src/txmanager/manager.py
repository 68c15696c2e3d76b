from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from txmanager.chain.base import ChainClient
from txmanager.config import TxManagerConfig, settings
from txmanager.nonce_manager import NonceManager
from txmanager.schemas import TransactionRequest
from txmanager.transaction import Transaction

logger = logging.getLogger(__name__)


class TxManager:
    """Submits transactions for a single account, strictly in nonce order.

    Owns the account's nonce and the gate that serializes sends. Every
    Transaction it creates holds a reference back to it.
    """

    def __init__(self, client: ChainClient, config: TxManagerConfig | None = None):
        self.client = client
        self.config = config if config is not None else TxManagerConfig.from_settings()
        self.address = client.address
        self.nonces = NonceManager(client, client.address)

    @classmethod
    def from_settings(cls, **overrides: Any) -> TxManager:
        """Build a manager for ``settings.private_key`` talking to ``settings.rpc_url``."""
        from txmanager.chain.client import Web3ChainClient

        client = Web3ChainClient.from_url(
            settings.rpc_url,
            settings.private_key,
            poll_interval=settings.receipt_poll_interval,
        )
        return cls(client, TxManagerConfig.from_settings(**overrides))

    def create_transaction(
        self, request: TransactionRequest | Mapping[str, Any] | None = None, **fields: Any
    ) -> Transaction:
        """Bind a new Transaction to this manager. No network access."""
        if not isinstance(request, TransactionRequest):
            request = TransactionRequest.from_fields({**(request or {}), **fields}, self.address)
        elif fields:
            request = request.with_updates(**fields)
        return Transaction(request, self)

    async def close(self) -> None:
        await self.client.close()
