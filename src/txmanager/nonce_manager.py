"""Per-account nonce bookkeeping and the submission gate.

The network requires strictly sequential nonces. One asyncio.Lock (the gate)
serializes prepare + submit + nonce advance for every transaction of the
account, so concurrent sends map onto consecutive nonces with no gaps and no
collisions. Only the gate holder reads or advances the local nonce.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from txmanager.chain.base import ChainClient
from txmanager.monitoring.metrics import gate_wait_seconds

logger = logging.getLogger(__name__)


class NonceManager:
    def __init__(self, client: ChainClient, address: str):
        self._client = client
        self._address = address
        self._lock = asyncio.Lock()
        self._local_nonce: int | None = None

    @property
    def current(self) -> int | None:
        """Next nonce to assign, or None before first use."""
        return self._local_nonce

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def gate(self) -> AsyncIterator[None]:
        """Hold the account gate; released on every exit path."""
        start = time.monotonic()
        async with self._lock:
            gate_wait_seconds.observe(time.monotonic() - start)
            yield

    async def ensure(self) -> int:
        """Return the next nonce, fetching from chain on first call."""
        if self._local_nonce is None:
            self._local_nonce = await self._client.get_transaction_count(self._address)
            logger.info(
                "Nonce initialized from chain",
                extra={"address": self._address, "nonce": self._local_nonce},
            )
        return self._local_nonce

    def advance_to(self, nonce: int) -> None:
        logger.debug("Advancing nonce", extra={"address": self._address, "nonce": nonce})
        self._local_nonce = nonce

    def reset(self) -> None:
        """Forget the local nonce; the next ensure() re-fetches from chain."""
        self._local_nonce = None
