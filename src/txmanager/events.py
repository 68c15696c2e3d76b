"""Progress notifications for Transaction.send()."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass

TRANSACTION_HASH = "transactionHash"

_CLOSED = object()


@dataclass(frozen=True)
class TransactionHashEvent:
    """Emitted once per successful broadcast (original and each replacement)."""

    hash: str
    nonce: int | None
    gas_price: int | None
    kind: str = TRANSACTION_HASH


class ProgressStream:
    """Finite, in-order stream of progress events for one send().

    Iterate with ``async for``; iteration ends once send()'s execution has
    finished. Events published after that are dropped: a replace() that
    revives the nonce after send() failed at broadcast reports its hash
    through ``Transaction.hashes`` only.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._exhausted = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: TransactionHashEvent) -> bool:
        if self._closed:
            return False
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> ProgressStream:
        return self

    async def __anext__(self) -> TransactionHashEvent:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._exhausted = True
            raise StopAsyncIteration
        return item


@dataclass(frozen=True)
class SendHandle:
    """What send() returns: the progress stream and the final-outcome future."""

    events: ProgressStream
    result: asyncio.Future
