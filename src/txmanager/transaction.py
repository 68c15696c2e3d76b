"""Lifecycle of one logical transaction: prepare, submit, replace, cancel.

send() runs prepare + submit + nonce advance while holding the manager's
gate. replace(), cancel() and bump() deliberately do NOT take the gate: they
reuse the nonce already assigned and must be able to overtake senders queued
behind a stuck transaction.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from web3 import Web3
from web3.types import TxReceipt

from txmanager.chain.base import GOLD_TOKEN, SentTransaction
from txmanager.errors import (
    AlreadyConfirmedError,
    AlreadyExecutedError,
    TransactionNotPreparedError,
    TransactionRevertedError,
)
from txmanager.events import ProgressStream, SendHandle, TransactionHashEvent
from txmanager.gas import apply_wiggle, block_gas_limit_from, bump_gas_price, compute_gas_limit
from txmanager.monitoring.metrics import (
    gas_bump_total,
    tx_broadcast_total,
    tx_confirmed_total,
    tx_failed_total,
)
from txmanager.schemas import TransactionRequest

if TYPE_CHECKING:
    from txmanager.manager import TxManager

logger = logging.getLogger(__name__)


class TxState(str, Enum):
    CREATED = "created"
    PREPARING = "preparing"
    SUBMITTED = "submitted"
    SUPERSEDED = "superseded"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class Transaction:
    """One logical transaction from the manager's account.

    Every broadcast (the original and each replacement) shares one nonce and
    is recorded in ``hashes``. A receipt for any of them confirms the
    transaction, since an older attempt can still be mined after a replace.
    """

    def __init__(self, request: TransactionRequest, manager: TxManager):
        self._manager = manager
        self._client = manager.client
        self._config = manager.config
        self.request = request.with_updates(from_address=manager.address)
        self.executed = False
        self.state = TxState.CREATED
        self.hashes: list[str] = []
        self.receipt: TxReceipt | None = None
        self.confirmed_hash: str | None = None
        self.submit_timestamp: float | None = None
        self._events = ProgressStream()
        # Set once send() has prepared and tried its first broadcast
        self._attempted = asyncio.Event()
        self._confirmation: asyncio.Future | None = None
        self._watchers: set[asyncio.Task] = set()

    @property
    def superseded_hashes(self) -> list[str]:
        return self.hashes[:-1]

    @property
    def can_bump(self) -> bool:
        """True while the pending gas price is below the configured maximum."""
        price = self.request.gas_price
        return price is not None and price < self._config.max_gas_price_wei

    # ── Public API ──

    def send(self) -> SendHandle:
        """Submit the transaction to the network.

        Must be called from a running event loop, and only once: a second call
        raises AlreadyExecutedError without touching any state. The returned
        handle carries the progress stream (one ``transactionHash`` event per
        broadcast) and a future resolving to the receipt.
        """
        if self.executed:
            raise AlreadyExecutedError()
        loop = asyncio.get_running_loop()
        self.executed = True
        result = loop.create_task(self._execute())
        return SendHandle(events=self._events, result=result)

    async def replace(
        self, fields: Mapping[str, Any] | None = None, /, **overrides: Any
    ) -> TxReceipt | None:
        """Replace the pending transaction with a new payload under the same nonce.

        Before send() this only swaps the payload. Afterwards the replacement
        keeps the original nonce, never offers less than the current gas price,
        is bumped by the escalation policy, and is broadcast. Returns the
        receipt once the transaction confirms; errors are raised here, not
        through send()'s result.
        """
        logger.info("Replacing current transaction", extra={"hashes": list(self.hashes)})
        request = TransactionRequest.from_fields({**(fields or {}), **overrides}, self._manager.address)
        if not self.executed:
            self.request = request
            return None

        await self._attempted.wait()
        self._check_replaceable()

        if request.gas_limit is None:
            estimate = await self._client.estimate_gas(request.to_tx_params())
            request = request.with_updates(
                gas_limit=compute_gas_limit(
                    estimate, self._config.gas_limit_multiplier, self._config.block_gas_limit
                )
            )
        # Keep our nonce; the manager's may have moved on already
        request = request.with_updates(
            nonce=self.request.nonce,
            chain_id=self.request.chain_id,
            gas_price=max(self.request.gas_price or 0, request.gas_price or 0),
        )
        bumped = self._bumped_gas_price(request.gas_price)
        if bumped is not None:
            request = request.with_updates(gas_price=bumped)
        return await self._resubmit(request, kind="replace")

    async def cancel(self) -> TxReceipt | None:
        """Replace with a zero-value transfer to ourselves to free the nonce."""
        logger.info("Canceling the transaction", extra={"hashes": list(self.hashes)})
        return await self.replace(
            to=self._manager.address,
            value=0,
            gas_limit=self._config.cancel_gas_limit,
        )

    async def bump(self) -> TxReceipt | None:
        """Resubmit the current payload at an escalated gas price.

        Returns None, without any network call, when the gas price is already
        at the maximum.
        """
        if not self.executed:
            raise TransactionNotPreparedError()
        await self._attempted.wait()
        self._check_replaceable()

        gas_price = self._bumped_gas_price(self.request.gas_price or 0)
        if gas_price is None:
            return None
        return await self._resubmit(self.request.with_updates(gas_price=gas_price), kind="bump")

    # ── Execution ──

    async def _execute(self) -> TxReceipt:
        nonces = self._manager.nonces
        stage = "prepare"
        try:
            async with nonces.gate():
                try:
                    await self._prepare()
                    stage = "submit"
                    confirmation = await self._broadcast(self.request, kind="send")
                finally:
                    self._attempted.set()
                stage = "confirm"
                try:
                    receipt = await asyncio.shield(confirmation)
                except TransactionRevertedError:
                    # Mined all the same, so the nonce is spent
                    nonces.advance_to(self.request.nonce + 1)
                    raise
                # A replace may have run meanwhile; advance past the nonce actually used
                nonces.advance_to(self.request.nonce + 1)
                return receipt
        except Exception as e:
            self.state = TxState.FAILED
            tx_failed_total.labels(stage=stage).inc()
            logger.warning(
                "Transaction failed",
                extra={"stage": stage, "nonce": self.request.nonce, "error": str(e)},
            )
            raise
        finally:
            self._events.close()

    async def _prepare(self) -> None:
        """Fill in gas limit, gas price, nonce and chain id."""
        self.state = TxState.PREPARING
        config = self._config
        request = self.request

        if config.block_gas_limit is None:
            latest = await self._client.get_block("latest")
            config.block_gas_limit = block_gas_limit_from(latest["gasLimit"])
            logger.info("Block gas limit discovered", extra={"block_gas_limit": config.block_gas_limit})

        if request.gas_limit is None or config.estimate_gas:
            estimate = await self._client.estimate_gas(request.to_tx_params())
            if request.gas_limit is None:
                request = request.with_updates(
                    gas_limit=compute_gas_limit(
                        estimate, config.gas_limit_multiplier, config.block_gas_limit
                    )
                )

        if request.gas_price is None:
            fast_gas_price = await self._get_gas_price(config.gas_price_wiggle)
            request = request.with_updates(gas_price=min(fast_gas_price, config.max_gas_price_wei))

        nonce = await self._manager.nonces.ensure()
        chain_id = await self._client.get_chain_id()
        self.request = request.with_updates(nonce=nonce, chain_id=chain_id)

    async def _get_gas_price(self, wiggle: float) -> int:
        """Oracle gas price: the on-chain minimum times ``wiggle``, in wei."""
        token_address = await self._client.address_for(GOLD_TOKEN)
        minimum = await self._client.get_gas_price_minimum(token_address)
        gas_price = apply_wiggle(minimum, wiggle)
        logger.info("Gas price (@%s) is now %s gwei", wiggle, Web3.from_wei(gas_price, "gwei"))
        return gas_price

    async def _resubmit(self, request: TransactionRequest, kind: str) -> TxReceipt:
        self._check_replaceable()
        previous = self.state
        self.state = TxState.SUPERSEDED
        try:
            confirmation = await self._broadcast(request, kind=kind)
        except Exception:
            if self.receipt is None:
                self.state = previous
            raise
        return await asyncio.shield(confirmation)

    async def _broadcast(self, request: TransactionRequest, kind: str) -> asyncio.Future:
        sent = await self._client.sign_and_send(request.to_tx_params())
        self.hashes.append(sent.hash)
        tx_broadcast_total.labels(kind=kind).inc()
        if self.receipt is not None:
            # An earlier attempt was mined while this one was in flight
            logger.info(
                "Broadcasted transaction %s after %s was mined",
                sent.hash,
                self.confirmed_hash,
                extra={"nonce": request.nonce, "kind": kind},
            )
            return self._confirmation

        self.submit_timestamp = time.time()
        self.request = request
        self.state = TxState.SUBMITTED

        self._events.publish(TransactionHashEvent(sent.hash, request.nonce, request.gas_price))
        logger.info(
            "Broadcasted transaction %s",
            sent.hash,
            extra={"nonce": request.nonce, "gas_price": request.gas_price, "kind": kind},
        )
        return self._watch(sent)

    # ── Confirmation ──

    def _watch(self, sent: SentTransaction) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        if self._confirmation is None or self._confirmation.done():
            self._confirmation = loop.create_future()
        task = loop.create_task(self._wait_receipt(sent))
        self._watchers.add(task)
        task.add_done_callback(self._watchers.discard)
        return self._confirmation

    async def _wait_receipt(self, sent: SentTransaction) -> None:
        try:
            receipt = await sent.wait_receipt()
        except TransactionRevertedError as e:
            # Whichever attempt reverted, the nonce is used up
            self._settle(sent.hash, e.receipt, error=e)
            return
        except Exception as e:
            current = asyncio.current_task()
            if any(not task.done() for task in self._watchers if task is not current):
                # Another attempt under this nonce may still be mined
                logger.info("Stopped watching transaction %s: %s", sent.hash, e)
                return
            if self._confirmation is not None and not self._confirmation.done():
                self.state = TxState.FAILED
                self._confirmation.set_exception(e)
            return
        self._settle(sent.hash, receipt)

    def _settle(self, tx_hash: str, receipt: TxReceipt, error: Exception | None = None) -> None:
        """Record the mined attempt and resolve the shared confirmation."""
        if self._confirmation is None or self._confirmation.done():
            return
        self.receipt = receipt
        self.confirmed_hash = tx_hash
        if error is not None:
            self.state = TxState.FAILED
            self._confirmation.set_exception(error)
        else:
            self.state = TxState.CONFIRMED
            tx_confirmed_total.inc()
            logger.info("Transaction confirmed", extra={"hash": tx_hash, "nonce": self.request.nonce})
            self._confirmation.set_result(receipt)

        current = asyncio.current_task()
        for task in list(self._watchers):
            if task is not current:
                task.cancel()

    # ── Helpers ──

    def _check_replaceable(self) -> None:
        if self.receipt is not None:
            raise AlreadyConfirmedError(self.confirmed_hash)
        if self.request.nonce is None:
            raise TransactionNotPreparedError()

    def _bumped_gas_price(self, gas_price: int) -> int | None:
        config = self._config
        new_gas_price = bump_gas_price(
            gas_price,
            config.min_gwei_bump_wei,
            config.gas_bump_percentage,
            config.max_gas_price_wei,
        )
        if new_gas_price is None:
            gas_bump_total.labels(result="at_max").inc()
            logger.info("Already at max gas price, not bumping", extra={"gas_price": gas_price})
            return None
        gas_bump_total.labels(result="bumped").inc()
        logger.info("Increasing gas price to %s gwei", Web3.from_wei(new_gas_price, "gwei"))
        return new_gas_price
