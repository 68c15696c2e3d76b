from __future__ import annotations

from typing import Any


class TxManagerError(Exception):
    """Base class for transaction manager errors."""


class AlreadyExecutedError(TxManagerError):
    """Raised when send() is called a second time on one Transaction."""

    def __init__(self) -> None:
        super().__init__("The transaction was already executed")


class AlreadyConfirmedError(TxManagerError):
    """Raised when replacing a transaction whose receipt was already observed."""

    def __init__(self, tx_hash: str | None) -> None:
        self.tx_hash = tx_hash
        super().__init__(f"Transaction {tx_hash} is already confirmed")


class TransactionNotPreparedError(TxManagerError):
    """Raised when bumping or replacing a transaction that has no nonce on the network."""

    def __init__(self) -> None:
        super().__init__("Transaction has no assigned nonce, nothing to replace")


class ChainError(TxManagerError):
    """A call to the network failed."""


class EstimationError(ChainError):
    """Gas estimation, block, nonce, chain id or gas price oracle query failed."""


class BroadcastError(ChainError):
    """Signing or submitting the transaction failed."""


class ConfirmationError(ChainError):
    """Waiting for the transaction receipt failed."""


class TransactionRevertedError(ConfirmationError):
    """Transaction was mined with status=0."""

    def __init__(self, tx_hash: str, receipt: Any) -> None:
        self.tx_hash = tx_hash
        self.receipt = receipt
        super().__init__(f"Transaction {tx_hash} reverted")
