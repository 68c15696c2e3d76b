from __future__ import annotations

from txmanager.config import TxManagerConfig
from txmanager.errors import (
    AlreadyConfirmedError,
    AlreadyExecutedError,
    BroadcastError,
    ChainError,
    ConfirmationError,
    EstimationError,
    TransactionNotPreparedError,
    TransactionRevertedError,
    TxManagerError,
)
from txmanager.events import ProgressStream, SendHandle, TransactionHashEvent
from txmanager.manager import TxManager
from txmanager.schemas import TransactionRequest
from txmanager.transaction import Transaction, TxState
