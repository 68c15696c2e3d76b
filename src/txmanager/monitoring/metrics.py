from __future__ import annotations

from prometheus_client import Counter, Histogram

# Submission metrics
tx_broadcast_total = Counter(
    "txmanager_tx_broadcast_total", "Transactions broadcast", ["kind"]
)
tx_confirmed_total = Counter("txmanager_tx_confirmed_total", "Transactions confirmed")
tx_failed_total = Counter("txmanager_tx_failed_total", "Transactions failed", ["stage"])

# Gas escalation metrics
gas_bump_total = Counter("txmanager_gas_bump_total", "Gas price escalations", ["result"])

# Nonce gate metrics
gate_wait_seconds = Histogram(
    "txmanager_gate_wait_seconds", "Time spent waiting for the account nonce gate",
    buckets=[0.01, 0.1, 1, 5, 15, 60, 300],
)
