"""
Send a value transfer from the configured account and wait for it.

Usage:
  # Plain send:
  python scripts/send_tx.py --to 0x... --value-wei 1000

  # Bump the gas price every 60s until mined:
  python scripts/send_tx.py --to 0x... --value-wei 1000 --bump-after 60

  # Give up after 120s and cancel (zero-value self-transfer, same nonce):
  python scripts/send_tx.py --to 0x... --value-wei 1000 --cancel-after 120

Required env vars:
  RPC_URL     JSON-RPC endpoint
  PRIVATE_KEY Private key of the sending account
Gas policy env vars: GAS_LIMIT_MULTIPLIER, BLOCK_GAS_LIMIT, ESTIMATE_GAS,
MAX_GAS_PRICE, MIN_GWEI_BUMP, GAS_BUMP_PERCENTAGE.
"""
from __future__ import annotations

import argparse
import asyncio
import logging

from txmanager import Transaction, TxManager
from txmanager.monitoring.logging_config import setup_logging

logger = logging.getLogger("send_tx")


async def _report_hashes(tx_events) -> None:
    async for event in tx_events:
        print(f"  broadcast {event.hash} (nonce {event.nonce}, gas price {event.gas_price})")


async def _wait(
    tx: Transaction, result: asyncio.Future, bump_after: float | None, cancel_after: float | None
):
    """Caller-side stuck policy: the manager itself never times out."""
    resubmissions: list[asyncio.Task] = []
    try:
        if cancel_after is not None:
            done, _ = await asyncio.wait({result}, timeout=cancel_after)
            if not done:
                logger.warning("Not mined after %ss, cancelling", cancel_after)
                resubmissions.append(asyncio.create_task(tx.cancel()))
        elif bump_after is not None:
            while True:
                done, _ = await asyncio.wait({result}, timeout=bump_after)
                if done:
                    break
                if not tx.can_bump:
                    logger.warning("Already at max gas price, waiting")
                    continue
                resubmissions.append(asyncio.create_task(tx.bump()))
        return await result
    finally:
        for task in resubmissions:
            if not task.done():
                task.cancel()


async def main(args: argparse.Namespace) -> None:
    manager = TxManager.from_settings()
    try:
        tx = manager.create_transaction(to=args.to, value=args.value_wei, data=args.data)
        handle = tx.send()
        reporter = asyncio.create_task(_report_hashes(handle.events))

        receipt = await _wait(tx, handle.result, args.bump_after, args.cancel_after)
        await reporter
        print(f"Mined in block {receipt['blockNumber']} (hash {tx.confirmed_hash})")
        print(f"Attempts: {', '.join(tx.hashes)}")
    finally:
        await manager.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[0].strip())
    parser.add_argument("--to", required=True, help="Destination address")
    parser.add_argument("--value-wei", type=int, default=0)
    parser.add_argument("--data", default=None, help="Hex-encoded call data")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--bump-after", type=float, default=None, help="Seconds between gas bumps")
    group.add_argument("--cancel-after", type=float, default=None, help="Seconds before cancelling")
    setup_logging()
    asyncio.run(main(parser.parse_args()))
