"""Gas limit and gas price arithmetic.

All prices are integers in wei. Multipliers go through Decimal so that
e.g. ``50_000 * 1.2`` floors to 60_000, not 59_999.
"""
from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal

BLOCK_GAS_LIMIT_RATIO = Decimal("0.95")


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def block_gas_limit_from(latest_block_gas_limit: int) -> int:
    """Usable gas limit: 95% of the latest block's limit."""
    return _floor(Decimal(latest_block_gas_limit) * BLOCK_GAS_LIMIT_RATIO)


def compute_gas_limit(estimate: int, multiplier: float, block_gas_limit: int | None) -> int:
    """floor(estimate * multiplier), capped at the block gas limit when known."""
    gas_limit = _floor(Decimal(estimate) * Decimal(str(multiplier)))
    if block_gas_limit is not None:
        gas_limit = min(gas_limit, block_gas_limit)
    return gas_limit


def apply_wiggle(gas_price_minimum: int, wiggle: float) -> int:
    return _floor(Decimal(gas_price_minimum) * Decimal(str(wiggle)))


def bump_gas_price(
    price: int,
    min_bump: int,
    bump_percentage: int,
    max_price: int,
) -> int | None:
    """Escalate ``price`` by the larger of ``bump_percentage``% and ``min_bump``.

    The result never exceeds ``max_price``. Returns None when ``price`` is
    already at (or above) the maximum; bumping further cannot help.
    """
    if price >= max_price:
        return None
    candidate = max(price * (100 + bump_percentage) // 100, price + min_bump)
    return min(candidate, max_price)
