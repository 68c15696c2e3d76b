"""Load the bundled Celo core contract ABIs (Registry, GasPriceMinimum)."""
from __future__ import annotations

import json
from pathlib import Path

_ABI_DIR = Path(__file__).parent / "abis"


def load_abi(name: str) -> list:
    return json.loads((_ABI_DIR / f"{name}.json").read_text())["abi"]


REGISTRY_ABI = load_abi("Registry")
GAS_PRICE_MINIMUM_ABI = load_abi("GasPriceMinimum")
