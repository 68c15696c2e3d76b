from __future__ import annotations

from txmanager.chain.base import ChainClient, SentTransaction
from txmanager.chain.client import Web3ChainClient, Web3SentTransaction
