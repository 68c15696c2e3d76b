from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings
from web3 import Web3


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Chain
    rpc_url: str = "http://localhost:8545"
    private_key: str = ""
    receipt_poll_interval: float = 1.0

    # Gas policy (prices in gwei)
    gas_limit_multiplier: float = 1.1
    block_gas_limit: int | None = None
    estimate_gas: bool = False
    max_gas_price: float = 1000
    min_gwei_bump: float = 1
    gas_bump_percentage: int = 20
    gas_price_wiggle: float = 1.3
    cancel_gas_limit: int = 21_000

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"


settings = Settings()


class TxManagerConfig(BaseModel):
    """Gas and nonce policy resolved for one manager.

    Read-mostly: ``block_gas_limit`` is the only field written after
    construction, once, when the first transaction discovers it.
    Upper-case option names (``MAX_GAS_PRICE`` ...) are accepted as aliases.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    gas_limit_multiplier: float = Field(1.1, alias="GAS_LIMIT_MULTIPLIER", gt=0)
    block_gas_limit: int | None = Field(None, alias="BLOCK_GAS_LIMIT", gt=0)
    estimate_gas: bool = Field(False, alias="ESTIMATE_GAS")
    max_gas_price: float = Field(1000, alias="MAX_GAS_PRICE", gt=0)
    min_gwei_bump: float = Field(1, alias="MIN_GWEI_BUMP", ge=0)
    gas_bump_percentage: int = Field(20, alias="GAS_BUMP_PERCENTAGE", ge=0)
    gas_price_wiggle: float = Field(1.3, alias="GAS_PRICE_WIGGLE", gt=0)
    cancel_gas_limit: int = Field(21_000, alias="CANCEL_GAS_LIMIT", gt=0)

    @classmethod
    def from_settings(cls, **overrides) -> TxManagerConfig:
        values = {name: getattr(settings, name) for name in cls.model_fields}
        values.update(overrides)
        return cls.model_validate(values)

    @property
    def max_gas_price_wei(self) -> int:
        return Web3.to_wei(self.max_gas_price, "gwei")

    @property
    def min_gwei_bump_wei(self) -> int:
        return Web3.to_wei(self.min_gwei_bump, "gwei")
