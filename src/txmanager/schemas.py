from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from web3.types import TxParams


class TransactionRequest(BaseModel):
    """One submission attempt's payload. Immutable; derive new ones with with_updates()."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_address: str | None = Field(None, alias="from")
    to: str | None = None
    value: int = Field(0, ge=0)
    data: str | None = None
    gas_limit: int | None = Field(None, alias="gas", gt=0)
    gas_price: int | None = Field(None, alias="gasPrice", ge=0)
    nonce: int | None = Field(None, ge=0)
    chain_id: int | None = Field(None, alias="chainId")

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any], sender: str) -> TransactionRequest:
        """Build a request from web3-style or snake_case keys, sent from ``sender``."""
        data = {k: v for k, v in fields.items() if k not in ("from", "from_address")}
        data["from"] = sender
        return cls.model_validate(data)

    def with_updates(self, **fields: Any) -> TransactionRequest:
        return self.model_copy(update=fields)

    def to_tx_params(self) -> TxParams:
        return self.model_dump(by_alias=True, exclude_none=True)  # type: ignore[return-value]
