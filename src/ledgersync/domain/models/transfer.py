"""Vendor asset-transfer payloads and the canonical transfer record.

`AssetTransfer` is the strict boundary type for one `alchemy_getAssetTransfers`
entry; anything that fails to validate here never reaches the normalizer.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def parse_int(value: Any) -> int:
    """Parse an int from an int, a 0x-prefixed hex string or a decimal string."""
    if isinstance(value, bool):
        raise ValueError("boolean is not an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == "0x":
            return int(text, 16)
        return int(text, 10)
    raise ValueError(f"cannot parse integer from {value!r}")


def parse_optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return parse_int(value)


class RawContract(BaseModel):
    model_config = ConfigDict(extra="ignore")

    address: str | None = None
    decimal: int | None = None
    value: str | None = None  # base units, hex or decimal

    @field_validator("decimal", mode="before")
    @classmethod
    def _parse_decimal(cls, v: Any) -> int | None:
        return parse_optional_int(v)


class TransferMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    block_timestamp: datetime | None = Field(default=None, alias="blockTimestamp")


class AssetTransfer(BaseModel):
    """One entry of the vendor transfer listing."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    unique_id: str | None = Field(default=None, alias="uniqueId")
    hash: str
    block_num: int = Field(alias="blockNum")
    metadata: TransferMetadata | None = None
    raw_contract: RawContract | None = Field(default=None, alias="rawContract")
    asset: str | None = None
    value: str | None = None  # human-readable amount
    from_address: str = Field(alias="from")
    to_address: str = Field(alias="to")
    category: str
    log_index: int | None = Field(default=None, alias="logIndex")

    @field_validator("block_num", mode="before")
    @classmethod
    def _parse_block_num(cls, v: Any) -> int:
        number = parse_int(v)
        if number < 0:
            raise ValueError("block number must be non-negative")
        return number

    @field_validator("value", mode="before")
    @classmethod
    def _stringify_value(cls, v: Any) -> str | None:
        # The vendor sends a JSON number; keep its repr instead of a float round-trip.
        if v is None:
            return None
        return str(v)

    @field_validator("log_index", mode="before")
    @classmethod
    def _parse_log_index(cls, v: Any) -> int | None:
        # Unusable values fall through to the uniqueId suffix.
        try:
            index = parse_optional_int(v)
        except ValueError:
            return None
        if index is None or index < 0:
            return None
        return index


class NormalizedTransfer(BaseModel):
    """Canonical transfer ready for upsert."""

    model_config = ConfigDict(frozen=True)

    id: str
    tx_hash: str
    log_index: int
    block_number: int
    timestamp: datetime
    token: str
    symbol: str | None = None
    decimals: int | None = None
    from_address: str
    to_address: str
    amount_raw: int
    amount_dec: str
    chain: str

    def to_row(self) -> dict[str, Any]:
        """Column values for the transfers table."""
        return {
            "id": self.id,
            "tx_hash": self.tx_hash,
            "log_index": self.log_index,
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "token": self.token,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "from_addr": self.from_address,
            "to_addr": self.to_address,
            "amount_raw": Decimal(self.amount_raw),
            "amount_dec": Decimal(self.amount_dec),
            "chain": self.chain,
            "stale": False,
        }
