"""Alchemy-flavoured Ethereum client: chain head, block headers, paginated asset transfers."""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ledgersync.config import Settings
from ledgersync.domain.enums import TransferCategory, TransferDirection
from ledgersync.domain.models.transfer import parse_int
from ledgersync.exceptions import FailureKind, UpstreamProtocolError
from ledgersync.infra.blockchain.evm.jsonrpc import JsonRpcClient
from ledgersync.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 5
PAGE_SIZE = 1000  # vendor maximum per page


class BlockHeader(BaseModel):
    """The subset of `eth_getBlockByNumber` we keep. Hex quantities are decoded."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    number: int
    hash: str
    parent_hash: str = Field(alias="parentHash")
    timestamp: datetime

    @field_validator("number", mode="before")
    @classmethod
    def _parse_number(cls, v: Any) -> int:
        return parse_int(v)

    @field_validator("hash", "parent_hash")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, v: Any) -> datetime:
        if isinstance(v, datetime):
            return v
        return datetime.fromtimestamp(parse_int(v), tz=UTC)


class AlchemyClient:
    def __init__(self, rpc: JsonRpcClient) -> None:
        self._rpc = rpc

    @classmethod
    def from_settings(cls, settings: Settings, http_client: RateLimitedClient) -> "AlchemyClient":
        rpc = JsonRpcClient(
            rpc_url=settings.require_rpc_url(),
            http_client=http_client,
            max_attempts=settings.rpc_max_attempts,
            base_delay=settings.rpc_base_delay,
            max_delay=settings.rpc_max_delay,
            retryable_codes=settings.rpc_retryable_codes,
        )
        return cls(rpc)

    async def get_latest_block(self) -> int:
        result = await self._rpc.call("eth_blockNumber", [])
        try:
            return parse_int(result)
        except ValueError as exc:
            raise UpstreamProtocolError(
                f"eth_blockNumber returned {result!r}", FailureKind.MALFORMED_RESPONSE
            ) from exc

    async def get_block(self, number: int) -> BlockHeader:
        result = await self._rpc.call("eth_getBlockByNumber", [hex(number), False])
        if result is None:
            raise UpstreamProtocolError(f"Block {number} not found", FailureKind.REJECTED)
        try:
            return BlockHeader.model_validate(result)
        except ValidationError as exc:
            raise UpstreamProtocolError(
                f"Malformed header for block {number}: {exc}", FailureKind.MALFORMED_RESPONSE
            ) from exc

    async def fetch_transfers_for_wallet(
        self,
        address: str,
        from_block: int,
        to_block: int,
        direction: TransferDirection,
        max_pages: int | None = None,
    ) -> list[dict]:
        """Fetch ERC-20 transfers touching `address` in [from_block, to_block].

        Follows `pageKey` continuation up to `max_pages` pages; beyond that the
        result is truncated with a warning rather than failing.
        """
        max_pages = max_pages or DEFAULT_MAX_PAGES
        params_base: dict[str, Any] = {
            "fromBlock": hex(from_block),
            "toBlock": hex(to_block),
            "category": [TransferCategory.ERC20.value],
            "withMetadata": True,
            "excludeZeroValue": False,
            "maxCount": hex(PAGE_SIZE),
        }
        if direction == TransferDirection.INCOMING:
            params_base["toAddress"] = address
        else:
            params_base["fromAddress"] = address

        transfers: list[dict] = []
        page_key: str | None = None
        page = 0

        while True:
            params = dict(params_base)
            if page_key:
                params["pageKey"] = page_key

            response = await self._rpc.call("alchemy_getAssetTransfers", [params])
            if not isinstance(response, dict):
                raise UpstreamProtocolError(
                    "alchemy_getAssetTransfers returned a non-object result", FailureKind.MALFORMED_RESPONSE
                )
            transfers.extend(response.get("transfers") or [])
            page_key = response.get("pageKey")
            page += 1

            if not page_key:
                break
            if page >= max_pages:
                logger.warning(
                    "Reached max pagination depth while fetching transfers "
                    "(address=%s direction=%s from=%d to=%d pages=%d)",
                    address, direction.value, from_block, to_block, page,
                )
                break

        return transfers
