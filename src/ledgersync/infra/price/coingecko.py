"""CoinGecko token price provider: current USD quotes by contract address."""

import logging
import math
from decimal import Decimal
from typing import Any, Iterable

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ledgersync.exceptions import FailureKind, TransientNetworkError, UpstreamProtocolError
from ledgersync.infra.blockchain.evm.jsonrpc import RETRYABLE_HTTP_STATUSES
from ledgersync.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

PUBLIC_BASE_URL = "https://api.coingecko.com/api/v3"
PRO_BASE_URL = "https://pro-api.coingecko.com/api/v3"

# Contract addresses accepted per /simple/token_price request
PUBLIC_MAX_CONTRACTS = 1
PRO_MAX_CONTRACTS = 50


def parse_usd_quote(quote: Any) -> Decimal | None:
    """Return the quote's USD price if it is a finite positive number, else None."""
    if not isinstance(quote, dict):
        return None
    usd = quote.get("usd")
    if isinstance(usd, bool) or not isinstance(usd, (int, float)):
        return None
    if not math.isfinite(usd) or usd <= 0:
        return None
    return Decimal(str(usd))


class CoinGeckoTokenPriceProvider:
    """Batch USD quotes from /simple/token_price/{platform}.

    A pro key switches to the pro host and the larger per-request contract limit.
    """

    def __init__(self, http_client: RateLimitedClient, api_key: str = "", pro_api_key: str = "") -> None:
        self._http = http_client
        self._api_key = api_key
        self._pro_api_key = pro_api_key

    @property
    def max_batch_size(self) -> int:
        return PRO_MAX_CONTRACTS if self._pro_api_key else PUBLIC_MAX_CONTRACTS

    def _endpoint(self, platform: str) -> tuple[str, dict[str, str]]:
        if self._pro_api_key:
            return f"{PRO_BASE_URL}/simple/token_price/{platform}", {"x-cg-pro-api-key": self._pro_api_key}
        headers = {"x-cg-demo-api-key": self._api_key} if self._api_key else {}
        return f"{PUBLIC_BASE_URL}/simple/token_price/{platform}", headers

    @retry(
        retry=retry_if_exception_type(TransientNetworkError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def get_token_prices(self, platform: str, addresses: Iterable[str]) -> dict[str, Decimal]:
        """Map lower-cased address → USD price. Addresses without a usable quote are omitted."""
        wanted = [address.lower() for address in addresses]
        if not wanted:
            return {}

        url, headers = self._endpoint(platform)
        params = {"contract_addresses": ",".join(wanted), "vs_currencies": "usd"}
        try:
            response = await self._http.get(url, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransientNetworkError("CoinGecko request timed out", FailureKind.TIMEOUT) from exc
        except httpx.TransportError as exc:
            raise TransientNetworkError(f"CoinGecko transport failure: {exc}", FailureKind.CONNECTION) from exc

        if response.status_code in RETRYABLE_HTTP_STATUSES:
            logger.info("CoinGecko returned %d for %d token(s)", response.status_code, len(wanted))
            raise TransientNetworkError(
                f"CoinGecko returned {response.status_code}", FailureKind.HTTP_STATUS, status_code=response.status_code
            )
        if response.status_code != 200:
            raise UpstreamProtocolError(f"CoinGecko returned {response.status_code}: {response.text[:300]}")

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamProtocolError("CoinGecko returned a non-JSON body", FailureKind.MALFORMED_RESPONSE) from exc
        if not isinstance(data, dict):
            raise UpstreamProtocolError("CoinGecko returned a non-object body", FailureKind.MALFORMED_RESPONSE)

        quotes = {str(key).lower(): value for key, value in data.items()}
        prices: dict[str, Decimal] = {}
        for address in wanted:
            price = parse_usd_quote(quotes.get(address))
            if price is None:
                logger.debug("No usable CoinGecko quote for %s", address)
                continue
            prices[address] = price
        return prices
