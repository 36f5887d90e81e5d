"""Hourly USD price snapshots for every token seen in persisted transfers."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.db.repos.price_repo import PriceRepo
from ledgersync.db.repos.transfer_repo import TransferRepo
from ledgersync.exceptions import ExternalServiceError
from ledgersync.infra.blockchain.evm.normalizer import ZERO_ADDRESS
from ledgersync.infra.price.coingecko import CoinGeckoTokenPriceProvider

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _round_to_hour(moment: datetime) -> datetime:
    return moment.replace(minute=0, second=0, microsecond=0)


@dataclass
class PriceJobResult:
    chain: str
    updated: int
    processed_tokens: int
    timestamp: datetime
    failed_batches: int = 0


class PriceSnapshotJob:
    def __init__(
        self,
        session: AsyncSession,
        provider: CoinGeckoTokenPriceProvider,
        platform: str = "ethereum",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session = session
        self._provider = provider
        self._platform = platform
        self._clock = clock
        self._prices = PriceRepo(session)
        self._transfers = TransferRepo(session)

    async def run(
        self,
        chain: str,
        batch_size: Optional[int] = None,
        tokens: Optional[Iterable[str]] = None,
    ) -> PriceJobResult:
        """Snapshot current prices at the top of the hour.

        A failing batch is logged, rolled back and counted; the rest still run.
        """
        snapshot_ts = _round_to_hour(self._clock())
        if tokens is not None:
            addresses = list(dict.fromkeys(t.lower() for t in tokens if t))
        else:
            addresses = await self._transfers.distinct_tokens(chain, exclude=[ZERO_ADDRESS])

        size = batch_size if batch_size and batch_size > 0 else self._provider.max_batch_size
        updated = 0
        failed = 0

        for start in range(0, len(addresses), size):
            batch = addresses[start:start + size]
            try:
                prices = await self._provider.get_token_prices(self._platform, batch)
                for token, usd in prices.items():
                    await self._prices.upsert(chain, token, snapshot_ts, usd)
                await self._session.commit()
            except (ExternalServiceError, SQLAlchemyError):
                logger.exception("Price batch failed for %s tokens %s", chain, ",".join(batch))
                await self._session.rollback()
                failed += 1
                continue
            updated += len(prices)

        logger.info(
            "Price snapshot %s for %s: %d/%d token(s) priced, %d failed batch(es)",
            snapshot_ts.isoformat(), chain, updated, len(addresses), failed,
        )
        return PriceJobResult(
            chain=chain,
            updated=updated,
            processed_tokens=len(addresses),
            timestamp=snapshot_ts,
            failed_batches=failed,
        )
