from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.db.models.price_snapshot import PriceSnapshot
from ledgersync.db.session import upsert_insert


class PriceRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(self, chain: str, token: str, ts: datetime, usd: Decimal) -> None:
        stmt = upsert_insert(self._session, PriceSnapshot).values(chain=chain, token=token.lower(), ts=ts, usd=usd)
        stmt = stmt.on_conflict_do_update(
            index_elements=["chain", "token", "ts"],
            set_={"usd": stmt.excluded.usd},
        )
        await self._session.execute(stmt)

    async def get(self, chain: str, token: str, ts: datetime) -> Optional[PriceSnapshot]:
        result = await self._session.execute(
            select(PriceSnapshot).where(
                PriceSnapshot.chain == chain,
                PriceSnapshot.token == token.lower(),
                PriceSnapshot.ts == ts,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_range(self, chain: str, start: datetime, end: datetime) -> list[PriceSnapshot]:
        result = await self._session.execute(
            select(PriceSnapshot)
            .where(PriceSnapshot.chain == chain, PriceSnapshot.ts >= start, PriceSnapshot.ts < end)
            .order_by(PriceSnapshot.ts.asc(), PriceSnapshot.token.asc())
        )
        return list(result.scalars().all())
