from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.db.models.embedding import TransferEmbedding
from ledgersync.db.models.transfer import Transfer
from ledgersync.db.session import upsert_insert
from ledgersync.domain.models.transfer import NormalizedTransfer

_UPDATABLE_COLUMNS = (
    "tx_hash",
    "log_index",
    "block_number",
    "timestamp",
    "token",
    "symbol",
    "decimals",
    "from_addr",
    "to_addr",
    "amount_raw",
    "amount_dec",
    "chain",
    "stale",
)


class TransferRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert_many(self, transfers: Iterable[NormalizedTransfer]) -> int:
        """Insert-or-update by id. Ids must be unique within the call."""
        rows = [t.to_row() for t in transfers]
        if not rows:
            return 0
        stmt = upsert_insert(self._session, Transfer).values(rows)
        set_ = {col: stmt.excluded[col] for col in _UPDATABLE_COLUMNS}
        set_["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(index_elements=["id"], set_=set_)
        await self._session.execute(stmt)
        return len(rows)

    async def get_by_id(self, transfer_id: str) -> Optional[Transfer]:
        result = await self._session.execute(
            select(Transfer).where(Transfer.id == transfer_id)
        )
        return result.scalar_one_or_none()

    async def list_by_time_range(
        self, chain: str, start: datetime, end: datetime, limit: int = 500
    ) -> list[Transfer]:
        result = await self._session.execute(
            select(Transfer)
            .where(Transfer.chain == chain, Transfer.timestamp >= start, Transfer.timestamp < end)
            .order_by(Transfer.timestamp.asc(), Transfer.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def distinct_tokens(self, chain: str, exclude: Iterable[str] = ()) -> list[str]:
        query = select(Transfer.token).where(Transfer.chain == chain).distinct()
        excluded = [token.lower() for token in exclude]
        if excluded:
            query = query.where(Transfer.token.not_in(excluded))
        result = await self._session.execute(query.order_by(Transfer.token))
        return list(result.scalars().all())

    async def list_without_embedding(self, chain: str, limit: int) -> list[Transfer]:
        """Most recent transfers on `chain` that have no embedding row yet."""
        result = await self._session.execute(
            select(Transfer)
            .outerjoin(TransferEmbedding, TransferEmbedding.id == Transfer.id)
            .where(Transfer.chain == chain, TransferEmbedding.id.is_(None))
            .order_by(Transfer.timestamp.desc(), Transfer.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())
