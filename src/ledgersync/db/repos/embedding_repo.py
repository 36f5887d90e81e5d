from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.db.models.embedding import TransferEmbedding
from ledgersync.db.session import upsert_insert


class EmbeddingRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(self, transfer_id: str, vector: list[float], meta: dict, created_at: datetime) -> None:
        """Insert or overwrite; an overwrite also refreshes created_at."""
        stmt = upsert_insert(self._session, TransferEmbedding).values(
            id=transfer_id, embedding=vector, meta=meta, created_at=created_at
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={
                "embedding": stmt.excluded.embedding,
                "meta": stmt.excluded.meta,
                "created_at": stmt.excluded.created_at,
            },
        )
        await self._session.execute(stmt)

    async def get(self, transfer_id: str) -> Optional[TransferEmbedding]:
        result = await self._session.execute(
            select(TransferEmbedding).where(TransferEmbedding.id == transfer_id)
        )
        return result.scalar_one_or_none()
