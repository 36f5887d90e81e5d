from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.db.models.block import Block
from ledgersync.db.session import upsert_insert
from ledgersync.infra.blockchain.evm.alchemy_client import BlockHeader


class BlockRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def existing_numbers(self, numbers: Iterable[int]) -> set[int]:
        wanted = list(set(numbers))
        if not wanted:
            return set()
        result = await self._session.execute(
            select(Block.number).where(Block.number.in_(wanted))
        )
        return set(result.scalars().all())

    async def upsert(self, header: BlockHeader) -> None:
        values = {
            "number": header.number,
            "hash": header.hash,
            "parent_hash": header.parent_hash,
            "timestamp": header.timestamp,
        }
        stmt = upsert_insert(self._session, Block).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["number"],
            set_={
                "hash": stmt.excluded.hash,
                "parent_hash": stmt.excluded.parent_hash,
                "timestamp": stmt.excluded.timestamp,
                "updated_at": func.now(),
            },
        )
        await self._session.execute(stmt)
