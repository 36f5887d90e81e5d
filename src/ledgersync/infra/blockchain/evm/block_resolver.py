"""Fills in block header rows for blocks referenced by newly ingested transfers."""

import logging
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.db.repos.block_repo import BlockRepo
from ledgersync.infra.blockchain.evm.alchemy_client import AlchemyClient

logger = logging.getLogger(__name__)


class BlockResolver:
    def __init__(self, session: AsyncSession, client: AlchemyClient) -> None:
        self._repo = BlockRepo(session)
        self._client = client

    async def ensure_blocks(self, block_numbers: Iterable[int]) -> int:
        """Fetch and upsert headers for blocks not yet stored. Returns how many were fetched.

        Writes are flushed through the caller's session; committing is the caller's job.
        """
        wanted = sorted(set(block_numbers))
        if not wanted:
            return 0

        existing = await self._repo.existing_numbers(wanted)
        missing = [number for number in wanted if number not in existing]

        for number in missing:
            header = await self._client.get_block(number)
            await self._repo.upsert(header)
            logger.debug("Upserted block metadata for %d", number)

        if missing:
            logger.info("Resolved %d missing block header(s) of %d referenced", len(missing), len(wanted))
        return len(missing)
