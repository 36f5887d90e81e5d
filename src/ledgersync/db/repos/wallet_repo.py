import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.db.models.wallet import Wallet
from ledgersync.domain.enums import WalletSyncStatus


class WalletRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, wallet_id: uuid.UUID) -> Optional[Wallet]:
        result = await self._session.execute(
            select(Wallet).where(Wallet.id == wallet_id)
        )
        return result.scalar_one_or_none()

    async def get_by_chain_and_address(self, chain: str, address: str) -> Optional[Wallet]:
        result = await self._session.execute(
            select(Wallet).where(
                Wallet.chain == chain,
                Wallet.address == address.lower(),
            )
        )
        return result.scalar_one_or_none()

    async def create(self, chain: str, address: str, label: Optional[str] = None) -> Wallet:
        wallet = Wallet(chain=chain, address=address.lower(), label=label)
        self._session.add(wallet)
        await self._session.flush()
        return wallet

    async def list_due(self, chain: str, limit: int, address: Optional[str] = None) -> list[Wallet]:
        """Wallets to sync next: never-synced first, then least recently synced."""
        query = select(Wallet).where(Wallet.chain == chain)
        if address:
            query = query.where(Wallet.address == address.lower())
        query = query.order_by(
            Wallet.last_synced_at.asc().nullsfirst(),
            Wallet.created_at.asc(),
        ).limit(limit)
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def update_cursor(self, wallet_id: uuid.UUID, last_synced_block: int, last_synced_at: datetime) -> None:
        await self._session.execute(
            update(Wallet)
            .where(Wallet.id == wallet_id)
            .values(
                last_synced_block=last_synced_block,
                last_synced_at=last_synced_at,
                sync_status=WalletSyncStatus.SYNCED.value,
            )
        )

    async def set_status(self, wallet_id: uuid.UUID, status: WalletSyncStatus) -> None:
        await self._session.execute(
            update(Wallet).where(Wallet.id == wallet_id).values(sync_status=status.value)
        )
