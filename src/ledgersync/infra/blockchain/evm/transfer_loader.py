"""EVM transfer loader: incremental, windowed ERC-20 sync for one wallet."""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.db.models.wallet import Wallet
from ledgersync.db.repos.quarantine_repo import QuarantineRepo
from ledgersync.db.repos.transfer_repo import TransferRepo
from ledgersync.db.repos.wallet_repo import WalletRepo
from ledgersync.domain.enums import TransferDirection, WalletSyncStatus
from ledgersync.domain.models.transfer import NormalizedTransfer
from ledgersync.exceptions import PersistenceError
from ledgersync.infra.blockchain.base import SyncOptions, SyncResult, WalletSyncer
from ledgersync.infra.blockchain.evm.alchemy_client import AlchemyClient
from ledgersync.infra.blockchain.evm.block_resolver import BlockResolver
from ledgersync.infra.blockchain.evm.normalizer import dedupe_by_id, normalize_transfers

logger = logging.getLogger(__name__)

TRANSFER_BATCH_SIZE = 50


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; they were written as UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


@dataclass(frozen=True)
class SyncWindow:
    from_block: int
    to_block: int


@dataclass(frozen=True)
class _Cursor:
    wallet_id: uuid.UUID
    address: str
    chain: str
    last_synced_block: Optional[int]
    last_synced_at: Optional[datetime]


def compute_window(last_synced_block: Optional[int], latest_block: int, options: SyncOptions) -> SyncWindow:
    """Resume after the cursor, or start `lookback_blocks` behind the head."""
    if last_synced_block is not None:
        from_block = last_synced_block + 1
    else:
        from_block = latest_block - options.lookback_blocks
    from_block = max(from_block, 0)

    if options.max_block_span:
        to_block = min(latest_block, from_block + options.max_block_span)
    else:
        to_block = latest_block
    return SyncWindow(from_block=from_block, to_block=to_block)


class EVMTransferLoader(WalletSyncer):
    def __init__(
        self,
        session: AsyncSession,
        client: AlchemyClient,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session = session
        self._client = client
        self._clock = clock
        self._wallets = WalletRepo(session)
        self._transfers = TransferRepo(session)
        self._quarantine = QuarantineRepo(session)
        self._blocks = BlockResolver(session, client)

    async def sync_wallet(self, wallet: Wallet, options: Optional[SyncOptions] = None) -> SyncResult:
        """Sync one window for a wallet.

        Errors propagate after the wallet is marked ERROR; transfer batches
        committed before the failure stay committed.
        """
        options = options or SyncOptions()
        # Snapshot the row: rollbacks below expire ORM state.
        cursor = _Cursor(
            wallet_id=wallet.id,
            address=wallet.address.lower(),
            chain=wallet.chain,
            last_synced_block=wallet.last_synced_block,
            last_synced_at=_as_utc(wallet.last_synced_at),
        )

        if self._recently_synced(cursor, options):
            logger.info(
                "Skipping ingestion for %s; synced at %s",
                cursor.address, cursor.last_synced_at.isoformat() if cursor.last_synced_at else None,
            )
            block = cursor.last_synced_block or 0
            return SyncResult(
                wallet_id=cursor.wallet_id,
                address=cursor.address,
                from_block=block,
                to_block=block,
                latest_block=block,
                transfers_processed=0,
                has_more=False,
                skipped=True,
            )

        await self._wallets.set_status(cursor.wallet_id, WalletSyncStatus.SYNCING)
        await self._commit("sync status")

        try:
            result = await self._do_sync(cursor, options)
        except Exception:
            logger.exception("Failed to sync transfers for wallet %s on %s", cursor.address, cursor.chain)
            await self._mark_failed(cursor.wallet_id)
            raise

        logger.info(
            "Wallet %s synced %d transfer(s) over [%d, %d], head %d",
            cursor.address, result.transfers_processed, result.from_block, result.to_block, result.latest_block,
        )
        return result

    def _recently_synced(self, cursor: _Cursor, options: SyncOptions) -> bool:
        if not options.skip_if_synced_within_ms or cursor.last_synced_at is None:
            return False
        elapsed = self._clock() - cursor.last_synced_at
        return elapsed.total_seconds() * 1000 < options.skip_if_synced_within_ms

    async def _do_sync(self, cursor: _Cursor, options: SyncOptions) -> SyncResult:
        latest_block = await self._client.get_latest_block()
        window = compute_window(cursor.last_synced_block, latest_block, options)

        if window.from_block > latest_block:
            logger.info(
                "Wallet %s already synced to head (cursor=%s, head=%d)",
                cursor.address, cursor.last_synced_block, latest_block,
            )
            await self._wallets.set_status(cursor.wallet_id, WalletSyncStatus.SYNCED)
            await self._commit("sync status")
            return SyncResult(
                wallet_id=cursor.wallet_id,
                address=cursor.address,
                from_block=window.from_block,
                to_block=latest_block,
                latest_block=latest_block,
                transfers_processed=0,
                has_more=False,
            )

        logger.info(
            "Fetching ERC-20 transfers for %s over [%d, %d] (head %d)",
            cursor.address, window.from_block, window.to_block, latest_block,
        )
        incoming, outgoing = await asyncio.gather(
            self._client.fetch_transfers_for_wallet(
                cursor.address, window.from_block, window.to_block, TransferDirection.INCOMING, options.max_pages
            ),
            self._client.fetch_transfers_for_wallet(
                cursor.address, window.from_block, window.to_block, TransferDirection.OUTGOING, options.max_pages
            ),
        )

        batch = normalize_transfers([*incoming, *outgoing], cursor.chain)
        transfers = dedupe_by_id(batch.transfers)

        if batch.rejected:
            added = await self._quarantine.add_many(cursor.wallet_id, cursor.chain, batch.rejected)
            await self._commit("quarantined transfers")
            logger.warning(
                "Rejected %d malformed transfer(s) for %s, %d newly quarantined",
                len(batch.rejected), cursor.address, added,
            )

        if transfers and not options.skip_block_metadata:
            await self._blocks.ensure_blocks(t.block_number for t in transfers)
            await self._commit("block metadata")

        await self._persist_transfers(transfers)

        final_block = max(
            [window.to_block, cursor.last_synced_block or 0, *(t.block_number for t in transfers)]
        )
        await self._wallets.update_cursor(cursor.wallet_id, final_block, self._clock())
        await self._commit("wallet cursor")

        return SyncResult(
            wallet_id=cursor.wallet_id,
            address=cursor.address,
            from_block=window.from_block,
            to_block=final_block,
            latest_block=latest_block,
            transfers_processed=len(transfers),
            has_more=final_block < latest_block,
            quarantined=len(batch.rejected),
        )

    async def _persist_transfers(self, transfers: list[NormalizedTransfer]) -> None:
        """Upsert in fixed-size batches, one transaction per batch, in order."""
        for start in range(0, len(transfers), TRANSFER_BATCH_SIZE):
            chunk = transfers[start:start + TRANSFER_BATCH_SIZE]
            try:
                await self._transfers.upsert_many(chunk)
            except SQLAlchemyError as exc:
                raise PersistenceError(
                    f"Failed to upsert transfer batch at offset {start} ({len(chunk)} rows)"
                ) from exc
            await self._commit(f"transfer batch at offset {start}")
        if transfers:
            logger.info("Upserted %d transfer record(s)", len(transfers))

    async def _commit(self, what: str) -> None:
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to commit {what}") from exc

    async def _mark_failed(self, wallet_id: uuid.UUID) -> None:
        try:
            await self._session.rollback()
            await self._wallets.set_status(wallet_id, WalletSyncStatus.ERROR)
            await self._session.commit()
        except SQLAlchemyError:
            logger.exception("Could not record ERROR status for wallet %s", wallet_id)
