"""Bounded concurrent wallet syncing with one in-flight sync per wallet."""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledgersync.db.models.wallet import Wallet
from ledgersync.db.repos.wallet_repo import WalletRepo
from ledgersync.infra.blockchain.base import SyncOptions, SyncResult, WalletSyncer

logger = logging.getLogger(__name__)


@dataclass
class WalletSyncSuccess:
    wallet_id: uuid.UUID
    address: str
    result: SyncResult
    duration_ms: int


@dataclass
class WalletSyncFailure:
    wallet_id: uuid.UUID
    address: str
    error: str
    duration_ms: int


@dataclass
class SyncBatchReport:
    successes: list[WalletSyncSuccess] = field(default_factory=list)
    failures: list[WalletSyncFailure] = field(default_factory=list)

    @property
    def transfers_processed(self) -> int:
        return sum(s.result.transfers_processed for s in self.successes)


async def select_wallets(
    session: AsyncSession, chain: str, limit: int, address: Optional[str] = None
) -> list[Wallet]:
    """Due wallets: never-synced first, then by last sync time, then creation time."""
    return await WalletRepo(session).list_due(chain, limit, address=address)


class WalletSyncPool:
    """Runs wallet syncs concurrently, at most `concurrency` at a time.

    Each sync gets its own session. A wallet requested twice waits for its
    earlier sync to finish and then resumes from the cursor that one wrote.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        loader_factory: Callable[[AsyncSession], WalletSyncer],
        concurrency: int = 1,
        options: Optional[SyncOptions] = None,
    ) -> None:
        self._session_factory = session_factory
        self._loader_factory = loader_factory
        self._semaphore = asyncio.Semaphore(max(concurrency, 1))
        self._options = options or SyncOptions()
        self._locks: dict[uuid.UUID, asyncio.Lock] = {}

    def _lock_for(self, wallet_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(wallet_id)
        if lock is None:
            lock = self._locks[wallet_id] = asyncio.Lock()
        return lock

    async def run(self, wallets: Iterable[Wallet]) -> SyncBatchReport:
        targets = [(w.id, w.address) for w in wallets]
        report = SyncBatchReport()
        await asyncio.gather(*(self._sync_one(wallet_id, address, report) for wallet_id, address in targets))
        logger.info(
            "Sync run finished: %d succeeded, %d failed, %d transfer(s)",
            len(report.successes), len(report.failures), report.transfers_processed,
        )
        return report

    async def _sync_one(self, wallet_id: uuid.UUID, address: str, report: SyncBatchReport) -> None:
        async with self._lock_for(wallet_id), self._semaphore:
            started = time.monotonic()
            try:
                async with self._session_factory() as session:
                    # Reload so a queued repeat sees the cursor its predecessor committed.
                    wallet = await WalletRepo(session).get_by_id(wallet_id)
                    if wallet is None:
                        raise LookupError(f"Wallet {wallet_id} not found")
                    result = await self._loader_factory(session).sync_wallet(wallet, self._options)
            except Exception as exc:
                duration_ms = int((time.monotonic() - started) * 1000)
                logger.error("Sync failed for wallet %s after %d ms: %s", address, duration_ms, exc)
                report.failures.append(
                    WalletSyncFailure(wallet_id=wallet_id, address=address, error=str(exc), duration_ms=duration_ms)
                )
                return

            duration_ms = int((time.monotonic() - started) * 1000)
            report.successes.append(
                WalletSyncSuccess(wallet_id=wallet_id, address=address, result=result, duration_ms=duration_ms)
            )
