"""Contracts shared by wallet sync implementations and the sync pool."""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field

from ledgersync.config import Settings
from ledgersync.db.models.wallet import Wallet


class SyncOptions(BaseModel):
    """Per-invocation knobs for a wallet sync."""

    lookback_blocks: int = Field(default=5000, ge=0)
    max_pages: Optional[int] = Field(default=None, ge=1)
    max_block_span: Optional[int] = Field(default=None, ge=0)  # None/0 = up to chain head
    skip_if_synced_within_ms: Optional[int] = Field(default=None, ge=0)
    skip_block_metadata: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "SyncOptions":
        return cls(
            lookback_blocks=settings.eth_lookback_blocks,
            max_pages=settings.ingestion_max_pages,
            max_block_span=settings.ingestion_max_block_span,
            skip_if_synced_within_ms=settings.ingestion_skip_recent_ms,
        )


@dataclass
class SyncResult:
    """Outcome of one sync invocation: the window covered and what was written."""

    wallet_id: uuid.UUID
    address: str
    from_block: int
    to_block: int
    latest_block: int
    transfers_processed: int
    has_more: bool
    quarantined: int = 0
    skipped: bool = False


class WalletSyncer(ABC):
    """Strategy interface for syncing one wallet's transfer history."""

    @abstractmethod
    async def sync_wallet(self, wallet: Wallet, options: Optional[SyncOptions] = None) -> SyncResult:
        """Advance the wallet's cursor by one window."""
