from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledgersync.db.session import Base, TimestampMixin, UUIDPrimaryKey
from ledgersync.domain.enums import WalletSyncStatus


class Wallet(UUIDPrimaryKey, TimestampMixin, Base):
    """Tracked on-chain address plus its ingestion cursor."""

    __tablename__ = "wallets"
    __table_args__ = (
        UniqueConstraint("chain", "address", name="uq_wallets_chain_address"),
        Index("ix_wallets_chain_last_synced_at", "chain", "last_synced_at"),
    )

    chain: Mapped[str] = mapped_column(String(20))
    address: Mapped[str] = mapped_column(String(255), index=True)
    label: Mapped[Optional[str]] = mapped_column(String(255), default=None)
    sync_status: Mapped[str] = mapped_column(String(20), default=WalletSyncStatus.IDLE.value)
    last_synced_block: Mapped[Optional[int]] = mapped_column(BigInteger, default=None)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=None)
