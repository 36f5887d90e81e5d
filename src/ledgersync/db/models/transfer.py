from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledgersync.db.session import Base, TimestampMixin
from ledgersync.db.types import FixedPointNumeric


class Transfer(TimestampMixin, Base):
    """Canonical ERC-20 transfer. PK is the deterministic transfer id, so re-ingestion upserts in place."""

    __tablename__ = "transfers"
    __table_args__ = (Index("ix_transfers_chain_timestamp", "chain", "timestamp"),)

    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    tx_hash: Mapped[str] = mapped_column(String(100))
    log_index: Mapped[int] = mapped_column(Integer)
    block_number: Mapped[Optional[int]] = mapped_column(BigInteger, default=None, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    token: Mapped[str] = mapped_column(String(50), index=True)
    symbol: Mapped[Optional[str]] = mapped_column(String(100), default=None)
    decimals: Mapped[Optional[int]] = mapped_column(Integer, default=None)
    from_addr: Mapped[str] = mapped_column(String(50), index=True)
    to_addr: Mapped[str] = mapped_column(String(50), index=True)
    amount_raw: Mapped[Decimal] = mapped_column(FixedPointNumeric(78, 0))
    amount_dec: Mapped[Decimal] = mapped_column(FixedPointNumeric(78, 18))
    chain: Mapped[str] = mapped_column(String(20))
    stale: Mapped[bool] = mapped_column(default=False)
