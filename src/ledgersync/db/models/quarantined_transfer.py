import uuid
from typing import Optional

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledgersync.db.session import Base, TimestampMixin, UUIDPrimaryKey


class QuarantinedTransfer(UUIDPrimaryKey, TimestampMixin, Base):
    """Vendor transfer payload rejected at the ingestion boundary, kept for inspection/replay."""

    __tablename__ = "quarantined_transfers"
    __table_args__ = (
        UniqueConstraint("wallet_id", "fingerprint", name="uq_quarantined_transfers_wallet_fingerprint"),
    )

    wallet_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("wallets.id", ondelete="CASCADE"), default=None)
    chain: Mapped[str] = mapped_column(String(20))
    tx_hash: Mapped[Optional[str]] = mapped_column(String(100), default=None)
    unique_id: Mapped[Optional[str]] = mapped_column(String(200), default=None)
    # vendor uniqueId when present, else "sha256:<hex>" of the canonical payload
    fingerprint: Mapped[str] = mapped_column(String(200))
    reason: Mapped[str] = mapped_column(Text)
    payload: Mapped[str] = mapped_column(Text)  # raw vendor JSON
    resolved: Mapped[bool] = mapped_column(default=False)
