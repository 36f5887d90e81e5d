from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ledgersync.db.session import Base
from ledgersync.db.types import FixedPointNumeric


class PriceSnapshot(Base):
    """USD quote for a token, one row per (chain, token, hour)."""

    __tablename__ = "prices"

    chain: Mapped[str] = mapped_column(String(20), primary_key=True)
    token: Mapped[str] = mapped_column(String(50), primary_key=True)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), primary_key=True)  # truncated to hour
    usd: Mapped[Decimal] = mapped_column(FixedPointNumeric(38, 10))
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
