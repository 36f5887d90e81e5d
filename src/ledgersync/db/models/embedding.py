from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from ledgersync.db.session import Base
from ledgersync.db.types import embedding_vector


class TransferEmbedding(Base):
    """Embedding vector for a transfer. Row existence marks the transfer as embedded."""

    __tablename__ = "tx_embeddings"

    id: Mapped[str] = mapped_column(String(200), ForeignKey("transfers.id", ondelete="CASCADE"), primary_key=True)
    embedding: Mapped[Any] = mapped_column(embedding_vector())
    meta: Mapped[Optional[dict]] = mapped_column(JSON().with_variant(JSONB, "postgresql"), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
