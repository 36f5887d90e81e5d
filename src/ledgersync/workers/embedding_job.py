"""Vector embeddings for transfers that do not have one yet."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.db.models.transfer import Transfer
from ledgersync.db.repos.embedding_repo import EmbeddingRepo
from ledgersync.db.repos.transfer_repo import TransferRepo
from ledgersync.domain.amounts import format_decimal
from ledgersync.exceptions import ExternalServiceError
from ledgersync.infra.embeddings.openai_client import OpenAIEmbeddingProvider

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 32
MAX_BATCH_SIZE = 128
DEFAULT_MAX_RECORDS = 200

_AMOUNT_BUCKETS = (
    (Decimal(1_000_000), "very large"),
    (Decimal(100_000), "large"),
    (Decimal(10_000), "medium"),
    (Decimal(1_000), "small"),
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def amount_bucket(amount: Decimal) -> str:
    for threshold, label in _AMOUNT_BUCKETS:
        if amount >= threshold:
            return label
    return "very small"


def resolve_batch_size(value: Optional[int]) -> int:
    if not value or value <= 0:
        return DEFAULT_BATCH_SIZE
    return min(value, MAX_BATCH_SIZE)


def describe_transfer(transfer: Transfer) -> str:
    """The text that gets embedded. Same transfer, same text."""
    timestamp = transfer.timestamp
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    lines = [
        f"Transfer {transfer.id}",
        f"Timestamp: {timestamp.isoformat()}",
        f"Chain: {transfer.chain}",
        f"Token: {transfer.token}",
        f"Symbol: {transfer.symbol or 'UNKNOWN'}",
        f"Amount: {format_decimal(transfer.amount_dec)}",
        f"Amount bucket: {amount_bucket(transfer.amount_dec)}",
        f"From: {transfer.from_addr}",
        f"To: {transfer.to_addr}",
        f"TxHash: {transfer.tx_hash}",
    ]
    return "\n".join(lines)


def build_meta(transfer: Transfer) -> dict:
    return {
        "token": transfer.token,
        "symbol": transfer.symbol,
        "amount_dec": format_decimal(transfer.amount_dec),
        "from": transfer.from_addr,
        "to": transfer.to_addr,
        "chain": transfer.chain,
    }


@dataclass
class EmbeddingJobResult:
    chain: str
    processed: int
    batches: int
    failed_batches: int = 0


class EmbeddingJob:
    def __init__(
        self,
        session: AsyncSession,
        provider: OpenAIEmbeddingProvider,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session = session
        self._provider = provider
        self._clock = clock
        self._transfers = TransferRepo(session)
        self._embeddings = EmbeddingRepo(session)

    async def run(
        self,
        chain: str,
        batch_size: Optional[int] = None,
        max_records: Optional[int] = None,
    ) -> EmbeddingJobResult:
        size = resolve_batch_size(batch_size)
        limit = max_records if max_records and max_records > 0 else DEFAULT_MAX_RECORDS

        pending = await self._transfers.list_without_embedding(chain, limit)
        if not pending:
            logger.info("No transfers awaiting embeddings on %s", chain)
            return EmbeddingJobResult(chain=chain, processed=0, batches=0)

        # Detach plain values now; a rollback below would expire the ORM rows.
        prepared = [(t.id, describe_transfer(t), build_meta(t)) for t in pending]

        processed = 0
        batches = 0
        failed = 0
        for start in range(0, len(prepared), size):
            chunk = prepared[start:start + size]
            try:
                vectors = await self._provider.embed([text for _, text, _ in chunk])
                created_at = self._clock()
                for (transfer_id, _, meta), vector in zip(chunk, vectors):
                    await self._embeddings.upsert(transfer_id, vector, meta, created_at)
                await self._session.commit()
            except (ExternalServiceError, SQLAlchemyError):
                logger.exception("Embedding batch starting at %d failed for %s", start, chain)
                await self._session.rollback()
                failed += 1
                continue
            batches += 1
            processed += len(chunk)

        logger.info(
            "Embedded %d/%d transfer(s) on %s in %d batch(es), %d failed",
            processed, len(prepared), chain, batches, failed,
        )
        return EmbeddingJobResult(chain=chain, processed=processed, batches=batches, failed_batches=failed)
