import hashlib
import json
import uuid
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.db.models.quarantined_transfer import QuarantinedTransfer
from ledgersync.db.session import upsert_insert
from ledgersync.infra.blockchain.evm.normalizer import RejectedTransfer


class QuarantineRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_many(
        self, wallet_id: Optional[uuid.UUID], chain: str, rejected: Iterable[RejectedTransfer]
    ) -> int:
        """Insert rejected payloads, skipping ones already quarantined for this wallet. Returns rows inserted."""
        rows: dict[str, dict] = {}
        for item in rejected:
            payload = json.dumps(item.payload, default=str, sort_keys=True)
            unique_id = _str_or_none(item.payload.get("uniqueId"))
            fingerprint = unique_id or "sha256:" + hashlib.sha256(payload.encode()).hexdigest()
            rows.setdefault(fingerprint, {
                "id": uuid.uuid4(),
                "wallet_id": wallet_id,
                "chain": chain,
                "tx_hash": _str_or_none(item.payload.get("hash")),
                "unique_id": unique_id,
                "fingerprint": fingerprint,
                "reason": item.reason,
                "payload": payload,
                "resolved": False,
            })
        if not rows:
            return 0

        stmt = upsert_insert(self._session, QuarantinedTransfer).values(list(rows.values()))
        stmt = stmt.on_conflict_do_nothing(index_elements=["wallet_id", "fingerprint"])
        result = await self._session.execute(stmt.returning(QuarantinedTransfer.id))
        return len(result.scalars().all())

    async def count_unresolved(self, wallet_id: Optional[uuid.UUID] = None) -> int:
        query = select(func.count()).select_from(QuarantinedTransfer).where(
            QuarantinedTransfer.resolved == False  # noqa: E712
        )
        if wallet_id is not None:
            query = query.where(QuarantinedTransfer.wallet_id == wallet_id)
        result = await self._session.execute(query)
        return result.scalar_one()


def _str_or_none(value) -> Optional[str]:
    return value.lower() if isinstance(value, str) else None
