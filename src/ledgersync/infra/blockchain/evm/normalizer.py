"""Vendor asset-transfer → canonical transfer conversion. Pure; no I/O."""

import logging
from dataclasses import dataclass, field
from decimal import InvalidOperation
from typing import Any, Iterable

from pydantic import ValidationError

from ledgersync.domain.amounts import FixedPointAmount, render_amount
from ledgersync.domain.enums import TransferCategory
from ledgersync.domain.models.transfer import AssetTransfer, NormalizedTransfer, parse_int
from ledgersync.exceptions import NormalizationError

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass
class RejectedTransfer:
    payload: dict
    reason: str


@dataclass
class NormalizationBatch:
    transfers: list[NormalizedTransfer] = field(default_factory=list)
    rejected: list[RejectedTransfer] = field(default_factory=list)
    skipped_categories: int = 0


def resolve_log_index(transfer: AssetTransfer) -> int:
    """Explicit logIndex first, then the numeric suffix of uniqueId.

    There is no fallback: a guessed index would collide for multiple events
    in one transaction.
    """
    if transfer.log_index is not None:
        return transfer.log_index

    if transfer.unique_id:
        suffix = transfer.unique_id.split(":")[-1].split("-")[-1]
        try:
            index = parse_int(suffix)
        except ValueError:
            index = -1
        if index >= 0:
            return index

    raise NormalizationError(f"Cannot resolve log index for transfer in tx {transfer.hash}")


def parse_raw_amount(transfer: AssetTransfer) -> int:
    """Base-unit amount: rawContract.value, else human value shifted by decimals, else 0."""
    contract = transfer.raw_contract
    raw = contract.value if contract else None
    if raw and raw not in ("0x", "0"):
        try:
            amount = parse_int(raw)
        except ValueError as exc:
            raise NormalizationError(f"Unparseable raw value {raw!r} in tx {transfer.hash}") from exc
        if amount < 0:
            raise NormalizationError(f"Negative raw value {raw!r} in tx {transfer.hash}")
        return amount

    if transfer.value and contract is not None and contract.decimal is not None:
        try:
            return FixedPointAmount.from_human(transfer.value, contract.decimal).raw
        except (ValueError, InvalidOperation) as exc:
            raise NormalizationError(f"Unparseable value {transfer.value!r} in tx {transfer.hash}") from exc

    return 0


def normalize_transfer(raw: dict[str, Any] | AssetTransfer, chain: str) -> NormalizedTransfer:
    """Convert one vendor record into a NormalizedTransfer. Deterministic for identical input."""
    payload = raw if isinstance(raw, dict) else None
    if isinstance(raw, AssetTransfer):
        transfer = raw
    else:
        try:
            transfer = AssetTransfer.model_validate(raw)
        except ValidationError as exc:
            raise NormalizationError(f"Malformed transfer record: {exc.error_count()} validation error(s)", payload) from exc

    if transfer.category != TransferCategory.ERC20.value:
        raise NormalizationError(f"Unsupported transfer category {transfer.category!r}", payload)

    block_timestamp = transfer.metadata.block_timestamp if transfer.metadata else None
    if block_timestamp is None:
        raise NormalizationError(f"Transfer in tx {transfer.hash} has no block timestamp", payload)

    try:
        log_index = resolve_log_index(transfer)
        amount_raw = parse_raw_amount(transfer)
    except NormalizationError as exc:
        exc.payload = payload
        raise

    tx_hash = transfer.hash.lower()
    transfer_id = transfer.unique_id.lower() if transfer.unique_id else f"{tx_hash}:{log_index}"
    contract = transfer.raw_contract
    decimals = contract.decimal if contract else None
    token = (contract.address if contract and contract.address else ZERO_ADDRESS).lower()

    return NormalizedTransfer(
        id=transfer_id,
        tx_hash=tx_hash,
        log_index=log_index,
        block_number=transfer.block_num,
        timestamp=block_timestamp,
        token=token,
        symbol=transfer.asset,
        decimals=decimals,
        from_address=transfer.from_address.lower(),
        to_address=transfer.to_address.lower(),
        amount_raw=amount_raw,
        amount_dec=render_amount(amount_raw, decimals),
        chain=chain,
    )


def normalize_transfers(raws: Iterable[dict[str, Any]], chain: str) -> NormalizationBatch:
    """Normalize a page of vendor records, dropping other categories and collecting rejects."""
    batch = NormalizationBatch()
    for raw in raws:
        if raw.get("category") != TransferCategory.ERC20.value:
            batch.skipped_categories += 1
            continue
        try:
            batch.transfers.append(normalize_transfer(raw, chain))
        except NormalizationError as exc:
            logger.warning("Rejected transfer %s: %s", raw.get("uniqueId") or raw.get("hash"), exc)
            batch.rejected.append(RejectedTransfer(payload=raw, reason=str(exc)))
    return batch


def dedupe_by_id(transfers: Iterable[NormalizedTransfer]) -> list[NormalizedTransfer]:
    """Collapse duplicate ids; the last-seen record wins, first-seen position is kept."""
    by_id: dict[str, NormalizedTransfer] = {}
    for transfer in transfers:
        by_id[transfer.id] = transfer
    return list(by_id.values())
