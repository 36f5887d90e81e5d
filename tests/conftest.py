import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ledgersync.db.models.wallet import Wallet
from ledgersync.db.session import Base
import ledgersync.db.models  # noqa: F401 — register all models


@pytest.fixture()
async def engine():
    # StaticPool: every session shares the one in-memory database.
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await eng.dispose()


@pytest.fixture()
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture()
async def session(session_factory) -> AsyncSession:
    async with session_factory() as sess:
        yield sess


@pytest.fixture()
async def wallet(session: AsyncSession) -> Wallet:
    w = Wallet(chain="eth", address="0x00000000000000000000000000000000000000aa", label="treasury")
    session.add(w)
    await session.commit()
    return w


def _make_raw_transfer(
    tx_hash: str = "0x" + "ab" * 32,
    log_index: int | str | None = 3,
    block: int = 120,
    token: str = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    raw_value: str | None = "0xf4240",
    decimals: int | str | None = 6,
    value: float | str | None = 1.0,
    sender: str = "0x00000000000000000000000000000000000000BB",
    recipient: str = "0x00000000000000000000000000000000000000AA",
    unique_id: str | None = None,
    category: str = "erc20",
    timestamp: str | None = "2024-03-01T12:30:00.000Z",
) -> dict:
    """An `alchemy_getAssetTransfers` entry."""
    raw = {
        "blockNum": hex(block),
        "hash": tx_hash,
        "from": sender,
        "to": recipient,
        "value": value,
        "asset": "USDC",
        "category": category,
        "rawContract": {"address": token, "decimal": hex(decimals) if isinstance(decimals, int) else decimals, "value": raw_value},
        "uniqueId": unique_id if unique_id is not None else f"{tx_hash}:log:{log_index}",
    }
    if log_index is not None:
        raw["logIndex"] = log_index if isinstance(log_index, str) else hex(log_index)
    if timestamp is not None:
        raw["metadata"] = {"blockTimestamp": timestamp}
    return raw


@pytest.fixture()
def make_raw():
    return _make_raw_transfer
