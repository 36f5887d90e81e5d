"""PriceSnapshotJob with a mocked price provider."""

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from ledgersync.db.repos.price_repo import PriceRepo
from ledgersync.db.repos.transfer_repo import TransferRepo
from ledgersync.exceptions import UpstreamProtocolError
from ledgersync.infra.blockchain.evm.normalizer import ZERO_ADDRESS, normalize_transfer
from ledgersync.workers.price_job import PriceSnapshotJob

NOW = datetime(2024, 3, 2, 8, 41, 17, tzinfo=UTC)
HOUR = datetime(2024, 3, 2, 8, tzinfo=UTC)
TOKENS = ["0x" + "11" * 20, "0x" + "22" * 20, "0x" + "33" * 20]


def _provider(prices=None, batch_size: int = 1, side_effect=None):
    provider = MagicMock()
    provider.max_batch_size = batch_size
    provider.get_token_prices = AsyncMock(return_value=prices or {}, side_effect=side_effect)
    return provider


async def _seed_tokens(session, make_raw, tokens):
    transfers = [normalize_transfer(make_raw(log_index=i, token=t), "eth") for i, t in enumerate(tokens)]
    await TransferRepo(session).upsert_many(transfers)
    await session.commit()


class TestPriceSnapshotJob:
    async def test_two_of_three_quotes_upserted(self, session, make_raw):
        await _seed_tokens(session, make_raw, TOKENS)
        prices = {TOKENS[0]: Decimal("1.5"), TOKENS[2]: Decimal("0.25")}
        provider = _provider(side_effect=lambda platform, batch: {t: prices[t] for t in batch if t in prices})

        result = await PriceSnapshotJob(session, provider, clock=lambda: NOW).run("eth")

        assert result.updated == 2
        assert result.processed_tokens == 3
        assert result.failed_batches == 0
        assert result.timestamp == HOUR
        assert provider.get_token_prices.await_count == 3
        repo = PriceRepo(session)
        assert (await repo.get("eth", TOKENS[0], HOUR)).usd == Decimal("1.5")
        assert await repo.get("eth", TOKENS[1], HOUR) is None

    async def test_zero_address_excluded(self, session, make_raw):
        await _seed_tokens(session, make_raw, [ZERO_ADDRESS, TOKENS[0]])
        provider = _provider()

        result = await PriceSnapshotJob(session, provider, clock=lambda: NOW).run("eth")

        assert result.processed_tokens == 1
        provider.get_token_prices.assert_awaited_once_with("ethereum", [TOKENS[0]])

    async def test_explicit_batch_size(self, session, make_raw):
        await _seed_tokens(session, make_raw, TOKENS)
        provider = _provider()

        await PriceSnapshotJob(session, provider, clock=lambda: NOW).run("eth", batch_size=2)

        batches = [c.args[1] for c in provider.get_token_prices.await_args_list]
        assert batches == [TOKENS[:2], TOKENS[2:]]

    async def test_provider_batch_size_default(self, session, make_raw):
        await _seed_tokens(session, make_raw, TOKENS)
        provider = _provider(batch_size=50)

        await PriceSnapshotJob(session, provider, clock=lambda: NOW).run("eth")

        provider.get_token_prices.assert_awaited_once()

    async def test_token_override_is_lowercased_and_deduplicated(self, session):
        provider = _provider(batch_size=50)

        result = await PriceSnapshotJob(session, provider, platform="polygon-pos", clock=lambda: NOW).run(
            "polygon", tokens=["0xAA", "0xaa", "0xBB"]
        )

        assert result.processed_tokens == 2
        provider.get_token_prices.assert_awaited_once_with("polygon-pos", ["0xaa", "0xbb"])

    async def test_failed_batch_is_skipped(self, session, make_raw):
        await _seed_tokens(session, make_raw, TOKENS)

        def quote(platform, batch):
            if batch == [TOKENS[1]]:
                raise UpstreamProtocolError("CoinGecko returned 400")
            return {batch[0]: Decimal("2")}

        provider = _provider(side_effect=quote)

        result = await PriceSnapshotJob(session, provider, clock=lambda: NOW).run("eth")

        assert result.updated == 2
        assert result.failed_batches == 1

    async def test_no_tokens(self, session):
        provider = _provider()

        result = await PriceSnapshotJob(session, provider, clock=lambda: NOW).run("eth")

        assert result.updated == 0
        assert result.processed_tokens == 0
        provider.get_token_prices.assert_not_awaited()
