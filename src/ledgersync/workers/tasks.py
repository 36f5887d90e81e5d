"""Job entry points: plain async functions plus their Celery task wrappers.

Each run builds its own engine, session factory and HTTP client from the
container and disposes the engine when done (no state shared between runs).
"""

import asyncio
import logging
from typing import Optional

from ledgersync.container import Container
from ledgersync.infra.blockchain.base import SyncOptions
from ledgersync.infra.blockchain.evm.alchemy_client import AlchemyClient
from ledgersync.infra.blockchain.evm.transfer_loader import EVMTransferLoader
from ledgersync.infra.embeddings.openai_client import OpenAIEmbeddingProvider
from ledgersync.infra.price.coingecko import CoinGeckoTokenPriceProvider
from ledgersync.workers.celery_app import celery_app
from ledgersync.workers.embedding_job import EmbeddingJob
from ledgersync.workers.price_job import PriceSnapshotJob
from ledgersync.workers.sync_pool import WalletSyncPool, select_wallets

logger = logging.getLogger(__name__)


async def sync_wallets(
    chain: Optional[str] = None,
    limit: Optional[int] = None,
    address: Optional[str] = None,
    concurrency: Optional[int] = None,
    container: Optional[Container] = None,
) -> dict:
    container = container or Container()
    settings = container.settings()
    chain = chain or settings.chain
    engine = container.engine()
    session_factory = container.session_factory()

    try:
        async with container.http_client() as http_client:
            client = AlchemyClient.from_settings(settings, http_client)
            async with session_factory() as session:
                wallets = await select_wallets(session, chain, limit or settings.ingestion_batch_size, address)
            if not wallets:
                logger.info("No wallets due for sync on %s", chain)

            pool = WalletSyncPool(
                session_factory,
                lambda session: EVMTransferLoader(session, client),
                concurrency=concurrency or settings.ingestion_concurrency,
                options=SyncOptions.from_settings(settings),
            )
            report = await pool.run(wallets)
    finally:
        await engine.dispose()

    return {
        "status": "ok" if not report.failures else "partial",
        "chain": chain,
        "processed": len(report.successes),
        "transfers": report.transfers_processed,
        "successes": [
            {
                "wallet_id": str(s.wallet_id),
                "address": s.address,
                "from_block": s.result.from_block,
                "to_block": s.result.to_block,
                "transfers": s.result.transfers_processed,
                "quarantined": s.result.quarantined,
                "has_more": s.result.has_more,
                "skipped": s.result.skipped,
                "duration_ms": s.duration_ms,
            }
            for s in report.successes
        ],
        "failures": [
            {"wallet_id": str(f.wallet_id), "address": f.address, "error": f.error, "duration_ms": f.duration_ms}
            for f in report.failures
        ],
    }


async def update_prices(
    chain: Optional[str] = None,
    batch_size: Optional[int] = None,
    tokens: Optional[list[str]] = None,
    container: Optional[Container] = None,
) -> dict:
    container = container or Container()
    settings = container.settings()
    chain = chain or settings.chain
    engine = container.engine()
    session_factory = container.session_factory()

    try:
        async with container.http_client() as http_client:
            provider = CoinGeckoTokenPriceProvider(
                http_client,
                api_key=settings.coingecko_api_key,
                pro_api_key=settings.coingecko_pro_api_key,
            )
            async with session_factory() as session:
                job = PriceSnapshotJob(session, provider, platform=settings.coingecko_platform)
                result = await job.run(chain, batch_size=batch_size or settings.price_batch_size, tokens=tokens)
    finally:
        await engine.dispose()

    return {
        "status": "ok" if not result.failed_batches else "partial",
        "chain": result.chain,
        "updated": result.updated,
        "processed_tokens": result.processed_tokens,
        "failed_batches": result.failed_batches,
        "timestamp": result.timestamp.isoformat(),
    }


async def update_embeddings(
    chain: Optional[str] = None,
    batch_size: Optional[int] = None,
    max_records: Optional[int] = None,
    container: Optional[Container] = None,
) -> dict:
    container = container or Container()
    settings = container.settings()
    chain = chain or settings.chain
    api_key = settings.require_openai_api_key()
    engine = container.engine()
    session_factory = container.session_factory()

    try:
        async with container.http_client() as http_client:
            provider = OpenAIEmbeddingProvider(
                http_client,
                api_key=api_key,
                model=settings.embedding_model,
                base_url=settings.openai_base_url,
                target_dimension=settings.embedding_dim,
            )
            async with session_factory() as session:
                job = EmbeddingJob(session, provider)
                result = await job.run(
                    chain,
                    batch_size=batch_size or settings.embedding_batch_size,
                    max_records=max_records or settings.embedding_max_records,
                )
    finally:
        await engine.dispose()

    return {
        "status": "ok" if not result.failed_batches else "partial",
        "chain": result.chain,
        "processed": result.processed,
        "batches": result.batches,
        "failed_batches": result.failed_batches,
    }


@celery_app.task(name="sync_wallets")
def sync_wallets_task(chain: Optional[str] = None, limit: Optional[int] = None, address: Optional[str] = None) -> dict:
    """Bridges to async code via asyncio.run(); each invocation owns its engine."""
    return asyncio.run(sync_wallets(chain=chain, limit=limit, address=address))


@celery_app.task(name="update_prices")
def update_prices_task(chain: Optional[str] = None, batch_size: Optional[int] = None) -> dict:
    return asyncio.run(update_prices(chain=chain, batch_size=batch_size))


@celery_app.task(name="update_embeddings")
def update_embeddings_task(chain: Optional[str] = None, max_records: Optional[int] = None) -> dict:
    return asyncio.run(update_embeddings(chain=chain, max_records=max_records))
