"""Command-line entry point.

Usage:
    python -m ledgersync.cli sync [--chain eth] [--limit N] [--address 0x..] [--concurrency N]
    python -m ledgersync.cli prices [--chain eth] [--batch-size N] [--token 0x.. ...]
    python -m ledgersync.cli embeddings [--chain eth] [--batch-size N] [--max-records N]
    python -m ledgersync.cli add-wallet 0x.. [--chain eth] [--label NAME]
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional, Sequence

from ledgersync.config import settings
from ledgersync.exceptions import LedgerSyncError

logger = logging.getLogger("ledgersync.cli")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-5s %(name)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ledgersync", description="Wallet transfer ingestion and enrichment")
    parser.add_argument("--log-level", default=settings.log_level)
    commands = parser.add_subparsers(dest="command", required=True)

    sync = commands.add_parser("sync", help="Sync due wallets from the remote ledger")
    sync.add_argument("--chain", default=None)
    sync.add_argument("--limit", type=int, default=None, help="wallets to select this run")
    sync.add_argument("--address", default=None, help="sync only this wallet address")
    sync.add_argument("--concurrency", type=int, default=None)

    prices = commands.add_parser("prices", help="Snapshot current USD prices for known tokens")
    prices.add_argument("--chain", default=None)
    prices.add_argument("--batch-size", type=int, default=None)
    prices.add_argument("--token", dest="tokens", action="append", default=None, help="repeatable")

    embeddings = commands.add_parser("embeddings", help="Embed transfers that have no vector yet")
    embeddings.add_argument("--chain", default=None)
    embeddings.add_argument("--batch-size", type=int, default=None)
    embeddings.add_argument("--max-records", type=int, default=None)

    add_wallet = commands.add_parser("add-wallet", help="Start tracking a wallet address")
    add_wallet.add_argument("address")
    add_wallet.add_argument("--chain", default=None)
    add_wallet.add_argument("--label", default=None)
    return parser


async def _add_wallet(address: str, chain: Optional[str], label: Optional[str]) -> dict:
    from ledgersync.container import Container
    from ledgersync.db.repos.wallet_repo import WalletRepo

    container = Container()
    chain = chain or container.settings().chain
    engine = container.engine()
    try:
        async with container.session_factory()() as session:
            repo = WalletRepo(session)
            wallet = await repo.get_by_chain_and_address(chain, address)
            created = wallet is None
            if created:
                wallet = await repo.create(chain, address, label=label)
                await session.commit()
            return {"status": "ok", "created": created, "wallet_id": str(wallet.id), "address": wallet.address}
    finally:
        await engine.dispose()


async def dispatch(args: argparse.Namespace) -> dict:
    from ledgersync.workers import tasks

    if args.command == "sync":
        return await tasks.sync_wallets(
            chain=args.chain, limit=args.limit, address=args.address, concurrency=args.concurrency
        )
    if args.command == "prices":
        return await tasks.update_prices(chain=args.chain, batch_size=args.batch_size, tokens=args.tokens)
    if args.command == "embeddings":
        return await tasks.update_embeddings(
            chain=args.chain, batch_size=args.batch_size, max_records=args.max_records
        )
    if args.command == "add-wallet":
        return await _add_wallet(args.address, args.chain, args.label)
    raise ValueError(f"Unknown command {args.command!r}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        result = asyncio.run(dispatch(args))
    except LedgerSyncError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    except Exception:
        logger.exception("%s crashed", args.command)
        return 1
    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
