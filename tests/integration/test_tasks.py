"""Job entry points wired through the container with mocked HTTP."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from dependency_injector import providers

from ledgersync.config import Settings
from ledgersync.container import Container
from ledgersync.db.repos.transfer_repo import TransferRepo
from ledgersync.db.repos.wallet_repo import WalletRepo
from ledgersync.exceptions import ConfigurationError
from ledgersync.infra.blockchain.evm.normalizer import normalize_transfer
from ledgersync.workers import tasks

TOKEN = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"


def _response(data, status_code: int = 200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = ""
    resp.json.return_value = data
    return resp


def _http_client():
    http = MagicMock()
    http.__aenter__.return_value = http
    http.__aexit__.return_value = None
    return http


def _container(engine, session_factory, http, **settings) -> Container:
    container = Container()
    container.settings.override(providers.Object(Settings(_env_file=None, **settings)))
    container.engine.override(providers.Object(engine))
    container.session_factory.override(providers.Object(session_factory))
    container.http_client.override(providers.Object(http))
    return container


class TestUpdatePrices:
    async def test_snapshots_known_tokens(self, engine, session, session_factory, make_raw):
        await TransferRepo(session).upsert_many([normalize_transfer(make_raw(token=TOKEN), "eth")])
        await session.commit()
        http = _http_client()
        http.get = AsyncMock(return_value=_response({TOKEN: {"usd": 0.9999}}))

        result = await tasks.update_prices(container=_container(engine, session_factory, http))

        assert result["status"] == "ok"
        assert result["chain"] == "eth"
        assert result["updated"] == 1
        assert result["processed_tokens"] == 1


class TestSyncWallets:
    async def test_syncs_due_wallet(self, engine, session, session_factory, make_raw):
        await WalletRepo(session).create("eth", "0x00000000000000000000000000000000000000AA")
        await session.commit()
        transfer = make_raw()

        async def post(url, json=None, headers=None):
            method = json["method"]
            if method == "eth_blockNumber":
                return _response({"jsonrpc": "2.0", "id": json["id"], "result": hex(200)})
            if method == "alchemy_getAssetTransfers":
                incoming = "toAddress" in json["params"][0]
                body = {"transfers": [transfer] if incoming else []}
                return _response({"jsonrpc": "2.0", "id": json["id"], "result": body})
            if method == "eth_getBlockByNumber":
                number = json["params"][0]
                return _response({"jsonrpc": "2.0", "id": json["id"], "result": {
                    "number": number, "hash": "0x" + "01" * 32, "parentHash": "0x" + "02" * 32, "timestamp": "0x65e1c6a8",
                }})
            raise AssertionError(f"unexpected RPC method {method}")

        http = _http_client()
        http.post = AsyncMock(side_effect=post)

        result = await tasks.sync_wallets(
            container=_container(engine, session_factory, http, eth_rpc_url="https://rpc.example")
        )

        assert result["status"] == "ok"
        assert result["processed"] == 1
        assert result["transfers"] == 1
        assert result["failures"] == []
        assert result["successes"][0]["address"] == "0x00000000000000000000000000000000000000aa"

    async def test_missing_rpc_url(self, engine, session_factory):
        with pytest.raises(ConfigurationError):
            await tasks.sync_wallets(container=_container(engine, session_factory, _http_client(), eth_rpc_url=""))


class TestUpdateEmbeddings:
    async def test_requires_api_key(self, engine, session_factory):
        container = _container(engine, session_factory, _http_client(), openai_api_key="")
        with pytest.raises(ConfigurationError):
            await tasks.update_embeddings(container=container)

    async def test_embeds_pending_transfers(self, engine, session, session_factory, make_raw):
        await TransferRepo(session).upsert_many([normalize_transfer(make_raw(), "eth")])
        await session.commit()
        http = _http_client()
        http.post = AsyncMock(return_value=_response({"data": [{"index": 0, "embedding": [0.1] * 1536}]}))

        result = await tasks.update_embeddings(
            container=_container(engine, session_factory, http, openai_api_key="sk-test")
        )

        assert result == {"status": "ok", "chain": "eth", "processed": 1, "batches": 1, "failed_batches": 0}


class TestCeleryRegistration:
    def test_tasks_registered(self):
        from ledgersync.workers.celery_app import celery_app

        assert {"sync_wallets", "update_prices", "update_embeddings"} <= set(celery_app.tasks.keys())
