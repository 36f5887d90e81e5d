import pytest

from ledgersync.config import Settings
from ledgersync.exceptions import ConfigurationError
from ledgersync.infra.blockchain.base import SyncOptions


class TestSettings:
    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.eth_lookback_blocks == 5000
        assert s.ingestion_max_pages == 8
        assert s.ingestion_max_block_span == 50_000
        assert s.ingestion_skip_recent_ms == 600_000
        assert s.embedding_dim == 768
        assert s.rpc_retryable_codes == [-32005, -32603, 429]

    def test_database_url(self):
        s = Settings(_env_file=None, db_user="u", db_password="p", db_host="db", db_port=6543, db_name="x")
        assert s.database_url == "postgresql+asyncpg://u:p@db:6543/x"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("INGESTION_MAX_PAGES", "3")
        assert Settings(_env_file=None).ingestion_max_pages == 3

    def test_require_rpc_url(self):
        with pytest.raises(ConfigurationError):
            Settings(_env_file=None, eth_rpc_url="  ").require_rpc_url()
        assert Settings(_env_file=None, eth_rpc_url="https://rpc").require_rpc_url() == "https://rpc"

    def test_require_openai_api_key(self):
        with pytest.raises(ConfigurationError):
            Settings(_env_file=None, openai_api_key="").require_openai_api_key()

    def test_sync_options_from_settings(self):
        options = SyncOptions.from_settings(Settings(_env_file=None, eth_lookback_blocks=10, ingestion_max_pages=2))
        assert options.lookback_blocks == 10
        assert options.max_pages == 2
        assert options.max_block_span == 50_000
        assert options.skip_if_synced_within_ms == 600_000
        assert options.skip_block_metadata is False
