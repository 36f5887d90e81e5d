from pydantic_settings import BaseSettings

from ledgersync.exceptions import ConfigurationError


class Settings(BaseSettings):
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_name: str = "ledgersync"

    # Remote ledger (Alchemy-compatible JSON-RPC)
    eth_rpc_url: str = ""
    chain: str = "eth"
    eth_lookback_blocks: int = 5000
    ingestion_max_pages: int = 8
    ingestion_max_block_span: int = 50_000
    ingestion_skip_recent_ms: int = 10 * 60 * 1000
    ingestion_batch_size: int = 1  # wallets per driving-loop run
    ingestion_concurrency: int = 1
    rpc_max_attempts: int = 5
    rpc_base_delay: float = 0.5  # seconds
    rpc_max_delay: float = 8.0  # seconds
    rpc_retryable_codes: list[int] = [-32005, -32603, 429]
    rpc_rate_per_second: float = 10.0

    # Prices
    coingecko_api_key: str = ""
    coingecko_pro_api_key: str = ""
    coingecko_platform: str = "ethereum"
    price_batch_size: int | None = None

    # Embeddings
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 768
    embedding_batch_size: int = 32
    embedding_max_records: int = 200

    # Background workers
    redis_url: str = "redis://localhost:6379/0"

    log_level: str = "INFO"
    debug: bool = False

    @property
    def database_url(self) -> str:
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    def require_rpc_url(self) -> str:
        url = self.eth_rpc_url.strip()
        if not url:
            raise ConfigurationError("ETH_RPC_URL is not configured. Set it before running ingestion.")
        return url

    def require_openai_api_key(self) -> str:
        key = self.openai_api_key.strip()
        if not key:
            raise ConfigurationError("OPENAI_API_KEY is not configured. Set it before running the embedding job.")
        return key

    class Config:
        env_file = ".env"


settings = Settings()
