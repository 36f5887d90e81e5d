from dependency_injector import containers, providers

from ledgersync.config import Settings
from ledgersync.db.session import build_engine, build_session_factory
from ledgersync.infra.http.rate_limited_client import RateLimitedClient


class Container(containers.DeclarativeContainer):
    settings = providers.Singleton(Settings)

    engine = providers.Singleton(
        build_engine,
        database_url=settings.provided.database_url,
        echo=settings.provided.debug,
    )

    session_factory = providers.Singleton(
        build_session_factory,
        engine=engine,
    )

    # One client per job run; callers own its lifetime (async with).
    http_client = providers.Factory(
        RateLimitedClient,
        rate_per_second=settings.provided.rpc_rate_per_second,
    )
