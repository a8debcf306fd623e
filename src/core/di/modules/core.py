from dependency_injector import containers, providers

from src.core.config.settings import settings
from src.core.database.postgres_session import PostgresDatabase
from src.core.utils.clock import SystemClock


class CoreContainer(containers.DeclarativeContainer):
    """
    Core Infrastructure Container.
    """

    # Database
    db_backend = providers.Object(settings.database.backend)

    postgres_db = providers.Singleton(
        PostgresDatabase,
        dsn=settings.database.url,
        minconn=settings.database.pool_min_conn,
        maxconn=settings.database.pool_max_conn,
    )

    # Time source shared by every service; tests override it with a FrozenClock
    clock = providers.Singleton(SystemClock)
