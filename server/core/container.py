"""Dependency injection container for the gateway."""

from dependency_injector import containers, providers

from core.config import Settings
from core.cache import QueryCache
from services.gateway.adapter import SupabaseAdapter
from services.gateway.dispatcher import DataDispatcher
from services.gateway.metrics import MetricsAggregator
from services.gateway.retry import RetryExecutor, RetryPolicy


class Container(containers.DeclarativeContainer):
    """Gateway dependency injection container.

    Cache and metrics are process-wide singletons owned by the dispatcher.
    """

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Remote data adapter (client created in startup())
    adapter = providers.Singleton(
        SupabaseAdapter,
        settings=settings
    )

    cache = providers.Singleton(
        QueryCache,
        default_ttl=settings.provided.cache_ttl
    )

    metrics = providers.Singleton(
        MetricsAggregator
    )

    retry_policy = providers.Factory(
        RetryPolicy,
        max_attempts=settings.provided.retry_max_attempts,
        base_delay=settings.provided.retry_base_delay
    )

    retry_executor = providers.Factory(
        RetryExecutor,
        policy=retry_policy
    )

    dispatcher = providers.Singleton(
        DataDispatcher,
        adapter=adapter,
        cache=cache,
        metrics=metrics,
        retry=retry_executor,
        default_page_size=settings.provided.default_page_size,
        db_schema=settings.provided.db_schema,
        request_timeout=settings.provided.request_timeout
    )


# Global container instance
container = Container()
