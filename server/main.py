"""
Tabular data gateway entry point.

Wires settings, logging and the dependency container, and exposes the
dispatcher to the protocol layer through an async lifespan:

    async with lifespan() as dispatcher:
        envelope = await dispatcher.dispatch("query", {"table": "users"})
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from core.container import container
from core.logging import configure_logging, get_logger
from services.gateway.dispatcher import DataDispatcher

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan() -> AsyncIterator[DataDispatcher]:
    """Gateway lifespan management.

    Adapter misconfiguration (missing credentials) is raised from startup and
    is expected to terminate the process at the transport layer.
    """
    settings = container.settings()
    configure_logging(settings)

    logger.info("Starting tabular data gateway", supabase_url=settings.supabase_url)

    adapter = container.adapter()
    await adapter.startup()
    try:
        dispatcher = container.dispatcher()
        logger.info("Gateway started successfully",
                    cache_ttl=settings.cache_ttl,
                    retry_policy=dispatcher.retry.policy.to_dict())
        yield dispatcher
    finally:
        await adapter.shutdown()
        logger.info("Gateway shutdown complete",
                    metrics=container.metrics().snapshot())
