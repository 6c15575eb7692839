"""
Chirp worker - arq worker entry point.

Run with ``arq chirp_worker.main.WorkerSettings``.
"""

from typing import Any

from arq.connections import RedisSettings

from chirp_core import get_logger, init_logging
from chirp_core.config import Settings
from chirp_core.services import HubNotifier
from chirp_database import SqlFeedStore
from chirp_database.session import close_database, init_database

from .tasks.hub_notifier import notify_hubs_task

logger = get_logger(__name__)

settings = Settings()


async def startup(ctx: dict[str, Any]) -> None:
    """Initialize the store and notifier shared by all jobs."""
    init_logging(settings.log_level)
    session_factory = init_database(settings.database_url)
    ctx["store"] = SqlFeedStore(session_factory)
    ctx["notifier"] = HubNotifier(settings.federation())
    logger.info("Chirp worker started", extra={"version": settings.version})


async def shutdown(ctx: dict[str, Any]) -> None:
    """Release database resources."""
    await close_database()
    logger.info("Chirp worker stopped")


class WorkerSettings:
    """arq worker configuration."""

    functions = [notify_hubs_task]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    # Hub pings are never retried by the worker.
    max_tries = 1
    keep_result = 3600
