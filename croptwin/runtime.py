"""Process wiring: logging, Redis, database session and a ready coordinator."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from croptwin.config import Settings, get_settings
from croptwin.database import async_session_factory
from croptwin.log_config import configure_structured_logging
from croptwin.services.change_log_cache import ChangeLogCache
from croptwin.services.crop_parameters import CropParameterTable
from croptwin.services.engine import CropTwinEngine
from croptwin.services.twin_state import TwinStateCoordinator
from croptwin.store.sql import SqlAlchemyTwinStore

logger = structlog.get_logger("croptwin.runtime")


async def _connect_redis(settings: Settings) -> Redis | None:
    if not settings.change_log_cache_enabled:
        return None
    redis = Redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await redis.ping()
    except RedisError as exc:
        logger.warning("change_log_cache_unavailable", error=str(exc))
        await redis.aclose()
        return None
    return redis


@asynccontextmanager
async def twin_runtime(
    settings: Settings | None = None,
    crop_parameters: CropParameterTable | None = None,
) -> AsyncIterator[TwinStateCoordinator]:
    """Yield a coordinator bound to one database session.

    The session commits when the block exits cleanly and rolls back when it
    raises.  The Redis connection is closed on exit either way.
    """
    settings = settings or get_settings()
    configure_structured_logging(settings)
    logger.info("croptwin_runtime_starting", log_level=settings.log_level)

    redis = await _connect_redis(settings)
    engine = CropTwinEngine(crop_parameters=crop_parameters, settings=settings)
    cache = ChangeLogCache(
        redis,
        ttl_seconds=settings.change_log_cache_ttl_seconds,
        max_entries=settings.change_log_cache_max_entries,
    )
    try:
        async with async_session_factory() as session:
            coordinator = TwinStateCoordinator(
                SqlAlchemyTwinStore(session),
                engine,
                change_log_cache=cache,
                settings=settings,
            )
            try:
                yield coordinator
                await session.commit()
            except Exception:
                await session.rollback()
                raise
    finally:
        logger.info("croptwin_runtime_stopping")
        if redis is not None:
            await redis.aclose()
