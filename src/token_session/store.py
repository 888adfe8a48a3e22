"""Redis client construction and error translation."""

from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator

import redis.asyncio as redis
from redis.asyncio.sentinel import Sentinel
from redis.exceptions import RedisError

from .config import RedisSettings, split_host
from .errors import StoreUnavailable

logger = logging.getLogger("token_session.store")


def create_redis_client(settings: RedisSettings) -> "redis.Redis":
    """Build a pooled asyncio Redis client for ``settings``.

    In Sentinel mode the returned client is bound to a
    ``SentinelConnectionPool``, which asks the Sentinels for the current
    master every time it opens a new connection.
    """
    common = dict(
        db=settings.db,
        password=settings.password,
        decode_responses=True,
        socket_connect_timeout=settings.connect_timeout,
        socket_timeout=settings.socket_timeout,
        health_check_interval=30,
        max_connections=settings.max_connections,
    )

    if settings.is_sentinel:
        sentinels = [split_host(address, default_port=26379) for address in settings.hosts]
        logger.info(
            "Using Redis Sentinel master %s via %s",
            settings.sentinel_master,
            ", ".join(settings.hosts),
        )
        sentinel = Sentinel(
            sentinels,
            socket_connect_timeout=settings.connect_timeout,
            socket_timeout=settings.socket_timeout,
        )
        return sentinel.master_for(settings.sentinel_master, **common)

    if settings.url:
        logger.info("Using Redis at %s", redact_redis_url(settings.url))
        return redis.from_url(settings.url, **common)

    host, port = split_host(settings.hosts[0])
    logger.info("Using Redis at %s:%s/%s", host, port, settings.db)
    return redis.Redis(host=host, port=port, **common)


async def verify_connection(client: "redis.Redis") -> None:
    async with store_errors("ping Redis"):
        await client.ping()
    logger.info("Redis connection established")


@asynccontextmanager
async def store_errors(action: str) -> AsyncIterator[None]:
    """Re-raise Redis failures inside the block as :class:`StoreUnavailable`."""
    try:
        yield
    except RedisError as exc:
        logger.error("Failed to %s: %s", action, exc)
        raise StoreUnavailable(f"Failed to {action}: {exc}") from exc


def as_text(value):
    """Decode a Redis reply to ``str``; clients built without ``decode_responses`` return bytes."""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def redact_redis_url(redis_url: str) -> str:
    if "@" in redis_url:
        return redis_url.split("@", 1)[-1]
    return redis_url


__all__ = ["as_text", "create_redis_client", "redact_redis_url", "store_errors", "verify_connection"]
