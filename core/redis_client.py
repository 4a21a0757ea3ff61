import logging

import redis

logger = logging.getLogger(__name__)


def create_redis_client(url: str, socket_timeout: float = 1.0) -> redis.Redis:
    """Redis client for the tracking caches and pub/sub.

    Short socket timeouts keep a slow or unreachable Redis from stalling the
    ingest pipeline; callers treat timeouts as an unavailable store.
    """
    logger.info(f"Connecting to Redis at {url.split('@')[-1]}")
    return redis.Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
        health_check_interval=30,
    )
