import logging

import redis

from controller_relay.core.config import get_settings

logger = logging.getLogger(__name__)


def get_redis_client(url: str | None = None) -> redis.Redis | None:
    redis_url = url or get_settings().redis_url
    if not redis_url:
        return None
    try:
        return redis.Redis.from_url(redis_url, decode_responses=True)
    except (redis.RedisError, ValueError):
        logger.warning("redis unavailable at %s, using in-memory counters", redis_url)
        return None
