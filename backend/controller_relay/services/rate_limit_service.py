from dataclasses import dataclass
import logging
import threading
import time
from typing import Callable

import redis

from controller_relay.services.redis_client import get_redis_client

logger = logging.getLogger(__name__)

REDIS_KEY_PREFIX = "relay:connect"


@dataclass
class ConnectDecision:
    allowed: bool
    attempts: int
    limit: int
    retry_after_seconds: int


class ConnectRateLimiter:
    """Fixed-window limit on connection attempts per client address.

    Counts are shared through Redis when it answers; otherwise each process
    keeps its own counters.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = redis_client
        self._clock = clock
        self._memory_windows: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def check(self, client_ip: str, *, limit: int, window_seconds: int) -> ConnectDecision:
        safe_limit = max(1, int(limit))
        safe_window = max(1, int(window_seconds))
        identifier = client_ip or "unknown"
        decision = self._check_redis(identifier, safe_limit, safe_window)
        if decision is None:
            decision = self._check_memory(identifier, safe_limit, safe_window)
        if not decision.allowed:
            logger.warning(
                "connect rate limit hit for %s (%d/%d)",
                identifier,
                decision.attempts,
                decision.limit,
            )
        return decision

    def _check_redis(self, identifier: str, limit: int, window_seconds: int) -> ConnectDecision | None:
        if self._redis is None:
            return None
        bucket = int(self._clock() // window_seconds)
        redis_key = f"{REDIS_KEY_PREFIX}:{identifier}:{bucket}"
        try:
            pipe = self._redis.pipeline()
            pipe.incr(redis_key, 1)
            pipe.ttl(redis_key)
            attempts_value, ttl_value = pipe.execute()
            ttl = int(ttl_value) if isinstance(ttl_value, int) else -1
            if ttl < 0:
                self._redis.expire(redis_key, window_seconds + 1)
                ttl = window_seconds
        except redis.RedisError:
            logger.debug("redis rate limit check failed, falling back to memory", exc_info=True)
            return None
        attempts = int(attempts_value)
        allowed = attempts <= limit
        return ConnectDecision(
            allowed=allowed,
            attempts=attempts,
            limit=limit,
            retry_after_seconds=0 if allowed else ttl,
        )

    def _check_memory(self, identifier: str, limit: int, window_seconds: int) -> ConnectDecision:
        now_epoch = self._clock()
        with self._lock:
            expired = [
                key for key, (_, reset_epoch) in self._memory_windows.items() if now_epoch >= reset_epoch
            ]
            for key in expired:
                self._memory_windows.pop(key, None)

            attempts, reset_epoch = self._memory_windows.get(
                identifier,
                (0, now_epoch + window_seconds),
            )
            attempts += 1
            self._memory_windows[identifier] = (attempts, reset_epoch)

        allowed = attempts <= limit
        return ConnectDecision(
            allowed=allowed,
            attempts=attempts,
            limit=limit,
            retry_after_seconds=0 if allowed else max(1, int(reset_epoch - now_epoch + 0.999)),
        )


def build_connect_rate_limiter() -> ConnectRateLimiter:
    return ConnectRateLimiter(redis_client=get_redis_client())
