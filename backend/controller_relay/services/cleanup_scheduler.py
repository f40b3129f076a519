import asyncio
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Callable

from controller_relay.services.connection_registry import ConnectionRegistry
from controller_relay.services.session_store import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_INTERVAL_SECONDS = 300.0
DEFAULT_SESSION_EXPIRY_SECONDS = 600.0

TaskStarter = Callable[..., Any]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionCleanupScheduler:
    """Periodically evicts idle sessions; optionally logs relay counts.

    A late or skipped tick only lengthens the effective expiry, since each
    sweep compares against the current time.
    """

    def __init__(
        self,
        sessions: SessionStore,
        connections: ConnectionRegistry | None = None,
        *,
        interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
        expiry_seconds: float = DEFAULT_SESSION_EXPIRY_SECONDS,
        stats_interval_seconds: float = 0.0,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.sessions = sessions
        self.connections = connections
        self.interval_seconds = max(0.01, float(interval_seconds))
        self.expiry = timedelta(seconds=max(0.0, float(expiry_seconds)))
        self.stats_interval_seconds = float(stats_interval_seconds)
        self._clock = clock
        self._cleanup_task: Any = None
        self._stats_task: Any = None

    def sweep(self) -> list[str]:
        evicted = self.sessions.evict_idle_since(self.expiry, self._clock())
        for player_id in evicted:
            logger.info("evicted idle session %s", player_id)
        return evicted

    def log_stats(self) -> None:
        connection_count = len(self.connections) if self.connections is not None else 0
        logger.info(
            "relay stats: connections=%d sessions=%d idle_sessions=%d",
            connection_count,
            len(self.sessions),
            self.sessions.idle_count(),
        )

    async def run_cleanup(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.sweep()
            except Exception:
                logger.exception("session cleanup sweep failed")

    async def run_stats(self) -> None:
        while True:
            await asyncio.sleep(self.stats_interval_seconds)
            try:
                self.log_stats()
            except Exception:
                logger.exception("stats logging failed")

    def ensure_started(self, start_task: TaskStarter) -> None:
        if not _is_running(self._cleanup_task):
            self._cleanup_task = start_task(self.run_cleanup)
            logger.info(
                "session cleanup every %.0fs, expiry %.0fs",
                self.interval_seconds,
                self.expiry.total_seconds(),
            )
        if self.stats_interval_seconds > 0 and not _is_running(self._stats_task):
            self._stats_task = start_task(self.run_stats)


def _is_running(task: Any) -> bool:
    if task is None:
        return False
    done = getattr(task, "done", None)
    return not done() if callable(done) else True
