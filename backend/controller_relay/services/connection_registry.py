from dataclasses import dataclass, replace
from datetime import datetime, timezone
import logging
from threading import Lock
from typing import Callable

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Connection:
    connection_id: str
    opened_at: datetime
    last_active_at: datetime
    client_ip: str | None = None


class ConnectionRegistry:
    """Open transport connections. Knows nothing about player identity."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock
        self._connections: dict[str, Connection] = {}
        self._lock = Lock()

    def on_connect(self, connection_id: str, client_ip: str | None = None) -> bool:
        now = self._clock()
        with self._lock:
            replaced = connection_id in self._connections
            self._connections[connection_id] = Connection(
                connection_id=connection_id,
                opened_at=now,
                last_active_at=now,
                client_ip=client_ip,
            )
        if replaced:
            logger.warning("duplicate connect for open connection %s, overwriting", connection_id)
        return replaced

    def on_disconnect(self, connection_id: str) -> bool:
        with self._lock:
            return self._connections.pop(connection_id, None) is not None

    def touch(self, connection_id: str) -> None:
        now = self._clock()
        with self._lock:
            connection = self._connections.get(connection_id)
            if connection:
                connection.last_active_at = now

    def is_open(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._connections

    def get(self, connection_id: str) -> Connection | None:
        with self._lock:
            connection = self._connections.get(connection_id)
            return replace(connection) if connection else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)
