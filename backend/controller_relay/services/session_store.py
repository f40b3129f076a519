"""
Player sessions that outlive the transport connections they ride on.

A session is keyed by a durable ``player_id`` and points at the connection
currently carrying that player, if any. The reverse index maps connection ids
back to player ids so inbound traffic can be stamped without the client
resending its identity. Both maps are guarded by one lock and every public
method holds it for its whole duration.

Concurrent claims to the same player id are last-write-wins: the latest
``resolve_or_create`` call becomes the session's current connection, while
the earlier connection keeps its reverse-index entry and still resolves to
the same session until it disconnects.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
import itertools
from threading import Lock
from typing import Callable


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PlayerSession:
    player_id: str
    current_connection_id: str | None
    created_at: datetime
    last_used: datetime
    session_count: int = 1
    reconnected: bool = False

    @property
    def is_idle(self) -> bool:
        return self.current_connection_id is None


class SessionStatus(str, Enum):
    BOUND = "bound"
    IDLE = "idle"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SessionLookup:
    status: SessionStatus
    session: PlayerSession | None = None

    @classmethod
    def unknown(cls) -> "SessionLookup":
        return cls(status=SessionStatus.UNKNOWN)


class SessionStore:
    def __init__(
        self,
        player_id_prefix: str = "player_",
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._player_id_prefix = player_id_prefix
        self._clock = clock
        self._sessions: dict[str, PlayerSession] = {}
        self._player_by_connection: dict[str, str] = {}
        self._counter = itertools.count(1)
        self._lock = Lock()

    def _next_player_id_locked(self) -> str:
        # the counter only moves forward, so evicted ids are never reissued
        while True:
            candidate = f"{self._player_id_prefix}{next(self._counter)}"
            if candidate not in self._sessions:
                return candidate

    def resolve_or_create(
        self,
        connection_id: str,
        requested_player_id: str | None = None,
    ) -> tuple[str, bool]:
        requested = requested_player_id.strip() if isinstance(requested_player_id, str) else ""
        now = self._clock()
        with self._lock:
            bound_player_id = self._player_by_connection.get(connection_id)
            if bound_player_id is not None:
                bound = self._sessions.get(bound_player_id)
                if bound is not None:
                    return bound.player_id, bound.reconnected
                self._player_by_connection.pop(connection_id, None)

            existing = self._sessions.get(requested) if requested else None
            if existing is not None:
                existing.current_connection_id = connection_id
                existing.last_used = now
                existing.session_count += 1
                existing.reconnected = True
                self._player_by_connection[connection_id] = existing.player_id
                return existing.player_id, True

            player_id = self._next_player_id_locked()
            self._sessions[player_id] = PlayerSession(
                player_id=player_id,
                current_connection_id=connection_id,
                created_at=now,
                last_used=now,
            )
            self._player_by_connection[connection_id] = player_id
            return player_id, False

    def session_for(self, connection_id: str) -> str | None:
        with self._lock:
            return self._player_by_connection.get(connection_id)

    def lookup(self, player_id: str) -> SessionLookup:
        with self._lock:
            session = self._sessions.get(player_id)
            if session is None:
                return SessionLookup.unknown()
            status = SessionStatus.IDLE if session.is_idle else SessionStatus.BOUND
            return SessionLookup(status=status, session=replace(session))

    def record_activity(self, player_id: str) -> bool:
        now = self._clock()
        with self._lock:
            session = self._sessions.get(player_id)
            if session is None:
                return False
            session.last_used = now
            return True

    def mark_disconnected(self, connection_id: str) -> str | None:
        now = self._clock()
        with self._lock:
            player_id = self._player_by_connection.pop(connection_id, None)
            if player_id is None:
                return None
            session = self._sessions.get(player_id)
            if session is None:
                return None
            # a connection superseded by a later rebind must not detach the newer one
            if session.current_connection_id == connection_id:
                session.current_connection_id = None
                session.last_used = now
            return player_id

    def evict_idle_since(self, threshold: timedelta, now: datetime | None = None) -> list[str]:
        cutoff = (now or self._clock()) - threshold
        with self._lock:
            evicted = [
                player_id
                for player_id, session in self._sessions.items()
                if session.is_idle and session.last_used < cutoff
            ]
            if not evicted:
                return []
            for player_id in evicted:
                self._sessions.pop(player_id, None)
            evicted_ids = set(evicted)
            stale_connections = [
                connection_id
                for connection_id, player_id in self._player_by_connection.items()
                if player_id in evicted_ids
            ]
            for connection_id in stale_connections:
                self._player_by_connection.pop(connection_id, None)
            return evicted

    def idle_count(self) -> int:
        with self._lock:
            return sum(1 for session in self._sessions.values() if session.is_idle)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
