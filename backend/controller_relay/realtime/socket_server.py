import logging
from typing import Any

import socketio

from controller_relay.core.config import get_settings
from controller_relay.core.request_meta import (
    extract_client_ip_from_environ,
    extract_user_agent_from_environ,
)
from controller_relay.realtime.events import (
    CONSUMER_RESPONSE_EVENT,
    PLAYER_ID_ASSIGNED_EVENT,
    ConnectionClosed,
    ConnectionOpened,
    DispatchResult,
    classify_message,
)
from controller_relay.realtime.router import EventRouter
from controller_relay.services.cleanup_scheduler import SessionCleanupScheduler
from controller_relay.services.connection_registry import ConnectionRegistry
from controller_relay.services.rate_limit_service import build_connect_rate_limiter
from controller_relay.services.session_store import SessionStore

logger = logging.getLogger(__name__)

settings = get_settings()


def _socket_cors_origins(origins: list[str]) -> str | list[str]:
    return "*" if "*" in origins else origins


sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=_socket_cors_origins(settings.cors_origins),
)

connection_registry = ConnectionRegistry()
session_store = SessionStore(player_id_prefix=settings.player_id_prefix)
event_router = EventRouter(connection_registry, session_store)
cleanup_scheduler = SessionCleanupScheduler(
    session_store,
    connection_registry,
    interval_seconds=settings.session_cleanup_interval_seconds,
    expiry_seconds=settings.session_expiry_seconds,
    stats_interval_seconds=settings.stats_log_interval_seconds,
)
connect_rate_limiter = build_connect_rate_limiter()


def _is_socket_connect_allowed(client_ip: str) -> bool:
    if not settings.rate_limit_enabled:
        return True
    decision = connect_rate_limiter.check(
        client_ip,
        limit=settings.websocket_connect_limit,
        window_seconds=settings.websocket_connect_window_seconds,
    )
    return decision.allowed


def ensure_background_tasks() -> None:
    cleanup_scheduler.ensure_started(sio.start_background_task)


async def _deliver(result: DispatchResult) -> None:
    for emission in result.emissions:
        if emission.is_broadcast:
            await sio.emit(emission.event, emission.payload)
        else:
            await sio.emit(emission.event, emission.payload, room=emission.to)


def _reply_payload(result: DispatchResult) -> dict | None:
    for emission in result.emissions:
        if emission.event == PLAYER_ID_ASSIGNED_EVENT:
            return emission.payload
    return None


@sio.event
async def connect(sid: str, environ: dict, auth: dict | None = None) -> bool:
    client_ip = extract_client_ip_from_environ(environ)
    if not _is_socket_connect_allowed(client_ip):
        return False

    ensure_background_tasks()
    logger.debug(
        "socket connect %s from %s (%s)",
        sid,
        client_ip,
        extract_user_agent_from_environ(environ),
    )
    await _deliver(event_router.dispatch(ConnectionOpened(sid, client_ip=client_ip)))
    return True


@sio.event
async def disconnect(sid: str, reason: Any = None) -> None:
    await _deliver(event_router.dispatch(ConnectionClosed(sid)))


@sio.on(CONSUMER_RESPONSE_EVENT)
async def consumer_response(sid: str, data: Any = None) -> None:
    logger.debug("response from consumer %s: %s", sid, data)


@sio.on("*")
async def relay_message(event: str, sid: str, data: Any = None, *_: Any) -> dict | None:
    result = event_router.dispatch(classify_message(sid, event, data))
    await _deliver(result)
    return _reply_payload(result)


def build_socket_app(api_app) -> socketio.ASGIApp:
    return socketio.ASGIApp(sio, other_asgi_app=api_app, socketio_path="socket.io")
