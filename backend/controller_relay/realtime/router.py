"""
Turn classified transport events into session updates and outbound emissions.

The router never talks to the network. ``dispatch`` returns the emissions for
the caller to send once every store operation has completed.
"""

import logging
from typing import Any

from controller_relay.realtime.events import (
    CONNECTION_OPENED_EVENT,
    CONTROLLER_CONNECTED_EVENT,
    CONTROLLER_DISCONNECTED_EVENT,
    CONTROLLER_PING_EVENT,
    INPUT_TO_CONSUMER_EVENT,
    PLAYER_ID_ASSIGNED_EVENT,
    ConnectionClosed,
    ConnectionOpened,
    DispatchResult,
    Emission,
    InboundMessage,
    MessageKind,
    RelayEvent,
    RelayIssue,
)
from controller_relay.services.connection_registry import ConnectionRegistry
from controller_relay.services.session_store import SessionStatus, SessionStore

logger = logging.getLogger(__name__)

REQUESTED_PLAYER_ID_FIELD = "requestedPlayerId"


class EventRouter:
    def __init__(self, connections: ConnectionRegistry, sessions: SessionStore) -> None:
        self.connections = connections
        self.sessions = sessions

    def dispatch(self, event: RelayEvent) -> DispatchResult:
        if isinstance(event, ConnectionOpened):
            return self._on_connection_opened(event)
        if isinstance(event, ConnectionClosed):
            return self._on_connection_closed(event)
        if event.kind is MessageKind.IDENTITY_REQUEST:
            return self._on_identity_request(event)
        if event.kind is MessageKind.KEEP_ALIVE:
            return self._on_keep_alive(event)
        return self._on_input(event)

    def _on_connection_opened(self, event: ConnectionOpened) -> DispatchResult:
        replaced = self.connections.on_connect(event.connection_id, client_ip=event.client_ip)
        logger.info("connection opened: %s", event.connection_id)
        return DispatchResult(
            emissions=[
                Emission(
                    CONNECTION_OPENED_EVENT,
                    {"connectionId": event.connection_id, "kind": "opened"},
                )
            ],
            issue=RelayIssue.DUPLICATE_CONNECTION if replaced else None,
        )

    def _on_identity_request(self, message: InboundMessage) -> DispatchResult:
        connection_id = message.connection_id
        self.connections.touch(connection_id)
        requested = message.payload.get(REQUESTED_PLAYER_ID_FIELD)
        player_id, is_reconnection = self.sessions.resolve_or_create(
            connection_id,
            requested if isinstance(requested, str) else None,
        )
        if is_reconnection:
            logger.info("player %s reconnected on %s", player_id, connection_id)
        else:
            if isinstance(requested, str) and requested.strip() and requested.strip() != player_id:
                logger.info(
                    "requested player %s unknown or expired, issued %s to %s",
                    requested,
                    player_id,
                    connection_id,
                )
            logger.info("player %s bound to %s", player_id, connection_id)
        return DispatchResult(
            emissions=[
                Emission(
                    PLAYER_ID_ASSIGNED_EVENT,
                    {"playerId": player_id, "isReconnection": is_reconnection},
                    to=connection_id,
                ),
                Emission(
                    CONTROLLER_CONNECTED_EVENT,
                    {
                        "playerId": player_id,
                        "connectionId": connection_id,
                        "kind": "reconnected" if is_reconnection else "connected",
                    },
                ),
            ],
            player_id=player_id,
        )

    def _on_keep_alive(self, message: InboundMessage) -> DispatchResult:
        connection_id = message.connection_id
        self.connections.touch(connection_id)
        player_id = self.sessions.session_for(connection_id)
        issue = None
        if player_id is not None and not self.sessions.record_activity(player_id):
            logger.debug("dropping ping for evicted player %s", player_id)
            player_id = None
            issue = RelayIssue.STALE_ACTIVITY
        return DispatchResult(
            emissions=[
                Emission(
                    CONTROLLER_PING_EVENT,
                    {"playerId": player_id, "connectionId": connection_id, "kind": "ping"},
                )
            ],
            player_id=player_id,
            issue=issue,
        )

    def _on_input(self, message: InboundMessage) -> DispatchResult:
        connection_id = message.connection_id
        self.connections.touch(connection_id)
        player_id = self.sessions.session_for(connection_id)
        if player_id is None:
            logger.warning(
                "dropping %s from %s: no player identity requested yet",
                message.event_name,
                connection_id,
            )
            return DispatchResult(issue=RelayIssue.UNREGISTERED_CONNECTION_INPUT)
        if not self.sessions.record_activity(player_id):
            logger.debug("dropping input for evicted player %s", player_id)
            return DispatchResult(issue=RelayIssue.STALE_ACTIVITY)

        if not message.recognized:
            logger.debug("relaying unknown event %s as input", message.event_name)
        logger.debug("input from %s (%s): %s", player_id, connection_id, message.payload)
        return DispatchResult(
            emissions=[
                Emission(
                    INPUT_TO_CONSUMER_EVENT,
                    stamp_input(message.payload, player_id, connection_id),
                )
            ],
            player_id=player_id,
            issue=None if message.recognized else RelayIssue.UNKNOWN_MESSAGE_KIND,
        )

    def _on_connection_closed(self, event: ConnectionClosed) -> DispatchResult:
        connection_id = event.connection_id
        player_id = self.sessions.mark_disconnected(connection_id)
        self.connections.on_disconnect(connection_id)

        payload: dict[str, Any] = {
            "connectionId": connection_id,
            "kind": "disconnected",
            "reconnectable": True,
        }
        if player_id is not None:
            lookup = self.sessions.lookup(player_id)
            superseded = (
                lookup.status is SessionStatus.BOUND
                and lookup.session is not None
                and lookup.session.current_connection_id != connection_id
            )
            if superseded:
                # player already rebound to a newer connection
                payload["superseded"] = True
                logger.info(
                    "superseded connection closed: %s (player %s now on another connection)",
                    connection_id,
                    player_id,
                )
            else:
                payload["playerId"] = player_id
                payload["reconnectable"] = lookup.status is not SessionStatus.UNKNOWN
                logger.info(
                    "connection closed: %s (player %s, session %s)",
                    connection_id,
                    player_id,
                    lookup.status.value,
                )
        else:
            logger.info("connection closed: %s (no player bound)", connection_id)
        return DispatchResult(
            emissions=[Emission(CONTROLLER_DISCONNECTED_EVENT, payload)],
            player_id=player_id,
        )


def stamp_input(payload: dict[str, Any], player_id: str, connection_id: str) -> dict[str, Any]:
    stamped = dict(payload)
    stamped["playerId"] = player_id
    stamped["connectionId"] = connection_id
    return stamped
