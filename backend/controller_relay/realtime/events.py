from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# inbound event names
IDENTITY_EVENT_NAMES = frozenset({"requestPlayerId", "identify"})
KEEP_ALIVE_EVENT_NAMES = frozenset({"ping", "heartbeat"})
PLAYER_INPUT_EVENT = "playerInput"
CONSUMER_RESPONSE_EVENT = "unityResponse"

# payload "kind" values that override the event name
IDENTITY_KIND = "identify"
KEEP_ALIVE_KIND = "ping"

# outbound event names
CONNECTION_OPENED_EVENT = "connectionOpened"
PLAYER_ID_ASSIGNED_EVENT = "playerIdAssigned"
CONTROLLER_CONNECTED_EVENT = "controllerConnected"
CONTROLLER_PING_EVENT = "controllerPing"
INPUT_TO_CONSUMER_EVENT = "inputToUnity"
CONTROLLER_DISCONNECTED_EVENT = "controllerDisconnected"


class MessageKind(str, Enum):
    IDENTITY_REQUEST = "identity_request"
    KEEP_ALIVE = "keep_alive"
    INPUT = "input"


class RelayIssue(str, Enum):
    UNREGISTERED_CONNECTION_INPUT = "unregistered_connection_input"
    DUPLICATE_CONNECTION = "duplicate_connection"
    STALE_ACTIVITY = "stale_activity"
    UNKNOWN_MESSAGE_KIND = "unknown_message_kind"


@dataclass(frozen=True)
class ConnectionOpened:
    connection_id: str
    client_ip: str | None = None


@dataclass(frozen=True)
class ConnectionClosed:
    connection_id: str


@dataclass(frozen=True)
class InboundMessage:
    connection_id: str
    kind: MessageKind
    payload: dict[str, Any]
    event_name: str = PLAYER_INPUT_EVENT
    recognized: bool = True


RelayEvent = ConnectionOpened | ConnectionClosed | InboundMessage


@dataclass(frozen=True)
class Emission:
    event: str
    payload: dict[str, Any]
    to: str | None = None

    @property
    def is_broadcast(self) -> bool:
        return self.to is None


@dataclass
class DispatchResult:
    emissions: list[Emission] = field(default_factory=list)
    player_id: str | None = None
    issue: RelayIssue | None = None

    @property
    def dropped(self) -> bool:
        return not self.emissions and self.issue in {
            RelayIssue.UNREGISTERED_CONNECTION_INPUT,
            RelayIssue.STALE_ACTIVITY,
        }


def normalize_payload(data: Any) -> dict[str, Any]:
    if data is None:
        return {}
    if isinstance(data, dict):
        return dict(data)
    return {"value": data}


def classify_message(connection_id: str, event_name: str, data: Any = None) -> InboundMessage:
    payload = normalize_payload(data)
    kind_field = payload.get("kind")
    if kind_field == IDENTITY_KIND or event_name in IDENTITY_EVENT_NAMES:
        kind = MessageKind.IDENTITY_REQUEST
    elif kind_field == KEEP_ALIVE_KIND or event_name in KEEP_ALIVE_EVENT_NAMES:
        kind = MessageKind.KEEP_ALIVE
    else:
        kind = MessageKind.INPUT
    recognized = (
        kind is not MessageKind.INPUT
        or event_name == PLAYER_INPUT_EVENT
    )
    return InboundMessage(
        connection_id=connection_id,
        kind=kind,
        payload=payload,
        event_name=event_name,
        recognized=recognized,
    )
