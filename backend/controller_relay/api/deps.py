from controller_relay.core.config import Settings, get_settings
from controller_relay.realtime.router import EventRouter
from controller_relay.realtime.socket_server import event_router


def get_event_router() -> EventRouter:
    return event_router


def get_app_settings() -> Settings:
    return get_settings()
