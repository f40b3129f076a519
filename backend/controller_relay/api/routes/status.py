from fastapi import APIRouter, Depends

from controller_relay.api.deps import get_event_router
from controller_relay.realtime.router import EventRouter
from controller_relay.schemas.status import RelayStatusRead

router = APIRouter()


@router.get("/status", response_model=RelayStatusRead)
def relay_status(relay: EventRouter = Depends(get_event_router)) -> RelayStatusRead:
    return RelayStatusRead(
        connections=len(relay.connections),
        sessions=len(relay.sessions),
        idle_sessions=relay.sessions.idle_count(),
    )
