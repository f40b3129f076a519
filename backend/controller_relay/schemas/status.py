from pydantic import BaseModel


class HealthRead(BaseModel):
    status: str = "ok"


class RelayStatusRead(BaseModel):
    connections: int
    sessions: int
    idle_sessions: int
