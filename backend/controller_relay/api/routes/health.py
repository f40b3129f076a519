from fastapi import APIRouter

from controller_relay.schemas.status import HealthRead

router = APIRouter()


@router.get("/health", response_model=HealthRead)
def health() -> HealthRead:
    return HealthRead()
