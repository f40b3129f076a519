from fastapi import APIRouter

from controller_relay.api.routes.health import router as health_router
from controller_relay.api.routes.status import router as status_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(status_router, tags=["status"])
