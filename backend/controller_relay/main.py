from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from controller_relay.api.routes import router as api_router
from controller_relay.api.routes.controller import router as controller_router
from controller_relay.core.config import get_settings
from controller_relay.realtime.socket_server import build_socket_app, ensure_background_tasks

settings = get_settings()

api_app = FastAPI(title=settings.app_name, debug=settings.debug)
api_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
api_app.include_router(api_router, prefix=settings.api_prefix)
api_app.include_router(controller_router)

if Path(settings.static_dir).is_dir():
    api_app.mount("/static", StaticFiles(directory=settings.static_dir), name="static")


@api_app.on_event("startup")
def on_startup() -> None:
    ensure_background_tasks()


app = build_socket_app(api_app)
