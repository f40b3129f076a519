from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from controller_relay.api.deps import get_app_settings
from controller_relay.core.config import Settings

CONTROLLER_PAGE = "controller.html"

router = APIRouter()


@router.get("/", include_in_schema=False)
def controller_page(settings: Settings = Depends(get_app_settings)) -> FileResponse:
    page = Path(settings.static_dir) / CONTROLLER_PAGE
    if not page.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Controller page not found",
        )
    return FileResponse(page)
