from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from settings import Settings, get_settings


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))


router = APIRouter(include_in_schema=False)


@router.get("/datas", name="ui_dashboard", response_class=HTMLResponse)
async def ui_dashboard(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "device": f"{settings.device_host}:{settings.device_port}",
            "poll_interval": settings.poll_interval,
        },
    )
