from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from starlette.templating import Jinja2Templates

from core.config import PingerConfig
from core.frequency import label_table
from core.pinger import make_event

router = APIRouter(tags=["dashboard"])


def _templates(request: Request) -> Jinja2Templates:
    return request.app.state.templates


def _config(request: Request) -> PingerConfig:
    return request.app.state.config


@router.get("/", response_class=HTMLResponse)
def home(request: Request):
    config = _config(request)
    return _templates(request).TemplateResponse(
        request,
        "dashboard.html",
        {"config": config, "event": make_event(config), "table": label_table()},
    )


@router.get("/txt", response_class=PlainTextResponse)
def txt_table(request: Request) -> str:
    current = make_event(_config(request)).hour
    lines: list[str] = []
    for hour, label in label_table():
        marker = "*" if hour == current else " "
        lines.append(f"{marker} {hour:02d}:00  {label.rjust(3)}")
    return "\n".join(lines) + "\n"


@router.get("/healthz")
def healthz() -> dict:
    return {"ok": True}
