from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, Request

from core.config import PingerConfig
from core.frequency import classify, label_table
from core.pinger import arun_once, make_event
from core.scheduler import HourlyScheduler
from models.run import RunRequest

router = APIRouter(prefix="/api", tags=["admin"])


def _config(request: Request) -> PingerConfig:
    return request.app.state.config


def _scheduler(request: Request) -> Optional[HourlyScheduler]:
    return request.app.state.scheduler


@router.get("/config")
def api_config(request: Request) -> dict:
    return _config(request).to_dict()


@router.get("/frequency")
def api_frequency(request: Request, hour: Optional[int] = Query(None, ge=0, le=23)) -> dict:
    if hour is None:
        hour = make_event(_config(request)).hour
    return {"hour": hour, "label": classify(hour)}


@router.get("/frequency/table")
def api_frequency_table() -> dict:
    rows = [{"hour": hour, "label": label} for hour, label in label_table()]
    return {"count": len(rows), "hours": rows}


@router.post("/run")
async def api_run(request: Request, body: Optional[RunRequest] = None) -> dict:
    body = body or RunRequest()
    result = await arun_once(
        _config(request),
        hour=body.hour,
        attach_frequency=body.attach_frequency,
    )
    return result.to_dict()


@router.get("/scheduler")
def api_scheduler(request: Request) -> dict:
    scheduler = _scheduler(request)
    if scheduler is None:
        return {"enabled": False, "running": False, "minute": None, "next_run": None, "runs": 0}
    return {
        "enabled": True,
        "running": scheduler.running,
        "minute": scheduler.minute,
        "next_run": scheduler.next_run().isoformat(),
        "runs": scheduler.runs,
    }
