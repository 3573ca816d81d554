from __future__ import annotations

# =============================================================================
# cron-pinger (FastAPI)
#
# Responsibilities:
# - Load configuration from the environment (core.config)
# - Run one invocation at startup, then hourly (core.scheduler)
# - Manual trigger (/api/run) and frequency lookups (/api/frequency)
# - Render a small dashboard (/) and text table (/txt)
# =============================================================================

# ---- stdlib ----
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

# ---- web ----
from fastapi import FastAPI
from starlette.templating import Jinja2Templates

# ---- local ----
from core.config import PingerConfig, load_config
from core.pinger import arun_once
from core.scheduler import HourlyScheduler, parse_schedule
from routers.admin import router as admin_router
from routers.dashboard import router as dashboard_router

log = logging.getLogger("pinger")

BASE_DIR = Path(__file__).resolve().parent


def create_app(config: Optional[PingerConfig] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg: PingerConfig = app.state.config
        log.info("pinger starting, endpoint=%s", cfg.endpoint)

        startup_task: Optional[asyncio.Task] = None
        if cfg.run_on_startup:
            log.info("running initial API call")
            startup_task = asyncio.create_task(arun_once(cfg))

        scheduler: Optional[HourlyScheduler] = None
        if cfg.scheduler_enabled:
            scheduler = HourlyScheduler(lambda: arun_once(cfg), minute=parse_schedule(cfg.schedule))
            scheduler.start()
            log.info("job will run every hour (%s)", cfg.schedule)
        app.state.scheduler = scheduler

        try:
            yield
        finally:
            if scheduler is not None:
                await scheduler.stop()
            if startup_task is not None:
                await startup_task

    app = FastAPI(title="cron-pinger", version="0.1", lifespan=lifespan)
    app.state.config = config or load_config()
    app.state.templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
    app.state.scheduler = None

    app.include_router(dashboard_router)
    app.include_router(admin_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
