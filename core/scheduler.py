# core/scheduler.py
from __future__ import annotations

import asyncio
import logging
import signal
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, List, Optional

log = logging.getLogger("pinger.scheduler")

Job = Callable[[], Awaitable[Any]]
Clock = Callable[[], datetime]


def _local_now() -> datetime:
    return datetime.now().astimezone()


def parse_schedule(expr: str) -> int:
    """
    Parse an hourly cron expression ("M * * * *") and return its minute.

    Only hourly schedules are supported; anything else raises ValueError.
    """
    fields = expr.split()
    if len(fields) != 5:
        raise ValueError(f"expected 5 cron fields, got {len(fields)}: {expr!r}")
    minute, *rest = fields
    if any(f != "*" for f in rest):
        raise ValueError(f"only hourly schedules ('M * * * *') are supported: {expr!r}")
    if not minute.isdigit() or not 0 <= int(minute) <= 59:
        raise ValueError(f"minute must be 0-59: {expr!r}")
    return int(minute)


def next_run_at(now: datetime, minute: int = 0) -> datetime:
    candidate = now.replace(minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(hours=1)
    return candidate


def seconds_until_next_run(now: datetime, minute: int = 0) -> float:
    return (next_run_at(now, minute) - now).total_seconds()


class HourlyScheduler:
    """
    Await `job` once an hour at `minute` past the hour.

    Runs never overlap: the next slot is computed after the job returns.
    Stopping prevents further runs but does not cancel one in flight.
    """

    def __init__(self, job: Job, *, minute: int = 0, clock: Clock = _local_now) -> None:
        self.job = job
        self.minute = minute
        self.clock = clock
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_run(self) -> datetime:
        return next_run_at(self.clock(), self.minute)

    async def run_forever(self) -> None:
        log.info("scheduler started, minute=%02d", self.minute)
        while not self._stop.is_set():
            delay = seconds_until_next_run(self.clock(), self.minute)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass

            self.runs += 1
            try:
                await self.job()
            except Exception:
                log.exception("scheduled run %d failed", self.runs)
        log.info("scheduler stopped after %d run(s)", self.runs)

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._stop.clear()
        self._task = asyncio.create_task(self.run_forever())
        return self._task

    def request_stop(self) -> None:
        self._stop.set()

    async def stop(self) -> None:
        self.request_stop()
        if self._task is not None:
            await self._task


def install_signal_handlers(scheduler: HourlyScheduler, loop: Optional[asyncio.AbstractEventLoop] = None) -> List[signal.Signals]:
    """Route SIGTERM/SIGINT to scheduler.request_stop(). Returns the signals wired."""
    loop = loop or asyncio.get_running_loop()
    installed: List[signal.Signals] = []

    def _handle(sig: signal.Signals) -> None:
        log.warning("%s received, shutting down gracefully", sig.name)
        scheduler.request_stop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, _handle, sig)
        except (NotImplementedError, RuntimeError):
            # e.g. Windows event loops, or not in the main thread
            continue
        installed.append(sig)
    return installed
