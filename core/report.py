# core/report.py
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List, Optional

if TYPE_CHECKING:
    from core.pinger import InvocationEvent, InvocationResult

log = logging.getLogger("pinger.report")


def extract_tasks(data: Any) -> Optional[List[Any]]:
    """Return the task list carried by a response, if there is one."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("tasks"), list):
        return data["tasks"]
    return None


def log_event(event: InvocationEvent) -> None:
    log.info("[%s] Current hour: %d, Frequency: %s", event.ts.isoformat(), event.hour, event.label)


def log_result(event: InvocationEvent, result: InvocationResult, *, log_tasks: bool = False) -> None:
    ts = result.ts.isoformat()

    if not result.ok:
        log.error("[%s] API call failed: %s", ts, result.error)
        if result.status is not None:
            log.error("Response status: %s", result.status)
        if result.data is not None:
            log.error("Response data: %s", result.data)
        return

    # Non-2xx is still a received response; flag it louder but keep the shape
    level = logging.INFO if result.status is not None and 200 <= result.status < 300 else logging.WARNING
    log.log(level, "[%s] API call successful: %s (frequency=%s, %dms)", ts, result.status, event.label, result.elapsed_ms)
    log.log(level, "Response data: %s", result.data)

    if not log_tasks:
        return

    tasks = extract_tasks(result.data)
    if tasks is None:
        return
    if not tasks:
        log.info("no tasks returned")
        return
    for i, task in enumerate(tasks, start=1):
        log.info("task %d/%d: %s", i, len(tasks), task)
