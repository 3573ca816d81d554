# core/config.py
from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.scheduler import parse_schedule

DEFAULT_ENDPOINT = "https://cloud.blackbox.ai/api/cron/resume-stalled"
DEFAULT_TIMEOUT_S = 30.0
DEFAULT_SCHEDULE = "0 * * * *"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}

log = logging.getLogger("pinger.config")


def _parse_bool_env(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name, "").strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return default


def _parse_float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _parse_tz_env(env: Mapping[str, str], name: str) -> Optional[str]:
    raw = env.get(name, "").strip()
    if not raw:
        return None
    try:
        ZoneInfo(raw)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        log.warning("unknown time zone %s=%r, using host local time", name, raw)
        return None
    return raw


@dataclass(frozen=True)
class PingerConfig:
    endpoint: str = DEFAULT_ENDPOINT
    timeout_s: float = DEFAULT_TIMEOUT_S
    attach_frequency: bool = False  # add ?frequency=<label> to the request
    log_tasks: bool = False         # iterate a task list in the response
    run_on_startup: bool = True
    scheduler_enabled: bool = True
    schedule: str = DEFAULT_SCHEDULE
    timezone: Optional[str] = None  # None -> host local time

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def load_config(env: Optional[Mapping[str, str]] = None) -> PingerConfig:
    """
    Build the configuration from environment variables.

    Unparseable booleans, numbers and time zones fall back to their defaults. The schedule
    is validated eagerly because there is no sensible slot to fall back to.
    """
    env = os.environ if env is None else env

    schedule = env.get("SCHEDULE", "").strip() or DEFAULT_SCHEDULE
    parse_schedule(schedule)

    return PingerConfig(
        endpoint=env.get("API_ENDPOINT", "").strip() or DEFAULT_ENDPOINT,
        timeout_s=_parse_float_env(env, "API_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_S),
        attach_frequency=_parse_bool_env(env, "ATTACH_FREQUENCY", False),
        log_tasks=_parse_bool_env(env, "LOG_TASKS", False),
        run_on_startup=_parse_bool_env(env, "RUN_ON_STARTUP", True),
        scheduler_enabled=_parse_bool_env(env, "SCHEDULER_ENABLED", True),
        schedule=schedule,
        timezone=_parse_tz_env(env, "PINGER_TZ"),
    )
