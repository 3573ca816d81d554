#!/usr/bin/env python3
"""
Command line entry point.

Default: one invocation, then exit 0 (Cloud Run Job / external cron).
--schedule: one invocation, then stay on the hourly trigger until SIGTERM/SIGINT.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace
from typing import List, Optional

from core.config import PingerConfig, load_config
from core.pinger import arun_once
from core.scheduler import HourlyScheduler, install_signal_handlers, parse_schedule

log = logging.getLogger("pinger")


def _configure_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cron-pinger", description="Ping the configured API endpoint.")
    parser.add_argument("--schedule", action="store_true", help="keep running and ping every hour")
    parser.add_argument("--hour", type=int, choices=range(24), metavar="H", help="override the hour (0-23)")
    parser.add_argument("--attach-frequency", action="store_true", default=None, help="send ?frequency=<label>")
    return parser


async def run(config: PingerConfig, *, schedule: bool, hour: Optional[int] = None) -> int:
    log.info("cron job scheduler started")
    await arun_once(config, hour=hour)

    if not schedule:
        return 0

    scheduler = HourlyScheduler(lambda: arun_once(config), minute=parse_schedule(config.schedule))
    install_signal_handlers(scheduler)
    log.info("job will run at minute %02d of every hour (%s)", scheduler.minute, config.schedule)
    await scheduler.start()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging()

    try:
        config = load_config()
    except ValueError as e:
        log.error("invalid configuration: %s", e)
        return 2

    if args.attach_frequency:
        config = replace(config, attach_frequency=True)

    return asyncio.run(run(config, schedule=args.schedule, hour=args.hour))


if __name__ == "__main__":
    sys.exit(main())
