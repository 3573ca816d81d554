# core/pinger.py
from __future__ import annotations

import asyncio
import codecs
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit
from urllib.request import Request, urlopen
from zoneinfo import ZoneInfo

from core.config import PingerConfig
from core.frequency import classify, hour_of
from core.report import log_event, log_result

log = logging.getLogger("pinger")

_CHUNK = 64 * 1024


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class InvocationEvent:
    ts: datetime
    hour: int
    label: str


@dataclass(frozen=True)
class InvocationResult:
    ok: bool
    url: str
    ts: datetime
    status: Optional[int] = None
    body: Optional[str] = None
    data: Any = None              # parsed JSON, or the raw text
    error: Optional[str] = None
    elapsed_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "url": self.url,
            "ts": self.ts.isoformat(),
            "status": self.status,
            "data": self.data,
            "error": self.error,
            "elapsed_ms": self.elapsed_ms,
        }


def build_url(endpoint: str, label: Optional[str] = None) -> str:
    if label is None:
        return endpoint
    parts = urlsplit(endpoint)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "frequency"]
    query.append(("frequency", label))
    return urlunsplit(parts._replace(query=urlencode(query)))


def _charset(headers: Any) -> str:
    charset = headers.get_content_charset() if headers is not None else None
    if charset:
        try:
            return codecs.lookup(charset).name
        except LookupError:
            log.warning("unknown response charset %r, decoding as utf-8", charset)
    return "utf-8"


def _reject_constant(name: str) -> Any:
    # JSONResponse cannot re-encode NaN/Infinity; keep such bodies as text
    raise ValueError(f"non-finite JSON constant {name}")


def _decode(raw: bytes, headers: Any) -> tuple[str, Any]:
    text = raw.decode(_charset(headers), errors="replace")
    try:
        return text, json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        return text, text


def _read_within(resp: Any, deadline: float) -> bytes:
    """Read the whole body, giving up once the overall deadline has passed."""
    chunks: list[bytes] = []
    while True:
        if time.monotonic() >= deadline:
            raise TimeoutError("response body not received within timeout")
        chunk = resp.read1(_CHUNK)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def _describe(exc: BaseException) -> str:
    if isinstance(exc, URLError) and not isinstance(exc, HTTPError):
        return f"{type(exc).__name__}: {exc.reason}"
    return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__


def invoke(endpoint: str, label: Optional[str] = None, *, timeout_s: float = 30.0) -> InvocationResult:
    """
    Issue exactly one GET to the endpoint.

    Any HTTP response counts as success, whatever its status. Only a missing
    response (timeout, DNS, refused connection, protocol error) is a failure.
    The body is read in chunks against an overall deadline, so a server that
    trickles bytes cannot hold the call open past timeout_s.
    Never raises for network problems.
    """
    url = build_url(endpoint, label)
    log.debug("GET %s (timeout %.1fs)", url, timeout_s)
    started = time.perf_counter()
    deadline = time.monotonic() + timeout_s

    def _elapsed() -> int:
        return int((time.perf_counter() - started) * 1000)

    status: Optional[int] = None
    try:
        req = Request(url, method="GET")
        try:
            with urlopen(req, timeout=timeout_s) as resp:
                status = int(getattr(resp, "status", 200))
                body, data = _decode(_read_within(resp, deadline), resp.headers)
        except HTTPError as e:
            # urllib raises on 4xx/5xx; it is still a response
            status = e.code
            body, data = _decode(_read_within(e, deadline), e.headers)
            e.close()
    except Exception as e:
        return InvocationResult(
            ok=False,
            url=url,
            ts=now_utc(),
            status=status,
            error=_describe(e),
            elapsed_ms=_elapsed(),
        )

    return InvocationResult(
        ok=True,
        url=url,
        ts=now_utc(),
        status=status,
        body=body,
        data=data,
        elapsed_ms=_elapsed(),
    )


async def ainvoke(endpoint: str, label: Optional[str] = None, *, timeout_s: float = 30.0) -> InvocationResult:
    """Same as invoke(), with the whole round trip bounded by timeout_s."""
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(invoke, endpoint, label, timeout_s=timeout_s),
            timeout=timeout_s,
        )
    except asyncio.TimeoutError:
        return InvocationResult(
            ok=False,
            url=build_url(endpoint, label),
            ts=now_utc(),
            error=f"timeout of {int(timeout_s * 1000)}ms exceeded",
            elapsed_ms=int(timeout_s * 1000),
        )


def make_event(config: PingerConfig, now: Optional[datetime] = None, *, hour: Optional[int] = None) -> InvocationEvent:
    if now is None:
        now = datetime.now(ZoneInfo(config.timezone)) if config.timezone else datetime.now().astimezone()
    if hour is None:
        hour = hour_of(now, config.timezone)
    return InvocationEvent(ts=now, hour=hour, label=classify(hour))


def _plan(
    config: PingerConfig,
    now: Optional[datetime],
    hour: Optional[int],
    attach_frequency: Optional[bool],
) -> tuple[InvocationEvent, Optional[str]]:
    event = make_event(config, now, hour=hour)
    log_event(event)
    attach = config.attach_frequency if attach_frequency is None else attach_frequency
    return event, (event.label if attach else None)


def run_once(
    config: PingerConfig,
    now: Optional[datetime] = None,
    *,
    hour: Optional[int] = None,
    attach_frequency: Optional[bool] = None,
) -> InvocationResult:
    """Blocking wrapper around arun_once(); must not be called from a running loop."""
    return asyncio.run(arun_once(config, now, hour=hour, attach_frequency=attach_frequency))


async def arun_once(
    config: PingerConfig,
    now: Optional[datetime] = None,
    *,
    hour: Optional[int] = None,
    attach_frequency: Optional[bool] = None,
) -> InvocationResult:
    event, label = _plan(config, now, hour, attach_frequency)
    result = await ainvoke(config.endpoint, label, timeout_s=config.timeout_s)
    log_result(event, result, log_tasks=config.log_tasks)
    return result
