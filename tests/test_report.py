import logging
from datetime import datetime, timezone

from core.pinger import InvocationEvent, InvocationResult
from core.report import extract_tasks, log_result

TS = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
EVENT = InvocationEvent(ts=TS, hour=12, label="12x")


def _ok(data, status=200):
    return InvocationResult(ok=True, url="http://x", ts=TS, status=status, body=str(data), data=data)


def test_extract_tasks():
    assert extract_tasks([1, 2]) == [1, 2]
    assert extract_tasks({"tasks": ["a"]}) == ["a"]
    assert extract_tasks({"tasks": "nope"}) is None
    assert extract_tasks("text") is None


def test_success_line_has_timestamp_status_and_data(caplog):
    with caplog.at_level(logging.INFO, logger="pinger.report"):
        log_result(EVENT, _ok({"resumed": 1}))

    assert f"[{TS.isoformat()}] API call successful: 200" in caplog.text
    assert "Response data: {'resumed': 1}" in caplog.text


def test_non_2xx_is_logged_as_warning_not_failure(caplog):
    with caplog.at_level(logging.INFO, logger="pinger.report"):
        log_result(EVENT, _ok("oops", status=503))

    levels = {r.levelno for r in caplog.records}
    assert logging.WARNING in levels
    assert logging.ERROR not in levels
    assert "API call successful: 503" in caplog.text


def test_failure_with_status_logs_status_and_data(caplog):
    result = InvocationResult(ok=False, url="http://x", ts=TS, status=502, data="partial", error="TimeoutError: timed out")
    with caplog.at_level(logging.INFO, logger="pinger.report"):
        log_result(EVENT, result)

    assert "API call failed: TimeoutError: timed out" in caplog.text
    assert "Response status: 502" in caplog.text
    assert "Response data: partial" in caplog.text


def test_tasks_are_iterated_only_when_enabled(caplog):
    data = {"tasks": [{"id": "t1"}, {"id": "t2"}]}

    with caplog.at_level(logging.INFO, logger="pinger.report"):
        log_result(EVENT, _ok(data))
    assert "task 1/2" not in caplog.text

    caplog.clear()
    with caplog.at_level(logging.INFO, logger="pinger.report"):
        log_result(EVENT, _ok(data), log_tasks=True)
    assert "task 1/2: {'id': 't1'}" in caplog.text
    assert "task 2/2: {'id': 't2'}" in caplog.text


def test_empty_task_list(caplog):
    with caplog.at_level(logging.INFO, logger="pinger.report"):
        log_result(EVENT, _ok([]), log_tasks=True)
    assert "no tasks returned" in caplog.text
