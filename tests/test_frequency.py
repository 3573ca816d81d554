from datetime import datetime, timezone

import pytest

from core.frequency import classify, hour_of, label_table


EXPECTED = {
    "24x": {0},
    "12x": {12},
    "6x": {6, 18},
    "4x": {4, 8, 16, 20},
    "3x": {3, 9, 15, 21},
    "2x": {2, 10, 14, 22},
    "1x": {1, 5, 7, 11, 13, 17, 19, 23},
}


def test_classify_covers_every_hour_exactly_once():
    seen = {}
    for label, hours in EXPECTED.items():
        for hour in hours:
            assert hour not in seen
            seen[hour] = label
    assert sorted(seen) == list(range(24))

    for hour, label in seen.items():
        assert classify(hour) == label, hour


@pytest.mark.parametrize(
    "hour,label",
    [(0, "24x"), (12, "12x"), (6, "6x"), (4, "4x"), (3, "3x"), (2, "2x"), (5, "1x"), (23, "1x")],
)
def test_classify_concrete_cases(hour, label):
    assert classify(hour) == label


def test_classify_is_idempotent():
    first = [classify(h) for h in range(24)]
    second = [classify(h) for h in range(24)]
    assert first == second


@pytest.mark.parametrize("bad", [-1, 24, 100, 3.0, "3", True])
def test_classify_rejects_out_of_range(bad):
    with pytest.raises(ValueError):
        classify(bad)


def test_hour_of_uses_requested_zone():
    ts = datetime(2026, 1, 15, 5, 30, tzinfo=timezone.utc)
    assert hour_of(ts, "UTC") == 5
    assert hour_of(ts, "Asia/Tokyo") == 14
    assert hour_of(ts, "America/New_York") == 0


def test_hour_of_naive_is_taken_as_is():
    assert hour_of(datetime(2026, 1, 15, 17, 0)) == 17


def test_label_table_has_all_hours():
    table = label_table()
    assert len(table) == 24
    assert table[0] == (0, "24x")
    assert table[18] == (18, "6x")
