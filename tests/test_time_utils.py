from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from burnup_forecaster.common.time_utils import iter_days, parse_date, parse_iso8601


@pytest.mark.parametrize(
    "raw, offset_hours",
    [
        ("2023-01-01T08:00:00.000-0800", -8),
        ("2023-01-01T16:00:00Z", 0),
        ("2023-01-01T17:00:00+01:00", 1),
        ("2023-01-01T16:00:00", 0),
    ],
)
def test_parse_iso8601_formats(raw: str, offset_hours: int) -> None:
    dt = parse_iso8601(raw)
    assert dt == datetime(2023, 1, 1, 16, tzinfo=timezone.utc)
    assert dt.utcoffset() == timedelta(hours=offset_hours)


def test_parse_date_accepts_strings_and_datetimes() -> None:
    assert parse_date("2023-01-05") == date(2023, 1, 5)
    assert parse_date("2023-01-05T23:00:00Z") == date(2023, 1, 5)
    assert parse_date(datetime(2023, 1, 5, 12)) == date(2023, 1, 5)


def test_iter_days_is_inclusive() -> None:
    assert list(iter_days(date(2023, 1, 30), date(2023, 2, 1))) == [
        date(2023, 1, 30),
        date(2023, 1, 31),
        date(2023, 2, 1),
    ]
    assert list(iter_days(date(2023, 2, 1), date(2023, 1, 30))) == []
