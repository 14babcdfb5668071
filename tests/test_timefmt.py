import datetime as dt

import pytest

from clinic_portal.services.timefmt import (
    TIME_SLOTS,
    combine,
    format_display_date,
    format_time_12h,
    month_bounds,
    parse_local_date,
    parse_time_12h,
    snap_to_slot,
    to_display_time,
    week_bounds,
)


@pytest.mark.parametrize(
    "label, expected",
    [
        ("12:00 AM", dt.time(0, 0)),
        ("12:30 PM", dt.time(12, 30)),
        ("01:00 PM", dt.time(13, 0)),
        ("9:05 am", dt.time(9, 5)),
        ("14:15", dt.time(14, 15)),
    ],
)
def test_parse_time_12h(label, expected):
    assert parse_time_12h(label) == expected


@pytest.mark.parametrize("label", ["", "  ", "13:00 PX", "25:00"])
def test_parse_time_12h_rejects_garbage(label):
    with pytest.raises(ValueError):
        parse_time_12h(label)


def test_format_time_12h_uses_slot_labels():
    assert format_time_12h(dt.time(0, 0)) == "12:00 AM"
    assert format_time_12h(dt.time(16, 30)) == "04:30 PM"
    assert all(format_time_12h(parse_time_12h(s)) == s for s in TIME_SLOTS)


def test_to_display_time_passes_through_12h_strings():
    assert to_display_time("09:00 AM") == "09:00 AM"
    assert to_display_time("13:30") == "01:30 PM"
    assert to_display_time("") == ""
    assert to_display_time("later") == "later"


def test_parse_local_date_ignores_utc_suffix():
    assert parse_local_date("2025-12-09T00:00:00.000Z") == dt.date(2025, 12, 9)
    assert parse_local_date("2025-12-09") == dt.date(2025, 12, 9)
    assert parse_local_date(dt.datetime(2025, 12, 9, 23, 59)) == dt.date(2025, 12, 9)
    assert parse_local_date(None) is None
    assert parse_local_date("not a date") is None
    assert parse_local_date("2025-02-30") is None


def test_combine_treats_bad_time_as_midnight():
    day = dt.date(2025, 3, 1)
    assert combine(day, "02:30 PM") == dt.datetime(2025, 3, 1, 14, 30)
    assert combine(day, "whenever") == dt.datetime(2025, 3, 1)
    assert combine(day, None) == dt.datetime(2025, 3, 1)


def test_week_bounds_run_sunday_to_saturday():
    # 2025-12-10 is a Wednesday
    assert week_bounds(dt.date(2025, 12, 10)) == (dt.date(2025, 12, 7), dt.date(2025, 12, 13))
    assert week_bounds(dt.date(2025, 12, 7)) == (dt.date(2025, 12, 7), dt.date(2025, 12, 13))


def test_month_bounds_handles_december():
    assert month_bounds(dt.date(2025, 12, 15)) == (dt.date(2025, 12, 1), dt.date(2025, 12, 31))
    assert month_bounds(dt.date(2024, 2, 10)) == (dt.date(2024, 2, 1), dt.date(2024, 2, 29))


def test_format_display_date():
    assert format_display_date("2025-12-09T00:00:00.000Z") == "Tue, Dec 9"
    assert format_display_date("2025-12-09", with_year=True) == "Tue, Dec 9, 2025"
    assert format_display_date(None) == ""


def test_snap_to_slot():
    assert snap_to_slot(dt.time(9, 10)) == "09:00 AM"
    assert snap_to_slot(dt.time(7, 0)) == "08:00 AM"
    assert snap_to_slot(dt.time(18, 0)) == "04:30 PM"
