from datetime import date, datetime

import pytest

from device_usage.analysis.savings import estimate_savings
from device_usage.analysis.sessions import reconstruct_sessions
from device_usage.analysis.summary import (
    build_daily_summaries,
    build_monthly_stats,
    format_daily_summary_text,
    format_duration,
    format_monthly_stats_text,
    monthly_stats_to_dict,
    overall_stats,
    summary_to_dict,
)
from device_usage.analysis.usage import aggregate_daily_usage
from device_usage.models import DeviceEvent, EventState

ON, OFF, AUTO_OFF = EventState.ON, EventState.OFF, EventState.AUTO_OFF
NOW = datetime(2024, 11, 30, 23, 0)


def ev(device_id, state, day, hour, minute=0):
    return DeviceEvent(device_id, state, datetime(2024, 11, day, hour, minute))


@pytest.fixture
def events():
    return [
        ev("fan", ON, 4, 10), ev("fan", OFF, 4, 11),
        ev("light", ON, 4, 18), ev("light", AUTO_OFF, 4, 18, 45),
        ev("fan", ON, 6, 9), ev("fan", OFF, 6, 9, 20),
        ev("heater", ON, 8, 0), ev("heater", OFF, 12, 0),  # too long
    ]


@pytest.fixture
def sessions(events):
    return reconstruct_sessions(events, NOW).sessions


def test_daily_summaries_skip_empty_days(sessions):
    summaries = build_daily_summaries(aggregate_daily_usage(sessions))

    assert [s.date for s in summaries] == [date(2024, 11, 4), date(2024, 11, 6)]
    first = summaries[0]
    assert first.total_duration_minutes == 105
    assert first.total_on_events == 2
    assert [u.device_id for u in first.devices] == ["fan", "light"]
    assert first.total_units_kwh == pytest.approx(0.105)


def test_calendar_complete_fills_range(sessions):
    summaries = build_daily_summaries(
        aggregate_daily_usage(sessions),
        date(2024, 11, 3),
        date(2024, 11, 7),
        calendar_complete=True,
    )

    assert [s.date.day for s in summaries] == [3, 4, 5, 6, 7]
    empty = summaries[0]
    assert empty.total_duration_minutes == 0
    assert empty.devices == []
    assert summaries[2].devices == []


def test_calendar_complete_without_data():
    assert build_daily_summaries([], calendar_complete=True) == []
    filled = build_daily_summaries([], date(2024, 2, 28), date(2024, 3, 1), calendar_complete=True)
    assert [s.date for s in filled] == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]


def test_monthly_stats(sessions):
    usage = aggregate_daily_usage(sessions)
    daily = build_daily_summaries(usage)
    savings = estimate_savings(sessions)
    stats = build_monthly_stats("2024-11", daily, savings, usage)

    assert stats.month == "2024-11"
    assert stats.days_with_usage == 2
    # the heater's too-long session still counts as a record and an ON event
    assert stats.total_records == 4
    assert stats.total_on_events == 4
    assert stats.total_duration_minutes == 125
    assert stats.total_units_kwh == pytest.approx(sum(d.total_units_kwh for d in daily))
    assert stats.total_cost == pytest.approx(125 / 60 * 0.06 * 7.5)
    assert [s.device_id for s in stats.energy_savings] == ["light"]
    assert stats.total_energy_saved_kwh == pytest.approx(2.1 * 60 / 1000)
    # savings are an estimate kept apart from measured totals
    assert stats.total_units_kwh == pytest.approx(125 / 60 * 0.06)


def test_monthly_stats_from_summaries_only(sessions):
    daily = build_daily_summaries(aggregate_daily_usage(sessions))
    stats = build_monthly_stats("2024-11", daily)
    assert stats.total_records == 3
    assert stats.total_on_events == 3


def test_excluded_sessions_keep_their_on_events():
    """A device with only a too-long session still adds to the day's ON events."""
    events = [
        ev("a", ON, 1, 10), ev("a", OFF, 1, 11),
        ev("b", ON, 1, 0), ev("b", OFF, 5, 0),  # 5760 minutes
    ]
    usage = aggregate_daily_usage(reconstruct_sessions(events, NOW).sessions)
    daily = build_daily_summaries(usage)

    assert len(daily) == 1
    assert daily[0].total_on_events == 2
    assert [u.device_id for u in daily[0].devices] == ["a"]
    assert daily[0].total_duration_minutes == 60

    stats = build_monthly_stats("2024-11", daily, daily_usage=usage)
    assert stats.total_on_events == 2
    assert stats.total_records == 2


def test_day_with_only_excluded_sessions_is_left_out():
    usage = aggregate_daily_usage(
        reconstruct_sessions([ev("b", ON, 1, 0), ev("b", OFF, 5, 0)], NOW).sessions
    )
    assert build_daily_summaries(usage) == []

    stats = build_monthly_stats("2024-11", [], daily_usage=usage)
    assert stats.total_on_events == 1
    assert stats.days_with_usage == 0


def test_monthly_stats_filters_other_months(sessions):
    daily = build_daily_summaries(aggregate_daily_usage(sessions))
    stats = build_monthly_stats("2024-12", daily)
    assert stats.daily_summaries == []
    assert stats.total_duration_minutes == 0
    assert stats.days_with_usage == 0


def test_presentation_rounding(sessions):
    daily = build_daily_summaries(aggregate_daily_usage(sessions))
    data = summary_to_dict(daily[0])

    assert data["date"] == "2024-11-04"
    assert data["total_units_kwh"] == 0.105
    assert data["total_cost"] == round(daily[0].total_cost, 2)
    assert data["devices"][0]["device_id"] == "fan"
    assert data["devices"][0]["last_used"] == "2024-11-04T11:00:00"


def test_monthly_stats_to_dict_labels_estimates(sessions):
    daily = build_daily_summaries(aggregate_daily_usage(sessions))
    data = monthly_stats_to_dict(build_monthly_stats("2024-11", daily, estimate_savings(sessions)))

    assert data["totals"]["days_with_usage"] == 2
    assert data["estimated_savings"]["energy_saved_kwh"] == 0.126
    assert data["estimated_savings"]["devices"][0]["estimate"] is True
    assert len(data["daily_breakdown"]) == 2


def test_overall_stats(events, sessions):
    stats = overall_stats(events, sessions)
    assert stats["total_events"] == 8
    assert stats["total_on_events"] == 4
    assert stats["total_auto_off_events"] == 1
    assert stats["total_sessions"] == 4
    assert stats["valid_sessions"] == 3
    assert stats["invalid_sessions"] == 1
    assert stats["running_devices"] == []
    assert stats["total_runtime_minutes"] == 125


@pytest.mark.parametrize("minutes,expected", [(0, "0m"), (45, "45m"), (155, "2h 35m"), (59.6, "1h 0m")])
def test_format_duration(minutes, expected):
    assert format_duration(minutes) == expected


def test_format_text(sessions):
    daily = build_daily_summaries(aggregate_daily_usage(sessions))
    text = format_daily_summary_text(daily[0])
    assert "Daily Summary for 2024-11-04" in text
    assert "Runtime: 1h 45m" in text

    stats = build_monthly_stats("2024-11", daily, estimate_savings(sessions))
    text = format_monthly_stats_text(stats)
    assert "Usage Summary: 2024-11" in text
    assert "Estimated savings (assuming 2.1h saved per auto-off)" in text
