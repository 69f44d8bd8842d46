"""Daily and monthly usage summaries for presentation layers."""

from datetime import date, timedelta
from typing import Iterable

from ..models import (
    DailySummary,
    DeviceEvent,
    DeviceUsage,
    EnergySaving,
    EventState,
    MonthlyStats,
    Session,
    TerminalState,
)
from .savings import total_savings

KWH_DECIMALS = 3
COST_DECIMALS = 2


def _date_range(start: date, end: date) -> Iterable[date]:
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def build_daily_summaries(
    daily_usage: Iterable[DeviceUsage],
    start: date | None = None,
    end: date | None = None,
    calendar_complete: bool = False,
) -> list[DailySummary]:
    """Combine per-device day rows into one summary per date.

    Days without any qualifying session are left out, unless
    `calendar_complete` is set, in which case every day from `start` to `end`
    is present and empty days carry zero totals and no devices.
    """
    by_day: dict[date, DailySummary] = {}

    for usage in sorted(daily_usage, key=lambda u: (u.period, u.device_id)):
        day = date.fromisoformat(usage.period)
        if (start and day < start) or (end and day > end):
            continue
        summary = by_day.setdefault(day, DailySummary(date=day))
        # ON events count even when none of the sessions qualified
        summary.total_on_events += usage.on_events_count
        if usage.session_count == 0:
            continue
        summary.total_duration_minutes += usage.total_duration_minutes
        summary.total_units_kwh += usage.total_units_kwh
        summary.total_cost += usage.total_cost
        summary.devices.append(usage)

    if not calendar_complete:
        by_day = {day: s for day, s in by_day.items() if s.devices}
    else:
        if start is None or end is None:
            if not by_day:
                return []
            start = start or min(by_day)
            end = end or max(by_day)
        for day in _date_range(start, end):
            by_day.setdefault(day, DailySummary(date=day))

    return [by_day[day] for day in sorted(by_day)]


def build_monthly_stats(
    month: str,
    daily_summaries: Iterable[DailySummary],
    savings: Iterable[EnergySaving] = (),
    daily_usage: Iterable[DeviceUsage] | None = None,
) -> MonthlyStats:
    """Month totals from the daily summaries that fall in `month` (YYYY-MM).

    When the per-device `daily_usage` rows are given, record and ON event
    counts come from every row of the month, including days whose sessions
    were all excluded from the totals. Savings are estimates and stay in
    their own fields.
    """
    days = [s for s in daily_summaries if s.date.strftime("%Y-%m") == month]
    days.sort(key=lambda s: s.date)
    if daily_usage is None:
        total_records = sum(len(s.devices) for s in days)
        total_on_events = sum(s.total_on_events for s in days)
    else:
        rows = [u for u in daily_usage if u.period.startswith(f"{month}-")]
        total_records = len(rows)
        total_on_events = sum(u.on_events_count for u in rows)
    savings = list(savings)
    saved_kwh, saved_cost = total_savings(savings)

    return MonthlyStats(
        month=month,
        total_records=total_records,
        total_on_events=total_on_events,
        total_duration_minutes=sum(s.total_duration_minutes for s in days),
        total_units_kwh=sum(s.total_units_kwh for s in days),
        total_cost=sum(s.total_cost for s in days),
        days_with_usage=sum(1 for s in days if s.devices),
        daily_summaries=days,
        energy_savings=savings,
        total_energy_saved_kwh=saved_kwh,
        total_cost_saved=saved_cost,
    )


def overall_stats(events: Iterable[DeviceEvent], sessions: Iterable[Session]) -> dict:
    """Headline counts for a range: events, ON events, auto-offs and runtime."""
    events = list(events)
    sessions = list(sessions)
    counted = [s for s in sessions if s.counts_towards_totals]
    return {
        "total_events": len(events),
        "total_on_events": sum(1 for e in events if e.state == EventState.ON),
        "total_auto_off_events": sum(1 for e in events if e.state == EventState.AUTO_OFF),
        "total_sessions": len(sessions),
        "valid_sessions": len(counted),
        "invalid_sessions": len(sessions) - len(counted),
        "running_devices": sorted(
            {s.device_id for s in sessions if s.terminal_state == TerminalState.ONGOING}
        ),
        "total_runtime_minutes": sum(s.duration_minutes for s in counted),
    }


def usage_to_dict(usage: DeviceUsage) -> dict:
    return {
        "device_id": usage.device_id,
        "device_name": usage.device_name,
        "period": usage.period,
        "total_duration_minutes": round(usage.total_duration_minutes, 2),
        "average_session_minutes": round(usage.average_session_duration, 2),
        "session_count": usage.session_count,
        "on_events_count": usage.on_events_count,
        "auto_off_count": usage.auto_off_count,
        "total_units_kwh": round(usage.total_units_kwh, KWH_DECIMALS),
        "total_cost": round(usage.total_cost, COST_DECIMALS),
        "last_used": usage.last_used.isoformat() if usage.last_used else None,
        "wattage": usage.wattage_watts,
        "unit_price": usage.unit_price,
    }


def summary_to_dict(summary: DailySummary) -> dict:
    """Presentation form of a daily summary (kWh to 3 dp, cost to 2 dp)."""
    return {
        "date": summary.date.isoformat(),
        "total_duration_minutes": round(summary.total_duration_minutes, 2),
        "total_units_kwh": round(summary.total_units_kwh, KWH_DECIMALS),
        "total_cost": round(summary.total_cost, COST_DECIMALS),
        "total_on_events": summary.total_on_events,
        "devices": [usage_to_dict(u) for u in summary.devices],
    }


def saving_to_dict(saving: EnergySaving) -> dict:
    return {
        "device_id": saving.device_id,
        "device_name": saving.device_name,
        "total_auto_offs": saving.total_auto_offs,
        "energy_saved_kwh": round(saving.energy_saved_kwh, KWH_DECIMALS),
        "cost_saved": round(saving.cost_saved, COST_DECIMALS),
        "assumed_hours_per_event": saving.assumed_hours_per_event,
        "estimate": saving.is_estimate,
    }


def monthly_stats_to_dict(stats: MonthlyStats) -> dict:
    return {
        "month": stats.month,
        "totals": {
            "records": stats.total_records,
            "on_events": stats.total_on_events,
            "duration_minutes": round(stats.total_duration_minutes, 2),
            "units_kwh": round(stats.total_units_kwh, KWH_DECIMALS),
            "cost": round(stats.total_cost, COST_DECIMALS),
            "days_with_usage": stats.days_with_usage,
        },
        "estimated_savings": {
            "energy_saved_kwh": round(stats.total_energy_saved_kwh, KWH_DECIMALS),
            "cost_saved": round(stats.total_cost_saved, COST_DECIMALS),
            "devices": [saving_to_dict(s) for s in stats.energy_savings],
        },
        "daily_breakdown": [summary_to_dict(s) for s in stats.daily_summaries],
    }


def format_duration(minutes: float) -> str:
    """Format minutes as e.g. '2h 35m'."""
    total = int(round(minutes))
    hours, mins = divmod(total, 60)
    if hours:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def format_daily_summary_text(summary: DailySummary) -> str:
    """Format a daily summary as human-readable text."""
    lines = [
        f"Daily Summary for {summary.date.isoformat()}",
        f"- Runtime: {format_duration(summary.total_duration_minutes)}",
        f"- Consumption: {summary.total_units_kwh:.3f} kWh",
        f"- Cost: {summary.total_cost:.2f}",
        f"- ON events: {summary.total_on_events}",
    ]

    if summary.devices:
        for usage in summary.devices:
            lines.append(
                f"- {usage.device_name}: {format_duration(usage.total_duration_minutes)} "
                f"over {usage.session_count} session(s), "
                f"{usage.total_units_kwh:.3f} kWh, {usage.total_cost:.2f}"
            )
    else:
        lines.append("- No device usage")

    return "\n".join(lines)


def format_monthly_stats_text(stats: MonthlyStats) -> str:
    """Format monthly stats as human-readable text."""
    lines = [
        f"Usage Summary: {stats.month}",
        f"({stats.days_with_usage} days with usage)",
        "",
        "Totals:",
        f"  - Runtime: {format_duration(stats.total_duration_minutes)}",
        f"  - Consumption: {stats.total_units_kwh:.3f} kWh",
        f"  - Cost: {stats.total_cost:.2f}",
        f"  - ON events: {stats.total_on_events}",
    ]

    if stats.days_with_usage:
        lines.extend([
            "",
            "Daily Averages:",
            f"  - Consumption: {stats.total_units_kwh / stats.days_with_usage:.3f} kWh/day",
            f"  - Cost: {stats.total_cost / stats.days_with_usage:.2f}/day",
        ])

    if stats.energy_savings:
        hours = stats.energy_savings[0].assumed_hours_per_event
        lines.extend([
            "",
            f"Estimated savings (assuming {hours}h saved per auto-off):",
            f"  - Auto-offs: {sum(s.total_auto_offs for s in stats.energy_savings)}",
            f"  - Energy: {stats.total_energy_saved_kwh:.3f} kWh",
            f"  - Cost: {stats.total_cost_saved:.2f}",
        ])

    return "\n".join(lines)
