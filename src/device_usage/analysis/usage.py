"""Per-device usage aggregation over days, weeks and months.

Days are the primitive period. Week, month and whole-range totals are always
built by summing day rows so that every level agrees with the others.
"""

from datetime import date, datetime, timezone, tzinfo
from typing import Iterable

from ..models import DeviceUsage, Session, TerminalState
from ..tariffs import CostModel, calculate_consumption

PERIODS = ("day", "week", "month", "all")
ALL_PERIOD = "all"


def local_date(ts: datetime, tz: tzinfo | None = None) -> date:
    """Calendar date of a naive-UTC timestamp in the given timezone."""
    if tz is None:
        return ts.date()
    return ts.replace(tzinfo=timezone.utc).astimezone(tz).date()


def day_key(day: date) -> str:
    return day.isoformat()


def week_key(day: date) -> str:
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def period_key(day: date, period: str) -> str:
    if period == "day":
        return day_key(day)
    if period == "week":
        return week_key(day)
    if period == "month":
        return month_key(day)
    if period == ALL_PERIOD:
        return ALL_PERIOD
    raise ValueError(f"Unknown period: {period!r} (expected one of {', '.join(PERIODS)})")


def aggregate_daily_usage(
    sessions: Iterable[Session],
    cost_model: CostModel | None = None,
    tz: tzinfo | None = None,
) -> list[DeviceUsage]:
    """Build one DeviceUsage per (device, day) from sessions.

    Sessions are attributed to the day they started on. Only valid sessions
    (including ongoing ones within the limit) contribute runtime; every
    session counts as an ON event for the day.
    """
    cost_model = cost_model or CostModel()
    buckets: dict[tuple[str, str], dict] = {}

    for session in sessions:
        key = (day_key(local_date(session.start, tz)), session.device_id)
        bucket = buckets.setdefault(
            key,
            {"minutes": 0.0, "count": 0, "on_events": 0, "auto_offs": 0, "last_used": None},
        )
        bucket["on_events"] += 1
        if session.terminal_state == TerminalState.AUTO_OFF:
            bucket["auto_offs"] += 1
        if not session.counts_towards_totals:
            continue
        bucket["minutes"] += session.duration_minutes
        bucket["count"] += 1
        if bucket["last_used"] is None or session.last_seen > bucket["last_used"]:
            bucket["last_used"] = session.last_seen

    usages = []
    for (day, device_id), bucket in sorted(buckets.items()):
        info = cost_model.resolve(device_id)
        kwh, cost = calculate_consumption(bucket["minutes"], info.wattage_watts, info.unit_price)
        usages.append(
            DeviceUsage(
                device_id=device_id,
                period=day,
                total_duration_minutes=bucket["minutes"],
                session_count=bucket["count"],
                total_units_kwh=kwh,
                total_cost=cost,
                last_used=bucket["last_used"],
                device_name=info.name,
                wattage_watts=info.wattage_watts,
                unit_price=info.unit_price,
                on_events_count=bucket["on_events"],
                auto_off_count=bucket["auto_offs"],
            )
        )
    return usages


def rollup_usage(daily_usage: Iterable[DeviceUsage], period: str) -> list[DeviceUsage]:
    """Sum day-level rows into week, month or whole-range rows."""
    if period == "day":
        return sorted(daily_usage, key=lambda u: (u.period, u.device_id))

    rolled: dict[tuple[str, str], DeviceUsage] = {}
    for usage in sorted(daily_usage, key=lambda u: (u.period, u.device_id)):
        key = (period_key(date.fromisoformat(usage.period), period), usage.device_id)
        total = rolled.get(key)
        if total is None:
            rolled[key] = DeviceUsage(
                device_id=usage.device_id,
                period=key[0],
                total_duration_minutes=usage.total_duration_minutes,
                session_count=usage.session_count,
                total_units_kwh=usage.total_units_kwh,
                total_cost=usage.total_cost,
                last_used=usage.last_used,
                device_name=usage.device_name,
                wattage_watts=usage.wattage_watts,
                unit_price=usage.unit_price,
                on_events_count=usage.on_events_count,
                auto_off_count=usage.auto_off_count,
            )
            continue

        total.total_duration_minutes += usage.total_duration_minutes
        total.session_count += usage.session_count
        total.total_units_kwh += usage.total_units_kwh
        total.total_cost += usage.total_cost
        total.on_events_count += usage.on_events_count
        total.auto_off_count += usage.auto_off_count
        if usage.last_used is not None and (
            total.last_used is None or usage.last_used > total.last_used
        ):
            total.last_used = usage.last_used

    return [rolled[key] for key in sorted(rolled)]


def aggregate_usage(
    sessions: Iterable[Session],
    period: str = "day",
    cost_model: CostModel | None = None,
    tz: tzinfo | None = None,
) -> list[DeviceUsage]:
    """Per-device usage for the requested period ('day', 'week', 'month', 'all')."""
    if period not in PERIODS:
        raise ValueError(f"Unknown period: {period!r} (expected one of {', '.join(PERIODS)})")
    return rollup_usage(aggregate_daily_usage(sessions, cost_model, tz), period)
