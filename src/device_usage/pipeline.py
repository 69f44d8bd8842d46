"""End-to-end usage computation: events in, summaries and diagnostics out.

Everything here is a pure function of (events, config, evaluation_time).
Callers polling for live figures can simply call again and keep the latest
result.
"""

import calendar
import logging
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from .analysis.savings import estimate_savings
from .analysis.sessions import reconstruct_sessions
from .analysis.summary import build_daily_summaries, build_monthly_stats
from .analysis.usage import aggregate_daily_usage, local_date, month_key
from .config import ConfigError, UsageConfig
from .events import normalize_timestamp
from .models import Anomaly, AnomalyKind, DeviceEvent, DeviceInfo, UsageReport
from .tariffs import CostModel, DeviceResolver

logger = logging.getLogger(__name__)


def month_bounds(month: str) -> tuple[date, date]:
    """First and last day of a YYYY-MM month.

    Raises ConfigError for anything that is not a valid YYYY-MM month.
    """
    try:
        first = datetime.strptime(month, "%Y-%m").date()
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid month: {month!r} (expected YYYY-MM)") from e
    last = calendar.monthrange(first.year, first.month)[1]
    return first, first.replace(day=last)


def _safe_resolver(resolver: DeviceResolver | None) -> DeviceResolver | None:
    """Wrap a resolver so a failing lookup falls back to defaults."""
    if resolver is None:
        return None

    def resolve(device_id: str) -> DeviceInfo | None:
        try:
            return resolver(device_id)
        except Exception:
            logger.exception("Device lookup failed for %s, using defaults", device_id)
            return None

    return resolve


def build_cost_model(config: UsageConfig, resolver: DeviceResolver | None = None) -> CostModel:
    return CostModel(
        resolver=_safe_resolver(resolver),
        default_wattage=config.default_wattage,
        default_unit_price=config.default_unit_price,
    )


def reconstruct_and_aggregate(
    events: Iterable[DeviceEvent | Mapping[str, Any]],
    config: UsageConfig | None,
    evaluation_time: datetime,
    resolver: DeviceResolver | None = None,
    month: str | None = None,
    calendar_complete: bool = False,
) -> UsageReport:
    """Reconstruct sessions and build daily summaries and monthly stats.

    Args:
        events: Raw or parsed device events, in any order
        config: Pipeline options (defaults when None)
        evaluation_time: The instant treated as "now" for ongoing sessions
        resolver: Device metadata lookup; unknown devices use the defaults
        month: YYYY-MM for the monthly stats (defaults to evaluation month)
        calendar_complete: Fill days without usage in the month with empty
            summaries instead of leaving them out

    Returns:
        UsageReport with best-effort results and all recorded anomalies

    Raises:
        ConfigError: If `month` is not a valid YYYY-MM month. Bad event
            data never raises.
    """
    config = config or UsageConfig()
    tz = config.tzinfo
    evaluation_time = normalize_timestamp(evaluation_time)
    cost_model = build_cost_model(config, resolver)

    result = reconstruct_sessions(events, evaluation_time, config.max_session_minutes)
    anomalies = list(result.anomalies)

    for device_id in sorted({s.device_id for s in result.sessions}):
        if cost_model.resolve(device_id).is_default:
            logger.info("No metadata for %s, using defaults", device_id)
            anomalies.append(
                Anomaly(
                    kind=AnomalyKind.MISSING_METADATA,
                    message=(
                        f"No metadata registered, using {config.default_wattage:g} W "
                        f"at {config.default_unit_price:g}/kWh"
                    ),
                    device_id=device_id,
                )
            )

    month = month or month_key(local_date(evaluation_time, tz))
    month_start, month_end = month_bounds(month)

    daily_usage = aggregate_daily_usage(result.sessions, cost_model, tz)
    if calendar_complete:
        daily_summaries = build_daily_summaries(
            daily_usage, month_start, month_end, calendar_complete=True
        )
    else:
        daily_summaries = build_daily_summaries(daily_usage)

    month_sessions = [
        s for s in result.sessions if month_start <= local_date(s.start, tz) <= month_end
    ]
    savings = estimate_savings(month_sessions, cost_model, config.avg_hours_saved_per_auto_off)
    monthly_stats = build_monthly_stats(month, daily_summaries, savings, daily_usage)

    return UsageReport(
        daily_summaries=daily_summaries,
        monthly_stats=monthly_stats,
        anomalies=anomalies,
        sessions=result.sessions,
        evaluation_time=evaluation_time,
    )
