"""Data models for device events, sessions and usage reports."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum


class EventState(str, Enum):
    """Power state carried by a device event."""

    ON = "ON"
    OFF = "OFF"
    AUTO_OFF = "AUTO_OFF"


class TerminalState(str, Enum):
    """How a session ended."""

    OFF = "OFF"
    AUTO_OFF = "AUTO_OFF"
    ONGOING = "Ongoing"
    ABANDONED = "Abandoned"  # superseded by a later ON


class Validity(str, Enum):
    VALID = "Valid"
    INVALID_ORDER = "InvalidOrder"
    TOO_LONG = "TooLong"
    INCOMPLETE = "Incomplete"


class AnomalyKind(str, Enum):
    VALIDATION_ERROR = "validation_error"
    ORPHAN_OFF = "orphan_off"
    ABANDONED_ON = "abandoned_on"
    DUPLICATE_EVENT = "duplicate_event"
    OUT_OF_RANGE_SESSION = "out_of_range_session"
    MISSING_METADATA = "missing_metadata"


@dataclass(frozen=True)
class DeviceEvent:
    """A single power-state transition."""

    device_id: str
    state: EventState
    timestamp: datetime
    id: str | None = None

    @property
    def identity(self) -> tuple:
        """Event id when present, else (device_id, timestamp)."""
        if self.id is not None:
            return ("id", self.id)
        return ("at", self.device_id, self.timestamp)


@dataclass(frozen=True)
class Session:
    """A reconstructed ON -> OFF/AUTO_OFF interval (or ON -> now)."""

    device_id: str
    start: datetime
    end: datetime | None
    duration_minutes: float
    terminal_state: TerminalState
    validity: Validity

    @property
    def is_ongoing(self) -> bool:
        return self.terminal_state == TerminalState.ONGOING

    @property
    def counts_towards_totals(self) -> bool:
        """Only valid sessions (closed or ongoing) add to runtime totals."""
        return self.validity == Validity.VALID

    @property
    def last_seen(self) -> datetime:
        """End of the session, or the evaluation instant for ongoing ones."""
        if self.end is not None:
            return self.end
        return self.start + timedelta(minutes=self.duration_minutes)


@dataclass(frozen=True)
class Anomaly:
    """A non-fatal diagnostic recorded while processing events."""

    kind: AnomalyKind
    message: str
    device_id: str | None = None
    timestamp: datetime | None = None
    event_id: str | None = None


@dataclass(frozen=True)
class DeviceInfo:
    """Metadata needed to cost a device's runtime."""

    device_id: str
    name: str
    wattage_watts: float
    unit_price: float
    is_default: bool = False  # True when no metadata was registered


@dataclass
class DeviceUsage:
    """Usage totals for one device over one period."""

    device_id: str
    period: str
    total_duration_minutes: float
    session_count: int
    total_units_kwh: float
    total_cost: float
    last_used: datetime | None
    device_name: str
    wattage_watts: float
    unit_price: float
    on_events_count: int = 0
    auto_off_count: int = 0

    @property
    def average_session_duration(self) -> float:
        if self.session_count == 0:
            return 0.0
        return self.total_duration_minutes / self.session_count


@dataclass
class EnergySaving:
    """Estimated energy avoided by automatic switch-offs.

    This is an estimate derived from an assumed number of hours saved per
    auto-off, not a measurement.
    """

    device_id: str
    device_name: str
    total_auto_offs: int
    energy_saved_kwh: float
    cost_saved: float
    assumed_hours_per_event: float
    is_estimate: bool = True


@dataclass
class DailySummary:
    """All device usage for a single date."""

    date: date
    total_duration_minutes: float = 0.0
    total_units_kwh: float = 0.0
    total_cost: float = 0.0
    total_on_events: int = 0
    devices: list[DeviceUsage] = field(default_factory=list)


@dataclass
class MonthlyStats:
    """Month-level totals, daily breakdown and estimated savings."""

    month: str  # YYYY-MM
    total_records: int
    total_on_events: int
    total_duration_minutes: float
    total_units_kwh: float
    total_cost: float
    days_with_usage: int
    daily_summaries: list[DailySummary]
    energy_savings: list[EnergySaving]
    total_energy_saved_kwh: float
    total_cost_saved: float


@dataclass
class UsageReport:
    """Everything computed from one (events, config, evaluation_time) call."""

    daily_summaries: list[DailySummary]
    monthly_stats: MonthlyStats
    anomalies: list[Anomaly]
    sessions: list[Session]
    evaluation_time: datetime
