"""Usage session reconstruction from device ON/OFF events."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Any, Iterable, Mapping

from ..events import normalize_timestamp, parse_events
from ..models import (
    Anomaly,
    AnomalyKind,
    DeviceEvent,
    EventState,
    Session,
    TerminalState,
    Validity,
)
from .usage import local_date

logger = logging.getLogger(__name__)

# Sessions longer than this are treated as data errors (72 hours)
MAX_SESSION_MINUTES = 4320

# OFF/AUTO_OFF sort before ON at the same instant so a close and a re-open
# at one timestamp pair up correctly. OFF ranks before AUTO_OFF so the
# winner of a same-instant duplicate does not depend on input order.
STATE_ORDER = {EventState.OFF: 0, EventState.AUTO_OFF: 1, EventState.ON: 2}


@dataclass
class ReconstructionResult:
    """Sessions for every device plus the anomalies found on the way."""

    sessions: list[Session] = field(default_factory=list)
    anomalies: list[Anomaly] = field(default_factory=list)

    def for_device(self, device_id: str) -> list[Session]:
        return [s for s in self.sessions if s.device_id == device_id]


def classify_duration(duration_minutes: float, max_session_minutes: float) -> Validity:
    """Classify a session length against the policy bounds."""
    if duration_minutes <= 0:
        return Validity.INVALID_ORDER
    if duration_minutes > max_session_minutes:
        return Validity.TOO_LONG
    return Validity.VALID


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def sort_events(events: Iterable[DeviceEvent]) -> list[DeviceEvent]:
    """Sort events by timestamp, deterministically breaking ties."""
    return sorted(
        events,
        key=lambda e: (e.timestamp, STATE_ORDER[e.state], e.id or ""),
    )


def _out_of_range(session: Session) -> Anomaly:
    if session.validity == Validity.INVALID_ORDER:
        reason = "non-positive duration"
    else:
        reason = f"longer than the maximum ({session.duration_minutes:.1f} min)"
    return Anomaly(
        kind=AnomalyKind.OUT_OF_RANGE_SESSION,
        message=f"Session excluded from totals: {reason}",
        device_id=session.device_id,
        timestamp=session.start,
    )


def _reconstruct_device(
    device_id: str,
    events: list[DeviceEvent],
    evaluation_time: datetime,
    max_session_minutes: float,
) -> tuple[list[Session], list[Anomaly]]:
    """Pair ON events with the next terminating event for one device.

    `events` must already be sorted.
    """
    sessions = []
    anomalies = []
    seen = set()
    open_on: DeviceEvent | None = None

    for event in events:
        if event.identity in seen:
            logger.debug("Duplicate event for %s at %s", device_id, event.timestamp)
            anomalies.append(
                Anomaly(
                    kind=AnomalyKind.DUPLICATE_EVENT,
                    message="Duplicate event ignored",
                    device_id=device_id,
                    timestamp=event.timestamp,
                    event_id=event.id,
                )
            )
            continue
        seen.add(event.identity)

        if event.state == EventState.ON:
            if open_on is not None:
                logger.warning(
                    "Abandoned ON for %s at %s (new ON at %s)",
                    device_id, open_on.timestamp, event.timestamp,
                )
                sessions.append(
                    Session(
                        device_id=device_id,
                        start=open_on.timestamp,
                        end=open_on.timestamp,
                        duration_minutes=0.0,
                        terminal_state=TerminalState.ABANDONED,
                        validity=Validity.INCOMPLETE,
                    )
                )
                anomalies.append(
                    Anomaly(
                        kind=AnomalyKind.ABANDONED_ON,
                        message=f"ON superseded by another ON at {event.timestamp.isoformat()}",
                        device_id=device_id,
                        timestamp=open_on.timestamp,
                        event_id=open_on.id,
                    )
                )
            open_on = event
            continue

        # OFF or AUTO_OFF
        if open_on is None:
            logger.warning("Orphan %s for %s at %s", event.state.value, device_id, event.timestamp)
            anomalies.append(
                Anomaly(
                    kind=AnomalyKind.ORPHAN_OFF,
                    message=f"{event.state.value} with no preceding ON",
                    device_id=device_id,
                    timestamp=event.timestamp,
                    event_id=event.id,
                )
            )
            continue

        duration = minutes_between(open_on.timestamp, event.timestamp)
        session = Session(
            device_id=device_id,
            start=open_on.timestamp,
            end=event.timestamp,
            duration_minutes=duration,
            terminal_state=TerminalState(event.state.value),
            validity=classify_duration(duration, max_session_minutes),
        )
        sessions.append(session)
        if session.validity != Validity.VALID:
            anomalies.append(_out_of_range(session))
        open_on = None

    if open_on is not None:
        duration = minutes_between(open_on.timestamp, evaluation_time)
        session = Session(
            device_id=device_id,
            start=open_on.timestamp,
            end=None,
            duration_minutes=duration,
            terminal_state=TerminalState.ONGOING,
            validity=classify_duration(duration, max_session_minutes),
        )
        sessions.append(session)
        if session.validity != Validity.VALID:
            anomalies.append(_out_of_range(session))

    return sessions, anomalies


def reconstruct_sessions(
    events: Iterable[DeviceEvent | Mapping[str, Any]],
    evaluation_time: datetime,
    max_session_minutes: float = MAX_SESSION_MINUTES,
) -> ReconstructionResult:
    """Reconstruct usage sessions from device events.

    Algorithm, independently per device:
    1. Sort events by timestamp (input order is not trusted).
    2. Skip events whose identity was already seen.
    3. ON while another ON is open: the old ON becomes a zero-length
       Incomplete session and the new ON takes its place.
    4. OFF/AUTO_OFF closes the open ON; with nothing open it is an orphan.
    5. An ON still open at the end is Ongoing up to `evaluation_time`.

    Malformed records are skipped with a validation anomaly; nothing here
    raises for bad data.
    """
    evaluation_time = normalize_timestamp(evaluation_time)
    parsed, anomalies = parse_events(events)

    by_device: dict[str, list[DeviceEvent]] = {}
    for event in sort_events(parsed):
        by_device.setdefault(event.device_id, []).append(event)

    result = ReconstructionResult(anomalies=anomalies)
    for device_id in sorted(by_device):
        sessions, device_anomalies = _reconstruct_device(
            device_id, by_device[device_id], evaluation_time, max_session_minutes
        )
        result.sessions.extend(sorted(sessions, key=lambda s: s.start))
        result.anomalies.extend(device_anomalies)

    logger.debug(
        "Reconstructed %d sessions from %d events (%d anomalies)",
        len(result.sessions), len(parsed), len(result.anomalies),
    )
    return result


def running_sessions(sessions: Iterable[Session]) -> list[Session]:
    """Sessions for devices that are currently switched on."""
    return [s for s in sessions if s.is_ongoing]


def longest_running_session(sessions: Iterable[Session]) -> Session | None:
    """The ongoing session that has been running longest, if any."""
    running = running_sessions(sessions)
    if not running:
        return None
    return max(running, key=lambda s: (s.duration_minutes, s.device_id))


def runtime_for_day(
    sessions: Iterable[Session], day: date, tz: tzinfo | None = None
) -> float:
    """Total counted runtime in minutes for sessions starting on `day`."""
    return sum(
        s.duration_minutes
        for s in sessions
        if s.counts_towards_totals and local_date(s.start, tz) == day
    )
