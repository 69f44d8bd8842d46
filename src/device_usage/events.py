"""Parsing of raw device event records.

Event stores hand back loosely-typed rows (dicts from CSV/JSON/REST). These
helpers turn them into DeviceEvent objects, skipping anything malformed.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from .models import Anomaly, AnomalyKind, DeviceEvent, EventState

TIMESTAMP_FIELDS = ("timestamp", "event_time", "created_at")


class ValidationError(ValueError):
    """A single event record could not be parsed."""

    def __init__(self, message: str, raw: Any = None):
        super().__init__(message)
        self.raw = raw


def normalize_timestamp(ts: datetime) -> datetime:
    """Convert to naive UTC so aware and naive values can be compared."""
    if ts.tzinfo is not None:
        return ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def parse_timestamp(value: Any) -> datetime:
    """Parse a datetime or ISO-8601 string into a naive UTC datetime."""
    if isinstance(value, datetime):
        return normalize_timestamp(value)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Unparseable timestamp: {value!r}", value)

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return normalize_timestamp(datetime.fromisoformat(text))
    except ValueError as e:
        raise ValidationError(f"Unparseable timestamp: {value!r}", value) from e


def parse_state(value: Any) -> EventState:
    if isinstance(value, EventState):
        return value
    try:
        return EventState(str(value).strip().upper())
    except ValueError as e:
        raise ValidationError(f"Unknown state: {value!r}", value) from e


def parse_event(raw: DeviceEvent | Mapping[str, Any]) -> DeviceEvent:
    """Build a DeviceEvent from a DeviceEvent or a mapping.

    Raises ValidationError if the device id, state or timestamp is unusable.
    """
    if isinstance(raw, DeviceEvent):
        return DeviceEvent(
            device_id=raw.device_id,
            state=parse_state(raw.state),
            timestamp=parse_timestamp(raw.timestamp),
            id=raw.id,
        )

    if not isinstance(raw, Mapping):
        raise ValidationError(f"Not an event record: {raw!r}", raw)

    device_id = raw.get("device_id")
    if device_id is None or not str(device_id).strip():
        raise ValidationError("Missing device_id", raw)

    ts_value = next((raw[k] for k in TIMESTAMP_FIELDS if raw.get(k)), None)
    event_id = raw.get("id")

    return DeviceEvent(
        device_id=str(device_id).strip(),
        state=parse_state(raw.get("state")),
        timestamp=parse_timestamp(ts_value),
        id=str(event_id) if event_id not in (None, "") else None,
    )


def parse_events(
    raws: Iterable[DeviceEvent | Mapping[str, Any]],
) -> tuple[list[DeviceEvent], list[Anomaly]]:
    """Parse many records, recording a VALIDATION_ERROR for each bad one."""
    events = []
    anomalies = []

    for raw in raws:
        try:
            events.append(parse_event(raw))
        except ValidationError as e:
            if isinstance(raw, Mapping):
                device_id, event_id = raw.get("device_id"), raw.get("id")
            else:
                device_id = getattr(raw, "device_id", None)
                event_id = getattr(raw, "id", None)
            anomalies.append(
                Anomaly(
                    kind=AnomalyKind.VALIDATION_ERROR,
                    message=str(e),
                    device_id=str(device_id) if device_id is not None else None,
                    event_id=str(event_id) if event_id is not None else None,
                )
            )

    return events, anomalies
