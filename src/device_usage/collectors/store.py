"""Event store interface and an in-memory implementation."""

from datetime import datetime
from typing import Any, Iterable, Mapping, Protocol

from ..events import normalize_timestamp, parse_events
from ..models import Anomaly, DeviceEvent


class EventStore(Protocol):
    """Anything that can hand back device events for a time window.

    Order of the returned events is not guaranteed.
    """

    def get_events(
        self, device_id: str | None, start: datetime, end: datetime
    ) -> list[DeviceEvent | Mapping[str, Any]]: ...


class InMemoryEventStore:
    """Event store over a list of already-loaded events."""

    def __init__(self, events: Iterable[DeviceEvent | Mapping[str, Any]] = ()):
        self.events, self.anomalies = parse_events(events)

    def __len__(self) -> int:
        return len(self.events)

    def add(self, event: DeviceEvent) -> None:
        self.events.append(event)

    def device_ids(self) -> list[str]:
        return sorted({e.device_id for e in self.events})

    def get_events(
        self,
        device_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[DeviceEvent]:
        """Events for one device (or all when None) with start <= ts <= end."""
        start = normalize_timestamp(start) if start else None
        end = normalize_timestamp(end) if end else None
        return [
            e
            for e in self.events
            if (device_id is None or e.device_id == device_id)
            and (start is None or e.timestamp >= start)
            and (end is None or e.timestamp <= end)
        ]

    def validation_anomalies(self) -> list[Anomaly]:
        """Records that could not be parsed when the store was loaded."""
        return list(self.anomalies)
