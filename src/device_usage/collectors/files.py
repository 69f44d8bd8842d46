"""Device event import/export for CSV and JSON files.

CSV format: id, device_id, state, timestamp (id may be empty).
JSON format: a list of objects with the same keys, or {"events": [...]}.
"""

import csv
import json
from pathlib import Path
from typing import Any

from ..models import DeviceEvent

CSV_FIELDS = ["id", "device_id", "state", "timestamp"]


class EventFileError(Exception):
    """An events file could not be read."""
    pass


def load_events_from_csv(csv_path: Path) -> list[dict[str, Any]]:
    """Read raw event rows from a CSV file.

    Rows are returned unparsed; malformed ones are reported when the
    sessions are reconstructed rather than here.
    """
    try:
        with open(csv_path, newline="") as f:
            reader = csv.DictReader(f)
            if not reader.fieldnames or "device_id" not in reader.fieldnames:
                raise EventFileError(f"{csv_path}: missing device_id column")
            return [dict(row) for row in reader]
    except OSError as e:
        raise EventFileError(f"Cannot read {csv_path}: {e}") from e


def load_events_from_json(json_path: Path) -> list[dict[str, Any]]:
    """Read raw event objects from a JSON file."""
    try:
        with open(json_path) as f:
            data = json.load(f)
    except OSError as e:
        raise EventFileError(f"Cannot read {json_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise EventFileError(f"Invalid JSON in {json_path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("events", [])
    if not isinstance(data, list):
        raise EventFileError(f"{json_path}: expected a list of events")
    return data


def load_events(path: Path) -> list[dict[str, Any]]:
    """Load events from a .csv or .json file based on its suffix."""
    if path.suffix.lower() == ".json":
        return load_events_from_json(path)
    return load_events_from_csv(path)


def write_events_csv(events: list[DeviceEvent], csv_path: Path) -> int:
    """Write events to CSV. Returns the number of rows written."""
    with open(csv_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for event in events:
            writer.writerow(
                {
                    "id": event.id or "",
                    "device_id": event.device_id,
                    "state": event.state.value,
                    "timestamp": event.timestamp.isoformat(),
                }
            )
    return len(events)
