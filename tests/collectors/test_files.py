from datetime import datetime

import pytest

from device_usage.collectors.files import (
    EventFileError,
    load_events,
    load_events_from_csv,
    write_events_csv,
)
from device_usage.events import parse_events
from device_usage.models import DeviceEvent, EventState


def test_csv_round_trip(tmp_path):
    events = [
        DeviceEvent("fan", EventState.ON, datetime(2024, 11, 4, 10), "e1"),
        DeviceEvent("fan", EventState.AUTO_OFF, datetime(2024, 11, 4, 11)),
    ]
    path = tmp_path / "events.csv"
    assert write_events_csv(events, path) == 2

    parsed, anomalies = parse_events(load_events(path))
    assert parsed == events
    assert anomalies == []


def test_csv_rows_are_returned_unparsed(tmp_path):
    path = tmp_path / "events.csv"
    path.write_text(
        "id,device_id,state,timestamp\n"
        "1,fan,ON,2024-11-04T10:00:00\n"
        "2,fan,OFF,not-a-date\n"
    )
    rows = load_events_from_csv(path)
    assert rows[1]["timestamp"] == "not-a-date"

    parsed, anomalies = parse_events(rows)
    assert len(parsed) == 1
    assert len(anomalies) == 1


def test_csv_missing_column(tmp_path):
    path = tmp_path / "events.csv"
    path.write_text("state,timestamp\nON,2024-11-04T10:00:00\n")
    with pytest.raises(EventFileError, match="device_id"):
        load_events_from_csv(path)


def test_json_formats(tmp_path):
    row = {"device_id": "fan", "state": "ON", "event_time": "2024-11-04T10:00:00Z"}
    as_list = tmp_path / "list.json"
    as_list.write_text('[{"device_id": "fan", "state": "ON", "event_time": "2024-11-04T10:00:00Z"}]')
    wrapped = tmp_path / "wrapped.json"
    wrapped.write_text('{"events": [{"device_id": "fan", "state": "ON", "event_time": "2024-11-04T10:00:00Z"}]}')

    assert load_events(as_list) == [row]
    assert load_events(wrapped) == [row]


def test_json_errors(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(EventFileError, match="Invalid JSON"):
        load_events(bad)

    with pytest.raises(EventFileError, match="Cannot read"):
        load_events(tmp_path / "missing.json")
