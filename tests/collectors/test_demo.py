from datetime import date, datetime

import pytest

from device_usage.analysis.sessions import reconstruct_sessions
from device_usage.collectors.demo import DEMO_PROFILES, demo_registry, generate_events
from device_usage.models import EventState


def test_generation_is_deterministic():
    first = generate_events(7, date(2024, 11, 1), date(2024, 11, 3))
    second = generate_events(7, date(2024, 11, 1), date(2024, 11, 3))
    other = generate_events(8, date(2024, 11, 1), date(2024, 11, 3))

    assert first == second
    assert first != other


def test_events_are_paired_and_sorted():
    events = generate_events(1, date(2024, 11, 1), date(2024, 11, 1))

    assert all(a.timestamp <= b.timestamp for a, b in zip(events, events[1:]))
    on = [e for e in events if e.state == EventState.ON]
    off = [e for e in events if e.state != EventState.ON]
    assert len(on) == len(off)
    assert {e.device_id for e in events} <= {p.info.device_id for p in DEMO_PROFILES}
    assert len({e.id for e in events}) == len(events)


def test_demo_events_reconstruct():
    events = generate_events(3, date(2024, 11, 1), date(2024, 11, 7))
    result = reconstruct_sessions(events, datetime(2024, 11, 30))

    assert result.sessions
    assert all(s.end is not None for s in result.sessions)
    assert any(s.terminal_state.value == "AUTO_OFF" for s in result.sessions)
    assert result.anomalies == []


def test_demo_registry():
    registry = demo_registry()
    assert registry("ac_bedroom").wattage_watts == 1500
    assert registry("water_heater").unit_price == 8.00
    assert registry("unknown") is None


def test_demo_runtime_matches_generated_pairs():
    """Every ON pairs with its own OFF, so reported runtime equals generated runtime."""
    events = generate_events(1, date(2024, 11, 1), date(2024, 11, 2))
    by_id = {e.id: e for e in events}
    generated = sum(
        (by_id[e.id[: -len("_on")] + "_off"].timestamp - e.timestamp).total_seconds() / 60
        for e in events
        if e.state == EventState.ON
    )

    result = reconstruct_sessions(events, datetime(2024, 11, 30))
    assert result.anomalies == []
    assert sum(s.duration_minutes for s in result.sessions) == pytest.approx(generated)
