from datetime import datetime

import pytest

from device_usage.analysis.sessions import reconstruct_sessions
from device_usage.analysis.savings import estimate_savings, total_savings
from device_usage.models import DeviceEvent, DeviceInfo, EventState
from device_usage.tariffs import CostModel, DeviceRegistry

ON, OFF, AUTO_OFF = EventState.ON, EventState.OFF, EventState.AUTO_OFF
NOW = datetime(2024, 11, 30, 23, 0)


def ev(device_id, state, hour, minute=0):
    return DeviceEvent(device_id, state, datetime(2024, 11, 4, hour, minute))


def test_single_auto_off():
    """One auto-off on a 100 W device saves an estimated 0.21 kWh (scenario D)."""
    sessions = reconstruct_sessions([ev("D", ON, 10), ev("D", AUTO_OFF, 11)], NOW).sessions
    registry = DeviceRegistry([DeviceInfo("D", "Desk Lamp", 100, 7.50)])

    savings = estimate_savings(sessions, CostModel(registry), avg_hours_saved_per_event=2.1)

    assert len(savings) == 1
    saving = savings[0]
    assert saving.total_auto_offs == 1
    assert saving.energy_saved_kwh == pytest.approx(0.21)
    assert saving.cost_saved == pytest.approx(1.575)
    assert saving.is_estimate
    assert saving.assumed_hours_per_event == 2.1
    assert saving.device_name == "Desk Lamp"


def test_manual_off_saves_nothing():
    sessions = reconstruct_sessions([ev("A", ON, 10), ev("A", OFF, 11)], NOW).sessions
    assert estimate_savings(sessions) == []


def test_orphan_auto_off_is_not_counted():
    sessions = reconstruct_sessions([ev("A", AUTO_OFF, 9)], NOW).sessions
    assert estimate_savings(sessions) == []


def test_savings_per_device_and_totals():
    events = [
        ev("A", ON, 8), ev("A", AUTO_OFF, 9),
        ev("A", ON, 10), ev("A", AUTO_OFF, 11),
        ev("B", ON, 8), ev("B", AUTO_OFF, 8, 30),
    ]
    sessions = reconstruct_sessions(events, NOW).sessions
    savings = estimate_savings(sessions, avg_hours_saved_per_event=1.0)

    assert [(s.device_id, s.total_auto_offs) for s in savings] == [("A", 2), ("B", 1)]
    assert savings[0].energy_saved_kwh == pytest.approx(0.12)
    kwh, cost = total_savings(savings)
    assert kwh == pytest.approx(0.18)
    assert cost == pytest.approx(0.18 * 7.50)
