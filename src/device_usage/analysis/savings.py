"""Estimated energy savings from automatic switch-offs."""

from typing import Iterable

from ..models import EnergySaving, Session, TerminalState
from ..tariffs import CostModel

# Assumed hours a device would otherwise have kept running after an auto-off
AVG_HOURS_SAVED_PER_EVENT = 2.1


def estimate_savings(
    sessions: Iterable[Session],
    cost_model: CostModel | None = None,
    avg_hours_saved_per_event: float = AVG_HOURS_SAVED_PER_EVENT,
) -> list[EnergySaving]:
    """Estimate energy and cost saved per device by AUTO_OFF terminations.

    energy_saved_kwh = auto_offs * avg_hours * wattage / 1000

    The result is an estimate built on `avg_hours_saved_per_event`; keep it
    separate from measured runtime totals.
    """
    cost_model = cost_model or CostModel()

    counts: dict[str, int] = {}
    for session in sessions:
        if session.terminal_state == TerminalState.AUTO_OFF:
            counts[session.device_id] = counts.get(session.device_id, 0) + 1

    savings = []
    for device_id in sorted(counts):
        info = cost_model.resolve(device_id)
        auto_offs = counts[device_id]
        energy_saved = auto_offs * avg_hours_saved_per_event * info.wattage_watts / 1000
        savings.append(
            EnergySaving(
                device_id=device_id,
                device_name=info.name,
                total_auto_offs=auto_offs,
                energy_saved_kwh=energy_saved,
                cost_saved=energy_saved * info.unit_price,
                assumed_hours_per_event=avg_hours_saved_per_event,
            )
        )
    return savings


def total_savings(savings: Iterable[EnergySaving]) -> tuple[float, float]:
    """Sum (energy_saved_kwh, cost_saved) across devices."""
    kwh = 0.0
    cost = 0.0
    for saving in savings:
        kwh += saving.energy_saved_kwh
        cost += saving.cost_saved
    return kwh, cost
