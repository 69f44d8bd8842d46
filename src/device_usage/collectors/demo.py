"""Seeded demo event generator.

Produces realistic ON/OFF/AUTO_OFF sequences for a set of household devices.
Generation is a pure function of (seed, date range): the same inputs always
give the same events, and nothing runs in the background.
"""

import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from ..models import DeviceEvent, DeviceInfo, EventState
from ..tariffs import DeviceRegistry

AUTO_OFF_PROBABILITY = 0.3


@dataclass(frozen=True)
class DeviceProfile:
    """How often, when and for how long a demo device runs."""

    info: DeviceInfo
    events_per_day: tuple[int, int]
    duration_minutes: tuple[int, int]
    # (probability, hour range) options; first match wins, last is fallback
    hours: tuple[tuple[float, tuple[int, int]], ...]


DEMO_PROFILES = [
    DeviceProfile(
        DeviceInfo("living_room_light", "Living Room Light", 12, 7.50),
        (3, 8), (15, 180), ((0.3, (6, 9)), (1.0, (17, 22))),
    ),
    DeviceProfile(
        DeviceInfo("bedroom_fan", "Bedroom Fan", 75, 7.50),
        (2, 6), (30, 300), ((1.0, (8, 22)),),
    ),
    DeviceProfile(
        DeviceInfo("kitchen_light", "Kitchen Light", 9, 7.50),
        (4, 9), (10, 120), ((0.4, (6, 9)), (1.0, (17, 21))),
    ),
    DeviceProfile(
        DeviceInfo("ac_bedroom", "Bedroom AC", 1500, 8.50),
        (1, 4), (60, 240), ((0.6, (11, 15)), (1.0, (21, 23))),
    ),
    DeviceProfile(
        DeviceInfo("tv_hall", "Hall TV", 120, 7.50),
        (2, 5), (45, 180), ((1.0, (18, 22)),),
    ),
    DeviceProfile(
        DeviceInfo("porch_light", "Porch Light", 15, 7.50),
        (1, 3), (60, 480), ((1.0, (18, 23)),),
    ),
    DeviceProfile(
        DeviceInfo("water_heater", "Water Heater", 2000, 8.00),
        (1, 3), (10, 40), ((0.7, (5, 7)), (1.0, (18, 19))),
    ),
]


def demo_registry(profiles: list[DeviceProfile] | None = None) -> DeviceRegistry:
    """Resolver for the demo devices."""
    return DeviceRegistry([p.info for p in profiles or DEMO_PROFILES])


def _pick_hour(rng: random.Random, profile: DeviceProfile) -> int:
    roll = rng.random()
    for probability, (low, high) in profile.hours:
        if roll < probability:
            return rng.randint(low, high)
    low, high = profile.hours[-1][1]
    return rng.randint(low, high)


def generate_events(
    seed: int,
    start: date,
    end: date,
    profiles: list[DeviceProfile] | None = None,
) -> list[DeviceEvent]:
    """Generate demo events for every day from `start` to `end` inclusive.

    Each usage produces an ON followed by an OFF or (30% of the time) an
    AUTO_OFF. A device never starts a new usage before its previous one
    ended, so every ON pairs with its own OFF. Events are returned sorted by
    timestamp.
    """
    rng = random.Random(seed)
    profiles = profiles or DEMO_PROFILES
    events = []
    last_off: dict[str, datetime] = {}

    day = start
    while day <= end:
        for profile in profiles:
            device_id = profile.info.device_id
            count = rng.randint(*profile.events_per_day)
            starts = sorted(
                datetime(
                    day.year, day.month, day.day,
                    _pick_hour(rng, profile), rng.randint(0, 59), rng.randint(0, 59),
                )
                for _ in range(count)
            )
            for i, on_time in enumerate(starts):
                previous = last_off.get(device_id)
                if previous is not None and on_time <= previous:
                    on_time = previous + timedelta(minutes=rng.randint(1, 30))
                off_time = on_time + timedelta(minutes=rng.randint(*profile.duration_minutes))
                last_off[device_id] = off_time
                auto_off = rng.random() < AUTO_OFF_PROBABILITY
                prefix = f"demo_{device_id}_{day.isoformat()}_{i}"

                events.append(DeviceEvent(device_id, EventState.ON, on_time, f"{prefix}_on"))
                events.append(
                    DeviceEvent(
                        device_id,
                        EventState.AUTO_OFF if auto_off else EventState.OFF,
                        off_time,
                        f"{prefix}_off",
                    )
                )
        day += timedelta(days=1)

    return sorted(events, key=lambda e: (e.timestamp, e.device_id, e.id))
