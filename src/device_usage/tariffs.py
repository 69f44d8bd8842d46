"""Device metadata loading and energy/cost calculation."""

import logging
from pathlib import Path
from typing import Callable

import yaml

from .models import DeviceInfo

logger = logging.getLogger(__name__)

DEFAULT_WATTAGE = 60  # W
DEFAULT_UNIT_PRICE = 7.50  # currency units per kWh

# resolve_device(device_id) -> DeviceInfo | None
DeviceResolver = Callable[[str], "DeviceInfo | None"]


def calculate_consumption(
    duration_minutes: float, wattage_watts: float, unit_price: float = DEFAULT_UNIT_PRICE
) -> tuple[float, float]:
    """Energy (kWh) and cost for a device running `duration_minutes`.

    No rounding is applied; round only when presenting results.
    """
    kwh = (wattage_watts / 1000) * (duration_minutes / 60)
    return kwh, kwh * unit_price


class CostModel:
    """Resolves device metadata, falling back to configured defaults."""

    def __init__(
        self,
        resolver: DeviceResolver | None = None,
        default_wattage: float = DEFAULT_WATTAGE,
        default_unit_price: float = DEFAULT_UNIT_PRICE,
    ):
        self.resolver = resolver
        self.default_wattage = default_wattage
        self.default_unit_price = default_unit_price

    def default_info(self, device_id: str) -> DeviceInfo:
        return DeviceInfo(
            device_id=device_id,
            name=device_id,
            wattage_watts=self.default_wattage,
            unit_price=self.default_unit_price,
            is_default=True,
        )

    def resolve(self, device_id: str) -> DeviceInfo:
        """Metadata for a device; unknown devices get the defaults."""
        info = self.resolver(device_id) if self.resolver else None
        if info is None:
            return self.default_info(device_id)
        return info

    def consumption(self, device_id: str, duration_minutes: float) -> tuple[float, float]:
        info = self.resolve(device_id)
        return calculate_consumption(duration_minutes, info.wattage_watts, info.unit_price)


class DeviceRegistry:
    """A device resolver backed by a fixed set of DeviceInfo records."""

    def __init__(self, devices: list[DeviceInfo] | None = None):
        self._devices = {d.device_id: d for d in devices or []}

    def __call__(self, device_id: str) -> DeviceInfo | None:
        return self._devices.get(device_id)

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._devices

    @property
    def devices(self) -> list[DeviceInfo]:
        return [self._devices[k] for k in sorted(self._devices)]


def load_devices_from_yaml(
    config_path: Path,
    default_wattage: float = DEFAULT_WATTAGE,
    default_unit_price: float = DEFAULT_UNIT_PRICE,
) -> DeviceRegistry:
    """Load device definitions from a YAML file.

    Expected format:

        devices:
          - id: bedroom_fan
            name: Bedroom Fan
            wattage: 75
            unit_price: 7.50
    """
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    devices = []
    for d in data.get("devices", []):
        devices.append(
            DeviceInfo(
                device_id=str(d["id"]),
                name=d.get("name") or str(d["id"]),
                wattage_watts=float(d.get("wattage", default_wattage)),
                unit_price=float(d.get("unit_price", default_unit_price)),
            )
        )
    logger.debug("Loaded %d device(s) from %s", len(devices), config_path)
    return DeviceRegistry(devices)
