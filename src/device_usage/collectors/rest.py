"""REST event store client.

Reads device events and device metadata from a PostgREST-style API exposing
`device_events` (id, device_id, state, event_time) and `devices`
(device_id, device_name, wattage, unit_price) tables.
"""

import logging
import os
from datetime import datetime
from typing import Any

import httpx
from dotenv import load_dotenv

from ..models import DeviceInfo
from ..tariffs import DEFAULT_UNIT_PRICE, DEFAULT_WATTAGE, DeviceRegistry

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

EVENTS_TABLE = "device_events"
DEVICES_TABLE = "devices"
PAGE_SIZE = 1000


class EventStoreError(Exception):
    """Base exception for REST event store errors."""
    pass


def get_base_url() -> str:
    """Get the API base URL from environment."""
    url = os.environ.get("DEVICE_EVENTS_URL")
    if not url:
        raise EventStoreError(
            "DEVICE_EVENTS_URL environment variable not set.\n"
            "Then set it: export DEVICE_EVENTS_URL='https://your-project.example.com'"
        )
    return url.rstrip("/")


def get_api_key() -> str | None:
    """Get the API key from environment (optional)."""
    return os.environ.get("DEVICE_EVENTS_API_KEY")


def _headers(api_key: str | None) -> dict[str, str]:
    if not api_key:
        return {}
    return {"apikey": api_key, "Authorization": f"Bearer {api_key}"}


class RestEventStore:
    """EventStore backed by the REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
    ):
        self.base_url = (base_url or get_base_url()).rstrip("/")
        self.api_key = api_key if api_key is not None else get_api_key()
        self.timeout = timeout
        self._client = client

    def _get(self, table: str, params: list[tuple[str, str]]) -> list[dict[str, Any]]:
        url = f"{self.base_url}/rest/v1/{table}"
        client = self._client or httpx.Client()
        try:
            response = client.get(
                url, params=params, headers=_headers(self.api_key), timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise EventStoreError(
                f"HTTP error {e.response.status_code} fetching {table}"
            ) from e
        except httpx.HTTPError as e:
            raise EventStoreError(f"Network error fetching {table}: {e}") from e
        except ValueError as e:
            raise EventStoreError(f"Invalid JSON from {table}: {e}") from e
        finally:
            if self._client is None:
                client.close()

        if not isinstance(data, list):
            raise EventStoreError(f"Unexpected response from {table}: {data!r}")
        return data

    def get_events(
        self, device_id: str | None, start: datetime, end: datetime
    ) -> list[dict[str, Any]]:
        """Fetch raw event rows in [start, end], paging through results.

        Rows are returned as-is; parsing happens during reconstruction.
        """
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            params = [
                ("select", "id,device_id,state,event_time"),
                ("event_time", f"gte.{start.isoformat()}"),
                ("event_time", f"lte.{end.isoformat()}"),
                ("order", "event_time.asc"),
                ("limit", str(PAGE_SIZE)),
                ("offset", str(offset)),
            ]
            if device_id:
                params.append(("device_id", f"eq.{device_id}"))

            page = self._get(EVENTS_TABLE, params)
            rows.extend(page)
            if len(page) < PAGE_SIZE:
                break
            offset += PAGE_SIZE

        logger.debug("Fetched %d events between %s and %s", len(rows), start, end)
        return rows

    def get_devices(
        self,
        default_wattage: float = DEFAULT_WATTAGE,
        default_unit_price: float = DEFAULT_UNIT_PRICE,
    ) -> DeviceRegistry:
        """Fetch device metadata as a resolver."""
        rows = self._get(DEVICES_TABLE, [("select", "device_id,device_name,wattage,unit_price")])
        devices = []
        for row in rows:
            device_id = row.get("device_id")
            if not device_id:
                continue
            devices.append(
                DeviceInfo(
                    device_id=str(device_id),
                    name=row.get("device_name") or str(device_id),
                    wattage_watts=float(row.get("wattage") or default_wattage),
                    unit_price=float(row.get("unit_price") or default_unit_price),
                )
            )
        return DeviceRegistry(devices)
