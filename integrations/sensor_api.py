"""Client for the sensor-data CRUD backend."""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from models.records import RawReading

logger = logging.getLogger(__name__)


class SensorDataError(RuntimeError):
    """The sensor history could not be fetched."""


class SensorApiClient:
    """Fetches the full reading history from ``GET /api/sensor-data``."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_readings(self) -> List[RawReading]:
        try:
            response = await self._client.get(self._url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SensorDataError(
                f"Sensor API returned status {exc.response.status_code}."
            ) from exc
        except httpx.HTTPError as exc:
            raise SensorDataError(f"Sensor API request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise SensorDataError("Sensor API returned invalid JSON.") from exc

        if not isinstance(payload, list):
            raise SensorDataError("Unexpected sensor API payload: expected a list of readings.")
        logger.debug("Fetched sensor readings", extra={"reading_count": len(payload)})
        return payload
