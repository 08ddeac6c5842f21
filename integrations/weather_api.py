"""Best-effort client for the OpenWeatherMap current-weather endpoint."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from app.schemas import DEFAULT_WEATHER, WeatherSnapshot

logger = logging.getLogger(__name__)


class WeatherApiClient:
    """Returns :data:`DEFAULT_WEATHER` whenever the real snapshot is unavailable."""

    def __init__(
        self,
        url: str,
        api_key: Optional[str],
        latitude: float,
        longitude: float,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._latitude = latitude
        self._longitude = longitude
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_snapshot(self) -> WeatherSnapshot:
        if not self._api_key:
            logger.debug("No weather API key configured, using default snapshot")
            return DEFAULT_WEATHER.model_copy()

        params = {
            "lat": self._latitude,
            "lon": self._longitude,
            "units": "metric",
            "appid": self._api_key,
        }
        try:
            response = await self._client.get(self._url, params=params)
            response.raise_for_status()
            return self._parse(response.json())
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
            logger.warning(
                "Weather fetch failed, using default snapshot",
                extra={"reason": type(exc).__name__},
            )
            return DEFAULT_WEATHER.model_copy()

    @staticmethod
    def _parse(data: Dict[str, Any]) -> WeatherSnapshot:
        main = data["main"]
        return WeatherSnapshot(
            temperature=round(float(main["temp"])),
            feels_like=round(float(main["feels_like"])),
            humidity=float(main["humidity"]),
            condition=str(data["weather"][0]["description"]),
            location=str(data.get("name") or DEFAULT_WEATHER.location),
            wind_speed=round(float(data["wind"]["speed"])),
            # cloud cover stands in for precipitation chance
            precipitation=float(data["clouds"]["all"]),
        )
