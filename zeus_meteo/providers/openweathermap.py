"""
OpenWeatherMap Provider for Zeus Meteo

Requires OPENWEATHER_API_KEY (free tier: 60 calls/minute). Queries by city
name, so the orchestrator's location variants matter most here.

Endpoints:
- /data/2.5/weather   current conditions
- /data/2.5/forecast  5 days in 3-hour steps (8 steps per day)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from zeus_meteo.conditions import owm_id_to_condition
from zeus_meteo.errors import SourceUnavailable
from zeus_meteo.models import NormalizedReading
from zeus_meteo.providers.base import WeatherSource, optional_float

logger = logging.getLogger(__name__)


def epoch_to_iso(value: Any) -> str:
    return datetime.fromtimestamp(int(value), tz=timezone.utc).isoformat()


class OpenWeatherMapSource(WeatherSource):
    """Adapter for api.openweathermap.org (current + 3-hourly forecast)."""

    name = "OpenWeatherMap"
    supports_forecast = True
    supports_7day_forecast = False
    BASE_URL = "https://api.openweathermap.org/data/2.5"
    STEPS_PER_DAY = 8
    MAX_FORECAST_DAYS = 5

    def __init__(self, api_key: Optional[str], client: Optional[httpx.AsyncClient] = None,
                 timeout: Optional[float] = None):
        super().__init__(client=client, timeout=timeout)
        self.api_key = api_key
        if not self.api_key:
            logger.warning("[OpenWeatherMapSource] No API key configured")

    def _params(self, location: str, **extra: Any) -> Dict[str, Any]:
        if not self.api_key:
            raise SourceUnavailable(self.name, "OPENWEATHER_API_KEY not configured")
        params = {"q": location, "appid": self.api_key, "units": "metric"}
        params.update(extra)
        return params

    async def _fetch_current(self, location: str) -> NormalizedReading:
        logger.info(f"[OpenWeatherMapSource] Fetching current weather for '{location}'")
        data = await self._get_json(f"{self.BASE_URL}/weather", params=self._params(location))
        return self.format_data(data)

    async def _fetch_forecast(self, location: str, days: int) -> List[NormalizedReading]:
        days = max(1, min(days, self.MAX_FORECAST_DAYS))
        logger.info(f"[OpenWeatherMapSource] Fetching {days}-day forecast for '{location}'")
        params = self._params(location, cnt=days * self.STEPS_PER_DAY)
        data = await self._get_json(f"{self.BASE_URL}/forecast", params=params)
        readings = [self.format_data(item) for item in data["list"]]
        logger.info(f"[OpenWeatherMapSource] Retrieved {len(readings)} 3-hourly records")
        return readings

    def format_data(self, data: Dict[str, Any]) -> NormalizedReading:
        main = data["main"]
        wind = data.get("wind", {})
        weather = data.get("weather") or [{}]
        return NormalizedReading(
            source=self.name,
            timestamp=epoch_to_iso(data["dt"]),
            temperature=float(main["temp"]),
            description=owm_id_to_condition(weather[0].get("id")),
            feels_like=optional_float(main.get("feels_like")),
            humidity=optional_float(main.get("humidity")),
            pressure=optional_float(main.get("pressure")),
            wind_speed=optional_float(wind.get("speed")),
            wind_direction=optional_float(wind.get("deg")),
            visibility=optional_float(data.get("visibility"), scale=0.001),  # m -> km
            clouds=optional_float(data.get("clouds", {}).get("all")),
        )
