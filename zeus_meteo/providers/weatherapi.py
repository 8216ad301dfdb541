"""
WeatherAPI.com Provider for Zeus Meteo

Requires WEATHERAPI_KEY. Accepts free-text locations directly. The forecast
endpoint nests hourly entries per day (forecast.forecastday[].hour[]); they
are flattened into one chronological list here.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from zeus_meteo.conditions import weatherapi_code_to_condition
from zeus_meteo.errors import SourceUnavailable
from zeus_meteo.models import NormalizedReading
from zeus_meteo.providers.base import KMH_TO_MS, WeatherSource, optional_float
from zeus_meteo.providers.openweathermap import epoch_to_iso

logger = logging.getLogger(__name__)


class WeatherAPISource(WeatherSource):
    """Adapter for api.weatherapi.com (current + hourly forecast)."""

    name = "WeatherAPI"
    supports_forecast = True
    supports_7day_forecast = False
    BASE_URL = "https://api.weatherapi.com/v1"
    MAX_FORECAST_DAYS = 3  # free plan

    def __init__(self, api_key: Optional[str], client: Optional[httpx.AsyncClient] = None,
                 timeout: Optional[float] = None):
        super().__init__(client=client, timeout=timeout)
        self.api_key = api_key
        if not self.api_key:
            logger.warning("[WeatherAPISource] No API key configured")

    def _params(self, location: str, **extra: Any) -> Dict[str, Any]:
        if not self.api_key:
            raise SourceUnavailable(self.name, "WEATHERAPI_KEY not configured")
        params = {"key": self.api_key, "q": location, "aqi": "no"}
        params.update(extra)
        return params

    async def _fetch_current(self, location: str) -> NormalizedReading:
        logger.info(f"[WeatherAPISource] Fetching current weather for '{location}'")
        data = await self._get_json(f"{self.BASE_URL}/current.json", params=self._params(location))
        current = data["current"]
        return self.format_block(current, current["last_updated_epoch"])

    async def _fetch_forecast(self, location: str, days: int) -> List[NormalizedReading]:
        days = max(1, min(days, self.MAX_FORECAST_DAYS))
        logger.info(f"[WeatherAPISource] Fetching {days}-day forecast for '{location}'")
        params = self._params(location, days=days, alerts="no")
        data = await self._get_json(f"{self.BASE_URL}/forecast.json", params=params)

        readings = [
            self.format_block(hour, hour["time_epoch"])
            for day in data["forecast"]["forecastday"]
            for hour in day.get("hour", [])
        ]
        logger.info(f"[WeatherAPISource] Retrieved {len(readings)} hourly records")
        return readings

    def format_block(self, block: Dict[str, Any], epoch: Any) -> NormalizedReading:
        return NormalizedReading(
            source=self.name,
            timestamp=epoch_to_iso(epoch),
            temperature=float(block["temp_c"]),
            description=weatherapi_code_to_condition(block.get("condition", {}).get("code")),
            feels_like=optional_float(block.get("feelslike_c")),
            humidity=optional_float(block.get("humidity")),
            pressure=optional_float(block.get("pressure_mb")),
            wind_speed=optional_float(block.get("wind_kph"), scale=KMH_TO_MS),
            wind_direction=optional_float(block.get("wind_degree")),
            visibility=optional_float(block.get("vis_km")),
            clouds=optional_float(block.get("cloud")),
            uv_index=optional_float(block.get("uv")),
        )
