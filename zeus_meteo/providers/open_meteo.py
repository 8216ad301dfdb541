"""
Open-Meteo Weather Provider for Zeus Meteo

Open-Meteo aggregates multiple models including:
- GFS (US Global Forecast System)
- ICON (German DWD model)
- GEM (Canadian model)

No API key required. The API only takes coordinates, so the location is
geocoded first. Current and hourly values are requested in GMT with wind
in m/s; daily aggregates use the location's own timezone so each row is
a local calendar day.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from zeus_meteo.conditions import UNKNOWN_WMO_CODE, wmo_code_to_condition
from zeus_meteo.models import DailyForecastPoint, NormalizedReading
from zeus_meteo.providers.base import WeatherSource, optional_float
from zeus_meteo.providers.geocoding import Geocoder

logger = logging.getLogger(__name__)

HOURLY_FIELDS = [
    "temperature_2m", "apparent_temperature", "relative_humidity_2m",
    "surface_pressure", "wind_speed_10m", "wind_direction_10m",
    "weather_code", "visibility", "cloud_cover", "uv_index",
]

DAILY_FIELDS = [
    "temperature_2m_max", "temperature_2m_min", "weather_code",
    "precipitation_sum", "wind_speed_10m_max",
]


class OpenMeteoSource(WeatherSource):
    """Adapter for api.open-meteo.com (current, hourly and daily)."""

    name = "OpenMeteo"
    supports_forecast = True
    supports_7day_forecast = True
    BASE_URL = "https://api.open-meteo.com/v1/forecast"
    MAX_FORECAST_DAYS = 16

    def __init__(self, client: Optional[httpx.AsyncClient] = None,
                 timeout: Optional[float] = None, geocoder: Optional[Geocoder] = None):
        super().__init__(client=client, timeout=timeout)
        self.geocoder = geocoder or Geocoder(client=client, timeout=self.timeout)

    def _clamp_days(self, days: int) -> int:
        return max(1, min(int(days), self.MAX_FORECAST_DAYS))

    async def _fetch_current(self, location: str) -> NormalizedReading:
        coords = await self.geocoder.get_coordinates(location)
        logger.info(f"[OpenMeteoSource] Fetching current weather for {coords['name']}")

        params = {
            "latitude": coords["latitude"],
            "longitude": coords["longitude"],
            "current": ",".join(HOURLY_FIELDS),
            "wind_speed_unit": "ms",
            "timezone": "GMT",
        }
        data = await self._get_json(self.BASE_URL, params=params)
        return self.format_current(data["current"])

    async def _fetch_forecast(self, location: str, days: int) -> List[NormalizedReading]:
        coords = await self.geocoder.get_coordinates(location)
        days = self._clamp_days(days)
        logger.info(f"[OpenMeteoSource] Fetching {days}-day hourly forecast for {coords['name']}")

        params = {
            "latitude": coords["latitude"],
            "longitude": coords["longitude"],
            "hourly": ",".join(HOURLY_FIELDS),
            "wind_speed_unit": "ms",
            "timezone": "GMT",
            "forecast_days": days,
        }
        data = await self._get_json(self.BASE_URL, params=params)
        readings = self.format_hourly(data["hourly"])
        logger.info(f"[OpenMeteoSource] Retrieved {len(readings)} hourly records")
        return readings

    async def _fetch_daily(self, location: str, days: int) -> List[DailyForecastPoint]:
        coords = await self.geocoder.get_coordinates(location)
        days = self._clamp_days(days)
        logger.info(f"[OpenMeteoSource] Fetching {days}-day daily forecast for {coords['name']}")

        params = {
            "latitude": coords["latitude"],
            "longitude": coords["longitude"],
            "daily": ",".join(DAILY_FIELDS),
            "wind_speed_unit": "ms",
            "timezone": "auto",
            "forecast_days": days,
        }
        data = await self._get_json(self.BASE_URL, params=params)
        points = self.format_daily(data["daily"])
        logger.info(f"[OpenMeteoSource] Retrieved {len(points)} daily records")
        return points

    def format_current(self, current: Dict[str, Any]) -> NormalizedReading:
        return NormalizedReading(
            source=self.name,
            timestamp=current["time"],
            temperature=float(current["temperature_2m"]),
            description=wmo_code_to_condition(current.get("weather_code")),
            feels_like=optional_float(current.get("apparent_temperature")),
            humidity=optional_float(current.get("relative_humidity_2m")),
            pressure=optional_float(current.get("surface_pressure")),
            wind_speed=optional_float(current.get("wind_speed_10m")),
            wind_direction=optional_float(current.get("wind_direction_10m")),
            visibility=optional_float(current.get("visibility"), scale=0.001),  # m -> km
            clouds=optional_float(current.get("cloud_cover")),
            uv_index=optional_float(current.get("uv_index")),
        )

    def format_hourly(self, hourly: Dict[str, List[Any]]) -> List[NormalizedReading]:
        times = hourly["time"]

        def column(key: str) -> List[Any]:
            # Missing columns come back as all-None
            return hourly.get(key) or [None] * len(times)

        temps = column("temperature_2m")
        readings: List[NormalizedReading] = []
        for i, t in enumerate(times):
            if temps[i] is None:
                continue
            readings.append(NormalizedReading(
                source=self.name,
                timestamp=t,
                temperature=float(temps[i]),
                description=wmo_code_to_condition(column("weather_code")[i]),
                feels_like=optional_float(column("apparent_temperature")[i]),
                humidity=optional_float(column("relative_humidity_2m")[i]),
                pressure=optional_float(column("surface_pressure")[i]),
                wind_speed=optional_float(column("wind_speed_10m")[i]),
                wind_direction=optional_float(column("wind_direction_10m")[i]),
                visibility=optional_float(column("visibility")[i], scale=0.001),
                clouds=optional_float(column("cloud_cover")[i]),
                uv_index=optional_float(column("uv_index")[i]),
            ))
        return readings

    def format_daily(self, daily: Dict[str, List[Any]]) -> List[DailyForecastPoint]:
        dates = daily["time"]
        n = len(dates)
        highs = daily.get("temperature_2m_max") or [None] * n
        lows = daily.get("temperature_2m_min") or [None] * n
        codes = daily.get("weather_code") or [None] * n
        precip = daily.get("precipitation_sum") or [None] * n
        wind = daily.get("wind_speed_10m_max") or [None] * n

        points: List[DailyForecastPoint] = []
        for i, date_str in enumerate(dates):
            if highs[i] is None or lows[i] is None:
                logger.debug(f"[OpenMeteoSource] Skipping {date_str}: no temperature range")
                continue
            code = int(codes[i]) if codes[i] is not None else UNKNOWN_WMO_CODE
            points.append(DailyForecastPoint(
                date=date_str,
                temperature_max=float(highs[i]),
                temperature_min=float(lows[i]),
                description=wmo_code_to_condition(codes[i]),
                weather_code=code,
                precipitation=float(precip[i] or 0.0),
                wind_max=float(wind[i] or 0.0),
                source=self.name,
            ))
        return points
