"""
Met.no (Norwegian Meteorological Institute) Provider for Zeus Meteo

Fetches weather data from api.met.no (Locationforecast 2.0), which runs
one of the world's most sophisticated ECMWF implementations.

Met.no terms of service:
- A descriptive User-Agent is mandatory (403 otherwise)
- Coordinates must not carry more than 4 decimals

The timeseries is hourly for roughly 60 hours and 6-hourly after that;
daily aggregates are built from it with pandas.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
import pandas as pd

from zeus_meteo.conditions import condition_to_wmo_code, metno_symbol_to_condition
from zeus_meteo.config import DEFAULT_USER_AGENT
from zeus_meteo.models import DailyForecastPoint, NormalizedReading
from zeus_meteo.providers.base import WeatherSource, optional_float
from zeus_meteo.providers.geocoding import Geocoder

logger = logging.getLogger(__name__)


def _next_period(entry: Dict[str, Any]) -> Dict[str, Any]:
    """The nearest forecast block after an instant (1h, else 6h, else 12h)."""
    data = entry.get("data", {})
    for key in ("next_1_hours", "next_6_hours", "next_12_hours"):
        if data.get(key):
            return data[key]
    return {}


class MetNorwaySource(WeatherSource):
    """Adapter for the Met.no Locationforecast API."""

    name = "MetNorway"
    supports_forecast = True
    supports_7day_forecast = True
    COMPACT_URL = "https://api.met.no/weatherapi/locationforecast/2.0/compact"
    COMPLETE_URL = "https://api.met.no/weatherapi/locationforecast/2.0/complete"
    DEFAULT_TIMEOUT = 15.0

    def __init__(self, client: Optional[httpx.AsyncClient] = None,
                 timeout: Optional[float] = None, geocoder: Optional[Geocoder] = None,
                 user_agent: str = DEFAULT_USER_AGENT):
        super().__init__(client=client, timeout=timeout)
        self.geocoder = geocoder or Geocoder(client=client, timeout=self.timeout)
        # Required User-Agent per Met.no API terms
        self.HEADERS = {"User-Agent": user_agent}

    async def _timeseries(self, location: str, url: str) -> List[Dict[str, Any]]:
        coords = await self.geocoder.get_coordinates(location)
        params = {
            "lat": round(coords["latitude"], 4),
            "lon": round(coords["longitude"], 4),
        }
        logger.info(f"[MetNorwaySource] Fetching {url.rsplit('/', 1)[-1]} timeseries for {coords['name']}")
        data = await self._get_json(url, params=params)
        timeseries = data["properties"]["timeseries"]
        if not timeseries:
            raise ValueError("no timeseries data in response")
        return timeseries

    async def _fetch_current(self, location: str) -> NormalizedReading:
        timeseries = await self._timeseries(location, self.COMPACT_URL)
        return self.format_entry(timeseries[0])

    async def _fetch_forecast(self, location: str, days: int) -> List[NormalizedReading]:
        timeseries = await self._timeseries(location, self.COMPLETE_URL)
        readings = [self.format_entry(entry) for entry in timeseries
                    if entry.get("data", {}).get("instant", {}).get("details", {}).get("air_temperature") is not None]
        if readings:
            cutoff = pd.Timestamp(readings[0].timestamp) + pd.Timedelta(days=max(1, days))
            readings = [r for r in readings if pd.Timestamp(r.timestamp) < cutoff]
        logger.info(f"[MetNorwaySource] Retrieved {len(readings)} forecast records")
        return readings

    async def _fetch_daily(self, location: str, days: int) -> List[DailyForecastPoint]:
        timeseries = await self._timeseries(location, self.COMPLETE_URL)
        points = self.aggregate_daily(timeseries)[:max(1, days)]
        logger.info(f"[MetNorwaySource] Aggregated {len(points)} daily records")
        return points

    def format_entry(self, entry: Dict[str, Any]) -> NormalizedReading:
        details = entry["data"]["instant"]["details"]
        symbol = _next_period(entry).get("summary", {}).get("symbol_code")
        return NormalizedReading(
            source=self.name,
            timestamp=entry["time"],
            temperature=float(details["air_temperature"]),
            description=metno_symbol_to_condition(symbol),
            humidity=optional_float(details.get("relative_humidity")),
            pressure=optional_float(details.get("air_pressure_at_sea_level")),
            wind_speed=optional_float(details.get("wind_speed")),
            wind_direction=optional_float(details.get("wind_from_direction")),
            clouds=optional_float(details.get("cloud_area_fraction")),
            uv_index=optional_float(details.get("ultraviolet_index_clear_sky")),
        )

    def aggregate_daily(self, timeseries: List[Dict[str, Any]]) -> List[DailyForecastPoint]:
        """
        Collapse the hourly/6-hourly timeseries into calendar days (UTC).

        Max/min come from the instant air temperatures, precipitation is the
        sum over each entry's next block, and the description is the first
        symbol seen that day.
        """
        rows = []
        for entry in timeseries:
            details = entry.get("data", {}).get("instant", {}).get("details", {})
            temp = details.get("air_temperature")
            if temp is None:
                continue
            period = _next_period(entry)
            rows.append({
                "time": entry["time"],
                "temperature": float(temp),
                "wind_speed": details.get("wind_speed"),
                "precipitation": period.get("details", {}).get("precipitation_amount"),
                "symbol": period.get("summary", {}).get("symbol_code"),
            })

        if not rows:
            return []

        df = pd.DataFrame(rows)
        df["date"] = pd.to_datetime(df["time"], utc=True).dt.strftime("%Y-%m-%d")
        df["wind_speed"] = pd.to_numeric(df["wind_speed"], errors="coerce")
        df["precipitation"] = pd.to_numeric(df["precipitation"], errors="coerce").fillna(0.0)

        daily = df.groupby("date", sort=True).agg(
            temperature_max=("temperature", "max"),
            temperature_min=("temperature", "min"),
            precipitation=("precipitation", "sum"),
            wind_max=("wind_speed", "max"),
            symbol=("symbol", "first"),
        )

        points: List[DailyForecastPoint] = []
        for date_str, row in daily.iterrows():
            label = metno_symbol_to_condition(row["symbol"] if isinstance(row["symbol"], str) else None)
            wind_max = row["wind_max"]
            points.append(DailyForecastPoint(
                date=date_str,
                temperature_max=round(float(row["temperature_max"]), 1),
                temperature_min=round(float(row["temperature_min"]), 1),
                description=label,
                weather_code=condition_to_wmo_code(label),
                precipitation=round(float(row["precipitation"]), 1),
                wind_max=round(float(wind_max), 1) if pd.notna(wind_max) else 0.0,
                source=self.name,
            ))
        return points
